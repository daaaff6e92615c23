"""Pytest configuration and shared fixtures for LaunchHub tests."""

import os

# Must be set before launchhub is imported so the global settings pick the
# testing profile (in-memory database, ERROR logging, no tracing).
os.environ["ENVIRONMENT"] = "testing"

import sys
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi.testclient import TestClient
from loguru import logger
from sqlmodel import Session

from launchhub.database import DatabaseManager
from launchhub.models import Category, Product, User, Vote
from launchhub.rpc import Context
from launchhub.server import create_app
from launchhub.utils import slugify

# Wednesday noon, UTC
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


# =============================================================================
# Clock
# =============================================================================


class FrozenClock:
    """Callable clock pinned to a fixed instant, movable by tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db() -> Generator[DatabaseManager, None, None]:
    """Fresh in-memory database per test."""
    manager = DatabaseManager("sqlite://")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def session(db: DatabaseManager) -> Generator[Session, None, None]:
    with db.session() as s:
        yield s


# =============================================================================
# Factories
# =============================================================================

_sequence = count(1)


@pytest.fixture
def make_user(session: Session) -> Callable[..., User]:
    """Create and persist a user."""

    def _make(username: str | None = None, **fields: Any) -> User:
        n = next(_sequence)
        username = username or f"user{n}"
        user = User(
            id=fields.pop("id", f"kp_{username}"),
            email=fields.pop("email", f"{username}@example.com"),
            username=username,
            name=fields.pop("name", username.title()),
            **fields,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def maker(make_user: Callable[..., User]) -> User:
    return make_user("maker", name="Mia Maker")


@pytest.fixture
def make_product(session: Session, maker: User) -> Callable[..., Product]:
    """Create and persist a product (published, launched an hour before NOW by default)."""

    def _make(name: str | None = None, **fields: Any) -> Product:
        n = next(_sequence)
        name = name or f"Product {n}"
        product = Product(
            name=name,
            slug=fields.pop("slug", slugify(name)),
            tagline=fields.pop("tagline", f"{name} tagline"),
            description=fields.pop("description", f"All about {name}"),
            website=fields.pop("website", "https://example.com"),
            launch_date=fields.pop("launch_date", NOW - timedelta(hours=1)),
            maker_id=fields.pop("maker_id", maker.id),
            created_at=fields.pop("created_at", NOW - timedelta(days=1)),
            **fields,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def add_votes(session: Session, make_user: Callable[..., User]) -> Callable[[Product, int], None]:
    """Give a product ``n`` votes from fresh users."""

    def _add(product: Product, n: int) -> None:
        for _ in range(n):
            voter = make_user()
            session.add(Vote(user_id=voter.id, product_id=product.id))
        session.commit()

    return _add


@pytest.fixture
def make_category(session: Session) -> Callable[..., Category]:
    def _make(name: str, **fields: Any) -> Category:
        category = Category(name=name, **fields)
        session.add(category)
        session.commit()
        session.refresh(category)
        return category

    return _make


# =============================================================================
# RPC / HTTP Fixtures
# =============================================================================


@pytest.fixture
def ctx_for(session: Session, clock: FrozenClock) -> Callable[[User | None], Context]:
    """Build a call context for a user (or anonymous)."""

    def _ctx(user: User | None = None) -> Context:
        return Context(session=session, user_id=user.id if user else None, clock=clock)

    return _ctx


@pytest.fixture
def client(db: DatabaseManager, clock: FrozenClock) -> Generator[TestClient, None, None]:
    app = create_app(db=db, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user: User) -> dict[str, str]:
    """Identity headers as forwarded by the identity provider."""
    return {"X-User-Id": user.id, "X-User-Email": user.email}
