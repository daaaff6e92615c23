"""Launch scheduling and leaderboard ranking.

Three pieces of logic live here:

- Launch Gate: a product is live (visible on leaderboards, votable) once
  ``now >= launch_date``.
- Leaderboard Query: products whose launch falls in a calendar-day window,
  ranked by vote count. Ties go to the earlier launch, then the smaller id.
- Cron Sweep: flips ``launch_started`` for every published product whose
  launch instant has passed. Safe to run any number of times.

Windows are computed in ``settings.launch_timezone`` and are half-open
``[start, end)`` ranges, always clipped at ``now`` by the gate.

Example:
    >>> from launchhub.launch import LaunchWindow, leaderboard, sweep_launches
    >>> winners = leaderboard(session, LaunchWindow.TODAY, limit=3)
    >>> sweep_launches(session)
    2
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import StrEnum

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

from launchhub.config import settings
from launchhub.errors import BadRequestError
from launchhub.logging import logger
from launchhub.metrics import cron_sweeps_total, products_launched_total
from launchhub.models import Page, Product, ProductCard
from launchhub.repository import ProductRepository, vote_counts
from launchhub.utils import format_iso, parse_datetime, shift_days, start_of_day, utc_now


class LaunchWindow(StrEnum):
    """Named calendar-day windows used to bucket launches."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    PAST = "past"


@dataclass(frozen=True)
class WindowBounds:
    """Half-open ``[start, end)`` range; ``start`` is None for PAST."""

    start: datetime | None
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        moment = parse_datetime(moment)
        if self.start is not None and moment < self.start:
            return False
        return moment < self.end


# =============================================================================
# Launch Gate
# =============================================================================


def is_live(launch_date: datetime, now: datetime | None = None) -> bool:
    """Whether a launch scheduled at ``launch_date`` has happened by ``now``."""
    now = parse_datetime(now) if now is not None else utc_now()
    return now >= parse_datetime(launch_date)


def ensure_votable(product: Product, now: datetime | None = None) -> None:
    """Reject votes on drafts and on launches that have not happened yet.

    Raises:
        BadRequestError: If the product is a draft or not yet live
    """
    if not product.is_launched:
        raise BadRequestError("Product has not been published")
    if not is_live(product.launch_date, now):
        raise BadRequestError("Product has not launched yet")


# =============================================================================
# Launch Windows
# =============================================================================


def window_bounds(
    window: LaunchWindow, now: datetime | None = None, tz: tzinfo | None = None
) -> WindowBounds:
    """Compute the calendar-day range for ``window`` around ``now``.

    Args:
        window: TODAY, YESTERDAY or PAST
        now: Reference instant (defaults to the current time)
        tz: Timezone defining day boundaries (defaults to settings)

    Returns:
        WindowBounds in UTC

    Example:
        >>> bounds = window_bounds(LaunchWindow.YESTERDAY, datetime(2024, 5, 2, 8, tzinfo=UTC))
        >>> bounds.start.isoformat(), bounds.end.isoformat()
        ('2024-05-01T00:00:00+00:00', '2024-05-02T00:00:00+00:00')
    """
    now = parse_datetime(now) if now is not None else utc_now()
    tz = tz or settings.tz
    today = start_of_day(now, tz)

    if window == LaunchWindow.TODAY:
        return WindowBounds(today, shift_days(today, 1, tz))
    if window == LaunchWindow.YESTERDAY:
        return WindowBounds(shift_days(today, -1, tz), today)
    return WindowBounds(None, today)


# =============================================================================
# Leaderboard Query
# =============================================================================


def _ranked(now: datetime):
    """Published, live products joined with their vote counts, best first.

    Returns the statement and the vote-count expression for further filtering.
    """
    counts = vote_counts()
    votes = func.coalesce(counts.c.votes, 0)
    stmt = (
        select(Product)
        .outerjoin(counts, counts.c.product_id == Product.id)
        .where(Product.is_launched == True)  # noqa: E712
        .where(Product.launch_date <= now)
        .order_by(votes.desc(), Product.launch_date.asc(), Product.id.asc())
    )
    return stmt, votes


def leaderboard(
    session: Session,
    window: LaunchWindow,
    limit: int | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[ProductCard]:
    """Rank the products launched within ``window``.

    Args:
        session: Database session
        window: Which calendar-day window to rank
        limit: Maximum number of results (None = all)
        now: Reference instant (defaults to the current time)
        tz: Timezone defining day boundaries

    Returns:
        Product cards ordered by vote count descending
    """
    now = parse_datetime(now) if now is not None else utc_now()
    bounds = window_bounds(window, now, tz)

    stmt, _ = _ranked(now)
    if bounds.start is not None:
        stmt = stmt.where(Product.launch_date >= bounds.start)
    stmt = stmt.where(Product.launch_date < bounds.end)
    if limit is not None:
        stmt = stmt.limit(limit)

    products = session.exec(stmt).all()
    return ProductRepository(session).to_cards(products)


def todays_winners(session: Session, now: datetime | None = None) -> list[ProductCard]:
    return leaderboard(session, LaunchWindow.TODAY, settings.leaderboard_size, now)


def yesterdays_winners(session: Session, now: datetime | None = None) -> list[ProductCard]:
    return leaderboard(session, LaunchWindow.YESTERDAY, settings.leaderboard_size, now)


def past_launches(
    session: Session,
    limit: int,
    cursor: str | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> Page[ProductCard]:
    """Page through launches before today in leaderboard order.

    The cursor is the id of the last product of the previous page; the next
    page continues strictly after that product's current ranking position.

    Raises:
        BadRequestError: If the cursor does not name a past launch
    """
    now = parse_datetime(now) if now is not None else utc_now()
    bounds = window_bounds(LaunchWindow.PAST, now, tz)
    repo = ProductRepository(session)

    stmt, votes = _ranked(now)
    stmt = stmt.where(Product.launch_date < bounds.end)

    if cursor is not None:
        anchor = repo.get(cursor)
        if anchor is None or anchor.launch_date not in bounds:
            raise BadRequestError("Invalid cursor")
        anchor_votes = repo.vote_count(anchor.id)
        stmt = stmt.where(
            or_(
                votes < anchor_votes,
                and_(votes == anchor_votes, Product.launch_date > anchor.launch_date),
                and_(
                    votes == anchor_votes,
                    Product.launch_date == anchor.launch_date,
                    Product.id > anchor.id,
                ),
            )
        )

    products = list(session.exec(stmt.limit(limit + 1)).all())
    next_cursor = None
    if len(products) > limit:
        products = products[:limit]
        next_cursor = products[-1].id

    return Page[ProductCard](items=repo.to_cards(products), next_cursor=next_cursor)


def upcoming_launches(
    session: Session, now: datetime | None = None, limit: int | None = None
) -> list[ProductCard]:
    """Published products not live yet, soonest first."""
    now = parse_datetime(now) if now is not None else utc_now()
    stmt = (
        select(Product)
        .where(Product.is_launched == True)  # noqa: E712
        .where(Product.launch_date > now)
        .order_by(Product.launch_date.asc(), Product.id.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return ProductRepository(session).to_cards(session.exec(stmt).all())


def next_launch(session: Session, now: datetime | None = None) -> ProductCard | None:
    upcoming = upcoming_launches(session, now, limit=1)
    return upcoming[0] if upcoming else None


def count_launched_in(
    session: Session, window: LaunchWindow, now: datetime | None = None
) -> int:
    """Number of live, published products launched inside ``window``."""
    now = parse_datetime(now) if now is not None else utc_now()
    bounds = window_bounds(window, now)
    stmt = (
        select(func.count(Product.id))
        .where(Product.is_launched == True)  # noqa: E712
        .where(Product.launch_date <= now)
        .where(Product.launch_date < bounds.end)
    )
    if bounds.start is not None:
        stmt = stmt.where(Product.launch_date >= bounds.start)
    return session.exec(stmt).one()


# =============================================================================
# Cron Sweep
# =============================================================================


def sweep_launches(session: Session, now: datetime | None = None) -> int:
    """Mark every due, published product as launched.

    Runs a single UPDATE over ``launch_date <= now AND is_launched AND NOT
    launch_started``. A second run at the same instant updates nothing.

    Args:
        session: Database session (committed on success)
        now: Reference instant (defaults to the current time)

    Returns:
        Number of products whose ``launch_started`` flag was flipped
    """
    now = parse_datetime(now) if now is not None else utc_now()
    stmt = (
        update(Product)
        .where(Product.launch_date <= now)
        .where(Product.is_launched == True)  # noqa: E712
        .where(Product.launch_started == False)  # noqa: E712
        .values(launch_started=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    try:
        result = session.execute(stmt)
        session.commit()
    except Exception:
        session.rollback()
        cron_sweeps_total.labels(status="error").inc()
        raise

    updated = result.rowcount or 0
    cron_sweeps_total.labels(status="success").inc()
    products_launched_total.inc(updated)
    logger.info(f"[CRON] Updated {updated} products to launched status at {format_iso(now)}")
    return updated


__all__ = [
    "LaunchWindow",
    "WindowBounds",
    "is_live",
    "ensure_votable",
    "window_bounds",
    "leaderboard",
    "todays_winners",
    "yesterdays_winners",
    "past_launches",
    "upcoming_launches",
    "next_launch",
    "count_launched_in",
    "sweep_launches",
]
