"""Database engine and schema management for LaunchHub.

This module provides:
- Engine creation from ``settings.database_url`` (SQLite by default)
- SQLite tuning (WAL, foreign keys) and in-memory support for tests
- Schema and composite index creation
- Session scoping for requests, jobs and the CLI
- Seeding of the default category tree

Example:
    >>> from launchhub.database import DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> with db.session() as session:
    ...     db.seed_categories(session)
    >>> db.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import delete, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from launchhub.config import settings
from launchhub.logging import logger
from launchhub.models import CategoriesOnProducts, Category

# Root categories with their subcategories, in display order
DEFAULT_CATEGORIES: list[tuple[str, str, list[tuple[str, str]]]] = [
    (
        "AI & ML",
        "Artificial Intelligence and Machine Learning tools",
        [
            ("ChatGPT Tools", "ChatGPT-powered applications"),
            ("Image Generation", "AI Image Generation tools"),
            ("Machine Learning", "ML and Data Science tools"),
        ],
    ),
    (
        "Development",
        "Software Development Tools",
        [
            ("IDEs & Editors", "Development Environments"),
            ("APIs & Backend", "API and Backend tools"),
            ("DevOps", "DevOps and Infrastructure tools"),
        ],
    ),
    (
        "Design",
        "Design and Creative Tools",
        [
            ("UI Design", "UI Design tools"),
            ("3D & Motion", "3D and Motion Design"),
            ("Prototyping", "Prototyping tools"),
        ],
    ),
    (
        "Marketing",
        "Marketing and Business Tools",
        [
            ("SEO", "SEO Tools"),
            ("Social Media", "Social Media Management"),
            ("Analytics", "Marketing Analytics"),
        ],
    ),
    (
        "Productivity",
        "Productivity Tools",
        [
            ("Task Management", "Task and Project Management"),
            ("Note Taking", "Note Taking Apps"),
            ("Calendar", "Calendar and Scheduling"),
        ],
    ),
]

# Composite indexes for the leaderboard, comment thread and inbox queries
INDEXES = [
    'CREATE INDEX IF NOT EXISTS idx_product_published_launch ON product (is_launched, launch_date)',
    'CREATE INDEX IF NOT EXISTS idx_product_sweep ON product (launch_started, is_launched, launch_date)',
    'CREATE INDEX IF NOT EXISTS idx_product_maker_created ON product (maker_id, created_at DESC)',
    'CREATE INDEX IF NOT EXISTS idx_comment_thread ON comment (product_id, parent_id, created_at DESC)',
    'CREATE INDEX IF NOT EXISTS idx_notification_inbox ON notification (user_id, is_read, created_at DESC)',
    'CREATE INDEX IF NOT EXISTS idx_collection_public ON collection (is_public, created_at DESC)',
]


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class DatabaseManager:
    """Owns the engine and hands out sessions.

    Args:
        database_url: SQLAlchemy URL (defaults to settings.database_url)

    Example:
        >>> db = DatabaseManager("sqlite://")
        >>> db.initialize()
        >>> with db.session() as session:
        ...     session.exec(select(Category)).all()
        []
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or settings.database_url
        self.engine: Engine | None = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def is_memory(self) -> bool:
        url = make_url(self.database_url)
        return self.is_sqlite and url.database in (None, "", ":memory:")

    def initialize(self) -> None:
        """Create the engine, tables and indexes (idempotent).

        This method:
        1. Creates the parent directory of a file-backed SQLite database
        2. Creates the engine (a single shared connection for in-memory SQLite)
        3. Enables foreign keys and WAL mode on SQLite
        4. Creates all tables and composite indexes
        """
        if self.engine is not None:
            return

        kwargs: dict[str, Any] = {"echo": False}
        if self.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.is_memory:
                kwargs["poolclass"] = StaticPool
            else:
                database = make_url(self.database_url).database
                if database:
                    Path(database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url, **kwargs)

        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
            if not self.is_memory:
                with self.engine.connect() as conn:
                    conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
                    conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
                    conn.commit()

        SQLModel.metadata.create_all(self.engine)
        self.create_indexes()
        logger.info(f"✅ Database initialized at {make_url(self.database_url).render_as_string(hide_password=True)}")

    def create_indexes(self) -> None:
        """Create composite indexes for common query patterns."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        with self.engine.connect() as conn:
            for statement in INDEXES:
                conn.execute(text(statement))
            conn.commit()

        logger.debug("✅ Database indexes created")

    def reset_schema(self) -> None:
        """Drop and recreate every table (used by ``launchhub init --force``)."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        SQLModel.metadata.drop_all(self.engine)
        logger.warning("Dropped all tables")
        SQLModel.metadata.create_all(self.engine)
        self.create_indexes()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session, rolling back on error and closing afterwards."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        session = Session(self.engine)
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    # =========================================================================
    # Seeding
    # =========================================================================

    def seed_categories(self, session: Session, reset: bool = False) -> int:
        """Insert the default category tree.

        Existing categories (matched by name) are left alone, so seeding twice
        creates nothing the second time.

        Args:
            session: Database session
            reset: Delete all categories and product links first

        Returns:
            Number of categories created
        """
        if reset:
            links = session.execute(delete(CategoriesOnProducts)).rowcount
            session.execute(delete(Category).where(Category.parent_id != None))  # noqa: E711
            session.execute(delete(Category))
            logger.info(f"Deleted existing categories and {links} product links")

        existing = {c.name: c for c in session.exec(select(Category)).all()}
        created = 0

        for order, (name, description, children) in enumerate(DEFAULT_CATEGORIES, start=1):
            root = existing.get(name)
            if root is None:
                root = Category(name=name, description=description, order=order)
                session.add(root)
                session.flush()
                created += 1

            for child_order, (child_name, child_description) in enumerate(children, start=1):
                if child_name in existing:
                    continue
                session.add(
                    Category(
                        name=child_name,
                        description=child_description,
                        parent_id=root.id,
                        order=child_order,
                    )
                )
                created += 1

        session.commit()
        logger.info(f"✅ Seeded {created} categories")
        return created


__all__ = ["DatabaseManager", "DEFAULT_CATEGORIES"]
