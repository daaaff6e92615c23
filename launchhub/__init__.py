"""LaunchHub - product launch platform backend.

This package provides the backend of a Product Hunt style platform: makers
list products with scheduled launch dates, the community votes and comments,
and daily leaderboards rank each day's launches. Everything is served through
a typed RPC layer over SQLModel tables.

Example:
    >>> from launchhub import DatabaseManager, LaunchWindow, leaderboard
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> with db.session() as session:
    ...     winners = leaderboard(session, LaunchWindow.TODAY, limit=3)
"""

__version__ = "0.1.0"

from launchhub.config import settings  # noqa: E402
from launchhub.database import DatabaseManager  # noqa: E402
from launchhub.errors import (  # noqa: E402
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LaunchHubError,
    NotFoundError,
    UnauthorizedError,
)
from launchhub.launch import (  # noqa: E402
    LaunchWindow,
    is_live,
    leaderboard,
    past_launches,
    sweep_launches,
    window_bounds,
)
from launchhub.models import (  # noqa: E402
    Category,
    Collection,
    Comment,
    Notification,
    Product,
    User,
    Vote,
)

__all__ = [
    "__version__",
    # Configuration
    "settings",
    # Database
    "DatabaseManager",
    # Launch logic
    "LaunchWindow",
    "is_live",
    "window_bounds",
    "leaderboard",
    "past_launches",
    "sweep_launches",
    # Errors
    "LaunchHubError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    # SQLModel tables
    "User",
    "Product",
    "Vote",
    "Comment",
    "Category",
    "Collection",
    "Notification",
]
