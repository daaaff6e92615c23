"""Application RPC routers.

Each module defines a ``router``; ``app_router`` mounts them under their
namespace so procedures are addressed as ``<namespace>.<name>``.
"""

from launchhub.routers import (
    auth,
    category,
    collection,
    comment,
    notification,
    product,
    search,
    trending,
    user,
)
from launchhub.rpc import Router


def build_app_router() -> Router:
    app = Router()
    app.merge("auth", auth.router)
    app.merge("product", product.router)
    app.merge("comment", comment.router)
    app.merge("category", category.router)
    app.merge("collection", collection.router)
    app.merge("notification", notification.router)
    app.merge("user", user.router)
    app.merge("search", search.router)
    app.merge("trending", trending.router)
    return app


app_router = build_app_router()

__all__ = ["app_router", "build_app_router"]
