from typing import Any

from sqlalchemy import or_
from sqlmodel import col, select

from launchhub.models import Collection, Page, Product, SearchInput, SearchType, User, UserSummary
from launchhub.repository import ProductRepository
from launchhub.routers.collection import collection_reads
from launchhub.rpc import Context, Router

router = Router()


@router.query("search", input=SearchInput)
def search(ctx: Context, data: SearchInput) -> Page[Any]:
    """Case-insensitive substring search over products, users or public collections.

    ``cursor`` is an offset; ``nextCursor`` is null once results run out.
    """
    session = ctx.session
    term = data.query.strip()

    if data.type == SearchType.USERS:
        stmt = (
            select(User)
            .where(
                or_(
                    col(User.name).icontains(term, autoescape=True),
                    col(User.username).icontains(term, autoescape=True),
                )
            )
            .order_by(User.username, User.id)
        )
    elif data.type == SearchType.COLLECTIONS:
        stmt = (
            select(Collection)
            .where(Collection.is_public == True)  # noqa: E712
            .where(
                or_(
                    col(Collection.name).icontains(term, autoescape=True),
                    col(Collection.description).icontains(term, autoescape=True),
                )
            )
            .order_by(Collection.created_at.desc(), Collection.id)
        )
    else:
        stmt = (
            select(Product)
            .where(Product.is_launched == True)  # noqa: E712
            .where(
                or_(
                    col(Product.name).icontains(term, autoescape=True),
                    col(Product.tagline).icontains(term, autoescape=True),
                    col(Product.description).icontains(term, autoescape=True),
                )
            )
            .order_by(Product.created_at.desc(), Product.id)
        )

    rows = list(session.exec(stmt.offset(data.cursor).limit(data.limit + 1)).all())
    next_cursor = None
    if len(rows) > data.limit:
        rows = rows[: data.limit]
        next_cursor = data.cursor + data.limit

    if data.type == SearchType.USERS:
        items: list[Any] = [UserSummary.model_validate(u) for u in rows]
    elif data.type == SearchType.COLLECTIONS:
        items = collection_reads(session, rows, products_per_collection=4)
    else:
        items = ProductRepository(session).to_cards(rows)
    return Page[Any](items=items, next_cursor=next_cursor)
