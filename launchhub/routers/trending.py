"""Trending products and featured collections."""

from dateutil.relativedelta import relativedelta  # type: ignore[import-untyped]
from sqlalchemy import func
from sqlmodel import select

from launchhub.models import (
    Collection,
    CollectionRead,
    CollectionsOnProducts,
    Product,
    ProductCard,
    Timeframe,
    TrendingInput,
)
from launchhub.repository import ProductRepository, vote_counts
from launchhub.routers.collection import collection_reads
from launchhub.rpc import Context, Router

router = Router()

FEATURED_COLLECTIONS = 5
FEATURED_PRODUCTS_PER_COLLECTION = 4

_LOOKBACK = {
    Timeframe.DAY: relativedelta(days=1),
    Timeframe.WEEK: relativedelta(weeks=1),
    Timeframe.MONTH: relativedelta(months=1),
}


@router.query("getTrendingProducts", input=TrendingInput)
def get_trending_products(ctx: Context, data: TrendingInput) -> list[ProductCard]:
    """Most-voted published products created within the timeframe."""
    session = ctx.session
    since = ctx.now() - _LOOKBACK[data.timeframe]
    counts = vote_counts()
    products = session.exec(
        select(Product)
        .outerjoin(counts, counts.c.product_id == Product.id)
        .where(Product.created_at >= since)
        .where(Product.is_launched == True)  # noqa: E712
        .order_by(func.coalesce(counts.c.votes, 0).desc(), Product.created_at.desc(), Product.id)
        .limit(data.limit)
    ).all()
    return ProductRepository(session).to_cards(products)


@router.query("getFeaturedCollections")
def get_featured_collections(ctx: Context) -> list[CollectionRead]:
    session = ctx.session
    size = func.count(CollectionsOnProducts.product_id)
    collections = session.exec(
        select(Collection)
        .outerjoin(CollectionsOnProducts, CollectionsOnProducts.collection_id == Collection.id)
        .where(Collection.is_public == True)  # noqa: E712
        .group_by(Collection.id)
        .order_by(size.desc(), Collection.created_at.desc(), Collection.id)
        .limit(FEATURED_COLLECTIONS)
    ).all()
    return collection_reads(session, collections, FEATURED_PRODUCTS_PER_COLLECTION)
