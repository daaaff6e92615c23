"""User-curated product collections."""

from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from launchhub.errors import BadRequestError, ForbiddenError, NotFoundError
from launchhub.models import (
    Collection,
    CollectionAddProduct,
    CollectionCreate,
    CollectionRead,
    CollectionsOnProducts,
    Product,
    User,
    UserIdInput,
    UserSummary,
)
from launchhub.repository import ProductRepository, Repository
from launchhub.rpc import Context, Router

router = Router()


def collection_reads(
    session: Session, collections: Sequence[Collection], products_per_collection: int | None = None
) -> list[CollectionRead]:
    """Attach owners and published products (most recently added first) to collections."""
    if not collections:
        return []

    ids = [c.id for c in collections]
    owners = {
        u.id: UserSummary.model_validate(u)
        for u in session.exec(
            select(User).where(User.id.in_({c.user_id for c in collections}))
        ).all()
    }
    rows = session.exec(
        select(CollectionsOnProducts.collection_id, Product)
        .join(Product, Product.id == CollectionsOnProducts.product_id)
        .where(CollectionsOnProducts.collection_id.in_(ids))
        .where(Product.is_launched == True)  # noqa: E712
        .order_by(CollectionsOnProducts.added_at.desc(), Product.id)
    ).all()

    members: dict[str, list[Product]] = {cid: [] for cid in ids}
    for collection_id, product in rows:
        members[collection_id].append(product)

    repo = ProductRepository(session)
    reads = []
    for collection in collections:
        products = members[collection.id]
        shown = products if products_per_collection is None else products[:products_per_collection]
        reads.append(
            CollectionRead.model_validate(
                {
                    **collection.model_dump(),
                    "user": owners.get(collection.user_id),
                    "products": repo.to_cards(shown),
                    "product_count": len(products),
                }
            )
        )
    return reads


@router.mutation("create", input=CollectionCreate, private=True)
def create_collection(ctx: Context, data: CollectionCreate) -> CollectionRead:
    owner = ctx.current_user()
    collection = Repository(ctx.session, Collection).create(
        Collection(**data.model_dump(), user_id=owner.id, created_at=ctx.now())
    )
    return collection_reads(ctx.session, [collection])[0]


@router.mutation("addProduct", input=CollectionAddProduct, private=True)
def add_product(ctx: Context, data: CollectionAddProduct) -> CollectionRead:
    """Add a product to one of the caller's collections.

    Raises:
        NotFoundError: Unknown collection or product
        ForbiddenError: Collection belongs to someone else
        BadRequestError: Product already in the collection
    """
    session = ctx.session
    collection = Repository(session, Collection).get_or_404(data.collection_id, "Collection")
    if collection.user_id != ctx.require_user_id():
        raise ForbiddenError("You can only add products to your own collections")
    product = ProductRepository(session).get_or_404(data.product_id, "Product")
    if not product.is_launched and product.maker_id != ctx.user_id:
        raise NotFoundError("Product not found")

    if session.get(CollectionsOnProducts, (collection.id, product.id)) is not None:
        raise BadRequestError("Product is already in this collection")
    try:
        session.add(
            CollectionsOnProducts(collection_id=collection.id, product_id=product.id, added_at=ctx.now())
        )
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise BadRequestError("Product is already in this collection") from e

    return collection_reads(session, [collection])[0]


@router.query("getUserCollections", input=UserIdInput)
def get_user_collections(ctx: Context, data: UserIdInput) -> list[CollectionRead]:
    collections = ctx.session.exec(
        select(Collection)
        .where(Collection.user_id == data.user_id, Collection.is_public == True)  # noqa: E712
        .order_by(Collection.created_at.desc(), Collection.id)
    ).all()
    return collection_reads(ctx.session, collections)
