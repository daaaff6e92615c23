"""Product procedures: listing, CRUD, voting and the launch leaderboards."""

import math

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import select

from launchhub import launch
from launchhub.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from launchhub.logging import logger
from launchhub.metrics import votes_toggled_total
from launchhub.models import (
    CategoriesOnProducts,
    Category,
    CategoryRead,
    CheckDuplicateInput,
    Comment,
    CountResult,
    DashboardSummary,
    DuplicateCheck,
    GetProductsInput,
    IdInput,
    Notification,
    NotificationType,
    PastLaunchesInput,
    Product,
    ProductCard,
    ProductCreate,
    ProductDetail,
    ProductIdInput,
    ProductImage,
    ProductsPage,
    ProductUpdate,
    SlugInput,
    UploadImagesInput,
    Vote,
    VoteResult,
)
from launchhub.repository import ProductRepository, vote_counts
from launchhub.routers.comment import load_threads
from launchhub.rpc import Context, Router

router = Router()

# Columns that may legitimately be cleared by an update
_NULLABLE_UPDATES = {"thumbnail"}


def _owned_product(ctx: Context, product_id: str) -> Product:
    """Load a product the caller makes.

    Raises:
        NotFoundError: Unknown product
        ForbiddenError: Caller is not the maker
    """
    product = ProductRepository(ctx.session).get_or_404(product_id, "Product")
    if product.maker_id != ctx.require_user_id():
        raise ForbiddenError("Only the maker can change this product")
    return product


def _detail(ctx: Context, product: Product) -> ProductDetail:
    session = ctx.session
    card = ProductRepository(session).to_cards([product])[0]
    images = session.exec(
        select(ProductImage.url)
        .where(ProductImage.product_id == product.id)
        .order_by(ProductImage.created_at, ProductImage.id)
    ).all()
    voter_ids = session.exec(select(Vote.user_id).where(Vote.product_id == product.id)).all()
    top_level = session.exec(
        select(Comment)
        .where(Comment.product_id == product.id, Comment.parent_id == None)  # noqa: E711
        .order_by(Comment.created_at.desc(), Comment.id)
    ).all()
    return ProductDetail.model_validate(
        {
            **card.model_dump(),
            "images": list(images),
            "voter_ids": list(voter_ids),
            "comments": load_threads(session, top_level, replies_per_thread=None),
        }
    )


def _check_unique(repo: ProductRepository, name: str | None, slug: str | None, exclude_id: str | None = None) -> None:
    if name is not None and repo.name_taken(name, exclude_id):
        raise BadRequestError("A product with this name already exists")
    if slug is not None and repo.slug_taken(slug, exclude_id):
        raise BadRequestError("A product with this slug already exists")


# =============================================================================
# Listing
# =============================================================================


@router.query("getProducts", input=GetProductsInput)
def get_products(ctx: Context, data: GetProductsInput) -> ProductsPage:
    """Filtered, sorted, page-numbered product listing."""
    session = ctx.session
    published = Product.is_launched == True  # noqa: E712
    stmt = select(Product).where(published)
    count_stmt = select(func.count(func.distinct(Product.id))).select_from(Product).where(published)

    if data.category:
        in_category = (
            select(CategoriesOnProducts.product_id)
            .join(Category, Category.id == CategoriesOnProducts.category_id)
            .where(Category.name == data.category)
        )
        stmt = stmt.where(Product.id.in_(in_category))
        count_stmt = count_stmt.where(Product.id.in_(in_category))
    if data.pricing:
        stmt = stmt.where(Product.pricing == data.pricing)
        count_stmt = count_stmt.where(Product.pricing == data.pricing)

    if data.sort_by == "votes":
        counts = vote_counts()
        stmt = stmt.outerjoin(counts, counts.c.product_id == Product.id).order_by(
            func.coalesce(counts.c.votes, 0).desc(), Product.created_at.desc()
        )
    elif data.sort_by == "popular":
        stmt = stmt.order_by(Product.views.desc(), Product.created_at.desc())
    else:
        stmt = stmt.order_by(Product.created_at.desc())

    stmt = stmt.order_by(Product.id).offset((data.page - 1) * data.limit).limit(data.limit)
    products = session.exec(stmt).all()
    total = session.exec(count_stmt).one()

    return ProductsPage(
        products=ProductRepository(session).to_cards(products),
        total_pages=math.ceil(total / data.limit),
    )


@router.query("getCategories")
def get_categories(ctx: Context) -> list[CategoryRead]:
    categories = ctx.session.exec(select(Category).order_by(Category.name)).all()
    return [CategoryRead.model_validate(c) for c in categories]


@router.query("checkDuplicate", input=CheckDuplicateInput)
def check_duplicate(ctx: Context, data: CheckDuplicateInput) -> DuplicateCheck:
    repo = ProductRepository(ctx.session)
    name_taken = repo.name_taken(data.name, data.exclude_id)
    slug_taken = repo.slug_taken(data.slug, data.exclude_id)
    return DuplicateCheck(
        name_taken=name_taken, slug_taken=slug_taken, is_duplicate=name_taken or slug_taken
    )


@router.query("getProduct", input=SlugInput)
def get_product(ctx: Context, data: SlugInput) -> ProductDetail:
    """Public product page; drafts are only visible to their maker.

    Every read counts a view and commits the incremented ``views`` counter,
    which drives the ``popular`` sort of ``getProducts``.
    """
    repo = ProductRepository(ctx.session)
    product = repo.get_by_slug(data.slug)
    if product is None or (not product.is_launched and product.maker_id != ctx.user_id):
        raise NotFoundError("Product not found")

    product = repo.update(product, {"views": product.views + 1})
    return _detail(ctx, product)


@router.query("getProductById", input=IdInput, private=True)
def get_product_by_id(ctx: Context, data: IdInput) -> ProductDetail:
    """Maker-only lookup used by the edit form."""
    return _detail(ctx, _owned_product(ctx, data.id))


@router.query("getDashboardProducts", private=True)
def get_dashboard_products(ctx: Context) -> DashboardSummary:
    session = ctx.session
    user_id = ctx.require_user_id()
    repo = ProductRepository(session)

    products = session.exec(
        select(Product).where(Product.maker_id == user_id).order_by(Product.created_at.desc())
    ).all()
    total_votes = session.exec(
        select(func.count(Vote.id))
        .join(Product, Product.id == Vote.product_id)
        .where(Product.maker_id == user_id)
    ).one()
    total_comments = session.exec(
        select(func.count(Comment.id))
        .join(Product, Product.id == Comment.product_id)
        .where(Product.maker_id == user_id)
    ).one()

    return DashboardSummary(
        products=repo.to_cards(products),
        total_products=len(products),
        total_votes=total_votes,
        total_comments=total_comments,
    )


# =============================================================================
# Mutations
# =============================================================================


@router.mutation("create", input=ProductCreate, private=True)
def create_product(ctx: Context, data: ProductCreate) -> ProductCard:
    """List a new product with a scheduled launch.

    Raises:
        BadRequestError: Name or slug already in use
        NotFoundError: Unknown category id
    """
    session = ctx.session
    maker = ctx.current_user()
    repo = ProductRepository(session)
    _check_unique(repo, data.name, data.slug)

    now = ctx.now()
    product = Product(
        **data.model_dump(exclude={"category_ids", "images"}),
        maker_id=maker.id,
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(product)
        session.flush()
        repo.set_categories(product.id, data.category_ids)
        for url in data.images:
            session.add(ProductImage(url=url, product_id=product.id))
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise BadRequestError("A product with this name or slug already exists") from e
    except NotFoundError:
        session.rollback()
        raise

    session.refresh(product)
    logger.info(f"Product {product.slug} created by {maker.id}, launching {product.launch_date.isoformat()}")
    return repo.to_cards([product])[0]


@router.mutation("update", input=ProductUpdate, private=True)
def update_product(ctx: Context, data: ProductUpdate) -> ProductCard:
    """Edit a product.

    Publishing is one-way, and a live launch keeps its launch date.

    Raises:
        ForbiddenError: Caller is not the maker
        BadRequestError: Duplicate name/slug, unpublishing, or moving a live launch
    """
    session = ctx.session
    repo = ProductRepository(session)
    product = _owned_product(ctx, data.id)
    _check_unique(repo, data.name, data.slug, exclude_id=product.id)

    if data.is_launched is False and product.is_launched:
        raise BadRequestError("A published launch cannot be unpublished")

    already_live = product.launch_started or (
        product.is_launched and launch.is_live(product.launch_date, ctx.now())
    )
    if (
        data.launch_date is not None
        and data.launch_date != product.launch_date
        and already_live
    ):
        raise BadRequestError("The launch date cannot change after launch")

    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True, exclude={"id", "category_ids"}).items()
        if value is not None or key in _NULLABLE_UPDATES
    }
    changes["updated_at"] = ctx.now()

    try:
        for key, value in changes.items():
            setattr(product, key, value)
        session.add(product)
        if data.category_ids is not None:
            repo.set_categories(product.id, data.category_ids)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise BadRequestError("A product with this name or slug already exists") from e
    except NotFoundError:
        session.rollback()
        raise

    session.refresh(product)
    return repo.to_cards([product])[0]


@router.mutation("toggleVote", input=ProductIdInput, private=True)
def toggle_vote(ctx: Context, data: ProductIdInput) -> VoteResult:
    """Add the caller's vote, or remove it if present.

    The product row is locked (on backends that support it) for the
    check-then-act, and the whole toggle commits as one transaction.

    Raises:
        NotFoundError: Unknown product
        BadRequestError: Product is a draft or not live yet
        ConflictError: A concurrent toggle by the same user won the race
    """
    session = ctx.session
    voter = ctx.current_user()
    repo = ProductRepository(session)

    product = session.exec(
        select(Product).where(Product.id == data.product_id).with_for_update()
    ).first()
    if product is None:
        raise NotFoundError("Product not found")
    launch.ensure_votable(product, ctx.now())

    try:
        existing = session.exec(
            select(Vote).where(Vote.user_id == voter.id, Vote.product_id == product.id)
        ).first()
        if existing:
            session.delete(existing)
            action = "removed"
        else:
            session.add(Vote(user_id=voter.id, product_id=product.id, created_at=ctx.now()))
            if product.maker_id != voter.id:
                session.add(
                    Notification(
                        type=NotificationType.VOTE,
                        user_id=product.maker_id,
                        content=f"{voter.name or voter.username or 'Someone'} upvoted {product.name}",
                        created_at=ctx.now(),
                    )
                )
            action = "added"
        session.commit()
    except (IntegrityError, StaleDataError) as e:
        session.rollback()
        raise ConflictError("Vote changed concurrently, please retry") from e

    votes_toggled_total.labels(action=action).inc()
    return VoteResult(action=action, vote_count=repo.vote_count(product.id))


@router.query("getUserVotes", private=True)
def get_user_votes(ctx: Context) -> list[str]:
    """Ids of every product the caller has voted for."""
    return list(
        ctx.session.exec(select(Vote.product_id).where(Vote.user_id == ctx.require_user_id())).all()
    )


@router.mutation("uploadImages", input=UploadImagesInput, private=True)
def upload_images(ctx: Context, data: UploadImagesInput) -> CountResult:
    """Attach already-hosted image URLs to a product."""
    session = ctx.session
    product = _owned_product(ctx, data.product_id)
    for url in data.urls:
        session.add(ProductImage(url=url, product_id=product.id, created_at=ctx.now()))
    session.commit()
    return CountResult(count=len(data.urls))


# =============================================================================
# Leaderboards
# =============================================================================


@router.query("getTodaysWinners")
def get_todays_winners(ctx: Context) -> list[ProductCard]:
    return launch.todays_winners(ctx.session, ctx.now())


@router.query("getYesterdayWinners")
def get_yesterday_winners(ctx: Context) -> list[ProductCard]:
    return launch.yesterdays_winners(ctx.session, ctx.now())


@router.query("getYesterday")
def get_yesterday(ctx: Context) -> list[ProductCard]:
    return launch.leaderboard(ctx.session, launch.LaunchWindow.YESTERDAY, now=ctx.now())


@router.query("getPastLaunches", input=PastLaunchesInput)
def get_past_launches(ctx: Context, data: PastLaunchesInput):
    return launch.past_launches(ctx.session, data.limit, data.cursor, now=ctx.now())


@router.query("getUpcoming")
def get_upcoming(ctx: Context) -> list[ProductCard]:
    return launch.upcoming_launches(ctx.session, ctx.now())


@router.query("getNextLaunch")
def get_next_launch(ctx: Context) -> ProductCard | None:
    return launch.next_launch(ctx.session, ctx.now())
