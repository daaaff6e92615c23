"""Category tree management."""

from sqlalchemy import delete, func, update
from sqlmodel import select

from launchhub.errors import BadRequestError
from launchhub.models import (
    CategoriesOnProducts,
    Category,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    CategoryWithCount,
    IdInput,
)
from launchhub.repository import Repository
from launchhub.rpc import Context, Router

router = Router()


def _check_name(repo: Repository[Category], name: str, exclude_id: str | None = None) -> None:
    existing = repo.first_by(name=name)
    if existing is not None and existing.id != exclude_id:
        raise BadRequestError("A category with this name already exists")


@router.mutation("create", input=CategoryCreate, private=True)
def create_category(ctx: Context, data: CategoryCreate) -> CategoryRead:
    repo = Repository(ctx.session, Category)
    _check_name(repo, data.name)
    if data.parent_id is not None:
        repo.get_or_404(data.parent_id, "Parent category")

    category = repo.create(Category(**data.model_dump(), created_at=ctx.now()))
    return CategoryRead.model_validate(category)


@router.mutation("update", input=CategoryUpdate, private=True)
def update_category(ctx: Context, data: CategoryUpdate) -> CategoryRead:
    """Rename, describe, reorder or re-parent a category.

    Raises:
        NotFoundError: Unknown category or parent
        BadRequestError: Name taken, or the category would become its own parent
    """
    repo = Repository(ctx.session, Category)
    category = repo.get_or_404(data.id, "Category")
    changes = data.model_dump(exclude_unset=True, exclude={"id"})

    if changes.get("name") is not None:
        _check_name(repo, changes["name"], exclude_id=category.id)
    if changes.get("parent_id") is not None:
        if changes["parent_id"] == category.id:
            raise BadRequestError("A category cannot be its own parent")
        repo.get_or_404(changes["parent_id"], "Parent category")

    changes = {k: v for k, v in changes.items() if v is not None or k in ("description", "parent_id")}
    return CategoryRead.model_validate(repo.update(category, changes))


@router.mutation("delete", input=IdInput, private=True)
def delete_category(ctx: Context, data: IdInput) -> CategoryRead:
    """Delete a category; its children become roots and product links are dropped."""
    session = ctx.session
    category = Repository(session, Category).get_or_404(data.id, "Category")
    deleted = CategoryRead.model_validate(category)

    session.execute(delete(CategoriesOnProducts).where(CategoriesOnProducts.category_id == category.id))
    session.execute(update(Category).where(Category.parent_id == category.id).values(parent_id=None))
    session.delete(category)
    session.commit()
    return deleted


@router.query("getAll")
def get_all(ctx: Context) -> list[CategoryWithCount]:
    rows = ctx.session.exec(
        select(Category, func.count(CategoriesOnProducts.product_id))
        .outerjoin(CategoriesOnProducts, CategoriesOnProducts.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.name)
    ).all()
    return [
        CategoryWithCount.model_validate({**category.model_dump(), "product_count": count})
        for category, count in rows
    ]


@router.query("getAllCategories")
def get_all_categories(ctx: Context) -> list[CategoryRead]:
    """Flat category tree ordered for display; clients nest by ``parentId``."""
    categories = ctx.session.exec(
        select(Category).order_by(Category.order, Category.name)
    ).all()
    return [CategoryRead.model_validate(c) for c in categories]
