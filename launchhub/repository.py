"""Repository pattern for type-safe database operations.

``Repository[T]`` gives every SQLModel table the same CRUD surface, and
``ProductRepository`` adds the vote/comment aggregates and card assembly
that product listings and leaderboards share.

Example:
    >>> from launchhub.repository import ProductRepository, Repository
    >>> from launchhub.models import Category
    >>>
    >>> categories = Repository[Category](session, Category)
    >>> design = categories.get_or_404("cat-1")
    >>>
    >>> products = ProductRepository(session)
    >>> cards = products.to_cards(products.find_by(maker_id="user-1"))
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from launchhub.errors import NotFoundError
from launchhub.models import (
    CategoriesOnProducts,
    Category,
    CategoryRead,
    Comment,
    Product,
    ProductCard,
    User,
    UserSummary,
    Vote,
)

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository for SQLModel tables.

    Args:
        session: SQLModel Session instance
        model: SQLModel table class (e.g., Product, Category)

    Example:
        >>> repo = Repository[Category](session, Category)
        >>> repo.create(Category(name="Design"))
        >>> repo.find_by(parent_id=None)
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def get(self, entity_id: str) -> T | None:
        """Get entity by primary key, or None if absent."""
        return self.session.get(self.model, entity_id)

    def get_or_404(self, entity_id: str, label: str | None = None) -> T:
        """Get entity by primary key.

        Raises:
            NotFoundError: If no row has this key
        """
        entity = self.get(entity_id)
        if entity is None:
            raise NotFoundError(f"{label or self.model.__name__} not found")
        return entity

    def list(self, limit: int = 100, offset: int = 0) -> Sequence[T]:
        stmt = select(self.model).limit(limit).offset(offset)
        return self.session.exec(stmt).all()

    def create(self, entity: T) -> T:
        """Persist a new entity and return it refreshed."""
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def update(self, entity: T, changes: dict[str, Any] | None = None) -> T:
        """Apply ``changes`` (if any) and persist the entity.

        Args:
            entity: Entity instance already loaded from this session
            changes: Attribute values to set before saving

        Returns:
            Updated entity with refreshed state from database
        """
        for key, value in (changes or {}).items():
            setattr(entity, key, value)
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete(self, entity_id: str) -> bool:
        """Delete entity by primary key.

        Returns:
            True if deleted, False if not found
        """
        entity = self.get(entity_id)
        if entity:
            self.session.delete(entity)
            self.session.commit()
            return True
        return False

    def find_by(self, **filters: Any) -> Sequence[T]:
        """Find entities matching simple equality filters.

        Example:
            >>> repo.find_by(maker_id="user-123")
        """
        stmt = select(self.model)
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no column {key!r}")
            stmt = stmt.where(getattr(self.model, key) == value)
        return self.session.exec(stmt).all()

    def first_by(self, **filters: Any) -> T | None:
        results = self.find_by(**filters)
        return results[0] if results else None

    def count(self, **filters: Any) -> int:
        """Count entities, optionally restricted by equality filters."""
        stmt = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self.model, key) == value)
        return self.session.exec(stmt).one()

    def exists(self, entity_id: str) -> bool:
        return self.get(entity_id) is not None


# =============================================================================
# Product Repository
# =============================================================================


def vote_counts():
    """Subquery of ``(product_id, votes)`` for products with at least one vote."""
    return (
        select(Vote.product_id, func.count(Vote.id).label("votes"))
        .group_by(Vote.product_id)
        .subquery("vote_counts")
    )


class ProductRepository(Repository[Product]):
    """Product access plus the aggregates listings need.

    Example:
        >>> products = ProductRepository(session)
        >>> products.slug_taken("my-app")
        False
        >>> cards = products.to_cards(products.find_by(maker_id=user_id))
    """

    def __init__(self, session: Session):
        super().__init__(session, Product)

    def get_by_slug(self, slug: str) -> Product | None:
        return self.first_by(slug=slug)

    def name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        stmt = select(Product.id).where(func.lower(Product.name) == name.strip().lower())
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def slug_taken(self, slug: str, exclude_id: str | None = None) -> bool:
        stmt = select(Product.id).where(Product.slug == slug)
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def vote_count(self, product_id: str) -> int:
        stmt = select(func.count(Vote.id)).where(Vote.product_id == product_id)
        return self.session.exec(stmt).one()

    def set_categories(self, product_id: str, category_ids: list[str]) -> None:
        """Replace the product's category links (caller commits).

        Raises:
            NotFoundError: If any category id is unknown
        """
        wanted = list(dict.fromkeys(category_ids))
        if wanted:
            found = self.session.exec(
                select(Category.id).where(Category.id.in_(wanted))
            ).all()
            missing = set(wanted) - set(found)
            if missing:
                raise NotFoundError(f"Category not found: {sorted(missing)[0]}")

        existing = self.session.exec(
            select(CategoriesOnProducts).where(CategoriesOnProducts.product_id == product_id)
        ).all()
        linked = set()
        for link in existing:
            if link.category_id in wanted:
                linked.add(link.category_id)
            else:
                self.session.delete(link)
        for category_id in wanted:
            if category_id in linked:
                continue
            self.session.add(
                CategoriesOnProducts(product_id=product_id, category_id=category_id)
            )

    def to_cards(self, products: Sequence[Product]) -> list[ProductCard]:
        """Assemble listing cards with maker, categories and counts.

        Loads related rows in one query per relation, keeping the input order.
        """
        if not products:
            return []

        ids = [p.id for p in products]
        maker_ids = {p.maker_id for p in products}

        makers = {
            user.id: UserSummary.model_validate(user)
            for user in self.session.exec(select(User).where(User.id.in_(maker_ids))).all()
        }

        categories: dict[str, list[CategoryRead]] = {pid: [] for pid in ids}
        rows = self.session.exec(
            select(CategoriesOnProducts.product_id, Category)
            .join(Category, Category.id == CategoriesOnProducts.category_id)
            .where(CategoriesOnProducts.product_id.in_(ids))
            .order_by(Category.order, Category.name)
        ).all()
        for product_id, category in rows:
            categories[product_id].append(CategoryRead.model_validate(category))

        votes = dict(
            self.session.exec(
                select(Vote.product_id, func.count(Vote.id))
                .where(Vote.product_id.in_(ids))
                .group_by(Vote.product_id)
            ).all()
        )
        comments = dict(
            self.session.exec(
                select(Comment.product_id, func.count(Comment.id))
                .where(Comment.product_id.in_(ids))
                .group_by(Comment.product_id)
            ).all()
        )

        return [
            ProductCard.model_validate(
                {
                    **product.model_dump(),
                    "maker": makers.get(product.maker_id),
                    "categories": categories[product.id],
                    "vote_count": votes.get(product.id, 0),
                    "comment_count": comments.get(product.id, 0),
                }
            )
            for product in products
        ]


__all__ = ["Repository", "ProductRepository", "vote_counts"]
