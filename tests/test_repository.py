"""Tests for the generic repository and the product repository."""

import pytest
from sqlmodel import select

from launchhub.errors import NotFoundError
from launchhub.models import CategoriesOnProducts, Category, Comment
from launchhub.repository import ProductRepository, Repository


@pytest.fixture
def categories(session):
    return Repository[Category](session, Category)


@pytest.fixture
def products(session):
    return ProductRepository(session)


# =============================================================================
# Repository Core Tests
# =============================================================================


class TestRepository:
    def test_create_and_get(self, categories):
        created = categories.create(Category(name="Design"))

        assert created.id
        assert categories.get(created.id).name == "Design"
        assert categories.exists(created.id)

    def test_get_missing_returns_none(self, categories):
        assert categories.get("missing") is None
        assert not categories.exists("missing")

    def test_get_or_404_uses_label(self, categories):
        with pytest.raises(NotFoundError, match="Topic not found"):
            categories.get_or_404("missing", "Topic")

    def test_get_or_404_defaults_to_model_name(self, categories):
        with pytest.raises(NotFoundError, match="Category not found"):
            categories.get_or_404("missing")

    def test_update_applies_changes(self, categories):
        category = categories.create(Category(name="Design"))

        updated = categories.update(category, {"description": "Creative tools", "order": 3})

        assert updated.description == "Creative tools"
        assert updated.order == 3

    def test_delete(self, categories):
        category = categories.create(Category(name="Design"))

        assert categories.delete(category.id) is True
        assert categories.delete(category.id) is False
        assert categories.get(category.id) is None

    def test_list_with_limit_and_offset(self, categories):
        for name in ("A", "B", "C"):
            categories.create(Category(name=name))

        assert len(categories.list()) == 3
        assert len(categories.list(limit=2)) == 2
        assert len(categories.list(limit=2, offset=2)) == 1

    def test_find_by_and_first_by(self, categories):
        root = categories.create(Category(name="Root"))
        categories.create(Category(name="Child 1", parent_id=root.id))
        categories.create(Category(name="Child 2", parent_id=root.id))

        assert {c.name for c in categories.find_by(parent_id=root.id)} == {"Child 1", "Child 2"}
        assert categories.first_by(name="Root").id == root.id
        assert categories.first_by(name="Nope") is None

    def test_find_by_unknown_column(self, categories):
        with pytest.raises(AttributeError, match="no column"):
            categories.find_by(colour="red")

    def test_count(self, categories):
        root = categories.create(Category(name="Root"))
        categories.create(Category(name="Child", parent_id=root.id))

        assert categories.count() == 2
        assert categories.count(parent_id=root.id) == 1


# =============================================================================
# Product Repository Tests
# =============================================================================


class TestProductRepository:
    def test_get_by_slug(self, products, make_product):
        product = make_product("Rocket Notes")

        assert products.get_by_slug("rocket-notes").id == product.id
        assert products.get_by_slug("nope") is None

    def test_name_taken_is_case_insensitive(self, products, make_product):
        product = make_product("Rocket Notes")

        assert products.name_taken("rocket notes")
        assert products.name_taken("  ROCKET NOTES ")
        assert not products.name_taken("Rocket Notes", exclude_id=product.id)
        assert not products.name_taken("Other")

    def test_slug_taken(self, products, make_product):
        product = make_product("Rocket Notes")

        assert products.slug_taken("rocket-notes")
        assert not products.slug_taken("rocket-notes", exclude_id=product.id)

    def test_vote_count(self, products, make_product, add_votes):
        product = make_product()
        add_votes(product, 4)

        assert products.vote_count(product.id) == 4

    def test_set_categories_diffs_links(self, session, products, make_product, make_category):
        product = make_product()
        design, dev, ai = make_category("Design"), make_category("Dev"), make_category("AI")

        products.set_categories(product.id, [design.id, dev.id])
        session.commit()
        products.set_categories(product.id, [dev.id, ai.id, ai.id])
        session.commit()

        linked = session.exec(
            select(CategoriesOnProducts).where(CategoriesOnProducts.product_id == product.id)
        ).all()
        assert {link.category_id for link in linked} == {dev.id, ai.id}

    def test_set_categories_rejects_unknown(self, products, make_product):
        product = make_product()

        with pytest.raises(NotFoundError, match="Category not found: ghost"):
            products.set_categories(product.id, ["ghost"])

    def test_to_cards_keeps_order_and_counts(
        self, session, products, make_product, make_category, add_votes, maker
    ):
        first, second = make_product("First"), make_product("Second")
        tools = make_category("Tools")
        products.set_categories(second.id, [tools.id])
        session.add(Comment(content="Nice", product_id=second.id, user_id=maker.id))
        session.commit()
        add_votes(first, 2)

        cards = products.to_cards([second, first])

        assert [c.name for c in cards] == ["Second", "First"]
        assert [c.vote_count for c in cards] == [0, 2]
        assert [c.comment_count for c in cards] == [1, 0]
        assert [c.name for c in cards[0].categories] == ["Tools"]
        assert cards[1].maker.username == "maker"

    def test_to_cards_empty(self, products):
        assert products.to_cards([]) == []
