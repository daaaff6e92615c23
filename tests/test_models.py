"""Unit tests for data models (Pydantic and SQLModel)."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from launchhub.models import (
    CommentCreate,
    IdentityClaims,
    Pricing,
    Product,
    ProductCreate,
    ProductsPage,
    Vote,
    VoteResult,
)


def product_input(**overrides):
    payload = {
        "name": "Rocket Notes",
        "slug": "rocket-notes",
        "tagline": "Notes at orbital velocity",
        "description": "A note taking app.",
        "website": "https://example.com",
        "pricing": "FREE",
        "launchDate": "2024-05-16T09:00:00Z",
    }
    payload.update(overrides)
    return payload


class TestUTCDateTime:
    """Tests for the UTC timestamp column type."""

    def test_round_trip_is_aware_utc(self, session, make_product):
        """Aware timestamps come back aware, in UTC."""
        eastern = timezone(timedelta(hours=-5))
        product = make_product(launch_date=datetime(2024, 5, 15, 4, 0, tzinfo=eastern))

        session.expire(product)

        assert product.launch_date == datetime(2024, 5, 15, 9, 0, tzinfo=UTC)
        assert product.launch_date.tzinfo == UTC

    def test_naive_values_are_utc(self, session, make_product):
        """Naive timestamps are stored as if they were UTC."""
        product = make_product(launch_date=datetime(2024, 5, 15, 9, 0))

        session.expire(product)

        assert product.launch_date == datetime(2024, 5, 15, 9, 0, tzinfo=UTC)


class TestProductCreate:
    """Tests for product input validation."""

    def test_camel_case_input(self):
        """Wire names are camelCase; attributes are snake_case."""
        data = ProductCreate.model_validate(product_input(categoryIds=["c1"]))

        assert data.category_ids == ["c1"]
        assert data.launch_date == datetime(2024, 5, 16, 9, 0, tzinfo=UTC)
        assert data.pricing is Pricing.FREE
        assert data.is_launched is True

    def test_text_is_stripped(self):
        data = ProductCreate.model_validate(product_input(name="  Rocket Notes  "))
        assert data.name == "Rocket Notes"

    @pytest.mark.parametrize("slug", ["Upper", "double--dash", "-leading", "spa ce"])
    def test_slug_pattern(self, slug):
        with pytest.raises(ValidationError):
            ProductCreate.model_validate(product_input(slug=slug))

    def test_image_urls_validated(self):
        with pytest.raises(ValidationError):
            ProductCreate.model_validate(product_input(images=["not-a-url"]))

    def test_offset_launch_date_normalized(self):
        data = ProductCreate.model_validate(product_input(launchDate="2024-05-16T11:00:00+02:00"))
        assert data.launch_date == datetime(2024, 5, 16, 9, 0, tzinfo=UTC)


class TestWireModels:
    def test_outputs_dump_camel_case(self):
        dumped = VoteResult(action="added", vote_count=3).model_dump(by_alias=True)
        assert dumped == {"action": "added", "voteCount": 3}

    def test_populate_by_name(self):
        page = ProductsPage(products=[], total_pages=0)
        assert page.model_dump(by_alias=True) == {"products": [], "totalPages": 0}

    def test_comment_content_required(self):
        with pytest.raises(ValidationError, match="Comment cannot be empty"):
            CommentCreate.model_validate({"productId": "p1", "content": "  \n "})

    @pytest.mark.parametrize(
        ("given", "family", "expected"),
        [
            ("Ada", "Lovelace", "Ada Lovelace"),
            ("Ada", None, "Ada"),
            (None, "Lovelace", None),
        ],
    )
    def test_identity_full_name(self, given, family, expected):
        claims = IdentityClaims(id="kp_1", email="ada@example.com", given_name=given, family_name=family)
        assert claims.full_name == expected


class TestConstraints:
    """Tests for table-level constraints."""

    def test_one_vote_per_user_and_product(self, session, make_product, maker):
        """The database rejects a second vote for the same pair."""
        product = make_product()
        session.add(Vote(user_id=maker.id, product_id=product.id))
        session.commit()

        session.add(Vote(user_id=maker.id, product_id=product.id))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_foreign_keys_enforced(self, session):
        """Products must reference an existing maker."""
        session.add(
            Product(
                name="Orphan",
                slug="orphan",
                tagline="No maker",
                description="Nobody made this",
                website="https://example.com",
                launch_date=datetime(2024, 5, 15, tzinfo=UTC),
                maker_id="ghost",
            )
        )
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_product_defaults(self, make_product):
        product = make_product()

        assert product.is_launched is True
        assert product.launch_started is False
        assert product.views == 0
        assert product.pricing == Pricing.FREE
