"""Data models for LaunchHub.

This module defines both SQLModel ORM tables (database persistence) and
Pydantic models (RPC inputs and outputs).

Models are organized into four sections:
1. Enums and column types
2. SQLModel tables
3. RPC input models
4. RPC output models

All RPC models use camelCase aliases on the wire and accept either
spelling on input.
"""

import re
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, HttpUrl, TypeAdapter, field_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from launchhub.utils import parse_datetime, utc_now

# =============================================================================
# Section 1: Enums and Column Types
# =============================================================================


class Pricing(StrEnum):
    """Pricing tier advertised by a product."""

    FREE = "FREE"
    PAID = "PAID"
    SUBSCRIPTION = "SUBSCRIPTION"


class NotificationType(StrEnum):
    COMMENT = "COMMENT"
    VOTE = "VOTE"
    FOLLOW = "FOLLOW"


class SearchType(StrEnum):
    PRODUCTS = "PRODUCTS"
    USERS = "USERS"
    COLLECTIONS = "COLLECTIONS"


class Timeframe(StrEnum):
    """Lookback period for trending products."""

    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"


class UTCDateTime(TypeDecorator):
    """Timestamp column stored as naive UTC, read back as aware UTC.

    Keeps comparisons consistent on backends without timezone support
    (SQLite) and on ``timestamp without time zone`` columns (Postgres).
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return parse_datetime(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def new_id() -> str:
    """Generate a primary key."""
    return uuid.uuid4().hex


# =============================================================================
# Section 2: SQLModel Tables
# =============================================================================


class User(SQLModel, table=True):
    """Platform user, keyed by the identity provider's user id.

    Attributes:
        id: Identity-provider user id
        email: Unique e-mail address
        username: Unique handle (derived from the e-mail)
        name: Display name
        avatar_url: Profile picture URL
    """

    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(unique=True, index=True)
    username: Optional[str] = Field(default=None, unique=True, index=True)
    name: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Product(SQLModel, table=True):
    """A product listing with a scheduled launch.

    Attributes:
        launch_date: Scheduled launch instant (UTC)
        is_launched: Maker published the launch (False = draft); never reverts
        launch_started: Set by the cron sweep once launch_date has passed
        maker_id: Owning user
    """

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, index=True)
    slug: str = Field(unique=True, index=True)
    tagline: str
    description: str
    website: str
    pricing: Pricing = Pricing.FREE
    thumbnail: Optional[str] = None
    launch_date: datetime = Field(sa_type=UTCDateTime, index=True)
    is_launched: bool = Field(default=True, index=True)
    launch_started: bool = Field(default=False, index=True)
    views: int = 0
    maker_id: str = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class ProductImage(SQLModel, table=True):
    """Gallery image hosted by the external file service."""

    id: str = Field(default_factory=new_id, primary_key=True)
    url: str
    product_id: str = Field(foreign_key="product.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Vote(SQLModel, table=True):
    """One upvote; at most one per (user, product)."""

    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_vote_user_product"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    product_id: str = Field(foreign_key="product.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Comment(SQLModel, table=True):
    """Product comment; replies point at a top-level comment via parent_id."""

    id: str = Field(default_factory=new_id, primary_key=True)
    content: str
    product_id: str = Field(foreign_key="product.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    parent_id: Optional[str] = Field(default=None, foreign_key="comment.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Category(SQLModel, table=True):
    """Category tree node (parent_id is None for roots)."""

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, index=True)
    description: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, foreign_key="category.id", index=True)
    order: int = 0
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class CategoriesOnProducts(SQLModel, table=True):
    """Link table for product <-> category."""

    product_id: str = Field(primary_key=True, foreign_key="product.id")
    category_id: str = Field(primary_key=True, foreign_key="category.id")


class Collection(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    description: Optional[str] = None
    is_public: bool = True
    user_id: str = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class CollectionsOnProducts(SQLModel, table=True):
    """Link table for collection <-> product."""

    collection_id: str = Field(primary_key=True, foreign_key="collection.id")
    product_id: str = Field(primary_key=True, foreign_key="product.id")
    added_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Notification(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    type: NotificationType
    content: str
    user_id: str = Field(foreign_key="user.id", index=True)
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Follows(SQLModel, table=True):
    """Link table for follower -> following."""

    follower_id: str = Field(primary_key=True, foreign_key="user.id")
    following_id: str = Field(primary_key=True, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


# =============================================================================
# Section 3: RPC Input Models
# =============================================================================

_http_url = TypeAdapter(HttpUrl)
_TWITTER_HANDLE = re.compile(r"^[A-Za-z0-9_]{1,15}$")
_GITHUB_HANDLE = re.compile(r"^[A-Za-z0-9-]+$")


def check_http_url(value: str) -> str:
    """Validate an http(s) URL, returning the original string untouched."""
    _http_url.validate_python(value)
    return value


class RpcModel(BaseModel):
    """Base for every model crossing the RPC boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


class GetProductsInput(RpcModel):
    page: int = PydanticField(1, ge=1)
    limit: int = PydanticField(12, ge=1, le=50)
    category: Optional[str] = None
    pricing: Optional[Pricing] = None
    sort_by: Literal["newest", "popular", "votes"] = "newest"


class CheckDuplicateInput(RpcModel):
    name: str
    slug: str
    exclude_id: Optional[str] = None


class ProductCreate(RpcModel):
    """Fields a maker submits when listing a product."""

    name: str = PydanticField(min_length=1, max_length=120)
    slug: str = PydanticField(min_length=1, max_length=120, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    tagline: str = PydanticField(min_length=1, max_length=200)
    description: str = PydanticField(min_length=1)
    website: str
    thumbnail: Optional[str] = None
    pricing: Pricing
    launch_date: datetime
    category_ids: list[str] = PydanticField(default_factory=list)
    images: list[str] = PydanticField(default_factory=list)
    is_launched: bool = True

    @field_validator("name", "tagline", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("website")
    @classmethod
    def validate_website(cls, v: str) -> str:
        return check_http_url(v)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str]) -> list[str]:
        return [check_http_url(url) for url in v]

    @field_validator("launch_date")
    @classmethod
    def normalize_launch_date(cls, v: datetime) -> datetime:
        return parse_datetime(v)


class ProductUpdate(RpcModel):
    """Partial update; omitted fields keep their stored values."""

    id: str
    name: Optional[str] = PydanticField(None, min_length=1, max_length=120)
    slug: Optional[str] = PydanticField(
        None, min_length=1, max_length=120, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
    )
    tagline: Optional[str] = PydanticField(None, min_length=1, max_length=200)
    description: Optional[str] = PydanticField(None, min_length=1)
    website: Optional[str] = None
    thumbnail: Optional[str] = None
    pricing: Optional[Pricing] = None
    launch_date: Optional[datetime] = None
    category_ids: Optional[list[str]] = None
    is_launched: Optional[bool] = None

    @field_validator("website")
    @classmethod
    def validate_website(cls, v: Optional[str]) -> Optional[str]:
        return check_http_url(v) if v is not None else None

    @field_validator("launch_date")
    @classmethod
    def normalize_launch_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return parse_datetime(v)


class SlugInput(RpcModel):
    slug: str


class IdInput(RpcModel):
    id: str


class ProductIdInput(RpcModel):
    product_id: str


class UploadImagesInput(RpcModel):
    product_id: str
    urls: list[str] = PydanticField(min_length=1)

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: list[str]) -> list[str]:
        return [check_http_url(url) for url in v]


class PastLaunchesInput(RpcModel):
    limit: int = PydanticField(9, ge=1, le=50)
    cursor: Optional[str] = None


class CommentCreate(RpcModel):
    product_id: str
    content: str = PydanticField(min_length=1, max_length=5000)
    parent_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class CommentEdit(RpcModel):
    comment_id: str
    content: str = PydanticField(min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class CommentIdInput(RpcModel):
    comment_id: str


class CommentPageInput(RpcModel):
    product_id: str
    limit: int = PydanticField(10, ge=1, le=50)
    cursor: int = PydanticField(0, ge=0)


class RepliesInput(RpcModel):
    comment_id: str
    limit: int = PydanticField(10, ge=1, le=50)
    cursor: int = PydanticField(0, ge=0)


class CategoryCreate(RpcModel):
    name: str = PydanticField(min_length=1, max_length=80)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    order: int = 0


class CategoryUpdate(RpcModel):
    id: str
    name: Optional[str] = PydanticField(None, min_length=1, max_length=80)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    order: Optional[int] = None


class CollectionCreate(RpcModel):
    name: str = PydanticField(min_length=1, max_length=120)
    description: Optional[str] = None
    is_public: bool = True


class CollectionAddProduct(RpcModel):
    collection_id: str
    product_id: str


class UserIdInput(RpcModel):
    user_id: str


class UsernameInput(RpcModel):
    username: str


class NotificationIdInput(RpcModel):
    notification_id: str


class TargetUserInput(RpcModel):
    target_user_id: str


class ProfileUpdate(RpcModel):
    """Editable profile fields; empty strings are stored as null."""

    name: str = PydanticField(min_length=1)
    bio: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def require_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("bio", "avatar_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v is not None else None

    @field_validator("website")
    @classmethod
    def validate_website(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return check_http_url(v)

    @field_validator("twitter")
    @classmethod
    def validate_twitter(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not _TWITTER_HANDLE.match(v):
            raise ValueError("Invalid Twitter handle")
        return v

    @field_validator("github")
    @classmethod
    def validate_github(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not _GITHUB_HANDLE.match(v):
            raise ValueError("Invalid GitHub username")
        return v


class SearchInput(RpcModel):
    query: str
    type: SearchType = SearchType.PRODUCTS
    limit: int = PydanticField(10, ge=1, le=50)
    cursor: int = PydanticField(0, ge=0)


class TrendingInput(RpcModel):
    timeframe: Timeframe = Timeframe.WEEK
    limit: int = PydanticField(10, ge=1, le=50)


class IdentityClaims(RpcModel):
    """User claims forwarded by the identity provider."""

    id: str
    email: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        if not self.given_name:
            return None
        return f"{self.given_name} {self.family_name or ''}".strip()


# =============================================================================
# Section 4: RPC Output Models
# =============================================================================

ItemT = TypeVar("ItemT")


class UserSummary(RpcModel):
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class CategoryRead(RpcModel):
    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    order: int = 0


class CategoryWithCount(CategoryRead):
    product_count: int = 0


class ProductCard(RpcModel):
    """Product as shown in lists and leaderboards."""

    id: str
    slug: str
    name: str
    tagline: str
    description: str
    website: str
    pricing: Pricing
    thumbnail: Optional[str] = None
    launch_date: datetime
    is_launched: bool
    launch_started: bool
    views: int = 0
    maker_id: str
    created_at: datetime
    maker: Optional[UserSummary] = None
    categories: list[CategoryRead] = PydanticField(default_factory=list)
    vote_count: int = 0
    comment_count: int = 0


class CommentRead(RpcModel):
    id: str
    content: str
    product_id: str
    user_id: str
    parent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    replies: list["CommentRead"] = PydanticField(default_factory=list)
    reply_count: int = 0


class ProductDetail(ProductCard):
    """Full product page payload."""

    images: list[str] = PydanticField(default_factory=list)
    comments: list[CommentRead] = PydanticField(default_factory=list)
    voter_ids: list[str] = PydanticField(default_factory=list)


class VoteResult(RpcModel):
    action: Literal["added", "removed"]
    vote_count: int


class Page(RpcModel, Generic[ItemT]):
    """One page of a cursor-paginated listing."""

    items: list[ItemT]
    next_cursor: Optional[Any] = None


class ProductsPage(RpcModel):
    products: list[ProductCard]
    total_pages: int


class DuplicateCheck(RpcModel):
    name_taken: bool
    slug_taken: bool
    is_duplicate: bool


class DashboardSummary(RpcModel):
    products: list[ProductCard]
    total_products: int
    total_votes: int
    total_comments: int


class NotificationRead(RpcModel):
    id: str
    type: NotificationType
    content: str
    is_read: bool
    created_at: datetime


class CollectionRead(RpcModel):
    id: str
    name: str
    description: Optional[str] = None
    is_public: bool
    user_id: str
    created_at: datetime
    user: Optional[UserSummary] = None
    products: list[ProductCard] = PydanticField(default_factory=list)
    product_count: int = 0


class UserProfile(RpcModel):
    """Private profile form payload."""

    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    avatar_url: Optional[str] = None


class PublicProfile(RpcModel):
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    twitter: Optional[str] = None
    products: list[ProductCard] = PydanticField(default_factory=list)
    follower_count: int = 0
    following_count: int = 0


class ProfileCompleteness(RpcModel):
    is_complete: bool
    name: Optional[str] = None


class FollowResult(RpcModel):
    action: Literal["followed", "unfollowed"]


class PlatformStats(RpcModel):
    total_products: int
    total_users: int
    # Launches on the current calendar day in settings.launch_timezone, not a rolling 24 hours
    total_launches_24h: int


class CountResult(RpcModel):
    count: int
