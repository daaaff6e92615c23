"""Profiles, follows and platform statistics."""

from sqlalchemy import func
from sqlmodel import Session, select

from launchhub import launch
from launchhub.errors import BadRequestError, NotFoundError
from launchhub.models import (
    FollowResult,
    Follows,
    Notification,
    NotificationType,
    PlatformStats,
    Product,
    ProfileCompleteness,
    ProfileUpdate,
    PublicProfile,
    TargetUserInput,
    User,
    UsernameInput,
    UserProfile,
)
from launchhub.repository import ProductRepository, Repository
from launchhub.rpc import Context, Router
from launchhub.utils import username_from_email, with_random_suffix

router = Router()

USERNAME_ATTEMPTS = 10


def unique_username(session: Session, email: str, exclude_id: str | None = None) -> str:
    """Pick a free username derived from ``email``.

    The bare e-mail local part is tried first, then random numeric suffixes.

    Raises:
        BadRequestError: If no free candidate was found
    """
    base = username_from_email(email) or "user"
    candidates = [base] + [with_random_suffix(base) for _ in range(USERNAME_ATTEMPTS)]
    for candidate in candidates:
        owner = session.exec(select(User.id).where(User.username == candidate)).first()
        if owner is None or owner == exclude_id:
            return candidate
    raise BadRequestError("Could not generate a unique username")


@router.query("getProfile", private=True)
def get_profile(ctx: Context) -> UserProfile:
    """Caller's editable profile; all fields null before the first sign-in sync."""
    user = ctx.session.get(User, ctx.require_user_id())
    if user is None:
        return UserProfile()
    return UserProfile.model_validate(user)


@router.query("getPublicProfile", input=UsernameInput)
def get_public_profile(ctx: Context, data: UsernameInput) -> PublicProfile:
    session = ctx.session
    user = Repository(session, User).first_by(username=data.username)
    if user is None:
        raise NotFoundError("User not found")

    products = session.exec(
        select(Product)
        .where(Product.maker_id == user.id, Product.is_launched == True)  # noqa: E712
        .order_by(Product.launch_date.desc(), Product.id)
    ).all()
    follows = Repository(session, Follows)
    return PublicProfile.model_validate(
        {
            **user.model_dump(),
            "products": ProductRepository(session).to_cards(products),
            "follower_count": follows.count(following_id=user.id),
            "following_count": follows.count(follower_id=user.id),
        }
    )


@router.mutation("updateProfile", input=ProfileUpdate, private=True)
def update_profile(ctx: Context, data: ProfileUpdate) -> UserProfile:
    """Save profile fields, assigning a username on first save."""
    session = ctx.session
    user = ctx.current_user()
    changes = data.model_dump()
    if not user.username:
        changes["username"] = unique_username(session, user.email, exclude_id=user.id)

    user = Repository(session, User).update(user, changes)
    return UserProfile.model_validate(user)


@router.query("isProfileComplete", private=True)
def is_profile_complete(ctx: Context) -> ProfileCompleteness:
    user = ctx.session.get(User, ctx.require_user_id())
    name = user.name if user else None
    return ProfileCompleteness(is_complete=bool(name), name=name)


@router.mutation("toggleFollow", input=TargetUserInput, private=True)
def toggle_follow(ctx: Context, data: TargetUserInput) -> FollowResult:
    """Follow or unfollow another user.

    Raises:
        BadRequestError: Following yourself
        NotFoundError: Unknown target user
    """
    session = ctx.session
    follower = ctx.current_user()
    if data.target_user_id == follower.id:
        raise BadRequestError("You cannot follow yourself")
    Repository(session, User).get_or_404(data.target_user_id, "User")

    existing = session.get(Follows, (follower.id, data.target_user_id))
    if existing:
        session.delete(existing)
        session.commit()
        return FollowResult(action="unfollowed")

    session.add(
        Follows(follower_id=follower.id, following_id=data.target_user_id, created_at=ctx.now())
    )
    session.add(
        Notification(
            type=NotificationType.FOLLOW,
            user_id=data.target_user_id,
            content=f"{follower.name or follower.username or 'Someone'} started following you",
            created_at=ctx.now(),
        )
    )
    session.commit()
    return FollowResult(action="followed")


@router.query("getPlatformStats")
def get_platform_stats(ctx: Context) -> PlatformStats:
    session = ctx.session
    total_products = session.exec(
        select(func.count(Product.id)).where(Product.is_launched == True)  # noqa: E712
    ).one()
    return PlatformStats(
        total_products=total_products,
        total_users=Repository(session, User).count(),
        total_launches_24h=launch.count_launched_in(session, launch.LaunchWindow.TODAY, ctx.now()),
    )
