"""Sign-in callback syncing identity-provider users into the database."""

from sqlalchemy import update
from sqlmodel import Session, select

from launchhub.errors import UnauthorizedError
from launchhub.logging import logger
from launchhub.models import (
    Collection,
    Comment,
    Follows,
    IdentityClaims,
    Notification,
    Product,
    User,
    UserProfile,
    Vote,
)
from launchhub.routers.user import unique_username
from launchhub.rpc import Context, Router

router = Router()

# (table, column) pairs that reference user.id
_USER_REFERENCES = [
    (Product, "maker_id"),
    (Comment, "user_id"),
    (Collection, "user_id"),
    (Notification, "user_id"),
    (Follows, "follower_id"),
    (Follows, "following_id"),
    (Vote, "user_id"),
]


def _rekey_user(session: Session, user: User, claims: IdentityClaims) -> User:
    """Move an existing account (matched by e-mail) onto the provider's id.

    A fresh row is inserted under the new id, every reference is repointed,
    then the old row is removed, so foreign keys hold throughout.
    """
    old_id = user.id
    email, username = user.email, user.username
    replacement = User(
        id=claims.id,
        email=email,
        username=username,
        name=user.name or claims.full_name,
        bio=user.bio,
        website=user.website,
        twitter=user.twitter,
        github=user.github,
        avatar_url=user.avatar_url or claims.picture,
        created_at=user.created_at,
    )

    user.email = f"{old_id}@rekeyed.invalid"
    user.username = None
    session.add(user)
    session.flush()

    session.add(replacement)
    session.flush()
    for model, column in _USER_REFERENCES:
        session.execute(
            update(model)
            .where(getattr(model, column) == old_id)
            .values({column: claims.id})
            .execution_options(synchronize_session=False)
        )
    session.delete(user)
    session.commit()
    session.expire_all()
    return session.get(User, claims.id)


@router.mutation("callback")
def callback(ctx: Context) -> UserProfile:
    """Create or update the caller's account from the forwarded identity.

    Raises:
        UnauthorizedError: No identity (id and e-mail) was forwarded
    """
    claims = ctx.identity
    if claims is None or not claims.id or not claims.email:
        raise UnauthorizedError()

    session = ctx.session
    user = session.get(User, claims.id) or session.exec(
        select(User).where(User.email == claims.email)
    ).first()

    if user is None:
        user = User(
            id=claims.id,
            email=claims.email,
            name=claims.full_name,
            username=unique_username(session, claims.email),
            avatar_url=claims.picture,
            created_at=ctx.now(),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info(f"Created account {user.id} ({user.username})")
    elif user.id != claims.id:
        logger.info(f"Re-keying account {user.id} to {claims.id}")
        user = _rekey_user(session, user, claims)

    return UserProfile.model_validate(user)
