"""Threaded comments (one level of replies)."""

from collections.abc import Sequence

from sqlalchemy import delete
from sqlmodel import Session, select

from launchhub.errors import BadRequestError, ForbiddenError
from launchhub.models import (
    Comment,
    CommentCreate,
    CommentEdit,
    CommentIdInput,
    CommentPageInput,
    CommentRead,
    Notification,
    NotificationType,
    Page,
    Product,
    RepliesInput,
    User,
    UserSummary,
)
from launchhub.repository import Repository
from launchhub.rpc import Context, Router

router = Router()

LATEST_REPLIES = 3


def _authors(session: Session, comments: Sequence[Comment]) -> dict[str, UserSummary]:
    user_ids = {c.user_id for c in comments}
    if not user_ids:
        return {}
    users = session.exec(select(User).where(User.id.in_(user_ids))).all()
    return {u.id: UserSummary.model_validate(u) for u in users}


def _read(comment: Comment, authors: dict[str, UserSummary], **extra) -> CommentRead:
    return CommentRead.model_validate(
        {**comment.model_dump(), "user": authors.get(comment.user_id), **extra}
    )


def load_threads(
    session: Session, top_level: Sequence[Comment], replies_per_thread: int | None = LATEST_REPLIES
) -> list[CommentRead]:
    """Attach replies and reply counts to top-level comments.

    Args:
        session: Database session
        top_level: Parent comments, in display order
        replies_per_thread: Keep only the N newest replies per thread (None = all)
    """
    if not top_level:
        return []

    parent_ids = [c.id for c in top_level]
    replies = session.exec(
        select(Comment)
        .where(Comment.parent_id.in_(parent_ids))
        .order_by(Comment.created_at.desc(), Comment.id)
    ).all()
    authors = _authors(session, [*top_level, *replies])

    grouped: dict[str, list[Comment]] = {pid: [] for pid in parent_ids}
    for reply in replies:
        grouped[reply.parent_id].append(reply)

    threads = []
    for comment in top_level:
        thread = grouped[comment.id]
        shown = thread if replies_per_thread is None else thread[:replies_per_thread]
        threads.append(
            _read(
                comment,
                authors,
                replies=[_read(r, authors) for r in shown],
                reply_count=len(thread),
            )
        )
    return threads


def _owned_comment(ctx: Context, comment_id: str) -> Comment:
    comment = Repository(ctx.session, Comment).get_or_404(comment_id, "Comment")
    if comment.user_id != ctx.require_user_id():
        raise ForbiddenError("You can only change your own comments")
    return comment


@router.mutation("create", input=CommentCreate, private=True)
def create_comment(ctx: Context, data: CommentCreate) -> CommentRead:
    """Post a comment or a reply, notifying the product's maker.

    Raises:
        NotFoundError: Unknown product or parent comment
        BadRequestError: Parent is itself a reply or belongs to another product
    """
    session = ctx.session
    author = ctx.current_user()
    product = Repository(session, Product).get_or_404(data.product_id, "Product")

    if data.parent_id is not None:
        parent = Repository(session, Comment).get_or_404(data.parent_id, "Parent comment")
        if parent.product_id != product.id:
            raise BadRequestError("Parent comment belongs to another product")
        if parent.parent_id is not None:
            raise BadRequestError("Replies cannot be nested")

    now = ctx.now()
    comment = Comment(
        content=data.content,
        product_id=product.id,
        user_id=author.id,
        parent_id=data.parent_id,
        created_at=now,
        updated_at=now,
    )
    session.add(comment)
    if product.maker_id != author.id:
        session.add(
            Notification(
                type=NotificationType.COMMENT,
                user_id=product.maker_id,
                content=f"New comment on {product.name}",
                created_at=now,
            )
        )
    session.commit()
    session.refresh(comment)
    return _read(comment, {author.id: UserSummary.model_validate(author)})


@router.mutation("edit", input=CommentEdit, private=True)
def edit_comment(ctx: Context, data: CommentEdit) -> CommentRead:
    comment = _owned_comment(ctx, data.comment_id)
    comment = Repository(ctx.session, Comment).update(
        comment, {"content": data.content, "updated_at": ctx.now()}
    )
    return _read(comment, _authors(ctx.session, [comment]))


@router.mutation("delete", input=CommentIdInput, private=True)
def delete_comment(ctx: Context, data: CommentIdInput) -> CommentRead:
    """Delete the caller's comment together with its replies."""
    session = ctx.session
    comment = _owned_comment(ctx, data.comment_id)
    deleted = _read(comment, _authors(session, [comment]))

    session.execute(delete(Comment).where(Comment.parent_id == comment.id))
    session.delete(comment)
    session.commit()
    return deleted


@router.query("getProductComments", input=CommentPageInput)
def get_product_comments(ctx: Context, data: CommentPageInput) -> Page[CommentRead]:
    """Top-level comments, newest first, with their latest replies.

    ``cursor`` is an offset; ``nextCursor`` is null on the last page.
    """
    session = ctx.session
    comments = list(
        session.exec(
            select(Comment)
            .where(Comment.product_id == data.product_id, Comment.parent_id == None)  # noqa: E711
            .order_by(Comment.created_at.desc(), Comment.id)
            .offset(data.cursor)
            .limit(data.limit + 1)
        ).all()
    )
    next_cursor = None
    if len(comments) > data.limit:
        comments = comments[: data.limit]
        next_cursor = data.cursor + data.limit

    return Page[CommentRead](items=load_threads(session, comments), next_cursor=next_cursor)


@router.query("getReplies", input=RepliesInput)
def get_replies(ctx: Context, data: RepliesInput) -> Page[CommentRead]:
    session = ctx.session
    replies = list(
        session.exec(
            select(Comment)
            .where(Comment.parent_id == data.comment_id)
            .order_by(Comment.created_at.desc(), Comment.id)
            .offset(data.cursor)
            .limit(data.limit + 1)
        ).all()
    )
    next_cursor = None
    if len(replies) > data.limit:
        replies = replies[: data.limit]
        next_cursor = data.cursor + data.limit

    authors = _authors(session, replies)
    return Page[CommentRead](items=[_read(r, authors) for r in replies], next_cursor=next_cursor)
