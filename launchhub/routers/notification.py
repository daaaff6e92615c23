from sqlalchemy import update
from sqlmodel import select

from launchhub.errors import NotFoundError
from launchhub.models import CountResult, Notification, NotificationIdInput, NotificationRead
from launchhub.rpc import Context, Router

router = Router()


@router.query("getUnread", private=True)
def get_unread(ctx: Context) -> list[NotificationRead]:
    notifications = ctx.session.exec(
        select(Notification)
        .where(Notification.user_id == ctx.require_user_id(), Notification.is_read == False)  # noqa: E712
        .order_by(Notification.created_at.desc(), Notification.id)
    ).all()
    return [NotificationRead.model_validate(n) for n in notifications]


@router.mutation("markAsRead", input=NotificationIdInput, private=True)
def mark_as_read(ctx: Context, data: NotificationIdInput) -> NotificationRead:
    """Mark one of the caller's notifications read.

    Someone else's notification is reported as not found.
    """
    session = ctx.session
    notification = session.get(Notification, data.notification_id)
    if notification is None or notification.user_id != ctx.require_user_id():
        raise NotFoundError("Notification not found")

    notification.is_read = True
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return NotificationRead.model_validate(notification)


@router.mutation("markAllAsRead", private=True)
def mark_all_as_read(ctx: Context) -> CountResult:
    session = ctx.session
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == ctx.require_user_id(), Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return CountResult(count=result.rowcount or 0)
