"""Notification service: persist, push over the realtime channel, and web-push."""

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.shared.models import FamilyMember, Notification, NotificationType, PushSubscription

if TYPE_CHECKING:
    from famconomy.api.realtime import RealtimeGateway

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> dict:
    """JSON payload sent with the ``newNotification`` event."""
    return {
        "id": notification.id,
        "userId": str(notification.user_id),
        "message": notification.message,
        "type": notification.type.value,
        "link": notification.link,
        "isRead": notification.is_read,
        "createdAt": notification.created_at.isoformat(),
    }


async def create_notification(
    session: AsyncSession,
    realtime: Optional["RealtimeGateway"],
    user_id: UUID,
    message: str,
    notification_type: NotificationType,
    link: Optional[str] = None,
) -> Notification:
    """
    Store a notification, then push it to the user's realtime room.

    The row is committed before anything is emitted.

    Args:
        session: Database session
        realtime: Gateway for socket emits (None disables the emit)
        user_id: Recipient
        message: Text shown to the user
        notification_type: Category
        link: In-app route the notification opens

    Returns:
        Notification: The stored notification
    """
    notification = Notification(
        user_id=user_id,
        message=message,
        type=notification_type,
        link=link,
        is_read=False,
    )
    session.add(notification)
    await session.commit()
    await session.refresh(notification)

    if realtime is not None:
        await realtime.notify_user(user_id, "newNotification", serialize_notification(notification))

    await send_web_push(session, notification)

    return notification


async def notify_users(
    session: AsyncSession,
    realtime: Optional["RealtimeGateway"],
    user_ids: Iterable[UUID],
    message: str,
    notification_type: NotificationType,
    link: Optional[str] = None,
) -> List[Notification]:
    """
    Fan a notification out to several users, one at a time.

    Earlier notifications stay committed if a later one fails.
    """
    created = []
    for user_id in user_ids:
        created.append(
            await create_notification(session, realtime, user_id, message, notification_type, link)
        )
    return created


async def send_web_push(session: AsyncSession, notification: Notification) -> int:
    """
    Deliver a notification to the user's registered web-push endpoints.

    Returns:
        int: Number of endpoints the notification was queued for
    """
    result = await session.execute(
        select(PushSubscription).where(PushSubscription.user_id == notification.user_id)
    )
    subscriptions = result.scalars().all()

    for subscription in subscriptions:
        logger.info(
            "Web push queued",
            extra={"notification_id": notification.id, "endpoint": subscription.endpoint},
        )

    return len(subscriptions)


async def family_member_ids(
    session: AsyncSession,
    family_id: int,
    exclude_user_id: Optional[UUID] = None,
) -> List[UUID]:
    """Members of a family, minus one user (usually the actor)."""
    query = select(FamilyMember.user_id).where(FamilyMember.family_id == family_id)
    if exclude_user_id is not None:
        query = query.where(FamilyMember.user_id != exclude_user_id)
    result = await session.execute(query.order_by(FamilyMember.joined_at, FamilyMember.id))
    return list(result.scalars().all())
