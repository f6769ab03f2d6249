"""
Notifications Router
In-app notifications for the current user.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import get_current_user, parse_id, verify_notification_access
from famconomy.api.schemas import NotificationResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import Notification, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_own_notification(session: AsyncSession, user: User, notification_id: str) -> Notification:
    notification = await verify_notification_access(
        session, user.id, parse_id(notification_id, "notificationId")
    )
    if notification is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
    return notification


@router.get(
    "",
    response_model=list[NotificationResponse],
    summary="Unread notifications",
    description="Unread notifications of the current user, newest first",
)
async def list_notifications(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return list(result.scalars().all())


@router.put(
    "/read-all",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark all as read",
)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await session.execute(
        update(Notification)
        .where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark as read",
)
async def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Notification:
    notification = await get_own_notification(session, current_user, notification_id)
    notification.is_read = True
    await session.commit()
    await session.refresh(notification)
    return notification


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
)
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    notification = await get_own_notification(session, current_user, notification_id)
    await session.delete(notification)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
