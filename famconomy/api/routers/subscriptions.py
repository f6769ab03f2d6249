"""
Push Subscriptions Router
Register and remove web-push endpoints for the current user.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import get_current_user
from famconomy.api.schemas import (
    PushSubscriptionCreate,
    PushSubscriptionDelete,
    PushSubscriptionResponse,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import PushSubscription, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save push subscription",
    description="Upsert by endpoint; a re-registered endpoint moves to the current user",
)
async def save_subscription(
    payload: PushSubscriptionCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> PushSubscription:
    result = await session.execute(
        select(PushSubscription).where(PushSubscription.endpoint == payload.endpoint)
    )
    subscription = result.scalar_one_or_none()
    if subscription is None:
        subscription = PushSubscription(endpoint=payload.endpoint)
        session.add(subscription)

    subscription.user_id = current_user.id
    subscription.p256dh = payload.keys.p256dh
    subscription.auth = payload.keys.auth

    await session.commit()
    await session.refresh(subscription)

    logger.info(f"Push subscription saved for user {current_user.id}")
    return subscription


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove push subscription",
)
async def delete_subscription(
    payload: PushSubscriptionDelete,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await session.execute(
        delete(PushSubscription).where(
            PushSubscription.endpoint == payload.endpoint,
            PushSubscription.user_id == current_user.id,
        )
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
