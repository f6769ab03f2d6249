"""
Messages Router
Family chat: history and posting, with notification fan-out and a realtime emit.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.dependencies import ensure_family_member, get_current_user, require_family_membership
from famconomy.api.realtime import RealtimeGateway, get_realtime
from famconomy.api.schemas import ChatMessageCreate, ChatMessageResponse
from famconomy.api.services.notification_service import family_member_ids, notify_users
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    FamilyMember,
    Message,
    MessageSource,
    NotificationType,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_SOURCE = "General"
PREVIEW_LENGTH = 50


def message_response(message: Message, source_name: str, sender_name: str) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        family_id=message.family_id,
        sender_id=message.sender_id,
        sender_name=sender_name,
        source=source_name,
        text=message.text,
        timestamp=message.timestamp,
    )


async def get_or_create_source(session: AsyncSession, name: str = DEFAULT_SOURCE) -> MessageSource:
    result = await session.execute(select(MessageSource).where(MessageSource.name == name))
    source = result.scalar_one_or_none()
    if source is None:
        source = MessageSource(name=name)
        session.add(source)
        await session.flush()
    return source


@router.get(
    "/{family_id}",
    response_model=list[ChatMessageResponse],
    summary="Family chat history",
    description="Messages of a family in ascending time order",
)
async def list_messages(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[ChatMessageResponse]:
    result = await session.execute(
        select(Message, MessageSource.name)
        .join(MessageSource, MessageSource.id == Message.source_id)
        .where(Message.family_id == family_id)
        .options(selectinload(Message.sender))
        .order_by(Message.timestamp.asc(), Message.id.asc())
    )
    return [
        message_response(message, source_name, message.sender.full_name if message.sender else "")
        for message, source_name in result.all()
    ]


@router.post(
    "",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    description="Post to the family chat; other members are notified",
)
async def send_message(
    payload: ChatMessageCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    realtime: Optional[RealtimeGateway] = Depends(get_realtime),
) -> ChatMessageResponse:
    text = (payload.text or "").strip()
    if payload.family_id is None or not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="familyId and text are required",
        )

    await ensure_family_member(session, current_user, payload.family_id)

    source = await get_or_create_source(session)
    message = Message(
        family_id=payload.family_id,
        sender_id=current_user.id,
        source_id=source.id,
        text=text,
    )
    session.add(message)
    await session.commit()
    await session.refresh(message)
    response = message_response(message, source.name, current_user.full_name)
    logger.info(f"Message {message.id} posted in family {message.family_id}")

    preview = text[:PREVIEW_LENGTH]
    await notify_users(
        session,
        realtime,
        await family_member_ids(session, payload.family_id, current_user.id),
        f"New message from {current_user.full_name}: {preview}...",
        NotificationType.MESSAGE,
        link="/messages",
    )

    if realtime is not None:
        await realtime.emit_to_family(
            payload.family_id,
            "message:new",
            response.model_dump(mode="json", by_alias=True),
        )

    return response
