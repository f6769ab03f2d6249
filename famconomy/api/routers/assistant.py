"""
Assistant Router
Conversation log and consolidated memory for the family assistant (LinZ).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import Settings, get_settings
from famconomy.api.dependencies import ensure_family_member, get_current_user, require_family_membership
from famconomy.api.schemas import (
    AssistantMessageCreate,
    AssistantMessageResponse,
    ConsolidationResponse,
    ConversationSummaryResponse,
)
from famconomy.api.services.memory_service import consolidate_memories
from famconomy.shared.database import get_session
from famconomy.shared.models import AssistantMessage, ConversationSummary, FamilyMember, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/messages",
    response_model=AssistantMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store conversation turn",
)
async def store_message(
    payload: AssistantMessageCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AssistantMessage:
    await ensure_family_member(session, current_user, payload.family_id)

    message = AssistantMessage(**payload.model_dump(), user_id=current_user.id)
    session.add(message)
    await session.commit()
    await session.refresh(message)
    return message


@router.get(
    "/messages",
    response_model=list[AssistantMessageResponse],
    summary="List my conversation",
)
async def list_messages(
    limit: int = Query(100, ge=1, le=500),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[AssistantMessage]:
    result = await session.execute(
        select(AssistantMessage)
        .where(
            AssistantMessage.family_id == membership.family_id,
            AssistantMessage.user_id == membership.user_id,
        )
        .order_by(AssistantMessage.created_at.desc(), AssistantMessage.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


@router.get(
    "/summaries",
    response_model=list[ConversationSummaryResponse],
    summary="List memory summaries",
)
async def list_summaries(
    family_id: Optional[int] = Query(None, alias="familyId"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[ConversationSummary]:
    query = select(ConversationSummary).where(ConversationSummary.user_id == current_user.id)
    if family_id is not None:
        query = query.where(ConversationSummary.family_id == family_id)

    result = await session.execute(
        query.order_by(ConversationSummary.window_end.desc(), ConversationSummary.id.desc())
    )
    return list(result.scalars().all())


@router.post(
    "/consolidate",
    response_model=ConsolidationResponse,
    summary="Consolidate my recent conversation",
)
async def consolidate(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ConsolidationResponse:
    created = await consolidate_memories(
        session,
        window_hours=settings.CONSOLIDATION_WINDOW_HOURS,
        user_id=current_user.id,
    )
    return ConsolidationResponse(summaries_created=created)
