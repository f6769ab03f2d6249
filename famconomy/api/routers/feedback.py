"""
Feedback Router
In-app feedback from signed-in users.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import get_current_user
from famconomy.api.schemas import FeedbackCreate, FeedbackResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import Feedback, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send feedback",
)
async def create_feedback(
    payload: FeedbackCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Feedback:
    feedback = Feedback(**payload.model_dump(), user_id=current_user.id)
    session.add(feedback)
    await session.commit()
    await session.refresh(feedback)

    logger.info(f"Feedback received: {feedback.id}", extra={"category": feedback.category})
    return feedback


@router.get("", response_model=list[FeedbackResponse], summary="List my feedback")
async def list_feedback(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Feedback]:
    result = await session.execute(
        select(Feedback)
        .where(Feedback.user_id == current_user.id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
    )
    return list(result.scalars().all())
