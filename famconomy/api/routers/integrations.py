"""
Integrations Router
Status and removal of third-party connections (Google Calendar).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import get_current_user
from famconomy.api.schemas import IntegrationStatusResponse, MessageResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=IntegrationStatusResponse, summary="Integration status")
async def integration_status(current_user: User = Depends(get_current_user)) -> IntegrationStatusResponse:
    return IntegrationStatusResponse(
        google_calendar=bool(current_user.google_access_token or current_user.google_refresh_token)
    )


@router.delete(
    "/google-calendar",
    response_model=MessageResponse,
    summary="Disconnect Google Calendar",
    description="Forget the stored Google tokens",
)
async def disconnect_google_calendar(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    current_user.google_access_token = None
    current_user.google_refresh_token = None
    await session.commit()

    logger.info(f"Google Calendar disconnected for user {current_user.id}")
    return MessageResponse(message="Google Calendar disconnected.")
