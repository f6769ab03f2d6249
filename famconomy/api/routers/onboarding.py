"""
Onboarding Router
First-run setup: family, rooms and starter gigs in one transaction.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import get_current_user
from famconomy.api.schemas import (
    FamilyResponse,
    OnboardingCompleteRequest,
    OnboardingCompleteResponse,
    OnboardingStatusResponse,
    RoomResponse,
)
from famconomy.api.services.gig_service import create_gigs_for_rooms
from famconomy.shared.database import get_session
from famconomy.shared.models import Family, FamilyMember, FamilyRole, Room, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=OnboardingStatusResponse, summary="Onboarding status")
async def onboarding_status(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> OnboardingStatusResponse:
    result = await session.execute(
        select(FamilyMember.family_id)
        .where(FamilyMember.user_id == current_user.id)
        .order_by(FamilyMember.joined_at, FamilyMember.id)
        .limit(1)
    )
    return OnboardingStatusResponse(
        completed=current_user.onboarding_completed,
        family_id=result.scalar_one_or_none(),
    )


@router.post(
    "/complete",
    response_model=OnboardingCompleteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Complete onboarding",
    description=(
        "Create the family with the caller as parent, its rooms, and gigs for "
        "every template matching a room's tags; then mark the user onboarded"
    ),
)
async def complete_onboarding(
    payload: OnboardingCompleteRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> OnboardingCompleteResponse:
    if current_user.onboarding_completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Onboarding already completed.")

    try:
        family = Family(
            name=payload.family_name.strip(),
            mantra=payload.mantra,
            values=payload.values,
            created_by_user_id=current_user.id,
        )
        session.add(family)
        await session.flush()

        session.add(FamilyMember(family_id=family.id, user_id=current_user.id, role=FamilyRole.PARENT))

        rooms = [Room(family_id=family.id, name=r.name.strip(), tags=r.tags) for r in payload.rooms]
        session.add_all(rooms)
        await session.flush()

        gigs = await create_gigs_for_rooms(session, family.id, rooms)
        current_user.onboarding_completed = True
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Onboarding completed for user {current_user.id}",
        extra={"family_id": family.id, "rooms": len(rooms), "gigs": len(gigs)},
    )
    return OnboardingCompleteResponse(
        family=FamilyResponse.model_validate(family),
        rooms=[RoomResponse.model_validate(r) for r in rooms],
        gigs_created=len(gigs),
    )
