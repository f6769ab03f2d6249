"""
Invitations Router
Invite people to a family by email and accept or decline with the token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import get_settings
from famconomy.api.dependencies import ensure_family_member, get_current_user, get_optional_user
from famconomy.api.realtime import RealtimeGateway, get_realtime
from famconomy.api.schemas import (
    InvitationCreate,
    InvitationResponse,
    InvitationTokenRequest,
    InvitationDetailsResponse,
    InvitationAcceptResponse,
    MessageResponse,
)
from famconomy.api.services.email_service import send_invitation_email
from famconomy.api.services.invitation_service import (
    SESSION_KEY,
    accept_invitation,
    find_invitation,
    find_valid_invitation,
    upsert_invitation,
)
from famconomy.api.services.notification_service import create_notification
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    Family,
    FamilyRole,
    Invitation,
    NotificationType,
    User,
    utcnow,
)

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_TOKEN = "Invalid or expired invitation token."


async def invitation_details(session: AsyncSession, token: Optional[str]) -> InvitationDetailsResponse:
    """Public view of an invitation; 400 when unknown or expired."""
    invitation = await find_valid_invitation(session, token)
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_TOKEN)

    return InvitationDetailsResponse(
        email=invitation.email,
        family_id=invitation.family_id,
        family_name=invitation.family.name,
        inviter_name=invitation.invited_by.full_name if invitation.invited_by else None,
        expires_at=invitation.expires_at,
    )


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite to family",
    description="Create or reissue an invitation and email the join link (requires guardian role)",
)
async def create_invitation(
    payload: InvitationCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    realtime: Optional[RealtimeGateway] = Depends(get_realtime),
) -> Invitation:
    await ensure_family_member(session, current_user, payload.family_id, FamilyRole.GUARDIAN)

    family = await session.get(Family, payload.family_id)
    if family is None or family.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")
    family_name = family.name

    invitation = await upsert_invitation(
        session,
        family_id=payload.family_id,
        email=payload.email,
        role=payload.role,
        invited_by_user_id=current_user.id,
        settings=settings,
    )

    await send_invitation_email(
        to_email=invitation.email,
        family_name=family_name,
        inviter_name=current_user.full_name,
        token=invitation.token,
        settings=settings,
    )

    result = await session.execute(select(User).where(User.email == invitation.email))
    invitee = result.scalar_one_or_none()
    if invitee is not None:
        await create_notification(
            session,
            realtime,
            invitee.id,
            f"You have been invited to join the {family_name} family.",
            NotificationType.INVITATION,
            link=f"/family?token={invitation.token}",
        )

    return invitation


@router.get(
    "/details",
    response_model=InvitationDetailsResponse,
    summary="Invitation details",
    description="Public lookup used by the join page",
)
async def get_invitation_details(
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> InvitationDetailsResponse:
    return await invitation_details(session, token)


@router.get(
    "/pending",
    response_model=list[InvitationResponse],
    summary="Pending invitations",
    description="Unexpired invitations addressed to the current user's email",
)
async def list_pending_invitations(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Invitation]:
    result = await session.execute(
        select(Invitation)
        .where(
            Invitation.email == current_user.email,
            Invitation.expires_at >= utcnow(),
        )
        .order_by(Invitation.created_at.desc())
    )
    return list(result.scalars().all())


@router.post(
    "/accept",
    response_model=InvitationAcceptResponse,
    summary="Accept invitation",
    description=(
        "Signed-in users join immediately. Otherwise the invitation is parked "
        "in the session and completed on registration."
    ),
)
async def accept(
    payload: InvitationTokenRequest,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> InvitationAcceptResponse:
    invitation = await find_valid_invitation(session, payload.token)
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_TOKEN)

    family_id = invitation.family_id
    email = invitation.email

    if current_user is None:
        request.session[SESSION_KEY] = {
            "familyId": family_id,
            "email": email,
            "role": invitation.role.value,
        }
        return InvitationAcceptResponse(
            message="Invitation accepted. Please sign up to join the family.",
            family_id=family_id,
            email=email,
            requires_signup=True,
        )

    await accept_invitation(session, invitation, current_user)
    return InvitationAcceptResponse(
        message="Invitation accepted.",
        family_id=family_id,
        email=email,
    )


@router.post(
    "/decline",
    response_model=MessageResponse,
    summary="Decline invitation",
)
async def decline(
    payload: InvitationTokenRequest,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    invitation = await find_invitation(session, payload.token)
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found.")

    await session.delete(invitation)
    await session.commit()

    logger.info(f"Invitation {invitation.id} declined")
    return MessageResponse(message="Invitation declined.")
