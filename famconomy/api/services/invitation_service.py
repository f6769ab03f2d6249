"""
Invitation lifecycle: issue, look up, accept, decline.

Tokens are single use (the row is deleted on accept or decline) and time
boxed. Expiry is checked when a token is read; nothing sweeps old rows.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.config import Settings, get_settings
from famconomy.shared.models import FamilyMember, FamilyRole, Invitation, User, utcnow

logger = logging.getLogger(__name__)

SESSION_KEY = "invitation"


def generate_invitation_token() -> str:
    """32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


async def upsert_invitation(
    session: AsyncSession,
    family_id: int,
    email: str,
    role: FamilyRole,
    invited_by_user_id: UUID,
    settings: Optional[Settings] = None,
) -> Invitation:
    """
    Create an invitation, or reissue the existing one for this email.

    Reissuing replaces the token, expiry, family and role, so any earlier
    link stops working.
    """
    settings = settings or get_settings()
    email = email.strip().lower()

    result = await session.execute(select(Invitation).where(Invitation.email == email))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        invitation = Invitation(email=email)
        session.add(invitation)

    invitation.family_id = family_id
    invitation.role = role
    invitation.invited_by_user_id = invited_by_user_id
    invitation.token = generate_invitation_token()
    invitation.expires_at = utcnow() + timedelta(days=settings.INVITATION_EXPIRE_DAYS)
    invitation.created_at = utcnow()

    await session.commit()
    await session.refresh(invitation)

    logger.info(f"Invitation issued for family {family_id}", extra={"invitation_id": invitation.id})
    return invitation


async def find_invitation(session: AsyncSession, token: Optional[str]) -> Optional[Invitation]:
    """Invitation for a token, with family and inviter loaded (expired ones included)."""
    if not token:
        return None
    result = await session.execute(
        select(Invitation)
        .where(Invitation.token == token)
        .options(selectinload(Invitation.family), selectinload(Invitation.invited_by))
    )
    return result.scalar_one_or_none()


async def find_valid_invitation(session: AsyncSession, token: Optional[str]) -> Optional[Invitation]:
    """Invitation for a token, or None when unknown or expired."""
    invitation = await find_invitation(session, token)
    if invitation is None or invitation.is_expired():
        return None
    return invitation


async def join_family(
    session: AsyncSession,
    user_id: UUID,
    family_id: int,
    role: FamilyRole = FamilyRole.PARENT,
) -> FamilyMember:
    """Add a membership unless one already exists. Does not commit."""
    result = await session.execute(
        select(FamilyMember).where(
            FamilyMember.user_id == user_id,
            FamilyMember.family_id == family_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        membership = FamilyMember(user_id=user_id, family_id=family_id, role=role)
        session.add(membership)
    return membership


async def accept_invitation(session: AsyncSession, invitation: Invitation, user: User) -> FamilyMember:
    """Turn an invitation into a membership and consume it."""
    family_id = invitation.family_id
    membership = await join_family(session, user.id, family_id, invitation.role)
    await session.delete(invitation)
    await session.commit()

    logger.info(f"User {user.id} joined family {family_id} by invitation")
    return membership


async def complete_session_invitation(
    session: AsyncSession,
    pending: Optional[dict],
    user: User,
) -> Optional[int]:
    """
    Finish an invitation accepted before the user had an account.

    ``pending`` is the ``{familyId, email, role}`` dict stored in the HTTP
    session. Nothing happens unless its email matches the user's.

    Returns:
        Optional[int]: Family joined, if any
    """
    if not pending or str(pending.get("email", "")).lower() != user.email:
        return None

    family_id = int(pending["familyId"])
    role = FamilyRole(pending.get("role") or FamilyRole.PARENT.value)
    await join_family(session, user.id, family_id, role)

    result = await session.execute(select(Invitation).where(Invitation.email == user.email))
    invitation = result.scalar_one_or_none()
    if invitation is not None:
        await session.delete(invitation)

    await session.commit()
    logger.info(f"User {user.id} joined family {family_id} after signup")
    return family_id
