"""
Gig service: daily claims, completion rewards, and gigs generated from
room tags.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.services.wallet_service import InsufficientBalanceError, transfer_to_user
from famconomy.shared.models import (
    FamilyGig,
    GigCadence,
    GigClaim,
    GigClaimStatus,
    GigTemplate,
    Room,
    WalletLedgerType,
    utcnow,
)

logger = logging.getLogger(__name__)

GIG_LOAD_OPTIONS = (
    selectinload(FamilyGig.gig_template),
    selectinload(FamilyGig.room),
    selectinload(FamilyGig.claims),
)


def period_key(day: Optional[date] = None) -> str:
    """Claim period for a day, e.g. ``2024-3-7`` (no zero padding)."""
    day = day or utcnow().date()
    return f"{day.year}-{day.month}-{day.day}"


def _tags(values: Optional[Iterable[str]]) -> set:
    return {str(v).strip().lower() for v in (values or []) if str(v).strip()}


def templates_for_room(room: Room, templates: Iterable[GigTemplate]) -> List[GigTemplate]:
    """Templates sharing at least one tag with the room."""
    room_tags = _tags(room.tags)
    if not room_tags:
        return []
    return [t for t in templates if _tags(t.applicable_tags) & room_tags]


async def load_gig(session: AsyncSession, gig_id: int) -> FamilyGig:
    result = await session.execute(
        select(FamilyGig)
        .where(FamilyGig.id == gig_id)
        .options(*GIG_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    gig = result.scalar_one_or_none()
    if gig is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gig not found.")
    return gig


async def create_gigs_for_rooms(
    session: AsyncSession,
    family_id: int,
    rooms: Iterable[Room],
) -> List[FamilyGig]:
    """
    Add a weekly gig for every template matching each room's tags.

    Flushes only; the caller commits.
    """
    templates = (await session.execute(select(GigTemplate).order_by(GigTemplate.id))).scalars().all()

    created = []
    for room in rooms:
        for template in templates_for_room(room, templates):
            gig = FamilyGig(
                family_id=family_id,
                gig_template_id=template.id,
                room_id=room.id,
                cadence_type=GigCadence.WEEKLY,
                visible=True,
            )
            session.add(gig)
            created.append(gig)

    await session.flush()
    logger.info(f"Created {len(created)} gigs from templates for family {family_id}")
    return created


async def claim_gig(session: AsyncSession, gig: FamilyGig, user_id: UUID) -> GigClaim:
    """
    Claim a gig for today.

    Raises:
        HTTPException: 409 when the user already claimed it today or the
            gig's daily limit is used up
    """
    key = period_key()

    result = await session.execute(
        select(GigClaim).where(
            GigClaim.family_gig_id == gig.id,
            GigClaim.user_id == user_id,
            GigClaim.period_key == key,
        )
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Gig already claimed for this period.",
        )

    if gig.max_per_day:
        result = await session.execute(
            select(func.count(GigClaim.id)).where(
                GigClaim.family_gig_id == gig.id,
                GigClaim.period_key == key,
            )
        )
        if result.scalar_one() >= gig.max_per_day:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Daily claim limit reached for this gig.",
            )

    claim = GigClaim(family_gig_id=gig.id, user_id=user_id, period_key=key)
    session.add(claim)
    await session.commit()

    logger.info(f"Gig {gig.id} claimed by user {user_id} for {key}")
    return claim


async def complete_gig(session: AsyncSession, gig: FamilyGig, user_id: UUID) -> GigClaim:
    """
    Complete today's claim and pay the gig's currency reward, in one
    transaction.

    Raises:
        HTTPException: 404 without an open claim for today, 409 when the
            family wallet cannot cover the reward
    """
    result = await session.execute(
        select(GigClaim).where(
            GigClaim.family_gig_id == gig.id,
            GigClaim.user_id == user_id,
            GigClaim.period_key == period_key(),
            GigClaim.status == GigClaimStatus.CLAIMED,
        )
    )
    claim = result.scalar_one_or_none()
    if claim is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Claim not found or not in claimed status.",
        )

    claim.status = GigClaimStatus.COMPLETED
    claim.completed_at = utcnow()

    try:
        reward_cents = gig.override_currency_cents or 0
        if reward_cents > 0 and claim.reward_ledger_id is None:
            entry = await transfer_to_user(
                session,
                family_id=gig.family_id,
                user_id=user_id,
                amount_cents=reward_cents,
                initiated_by_user_id=user_id,
                ledger_type=WalletLedgerType.GIG_REWARD,
                description=f"Gig reward: {gig.gig_template.name}",
                reference_type="gig_claim",
                reference_id=str(claim.id),
            )
            claim.reward_ledger_id = entry.id
        await session.commit()
    except InsufficientBalanceError as e:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"Gig {gig.id} completed by user {user_id}")
    return claim
