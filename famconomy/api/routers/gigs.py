"""
Gigs Router
Repeatable family chores: catalogue templates, per-family gigs, daily
claims and completion rewards.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    parse_id,
    require_family_membership,
)
from famconomy.api.schemas import (
    FamilyGigCreate,
    FamilyGigUpdate,
    FamilyGigResponse,
    GigTemplateResponse,
    GigsFromTemplatesRequest,
)
from famconomy.api.services.gig_service import (
    GIG_LOAD_OPTIONS,
    claim_gig,
    complete_gig,
    create_gigs_for_rooms,
    load_gig,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyGig, FamilyMember, FamilyRole, GigTemplate, Room, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=list[FamilyGigResponse],
    summary="List family gigs",
    description="Gigs of the family given by the familyId query parameter",
)
async def list_gigs(
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[FamilyGig]:
    result = await session.execute(
        select(FamilyGig)
        .where(FamilyGig.family_id == membership.family_id)
        .options(*GIG_LOAD_OPTIONS)
        .order_by(FamilyGig.id)
    )
    gigs = result.scalars().all()
    # Hidden gigs are only listed for guardians
    if membership.role == FamilyRole.CHILD:
        gigs = [g for g in gigs if g.visible]
    return list(gigs)


@router.get("/templates", response_model=list[GigTemplateResponse], summary="List gig templates")
async def list_templates(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[GigTemplate]:
    result = await session.execute(select(GigTemplate).order_by(GigTemplate.name, GigTemplate.id))
    return list(result.scalars().all())


@router.post(
    "",
    response_model=FamilyGigResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add gig to family",
)
async def add_gig(
    payload: FamilyGigCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FamilyGig:
    await ensure_family_member(session, current_user, payload.family_id, FamilyRole.GUARDIAN)

    if await session.get(GigTemplate, payload.gig_template_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gig template not found.")
    if payload.room_id is not None:
        room = await session.get(Room, payload.room_id)
        if room is None or room.family_id != payload.family_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    gig = FamilyGig(**payload.model_dump())
    session.add(gig)
    await session.commit()

    logger.info(f"Gig added: {gig.id} to family {payload.family_id}")
    return await load_gig(session, gig.id)


@router.post(
    "/from-templates",
    response_model=list[FamilyGigResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create gigs for rooms",
    description="Add every template whose tags match a room's tags",
)
async def gigs_from_templates(
    payload: GigsFromTemplatesRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[FamilyGig]:
    await ensure_family_member(session, current_user, payload.family_id, FamilyRole.GUARDIAN)

    result = await session.execute(
        select(Room).where(Room.id.in_(payload.room_ids), Room.family_id == payload.family_id)
    )
    rooms = result.scalars().all()
    created = await create_gigs_for_rooms(session, payload.family_id, rooms)
    await session.commit()

    result = await session.execute(
        select(FamilyGig)
        .where(FamilyGig.id.in_([g.id for g in created]))
        .options(*GIG_LOAD_OPTIONS)
        .order_by(FamilyGig.id)
    )
    return list(result.scalars().all())


@router.put("/{gig_id}", response_model=FamilyGigResponse, summary="Update family gig")
async def update_gig(
    gig_id: str,
    payload: FamilyGigUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FamilyGig:
    gig = await load_gig(session, parse_id(gig_id, "gigId"))
    await ensure_family_member(session, current_user, gig.family_id, FamilyRole.GUARDIAN)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("cadence_type", "visible"):
            continue
        setattr(gig, field, value)

    await session.commit()
    return await load_gig(session, gig.id)


@router.delete("/{gig_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove family gig")
async def remove_gig(
    gig_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    gig = await load_gig(session, parse_id(gig_id, "gigId"))
    await ensure_family_member(session, current_user, gig.family_id, FamilyRole.GUARDIAN)

    await session.delete(gig)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{gig_id}/claim", response_model=FamilyGigResponse, summary="Claim gig for today")
async def claim(
    gig_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FamilyGig:
    gig = await load_gig(session, parse_id(gig_id, "gigId"))
    await ensure_family_member(session, current_user, gig.family_id)

    await claim_gig(session, gig, current_user.id)
    return await load_gig(session, gig.id)


@router.post(
    "/{gig_id}/complete",
    response_model=FamilyGigResponse,
    summary="Complete claimed gig",
    description="Completes today's claim and pays any currency reward from the family wallet",
)
async def complete(
    gig_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FamilyGig:
    gig_pk = parse_id(gig_id, "gigId")
    gig = await load_gig(session, gig_pk)
    await ensure_family_member(session, current_user, gig.family_id)

    await complete_gig(session, gig, current_user.id)
    return await load_gig(session, gig_pk)
