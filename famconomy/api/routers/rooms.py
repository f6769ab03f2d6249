"""
Rooms Router
Rooms of a family home; their tags drive gig suggestions.
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
from famconomy.api.schemas import RoomCreate, RoomUpdate, RoomResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyMember, FamilyRole, Room, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_room_for_user(
    session: AsyncSession,
    user: User,
    room_id: str,
    min_role: FamilyRole = FamilyRole.CHILD,
) -> Room:
    room = await session.get(Room, parse_id(room_id, "roomId"))
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    await ensure_family_member(session, user, room.family_id, min_role)
    return room


@router.get("/family/{family_id}", response_model=list[RoomResponse], summary="List rooms")
async def list_rooms(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[Room]:
    result = await session.execute(
        select(Room).where(Room.family_id == family_id).order_by(Room.name, Room.id)
    )
    return list(result.scalars().all())


@router.post(
    "/family/{family_id}",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create room",
)
async def create_room(
    family_id: int,
    payload: RoomCreate,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> Room:
    room = Room(family_id=family_id, name=payload.name.strip(), tags=payload.tags)
    session.add(room)
    await session.commit()
    await session.refresh(room)

    logger.info(f"Room created: {room.id} in family {family_id}")
    return room


@router.put("/{room_id}", response_model=RoomResponse, summary="Update room")
async def update_room(
    room_id: str,
    payload: RoomUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Room:
    room = await get_room_for_user(session, current_user, room_id, FamilyRole.GUARDIAN)
    if payload.name is not None:
        room.name = payload.name.strip()
    if payload.tags is not None:
        room.tags = payload.tags

    await session.commit()
    await session.refresh(room)
    return room


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete room")
async def delete_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    room = await get_room_for_user(session, current_user, room_id, FamilyRole.GUARDIAN)
    await session.delete(room)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
