"""
Journal Router
Family journal; private entries are visible to their author only.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    parse_id,
    require_family_membership,
)
from famconomy.api.schemas import JournalEntryCreate, JournalEntryUpdate, JournalEntryResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyMember, JournalEntry, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_entry_for_user(
    session: AsyncSession,
    user: User,
    entry_id: str,
    author_only: bool = False,
) -> JournalEntry:
    """Entry by id. Private entries, and any write, are limited to the author."""
    entry = await session.get(JournalEntry, parse_id(entry_id, "entryId"))
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Journal entry not found")
    await ensure_family_member(session, user, entry.family_id)

    if (entry.is_private or author_only) and entry.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
    return entry


@router.get(
    "/family/{family_id}",
    response_model=list[JournalEntryResponse],
    summary="List journal entries",
    description="Shared entries of the family plus the caller's private ones",
)
async def list_entries(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[JournalEntry]:
    result = await session.execute(
        select(JournalEntry)
        .where(
            JournalEntry.family_id == family_id,
            or_(
                JournalEntry.is_private.is_(False),
                JournalEntry.user_id == membership.user_id,
            ),
        )
        .order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())
    )
    return list(result.scalars().all())


@router.get("/{entry_id}", response_model=JournalEntryResponse, summary="Get journal entry")
async def get_entry(
    entry_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> JournalEntry:
    return await get_entry_for_user(session, current_user, entry_id)


@router.post(
    "",
    response_model=JournalEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create journal entry",
)
async def create_entry(
    payload: JournalEntryCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> JournalEntry:
    await ensure_family_member(session, current_user, payload.family_id)

    entry = JournalEntry(**payload.model_dump(), user_id=current_user.id)
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


@router.put("/{entry_id}", response_model=JournalEntryResponse, summary="Update journal entry")
async def update_entry(
    entry_id: str,
    payload: JournalEntryUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> JournalEntry:
    entry = await get_entry_for_user(session, current_user, entry_id, author_only=True)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "body", "is_private"):
            continue
        setattr(entry, field, value)

    await session.commit()
    await session.refresh(entry)
    return entry


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete journal entry")
async def delete_entry(
    entry_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    entry = await get_entry_for_user(session, current_user, entry_id, author_only=True)
    await session.delete(entry)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
