"""
Family Router
Handles family creation, management, and membership.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.dependencies import (
    get_current_user,
    require_family_membership,
)
from famconomy.api.schemas import (
    FamilyCreate,
    FamilyUpdate,
    FamilyDetailResponse,
    FamilyMemberResponse,
    MyFamiliesResponse,
    MemberRoleUpdate,
    MessageResponse,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import Family, FamilyMember, FamilyRole, User

logger = logging.getLogger(__name__)

router = APIRouter()


def member_response(membership: FamilyMember) -> FamilyMemberResponse:
    return FamilyMemberResponse(
        user_id=membership.user_id,
        email=membership.user.email,
        full_name=membership.user.full_name,
        role=membership.role,
        joined_at=membership.joined_at,
    )


def family_detail(family: Family) -> FamilyDetailResponse:
    """Family with members; ``members.user`` must already be loaded."""
    members = sorted(family.members, key=lambda m: (m.joined_at, m.id))
    return FamilyDetailResponse(
        id=family.id,
        name=family.name,
        mantra=family.mantra,
        values=family.values or [],
        reward_mode=family.reward_mode,
        created_at=family.created_at,
        updated_at=family.updated_at,
        members=[member_response(m) for m in members],
    )


async def load_family(session: AsyncSession, family_id: int) -> Family:
    """Fetch a live family with members and their users, or 404."""
    result = await session.execute(
        select(Family)
        .where(Family.id == family_id, Family.deleted_at.is_(None))
        .options(selectinload(Family.members).selectinload(FamilyMember.user))
        .execution_options(populate_existing=True)
    )
    family = result.scalar_one_or_none()
    if family is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Family not found",
        )
    return family


@router.get(
    "",
    response_model=MyFamiliesResponse,
    summary="List user's families",
    description="Families the current user belongs to; the earliest joined is active",
)
async def list_my_families(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MyFamiliesResponse:
    result = await session.execute(
        select(Family)
        .join(FamilyMember, FamilyMember.family_id == Family.id)
        .where(
            FamilyMember.user_id == current_user.id,
            Family.deleted_at.is_(None),
        )
        .options(selectinload(Family.members).selectinload(FamilyMember.user))
        .order_by(FamilyMember.joined_at.asc(), FamilyMember.id.asc())
    )
    families = list(result.scalars().unique().all())

    return MyFamiliesResponse(
        families=[family_detail(f) for f in families],
        active_family_id=families[0].id if families else None,
    )


@router.post(
    "",
    response_model=FamilyDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create family",
    description="Create a new family and add the current user as parent",
)
async def create_family(
    payload: FamilyCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FamilyDetailResponse:
    family = Family(
        name=payload.name.strip(),
        mantra=payload.mantra,
        values=payload.values,
        reward_mode=payload.reward_mode or "points",
        created_by_user_id=current_user.id,
    )
    session.add(family)
    await session.flush()  # Get family ID

    session.add(
        FamilyMember(
            family_id=family.id,
            user_id=current_user.id,
            role=FamilyRole.PARENT,
        )
    )
    await session.commit()

    logger.info(f"Family created: {family.id} by user {current_user.id}")
    return family_detail(await load_family(session, family.id))


@router.get(
    "/{family_id}",
    response_model=FamilyDetailResponse,
    summary="Get family details",
)
async def get_family(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> FamilyDetailResponse:
    return family_detail(await load_family(session, family_id))


@router.put(
    "/{family_id}",
    response_model=FamilyDetailResponse,
    summary="Update family",
    description="Update name, mantra, values or reward mode (requires guardian role)",
)
async def update_family(
    family_id: int,
    payload: FamilyUpdate,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> FamilyDetailResponse:
    family = await load_family(session, family_id)

    update_data = payload.model_dump(exclude_unset=True)
    if "name" in update_data and not (update_data["name"] or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Family name is required",
        )
    for field, value in update_data.items():
        if value is None and field in ("name", "values", "reward_mode"):
            continue
        setattr(family, field, value.strip() if field == "name" else value)

    await session.commit()
    logger.info(f"Family updated: {family_id}")
    return family_detail(await load_family(session, family_id))


@router.get(
    "/{family_id}/members",
    response_model=list[FamilyMemberResponse],
    summary="List family members",
)
async def list_members(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[FamilyMemberResponse]:
    family = await load_family(session, family_id)
    return family_detail(family).members


@router.put(
    "/{family_id}/members/{user_id}",
    response_model=FamilyMemberResponse,
    summary="Change member role",
    description="Change a member's role (requires guardian role)",
)
async def update_member_role(
    family_id: int,
    user_id: UUID,
    payload: MemberRoleUpdate,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> FamilyMemberResponse:
    result = await session.execute(
        select(FamilyMember)
        .where(FamilyMember.family_id == family_id, FamilyMember.user_id == user_id)
        .options(selectinload(FamilyMember.user))
    )
    target = result.scalar_one_or_none()
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    target.role = payload.role
    await session.commit()
    return member_response(target)


@router.delete(
    "/{family_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove member",
    description="Remove a member from the family (requires guardian role)",
)
async def remove_member(
    family_id: int,
    user_id: UUID,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> Response:
    result = await session.execute(
        select(FamilyMember).where(
            FamilyMember.family_id == family_id,
            FamilyMember.user_id == user_id,
        )
    )
    target = result.scalar_one_or_none()
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    await session.delete(target)
    await session.commit()

    logger.info(f"User {user_id} removed from family {family_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{family_id}/leave",
    response_model=MessageResponse,
    summary="Leave family",
)
async def leave_family(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await session.delete(membership)
    await session.commit()

    logger.info(f"User {membership.user_id} left family {family_id}")
    return MessageResponse(message="You have left the family.")
