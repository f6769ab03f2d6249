"""
Savings Goals Router
Family savings targets and contributions.
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
    SavingsGoalCreate,
    SavingsGoalUpdate,
    SavingsGoalResponse,
    SavingsContribution,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyMember, SavingsGoal, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_goal_for_user(session: AsyncSession, user: User, goal_id: str) -> SavingsGoal:
    goal = await session.get(SavingsGoal, parse_id(goal_id, "goalId"))
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Savings goal not found")
    await ensure_family_member(session, user, goal.family_id)
    return goal


@router.get(
    "/family/{family_id}",
    response_model=list[SavingsGoalResponse],
    summary="List savings goals",
)
async def list_goals(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[SavingsGoal]:
    result = await session.execute(
        select(SavingsGoal)
        .where(SavingsGoal.family_id == family_id)
        .order_by(SavingsGoal.deadline.is_(None), SavingsGoal.deadline, SavingsGoal.id)
    )
    return list(result.scalars().all())


@router.get("/{goal_id}", response_model=SavingsGoalResponse, summary="Get savings goal")
async def get_goal(
    goal_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SavingsGoal:
    return await get_goal_for_user(session, current_user, goal_id)


@router.post(
    "",
    response_model=SavingsGoalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create savings goal",
)
async def create_goal(
    payload: SavingsGoalCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SavingsGoal:
    await ensure_family_member(session, current_user, payload.family_id)

    goal = SavingsGoal(**payload.model_dump(), created_by_user_id=current_user.id)
    session.add(goal)
    await session.commit()
    await session.refresh(goal)
    return goal


@router.put("/{goal_id}", response_model=SavingsGoalResponse, summary="Update savings goal")
async def update_goal(
    goal_id: str,
    payload: SavingsGoalUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SavingsGoal:
    goal = await get_goal_for_user(session, current_user, goal_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "target_amount", "current_amount"):
            continue
        setattr(goal, field, value)

    await session.commit()
    await session.refresh(goal)
    return goal


@router.post(
    "/{goal_id}/contribute",
    response_model=SavingsGoalResponse,
    summary="Contribute to savings goal",
)
async def contribute(
    goal_id: str,
    payload: SavingsContribution,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SavingsGoal:
    goal = await get_goal_for_user(session, current_user, goal_id)
    goal.current_amount = round((goal.current_amount or 0) + payload.amount, 2)

    await session.commit()
    await session.refresh(goal)

    logger.info(f"Contribution of {payload.amount} to savings goal {goal.id}")
    return goal


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete savings goal")
async def delete_goal(
    goal_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    goal = await get_goal_for_user(session, current_user, goal_id)
    await session.delete(goal)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
