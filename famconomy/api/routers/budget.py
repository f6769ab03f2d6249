"""
Budget Router
Family budgets; each response carries the amount spent against it.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    require_budget_access,
    require_family_membership,
)
from famconomy.api.schemas import BudgetCreate, BudgetUpdate, BudgetResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import Budget, FamilyMember, Transaction, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def spent_by_budget(session: AsyncSession, budget_ids: list[int]) -> dict[int, float]:
    if not budget_ids:
        return {}
    result = await session.execute(
        select(Transaction.budget_id, func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.budget_id.in_(budget_ids))
        .group_by(Transaction.budget_id)
    )
    return {budget_id: float(total) for budget_id, total in result.all()}


async def budget_response(session: AsyncSession, budget: Budget) -> BudgetResponse:
    spent = await spent_by_budget(session, [budget.id])
    response = BudgetResponse.model_validate(budget)
    response.spent = spent.get(budget.id, 0.0)
    return response


@router.get(
    "",
    response_model=list[BudgetResponse],
    summary="List family budgets",
    description="Budgets of the family given by the familyId query parameter",
)
async def list_budgets(
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[BudgetResponse]:
    result = await session.execute(
        select(Budget)
        .where(Budget.family_id == membership.family_id)
        .order_by(Budget.created_at.desc(), Budget.id.desc())
    )
    budgets = list(result.scalars().all())
    spent = await spent_by_budget(session, [b.id for b in budgets])

    responses = []
    for budget in budgets:
        response = BudgetResponse.model_validate(budget)
        response.spent = spent.get(budget.id, 0.0)
        responses.append(response)
    return responses


@router.get(
    "/{budget_id}",
    response_model=BudgetResponse,
    summary="Get budget",
)
async def get_budget(
    budget: Budget = Depends(require_budget_access),
    session: AsyncSession = Depends(get_session),
) -> BudgetResponse:
    return await budget_response(session, budget)


@router.post(
    "",
    response_model=BudgetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create budget",
)
async def create_budget(
    payload: BudgetCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> BudgetResponse:
    await ensure_family_member(session, current_user, payload.family_id)

    budget = Budget(**payload.model_dump(), created_by_user_id=current_user.id)
    session.add(budget)
    await session.commit()
    await session.refresh(budget)

    logger.info(f"Budget created: {budget.id} in family {budget.family_id}")
    return BudgetResponse.model_validate(budget)


@router.put(
    "/{budget_id}",
    response_model=BudgetResponse,
    summary="Update budget",
)
async def update_budget(
    payload: BudgetUpdate,
    budget: Budget = Depends(require_budget_access),
    session: AsyncSession = Depends(get_session),
) -> BudgetResponse:
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "amount"):
            continue
        setattr(budget, field, value)

    await session.commit()
    await session.refresh(budget)
    return await budget_response(session, budget)


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete budget",
)
async def delete_budget(
    budget: Budget = Depends(require_budget_access),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await session.delete(budget)
    await session.commit()

    logger.info(f"Budget deleted: {budget.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
