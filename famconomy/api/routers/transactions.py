"""
Transactions Router
Family spending, optionally linked to a budget.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    parse_id,
    require_family_membership,
)
from famconomy.api.schemas import TransactionCreate, TransactionUpdate, TransactionResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import Budget, FamilyMember, Transaction, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def check_budget_in_family(session: AsyncSession, budget_id: Optional[int], family_id: int) -> None:
    if budget_id is None:
        return
    budget = await session.get(Budget, budget_id)
    if budget is None or budget.family_id != family_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Budget does not belong to this family.",
        )


async def get_transaction_for_user(session: AsyncSession, user: User, transaction_id: str) -> Transaction:
    transaction = await session.get(Transaction, parse_id(transaction_id, "transactionId"))
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    await ensure_family_member(session, user, transaction.family_id)
    return transaction


@router.get(
    "",
    response_model=list[TransactionResponse],
    summary="List family transactions",
)
async def list_transactions(
    budget_id: Optional[int] = Query(None, alias="budgetId"),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[Transaction]:
    query = select(Transaction).where(Transaction.family_id == membership.family_id)
    if budget_id is not None:
        query = query.where(Transaction.budget_id == budget_id)

    result = await session.execute(
        query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    )
    return list(result.scalars().all())


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction",
)
async def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Transaction:
    return await get_transaction_for_user(session, current_user, transaction_id)


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record transaction",
)
async def create_transaction(
    payload: TransactionCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Transaction:
    await ensure_family_member(session, current_user, payload.family_id)
    await check_budget_in_family(session, payload.budget_id, payload.family_id)

    transaction = Transaction(**payload.model_dump(), user_id=current_user.id)
    session.add(transaction)
    await session.commit()
    await session.refresh(transaction)

    logger.info(f"Transaction recorded: {transaction.id} in family {transaction.family_id}")
    return transaction


@router.put(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update transaction",
)
async def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Transaction:
    transaction = await get_transaction_for_user(session, current_user, transaction_id)
    update_data = payload.model_dump(exclude_unset=True)
    if "budget_id" in update_data:
        await check_budget_in_family(session, update_data["budget_id"], transaction.family_id)

    for field, value in update_data.items():
        if value is None and field in ("amount", "transaction_date"):
            continue
        setattr(transaction, field, value)

    await session.commit()
    await session.refresh(transaction)
    return transaction


@router.delete(
    "/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete transaction",
)
async def delete_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    transaction = await get_transaction_for_user(session, current_user, transaction_id)
    await session.delete(transaction)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
