"""
Wallet Router
Family wallet balances, ledger, funding and transfers to members.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    pagination_params,
    require_family_membership,
    verify_family_membership,
)
from famconomy.api.schemas import (
    MemberBalance,
    WalletFundRequest,
    WalletLedgerResponse,
    WalletOverviewResponse,
    WalletTransferRequest,
)
from famconomy.api.services.notification_service import family_member_ids
from famconomy.api.services.wallet_service import (
    InsufficientBalanceError,
    family_balance,
    fund_family,
    member_balances,
    transfer_to_user,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyMember, FamilyRole, WalletLedger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/family/{family_id}/overview",
    response_model=WalletOverviewResponse,
    summary="Wallet overview",
    description="Family wallet balance and the balance of every member",
)
async def wallet_overview(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> WalletOverviewResponse:
    balances = await member_balances(session, family_id)
    members = [
        MemberBalance(user_id=user_id, balance_cents=balances.get(user_id, 0))
        for user_id in await family_member_ids(session, family_id)
    ]
    return WalletOverviewResponse(
        family_id=family_id,
        family_balance_cents=await family_balance(session, family_id),
        members=members,
    )


@router.get(
    "/family/{family_id}/ledgers",
    response_model=list[WalletLedgerResponse],
    summary="List ledger entries",
)
async def list_ledgers(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    pagination: dict = Depends(pagination_params),
    session: AsyncSession = Depends(get_session),
) -> list[WalletLedger]:
    query = select(WalletLedger).where(WalletLedger.family_id == family_id)
    # Children only see their own movements
    if membership.role == FamilyRole.CHILD:
        query = query.where(WalletLedger.user_id == membership.user_id)

    result = await session.execute(
        query.order_by(WalletLedger.created_at.desc(), WalletLedger.id.desc())
        .offset(pagination["skip"])
        .limit(pagination["limit"])
    )
    return list(result.scalars().all())


@router.post(
    "/family/{family_id}/fund",
    response_model=WalletLedgerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Fund family wallet",
)
async def fund_wallet(
    family_id: int,
    payload: WalletFundRequest,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> WalletLedger:
    entry = await fund_family(
        session,
        family_id=family_id,
        amount_cents=payload.amount_cents,
        initiated_by_user_id=membership.user_id,
        description=payload.description,
    )
    await session.commit()
    await session.refresh(entry)
    return entry


@router.post(
    "/family/{family_id}/transfer",
    response_model=WalletLedgerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer to member",
    description="Move money from the family wallet to a member's wallet",
)
async def transfer(
    family_id: int,
    payload: WalletTransferRequest,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> WalletLedger:
    if await verify_family_membership(session, payload.user_id, family_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Recipient is not a member of this family.",
        )

    try:
        entry = await transfer_to_user(
            session,
            family_id=family_id,
            user_id=payload.user_id,
            amount_cents=payload.amount_cents,
            initiated_by_user_id=membership.user_id,
            description=payload.description,
        )
        await session.commit()
    except InsufficientBalanceError as e:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await session.refresh(entry)
    return entry


@router.post(
    "/family/{family_id}/users/{user_id}/transfer",
    response_model=WalletLedgerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer to member (path form)",
)
async def transfer_to_member(
    family_id: int,
    user_id: UUID,
    payload: WalletFundRequest,
    membership: FamilyMember = Depends(require_family_membership(FamilyRole.GUARDIAN)),
    session: AsyncSession = Depends(get_session),
) -> WalletLedger:
    return await transfer(
        family_id,
        WalletTransferRequest(
            user_id=user_id,
            amount_cents=payload.amount_cents,
            description=payload.description,
        ),
        membership,
        session,
    )
