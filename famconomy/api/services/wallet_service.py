"""
Family wallet ledger.

Balances are never stored; they are the sum of signed ledger rows. Rows with
``user_id`` NULL belong to the family wallet. Functions here only add and
flush rows; the caller owns the transaction.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.shared.models import WalletLedger, WalletLedgerType

logger = logging.getLogger(__name__)


class InsufficientBalanceError(Exception):
    """The family wallet cannot cover a transfer."""

    def __init__(self, available_cents: int, requested_cents: int):
        super().__init__(
            f"Insufficient balance: {available_cents} cents available, {requested_cents} requested"
        )
        self.available_cents = available_cents
        self.requested_cents = requested_cents


async def family_balance(session: AsyncSession, family_id: int) -> int:
    result = await session.execute(
        select(func.coalesce(func.sum(WalletLedger.amount_cents), 0)).where(
            WalletLedger.family_id == family_id,
            WalletLedger.user_id.is_(None),
        )
    )
    return int(result.scalar_one())


async def user_balance(session: AsyncSession, family_id: int, user_id: UUID) -> int:
    result = await session.execute(
        select(func.coalesce(func.sum(WalletLedger.amount_cents), 0)).where(
            WalletLedger.family_id == family_id,
            WalletLedger.user_id == user_id,
        )
    )
    return int(result.scalar_one())


async def member_balances(session: AsyncSession, family_id: int) -> dict[UUID, int]:
    result = await session.execute(
        select(WalletLedger.user_id, func.sum(WalletLedger.amount_cents))
        .where(
            WalletLedger.family_id == family_id,
            WalletLedger.user_id.is_not(None),
        )
        .group_by(WalletLedger.user_id)
    )
    return {user_id: int(total) for user_id, total in result.all()}


async def fund_family(
    session: AsyncSession,
    family_id: int,
    amount_cents: int,
    initiated_by_user_id: Optional[UUID],
    description: Optional[str] = None,
) -> WalletLedger:
    """Add money to the family wallet."""
    entry = WalletLedger(
        family_id=family_id,
        user_id=None,
        amount_cents=amount_cents,
        type=WalletLedgerType.FUNDING,
        description=description or "Family wallet funding",
        initiated_by_user_id=initiated_by_user_id,
    )
    session.add(entry)
    await session.flush()

    logger.info(f"Family {family_id} wallet funded with {amount_cents} cents")
    return entry


async def transfer_to_user(
    session: AsyncSession,
    family_id: int,
    user_id: UUID,
    amount_cents: int,
    initiated_by_user_id: Optional[UUID],
    ledger_type: WalletLedgerType = WalletLedgerType.TRANSFER,
    description: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> WalletLedger:
    """
    Move money from the family wallet to a member.

    Writes a debit row for the family and a credit row for the member.

    Returns:
        WalletLedger: The member's credit row

    Raises:
        InsufficientBalanceError: When the family wallet holds less than amount_cents
    """
    available = await family_balance(session, family_id)
    if available < amount_cents:
        raise InsufficientBalanceError(available, amount_cents)

    debit = WalletLedger(
        family_id=family_id,
        user_id=None,
        amount_cents=-amount_cents,
        type=ledger_type,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by_user_id=initiated_by_user_id,
    )
    credit = WalletLedger(
        family_id=family_id,
        user_id=user_id,
        amount_cents=amount_cents,
        type=ledger_type,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by_user_id=initiated_by_user_id,
    )
    session.add_all([debit, credit])
    await session.flush()

    logger.info(
        f"Wallet transfer of {amount_cents} cents to user {user_id} in family {family_id}",
        extra={"ledger_type": ledger_type.value, "reference_id": reference_id},
    )
    return credit
