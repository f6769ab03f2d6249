"""
Dashboard Router
Per-family summary counts for the home screen.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.dependencies import require_family_membership
from famconomy.api.routers.shopping_lists import is_archived
from famconomy.api.schemas import DashboardResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    Budget,
    CalendarEvent,
    FamilyMember,
    Notification,
    SavingsGoal,
    ShoppingList,
    Task,
    TaskStatus,
    Transaction,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter()

UPCOMING_DAYS = 7


async def _scalar(session: AsyncSession, query) -> float:
    return (await session.execute(query)).scalar_one() or 0


@router.get(
    "/{family_id}",
    response_model=DashboardResponse,
    summary="Family dashboard",
    description=f"Task, calendar (next {UPCOMING_DAYS} days), notification, shopping and money totals",
)
async def get_dashboard(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> DashboardResponse:
    now = utcnow()

    member_count = await _scalar(
        session, select(func.count(FamilyMember.id)).where(FamilyMember.family_id == family_id)
    )
    open_tasks = await _scalar(
        session,
        select(func.count(Task.id)).where(Task.family_id == family_id, Task.status != TaskStatus.COMPLETED),
    )
    completed_tasks = await _scalar(
        session,
        select(func.count(Task.id)).where(Task.family_id == family_id, Task.status == TaskStatus.COMPLETED),
    )
    upcoming_events = await _scalar(
        session,
        select(func.count(CalendarEvent.id)).where(
            CalendarEvent.family_id == family_id,
            CalendarEvent.start_time >= now,
            CalendarEvent.start_time <= now + timedelta(days=UPCOMING_DAYS),
        ),
    )
    unread_notifications = await _scalar(
        session,
        select(func.count(Notification.id)).where(
            Notification.user_id == membership.user_id,
            Notification.is_read.is_(False),
        ),
    )

    lists = (
        await session.execute(
            select(ShoppingList)
            .where(ShoppingList.family_id == family_id)
            .options(selectinload(ShoppingList.items))
        )
    ).scalars().all()

    budget_total = await _scalar(
        session, select(func.sum(Budget.amount)).where(Budget.family_id == family_id)
    )
    spent_total = await _scalar(
        session,
        select(func.sum(Transaction.amount)).where(
            Transaction.family_id == family_id,
            Transaction.budget_id.is_not(None),
        ),
    )
    savings_target_total = await _scalar(
        session, select(func.sum(SavingsGoal.target_amount)).where(SavingsGoal.family_id == family_id)
    )
    savings_current_total = await _scalar(
        session, select(func.sum(SavingsGoal.current_amount)).where(SavingsGoal.family_id == family_id)
    )

    return DashboardResponse(
        family_id=family_id,
        member_count=member_count,
        open_tasks=open_tasks,
        completed_tasks=completed_tasks,
        upcoming_events=upcoming_events,
        unread_notifications=unread_notifications,
        active_shopping_lists=sum(1 for shopping_list in lists if not is_archived(shopping_list)),
        budget_total=float(budget_total),
        spent_total=float(spent_total),
        savings_target_total=float(savings_target_total),
        savings_current_total=float(savings_current_total),
    )
