"""
Calendar Router
Shared family events.
"""

import logging
from datetime import datetime
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
from famconomy.api.realtime import RealtimeGateway, get_realtime
from famconomy.api.schemas import (
    CalendarEventCreate,
    CalendarEventUpdate,
    CalendarEventResponse,
    naive_utc,
)
from famconomy.api.services.notification_service import family_member_ids, notify_users
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    CalendarEvent,
    FamilyMember,
    NotificationType,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_event_for_user(session: AsyncSession, user: User, event_id: str) -> CalendarEvent:
    """Event by id, if the caller belongs to its family."""
    event = await session.get(CalendarEvent, parse_id(event_id, "eventId"))
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    await ensure_family_member(session, user, event.family_id)
    return event


@router.get(
    "/family/{family_id}",
    response_model=list[CalendarEventResponse],
    summary="List family events",
    description="Events of a family, optionally limited to a time range",
)
async def list_events(
    family_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[CalendarEvent]:
    start, end = naive_utc(start), naive_utc(end)
    query = select(CalendarEvent).where(CalendarEvent.family_id == family_id)
    if start is not None:
        query = query.where(CalendarEvent.end_time >= start)
    if end is not None:
        query = query.where(CalendarEvent.start_time <= end)

    result = await session.execute(query.order_by(CalendarEvent.start_time, CalendarEvent.id))
    return list(result.scalars().all())


@router.post(
    "",
    response_model=CalendarEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
    description="Create an event and notify the other family members",
)
async def create_event(
    payload: CalendarEventCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    realtime: Optional[RealtimeGateway] = Depends(get_realtime),
) -> CalendarEvent:
    await ensure_family_member(session, current_user, payload.family_id)

    end_time = payload.end_time or payload.start_time
    if end_time < payload.start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End time must not be before start time",
        )

    event = CalendarEvent(
        family_id=payload.family_id,
        title=payload.title,
        description=payload.description,
        start_time=payload.start_time,
        end_time=end_time,
        created_by_user_id=current_user.id,
        is_recurring=bool(payload.recurrence_rule),
        recurrence_rule=payload.recurrence_rule,
        recurrence_exception_dates=payload.recurrence_exception_dates,
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)

    logger.info(f"Calendar event created: {event.id} in family {event.family_id}")

    await notify_users(
        session,
        realtime,
        await family_member_ids(session, event.family_id, current_user.id),
        f"New event: {event.title}",
        NotificationType.EVENT,
        link="/calendar",
    )
    return event


@router.put(
    "/{event_id}",
    response_model=CalendarEventResponse,
    summary="Update event",
)
async def update_event(
    event_id: str,
    payload: CalendarEventUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CalendarEvent:
    event = await get_event_for_user(session, current_user, event_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "start_time", "end_time", "recurrence_exception_dates"):
            continue
        setattr(event, field, value)
    event.is_recurring = bool(event.recurrence_rule)

    if event.end_time < event.start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End time must not be before start time",
        )

    await session.commit()
    await session.refresh(event)
    return event


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete event",
)
async def delete_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    event = await get_event_for_user(session, current_user, event_id)
    await session.delete(event)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
