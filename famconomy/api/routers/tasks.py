"""
Tasks Router
Family chores with approval workflow, rewards and attachments.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    has_min_role,
    require_family_membership,
    require_task_access,
    verify_family_membership,
)
from famconomy.api.realtime import RealtimeGateway, get_realtime
from famconomy.api.schemas import (
    TaskCreate,
    TaskUpdate,
    TaskApprovalUpdate,
    TaskResponse,
    TaskAttachmentCreate,
    TaskAttachmentResponse,
)
from famconomy.api.services.notification_service import create_notification
from famconomy.api.services.wallet_service import InsufficientBalanceError, transfer_to_user
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    ApprovalStatus,
    FamilyMember,
    FamilyRole,
    NotificationType,
    RewardType,
    Task,
    TaskAttachment,
    TaskStatus,
    User,
    WalletLedgerType,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REWARDABLE_APPROVALS = (ApprovalStatus.APPROVED, ApprovalStatus.NOT_REQUIRED)
CHILD_APPROVAL_STATUSES = (ApprovalStatus.PENDING, ApprovalStatus.NOT_REQUIRED)
REWARD_FIELDS = ("reward_type", "reward_value")


async def credit_task_reward(session: AsyncSession, task: Task, initiated_by: User) -> None:
    """
    Pay a completed currency task into the assignee's wallet, once.

    Flushes only; the caller commits.

    Raises:
        HTTPException: 409 when the family wallet cannot cover the reward
    """
    if (
        task.status != TaskStatus.COMPLETED
        or task.reward_type != RewardType.CURRENCY
        or not task.reward_value
        or task.assigned_to_user_id is None
        or task.reward_ledger_id is not None
        or task.approval_status not in REWARDABLE_APPROVALS
    ):
        return

    try:
        entry = await transfer_to_user(
            session,
            family_id=task.family_id,
            user_id=task.assigned_to_user_id,
            amount_cents=task.reward_value,
            initiated_by_user_id=initiated_by.id,
            ledger_type=WalletLedgerType.TASK_REWARD,
            description=f"Reward for task: {task.title}",
            reference_type="task",
            reference_id=str(task.id),
        )
    except InsufficientBalanceError as e:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    task.reward_ledger_id = entry.id


def _initial_approval_status(
    membership: FamilyMember,
    approval_status: ApprovalStatus,
    reward_type: Optional[RewardType],
) -> ApprovalStatus:
    """
    Approval status a member may give a new task.

    Children cannot approve or reject; a currency task they create waits for
    approval so its reward is only paid once an adult signs off.

    Raises:
        HTTPException: 403 when a child sets approved or rejected
    """
    if has_min_role(membership, FamilyRole.RELATIVE):
        return approval_status
    if approval_status not in CHILD_APPROVAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only non-child members can approve or reject tasks.",
        )
    if reward_type == RewardType.CURRENCY:
        return ApprovalStatus.PENDING
    return approval_status


async def _require_assignee_member(session: AsyncSession, family_id: int, user_id) -> None:
    if user_id is None:
        return
    if await verify_family_membership(session, user_id, family_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Assignee is not a member of this family.",
        )


@router.get(
    "/family/{family_id}",
    response_model=list[TaskResponse],
    summary="List family tasks",
)
async def list_family_tasks(
    family_id: int,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[Task]:
    query = select(Task).where(Task.family_id == family_id)
    if status_filter is not None:
        query = query.where(Task.status == status_filter)

    result = await session.execute(query.order_by(Task.due_date.is_(None), Task.due_date, Task.id))
    return list(result.scalars().all())


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get task",
)
async def get_task(task: Task = Depends(require_task_access)) -> Task:
    return task


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
    description="Create a task; the assignee is notified",
)
async def create_task(
    payload: TaskCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    realtime: Optional[RealtimeGateway] = Depends(get_realtime),
) -> Task:
    membership = await ensure_family_member(session, current_user, payload.family_id)
    await _require_assignee_member(session, payload.family_id, payload.assigned_to_user_id)

    task_data = payload.model_dump()
    task_data["approval_status"] = _initial_approval_status(
        membership, payload.approval_status, payload.reward_type
    )
    task = Task(
        **task_data,
        created_by_user_id=current_user.id,
        status=TaskStatus.PENDING,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)

    logger.info(f"Task created: {task.id} in family {task.family_id}")

    if task.assigned_to_user_id is not None:
        await create_notification(
            session,
            realtime,
            task.assigned_to_user_id,
            f"New task assigned: {task.title}",
            NotificationType.TASK,
            link="/tasks",
        )

    return task


@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update task",
    description="Partial update; completing a currency task pays its reward",
)
async def update_task(
    payload: TaskUpdate,
    task: Task = Depends(require_task_access),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Task:
    update_data = payload.model_dump(exclude_unset=True)
    reward_changed = any(
        field in update_data and update_data[field] != getattr(task, field) for field in REWARD_FIELDS
    )
    if reward_changed:
        membership = await ensure_family_member(session, current_user, task.family_id)
        if not has_min_role(membership, FamilyRole.RELATIVE):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only non-child members can change task rewards.",
            )
    if "assigned_to_user_id" in update_data:
        await _require_assignee_member(session, task.family_id, update_data["assigned_to_user_id"])

    previous_status = task.status
    for field, value in update_data.items():
        if value is None and field in ("title", "status"):
            continue
        setattr(task, field, value)

    if task.status == TaskStatus.COMPLETED and previous_status != TaskStatus.COMPLETED:
        task.completed_at = utcnow()
    elif task.status != TaskStatus.COMPLETED:
        task.completed_at = None

    await credit_task_reward(session, task, current_user)
    await session.commit()
    await session.refresh(task)

    logger.info(f"Task updated: {task.id}")
    return task


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete task",
)
async def delete_task(
    task: Task = Depends(require_task_access),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await session.delete(task)
    await session.commit()

    logger.info(f"Task deleted: {task.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{task_id}/approval",
    response_model=TaskResponse,
    summary="Set approval status",
    description="Approve or reject a task (any role above child)",
)
async def set_task_approval(
    payload: TaskApprovalUpdate,
    task: Task = Depends(require_task_access),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Task:
    await ensure_family_member(session, current_user, task.family_id, FamilyRole.RELATIVE)

    task.approval_status = payload.approval_status
    await credit_task_reward(session, task, current_user)
    await session.commit()
    await session.refresh(task)

    logger.info(f"Task {task.id} approval set to {task.approval_status.value}")
    return task


# ============================================================================
# Attachments
# ============================================================================

@router.get(
    "/{task_id}/attachments",
    response_model=list[TaskAttachmentResponse],
    summary="List task attachments",
)
async def list_attachments(
    task: Task = Depends(require_task_access),
    session: AsyncSession = Depends(get_session),
) -> list[TaskAttachment]:
    result = await session.execute(
        select(TaskAttachment)
        .where(TaskAttachment.task_id == task.id)
        .order_by(TaskAttachment.created_at, TaskAttachment.id)
    )
    return list(result.scalars().all())


@router.post(
    "/{task_id}/attachments",
    response_model=TaskAttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach file to task",
    description="Store metadata for a file already uploaded to object storage",
)
async def add_attachment(
    payload: TaskAttachmentCreate,
    task: Task = Depends(require_task_access),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> TaskAttachment:
    attachment = TaskAttachment(
        task_id=task.id,
        uploaded_by_user_id=current_user.id,
        **payload.model_dump(),
    )
    session.add(attachment)
    await session.commit()
    await session.refresh(attachment)
    return attachment


@router.delete(
    "/{task_id}/attachments/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete task attachment",
)
async def delete_attachment(
    attachment_id: int,
    task: Task = Depends(require_task_access),
    session: AsyncSession = Depends(get_session),
) -> Response:
    attachment = await session.get(TaskAttachment, attachment_id)
    if attachment is None or attachment.task_id != task.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")

    await session.delete(attachment)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
