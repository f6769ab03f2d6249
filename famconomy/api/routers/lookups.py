"""
Lookup Router
Static option lists for task status, approval status and family relationships.
"""

import enum

from fastapi import APIRouter, Depends

from famconomy.api.dependencies import get_current_user
from famconomy.api.schemas import LookupOption
from famconomy.shared.models import ApprovalStatus, FamilyRole, TaskStatus

router = APIRouter(dependencies=[Depends(get_current_user)])


def enum_options(enum_cls: type[enum.Enum]) -> list[LookupOption]:
    return [
        LookupOption(value=member.value, label=member.value.replace("_", " ").title())
        for member in enum_cls
    ]


@router.get("/task-statuses", response_model=list[LookupOption], summary="Task statuses")
async def list_task_statuses() -> list[LookupOption]:
    return enum_options(TaskStatus)


@router.get("/approval-statuses", response_model=list[LookupOption], summary="Approval statuses")
async def list_approval_statuses() -> list[LookupOption]:
    return enum_options(ApprovalStatus)


@router.get("/relationships", response_model=list[LookupOption], summary="Family relationships")
async def list_relationships() -> list[LookupOption]:
    return enum_options(FamilyRole)
