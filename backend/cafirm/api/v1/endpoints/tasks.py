"""
Task endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.models.task import TaskStatus
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.schemas.task import TaskCreate, TaskResponse, TaskStatusUpdate, TaskUpdate
from cafirm.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post(
    "",
    response_model=APIResponse[TaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    data: TaskCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[TaskResponse]:
    task = await TaskService(db, current_user.firm_id).create_task(current_user, data)
    return APIResponse(success=True, data=TaskResponse.model_validate(task), message="Task created")


@router.get("", response_model=PaginatedResponse[TaskResponse])
async def list_tasks(
    db: DBSession,
    current_user: CurrentUser,
    service_id: UUID | None = Query(None),
    status_filter: TaskStatus | None = Query(None, alias="status"),
    assigned_to_id: UUID | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[TaskResponse]:
    tasks, total = await TaskService(db, current_user.firm_id).list_tasks(
        current_user,
        service_id=service_id,
        status=status_filter,
        assigned_to_id=assigned_to_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[TaskResponse.model_validate(t) for t in tasks],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/{task_id}", response_model=APIResponse[TaskResponse])
async def get_task(task_id: UUID, db: DBSession, current_user: CurrentUser) -> APIResponse[TaskResponse]:
    task = await TaskService(db, current_user.firm_id).get_task(current_user, task_id)
    return APIResponse(success=True, data=TaskResponse.model_validate(task))


@router.patch("/{task_id}", response_model=APIResponse[TaskResponse])
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[TaskResponse]:
    task = await TaskService(db, current_user.firm_id).update_task(current_user, task_id, data)
    return APIResponse(success=True, data=TaskResponse.model_validate(task), message="Task updated")


@router.patch("/{task_id}/status", response_model=APIResponse[TaskResponse])
async def change_task_status(
    task_id: UUID,
    data: TaskStatusUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[TaskResponse]:
    task = await TaskService(db, current_user.firm_id).change_status(current_user, task_id, data.status)
    return APIResponse(success=True, data=TaskResponse.model_validate(task))


@router.delete("/{task_id}", response_model=APIResponse)
async def delete_task(task_id: UUID, db: DBSession, current_user: CurrentUser) -> APIResponse:
    await TaskService(db, current_user.firm_id).delete_task(current_user, task_id)
    return APIResponse(success=True, message="Task deleted")
