"""
Service (engagement) endpoints.

Status changes go through /status, /assign or the named /actions routes.
Every change is recorded in the service's status history.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.core.visibility import UserContext
from cafirm.models.accounts import UserRole
from cafirm.models.service import Service, ServiceStatus, ServiceType
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.schemas.service import (
    ServiceActionRequest,
    ServiceAssign,
    ServiceBoard,
    ServiceCreate,
    ServiceStaffResponse,
    ServiceStats,
    ServiceStatusHistoryResponse,
    ServiceStatusUpdate,
    ServiceUpdate,
)
from cafirm.services.service_workflow import ServiceWorkflowService

router = APIRouter(prefix="/services", tags=["Services"])


def _present(user: UserContext, service: Service) -> ServiceStaffResponse:
    """Clients never see internal notes."""
    response = ServiceStaffResponse.model_validate(service)
    if user.role == UserRole.CLIENT:
        response.internal_notes = None
    return response


@router.post(
    "",
    response_model=APIResponse[ServiceStaffResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    data: ServiceCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceStaffResponse]:
    """
    Opens a service for a client.

    When assignee_id is given the service is assigned right away.
    """
    service = await ServiceWorkflowService(db, current_user.firm_id).create_service(current_user, data)
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message="Service created",
    )


@router.get("", response_model=PaginatedResponse[ServiceStaffResponse])
async def list_services(
    db: DBSession,
    current_user: CurrentUser,
    status_filter: ServiceStatus | None = Query(None, alias="status"),
    type: ServiceType | None = Query(None),
    client_id: UUID | None = Query(None),
    search: str | None = Query(None, min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ServiceStaffResponse]:
    services, total = await ServiceWorkflowService(db, current_user.firm_id).list_services(
        current_user,
        status=status_filter,
        type=type,
        client_id=client_id,
        search=search,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[_present(current_user, s) for s in services],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/board", response_model=APIResponse[ServiceBoard])
async def service_board(db: DBSession, current_user: CurrentUser) -> APIResponse[ServiceBoard]:
    """Visible services grouped into Kanban columns."""
    board = await ServiceWorkflowService(db, current_user.firm_id).services_by_status(current_user)
    return APIResponse(success=True, data=board)


@router.get("/stats", response_model=APIResponse[ServiceStats])
async def service_stats(db: DBSession, current_user: CurrentUser) -> APIResponse[ServiceStats]:
    stats = await ServiceWorkflowService(db, current_user.firm_id).service_stats(current_user)
    return APIResponse(success=True, data=stats)


@router.get("/{service_id}", response_model=APIResponse[ServiceStaffResponse])
async def get_service(
    service_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceStaffResponse]:
    service = await ServiceWorkflowService(db, current_user.firm_id).get_service(current_user, service_id)
    return APIResponse(success=True, data=_present(current_user, service))


@router.patch("/{service_id}", response_model=APIResponse[ServiceStaffResponse])
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceStaffResponse]:
    service = await ServiceWorkflowService(db, current_user.firm_id).update_service(
        current_user, service_id, data
    )
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message="Service updated",
    )


@router.delete("/{service_id}", response_model=APIResponse[ServiceStaffResponse])
async def delete_service(
    service_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    reason: str | None = Query(None, max_length=1000),
) -> APIResponse[ServiceStaffResponse]:
    """Cancels the service. Nothing is removed from the database."""
    service = await ServiceWorkflowService(db, current_user.firm_id).delete_service(
        current_user, service_id, reason
    )
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message="Service cancelled",
    )


# === WORKFLOW ===


@router.patch("/{service_id}/status", response_model=APIResponse[ServiceStaffResponse])
async def change_service_status(
    service_id: UUID,
    data: ServiceStatusUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceStaffResponse]:
    """
    Moves the service to another status.

    Invalid moves are rejected with the list of allowed statuses.
    """
    service = await ServiceWorkflowService(db, current_user.firm_id).change_status(
        current_user, service_id, data.status, data.reason
    )
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message=f"Service moved to {service.status.value}",
    )


@router.post("/{service_id}/assign", response_model=APIResponse[ServiceStaffResponse])
async def assign_service(
    service_id: UUID,
    data: ServiceAssign,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceStaffResponse]:
    service = await ServiceWorkflowService(db, current_user.firm_id).assign_service(
        current_user, service_id, data.assignee_id, data.assignee_role
    )
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message="Service assigned",
    )


@router.post("/{service_id}/actions/{action}", response_model=APIResponse[ServiceStaffResponse])
async def perform_service_action(
    service_id: UUID,
    action: str,
    db: DBSession,
    current_user: CurrentUser,
    data: ServiceActionRequest | None = None,
) -> APIResponse[ServiceStaffResponse]:
    """
    Named workflow step, e.g. start, hold, approve or deliver.

    hold and cancel need a reason.
    """
    reason = data.reason if data else None
    service = await ServiceWorkflowService(db, current_user.firm_id).perform_action(
        current_user, service_id, action, reason
    )
    return APIResponse(
        success=True,
        data=_present(current_user, service),
        message=f"Service moved to {service.status.value}",
    )


@router.get(
    "/{service_id}/history",
    response_model=APIResponse[list[ServiceStatusHistoryResponse]],
)
async def service_history(
    service_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[ServiceStatusHistoryResponse]]:
    history = await ServiceWorkflowService(db, current_user.firm_id).status_history(
        current_user, service_id
    )
    return APIResponse(
        success=True,
        data=[ServiceStatusHistoryResponse.model_validate(h) for h in history],
    )
