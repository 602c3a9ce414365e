"""
Service request endpoints.

Clients file requests; project managers and admins convert them into
services or reject them.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.models.service import ServiceType
from cafirm.models.service_request import RequestStatus
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.schemas.service import ServiceResponse
from cafirm.schemas.service_request import (
    ServiceRequestApprove,
    ServiceRequestConversion,
    ServiceRequestCreate,
    ServiceRequestReject,
    ServiceRequestResponse,
    ServiceRequestStats,
)
from cafirm.services.service_request_service import ServiceRequestService

router = APIRouter(prefix="/service-requests", tags=["Service requests"])


@router.post(
    "",
    response_model=APIResponse[ServiceRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_service_request(
    data: ServiceRequestCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceRequestResponse]:
    request = await ServiceRequestService(db, current_user.firm_id).create_request(current_user, data)
    return APIResponse(
        success=True,
        data=ServiceRequestResponse.model_validate(request),
        message="Service request submitted",
    )


@router.get("", response_model=PaginatedResponse[ServiceRequestResponse])
async def list_service_requests(
    db: DBSession,
    current_user: CurrentUser,
    status_filter: RequestStatus | None = Query(None, alias="status"),
    service_type: ServiceType | None = Query(None),
    client_id: UUID | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ServiceRequestResponse]:
    """Most urgent first."""
    requests, total = await ServiceRequestService(db, current_user.firm_id).list_requests(
        current_user,
        status=status_filter,
        service_type=service_type,
        client_id=client_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[ServiceRequestResponse.model_validate(r) for r in requests],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/stats", response_model=APIResponse[ServiceRequestStats])
async def service_request_stats(db: DBSession, current_user: CurrentUser) -> APIResponse[ServiceRequestStats]:
    stats = await ServiceRequestService(db, current_user.firm_id).request_stats(current_user)
    return APIResponse(success=True, data=stats)


@router.get("/{request_id}", response_model=APIResponse[ServiceRequestResponse])
async def get_service_request(
    request_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceRequestResponse]:
    request = await ServiceRequestService(db, current_user.firm_id).get_request(current_user, request_id)
    return APIResponse(success=True, data=ServiceRequestResponse.model_validate(request))


@router.post("/{request_id}/approve", response_model=APIResponse[ServiceRequestConversion])
async def approve_service_request(
    request_id: UUID,
    data: ServiceRequestApprove,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceRequestConversion]:
    """Converts the request into a new PENDING service."""
    request, service = await ServiceRequestService(db, current_user.firm_id).approve_request(
        current_user, request_id, data
    )
    return APIResponse(
        success=True,
        data=ServiceRequestConversion(
            request=ServiceRequestResponse.model_validate(request),
            service=ServiceResponse.model_validate(service),
        ),
        message="Service request converted",
    )


@router.post("/{request_id}/reject", response_model=APIResponse[ServiceRequestResponse])
async def reject_service_request(
    request_id: UUID,
    data: ServiceRequestReject,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceRequestResponse]:
    request = await ServiceRequestService(db, current_user.firm_id).reject_request(
        current_user, request_id, data.rejection_reason
    )
    return APIResponse(
        success=True,
        data=ServiceRequestResponse.model_validate(request),
        message="Service request rejected",
    )


@router.post("/{request_id}/cancel", response_model=APIResponse[ServiceRequestResponse])
async def cancel_service_request(
    request_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ServiceRequestResponse]:
    request = await ServiceRequestService(db, current_user.firm_id).cancel_request(current_user, request_id)
    return APIResponse(
        success=True,
        data=ServiceRequestResponse.model_validate(request),
        message="Service request cancelled",
    )
