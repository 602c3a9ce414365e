"""
Client endpoints, including team-member assignments.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.schemas.account import (
    ClientAssignmentCreate,
    ClientAssignmentResponse,
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
    ManagerAssignment,
    StaffResponse,
)
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.services.client_service import ClientService

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post(
    "",
    response_model=APIResponse[ClientResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    data: ClientCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ClientResponse]:
    client = await ClientService(db, current_user.firm_id).create_client(current_user, data)
    return APIResponse(
        success=True,
        data=ClientResponse.model_validate(client),
        message="Client created",
    )


@router.get("", response_model=PaginatedResponse[ClientListResponse])
async def list_clients(
    db: DBSession,
    current_user: CurrentUser,
    search: str | None = Query(None, min_length=1, description="Name, e-mail, company, PAN or GSTIN"),
    managed_by_id: UUID | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ClientListResponse]:
    """Clients visible to the caller."""
    clients, total = await ClientService(db, current_user.firm_id).list_clients(
        current_user,
        search=search,
        managed_by_id=managed_by_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[ClientListResponse.model_validate(c) for c in clients],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/{client_id}", response_model=APIResponse[ClientResponse])
async def get_client(
    client_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ClientResponse]:
    client = await ClientService(db, current_user.firm_id).get_client(current_user, client_id)
    return APIResponse(success=True, data=ClientResponse.model_validate(client))


@router.patch("/{client_id}", response_model=APIResponse[ClientResponse])
async def update_client(
    client_id: UUID,
    data: ClientUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ClientResponse]:
    client = await ClientService(db, current_user.firm_id).update_client(current_user, client_id, data)
    return APIResponse(
        success=True,
        data=ClientResponse.model_validate(client),
        message="Client updated",
    )


@router.delete("/{client_id}", response_model=APIResponse)
async def delete_client(
    client_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    """Soft delete. The client's history is kept."""
    await ClientService(db, current_user.firm_id).delete_client(current_user, client_id)
    return APIResponse(success=True, message="Client deleted")


@router.put("/{client_id}/manager", response_model=APIResponse[ClientResponse])
async def set_client_manager(
    client_id: UUID,
    data: ManagerAssignment,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ClientResponse]:
    client = await ClientService(db, current_user.firm_id).set_manager(
        current_user, client_id, data.managed_by_id
    )
    return APIResponse(success=True, data=ClientResponse.model_validate(client))


# === ASSIGNMENTS ===


@router.get("/{client_id}/assignments", response_model=APIResponse[list[StaffResponse]])
async def list_client_team_members(
    client_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[StaffResponse]]:
    """Team members assigned to the client."""
    team_members = await ClientService(db, current_user.firm_id).team_members_for_client(
        current_user, client_id
    )
    return APIResponse(
        success=True,
        data=[StaffResponse.model_validate(t) for t in team_members],
    )


@router.post(
    "/{client_id}/assignments",
    response_model=APIResponse[ClientAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def assign_team_member(
    client_id: UUID,
    data: ClientAssignmentCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[ClientAssignmentResponse]:
    assignment = await ClientService(db, current_user.firm_id).assign_team_member(
        current_user, client_id, data.team_member_id
    )
    return APIResponse(
        success=True,
        data=ClientAssignmentResponse.model_validate(assignment),
        message="Team member assigned",
    )


@router.delete("/{client_id}/assignments/{team_member_id}", response_model=APIResponse)
async def unassign_team_member(
    client_id: UUID,
    team_member_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    await ClientService(db, current_user.firm_id).unassign_team_member(
        current_user, client_id, team_member_id
    )
    return APIResponse(success=True, message="Team member unassigned")
