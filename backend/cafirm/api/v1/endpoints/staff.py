"""
Staff endpoints.

One set of routes serves the three staff tables:

    /staff/admins
    /staff/project-managers
    /staff/team-members
"""

import enum
from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.models.accounts import UserRole
from cafirm.schemas.account import (
    ClientListResponse,
    StaffCreate,
    StaffResponse,
    StaffUpdate,
)
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.services.client_service import ClientService
from cafirm.services.staff_service import StaffService

router = APIRouter(prefix="/staff", tags=["Staff"])


class StaffKind(str, enum.Enum):
    ADMINS = "admins"
    PROJECT_MANAGERS = "project-managers"
    TEAM_MEMBERS = "team-members"


KIND_ROLES: dict[StaffKind, UserRole] = {
    StaffKind.ADMINS: UserRole.ADMIN,
    StaffKind.PROJECT_MANAGERS: UserRole.PROJECT_MANAGER,
    StaffKind.TEAM_MEMBERS: UserRole.TEAM_MEMBER,
}


@router.get(
    "/team-members/{team_member_id}/clients",
    response_model=APIResponse[list[ClientListResponse]],
)
async def team_member_clients(
    team_member_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[ClientListResponse]]:
    """Clients assigned to a team member."""
    clients = await ClientService(db, current_user.firm_id).clients_for_team_member(
        current_user, team_member_id
    )
    return APIResponse(
        success=True,
        data=[ClientListResponse.model_validate(c) for c in clients],
    )


@router.post(
    "/{kind}",
    response_model=APIResponse[StaffResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_staff(
    kind: StaffKind,
    data: StaffCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[StaffResponse]:
    """
    Creates a staff account.

    Without a password a temporary one is generated and e-mailed.
    """
    account = await StaffService(db, current_user.firm_id).create_staff(
        current_user, KIND_ROLES[kind], data
    )
    return APIResponse(
        success=True,
        data=StaffResponse.model_validate(account),
        message="Account created",
    )


@router.get("/{kind}", response_model=PaginatedResponse[StaffResponse])
async def list_staff(
    kind: StaffKind,
    db: DBSession,
    current_user: CurrentUser,
    search: str | None = Query(None, min_length=1),
    include_inactive: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[StaffResponse]:
    accounts, total = await StaffService(db, current_user.firm_id).list_staff(
        current_user,
        KIND_ROLES[kind],
        search=search,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[StaffResponse.model_validate(a) for a in accounts],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/{kind}/{account_id}", response_model=APIResponse[StaffResponse])
async def get_staff(
    kind: StaffKind,
    account_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[StaffResponse]:
    account = await StaffService(db, current_user.firm_id).get_staff(
        current_user, KIND_ROLES[kind], account_id
    )
    return APIResponse(success=True, data=StaffResponse.model_validate(account))


@router.patch("/{kind}/{account_id}", response_model=APIResponse[StaffResponse])
async def update_staff(
    kind: StaffKind,
    account_id: UUID,
    data: StaffUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[StaffResponse]:
    account = await StaffService(db, current_user.firm_id).update_staff(
        current_user, KIND_ROLES[kind], account_id, data
    )
    return APIResponse(
        success=True,
        data=StaffResponse.model_validate(account),
        message="Account updated",
    )


@router.delete("/{kind}/{account_id}", response_model=APIResponse)
async def delete_staff(
    kind: StaffKind,
    account_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    """Soft delete (the account is deactivated)."""
    await StaffService(db, current_user.firm_id).delete_staff(
        current_user, KIND_ROLES[kind], account_id
    )
    return APIResponse(success=True, message="Account deleted")
