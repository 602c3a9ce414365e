"""
Firm endpoints: public onboarding and the firm profile.
"""

from fastapi import APIRouter, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.schemas.auth import FirmOnboarding, TokenResponse
from cafirm.schemas.base import APIResponse
from cafirm.schemas.firm import FirmResponse, FirmUpdate
from cafirm.services.auth_service import AuthService
from cafirm.services.firm_service import FirmService

router = APIRouter(prefix="/firms", tags=["Firms"])


@router.post(
    "",
    response_model=APIResponse[TokenResponse],
    status_code=status.HTTP_201_CREATED,
)
async def onboard_firm(data: FirmOnboarding, db: DBSession) -> APIResponse[TokenResponse]:
    """
    Registers a new firm and its super admin.

    The response logs the new super admin in.
    """
    token = await AuthService(db).onboard_firm(data)
    return APIResponse(success=True, data=token, message="Firm created")


@router.get("/me", response_model=APIResponse[FirmResponse])
async def get_my_firm(db: DBSession, current_user: CurrentUser) -> APIResponse[FirmResponse]:
    firm = await FirmService(db, current_user.firm_id).get_firm()
    return APIResponse(success=True, data=FirmResponse.model_validate(firm))


@router.patch("/me", response_model=APIResponse[FirmResponse])
async def update_my_firm(
    data: FirmUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[FirmResponse]:
    firm = await FirmService(db, current_user.firm_id).update_firm(current_user, data)
    return APIResponse(success=True, data=FirmResponse.model_validate(firm), message="Firm updated")
