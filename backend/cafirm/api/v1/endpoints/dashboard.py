"""
Dashboard endpoint.
"""

from fastapi import APIRouter

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.schemas.activity import DashboardSummary
from cafirm.schemas.base import APIResponse
from cafirm.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=APIResponse[DashboardSummary])
async def dashboard(db: DBSession, current_user: CurrentUser) -> APIResponse[DashboardSummary]:
    summary = await DashboardService(db, current_user.firm_id).summary(current_user)
    return APIResponse(success=True, data=summary)
