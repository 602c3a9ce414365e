"""
Activity log endpoint.
"""

from uuid import UUID

from fastapi import APIRouter, Query

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.schemas.activity import ActivityLogResponse
from cafirm.schemas.base import PaginatedResponse, page_number
from cafirm.services.activity_service import ActivityService

router = APIRouter(prefix="/activity", tags=["Activity"])


@router.get("", response_model=PaginatedResponse[ActivityLogResponse])
async def list_activity(
    db: DBSession,
    current_user: CurrentUser,
    entity_type: str | None = Query(None),
    entity_id: UUID | None = Query(None),
    action: str | None = Query(None),
    actor_id: UUID | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> PaginatedResponse[ActivityLogResponse]:
    """Newest first. Admins see the firm; project managers their own trail."""
    entries, total = await ActivityService(db, current_user.firm_id).list_for(
        current_user,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[ActivityLogResponse.model_validate(e) for e in entries],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )
