"""
Document slot endpoints.

Slots hang off a service; review and upload routes address a slot directly.
"""

from uuid import UUID

from fastapi import APIRouter, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.schemas.base import APIResponse
from cafirm.schemas.document import DocumentResponse
from cafirm.schemas.document_slot import (
    SlotActionResult,
    SlotActionsRequest,
    SlotApprove,
    SlotBatchCreate,
    SlotReject,
    SlotResponse,
    SlotSummary,
    SlotUpload,
)
from cafirm.services.document_slot_service import DocumentSlotService

router = APIRouter(tags=["Document slots"])


@router.get("/services/{service_id}/slots", response_model=APIResponse[list[SlotResponse]])
async def list_slots(
    service_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[SlotResponse]]:
    slots = await DocumentSlotService(db, current_user.firm_id).list_slots(current_user, service_id)
    return APIResponse(success=True, data=[SlotResponse.model_validate(s) for s in slots])


@router.post(
    "/services/{service_id}/slots",
    response_model=APIResponse[list[SlotResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def add_slots(
    service_id: UUID,
    data: SlotBatchCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[SlotResponse]]:
    slots = await DocumentSlotService(db, current_user.firm_id).add_slots(current_user, service_id, data.slots)
    return APIResponse(
        success=True,
        data=[SlotResponse.model_validate(s) for s in slots],
        message=f"{len(slots)} document slot(s) added",
    )


@router.get("/services/{service_id}/slots/summary", response_model=APIResponse[SlotSummary])
async def slot_summary(service_id: UUID, db: DBSession, current_user: CurrentUser) -> APIResponse[SlotSummary]:
    summary = await DocumentSlotService(db, current_user.firm_id).summary(current_user, service_id)
    return APIResponse(success=True, data=summary)


@router.post("/services/{service_id}/slots/actions", response_model=APIResponse[SlotActionResult])
async def process_slot_actions(
    service_id: UUID,
    data: SlotActionsRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[SlotActionResult]:
    """Links, requests or skips several slots at once."""
    result = await DocumentSlotService(db, current_user.firm_id).process_actions(current_user, service_id, data)
    return APIResponse(success=True, data=result)


@router.get("/services/{service_id}/client-documents", response_model=APIResponse[list[DocumentResponse]])
async def client_documents(
    service_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[DocumentResponse]]:
    documents = await DocumentSlotService(db, current_user.firm_id).client_documents(current_user, service_id)
    return APIResponse(success=True, data=[DocumentResponse.model_validate(d) for d in documents])


@router.get("/slots/{slot_id}/matching-documents", response_model=APIResponse[list[DocumentResponse]])
async def matching_documents(
    slot_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[list[DocumentResponse]]:
    documents = await DocumentSlotService(db, current_user.firm_id).matching_documents(current_user, slot_id)
    return APIResponse(success=True, data=[DocumentResponse.model_validate(d) for d in documents])


@router.post("/slots/{slot_id}/upload", response_model=APIResponse[SlotResponse])
async def upload_to_slot(
    slot_id: UUID,
    data: SlotUpload,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[SlotResponse]:
    """Fills a requested slot with a document the client has uploaded."""
    slot = await DocumentSlotService(db, current_user.firm_id).upload_to_slot(
        current_user, slot_id, data.document_id
    )
    return APIResponse(success=True, data=SlotResponse.model_validate(slot), message="Document submitted")


@router.post("/slots/{slot_id}/approve", response_model=APIResponse[SlotResponse])
async def approve_slot(
    slot_id: UUID,
    data: SlotApprove,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[SlotResponse]:
    slot = await DocumentSlotService(db, current_user.firm_id).approve_slot(current_user, slot_id, data.notes)
    return APIResponse(success=True, data=SlotResponse.model_validate(slot), message="Document approved")


@router.post("/slots/{slot_id}/reject", response_model=APIResponse[SlotResponse])
async def reject_slot(
    slot_id: UUID,
    data: SlotReject,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[SlotResponse]:
    slot = await DocumentSlotService(db, current_user.firm_id).reject_slot(current_user, slot_id, data.reason)
    return APIResponse(success=True, data=SlotResponse.model_validate(slot), message="Document rejected")
