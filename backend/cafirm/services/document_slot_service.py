"""
Document slot service.

Managers decide, per slot, whether to link a document the client already
shared, ask the client for it, or leave it alone. Asking for at least one
document moves the service to WAITING_FOR_CLIENT when the workflow allows it.
"""

import re
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    BusinessRuleError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
)
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import ADMIN_ROLES, MANAGER_ROLES, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.document import Document, DocumentType
from cafirm.models.document_slot import ServiceDocumentSlot, SlotStatus
from cafirm.models.service import Service, ServiceStatus, can_transition
from cafirm.realtime.sse import broadcaster
from cafirm.repositories.document_repository import DocumentRepository
from cafirm.repositories.document_slot_repository import DocumentSlotRepository
from cafirm.schemas.document_slot import (
    SlotAction,
    SlotActionResult,
    SlotActionsRequest,
    SlotActionType,
    SlotCreate,
    SlotSummary,
)
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService
from cafirm.services.service_workflow import ServiceWorkflowService

logger = structlog.get_logger()

_NON_WORD = re.compile(r"[^A-Z0-9]+")


def document_code(name: str) -> str:
    """PAN Card -> PAN_CARD"""
    return _NON_WORD.sub("_", name.upper()).strip("_")


def summarize(slots: list[ServiceDocumentSlot]) -> SlotSummary:
    """Progress of the required slots; a linked document counts as approved."""
    required = [slot for slot in slots if slot.is_required]
    approved = sum(1 for s in required if s.status in (SlotStatus.APPROVED, SlotStatus.LINKED))
    pending = sum(1 for s in required if s.status in (SlotStatus.REQUESTED, SlotStatus.NOT_STARTED))
    uploaded = sum(1 for s in required if s.status == SlotStatus.UPLOADED)
    rejected = sum(1 for s in required if s.status == SlotStatus.REJECTED)
    return SlotSummary(
        total=len(required),
        approved=approved,
        pending=pending,
        uploaded=uploaded,
        rejected=rejected,
        all_approved=bool(required) and approved == len(required),
        ready_for_review=uploaded > 0,
    )


class DocumentSlotService:
    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = DocumentSlotRepository(db, firm_id)
        self._documents = DocumentRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)
        self._workflow = ServiceWorkflowService(db, firm_id, email_service=email_service)

    # === READ ===

    async def list_slots(self, user: UserContext, service_id: UUID) -> list[ServiceDocumentSlot]:
        """Clients only see slots a manager has acted on."""
        await self._service(user, service_id)
        exclude = {SlotStatus.NOT_STARTED} if user.role == UserRole.CLIENT else None
        return await self._repo.for_service(service_id, exclude=exclude)

    async def summary(self, user: UserContext, service_id: UUID) -> SlotSummary:
        await self._service(user, service_id)
        return summarize(await self._repo.for_service(service_id))

    async def client_documents(self, user: UserContext, service_id: UUID) -> list[Document]:
        """Documents of the service's client that can be linked to its slots."""
        self._require_manager(user, "browse client documents for slots")
        service = await self._service(user, service_id)
        return await self._documents.visible_for_owner(user, client_id=service.client_id)

    async def matching_documents(self, user: UserContext, slot_id: UUID) -> list[Document]:
        """Client documents that look like what the slot asks for."""
        self._require_manager(user, "browse client documents for slots")
        slot = await self._slot(user, slot_id)
        document_type = None
        if slot.document_code:
            try:
                document_type = DocumentType(slot.document_code.lower())
            except ValueError:
                document_type = None
        return await self._documents.find_matching(
            user,
            slot.client_id,
            slot.document_name,
            document_type=document_type,
        )

    # === MANAGER ===

    async def add_slots(
        self,
        user: UserContext,
        service_id: UUID,
        slots: list[SlotCreate],
    ) -> list[ServiceDocumentSlot]:
        self._require_manager(user, "add document slots")
        service = await self._service(user, service_id)

        created = []
        for data in slots:
            slot = ServiceDocumentSlot(
                service_id=service.id,
                client_id=service.client_id,
                document_name=data.document_name,
                document_code=document_code(data.document_name),
                category=data.category,
                is_required=data.is_required,
                is_custom=data.is_custom,
                status=SlotStatus.NOT_STARTED,
            )
            created.append(await self._repo.add(slot))
        await self._db.commit()
        for slot in created:
            await self._db.refresh(slot)

        logger.info("Document slots added", service_id=str(service.id), count=len(created))
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_SLOTS_ADDED,
            "service",
            service.id,
            service.title,
            {"slots": [slot.document_name for slot in created]},
        )
        return created

    async def process_actions(
        self,
        user: UserContext,
        service_id: UUID,
        data: SlotActionsRequest,
    ) -> SlotActionResult:
        """
        Applies a batch of link / request / skip decisions.

        A failing action is reported in `errors` and does not stop the batch.
        """
        self._require_manager(user, "process document slots")
        service = await self._service(user, service_id)
        slots = await self._repo.get_many(service.id, [a.slot_id for a in data.actions])

        result = SlotActionResult(service_status=service.status)
        now = utcnow()
        for action in data.actions:
            slot = slots.get(action.slot_id)
            if slot is None:
                result.errors.append(f"Slot {action.slot_id}: not found")
                continue
            if action.action == SlotActionType.SKIP:
                result.skipped += 1
                continue
            if action.action == SlotActionType.LINK:
                error = await self._link(user, slot, action)
                if error:
                    result.errors.append(f"Slot {slot.id}: {error}")
                else:
                    result.linked += 1
                continue

            slot.status = SlotStatus.REQUESTED
            slot.requested_at = now
            slot.requested_by_id = user.id
            slot.deadline = action.deadline
            slot.priority = action.priority
            slot.request_message = action.instructions or data.message
            result.requested += 1
        await self._db.commit()

        logger.info(
            "Document slots processed",
            service_id=str(service.id),
            linked=result.linked,
            requested=result.requested,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_SLOTS_PROCESSED,
            "service",
            service.id,
            service.title,
            {"linked": result.linked, "requested": result.requested, "skipped": result.skipped},
        )

        if result.requested:
            await broadcaster.send_to_user(
                service.client_id,
                "documents-requested",
                {
                    "service_id": service.id,
                    "title": service.title,
                    "count": result.requested,
                    "message": data.message,
                },
            )
            if can_transition(service.status, ServiceStatus.WAITING_FOR_CLIENT):
                service = await self._workflow.perform_action(
                    user,
                    service.id,
                    "request_documents",
                    reason=data.message,
                )
        result.service_status = service.status
        return result

    async def approve_slot(self, user: UserContext, slot_id: UUID, notes: str | None = None) -> ServiceDocumentSlot:
        self._require_manager(user, "review document slots")
        slot = await self._slot(user, slot_id)
        if slot.status not in (SlotStatus.UPLOADED, SlotStatus.LINKED):
            raise BusinessRuleError(
                f"Only uploaded or linked slots can be approved, slot is {slot.status.value}",
                rule="slot_reviewable",
            )
        return await self._review(user, slot, SlotStatus.APPROVED, notes=notes)

    async def reject_slot(self, user: UserContext, slot_id: UUID, reason: str) -> ServiceDocumentSlot:
        self._require_manager(user, "review document slots")
        slot = await self._slot(user, slot_id)
        if slot.status != SlotStatus.UPLOADED:
            raise BusinessRuleError(
                f"Only uploaded slots can be rejected, slot is {slot.status.value}",
                rule="slot_reviewable",
            )
        return await self._review(user, slot, SlotStatus.REJECTED, reason=reason)

    # === CLIENT ===

    async def upload_to_slot(self, user: UserContext, slot_id: UUID, document_id: UUID) -> ServiceDocumentSlot:
        """Fills a requested (or previously rejected) slot with one of the client's documents."""
        if user.role != UserRole.CLIENT:
            raise InsufficientPermissionsError("fill document slots")
        slot = await self._slot(user, slot_id)
        if slot.client_id != user.id:
            raise ResourceNotFoundError("Document slot", slot_id)
        if slot.status not in (SlotStatus.REQUESTED, SlotStatus.REJECTED):
            raise BusinessRuleError(
                f"This slot is not waiting for a document, slot is {slot.status.value}",
                rule="slot_requested",
            )
        document = await ensure_visible(self._db, user, ResourceKind.DOCUMENT, document_id)

        slot.status = SlotStatus.UPLOADED
        slot.uploaded_document_id = document.id
        slot.uploaded_at = utcnow()
        slot.rejection_reason = None
        await self._db.commit()
        await self._db.refresh(slot)

        logger.info("Document slot filled", slot_id=str(slot.id), document_id=str(document.id))
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_SLOT_FILLED,
            "document_slot",
            slot.id,
            slot.document_name,
            {"document_id": str(document.id)},
        )
        await self._announce_upload(slot)
        return slot

    # === HELPERS ===

    def _require_manager(self, user: UserContext, action: str) -> None:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError(action)

    async def _service(self, user: UserContext, service_id: UUID) -> Service:
        return await ensure_visible(self._db, user, ResourceKind.SERVICE, service_id)

    async def _slot(self, user: UserContext, slot_id: UUID) -> ServiceDocumentSlot:
        slot = await self._repo.get_visible(user, slot_id)
        if slot is None:
            raise ResourceNotFoundError("Document slot", slot_id)
        return slot

    async def _link(self, user: UserContext, slot: ServiceDocumentSlot, action: SlotAction) -> str | None:
        """Links an existing document; returns an error message instead of raising."""
        if action.linked_document_id is None:
            return "a document is required to link"
        if slot.status not in (SlotStatus.NOT_STARTED, SlotStatus.REQUESTED):
            return f"cannot link a slot that is {slot.status.value}"
        try:
            document = await ensure_visible(
                self._db, user, ResourceKind.DOCUMENT, action.linked_document_id
            )
        except ResourceNotFoundError:
            return "document not found"
        if document.client_id != slot.client_id:
            return "document belongs to another client"

        slot.status = SlotStatus.LINKED
        slot.linked_document_id = document.id
        slot.linked_at = utcnow()
        slot.linked_by_id = user.id
        return None

    async def _review(
        self,
        user: UserContext,
        slot: ServiceDocumentSlot,
        status: SlotStatus,
        notes: str | None = None,
        reason: str | None = None,
    ) -> ServiceDocumentSlot:
        slot.status = status
        slot.reviewed_at = utcnow()
        slot.reviewed_by_id = user.id
        slot.review_notes = notes
        slot.rejection_reason = reason
        await self._db.commit()
        await self._db.refresh(slot)

        logger.info("Document slot reviewed", slot_id=str(slot.id), status=status.value)
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_SLOT_REVIEWED,
            "document_slot",
            slot.id,
            slot.document_name,
            {"status": status.value, "reason": reason},
        )
        await self._announce_review(slot)
        return slot

    async def _announce_upload(self, slot: ServiceDocumentSlot) -> None:
        service = await self._db.get(Service, slot.service_id)
        await broadcaster.broadcast_to_audience(
            self._firm_id,
            "document-slot-uploaded",
            {
                "slot_id": slot.id,
                "service_id": slot.service_id,
                "document_name": slot.document_name,
                "client_id": slot.client_id,
            },
            roles=ADMIN_ROLES,
            user_ids=[service.project_manager_id, service.current_assignee_id] if service else [],
        )

    async def _announce_review(self, slot: ServiceDocumentSlot) -> None:
        await broadcaster.send_to_user(
            slot.client_id,
            "document-slot-reviewed",
            {
                "slot_id": slot.id,
                "service_id": slot.service_id,
                "document_name": slot.document_name,
                "status": slot.status.value,
            },
        )
