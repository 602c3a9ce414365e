"""
Document slot repository.

A slot is visible exactly when its service is.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import UserContext, visible_service_ids
from cafirm.models.document_slot import ServiceDocumentSlot, SlotStatus
from cafirm.repositories.base import MultiTenantRepository


class DocumentSlotRepository(MultiTenantRepository[ServiceDocumentSlot]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(ServiceDocumentSlot, db, firm_id)

    async def get_visible(self, user: UserContext, slot_id: UUID) -> ServiceDocumentSlot | None:
        result = await self.db.execute(
            select(ServiceDocumentSlot).where(
                ServiceDocumentSlot.id == slot_id,
                ServiceDocumentSlot.firm_id == self.firm_id,
                ServiceDocumentSlot.service_id.in_(visible_service_ids(user)),
            )
        )
        return result.scalar_one_or_none()

    async def for_service(
        self,
        service_id: UUID,
        exclude: set[SlotStatus] | None = None,
    ) -> list[ServiceDocumentSlot]:
        """Slots of a service, required ones first."""
        query = select(ServiceDocumentSlot).where(
            ServiceDocumentSlot.firm_id == self.firm_id,
            ServiceDocumentSlot.service_id == service_id,
        )
        if exclude:
            query = query.where(ServiceDocumentSlot.status.not_in(exclude))
        result = await self.db.execute(
            query.order_by(
                ServiceDocumentSlot.is_required.desc(),
                ServiceDocumentSlot.created_at,
            )
        )
        return list(result.scalars().all())

    async def get_many(self, service_id: UUID, slot_ids: list[UUID]) -> dict[UUID, ServiceDocumentSlot]:
        result = await self.db.execute(
            select(ServiceDocumentSlot).where(
                ServiceDocumentSlot.firm_id == self.firm_id,
                ServiceDocumentSlot.service_id == service_id,
                ServiceDocumentSlot.id.in_(slot_ids),
            )
        )
        return {slot.id: slot for slot in result.scalars().all()}
