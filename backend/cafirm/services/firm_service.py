"""
Firm profile service.
"""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    InsufficientPermissionsError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from cafirm.core.visibility import UserContext
from cafirm.models.activity import ActivityAction
from cafirm.models.firm import Firm
from cafirm.repositories.firm_repository import FirmRepository
from cafirm.schemas.firm import FirmUpdate
from cafirm.services.activity_service import ActivityService

logger = structlog.get_logger()


class FirmService:
    def __init__(self, db: AsyncSession, firm_id: UUID):
        self._db = db
        self._firm_id = firm_id
        self._repo = FirmRepository(db)

    async def get_firm(self) -> Firm:
        firm = await self._repo.get_by_id(self._firm_id)
        if firm is None:
            raise ResourceNotFoundError("Firm", self._firm_id)
        return firm

    async def update_firm(self, user: UserContext, data: FirmUpdate) -> Firm:
        """Edits the caller's own firm. Admins only."""
        if not user.is_admin:
            raise InsufficientPermissionsError("edit the firm profile")

        update_data = data.model_dump(exclude_unset=True)
        gstin = update_data.get("gstin")
        if gstin:
            existing = await self._repo.get_by_gstin(gstin)
            if existing and existing.id != self._firm_id:
                raise ResourceAlreadyExistsError("Firm", "gstin", gstin)

        await self.get_firm()
        firm = await self._repo.update(self._firm_id, **update_data)

        logger.info("Firm updated", firm_id=str(self._firm_id), fields=list(update_data.keys()))
        await ActivityService(self._db, self._firm_id).record(
            user,
            ActivityAction.ACCOUNT_UPDATED,
            "firm",
            firm.id,
            firm.name,
            {"fields": list(update_data.keys())},
        )
        return firm
