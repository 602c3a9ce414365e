"""
Firm repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.models.firm import Firm
from cafirm.repositories.base import BaseRepository


class FirmRepository(BaseRepository[Firm]):
    def __init__(self, db: AsyncSession):
        super().__init__(Firm, db)

    async def get_by_gstin(self, gstin: str) -> Firm | None:
        result = await self.db.execute(select(Firm).where(Firm.gstin == gstin))
        return result.scalar_one_or_none()

    async def get_active(self) -> list[Firm]:
        result = await self.db.execute(
            select(Firm).where(Firm.is_active.is_(True)).order_by(Firm.name)
        )
        return list(result.scalars().all())
