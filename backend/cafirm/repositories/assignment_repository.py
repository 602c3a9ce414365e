"""
Repository for client assignments.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.models.accounts import TeamMember
from cafirm.models.assignment import ClientAssignment
from cafirm.repositories.base import MultiTenantRepository


class ClientAssignmentRepository(MultiTenantRepository[ClientAssignment]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(ClientAssignment, db, firm_id)

    async def get_pair(self, team_member_id: UUID, client_id: UUID) -> ClientAssignment | None:
        result = await self.db.execute(
            select(ClientAssignment).where(
                ClientAssignment.firm_id == self.firm_id,
                ClientAssignment.team_member_id == team_member_id,
                ClientAssignment.client_id == client_id,
            )
        )
        return result.scalar_one_or_none()

    async def team_members_for_client(self, client_id: UUID) -> list[TeamMember]:
        """Active team members assigned to a client."""
        result = await self.db.execute(
            select(TeamMember)
            .join(ClientAssignment, ClientAssignment.team_member_id == TeamMember.id)
            .where(
                ClientAssignment.firm_id == self.firm_id,
                ClientAssignment.client_id == client_id,
                TeamMember.deleted_at.is_(None),
            )
            .order_by(TeamMember.name)
        )
        return list(result.scalars().all())

    async def client_ids_for_team_member(self, team_member_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(ClientAssignment.client_id).where(
                ClientAssignment.firm_id == self.firm_id,
                ClientAssignment.team_member_id == team_member_id,
            )
        )
        return list(result.scalars().all())

    async def team_member_ids_for_client(self, client_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(ClientAssignment.team_member_id).where(
                ClientAssignment.firm_id == self.firm_id,
                ClientAssignment.client_id == client_id,
            )
        )
        return list(result.scalars().all())
