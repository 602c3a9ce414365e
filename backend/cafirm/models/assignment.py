"""
Client assignment model.

Links team members to the clients they work for. Team-member visibility of
documents, services, tasks and invoices is derived from these rows.
"""

import uuid

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.accounts import UserRole


class ClientAssignment(MultiTenantBase):
    __tablename__ = "client_assignments"
    __table_args__ = (
        UniqueConstraint("team_member_id", "client_id", name="uq_assignment_member_client"),
    )

    team_member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    assigned_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    assigned_by_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))

    def __repr__(self) -> str:
        return (
            f"<ClientAssignment(team_member_id={self.team_member_id}, "
            f"client_id={self.client_id})>"
        )
