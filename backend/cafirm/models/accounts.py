"""
Account models, one table per role.

Each role keeps its own identity and credentials; there is no polymorphic
users table. The shared login columns live on the abstract Account base.
"""

import enum
import uuid
from datetime import datetime
from typing import ClassVar

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase


class UserRole(str, enum.Enum):
    """Roles, one per account table."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    TEAM_MEMBER = "team_member"
    CLIENT = "client"


STAFF_ROLES = (
    UserRole.SUPER_ADMIN,
    UserRole.ADMIN,
    UserRole.PROJECT_MANAGER,
    UserRole.TEAM_MEMBER,
)
ADMIN_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)
MANAGER_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.PROJECT_MANAGER)


class Account(MultiTenantBase):
    """
    Columns shared by every role table.

    Soft deletion sets deleted_at; such accounts can no longer log in.
    """

    __abstract__ = True

    role: ClassVar[UserRole]

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False)

    # Two-factor login
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    otp_code: Mapped[str | None] = mapped_column(String(6))
    otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Lockout
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Password reset
    password_reset_token: Mapped[str | None] = mapped_column(String(64), index=True)
    password_reset_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def can_login(self) -> bool:
        return self.is_active and self.deleted_at is None

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, email='{self.email}')>"


class SuperAdmin(Account):
    __tablename__ = "super_admins"

    role = UserRole.SUPER_ADMIN


class Admin(Account):
    __tablename__ = "admins"

    role = UserRole.ADMIN


class ProjectManager(Account):
    __tablename__ = "project_managers"

    role = UserRole.PROJECT_MANAGER


class TeamMember(Account):
    __tablename__ = "team_members"

    role = UserRole.TEAM_MEMBER

    designation: Mapped[str | None] = mapped_column(String(100))
    is_trainee: Mapped[bool] = mapped_column(Boolean, default=False)


class Client(Account):
    """
    Firm client (individual or company).

    managed_by_id points at the project manager responsible for the client.
    """

    __tablename__ = "clients"

    role = UserRole.CLIENT

    company_name: Mapped[str | None] = mapped_column(String(255))
    contact_person: Mapped[str | None] = mapped_column(String(255))
    pan: Mapped[str | None] = mapped_column(String(10), index=True)
    gstin: Mapped[str | None] = mapped_column(String(15))
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(100))
    pincode: Mapped[str | None] = mapped_column(String(10))
    notes: Mapped[str | None] = mapped_column(Text)

    managed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project_managers.id"),
        index=True,
    )


ACCOUNT_MODELS: dict[UserRole, type[Account]] = {
    UserRole.SUPER_ADMIN: SuperAdmin,
    UserRole.ADMIN: Admin,
    UserRole.PROJECT_MANAGER: ProjectManager,
    UserRole.TEAM_MEMBER: TeamMember,
    UserRole.CLIENT: Client,
}
