"""
Declarative base for every SQLAlchemy model.

Defines the shared columns and conventions.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Type

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


def PgEnum(enum_class: Type) -> SQLEnum:
    """
    SQLAlchemy Enum that stores member values instead of names.

    Example:
        class UserRole(str, enum.Enum):
            ADMIN = "admin"   # stored as "admin", not "ADMIN"
    """
    return SQLEnum(
        enum_class,
        values_callable=lambda x: [e.value for e in x],
        validate_strings=True,
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attaches UTC to naive datetimes (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all models.

    Provides id, created_at and updated_at.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    @declared_attr.directive
    @classmethod
    def __tablename__(cls) -> str:
        """Derives the table name from the class name."""
        # CamelCase -> snake_case
        name = cls.__name__
        return "".join(
            ["_" + c.lower() if c.isupper() else c for c in name]
        ).lstrip("_")

    def to_dict(self) -> dict[str, Any]:
        """Column values as a dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }


class MultiTenantBase(Base):
    """
    Base for tenant-owned rows.

    Every subclass is isolated by firm.
    """

    __abstract__ = True

    firm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("firms.id"),
        nullable=False,
        index=True,
    )
