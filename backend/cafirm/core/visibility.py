"""
Role-scoped visibility.

One place decides which rows an authenticated account may see. Every
repository that lists or fetches documents, services, tasks, invoices,
clients or service requests composes the clause returned by
visibility_clause() into its query, so role rules are never rebuilt at call
sites.

    SUPER_ADMIN / ADMIN   the whole firm
    PROJECT_MANAGER       all firm documents and clients; services it manages,
                          is assigned to, or whose client it manages;
                          invoices of those; requests of managed clients
    TEAM_MEMBER           data of assigned clients, plus its own uploads,
                          tasks and services currently assigned to it
    CLIENT                only its own rows

Every clause is also restricted to the caller's firm and excludes soft
deleted rows.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, exists, false, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from cafirm.core.exceptions import ResourceNotFoundError
from cafirm.models.accounts import ADMIN_ROLES, Client, UserRole
from cafirm.models.assignment import ClientAssignment
from cafirm.models.document import Document, DocumentHiddenRole
from cafirm.models.invoice import Invoice
from cafirm.models.service import Service
from cafirm.models.service_request import ServiceRequest
from cafirm.models.task import Task


@dataclass(frozen=True)
class UserContext:
    """The authenticated account, as seen by services and repositories."""

    id: uuid.UUID
    role: UserRole
    firm_id: uuid.UUID
    email: str
    name: str

    @property
    def client_id(self) -> uuid.UUID | None:
        """A client acts on its own behalf; other roles have no client id."""
        return self.id if self.role == UserRole.CLIENT else None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_staff(self) -> bool:
        return self.role != UserRole.CLIENT


class ResourceKind(str, enum.Enum):
    DOCUMENT = "document"
    SERVICE = "service"
    TASK = "task"
    INVOICE = "invoice"
    CLIENT = "client"
    SERVICE_REQUEST = "service_request"


RESOURCE_MODELS: dict[ResourceKind, type[Any]] = {
    ResourceKind.DOCUMENT: Document,
    ResourceKind.SERVICE: Service,
    ResourceKind.TASK: Task,
    ResourceKind.INVOICE: Invoice,
    ResourceKind.CLIENT: Client,
    ResourceKind.SERVICE_REQUEST: ServiceRequest,
}

RESOURCE_LABELS: dict[ResourceKind, str] = {
    ResourceKind.DOCUMENT: "Document",
    ResourceKind.SERVICE: "Service",
    ResourceKind.TASK: "Task",
    ResourceKind.INVOICE: "Invoice",
    ResourceKind.CLIENT: "Client",
    ResourceKind.SERVICE_REQUEST: "Service request",
}


# === BUILDING BLOCKS ===

def assigned_client_ids(user: UserContext):
    """Sub-select of client ids assigned to a team member."""
    return select(ClientAssignment.client_id).where(
        ClientAssignment.firm_id == user.firm_id,
        ClientAssignment.team_member_id == user.id,
    )


def managed_client_ids(user: UserContext):
    """Sub-select of client ids whose project manager is the caller."""
    return select(Client.id).where(
        Client.firm_id == user.firm_id,
        Client.managed_by_id == user.id,
    )


def _service_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES:
        return true()
    if user.role == UserRole.PROJECT_MANAGER:
        return or_(
            Service.project_manager_id == user.id,
            Service.client_id.in_(managed_client_ids(user)),
            Service.current_assignee_id == user.id,
        )
    if user.role == UserRole.TEAM_MEMBER:
        return or_(
            Service.client_id.in_(assigned_client_ids(user)),
            Service.current_assignee_id == user.id,
        )
    if user.role == UserRole.CLIENT:
        return Service.client_id == user.id
    return false()


def visible_service_ids(user: UserContext):
    """Sub-select of the service ids the caller can see."""
    return select(Service.id).where(
        Service.firm_id == user.firm_id,
        _service_scope(user),
    )


def _task_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES:
        return true()
    in_visible_services = Task.service_id.in_(visible_service_ids(user))
    if user.role == UserRole.TEAM_MEMBER:
        return or_(Task.assigned_to_id == user.id, in_visible_services)
    return in_visible_services


def _invoice_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES:
        return true()
    if user.role == UserRole.PROJECT_MANAGER:
        return or_(
            Invoice.client_id.in_(managed_client_ids(user)),
            Invoice.service_id.in_(visible_service_ids(user)),
        )
    if user.role == UserRole.TEAM_MEMBER:
        return Invoice.client_id.in_(assigned_client_ids(user))
    if user.role == UserRole.CLIENT:
        return Invoice.client_id == user.id
    return false()


def _service_request_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES:
        return true()
    if user.role == UserRole.PROJECT_MANAGER:
        return ServiceRequest.client_id.in_(managed_client_ids(user))
    if user.role == UserRole.TEAM_MEMBER:
        return ServiceRequest.client_id.in_(assigned_client_ids(user))
    if user.role == UserRole.CLIENT:
        return ServiceRequest.client_id == user.id
    return false()


def _client_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES or user.role == UserRole.PROJECT_MANAGER:
        scope = true()
    elif user.role == UserRole.TEAM_MEMBER:
        scope = Client.id.in_(assigned_client_ids(user))
    elif user.role == UserRole.CLIENT:
        scope = Client.id == user.id
    else:
        scope = false()
    return and_(scope, Client.deleted_at.is_(None))


def _document_scope(user: UserContext) -> ColumnElement[bool]:
    if user.role in ADMIN_ROLES or user.role == UserRole.PROJECT_MANAGER:
        scope = true()
    elif user.role == UserRole.TEAM_MEMBER:
        scope = or_(
            and_(
                Document.uploaded_by_role == UserRole.TEAM_MEMBER,
                Document.uploaded_by_id == user.id,
            ),
            Document.team_member_id == user.id,
            Document.client_id.in_(assigned_client_ids(user)),
        )
    elif user.role == UserRole.CLIENT:
        scope = Document.client_id == user.id
    else:
        scope = false()

    hidden_for_role = exists().where(
        DocumentHiddenRole.document_id == Document.id,
        DocumentHiddenRole.role == user.role,
    )
    return and_(scope, Document.is_deleted.is_(False), ~hidden_for_role)


_SCOPES = {
    ResourceKind.DOCUMENT: _document_scope,
    ResourceKind.SERVICE: _service_scope,
    ResourceKind.TASK: _task_scope,
    ResourceKind.INVOICE: _invoice_scope,
    ResourceKind.CLIENT: _client_scope,
    ResourceKind.SERVICE_REQUEST: _service_request_scope,
}


# === PUBLIC API ===

def visibility_clause(user: UserContext, kind: ResourceKind) -> ColumnElement[bool]:
    """
    Composable WHERE clause for what `user` may see of `kind`.

    Always includes the firm restriction, so it is safe to use on its own.
    """
    model = RESOURCE_MODELS[kind]
    return and_(model.firm_id == user.firm_id, _SCOPES[kind](user))


async def ensure_visible(
    db: AsyncSession,
    user: UserContext,
    kind: ResourceKind,
    resource_id: uuid.UUID,
) -> Any:
    """
    Loads one row through the visibility clause.

    Rows outside the caller's scope are reported exactly like missing rows.
    """
    model = RESOURCE_MODELS[kind]
    result = await db.execute(
        select(model).where(model.id == resource_id, visibility_clause(user, kind))
    )
    instance = result.scalar_one_or_none()
    if instance is None:
        raise ResourceNotFoundError(RESOURCE_LABELS[kind], resource_id)
    return instance


async def is_client_assigned(
    db: AsyncSession,
    user: UserContext,
    client_id: uuid.UUID,
) -> bool:
    """True when a team member is assigned to the given client."""
    result = await db.execute(
        select(ClientAssignment.id).where(
            ClientAssignment.firm_id == user.firm_id,
            ClientAssignment.team_member_id == user.id,
            ClientAssignment.client_id == client_id,
        )
    )
    return result.first() is not None
