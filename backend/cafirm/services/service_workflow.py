"""
Service workflow.

Creates and edits services and moves them through SERVICE_TRANSITIONS.
Every status change writes a history row and an activity entry, pushes an SSE
event to the accounts that can see the service, and e-mails the client on a
best-effort basis.
"""

from datetime import date
from typing import Callable
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    BusinessRuleError,
    InsufficientPermissionsError,
    InvalidStatusTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import ADMIN_ROLES, MANAGER_ROLES, Client, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.service import (
    Service,
    ServiceStatus,
    ServiceStatusHistory,
    ServiceType,
    allowed_transitions,
    can_transition,
)
from cafirm.realtime.sse import broadcaster
from cafirm.repositories.account_repository import AccountRepository, ClientRepository
from cafirm.repositories.assignment_repository import ClientAssignmentRepository
from cafirm.repositories.service_repository import (
    ServiceRepository,
    ServiceStatusHistoryRepository,
)
from cafirm.schemas.service import (
    ServiceBoard,
    ServiceCreate,
    ServiceResponse,
    ServiceStats,
    ServiceUpdate,
)
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService

logger = structlog.get_logger()

# Named actions and the status each one moves to
SERVICE_ACTIONS: dict[str, ServiceStatus] = {
    "assign": ServiceStatus.ASSIGNED,
    "start": ServiceStatus.IN_PROGRESS,
    "request_documents": ServiceStatus.WAITING_FOR_CLIENT,
    "hold": ServiceStatus.ON_HOLD,
    "resume": ServiceStatus.IN_PROGRESS,
    "submit_for_review": ServiceStatus.UNDER_REVIEW,
    "request_changes": ServiceStatus.CHANGES_REQUESTED,
    "approve": ServiceStatus.COMPLETED,
    "deliver": ServiceStatus.DELIVERED,
    "mark_invoiced": ServiceStatus.INVOICED,
    "close": ServiceStatus.CLOSED,
    "cancel": ServiceStatus.CANCELLED,
}

REASON_REQUIRED_ACTIONS = frozenset({"cancel", "hold"})

TEAM_MEMBER_ACTIONS = frozenset({
    "start",
    "request_documents",
    "hold",
    "resume",
    "submit_for_review",
})
TEAM_MEMBER_TARGETS = frozenset(SERVICE_ACTIONS[a] for a in TEAM_MEMBER_ACTIONS)

ASSIGNABLE_ROLES = (UserRole.PROJECT_MANAGER, UserRole.TEAM_MEMBER)

# Kanban columns; cancelled services are left off the board
BOARD_COLUMNS: dict[str, tuple[ServiceStatus, ...]] = {
    "pending": (ServiceStatus.PENDING, ServiceStatus.ASSIGNED),
    "in_progress": (
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.ON_HOLD,
        ServiceStatus.CHANGES_REQUESTED,
    ),
    "under_review": (ServiceStatus.UNDER_REVIEW,),
    "completed": (
        ServiceStatus.COMPLETED,
        ServiceStatus.DELIVERED,
        ServiceStatus.INVOICED,
        ServiceStatus.CLOSED,
    ),
}


class ServiceWorkflowService:
    """
    Service lifecycle.

    Reads go through the visibility clause; rows outside the caller's
    scope raise ResourceNotFoundError.
    """

    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = ServiceRepository(db, firm_id)
        self._history_repo = ServiceStatusHistoryRepository(db, firm_id)
        self._clients = ClientRepository(db, firm_id)
        self._assignments = ClientAssignmentRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)
        self._email = email_service or EmailService()

    # === SERVICES ===

    async def create_service(
        self,
        user: UserContext,
        data: ServiceCreate,
        history_action: str = "CREATE",
        history_reason: str | None = None,
        on_created: Callable[[Service], None] | None = None,
    ) -> Service:
        """
        Creates a PENDING service for a client.

        A project manager creating a service becomes its manager; otherwise
        the client's manager is used. `on_created` runs before the commit, so
        whatever it changes is saved in the same transaction.
        """
        self._require_manager(user, "create services")

        client = await self._clients.get_live(data.client_id)
        if client is None:
            raise ResourceNotFoundError("Client", data.client_id)

        if user.role == UserRole.PROJECT_MANAGER:
            project_manager_id = user.id
        else:
            project_manager_id = client.managed_by_id

        service = Service(
            **data.model_dump(exclude={"client_id", "assignee_id", "assignee_role"}),
            client_id=client.id,
            project_manager_id=project_manager_id,
            status=ServiceStatus.PENDING,
            created_by_id=user.id,
            created_by_role=user.role,
        )
        await self._repo.add(service)
        await self._history_repo.add(
            ServiceStatusHistory(
                service_id=service.id,
                from_status=None,
                to_status=ServiceStatus.PENDING,
                action=history_action,
                reason=history_reason,
                changed_by_id=user.id,
                changed_by_role=user.role,
            )
        )
        if on_created is not None:
            on_created(service)
        await self._db.commit()
        await self._db.refresh(service)

        logger.info(
            "Service created",
            service_id=str(service.id),
            client_id=str(client.id),
            type=service.type.value,
        )
        await self._activity.record(
            user,
            ActivityAction.SERVICE_CREATED,
            "service",
            service.id,
            service.title,
            {"client_id": str(client.id), "type": service.type.value, "origin": service.origin.value},
        )

        if data.assignee_id:
            service = await self.assign_service(
                user,
                service.id,
                data.assignee_id,
                data.assignee_role or UserRole.TEAM_MEMBER,
            )

        return service

    async def get_service(self, user: UserContext, service_id: UUID) -> Service:
        return await ensure_visible(self._db, user, ResourceKind.SERVICE, service_id)

    async def list_services(
        self,
        user: UserContext,
        status: ServiceStatus | None = None,
        type: ServiceType | None = None,
        client_id: UUID | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Service], int]:
        return await self._repo.list_visible(
            user,
            status=status,
            type=type,
            client_id=client_id,
            search=search,
            skip=skip,
            limit=limit,
        )

    async def services_by_status(self, user: UserContext) -> ServiceBoard:
        """Visible services grouped into Kanban columns."""
        services = await self._repo.all_visible(user, exclude={ServiceStatus.CANCELLED})
        columns: dict[str, list[ServiceResponse]] = {name: [] for name in BOARD_COLUMNS}
        for service in services:
            for name, statuses in BOARD_COLUMNS.items():
                if service.status in statuses:
                    columns[name].append(ServiceResponse.model_validate(service))
                    break
        return ServiceBoard(**columns)

    async def service_stats(self, user: UserContext) -> ServiceStats:
        counts = await self._repo.count_by_status(user)
        overdue = await self._repo.count_overdue(user, date.today())
        return ServiceStats(
            total=sum(counts.values()),
            by_status={status.value: counts.get(status, 0) for status in ServiceStatus},
            overdue=overdue,
        )

    async def update_service(
        self,
        user: UserContext,
        service_id: UUID,
        data: ServiceUpdate,
    ) -> Service:
        """Edits fields. Status is only changed through change_status."""
        self._require_manager(user, "edit services")
        service = await self.get_service(user, service_id)

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("project_manager_id"):
            manager = await AccountRepository(
                UserRole.PROJECT_MANAGER, self._db, self._firm_id
            ).get_active(update_data["project_manager_id"])
            if manager is None:
                raise ValidationError("Unknown project manager", field="project_manager_id")

        for field, value in update_data.items():
            setattr(service, field, value)
        await self._db.commit()
        await self._db.refresh(service)

        logger.info(
            "Service updated",
            service_id=str(service_id),
            fields=list(update_data.keys()),
        )
        await self._activity.record(
            user,
            ActivityAction.SERVICE_UPDATED,
            "service",
            service.id,
            service.title,
            {"fields": list(update_data.keys())},
        )
        return service

    async def delete_service(
        self,
        user: UserContext,
        service_id: UUID,
        reason: str | None = None,
    ) -> Service:
        """Soft delete: the service is cancelled and stays in the history."""
        self._require_manager(user, "delete services")
        service = await self.get_service(user, service_id)
        if service.is_terminal:
            raise BusinessRuleError(
                f"Service is already {service.status.value}",
                rule="service_terminal",
            )
        return await self._transition(
            user,
            service,
            ServiceStatus.CANCELLED,
            action="delete",
            reason=reason or "Service deleted",
        )

    # === STATUS ===

    async def change_status(
        self,
        user: UserContext,
        service_id: UUID,
        new_status: ServiceStatus,
        reason: str | None = None,
    ) -> Service:
        """
        Moves a service to new_status.

        Raises:
            InsufficientPermissionsError: role may not make this change
            InvalidStatusTransitionError: not allowed by SERVICE_TRANSITIONS
        """
        if user.role == UserRole.CLIENT:
            raise InsufficientPermissionsError("change service status")
        if user.role == UserRole.TEAM_MEMBER and new_status not in TEAM_MEMBER_TARGETS:
            raise InsufficientPermissionsError(f"move a service to {new_status.value}")

        service = await self.get_service(user, service_id)
        return await self._transition(user, service, new_status, "STATUS_CHANGE", reason)

    async def perform_action(
        self,
        user: UserContext,
        service_id: UUID,
        action: str,
        reason: str | None = None,
    ) -> Service:
        """Runs a named action such as start, hold or approve."""
        target = SERVICE_ACTIONS.get(action)
        if target is None:
            raise ValidationError(f"Unknown service action '{action}'", field="action")
        if action in REASON_REQUIRED_ACTIONS and not (reason and reason.strip()):
            raise ValidationError(f"A reason is required to {action} a service", field="reason")
        if user.role == UserRole.CLIENT:
            raise InsufficientPermissionsError("change service status")
        if user.role == UserRole.TEAM_MEMBER and action not in TEAM_MEMBER_ACTIONS:
            raise InsufficientPermissionsError(f"{action} a service")

        service = await self.get_service(user, service_id)
        return await self._transition(user, service, target, action, reason)

    async def assign_service(
        self,
        user: UserContext,
        service_id: UUID,
        assignee_id: UUID,
        assignee_role: UserRole = UserRole.TEAM_MEMBER,
    ) -> Service:
        """Hands a PENDING or ASSIGNED service to a project manager or team member."""
        self._require_manager(user, "assign services")
        if assignee_role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "Services can only be assigned to project managers or team members",
                field="assignee_role",
            )

        assignee = await AccountRepository(assignee_role, self._db, self._firm_id).get_active(assignee_id)
        if assignee is None:
            raise ResourceNotFoundError(assignee_role.value.replace("_", " ").title(), assignee_id)

        service = await self.get_service(user, service_id)
        if service.status not in (ServiceStatus.PENDING, ServiceStatus.ASSIGNED):
            raise BusinessRuleError(
                f"Only pending or assigned services can be assigned (status is {service.status.value})",
                rule="service_assignable",
            )

        service.current_assignee_id = assignee.id
        service.current_assignee_role = assignee_role

        if service.status == ServiceStatus.ASSIGNED:
            # Reassignment keeps the status; only the assignee changes
            await self._db.commit()
            await self._db.refresh(service)
        else:
            service = await self._transition(
                user,
                service,
                ServiceStatus.ASSIGNED,
                "assign",
                f"Assigned to {assignee.name}",
            )

        await self._activity.record(
            user,
            ActivityAction.SERVICE_ASSIGNED,
            "service",
            service.id,
            service.title,
            {
                "assignee_id": str(assignee.id),
                "assignee_name": assignee.name,
                "assignee_role": assignee_role.value,
            },
        )
        return service

    async def status_history(self, user: UserContext, service_id: UUID) -> list[ServiceStatusHistory]:
        await self.get_service(user, service_id)
        return await self._history_repo.for_service(service_id)

    # === HELPERS ===

    def _require_manager(self, user: UserContext, action: str) -> None:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError(action)

    async def _service_audience(self, service: Service, client: Client | None) -> list[UUID | None]:
        """Accounts outside the admin roles that can see the service."""
        audience = [
            service.client_id,
            service.project_manager_id,
            service.current_assignee_id,
            client.managed_by_id if client else None,
        ]
        audience += await self._assignments.team_member_ids_for_client(service.client_id)
        return audience

    async def _transition(
        self,
        user: UserContext,
        service: Service,
        new_status: ServiceStatus,
        action: str,
        reason: str | None = None,
    ) -> Service:
        old_status = service.status
        if not can_transition(old_status, new_status):
            raise InvalidStatusTransitionError(
                old_status.value,
                new_status.value,
                [s.value for s in allowed_transitions(old_status)],
            )

        now = utcnow()
        service.status = new_status
        if new_status == ServiceStatus.IN_PROGRESS and service.started_at is None:
            service.started_at = now
        if new_status == ServiceStatus.COMPLETED:
            service.completed_at = now

        await self._history_repo.add(
            ServiceStatusHistory(
                service_id=service.id,
                from_status=old_status,
                to_status=new_status,
                action=action,
                reason=reason,
                changed_by_id=user.id,
                changed_by_role=user.role,
            )
        )
        await self._db.commit()
        await self._db.refresh(service)

        logger.info(
            "Service status changed",
            service_id=str(service.id),
            old_status=old_status.value,
            new_status=new_status.value,
            action=action,
        )

        await self._activity.record(
            user,
            ActivityAction.SERVICE_STATUS_UPDATED,
            "service",
            service.id,
            service.title,
            {
                "old_status": old_status.value,
                "new_status": new_status.value,
                "action": action,
                "reason": reason,
            },
        )

        client = await self._clients.get_live(service.client_id)
        await broadcaster.broadcast_to_audience(
            self._firm_id,
            "service-status-changed",
            {
                "service_id": service.id,
                "title": service.title,
                "client_id": service.client_id,
                "old_status": old_status.value,
                "new_status": new_status.value,
                "changed_by": user.id,
                "changed_by_role": user.role.value,
                "reason": reason,
            },
            roles=ADMIN_ROLES,
            user_ids=await self._service_audience(service, client),
        )

        if client is not None:
            await self._email.send_service_status_email(
                client.email,
                client.name,
                service.title,
                old_status.value,
                new_status.value,
            )

        return service
