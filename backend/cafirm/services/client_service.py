"""
Client service.

Client accounts, their project manager and the team members assigned to
them.
"""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    InsufficientPermissionsError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    ValidationError,
)
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    Client,
    TeamMember,
    UserRole,
)
from cafirm.models.activity import ActivityAction
from cafirm.models.assignment import ClientAssignment
from cafirm.repositories.account_repository import (
    AccountRepository,
    ClientRepository,
    email_in_use,
)
from cafirm.repositories.assignment_repository import ClientAssignmentRepository
from cafirm.schemas.account import ClientCreate, ClientUpdate
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService
from cafirm.services.staff_service import ROLE_LABELS, initial_password

logger = structlog.get_logger()


class ClientService:
    """
    Client management.

    Listing and lookups use the visibility clause, so team members only
    ever see the clients assigned to them.
    """

    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = ClientRepository(db, firm_id)
        self._assignments = ClientAssignmentRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)
        self._email = email_service or EmailService()

    # === CLIENTS ===

    async def create_client(self, user: UserContext, data: ClientCreate) -> Client:
        """
        Creates a client account.

        A project manager creating a client becomes its manager.
        """
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("create clients")

        if await email_in_use(self._db, data.email):
            raise ResourceAlreadyExistsError("Account", "email", data.email)

        if user.role == UserRole.PROJECT_MANAGER:
            managed_by_id = user.id
        else:
            managed_by_id = data.managed_by_id
            if managed_by_id:
                await self._ensure_project_manager(managed_by_id)

        hashed_password, temporary_password = initial_password(data.password)
        client = await self._repo.create(
            **data.model_dump(exclude={"password", "managed_by_id"}),
            managed_by_id=managed_by_id,
            hashed_password=hashed_password,
            must_change_password=temporary_password is not None,
        )

        logger.info("Client created", client_id=str(client.id))
        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_CREATED,
            "client",
            client.id,
            client.name,
            {"email": client.email, "managed_by_id": str(managed_by_id) if managed_by_id else None},
        )
        await self._email.send_welcome_email(
            client.email,
            client.name,
            ROLE_LABELS[UserRole.CLIENT],
            temporary_password,
        )
        return client

    async def get_client(self, user: UserContext, client_id: UUID) -> Client:
        return await ensure_visible(self._db, user, ResourceKind.CLIENT, client_id)

    async def list_clients(
        self,
        user: UserContext,
        search: str | None = None,
        managed_by_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Client], int]:
        return await self._repo.list_visible(
            user,
            search=search,
            managed_by_id=managed_by_id,
            skip=skip,
            limit=limit,
        )

    async def update_client(
        self,
        user: UserContext,
        client_id: UUID,
        data: ClientUpdate,
    ) -> Client:
        """Managers edit any client; a client may edit its own profile but not its status."""
        update_data = data.model_dump(exclude_unset=True)
        if user.role == UserRole.CLIENT:
            if client_id != user.id:
                raise InsufficientPermissionsError("edit other clients")
            update_data.pop("is_active", None)
        elif user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("edit clients")

        client = await self.get_client(user, client_id)
        for field, value in update_data.items():
            setattr(client, field, value)
        await self._db.commit()
        await self._db.refresh(client)

        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_UPDATED,
            "client",
            client.id,
            client.name,
            {"fields": list(update_data.keys())},
        )
        return client

    async def delete_client(self, user: UserContext, client_id: UUID) -> None:
        """Soft delete. Documents, services and invoices are kept."""
        if user.role not in ADMIN_ROLES:
            raise InsufficientPermissionsError("delete clients")

        client = await self._repo.soft_delete(client_id, utcnow())
        if client is None:
            raise ResourceNotFoundError("Client", client_id)

        logger.info("Client deleted", client_id=str(client_id))
        await self._activity.record(user, ActivityAction.ACCOUNT_DELETED, "client", client.id, client.name)

    async def set_manager(
        self,
        user: UserContext,
        client_id: UUID,
        managed_by_id: UUID | None,
    ) -> Client:
        """Sets or clears the client's project manager."""
        if user.role not in ADMIN_ROLES:
            raise InsufficientPermissionsError("change a client's project manager")

        client = await self.get_client(user, client_id)
        if managed_by_id:
            await self._ensure_project_manager(managed_by_id)

        previous = client.managed_by_id
        client.managed_by_id = managed_by_id
        await self._db.commit()
        await self._db.refresh(client)

        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_UPDATED,
            "client",
            client.id,
            client.name,
            {
                "managed_by_id": str(managed_by_id) if managed_by_id else None,
                "previous_managed_by_id": str(previous) if previous else None,
            },
        )
        return client

    # === ASSIGNMENTS ===

    async def assign_team_member(
        self,
        user: UserContext,
        client_id: UUID,
        team_member_id: UUID,
    ) -> ClientAssignment:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("assign team members")

        client = await self.get_client(user, client_id)
        team_member = await self._team_member(team_member_id)

        if await self._assignments.get_pair(team_member.id, client.id):
            raise ResourceAlreadyExistsError("ClientAssignment", "team_member_id", str(team_member.id))

        assignment = await self._assignments.create(
            team_member_id=team_member.id,
            client_id=client.id,
            assigned_by_id=user.id,
            assigned_by_role=user.role,
        )

        logger.info(
            "Team member assigned to client",
            client_id=str(client.id),
            team_member_id=str(team_member.id),
        )
        await self._activity.record(
            user,
            ActivityAction.CLIENT_ASSIGNED,
            "client",
            client.id,
            client.name,
            {"team_member_id": str(team_member.id), "team_member_name": team_member.name},
        )
        return assignment

    async def unassign_team_member(
        self,
        user: UserContext,
        client_id: UUID,
        team_member_id: UUID,
    ) -> None:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("unassign team members")

        client = await self.get_client(user, client_id)
        assignment = await self._assignments.get_pair(team_member_id, client.id)
        if assignment is None:
            raise ResourceNotFoundError("ClientAssignment", team_member_id)

        await self._db.delete(assignment)
        await self._db.commit()

        await self._activity.record(
            user,
            ActivityAction.CLIENT_UNASSIGNED,
            "client",
            client.id,
            client.name,
            {"team_member_id": str(team_member_id)},
        )

    async def team_members_for_client(self, user: UserContext, client_id: UUID) -> list[TeamMember]:
        if not user.is_staff:
            raise InsufficientPermissionsError("view client assignments")
        client = await self.get_client(user, client_id)
        return await self._assignments.team_members_for_client(client.id)

    async def clients_for_team_member(self, user: UserContext, team_member_id: UUID) -> list[Client]:
        """Clients assigned to a team member. Team members may only ask about themselves."""
        if user.role == UserRole.TEAM_MEMBER:
            if team_member_id != user.id:
                raise InsufficientPermissionsError("view another team member's clients")
        elif user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("view team member assignments")

        await self._team_member(team_member_id)
        return await self._repo.list_for_team_member(team_member_id)

    # === HELPERS ===

    async def _team_member(self, team_member_id: UUID) -> TeamMember:
        repo = AccountRepository(UserRole.TEAM_MEMBER, self._db, self._firm_id)
        team_member = await repo.get_active(team_member_id)
        if team_member is None:
            raise ResourceNotFoundError("Team Member", team_member_id)
        return team_member

    async def _ensure_project_manager(self, project_manager_id: UUID) -> None:
        repo = AccountRepository(UserRole.PROJECT_MANAGER, self._db, self._firm_id)
        if await repo.get_active(project_manager_id) is None:
            raise ValidationError("Unknown project manager", field="managed_by_id")
