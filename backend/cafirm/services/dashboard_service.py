"""
Dashboard service: role-appropriate counters, all computed through the
visibility clause.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import UserContext
from cafirm.models.accounts import MANAGER_ROLES, UserRole
from cafirm.repositories.account_repository import AccountRepository, ClientRepository
from cafirm.repositories.document_repository import DocumentRepository
from cafirm.repositories.service_repository import ServiceRepository
from cafirm.repositories.task_repository import TaskRepository
from cafirm.schemas.activity import ActivityLogResponse, DashboardSummary
from cafirm.services.activity_service import ActivityService
from cafirm.services.invoice_service import InvoiceService

RECENT_ACTIVITY_LIMIT = 10


class DashboardService:
    def __init__(self, db: AsyncSession, firm_id: UUID):
        self._db = db
        self._firm_id = firm_id

    async def summary(self, user: UserContext) -> DashboardSummary:
        services = ServiceRepository(self._db, self._firm_id)
        by_status = await services.count_by_status(user)

        summary = DashboardSummary(
            role=user.role,
            services_by_status={status.value: count for status, count in by_status.items()},
            services_total=sum(by_status.values()),
            services_overdue=await services.count_overdue(user, date.today()),
            open_tasks=await TaskRepository(self._db, self._firm_id).count_open(user),
            documents_pending_review=await DocumentRepository(self._db, self._firm_id).count_pending_review(user),
        )

        if user.is_staff:
            summary.clients = await ClientRepository(self._db, self._firm_id).count_visible(user)

        if user.is_admin:
            summary.team_members = await AccountRepository(
                UserRole.TEAM_MEMBER, self._db, self._firm_id
            ).count_active()

        if user.role in MANAGER_ROLES:
            stats = await InvoiceService(self._db, self._firm_id).invoice_stats(user)
            summary.invoices_by_status = stats.by_status
            summary.outstanding_amount = stats.outstanding_amount

            entries, _ = await ActivityService(self._db, self._firm_id).list_for(
                user, limit=RECENT_ACTIVITY_LIMIT
            )
            summary.recent_activity = [ActivityLogResponse.model_validate(e) for e in entries]

        return summary
