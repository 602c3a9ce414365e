"""
Service request service.

Clients ask for work; managers convert requests into services or reject
them. Converting goes through ServiceWorkflowService.create_service, so the
new service gets the usual history row and activity entry.
"""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import BusinessRuleError, InsufficientPermissionsError
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import ADMIN_ROLES, MANAGER_ROLES, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.service import Service, ServiceOrigin, ServiceType
from cafirm.models.service_request import RequestStatus, ServiceRequest
from cafirm.realtime.sse import broadcaster
from cafirm.repositories.account_repository import ClientRepository
from cafirm.repositories.service_request_repository import ServiceRequestRepository
from cafirm.schemas.service import ServiceCreate
from cafirm.schemas.service_request import (
    ServiceRequestApprove,
    ServiceRequestCreate,
    ServiceRequestStats,
)
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService
from cafirm.services.service_workflow import ServiceWorkflowService

logger = structlog.get_logger()


class ServiceRequestService:
    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = ServiceRequestRepository(db, firm_id)
        self._clients = ClientRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)
        self._email = email_service or EmailService()

    async def create_request(self, user: UserContext, data: ServiceRequestCreate) -> ServiceRequest:
        """A client asks the firm for a service."""
        if user.role != UserRole.CLIENT:
            raise InsufficientPermissionsError("create service requests")

        request = await self._repo.create(
            **data.model_dump(),
            client_id=user.id,
            status=RequestStatus.PENDING,
        )

        logger.info(
            "Service request created",
            request_id=str(request.id),
            client_id=str(user.id),
            urgency=request.urgency.value,
        )
        await self._activity.record(
            user,
            ActivityAction.SERVICE_REQUEST_CREATED,
            "service_request",
            request.id,
            request.title,
            {"service_type": request.service_type.value, "urgency": request.urgency.value},
        )

        client = await self._clients.get_live(user.id)
        await broadcaster.broadcast_to_audience(
            self._firm_id,
            "service-request-created",
            {
                "request_id": request.id,
                "title": request.title,
                "client_id": request.client_id,
                "urgency": request.urgency.value,
            },
            roles=ADMIN_ROLES,
            user_ids=[client.managed_by_id if client else None],
        )
        return request

    async def get_request(self, user: UserContext, request_id: UUID) -> ServiceRequest:
        return await ensure_visible(self._db, user, ResourceKind.SERVICE_REQUEST, request_id)

    async def list_requests(
        self,
        user: UserContext,
        status: RequestStatus | None = None,
        service_type: ServiceType | None = None,
        client_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[ServiceRequest], int]:
        return await self._repo.list_visible(
            user,
            status=status,
            service_type=service_type,
            client_id=client_id,
            skip=skip,
            limit=limit,
        )

    async def request_stats(self, user: UserContext) -> ServiceRequestStats:
        counts = await self._repo.count_by_status(user)
        return ServiceRequestStats(
            total=sum(counts.values()),
            by_status={status.value: counts.get(status, 0) for status in RequestStatus},
        )

    async def approve_request(
        self,
        user: UserContext,
        request_id: UUID,
        data: ServiceRequestApprove,
    ) -> tuple[ServiceRequest, Service]:
        """
        Converts a pending request into a PENDING service.

        The quoted fee and due date fall back to what the request carries.
        """
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("approve service requests")
        request = await self._pending_request(user, request_id)

        def mark_converted(service: Service) -> None:
            request.status = RequestStatus.CONVERTED
            request.service_id = service.id
            request.approval_notes = data.approval_notes
            if data.quoted_fee is not None:
                request.quoted_fee = data.quoted_fee
            self._mark_reviewed(user, request)

        workflow = ServiceWorkflowService(self._db, self._firm_id, email_service=self._email)
        service = await workflow.create_service(
            user,
            ServiceCreate(
                client_id=request.client_id,
                title=request.title,
                description=request.description,
                type=request.service_type,
                financial_year=request.financial_year,
                assessment_year=request.assessment_year,
                due_date=data.due_date or request.preferred_due_date,
                fee_amount=data.quoted_fee if data.quoted_fee is not None else request.quoted_fee,
                origin=ServiceOrigin.CLIENT_REQUEST,
            ),
            history_action="CREATE_FROM_REQUEST",
            history_reason=f"Created from service request: {request.title}",
            on_created=mark_converted,
        )
        await self._db.refresh(request)

        logger.info(
            "Service request converted",
            request_id=str(request.id),
            service_id=str(service.id),
        )
        await self._activity.record(
            user,
            ActivityAction.SERVICE_REQUEST_CONVERTED,
            "service_request",
            request.id,
            request.title,
            {"service_id": str(service.id)},
        )
        await self._notify_client(request, accepted=True, note=data.approval_notes)
        return request, service

    async def reject_request(self, user: UserContext, request_id: UUID, reason: str) -> ServiceRequest:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("reject service requests")
        request = await self._pending_request(user, request_id)

        request.status = RequestStatus.REJECTED
        request.rejection_reason = reason
        self._mark_reviewed(user, request)
        await self._db.commit()
        await self._db.refresh(request)

        logger.info("Service request rejected", request_id=str(request.id))
        await self._activity.record(
            user,
            ActivityAction.SERVICE_REQUEST_REJECTED,
            "service_request",
            request.id,
            request.title,
            {"reason": reason},
        )
        await self._notify_client(request, accepted=False, note=reason)
        return request

    async def cancel_request(self, user: UserContext, request_id: UUID) -> ServiceRequest:
        """The requesting client withdraws a pending request."""
        if user.role != UserRole.CLIENT:
            raise InsufficientPermissionsError("cancel service requests")
        request = await self._pending_request(user, request_id)

        request.status = RequestStatus.CANCELLED
        await self._db.commit()
        await self._db.refresh(request)

        logger.info("Service request cancelled", request_id=str(request.id))
        await self._activity.record(
            user,
            ActivityAction.SERVICE_REQUEST_CANCELLED,
            "service_request",
            request.id,
            request.title,
        )
        return request

    # === HELPERS ===

    async def _pending_request(self, user: UserContext, request_id: UUID) -> ServiceRequest:
        request = await self.get_request(user, request_id)
        if not request.is_pending:
            raise BusinessRuleError(
                f"Service request is already {request.status.value}",
                rule="request_pending",
            )
        return request

    @staticmethod
    def _mark_reviewed(user: UserContext, request: ServiceRequest) -> None:
        request.reviewed_by_id = user.id
        request.reviewed_by_role = user.role
        request.reviewed_at = utcnow()

    async def _notify_client(self, request: ServiceRequest, accepted: bool, note: str | None) -> None:
        await broadcaster.send_to_user(
            request.client_id,
            "service-request-updated",
            {
                "request_id": request.id,
                "status": request.status.value,
                "service_id": request.service_id,
            },
        )
        client = await self._clients.get_live(request.client_id)
        if client is not None:
            await self._email.send_service_request_email(
                client.email,
                client.name,
                request.title,
                accepted,
                note,
            )
