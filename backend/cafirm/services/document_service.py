"""
Document service.

Uploads, downloads and the document lifecycle (review, soft delete, hiding,
hard delete). Files are kept by StorageService; this service owns the rows.
"""

from collections import defaultdict
from pathlib import Path
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    InsufficientPermissionsError,
    ResourceNotFoundError,
    ValidationError,
)
from cafirm.core.storage import StorageService
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import ADMIN_ROLES, MANAGER_ROLES, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.document import (
    Document,
    DocumentHiddenRole,
    DocumentStatus,
    DocumentType,
)
from cafirm.realtime.sse import broadcaster
from cafirm.repositories.account_repository import AccountRepository, ClientRepository
from cafirm.repositories.assignment_repository import ClientAssignmentRepository
from cafirm.repositories.document_repository import DocumentRepository
from cafirm.schemas.document import DocumentGroup, DocumentHierarchy, DocumentResponse
from cafirm.services.activity_service import ActivityService

logger = structlog.get_logger()


def _group(owner_id: UUID, owner_name: str, owner_kind: str, documents: list[Document]) -> DocumentGroup:
    by_type: dict[str, list[DocumentResponse]] = defaultdict(list)
    for document in documents:
        by_type[document.document_type.value].append(DocumentResponse.model_validate(document))
    return DocumentGroup(
        owner_id=owner_id,
        owner_name=owner_name,
        owner_kind=owner_kind,
        total=len(documents),
        by_type=dict(by_type),
    )


class DocumentService:
    """
    Document operations.

    Usage:
        service = DocumentService(db, user.firm_id)
        document = await service.upload(user, content, "pan.pdf", "application/pdf",
                                        DocumentType.PAN_CARD, client_id=cid)
    """

    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        storage: StorageService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = DocumentRepository(db, firm_id)
        self._storage = storage or StorageService()
        self._activity = ActivityService(db, firm_id)
        self._assignments = ClientAssignmentRepository(db, firm_id)

    # === UPLOAD ===

    async def upload(
        self,
        user: UserContext,
        content: bytes,
        file_name: str | None,
        mime_type: str | None,
        document_type: DocumentType = DocumentType.OTHER,
        client_id: UUID | None = None,
        service_id: UUID | None = None,
        description: str | None = None,
    ) -> Document:
        """
        Stores a document for a client.

        Clients always upload for themselves. Staff name the client, which
        must be visible to them (for team members: assigned).
        """
        if user.role == UserRole.CLIENT:
            client_id = user.id
        elif client_id is None:
            raise ValidationError("client_id is required", field="client_id")
        else:
            await ensure_visible(self._db, user, ResourceKind.CLIENT, client_id)

        if service_id is not None:
            service = await ensure_visible(self._db, user, ResourceKind.SERVICE, service_id)
            if service.client_id != client_id:
                raise ValidationError("Service belongs to another client", field="service_id")

        return await self._store(
            user,
            content,
            file_name,
            mime_type,
            document_type,
            client_id=client_id,
            team_member_id=user.id if user.role == UserRole.TEAM_MEMBER else None,
            service_id=service_id,
            description=description,
        )

    async def upload_self(
        self,
        user: UserContext,
        content: bytes,
        file_name: str | None,
        mime_type: str | None,
        document_type: DocumentType = DocumentType.OTHER,
        description: str | None = None,
    ) -> Document:
        """A team member's own document, not tied to a client."""
        if user.role != UserRole.TEAM_MEMBER:
            raise InsufficientPermissionsError("upload personal documents")

        return await self._store(
            user,
            content,
            file_name,
            mime_type,
            document_type,
            client_id=None,
            team_member_id=user.id,
            service_id=None,
            description=description,
        )

    # === READ ===

    async def get_document(self, user: UserContext, document_id: UUID) -> Document:
        return await ensure_visible(self._db, user, ResourceKind.DOCUMENT, document_id)

    async def list_documents(
        self,
        user: UserContext,
        client_id: UUID | None = None,
        service_id: UUID | None = None,
        document_type: DocumentType | None = None,
        status: DocumentStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Document], int]:
        return await self._repo.list_visible(
            user,
            client_id=client_id,
            service_id=service_id,
            document_type=document_type,
            status=status,
            skip=skip,
            limit=limit,
        )

    async def locate(self, user: UserContext, document_id: UUID) -> tuple[Document, Path]:
        """The document row and the file on disk, for downloads."""
        document = await self.get_document(user, document_id)
        return document, self._storage.resolve(document.storage_path)

    async def hierarchy(self, user: UserContext, team_member_id: UUID | None = None) -> DocumentHierarchy:
        """
        A team member's own documents, then one group per assigned client.

        Team members always get their own view; managers pass the team
        member they want to look at.
        """
        if user.role == UserRole.TEAM_MEMBER:
            team_member_id = user.id
        elif user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("view the document hierarchy")
        elif team_member_id is None:
            raise ValidationError("team_member_id is required", field="team_member_id")

        team_member = await AccountRepository(
            UserRole.TEAM_MEMBER, self._db, self._firm_id
        ).get_by_id(team_member_id)
        if team_member is None or team_member.is_deleted:
            raise ValidationError("Unknown team member", field="team_member_id")

        own = [
            document
            for document in await self._repo.visible_for_owner(user, team_member_id=team_member_id)
            if document.client_id is None
        ]

        groups = []
        clients = await ClientRepository(self._db, self._firm_id).list_for_team_member(team_member_id)
        for client in clients:
            documents = await self._repo.visible_for_owner(user, client_id=client.id)
            groups.append(_group(client.id, client.name, "client", documents))

        return DocumentHierarchy(
            own=_group(team_member.id, team_member.name, "team_member", own),
            clients=groups,
        )

    # === LIFECYCLE ===

    async def update_status(
        self,
        user: UserContext,
        document_id: UUID,
        status: DocumentStatus,
    ) -> Document:
        """Review outcome. Clients cannot review documents."""
        if not user.is_staff:
            raise InsufficientPermissionsError("review documents")

        document = await self.get_document(user, document_id)
        old_status = document.status
        document.status = status
        document.approved_at = utcnow() if status == DocumentStatus.APPROVED else None
        await self._db.commit()
        await self._db.refresh(document)

        logger.info(
            "Document status changed",
            document_id=str(document.id),
            old_status=old_status.value,
            new_status=status.value,
        )
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_STATUS_UPDATED,
            "document",
            document.id,
            document.file_name,
            {"old_status": old_status.value, "new_status": status.value},
        )
        return document

    async def soft_delete(self, user: UserContext, document_id: UUID) -> Document:
        """
        Marks a document deleted for everyone.

        Managers may delete any visible document; other roles only their
        own uploads.
        """
        document = await self.get_document(user, document_id)
        if user.role not in MANAGER_ROLES and document.uploaded_by_id != user.id:
            raise InsufficientPermissionsError("delete documents uploaded by someone else")

        document.is_deleted = True
        document.deleted_at = utcnow()
        document.deleted_by_id = user.id
        await self._db.commit()

        logger.info("Document soft deleted", document_id=str(document.id))
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_DELETED,
            "document",
            document.id,
            document.file_name,
            {"hard": False},
        )
        return document

    async def hide(self, user: UserContext, document_id: UUID) -> None:
        """Hides a document from the caller's role only."""
        document = await self.get_document(user, document_id)
        if await self._repo.is_hidden_for(document.id, user.role):
            return

        self._db.add(
            DocumentHiddenRole(
                firm_id=self._firm_id,
                document_id=document.id,
                role=user.role,
                hidden_by_id=user.id,
            )
        )
        await self._db.commit()

        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_HIDDEN,
            "document",
            document.id,
            document.file_name,
            {"role": user.role.value},
        )

    async def hard_delete(self, user: UserContext, document_id: UUID) -> None:
        """Removes the file and then the row. Admins only."""
        if user.role not in ADMIN_ROLES:
            raise InsufficientPermissionsError("permanently delete documents")

        # Firm scoped only, so soft deleted rows can be purged too
        document = await self._repo.get_by_id(document_id)
        if document is None:
            raise ResourceNotFoundError("Document", document_id)

        removed = await self._storage.delete(document.storage_path)
        file_name = document.file_name
        await self._db.delete(document)
        await self._db.commit()

        logger.info("Document hard deleted", document_id=str(document_id), file_removed=removed)
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_DELETED,
            "document",
            document_id,
            file_name,
            {"hard": True, "file_removed": removed},
        )

    # === HELPERS ===

    async def _store(
        self,
        user: UserContext,
        content: bytes,
        file_name: str | None,
        mime_type: str | None,
        document_type: DocumentType,
        client_id: UUID | None,
        team_member_id: UUID | None,
        service_id: UUID | None,
        description: str | None,
    ) -> Document:
        clean_name = self._storage.sanitize_filename(file_name)
        stored = await self._storage.save(
            content,
            clean_name,
            mime_type,
            client_id=client_id,
            team_member_id=team_member_id,
        )

        try:
            document = await self._repo.create(
                file_name=clean_name,
                mime_type=mime_type,
                file_size=stored.size,
                storage_path=stored.storage_path,
                sha256=stored.sha256,
                document_type=document_type,
                description=description,
                client_id=client_id,
                team_member_id=team_member_id,
                service_id=service_id,
                uploaded_by_role=user.role,
                uploaded_by_id=user.id,
            )
        except SQLAlchemyError:
            await self._db.rollback()
            await self._storage.delete(stored.storage_path)
            raise

        logger.info(
            "Document uploaded",
            document_id=str(document.id),
            client_id=str(client_id) if client_id else None,
            team_member_id=str(team_member_id) if team_member_id else None,
            size_bytes=stored.size,
        )
        await self._activity.record(
            user,
            ActivityAction.DOCUMENT_UPLOADED,
            "document",
            document.id,
            document.file_name,
            {
                "document_type": document.document_type.value,
                "client_id": str(client_id) if client_id else None,
            },
        )
        audience = [client_id, team_member_id, user.id]
        if client_id:
            audience += await self._assignments.team_member_ids_for_client(client_id)
        await broadcaster.broadcast_to_audience(
            self._firm_id,
            "document-uploaded",
            {
                "document_id": document.id,
                "file_name": document.file_name,
                "document_type": document.document_type.value,
                "client_id": client_id,
                "team_member_id": team_member_id,
                "uploaded_by": user.id,
                "uploaded_by_role": user.role.value,
            },
            roles=MANAGER_ROLES,
            user_ids=audience,
        )
        return document
