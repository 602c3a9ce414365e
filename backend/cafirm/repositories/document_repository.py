"""
Document repository.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.accounts import UserRole
from cafirm.models.document import (
    Document,
    DocumentHiddenRole,
    DocumentStatus,
    DocumentType,
)
from cafirm.repositories.base import MultiTenantRepository


class DocumentRepository(MultiTenantRepository[Document]):
    """Data access for document metadata."""

    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(Document, db, firm_id)

    async def list_visible(
        self,
        user: UserContext,
        client_id: UUID | None = None,
        service_id: UUID | None = None,
        document_type: DocumentType | None = None,
        status: DocumentStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Document], int]:
        query = select(Document).where(visibility_clause(user, ResourceKind.DOCUMENT))
        if client_id:
            query = query.where(Document.client_id == client_id)
        if service_id:
            query = query.where(Document.service_id == service_id)
        if document_type:
            query = query.where(Document.document_type == document_type)
        if status:
            query = query.where(Document.status == status)
        return await self.paginate(query.order_by(Document.created_at.desc()), skip, limit)

    async def visible_for_owner(
        self,
        user: UserContext,
        client_id: UUID | None = None,
        team_member_id: UUID | None = None,
    ) -> list[Document]:
        """Visible documents belonging to one client or one team member."""
        query = select(Document).where(visibility_clause(user, ResourceKind.DOCUMENT))
        if client_id:
            query = query.where(Document.client_id == client_id)
        if team_member_id:
            query = query.where(Document.team_member_id == team_member_id)
        result = await self.db.execute(query.order_by(Document.created_at.desc()))
        return list(result.scalars().all())

    async def find_matching(
        self,
        user: UserContext,
        client_id: UUID,
        name: str,
        document_type: DocumentType | None = None,
        limit: int = 10,
    ) -> list[Document]:
        """A client's visible documents whose type matches or whose file name contains `name`."""
        condition = Document.file_name.ilike(f"%{name}%")
        if document_type is not None:
            condition = or_(condition, Document.document_type == document_type)
        result = await self.db.execute(
            select(Document)
            .where(
                visibility_clause(user, ResourceKind.DOCUMENT),
                Document.client_id == client_id,
                condition,
            )
            .order_by(Document.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_pending_review(self, user: UserContext) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Document)
            .where(
                visibility_clause(user, ResourceKind.DOCUMENT),
                Document.status == DocumentStatus.PENDING,
            )
        )
        return result.scalar_one()

    async def is_hidden_for(self, document_id: UUID, role: UserRole) -> bool:
        result = await self.db.execute(
            select(DocumentHiddenRole.id).where(
                DocumentHiddenRole.document_id == document_id,
                DocumentHiddenRole.role == role,
            )
        )
        return result.first() is not None


async def all_storage_paths(db: AsyncSession) -> set[str]:
    """Every storage path known to the database, across firms."""
    result = await db.execute(select(Document.storage_path))
    return set(result.scalars().all())
