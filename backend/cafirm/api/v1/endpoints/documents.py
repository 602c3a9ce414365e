"""
Document endpoints.

Files are uploaded as multipart forms and stored on local disk. Metadata
responses never include the storage path; downloads stream the file.
"""

from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.models.document import DocumentStatus, DocumentType
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.schemas.document import DocumentHierarchy, DocumentResponse, DocumentStatusUpdate
from cafirm.services.document_service import DocumentService

router = APIRouter(prefix="/documents", tags=["Documents"])


# === UPLOAD ===


@router.post(
    "",
    response_model=APIResponse[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    db: DBSession,
    current_user: CurrentUser,
    file: UploadFile = File(..., description="Document file"),
    document_type: DocumentType = Form(DocumentType.OTHER),
    client_id: UUID | None = Form(None, description="Required for staff uploads"),
    service_id: UUID | None = Form(None),
    description: str | None = Form(None),
) -> APIResponse[DocumentResponse]:
    """
    Uploads a document for a client.

    Clients upload for themselves; staff must name a client they can see.
    """
    content = await file.read()
    document = await DocumentService(db, current_user.firm_id).upload(
        current_user,
        content,
        file.filename,
        file.content_type,
        document_type=document_type,
        client_id=client_id,
        service_id=service_id,
        description=description,
    )
    return APIResponse(
        success=True,
        data=DocumentResponse.model_validate(document),
        message="Document uploaded",
    )


@router.post(
    "/self",
    response_model=APIResponse[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_own_document(
    db: DBSession,
    current_user: CurrentUser,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(DocumentType.OTHER),
    description: str | None = Form(None),
) -> APIResponse[DocumentResponse]:
    """A team member's personal document (ID proofs, certificates)."""
    content = await file.read()
    document = await DocumentService(db, current_user.firm_id).upload_self(
        current_user,
        content,
        file.filename,
        file.content_type,
        document_type=document_type,
        description=description,
    )
    return APIResponse(
        success=True,
        data=DocumentResponse.model_validate(document),
        message="Document uploaded",
    )


# === READ ===


@router.get("", response_model=PaginatedResponse[DocumentResponse])
async def list_documents(
    db: DBSession,
    current_user: CurrentUser,
    client_id: UUID | None = Query(None),
    service_id: UUID | None = Query(None),
    document_type: DocumentType | None = Query(None),
    status_filter: DocumentStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[DocumentResponse]:
    documents, total = await DocumentService(db, current_user.firm_id).list_documents(
        current_user,
        client_id=client_id,
        service_id=service_id,
        document_type=document_type,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[DocumentResponse.model_validate(d) for d in documents],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/hierarchy", response_model=APIResponse[DocumentHierarchy])
async def document_hierarchy(
    db: DBSession,
    current_user: CurrentUser,
    team_member_id: UUID | None = Query(None, description="Required for managers"),
) -> APIResponse[DocumentHierarchy]:
    """A team member's own documents followed by one group per assigned client."""
    hierarchy = await DocumentService(db, current_user.firm_id).hierarchy(current_user, team_member_id)
    return APIResponse(success=True, data=hierarchy)


@router.get("/{document_id}", response_model=APIResponse[DocumentResponse])
async def get_document(
    document_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[DocumentResponse]:
    document = await DocumentService(db, current_user.firm_id).get_document(current_user, document_id)
    return APIResponse(success=True, data=DocumentResponse.model_validate(document))


@router.get("/{document_id}/download", response_class=FileResponse)
async def download_document(
    document_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> FileResponse:
    document, path = await DocumentService(db, current_user.firm_id).locate(current_user, document_id)
    return FileResponse(
        path,
        media_type=document.mime_type,
        filename=document.file_name,
    )


# === LIFECYCLE ===


@router.patch("/{document_id}/status", response_model=APIResponse[DocumentResponse])
async def update_document_status(
    document_id: UUID,
    data: DocumentStatusUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[DocumentResponse]:
    document = await DocumentService(db, current_user.firm_id).update_status(
        current_user, document_id, data.status
    )
    return APIResponse(success=True, data=DocumentResponse.model_validate(document))


@router.delete("/{document_id}", response_model=APIResponse)
async def delete_document(
    document_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    """Soft delete. The file stays on disk."""
    await DocumentService(db, current_user.firm_id).soft_delete(current_user, document_id)
    return APIResponse(success=True, message="Document deleted")


@router.post("/{document_id}/hide", response_model=APIResponse)
async def hide_document(
    document_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    """Hides the document from the caller's role only."""
    await DocumentService(db, current_user.firm_id).hide(current_user, document_id)
    return APIResponse(success=True, message="Document hidden")


@router.delete("/{document_id}/permanent", response_model=APIResponse)
async def purge_document(
    document_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse:
    """Removes the row and the file. Cannot be undone."""
    await DocumentService(db, current_user.firm_id).hard_delete(current_user, document_id)
    return APIResponse(success=True, message="Document permanently deleted")
