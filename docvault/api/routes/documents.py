from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import timedelta
import logging
import secrets

from docvault.api.routes.folders import folder_to_response
from docvault.core.config import settings
from docvault.core.database import get_db
from docvault.core.dependencies import get_current_user, get_folder_access
from docvault.core.security import as_utc, utcnow
from docvault.models.document import Document
from docvault.models.folder import Folder
from docvault.models.user import User
from docvault.schemas.document import (
    DocumentDeleteResponse,
    DocumentEnvelope,
    DocumentListResponse,
    DocumentRename,
    MessageResponse,
    ShareLinkResponse,
)
from docvault.services.azure_blob import blob_service, generate_storage_key
from docvault.services.files import compute_checksum, file_response, sanitize_filename, share_link_active
from docvault.services.folder_tree import adjust_folder_counters

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/folders/{folder_id}/documents", tags=["Documents"])


def document_to_response(document: Document) -> dict:
    return {
        "id": document.id,
        "folder_id": document.folder_id,
        "file_name": document.file_name,
        "original_name": document.original_name,
        "mime_type": document.mime_type,
        "size": document.size,
        "checksum": document.checksum,
        "uploaded_at": document.uploaded_at,
        "last_accessed_at": document.last_accessed_at,
        "is_shared": share_link_active(document),
    }


def validate_file(file: UploadFile) -> None:
    """Validate uploaded file."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided"
        )

    if file.content_type not in settings.ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File type not allowed. Allowed types: PDF, PNG, JPEG, TXT, DOC, DOCX"
        )


async def get_folder_document(folder: Folder, document_id: int, db: AsyncSession) -> Document:
    result = await db.execute(
        select(Document).where(
            Document.id == document_id,
            Document.folder_id == folder.id
        )
    )
    document = result.scalar_one_or_none()

    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )

    return document


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """List all documents in a folder."""
    result = await db.execute(
        select(Document)
        .where(Document.folder_id == folder.id)
        .order_by(Document.uploaded_at.desc(), Document.id.desc())
    )
    documents = result.scalars().all()

    return {
        "folder": folder_to_response(folder),
        "documents": [document_to_response(document) for document in documents]
    }


@router.post("", response_model=DocumentEnvelope, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    folder: Folder = Depends(get_folder_access),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload a document to a folder.

    The object is written to blob storage first, then the row is inserted and
    finally the folder counters are bumped in a separate write.
    """
    validate_file(file)

    # One byte past the limit is enough to know the upload is too large
    file_content = await file.read(settings.MAX_FILE_SIZE + 1)
    file_size = len(file_content)

    if file_size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is empty"
        )

    if file_size > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds {settings.max_file_size_mb}MB limit"
        )

    original_name = sanitize_filename(file.filename)
    checksum = compute_checksum(file_content)
    storage_path = generate_storage_key(file.filename, folder.id)

    try:
        await blob_service.upload_bytes(
            key=storage_path,
            data=file_content,
            content_type=file.content_type,
            metadata={
                "original_name": original_name,
                "checksum": checksum,
                "folder_id": str(folder.id),
                "user_id": str(current_user.id),
            }
        )
    except Exception as e:
        logger.error(f"Error uploading document to folder {folder.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload document"
        )

    new_document = Document(
        folder_id=folder.id,
        user_id=current_user.id,
        file_name=storage_path.rsplit("/", 1)[-1],
        original_name=original_name,
        mime_type=file.content_type,
        size=file_size,
        storage_path=storage_path,
        checksum=checksum
    )

    db.add(new_document)
    await db.commit()
    await db.refresh(new_document)
    # Shaped now: a failed counter write rolls back and expires every instance
    response = {
        "message": "Document uploaded successfully",
        "document": document_to_response(new_document)
    }
    folder_id = folder.id

    await adjust_folder_counters(db, folder, 1, file_size)

    logger.info(f"Uploaded document {response['document']['id']} ({file_size} bytes) to folder {folder_id}")

    return response


@router.get("/{document_id}")
async def download_document(
    document_id: int,
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """Download a document."""
    document = await get_folder_document(folder, document_id, db)

    try:
        content = await blob_service.download_bytes(document.storage_path)
    except Exception as e:
        logger.error(f"Download failed for document {document.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found or could not be downloaded"
        )

    document.last_accessed_at = utcnow()
    await db.commit()

    return file_response(document, content)


@router.patch("/{document_id}", response_model=DocumentEnvelope)
async def rename_document(
    document_id: int,
    rename_data: DocumentRename,
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """Rename a document (display name only; the storage key is unchanged)."""
    document = await get_folder_document(folder, document_id, db)

    document.original_name = rename_data.original_name
    await db.commit()
    await db.refresh(document)

    return {
        "message": "Document renamed successfully",
        "document": document_to_response(document)
    }


@router.delete("/{document_id}", response_model=DocumentDeleteResponse)
async def delete_document(
    document_id: int,
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a document.

    Storage deletion is best-effort: a failure is logged and the row is
    removed anyway.
    """
    document = await get_folder_document(folder, document_id, db)
    deleted_size = document.size
    folder_id = folder.id

    try:
        await blob_service.delete_blob(document.storage_path)
    except Exception as e:
        logger.error(f"Failed to delete blob {document.storage_path}: {str(e)}")

    await db.delete(document)
    await db.commit()

    await adjust_folder_counters(db, folder, -1, -deleted_size)

    logger.info(f"Deleted document {document_id} from folder {folder_id}")

    return {
        "message": "Document deleted successfully",
        "deleted_size": deleted_size
    }


@router.post("/{document_id}/share", response_model=ShareLinkResponse)
async def create_share_link(
    document_id: int,
    request: Request,
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """Create a public download link, or return the one that is still live."""
    document = await get_folder_document(folder, document_id, db)

    if not share_link_active(document):
        document.share_token = secrets.token_urlsafe(32)
        document.share_expires_at = utcnow() + timedelta(days=settings.SHARE_LINK_EXPIRE_DAYS)
        await db.commit()
        await db.refresh(document)
        logger.info(f"Created share link for document {document.id}")

    # A configured frontend serves its own /share page; otherwise link the public API route
    if settings.PUBLIC_APP_URL:
        share_url = f"{settings.PUBLIC_APP_URL.rstrip('/')}/share/{document.share_token}"
    else:
        share_url = str(request.url_for("get_shared_document_info", token=document.share_token))

    return {
        "message": "Share link generated successfully",
        "share_url": share_url,
        "share_token": document.share_token,
        "expires_at": as_utc(document.share_expires_at) if document.share_expires_at else None
    }


@router.delete("/{document_id}/share", response_model=MessageResponse)
async def revoke_share_link(
    document_id: int,
    folder: Folder = Depends(get_folder_access),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a document's share link."""
    document = await get_folder_document(folder, document_id, db)

    document.share_token = None
    document.share_expires_at = None
    await db.commit()

    return {"message": "Share link revoked successfully"}
