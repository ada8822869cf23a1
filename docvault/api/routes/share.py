from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from docvault.core.database import get_db
from docvault.core.security import as_utc, utcnow
from docvault.models.document import Document
from docvault.schemas.document import SharedDocumentInfo
from docvault.services.azure_blob import blob_service
from docvault.services.files import file_response, share_link_active

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/share", tags=["Share"])


async def get_shared_document(token: str, db: AsyncSession) -> Document:
    """Resolve a public share token: 404 when unknown, 410 once expired."""
    result = await db.execute(select(Document).where(Document.share_token == token))
    document = result.scalar_one_or_none()

    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found or link invalid"
        )

    if not share_link_active(document):
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Share link has expired"
        )

    return document


@router.get("/{token}", response_model=SharedDocumentInfo)
async def get_shared_document_info(token: str, db: AsyncSession = Depends(get_db)):
    """Public metadata for a shared document."""
    document = await get_shared_document(token, db)

    return {
        "original_name": document.original_name,
        "mime_type": document.mime_type,
        "size": document.size,
        "uploaded_at": document.uploaded_at,
        "expires_at": as_utc(document.share_expires_at) if document.share_expires_at else None
    }


@router.get("/{token}/download")
async def download_shared_document(token: str, db: AsyncSession = Depends(get_db)):
    """Download a shared document without logging in."""
    document = await get_shared_document(token, db)

    try:
        content = await blob_service.download_bytes(document.storage_path)
    except Exception as e:
        logger.error(f"Shared download failed for document {document.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found or could not be downloaded"
        )

    document.last_accessed_at = utcnow()
    await db.commit()

    return file_response(document, content)
