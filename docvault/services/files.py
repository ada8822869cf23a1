from fastapi import Response
from datetime import datetime
from typing import Optional
from urllib.parse import quote
import hashlib
import re

from docvault.core.security import as_utc, utcnow
from docvault.models.document import Document


def sanitize_filename(filename: str) -> str:
    """Keep client file names free of path tricks and odd characters."""
    sanitized = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    sanitized = re.sub(r"\.{2,}", ".", sanitized)
    return sanitized[:255]


def compute_checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def share_link_active(document: Document, now: Optional[datetime] = None) -> bool:
    if not document.share_token:
        return False
    if document.share_expires_at is None:
        return True
    return as_utc(document.share_expires_at) > (now or utcnow())


def content_disposition(filename: str) -> str:
    """``attachment`` header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = sanitize_filename(filename) or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def file_response(document: Document, content: bytes) -> Response:
    return Response(
        content=content,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": content_disposition(document.original_name),
            "Content-Length": str(len(content)),
        },
    )
