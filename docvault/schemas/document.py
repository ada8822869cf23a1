from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional
from docvault.schemas.folder import FolderResponse


class DocumentResponse(BaseModel):
    id: int
    folder_id: int
    file_name: str
    original_name: str
    mime_type: str
    size: int
    checksum: str
    uploaded_at: datetime
    last_accessed_at: Optional[datetime] = None
    is_shared: bool = False

    class Config:
        from_attributes = True


class DocumentEnvelope(BaseModel):
    message: str
    document: DocumentResponse


class DocumentListResponse(BaseModel):
    folder: FolderResponse
    documents: List[DocumentResponse]


class DocumentRename(BaseModel):
    original_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("original_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Document name is required")
        return value


class DocumentDeleteResponse(BaseModel):
    message: str
    deleted_size: int


class ShareLinkResponse(BaseModel):
    message: str
    share_url: str
    share_token: str
    expires_at: Optional[datetime] = None


class SharedDocumentInfo(BaseModel):
    original_name: str
    mime_type: str
    size: int
    uploaded_at: datetime
    expires_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str
