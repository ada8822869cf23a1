from docvault.schemas.user import UserCreate, UserLogin, UserResponse, Token, AuthResponse
from docvault.schemas.folder import (
    FolderCreate,
    FolderUpdate,
    FolderAccess,
    FolderResponse,
    FolderEnvelope,
    FolderListResponse,
    BreadcrumbItem,
    BreadcrumbResponse,
    FolderDeleteResponse,
    FolderAccessResponse,
)
from docvault.schemas.document import (
    DocumentResponse,
    DocumentEnvelope,
    DocumentListResponse,
    DocumentRename,
    DocumentDeleteResponse,
    ShareLinkResponse,
    SharedDocumentInfo,
    MessageResponse,
)

__all__ = [
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "Token",
    "AuthResponse",
    "FolderCreate",
    "FolderUpdate",
    "FolderAccess",
    "FolderResponse",
    "FolderEnvelope",
    "FolderListResponse",
    "BreadcrumbItem",
    "BreadcrumbResponse",
    "FolderDeleteResponse",
    "FolderAccessResponse",
    "DocumentResponse",
    "DocumentEnvelope",
    "DocumentListResponse",
    "DocumentRename",
    "DocumentDeleteResponse",
    "ShareLinkResponse",
    "SharedDocumentInfo",
    "MessageResponse",
]
