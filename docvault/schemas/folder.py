from pydantic import BaseModel, Field, ValidationInfo, field_validator
from datetime import datetime
from typing import List, Optional
import re

FOLDER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_]+$")
PIN_PATTERN = re.compile(r"^\d{4,6}$")


def _validate_folder_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Please enter a folder name")
    if len(value) > 100:
        raise ValueError("Folder name must be 100 characters or less")
    if not FOLDER_NAME_PATTERN.match(value):
        raise ValueError("Folder name can only contain letters, numbers, spaces, hyphens, and underscores")
    return value


class FolderCreate(BaseModel):
    name: str
    description: Optional[str] = Field(None, max_length=500)
    pin: Optional[str] = None
    confirm_pin: Optional[str] = Field(None, validate_default=True)
    parent_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _validate_folder_name(value)

    @field_validator("pin")
    @classmethod
    def check_pin(cls, value: Optional[str]) -> Optional[str]:
        # An empty PIN means an unprotected folder
        if not value:
            return None
        if not PIN_PATTERN.match(value):
            raise ValueError("PIN must be 4-6 digits")
        return value

    @field_validator("confirm_pin")
    @classmethod
    def check_pins_match(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if info.data.get("pin") and value != info.data["pin"]:
            raise ValueError("PINs do not match. Please make sure both PINs are identical.")
        return value or None


class FolderUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    password: Optional[str] = Field(None, min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_folder_name(value)


class FolderAccess(BaseModel):
    password: Optional[str] = None


class FolderResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    path: str
    level: int
    is_protected: bool
    document_count: int = 0
    total_size: int = 0
    subfolder_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class FolderEnvelope(BaseModel):
    message: str
    folder: FolderResponse


class FolderListResponse(BaseModel):
    folders: List[FolderResponse]


class BreadcrumbItem(BaseModel):
    id: int
    name: str
    level: int


class BreadcrumbResponse(BaseModel):
    breadcrumbs: List[BreadcrumbItem]


class FolderDeleteResponse(BaseModel):
    message: str
    deleted_folders: int
    deleted_documents: int


class FolderAccessResponse(BaseModel):
    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    folder: FolderResponse
