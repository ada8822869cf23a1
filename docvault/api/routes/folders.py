from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from typing import Optional
import logging

from docvault.core.config import settings
from docvault.core.database import get_db
from docvault.core.dependencies import FOLDER_TOKEN_HEADER, get_current_user, get_owned_folder
from docvault.core.rate_limit import RATE_LIMITS, rate_limiter
from docvault.core.security import (
    create_folder_access_token,
    get_password_hash,
    utcnow,
    verify_folder_access_token,
    verify_password,
)
from docvault.models.folder import Folder
from docvault.models.user import User
from docvault.schemas.folder import (
    BreadcrumbResponse,
    FolderAccess,
    FolderAccessResponse,
    FolderCreate,
    FolderDeleteResponse,
    FolderEnvelope,
    FolderListResponse,
    FolderResponse,
    FolderUpdate,
)
from docvault.services.folder_tree import (
    build_path,
    can_have_children,
    delete_folder_tree,
    get_ancestors,
    get_root,
    propagate_path_change,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/folders", tags=["Folders"])


def folder_to_response(folder: Folder, subfolder_count: int = 0) -> dict:
    """Shape a folder for the API; the password hash never leaves the server."""
    return {
        "id": folder.id,
        "name": folder.folder_name,
        "description": folder.description,
        "parent_id": folder.parent_id,
        "path": folder.path,
        "level": folder.level,
        "is_protected": folder.is_protected,
        "document_count": folder.document_count,
        "total_size": folder.total_size,
        "subfolder_count": subfolder_count,
        "last_accessed_at": folder.last_accessed_at,
        "created_at": folder.created_at,
        "updated_at": folder.updated_at,
    }


def _subfolder_count_column():
    child = aliased(Folder)
    return (
        select(func.count(child.id))
        .where(child.parent_id == Folder.id)
        .correlate(Folder)
        .scalar_subquery()
        .label("subfolder_count")
    )


async def _count_subfolders(db: AsyncSession, folder_id: int) -> int:
    result = await db.execute(select(func.count(Folder.id)).where(Folder.parent_id == folder_id))
    return result.scalar_one()


async def _sibling_name_taken(
    db: AsyncSession,
    user_id: int,
    parent_id: Optional[int],
    folder_name: str,
    exclude_id: Optional[int] = None
) -> bool:
    query = select(Folder.id).where(
        Folder.user_id == user_id,
        Folder.folder_name == folder_name,
        Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id,
    )
    if exclude_id is not None:
        query = query.where(Folder.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


@router.post("", response_model=FolderEnvelope, status_code=status.HTTP_201_CREATED)
async def create_folder(
    folder_data: FolderCreate,
    folder_token: Optional[str] = Header(None, alias=FOLDER_TOKEN_HEADER),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a root folder, or a subfolder when ``parent_id`` is given.

    Creating a subfolder requires an access token for the parent. Subfolders
    cannot carry their own PIN: they inherit the protection of their root.
    """
    parent = None
    if folder_data.parent_id is not None:
        parent = await get_owned_folder(folder_data.parent_id, current_user, db)

        if not verify_folder_access_token(folder_token, parent.id, current_user.id):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Folder access token for the parent folder required"
            )

        if folder_data.pin:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Subfolders inherit the protection of their root folder and cannot have their own PIN"
            )

        if not can_have_children(parent):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Maximum folder depth of {settings.MAX_FOLDER_DEPTH} reached"
            )

    if await _sibling_name_taken(db, current_user.id, folder_data.parent_id, folder_data.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A folder with this name already exists"
        )

    path, level = build_path(parent, folder_data.name)

    new_folder = Folder(
        user_id=current_user.id,
        parent_id=folder_data.parent_id,
        folder_name=folder_data.name,
        description=folder_data.description,
        hashed_password=get_password_hash(folder_data.pin) if folder_data.pin else None,
        path=path,
        level=level,
        document_count=0,
        total_size=0
    )

    db.add(new_folder)
    await db.commit()
    await db.refresh(new_folder)
    logger.info(f"User {current_user.id} created folder {new_folder.id} at {new_folder.path}")

    return {
        "message": "Folder created successfully",
        "folder": folder_to_response(new_folder)
    }


@router.get("", response_model=FolderListResponse)
async def list_folders(
    parent_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the user's root folders, or the direct children of ``parent_id``."""
    query = select(Folder, _subfolder_count_column()).where(Folder.user_id == current_user.id)

    if parent_id is None:
        query = query.where(Folder.parent_id.is_(None))
    else:
        await get_owned_folder(parent_id, current_user, db)
        query = query.where(Folder.parent_id == parent_id)

    result = await db.execute(query.order_by(Folder.created_at.desc(), Folder.id.desc()))

    return {
        "folders": [
            folder_to_response(folder, subfolder_count)
            for folder, subfolder_count in result.all()
        ]
    }


@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a specific folder."""
    folder = await get_owned_folder(folder_id, current_user, db)
    return folder_to_response(folder, await _count_subfolders(db, folder.id))


@router.get("/{folder_id}/breadcrumbs", response_model=BreadcrumbResponse)
async def get_breadcrumbs(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Ancestor chain from the root down to this folder."""
    folder = await get_owned_folder(folder_id, current_user, db)
    chain = await get_ancestors(db, folder) + [folder]

    return {
        "breadcrumbs": [
            {"id": item.id, "name": item.folder_name, "level": item.level}
            for item in chain
        ]
    }


@router.patch("/{folder_id}", response_model=FolderEnvelope)
async def update_folder(
    folder_id: int,
    folder_data: FolderUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Rename a folder, change its description, or set a root folder's password.

    A rename rewrites the materialized path of every descendant.
    """
    folder = await get_owned_folder(folder_id, current_user, db)

    if folder_data.password and not folder.is_root:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only root folders can be password protected"
        )

    if folder_data.name and folder_data.name != folder.folder_name:
        if await _sibling_name_taken(db, current_user.id, folder.parent_id, folder_data.name, exclude_id=folder.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A folder with this name already exists"
            )

        parent = await db.get(Folder, folder.parent_id) if folder.parent_id is not None else None
        folder.folder_name = folder_data.name
        folder.path, folder.level = build_path(parent, folder.folder_name)
        updated = await propagate_path_change(db, folder)
        logger.info(f"Renamed folder {folder.id} to {folder.path}; rewrote {updated} descendant paths")

    if folder_data.description is not None:
        folder.description = folder_data.description

    if folder_data.password:
        folder.hashed_password = get_password_hash(folder_data.password)

    await db.commit()
    await db.refresh(folder)

    return {
        "message": "Folder updated successfully",
        "folder": folder_to_response(folder, await _count_subfolders(db, folder.id))
    }


@router.delete("/{folder_id}", response_model=FolderDeleteResponse)
async def delete_folder(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a folder with all of its subfolders and documents."""
    folder = await get_owned_folder(folder_id, current_user, db)

    deleted_folders, deleted_documents = await delete_folder_tree(db, folder)

    return {
        "message": "Folder and all its contents deleted successfully",
        "deleted_folders": deleted_folders,
        "deleted_documents": deleted_documents
    }


@router.post("/{folder_id}/verify", response_model=FolderAccessResponse)
async def verify_folder_access(
    folder_id: int,
    access_data: Optional[FolderAccess] = None,
    folder_token: Optional[str] = Header(None, alias=FOLDER_TOKEN_HEADER),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a short-lived access token for one folder.

    Protection is decided by the folder's root. A protected tree is opened
    with the root's password, or, when descending, with a valid access token
    for any folder on the way down from the root.
    """
    folder = await get_owned_folder(folder_id, current_user, db)
    root = await get_root(db, folder)
    password = access_data.password if access_data else None

    if root.is_protected:
        if password:
            rate_limiter.enforce(
                f"folder-verify:{current_user.id}:{root.id}",
                RATE_LIMITS["folder_password"],
                "Too many attempts. Please try again later.",
            )
            if not verify_password(password, root.hashed_password):
                logger.warning(f"Invalid password for folder {folder.id} by user {current_user.id}")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid password"
                )
        else:
            chain = await get_ancestors(db, folder) + [folder]
            if not any(verify_folder_access_token(folder_token, item.id, current_user.id) for item in chain):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Folder password required"
                )

    folder.last_accessed_at = utcnow()
    await db.commit()
    await db.refresh(folder)

    access_token = create_folder_access_token(current_user.id, folder.id)

    return {
        "message": "Folder access granted",
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.FOLDER_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "folder": folder_to_response(folder, await _count_subfolders(db, folder.id))
    }
