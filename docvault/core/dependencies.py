from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional

from docvault.core.database import get_db
from docvault.core.security import decode_access_token, verify_folder_access_token
from docvault.models.folder import Folder
from docvault.models.revoked_token import RevokedToken
from docvault.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)

FOLDER_TOKEN_HEADER = "X-Folder-Token"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Decode the user's bearer token and reject revoked ones."""
    if credentials is None:
        raise _unauthorized("Unauthorized. Please log in.")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    result = await db.execute(select(RevokedToken.jti).where(RevokedToken.jti == payload["jti"]))
    if result.scalar_one_or_none() is not None:
        raise _unauthorized("Token has been revoked. Please log in again.")

    return payload


async def get_current_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the authenticated, active user."""
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _unauthorized("Could not validate credentials")

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized("Could not validate credentials")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive. Please contact support."
        )

    return user


async def get_owned_folder(folder_id: int, current_user: User, db: AsyncSession) -> Folder:
    """Load a folder that belongs to the current user, or 404."""
    result = await db.execute(
        select(Folder).where(
            Folder.id == folder_id,
            Folder.user_id == current_user.id
        )
    )
    folder = result.scalar_one_or_none()

    if not folder:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Folder not found"
        )

    return folder


async def get_folder_access(
    folder_id: int,
    folder_token: Optional[str] = Header(None, alias=FOLDER_TOKEN_HEADER),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Folder:
    """
    Gate for everything inside a folder.

    Requires a folder access token (issued by ``POST /folders/{id}/verify``)
    scoped to this folder and this user.
    """
    if not folder_token:
        raise _unauthorized("Folder access token required")

    if not verify_folder_access_token(folder_token, folder_id, current_user.id):
        raise _unauthorized("Invalid or expired folder access token")

    return await get_owned_folder(folder_id, current_user, db)


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
