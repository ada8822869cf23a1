from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from typing import Any, Dict
import logging

from docvault.core.database import get_db
from docvault.core.dependencies import get_client_ip, get_current_user, get_token_payload
from docvault.core.rate_limit import RATE_LIMITS, rate_limiter
from docvault.core.security import create_access_token, get_password_hash, utcnow, verify_password
from docvault.models.revoked_token import RevokedToken
from docvault.models.user import User
from docvault.schemas.document import MessageResponse
from docvault.schemas.user import AuthResponse, Token, UserCreate, UserLogin, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, request: Request, db: AsyncSession = Depends(get_db)):
    """Register a new user and return an access token."""
    rate_limiter.enforce(
        f"register:{get_client_ip(request)}",
        RATE_LIMITS["register"],
        "Too many registration attempts. Please try again later.",
    )

    # Check if user already exists
    result = await db.execute(
        select(User).where(
            or_(User.email == user_data.email, User.username == user_data.username)
        )
    )
    existing_user = result.scalars().first()

    if existing_user:
        detail = "Email already registered" if existing_user.email == user_data.email else "Username already taken"
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        is_active=True
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)
    logger.info(f"Registered user {new_user.id}")

    # sub must be string per JWT spec
    access_token = create_access_token(data={"sub": str(new_user.id)})

    return {
        "message": "Registration successful",
        "user": new_user,
        "access_token": access_token,
        "token_type": "bearer"
    }


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate a user and return a JWT token."""
    # Keyed by email to slow down brute force against one account
    rate_limiter.enforce(
        f"login:{credentials.email}",
        RATE_LIMITS["login"],
        "Too many login attempts. Please try again later.",
    )

    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    # Same message for unknown email and wrong password to prevent user enumeration
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive. Please contact support."
        )

    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)

    access_token = create_access_token(data={"sub": str(user.id)})

    return {
        "message": "Login successful",
        "user": user,
        "access_token": access_token,
        "token_type": "bearer"
    }


@router.post("/logout", response_model=MessageResponse)
async def logout(
    payload: Dict[str, Any] = Depends(get_token_payload),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented access token."""
    now = utcnow()

    # Opportunistic purge of revocations that have outlived their tokens
    await db.execute(delete(RevokedToken).where(RevokedToken.expires_at < now))

    db.add(RevokedToken(
        jti=payload["jti"],
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    ))
    await db.commit()
    logger.info(f"User {current_user.id} logged out")

    return {"message": "Logout successful"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return current_user


@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_user)):
    """Refresh an access token. Requires valid existing token."""
    access_token = create_access_token(data={"sub": str(current_user.id)})

    return {"access_token": access_token, "token_type": "bearer"}
