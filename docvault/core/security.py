from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from docvault.core.config import settings

ACCESS_TOKEN_TYPE = "access"
FOLDER_ACCESS_TOKEN_TYPE = "folder_access"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def verify_password(plain_password: Optional[str], hashed_password: Optional[str]) -> bool:
    """Check a plain password against a bcrypt hash."""
    if not plain_password or not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a user access token.

    Every token carries a unique ``jti`` so logout can revoke it.
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "exp": expire,
        "jti": uuid.uuid4().hex,
        "type": ACCESS_TOKEN_TYPE,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid user access token, or None."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub") or not payload.get("jti"):
        return None
    return payload


def create_folder_access_token(user_id: int, folder_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived bearer token granting access to exactly one folder."""
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.FOLDER_ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user_id),
        "folder_id": folder_id,
        "type": FOLDER_ACCESS_TOKEN_TYPE,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_folder_access_token(token: Optional[str], folder_id: int, user_id: int) -> bool:
    """True when the token is unexpired and scoped to this folder and user."""
    if not token:
        return False

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return False

    if payload.get("type") != FOLDER_ACCESS_TOKEN_TYPE:
        return False
    return payload.get("folder_id") == folder_id and payload.get("sub") == str(user_id)
