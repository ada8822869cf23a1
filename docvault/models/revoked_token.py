from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
from docvault.core.database import Base


class RevokedToken(Base):
    """User access tokens invalidated by logout, kept until they would have expired."""
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
