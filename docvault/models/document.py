from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from docvault.core.database import Base


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_folder_uploaded", "folder_id", "uploaded_at"),
        Index("ix_documents_folder_checksum", "folder_id", "checksum"),
    )

    id = Column(Integer, primary_key=True, index=True)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String, nullable=False)  # Generated name inside storage
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False)  # Size in bytes
    storage_path = Column(String, nullable=False)  # Object key in the documents container
    checksum = Column(String(64), nullable=False)  # SHA-256 hex digest
    share_token = Column(String, unique=True, nullable=True)
    share_expires_at = Column(DateTime(timezone=True), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    folder = relationship("Folder", back_populates="documents")
