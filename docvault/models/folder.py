from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from docvault.core.database import Base


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("user_id", "parent_id", "folder_name", name="uq_folders_user_parent_name"),
        # NULL parents never collide in the constraint above
        Index(
            "uq_folders_user_root_name",
            "user_id",
            "folder_name",
            unique=True,
            postgresql_where=text("parent_id IS NULL"),
            sqlite_where=text("parent_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True)
    folder_name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    hashed_password = Column(String, nullable=True)  # Root folders only; subfolders inherit
    path = Column(String, nullable=False, index=True)  # e.g. "/Taxes/2024/Receipts"
    level = Column(Integer, default=0, nullable=False)  # 0 = root
    document_count = Column(Integer, default=0, nullable=False)
    total_size = Column(BigInteger, default=0, nullable=False)  # Bytes
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="folders")
    documents = relationship("Document", back_populates="folder", passive_deletes=True)

    @property
    def is_protected(self) -> bool:
        return self.hashed_password is not None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
