from docvault.models.user import User
from docvault.models.folder import Folder
from docvault.models.document import Document
from docvault.models.revoked_token import RevokedToken

__all__ = [
    "User",
    "Folder",
    "Document",
    "RevokedToken",
]
