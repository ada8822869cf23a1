from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings
from docvault.core.config import settings
from typing import Dict, Optional
import asyncio
import logging
import secrets

logger = logging.getLogger(__name__)


def generate_storage_key(filename: str, folder_id: int) -> str:
    """Build a unique object key that keeps each folder's blobs under one prefix."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"folders/{folder_id}/{secrets.token_hex(16)}.{extension}"


class AzureBlobService:
    def __init__(self):
        self.blob_service_client = BlobServiceClient.from_connection_string(
            settings.AZURE_STORAGE_CONNECTION_STRING
        )
        self.container = settings.DOCUMENTS_CONTAINER

    async def ensure_container_exists(self):
        """Ensure that the documents container exists (non-blocking async)."""
        def _ensure_container():
            """Sync function to be run in thread pool."""
            container_client = self.blob_service_client.get_container_client(self.container)
            if not container_client.exists():
                container_client.create_container()
                logger.info(f"Created container: {self.container}")

        # Run sync operations in thread pool to avoid blocking
        await asyncio.to_thread(_ensure_container)

    async def upload_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Upload a file to the documents container (non-blocking async).

        Returns:
            The blob URL.
        """
        def _upload():
            blob_client = self.blob_service_client.get_blob_client(
                container=self.container,
                blob=key
            )
            blob_client.upload_blob(
                data,
                content_settings=ContentSettings(content_type=content_type),
                metadata=metadata or {},
                overwrite=True
            )
            return blob_client.url

        try:
            url = await asyncio.to_thread(_upload)
            logger.info(f"Uploaded file to blob storage: {key}")
            return url

        except Exception as e:
            logger.error(f"Error uploading file to blob storage: {str(e)}")
            raise

    async def download_bytes(self, key: str) -> bytes:
        """Download a blob's content."""
        def _download():
            blob_client = self.blob_service_client.get_blob_client(
                container=self.container,
                blob=key
            )
            return blob_client.download_blob().readall()

        try:
            return await asyncio.to_thread(_download)

        except Exception as e:
            logger.error(f"Error downloading blob {key}: {str(e)}")
            raise

    async def delete_blob(self, key: str):
        """Delete a file from blob storage. A blob that is already gone is not an error."""
        def _delete():
            blob_client = self.blob_service_client.get_blob_client(
                container=self.container,
                blob=key
            )
            blob_client.delete_blob()

        try:
            await asyncio.to_thread(_delete)
            logger.info(f"Deleted blob: {key}")

        except ResourceNotFoundError:
            logger.warning(f"Blob already missing: {key}")

        except Exception as e:
            logger.error(f"Error deleting blob {key}: {str(e)}")
            raise


# Singleton instance
blob_service = AzureBlobService()
