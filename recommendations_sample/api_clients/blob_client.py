"""
Blob storage helper for batch scoring.

Batch jobs read their input from, and write their output and errors to,
blobs referenced by SAS URLs. This module stages and retrieves those blobs.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from azure.core.exceptions import AzureError, ResourceExistsError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, generate_blob_sas

logger = logging.getLogger(__name__)


class BlobStorageError(Exception):
    """Exception raised for blob storage failures."""
    pass


class BlobHelper:
    """
    Thin wrapper over a storage account used by the batch scoring flow.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        container_name: str,
        sas_ttl_hours: int = 24,
        service_client: Optional[BlobServiceClient] = None
    ):
        """
        Initialize the blob helper and make sure the container exists.

        Args:
            account_name: Storage account name
            account_key: Storage account key
            container_name: Container holding the batch files
            sas_ttl_hours: Lifetime of generated SAS tokens
            service_client: Preconfigured service client. If None, one is built
                from the account credentials.
        """
        self.account_name = account_name
        self.account_key = account_key
        self.container_name = container_name
        self.sas_ttl_hours = sas_ttl_hours
        self.service_client = service_client or BlobServiceClient.from_connection_string(
            self.connection_string
        )
        self._ensure_container(container_name)

    @property
    def connection_string(self) -> str:
        return (
            f"DefaultEndpointsProtocol=https;AccountName={self.account_name};"
            f"AccountKey={self.account_key};EndpointSuffix=core.windows.net"
        )

    @property
    def base_location(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net/"

    def _ensure_container(self, container_name: str) -> None:
        try:
            self.service_client.get_container_client(container_name).create_container()
            logger.info(f"Created container {container_name}")
        except ResourceExistsError:
            pass
        except AzureError as e:
            raise BlobStorageError(f"Cannot access container {container_name}: {str(e)}")

    def put_block_blob(self, container_name: str, blob_name: str, content: str) -> None:
        """
        Write text content to a blob, replacing any existing blob.

        Raises:
            BlobStorageError: If the upload fails
        """
        try:
            blob = self.service_client.get_blob_client(container=container_name, blob=blob_name)
            blob.upload_blob(content, overwrite=True)
            logger.info(f"Uploaded blob {container_name}/{blob_name}")
        except AzureError as e:
            raise BlobStorageError(f"Error uploading {container_name}/{blob_name}: {str(e)}")

    def generate_blob_sas_token(self, container_name: str, blob_name: str) -> str:
        """
        Generate a SAS token granting read, write and create access to a blob.

        Returns:
            The token as a query string starting with "?"
        """
        token = generate_blob_sas(
            account_name=self.account_name,
            container_name=container_name,
            blob_name=blob_name,
            account_key=self.account_key,
            permission=BlobSasPermissions(read=True, write=True, create=True),
            expiry=datetime.now(timezone.utc) + timedelta(hours=self.sas_ttl_hours)
        )
        return f"?{token}"

    def download_blob_to_file(self, container_name: str, blob_name: str, path: str) -> str:
        """
        Copy a blob to a local file.

        The blob is written to a sibling ".part" file first, so path is
        only created or replaced once the whole blob has been read.

        Returns:
            The path written to

        Raises:
            BlobStorageError: If the download fails
        """
        partial_path = f"{path}.part"
        try:
            blob = self.service_client.get_blob_client(container=container_name, blob=blob_name)
            downloader = blob.download_blob()
            with open(partial_path, "wb") as f:
                downloader.readinto(f)
        except AzureError as e:
            if os.path.exists(partial_path):
                os.remove(partial_path)
            raise BlobStorageError(f"Error downloading {container_name}/{blob_name}: {str(e)}")

        os.replace(partial_path, path)
        return path
