"""
Asset storage for binary settings such as the portal background.

Two backends share one interface: the ``assets`` table (default) and an
Azure Blob Storage container.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings
from sqlalchemy.orm import Session

from signin.config import Settings
from signin.errors import UpstreamError
from signin.models import Asset
from signin.utils.timezone import ensure_utc, utc_now

logger = logging.getLogger(__name__)

PORTAL_BACKGROUND_KEY = "portal_background"


@dataclass
class StoredAsset:
    key: str
    content_type: str
    data: bytes
    updated_at: datetime


class DatabaseAssetStore:
    """Assets kept in the relational store."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[StoredAsset]:
        asset = self.db.query(Asset).filter(Asset.key == key).first()
        if not asset:
            return None
        return StoredAsset(
            key=asset.key,
            content_type=asset.content_type,
            data=asset.data,
            updated_at=ensure_utc(asset.updated_at),
        )

    def get_updated_at(self, key: str) -> Optional[datetime]:
        """Last write time of an asset without loading its bytes."""
        row = self.db.query(Asset.updated_at).filter(Asset.key == key).first()
        if row is None:
            return None
        return ensure_utc(row.updated_at)

    def put(self, key: str, content_type: str, data: bytes) -> StoredAsset:
        asset = self.db.query(Asset).filter(Asset.key == key).first()
        now = utc_now()
        if asset is None:
            asset = Asset(key=key, created_at=now)
            self.db.add(asset)
        asset.content_type = content_type
        asset.data = data
        asset.updated_at = now
        self.db.commit()
        logger.info(f"Stored asset '{key}' ({len(data)} bytes)")
        return StoredAsset(key=key, content_type=content_type, data=data, updated_at=now)

    def delete(self, key: str) -> None:
        self.db.query(Asset).filter(Asset.key == key).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Deleted asset '{key}'")


class AzureBlobAssetStore:
    """Assets kept as blobs in an Azure Storage container."""

    def __init__(self, config: Settings, blob_service_client: Optional[BlobServiceClient] = None):
        self.config = config
        self._blob_service_client = blob_service_client

    @property
    def blob_service_client(self) -> BlobServiceClient:
        """Lazy initialization of blob service client."""
        if self._blob_service_client is None:
            if not self.config.AZURE_STORAGE_CONNECTION_STRING:
                raise UpstreamError("Blob storage not configured")
            self._blob_service_client = BlobServiceClient.from_connection_string(
                self.config.AZURE_STORAGE_CONNECTION_STRING
            )
        return self._blob_service_client

    def _blob(self, key: str):
        container_client = self.blob_service_client.get_container_client(
            self.config.AZURE_STORAGE_CONTAINER
        )
        return container_client.get_blob_client(key)

    def get(self, key: str) -> Optional[StoredAsset]:
        blob_client = self._blob(key)
        try:
            download = blob_client.download_blob()
            data = download.readall()
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            logger.error(f"Failed to read blob '{key}': {e}")
            raise UpstreamError("failed to read asset") from e

        properties = download.properties
        return StoredAsset(
            key=key,
            content_type=properties.content_settings.content_type or "application/octet-stream",
            data=data,
            updated_at=ensure_utc(properties.last_modified) or utc_now(),
        )

    def get_updated_at(self, key: str) -> Optional[datetime]:
        try:
            properties = self._blob(key).get_blob_properties()
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            logger.error(f"Failed to read blob properties '{key}': {e}")
            raise UpstreamError("failed to read asset") from e
        return ensure_utc(properties.last_modified) or utc_now()

    def put(self, key: str, content_type: str, data: bytes) -> StoredAsset:
        blob_client = self._blob(key)
        try:
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            logger.error(f"Failed to write blob '{key}': {e}")
            raise UpstreamError("failed to store asset") from e

        logger.info(f"Uploaded asset '{key}' to blob storage ({len(data)} bytes)")
        return StoredAsset(key=key, content_type=content_type, data=data, updated_at=utc_now())

    def delete(self, key: str) -> None:
        try:
            self._blob(key).delete_blob()
        except ResourceNotFoundError:
            return
        except AzureError as e:
            logger.error(f"Failed to delete blob '{key}': {e}")
            raise UpstreamError("failed to delete asset") from e
        logger.info(f"Deleted asset '{key}' from blob storage")


def get_asset_store(db: Session, config: Settings):
    """Asset store for the configured backend."""
    if config.ASSET_BACKEND == "azure_blob":
        return AzureBlobAssetStore(config)
    return DatabaseAssetStore(db)
