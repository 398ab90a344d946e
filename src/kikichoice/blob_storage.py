from __future__ import annotations
import logging
import mimetypes
from typing import List, Optional

from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from .config import BlobStorageConfig


PRODUCT_IMAGE_CONTAINER = "products"

log = logging.getLogger(__name__)


def build_service_client(cfg: BlobStorageConfig) -> BlobServiceClient:
    return BlobServiceClient(
        account_url=cfg.account_url,
        credential={"account_name": cfg.account_name, "account_key": cfg.account_key},
    )


class BlobStore:
    """Product image container on Azure Blob Storage.

    Errors from the SDK (``azure.core.exceptions.AzureError``) propagate to the
    caller unchanged.
    """

    def __init__(self, cfg: BlobStorageConfig, container: Optional[ContainerClient] = None):
        self.cfg = cfg
        self.container_name = PRODUCT_IMAGE_CONTAINER
        if container is None:
            container = build_service_client(cfg).get_container_client(self.container_name)
        self.container = container

    def public_url(self, blob_name: str) -> str:
        return f"{self.cfg.account_url}/{self.container_name}/{blob_name}"

    def upload(self, blob_name: str, data: bytes) -> str:
        content_type, _ = mimetypes.guess_type(blob_name)
        self.container.upload_blob(
            name=blob_name,
            data=data,
            content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
        )
        return self.public_url(blob_name)

    def list_with_prefix(self, prefix: str) -> List[str]:
        return [b.name for b in self.container.list_blobs(name_starts_with=prefix)]

    def delete(self, blob_name: str) -> None:
        self.container.delete_blob(blob_name)

    def delete_with_prefix(self, prefix: str) -> int:
        deleted = 0
        for name in self.list_with_prefix(prefix):
            self.delete(name)
            deleted += 1
        log.debug("delete_with_prefix: prefix=%s deleted=%d", prefix, deleted)
        return deleted
