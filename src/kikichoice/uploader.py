from __future__ import annotations
import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import psycopg2
from azure.core.exceptions import AzureError

from .blob_storage import BlobStore
from .config import UploadOptions
from .images import (
    PRODUCT,
    VARIANT,
    DirectoryInfo,
    blob_name_for,
    blob_prefix,
    entity_label,
    reconcile_variants,
    scan_directory,
    split_by_kind,
)
from .store import CatalogStore, EntityNotFoundError


log = logging.getLogger(__name__)

# failures that skip one image (or one secondary write) but never stop the run
IMAGE_ERRORS = (OSError, AzureError, psycopg2.Error, EntityNotFoundError)


class SourcePathError(Exception):
    pass


class CleanupError(Exception):
    pass


def short_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class UploadResult:
    processed_products: int = 0
    processed_variants: int = 0
    uploaded_images: int = 0
    uploaded_product_images: int = 0
    uploaded_variant_images: int = 0
    skipped_images: int = 0
    skipped_product_images: int = 0
    skipped_variant_images: int = 0
    total_size_bytes: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False
    local_sync_enabled: bool = False
    local_sync_errors: int = 0
    cleanup_warnings: int = 0

    def record_uploaded(self, kind: str) -> None:
        self.uploaded_images += 1
        if kind == VARIANT:
            self.uploaded_variant_images += 1
        else:
            self.uploaded_product_images += 1

    def record_skipped(self, kind: str, count: int = 1) -> None:
        self.skipped_images += count
        if kind == VARIANT:
            self.skipped_variant_images += count
        else:
            self.skipped_product_images += count

    def record_processed(self, kind: str) -> None:
        if kind == VARIANT:
            self.processed_variants += 1
        else:
            self.processed_products += 1

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def total_size_mb(self) -> float:
        return self.total_size_bytes / (1024 * 1024)


def validate_source_path(source: Path) -> None:
    if not source.exists():
        raise SourcePathError(f"directory does not exist: {source}")
    if not source.is_dir():
        raise SourcePathError(f"path is not a directory: {source}")
    try:
        entries = os.listdir(source)
    except OSError as e:
        raise SourcePathError(f"cannot read directory: {e}") from e
    log.debug("Source directory validated: %s (%d entries)", source, len(entries))


class ImageUploader:
    """Upload a tree of ``{sku}/`` image folders and record them in the catalog.

    ``stores`` is the primary store followed by any mirrors; every image row is
    written to each of them, and only the primary's failures are errors.
    """

    def __init__(
        self,
        blobs: BlobStore,
        stores: Sequence[CatalogStore],
        options: UploadOptions,
        id_factory: Callable[[], str] = short_id,
    ):
        if not stores:
            raise ValueError("at least one catalog store is required")
        self.blobs = blobs
        self.stores = list(stores)
        self.options = options
        self.id_factory = id_factory

    @property
    def primary(self) -> CatalogStore:
        return self.stores[0]

    @property
    def mirrors(self) -> List[CatalogStore]:
        return self.stores[1:]

    def run(self) -> UploadResult:
        opts = self.options
        log.info("Starting image upload from path: %s (dry-run: %s)", opts.source, opts.dry_run)
        result = UploadResult(dry_run=opts.dry_run, local_sync_enabled=bool(self.mirrors))

        validate_source_path(opts.source)
        directories = scan_directory(opts.source)
        if not directories:
            log.warning("No directories found in source path")
            return result

        candidates = [sku for sku, d in directories.items() if d.is_variant]
        log.info(
            "Found %d product directories and %d variant directories to process",
            len(directories) - len(candidates),
            len(candidates),
        )
        known = self.primary.find_variants_by_skus(candidates) if candidates else {}
        directories = reconcile_variants(directories, known.keys())

        products, variants = split_by_kind(directories)
        for info in products + variants:
            try:
                self.process_directory(info, result)
            except (CleanupError, psycopg2.Error) as e:
                label = "product" if info.kind == PRODUCT else "variant"
                log.error("Failed to process %s images for SKU %s: %s", label, info.sku, e)
                result.add_error(f"{label} SKU {info.sku}: {e}")
                continue
            result.record_processed(info.kind)

        status = "completed (DRY RUN - no changes made)" if opts.dry_run else "completed"
        log.info(
            "Upload %s. Products: %d, Variants: %d, Total Images: %d (Product: %d, Variant: %d), "
            "Skipped: %d, Errors: %d, Total size: %.2f MB",
            status,
            result.processed_products,
            result.processed_variants,
            result.uploaded_images,
            result.uploaded_product_images,
            result.uploaded_variant_images,
            result.skipped_images,
            len(result.errors),
            result.total_size_mb,
        )
        return result

    def _find_entity(self, info: DirectoryInfo):
        if info.kind == PRODUCT:
            return self.primary.find_product(info.sku)
        return self.primary.find_variant(info.sku)

    def process_directory(self, info: DirectoryInfo, result: UploadResult) -> None:
        label = entity_label(info.kind).lower()
        entity = self._find_entity(info)
        if entity is None:
            log.warning("%s with SKU %s not found, skipping %d images", entity_label(info.kind), info.sku, len(info.images))
            result.record_skipped(info.kind, len(info.images))
            return

        log.info("Processing %d images for %s '%s' (SKU: %s, ID: %d)", len(info.images), label, entity.name, info.sku, entity.id)

        if self.options.clean_first:
            self.cleanup_existing_images(entity.id, info, result)

        for index, image_path in enumerate(info.images):
            try:
                size = image_path.stat().st_size
            except OSError as e:
                log.error("Cannot access image file %s: %s", image_path, e)
                result.add_error(f"file access {image_path}: {e}")
                result.record_skipped(info.kind)
                continue
            result.total_size_bytes += size

            if self.options.dry_run:
                log.info("[DRY RUN] Would upload %s image: %s (%.2f KB)", label, image_path.name, size / 1024)
                result.record_uploaded(info.kind)
                continue

            try:
                self.process_image(info, image_path, index, result)
            except IMAGE_ERRORS as e:
                log.error("Failed to process %s image %s: %s", label, image_path, e)
                result.add_error(f"{label} image {image_path}: {e}")
                result.record_skipped(info.kind)
                continue
            result.record_uploaded(info.kind)

    def process_image(self, info: DirectoryInfo, image_path: Path, sort_order: int, result: UploadResult) -> str:
        data = image_path.read_bytes()
        blob_name = blob_name_for(info.sku, image_path, self.id_factory())
        log.debug("Uploading %s as %s (entity_type: %s)", image_path.name, blob_name, info.kind)
        url = self.blobs.upload(blob_name, data)

        for store in self.stores:
            try:
                entity_id = store.resolve_entity_id(info.sku, info.kind)
                store.insert_image(entity_id, url, info.sku, sort_order, info.kind)
            except (psycopg2.Error, EntityNotFoundError) as e:
                if store.primary:
                    raise
                log.warning("Failed to sync image to %s database for SKU %s: %s", store.name, info.sku, e)
                result.local_sync_errors += 1
                continue
            log.debug("Synced image to %s database: %s (entity_id: %d)", store.name, url, entity_id)
        return url

    def cleanup_existing_images(self, entity_id: int, info: DirectoryInfo, result: UploadResult) -> int:
        """Remove an entity's stored blobs and their rows before reupload.

        Blob failures raise :class:`CleanupError`. Row cleanup failures after
        blobs are gone are only logged, so stale rows can outlive their blobs.
        """
        prefix = blob_prefix(info.sku)
        label = entity_label(info.kind).lower()

        if self.options.dry_run:
            try:
                names = self.blobs.list_with_prefix(prefix)
            except AzureError as e:
                raise CleanupError(f"failed to list existing blobs for SKU {info.sku}: {e}") from e
            if names:
                log.info("[DRY RUN] Would delete %d existing images for %s %s:", len(names), label, info.sku)
                for name in names:
                    log.info("[DRY RUN]   - %s", name)
            else:
                log.info("[DRY RUN] No existing images found for %s %s", label, info.sku)
            return 0

        try:
            deleted = self.blobs.delete_with_prefix(prefix)
        except AzureError as e:
            raise CleanupError(f"failed to delete existing blobs for SKU {info.sku}: {e}") from e

        if deleted == 0:
            log.info("No existing images found for %s %s", label, info.sku)
            return 0

        log.info("Deleted %d existing images from blob storage for %s %s", deleted, label, info.sku)
        for store in self.stores:
            try:
                store_entity_id = entity_id if store.primary else store.resolve_entity_id(info.sku, info.kind)
                store.delete_entity_images(store_entity_id, info.kind)
            except (psycopg2.Error, EntityNotFoundError) as e:
                log.warning("Failed to cleanup %s database records for %s %s: %s", store.name, label, info.sku, e)
                if store.primary:
                    result.cleanup_warnings += 1
                else:
                    result.local_sync_errors += 1
        return deleted


def build_stores(primary_dsn: str, local_dsn: Optional[str] = None) -> List[CatalogStore]:
    stores = [CatalogStore.connect("production", primary_dsn)]
    if local_dsn:
        try:
            stores.append(CatalogStore.connect("local", local_dsn, primary=False))
        except psycopg2.Error:
            stores[0].close()
            raise
    return stores

