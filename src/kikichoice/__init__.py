"""
Kikichoice catalog image ingestion library.

This package provides the building blocks for:
- Scanning an images tree into product/variant directories
- Reconciling variant guesses against the catalog database
- Uploading images to blob storage and recording them per entity
- Mirroring image rows to a secondary (local) database

Public API:
- images.scan_directory, images.classify_directory, images.reconcile_variants
- store.CatalogStore
- blob_storage.BlobStore
- uploader.ImageUploader, uploader.UploadResult
- cli.main
"""

from . import images, config, store, blob_storage, uploader  # re-export modules

__all__ = [
    "images",
    "config",
    "store",
    "blob_storage",
    "uploader",
]
