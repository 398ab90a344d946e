from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import psycopg2

from .blob_storage import BlobStore
from .config import (
    DEFAULT_SOURCE,
    BlobStorageConfig,
    ConfigError,
    DatabaseConfig,
    LocalDBConfig,
    UploadOptions,
    load_env,
)
from .uploader import ImageUploader, SourcePathError, UploadResult, build_stores


EPILOG = """\
Directory Structure:
  product-sku/          # Product images
    image1.jpg
    image2.png
  product-sku-variant/  # Variant images (must have matching parent SKU)
    variant1.jpg
    variant2.png

Examples:
  image-uploader.py ./images
  image-uploader.py --dry-run /path/to/images
  image-uploader.py --clean-first ./images
  LOCAL_DB_ENABLED=true LOCAL_DB_HOST=localhost LOCAL_DB_PORT=55322 image-uploader.py --sync-local ./images

Environment Variables for Local Database Sync:
  LOCAL_DB_ENABLED=true    # Enable local database sync
  LOCAL_DB_HOST=localhost  # Local database host
  LOCAL_DB_PORT=55322      # Local database port (default: 5432)
  LOCAL_DB_USER=postgres   # Local database user (default: postgres)
  LOCAL_DB_PASSWORD=pass   # Local database password (optional)
  LOCAL_DB_NAME=postgres   # Local database name (default: postgres)
"""


def fail(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Product Image Upload Tool",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("source", nargs="?", default=DEFAULT_SOURCE, help=f"Images directory (default: {DEFAULT_SOURCE})")
    p.add_argument("--dry-run", action="store_true", help="Run in dry-run mode without making actual changes")
    p.add_argument(
        "--clean-first",
        action="store_true",
        help="Remove all existing images for each SKU before uploading new ones",
    )
    p.add_argument(
        "--sync-local",
        action="store_true",
        help="Enable local database sync (requires LOCAL_DB_* environment variables)",
    )
    p.add_argument("--dotenv", help="Path to .env file (optional)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
    return p.parse_args(argv)


def options_from_args(args: argparse.Namespace) -> UploadOptions:
    return UploadOptions(
        source=Path(args.source).expanduser(),
        dry_run=bool(args.dry_run),
        clean_first=bool(args.clean_first),
        sync_local=bool(args.sync_local),
    )


def format_summary(result: UploadResult) -> str:
    lines = ["", "=== Upload Summary ==="]
    if result.dry_run:
        lines.append("DRY RUN MODE - No actual changes were made")
    lines += [
        f"Processed Products: {result.processed_products}",
        f"Processed Variants: {result.processed_variants}",
        f"Total Uploaded Images: {result.uploaded_images}",
        f"  - Product Images: {result.uploaded_product_images}",
        f"  - Variant Images: {result.uploaded_variant_images}",
        f"Total Skipped Images: {result.skipped_images}",
        f"  - Product Images: {result.skipped_product_images}",
        f"  - Variant Images: {result.skipped_variant_images}",
        f"Total Size: {result.total_size_mb:.2f} MB",
        f"Errors: {len(result.errors)}",
    ]
    if result.cleanup_warnings:
        lines.append(f"Cleanup Warnings: {result.cleanup_warnings} (database rows may remain for deleted blobs)")
    if result.local_sync_enabled:
        sync = "Local Database Sync: Enabled"
        if result.local_sync_errors:
            sync += f" ({result.local_sync_errors} sync errors)"
        lines.append(sync)
    if result.errors:
        lines += ["", "Errors encountered:"]
        lines += [f"- {e}" for e in result.errors]
    if result.dry_run:
        lines += ["", "Run without --dry-run flag to perform actual upload"]
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    log = logging.getLogger(__name__)

    options = options_from_args(args)
    if not options.source.exists():
        fail(f"Source directory does not exist: {options.source}")

    try:
        load_env(args.dotenv)
        primary_dsn = DatabaseConfig.from_env().dsn()
        local_dsn = LocalDBConfig.from_env().dsn() if options.sync_local else None
        blobs = BlobStore(BlobStorageConfig.from_env())
    except ConfigError as e:
        fail(f"Configuration error: {e}")

    try:
        stores = build_stores(primary_dsn, local_dsn)
    except psycopg2.Error as e:
        fail(f"Failed to connect to database: {e}")

    try:
        result = ImageUploader(blobs, stores, options).run()
    except (SourcePathError, psycopg2.Error) as e:
        fail(f"Upload failed: {e}")
    finally:
        for store in stores:
            store.close()

    log.info("Upload finished with %d error(s)", len(result.errors))
    print(format_summary(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
