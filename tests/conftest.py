"""
Shared pytest fixtures.

The ingestion tests never touch a real database or blob account: they use the
in-memory `FakeCatalogStore` and `FakeBlobStore` below, which expose the same
methods as `kikichoice.store.CatalogStore` and `kikichoice.blob_storage.BlobStore`.
The SQL layers themselves are tested against `RecordingConnection`, which
records executed statements and replays scripted rows.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import psycopg2
import pytest
from azure.core.exceptions import AzureError

# ── Make src/ importable without installing the package ───────────────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from kikichoice.images import PRODUCT  # noqa: E402
from kikichoice.store import EntityNotFoundError, ProductInfo, VariantInfo  # noqa: E402


class FakeBlobStore:
    def __init__(self, existing: Optional[Iterable[str]] = None):
        self.blobs: Dict[str, bytes] = {name: b"old" for name in existing or []}
        self.uploads: List[str] = []
        self.deletes: List[str] = []
        self.fail_upload_for: set = set()
        self.fail_delete = False

    def public_url(self, blob_name: str) -> str:
        return f"https://acct.blob.core.windows.net/products/{blob_name}"

    def upload(self, blob_name: str, data: bytes) -> str:
        if any(blob_name.startswith(p) for p in self.fail_upload_for):
            raise AzureError(f"upload refused for {blob_name}")
        self.uploads.append(blob_name)
        self.blobs[blob_name] = data
        return self.public_url(blob_name)

    def list_with_prefix(self, prefix: str) -> List[str]:
        return sorted(n for n in self.blobs if n.startswith(prefix))

    def delete(self, blob_name: str) -> None:
        if self.fail_delete:
            raise AzureError(f"delete refused for {blob_name}")
        self.deletes.append(blob_name)
        del self.blobs[blob_name]

    def delete_with_prefix(self, prefix: str) -> int:
        names = self.list_with_prefix(prefix)
        for name in names:
            self.delete(name)
        return len(names)


class FakeCatalogStore:
    def __init__(self, name: str = "production", primary: bool = True, products=None, variants=None):
        self.name = name
        self.primary = primary
        self.products: Dict[str, ProductInfo] = {}
        self.variants: Dict[str, VariantInfo] = {}
        for i, sku in enumerate(products or [], start=1):
            self.products[sku] = ProductInfo(id=i, sku=sku, name=f"Product {sku}")
        for i, sku in enumerate(variants or [], start=100):
            self.variants[sku] = VariantInfo(id=i, sku=sku, product_id=1, name=f"Variant {sku}")
        self.images: List[Dict] = []
        self.write_transactions = 0
        self.fail_insert = False
        self.fail_delete = False
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def find_product(self, sku: str) -> Optional[ProductInfo]:
        return self.products.get(sku)

    def find_variant(self, sku: str) -> Optional[VariantInfo]:
        return self.variants.get(sku)

    def find_variants_by_skus(self, skus: Iterable[str]) -> Dict[str, VariantInfo]:
        return {s: self.variants[s] for s in skus if s in self.variants}

    def resolve_entity_id(self, sku: str, entity_type: str) -> int:
        entity = self.find_product(sku) if entity_type == PRODUCT else self.find_variant(sku)
        if entity is None:
            raise EntityNotFoundError(f"{sku} not found in {self.name} database")
        return entity.id

    def insert_image(self, entity_id: int, url: str, sku: str, sort_order: int, entity_type: str) -> int:
        self.write_transactions += 1
        if self.fail_insert:
            raise psycopg2.OperationalError(f"{self.name} database unavailable")
        self.images.append(
            {
                "entity_id": entity_id,
                "url": url,
                "sku": sku,
                "sort_order": sort_order,
                "is_primary": sort_order == 0,
                "entity_type": entity_type,
            }
        )
        return len(self.images)

    def delete_entity_images(self, entity_id: int, entity_type: str) -> int:
        self.write_transactions += 1
        if self.fail_delete:
            raise psycopg2.OperationalError(f"{self.name} cleanup failed")
        before = len(self.images)
        self.images = [
            i for i in self.images if not (i["entity_id"] == entity_id and i["entity_type"] == entity_type)
        ]
        return before - len(self.images)


def write_image(path: Path, content: bytes = b"\x89PNG-data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def kivy_tree(tmp_path):
    """images/kivy-007/{a.jpg,b.png} and images/kivy-007-dog/c.webp"""
    root = tmp_path / "images"
    write_image(root / "kivy-007" / "a.jpg")
    write_image(root / "kivy-007" / "b.png")
    write_image(root / "kivy-007-dog" / "c.webp")
    return root


@pytest.fixture
def blobs():
    return FakeBlobStore()


class RecordingCursor:
    def __init__(self, conn: "RecordingConnection"):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query: str, params=None) -> None:
        query = " ".join(query.split())
        if self.conn.fail_on and self.conn.fail_on in query:
            raise psycopg2.OperationalError(f"failed: {self.conn.fail_on}")
        self.conn.executed.append((query, params))

    def fetchone(self):
        return self.conn.results.pop(0)

    def fetchall(self):
        return self.conn.results.pop(0)


class RecordingConnection:
    """psycopg2 connection stand-in that records SQL and replays scripted results.

    ``results`` is consumed in order, one entry per ``fetchone``/``fetchall``.
    """

    def __init__(self, results=(), fail_on: Optional[str] = None):
        self.results = list(results)
        self.fail_on = fail_on
        self.executed: List[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *rest):
        if exc_type is None:
            self.commits += 1
        else:
            self.rollbacks += 1
        return False

    def cursor(self, cursor_factory=None) -> RecordingCursor:
        return RecordingCursor(self)

    def close(self) -> None:
        self.closed = True

    def statements(self) -> List[str]:
        return [q for q, _ in self.executed]
