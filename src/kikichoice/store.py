from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import psycopg2
import psycopg2.extras

from .images import PRODUCT, alt_text_for


log = logging.getLogger(__name__)


class EntityNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class ProductInfo:
    id: int
    sku: str
    name: str


@dataclass(frozen=True)
class VariantInfo:
    id: int
    sku: str
    product_id: int
    name: str


class CatalogStore:
    """One PostgreSQL database holding products, variants and their images.

    ``name`` labels the store in logs ("production", "local"). Only the
    primary store's failures count against a run.
    """

    def __init__(self, name: str, conn, primary: bool = True):
        self.name = name
        self.conn = conn
        self.primary = primary

    @classmethod
    def connect(cls, name: str, dsn: str, primary: bool = True) -> "CatalogStore":
        conn = psycopg2.connect(dsn)
        log.info("Connected to %s database", name)
        return cls(name, conn, primary=primary)

    def close(self) -> None:
        self.conn.close()
        log.debug("Closed %s database connection", self.name)

    def _fetchone(self, query: str, params: tuple) -> Optional[Dict]:
        with self.conn:
            with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        return dict(row) if row else None

    def find_product(self, sku: str) -> Optional[ProductInfo]:
        row = self._fetchone("SELECT id, sku, name FROM products WHERE sku = %s LIMIT 1", (sku,))
        return ProductInfo(**row) if row else None

    def find_variant(self, sku: str) -> Optional[VariantInfo]:
        row = self._fetchone(
            "SELECT id, sku, product_id, name FROM product_variants WHERE sku = %s LIMIT 1", (sku,)
        )
        return VariantInfo(**row) if row else None

    def find_variants_by_skus(self, skus: Iterable[str]) -> Dict[str, VariantInfo]:
        sku_list: List[str] = list(skus)
        if not sku_list:
            return {}
        with self.conn:
            with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(
                    "SELECT sku, id, product_id, name FROM product_variants WHERE sku = ANY(%s)",
                    (sku_list,),
                )
                rows = cur.fetchall()
        return {r["sku"]: VariantInfo(**dict(r)) for r in rows}

    def resolve_entity_id(self, sku: str, entity_type: str) -> int:
        entity = self.find_product(sku) if entity_type == PRODUCT else self.find_variant(sku)
        if entity is None:
            label = "product" if entity_type == PRODUCT else "variant"
            raise EntityNotFoundError(f"{label} with SKU {sku} not found in {self.name} database")
        return entity.id

    def insert_image(self, entity_id: int, url: str, sku: str, sort_order: int, entity_type: str) -> int:
        """Insert the image row and its association row in one transaction."""
        with self.conn:
            with self.conn.cursor() as cur:
                cur.execute("INSERT INTO images (url) VALUES (%s) RETURNING id", (url,))
                image_id = cur.fetchone()[0]
                cur.execute(
                    """
                    INSERT INTO image_entities (entity_id, image_id, alt_text, is_primary, sort_order, entity_type)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (entity_id, image_id, alt_text_for(entity_type, sku), sort_order == 0, sort_order, entity_type),
                )
        return image_id

    def delete_entity_images(self, entity_id: int, entity_type: str) -> int:
        with self.conn:
            with self.conn.cursor() as cur:
                cur.execute(
                    "SELECT image_id FROM image_entities WHERE entity_id = %s AND entity_type = %s",
                    (entity_id, entity_type),
                )
                image_ids = [r[0] for r in cur.fetchall()]
                if not image_ids:
                    return 0
                # association rows first, images.id is referenced by them
                cur.execute(
                    "DELETE FROM image_entities WHERE entity_id = %s AND entity_type = %s",
                    (entity_id, entity_type),
                )
                cur.execute("DELETE FROM images WHERE id = ANY(%s)", (image_ids,))
        log.debug("Cleaned up %d database records for %s ID %d in %s", len(image_ids), entity_type, entity_id, self.name)
        return len(image_ids)

