from __future__ import annotations
import json
import logging
from contextlib import contextmanager
from typing import Dict, List, Optional

import psycopg2
import psycopg2.extras


DSN: Optional[str] = None

HOT_SELLING_LIMIT = 6
HOT_SELLING_WINDOW_DAYS = 30
SOLD_ORDER_STATUSES = ("paid", "processing", "shipped", "delivered")

log = logging.getLogger(__name__)


def init_db(dsn: Optional[str]) -> None:
    global DSN
    DSN = dsn


@contextmanager
def _cursor():
    if DSN is None:
        raise psycopg2.OperationalError("database is not configured")
    conn = psycopg2.connect(DSN)
    try:
        with conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                yield cur
    finally:
        conn.close()


_PRODUCT_PRIMARY_IMAGE = """
    SELECT DISTINCT ON (ie.entity_id)
        ie.entity_id,
        i.url
    FROM image_entities ie
    JOIN images i ON ie.image_id = i.id
    WHERE ie.entity_type = 'product' AND ie.is_primary = true
    ORDER BY ie.entity_id, ie.sort_order
"""

_VARIANT_COUNT = """
    SELECT product_id, COUNT(*) AS count
    FROM product_variants
    GROUP BY product_id
"""

_VARIANTS_WITH_IMAGE = """
    SELECT
        pv.id,
        pv.product_id,
        pv.name,
        pv.stock_count,
        pv.reserved_count,
        pv.sku,
        pv.price,
        pv.uuid,
        pv.created_at,
        pv.updated_at,
        COALESCE(img.url, '') AS image_url
    FROM product_variants pv
    LEFT JOIN (
        SELECT DISTINCT ON (ie.entity_id)
            ie.entity_id,
            i.url
        FROM image_entities ie
        JOIN images i ON ie.image_id = i.id
        WHERE ie.entity_type = 'product_variant' AND ie.is_primary = true
        ORDER BY ie.entity_id, ie.sort_order
    ) img ON pv.id = img.entity_id
    WHERE pv.product_id = %s
    ORDER BY pv.name
"""


def _with_variant_flags(rows) -> List[Dict]:
    out = []
    for r in rows:
        d = dict(r)
        d["variant_count"] = int(d.get("variant_count") or 0)
        d["has_variant"] = d["variant_count"] > 0
        out.append(d)
    return out


def get_products(page: int, per_page: int) -> List[Dict]:
    offset = (page - 1) * per_page
    query = f"""
        SELECT
            p.id, p.uuid, p.sku, p.name, p.slug, p.price, p.original_price,
            p.stock_count, p.short_desc,
            COALESCE(variant_count.count, 0) AS variant_count,
            img.url AS primary_image_url
        FROM products p
        LEFT JOIN ({_VARIANT_COUNT}) variant_count ON p.id = variant_count.product_id
        LEFT JOIN ({_PRODUCT_PRIMARY_IMAGE}) img ON p.id = img.entity_id
        WHERE p.ready_for_sale = true
        ORDER BY p.created_at DESC
        LIMIT %s OFFSET %s
    """
    with _cursor() as cur:
        cur.execute(query, (per_page, offset))
        return _with_variant_flags(cur.fetchall())


def get_hot_selling_products() -> List[Dict]:
    """Products ranked by units sold recently, then newest for the rest."""
    query = f"""
        WITH product_sales AS (
            SELECT oi.product_id, SUM(oi.quantity) AS total_sold
            FROM order_items oi
            JOIN orders o ON oi.order_id = o.id
            WHERE o.created_at >= NOW() - make_interval(days => %s)
                AND o.status = ANY(%s)
            GROUP BY oi.product_id
        ),
        ranked_products AS (
            SELECT
                p.id, p.uuid, p.sku, p.name, p.slug, p.price, p.original_price,
                p.stock_count, p.short_desc, p.created_at,
                COALESCE(ps.total_sold, 0) AS sales_count,
                COALESCE(variant_count.count, 0) AS variant_count,
                img.url AS primary_image_url,
                CASE WHEN ps.total_sold > 0 THEN 1 ELSE 2 END AS sort_priority
            FROM products p
            LEFT JOIN product_sales ps ON p.id = ps.product_id
            LEFT JOIN ({_VARIANT_COUNT}) variant_count ON p.id = variant_count.product_id
            LEFT JOIN ({_PRODUCT_PRIMARY_IMAGE}) img ON p.id = img.entity_id
            WHERE p.ready_for_sale = true
        )
        SELECT
            id, uuid, sku, name, slug, price, original_price, stock_count,
            short_desc, variant_count, primary_image_url
        FROM ranked_products
        ORDER BY
            sort_priority ASC,
            CASE WHEN sort_priority = 1 THEN sales_count END DESC,
            CASE WHEN sort_priority = 2 THEN created_at END DESC
        LIMIT %s
    """
    with _cursor() as cur:
        cur.execute(query, (HOT_SELLING_WINDOW_DAYS, list(SOLD_ORDER_STATUSES), HOT_SELLING_LIMIT))
        return _with_variant_flags(cur.fetchall())


def parse_specs(raw) -> List[Dict]:
    if raw is None or raw == "":
        return []
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    return [{"name": s.get("spec_name", ""), "value": s.get("spec_value", "")} for s in data or []]


def get_product_by_uuid(uuid: str) -> Optional[Dict]:
    with _cursor() as cur:
        cur.execute(
            """
            SELECT
                p.id, p.uuid, p.sku, p.name, p.slug, p.price, p.original_price,
                p.short_desc, p.full_desc, p.stock_count, p.specs, p.ready_for_sale,
                p.created_at, p.updated_at
            FROM products p
            WHERE p.uuid = %s AND p.ready_for_sale = true
            """,
            (uuid,),
        )
        product = cur.fetchone()
        if not product:
            return None
        d = dict(product)
        cur.execute(
            """
            SELECT i.url, ie.is_primary, COALESCE(ie.sort_order, 0) AS sort_order
            FROM image_entities ie
            JOIN images i ON ie.image_id = i.id
            WHERE ie.entity_id = %s AND ie.entity_type = %s
            ORDER BY ie.sort_order, ie.id
            """,
            (d["id"], "product"),
        )
        d["images"] = [dict(r) for r in cur.fetchall()]
        cur.execute(_VARIANTS_WITH_IMAGE, (d["id"],))
        d["variants"] = [dict(r) for r in cur.fetchall()]
    d["specs"] = parse_specs(d.get("specs"))
    return d


def get_product_variants_by_uuid(uuid: str) -> Optional[List[Dict]]:
    """Variants of a sellable product, or None when the product is unknown."""
    with _cursor() as cur:
        cur.execute("SELECT id FROM products WHERE uuid = %s AND ready_for_sale = true", (uuid,))
        row = cur.fetchone()
        if not row:
            return None
        cur.execute(_VARIANTS_WITH_IMAGE, (row["id"],))
        return [dict(r) for r in cur.fetchall()]


def get_or_create_user(auth_provider: str, auth_provider_id: str, name: str, email: Optional[str]) -> Dict:
    columns = "id, name, email, created_at, updated_at, deleted_at, auth_provider, auth_provider_id"
    with _cursor() as cur:
        cur.execute(
            f"SELECT {columns} FROM users WHERE auth_provider_id = %s AND auth_provider = %s",
            (auth_provider_id, auth_provider),
        )
        existing = cur.fetchone()
        if existing:
            log.info("User already exists: provider_id=%s user_id=%s", auth_provider_id, existing["id"])
            return dict(existing)
        cur.execute(
            f"""
            INSERT INTO users (name, email, auth_provider, auth_provider_id)
            VALUES (%s, %s, %s, %s)
            RETURNING {columns}
            """,
            (name, email, auth_provider, auth_provider_id),
        )
        user = dict(cur.fetchone())
    log.info("Created new user: provider_id=%s user_id=%s name=%s", auth_provider_id, user["id"], name)
    return user
