from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Optional

import psycopg2
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field, ValidationError

from . import db
from . import settings as app_settings
from .models import (
    ClerkWebhookEvent,
    render_product_detail,
    render_product_list,
    render_variants,
    ProductVariantsListResponse,
)


ROOT = Path(__file__).resolve().parents[2]

# error codes
GET_PRODUCTS_FAILED = "GET_PRODUCTS_FAILED"
GET_PRODUCT_FAILED = "GET_PRODUCT_FAILED"
GET_PRODUCT_VARIANTS_FAILED = "GET_PRODUCT_VARIANTS_FAILED"
INVALID_QUERY_PARAMS = "INVALID_QUERY_PARAMS"
FAILED_TO_DECODE_WEBHOOK = "FAILED_TO_DECODE_WEBHOOK"
UNSUPPORTED_EVENT_TYPE = "UNSUPPORTED_EVENT_TYPE"
INVALID_WEBHOOK_PAYLOAD = "INVALID_WEBHOOK_PAYLOAD"
FAILED_TO_CREATE_USER = "FAILED_TO_CREATE_USER"

app_settings.init_settings(ROOT / ".env")
_settings = app_settings.get_settings()
logging.basicConfig(level=_settings["log_level"], format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger(__name__)

app = FastAPI(title="Kikichoice Catalog API", version="0.1.0")
db.init_db(_settings["database_url"])


def render_error(status_code: int, code: str, err: Optional[Exception] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"err_code": code, "err": str(err) if err else ""})


class ProductListQuery(BaseModel):
    page: int = Field(1, ge=1)
    per_page: int = Field(15, ge=1, le=100)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/v1/products")
def list_products(page: Optional[str] = None, per_page: Optional[str] = None):
    raw = {k: v for k, v in (("page", page), ("per_page", per_page)) if v not in (None, "")}
    try:
        query = ProductListQuery.model_validate(raw)
    except ValidationError as e:
        return render_error(400, INVALID_QUERY_PARAMS, e)
    try:
        rows = db.get_products(query.page, query.per_page)
    except psycopg2.Error as e:
        log.error("Failed to get products: %s", e)
        return render_error(500, GET_PRODUCTS_FAILED, e)
    return render_product_list(rows)


# registered before /v1/products/{uuid} so the literal path wins
@app.get("/v1/products/hot-selling")
def hot_selling_products():
    try:
        rows = db.get_hot_selling_products()
    except psycopg2.Error as e:
        log.error("Failed to get hot selling products: %s", e)
        return render_error(500, GET_PRODUCTS_FAILED, e)
    return render_product_list(rows)


@app.get("/v1/products/{uuid}")
def product_detail(uuid: str):
    try:
        detail = db.get_product_by_uuid(uuid)
    except (psycopg2.Error, ValueError) as e:
        return render_error(404, GET_PRODUCT_FAILED, e)
    if detail is None:
        return render_error(404, GET_PRODUCT_FAILED, LookupError(f"product {uuid} not found"))
    return render_product_detail(detail)


@app.get("/v1/products/{uuid}/variants")
def product_variants(uuid: str):
    try:
        rows = db.get_product_variants_by_uuid(uuid)
    except psycopg2.Error as e:
        return render_error(404, GET_PRODUCT_VARIANTS_FAILED, e)
    return ProductVariantsListResponse(variants=render_variants(rows or []))


@app.post("/v1/webhooks/clerk/create-user")
async def clerk_create_user(request: Request):
    log.info("Processing Clerk webhook request")
    try:
        event = ClerkWebhookEvent.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        log.error("Failed to decode webhook payload: %s", e)
        return render_error(400, FAILED_TO_DECODE_WEBHOOK, e)

    log.info("Received webhook event type=%s object=%s user_id=%s", event.type, event.object, event.data.id)
    if event.type != "user.created":
        log.warning("Unsupported event type: %s", event.type)
        return render_error(400, UNSUPPORTED_EVENT_TYPE)
    if not event.data.id:
        log.error("Missing user ID in webhook payload")
        return render_error(400, INVALID_WEBHOOK_PAYLOAD)

    try:
        user = await run_in_threadpool(
            db.get_or_create_user, "clerk", event.data.id, event.data.full_name(), event.data.primary_email()
        )
    except psycopg2.Error as e:
        log.error("Failed to create user from Clerk data clerk_id=%s: %s", event.data.id, e)
        return render_error(500, FAILED_TO_CREATE_USER, e)

    log.info("Successfully processed user.created webhook clerk_id=%s user_id=%s", event.data.id, user["id"])
    return {"message": "User created successfully", "user_id": user["id"], "clerk_id": event.data.id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=_settings["host"], port=_settings["port"], log_level=_settings["log_level"].lower())
