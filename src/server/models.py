from __future__ import annotations
from typing import Dict, List, Optional

from pydantic import BaseModel


# --- Products ---
class ProductResponse(BaseModel):
    uuid: str
    sku: str
    name: str
    price: Optional[float] = None
    original_price: Optional[float] = None
    stock_count: int = 0
    short_desc: Optional[str] = None
    variant_count: int = 0
    primary_image_url: Optional[str] = None
    has_variant: bool = False


class ProductListResponse(BaseModel):
    products: List[ProductResponse]


class ProductImageResponse(BaseModel):
    url: str
    is_primary: bool


class ProductSpecResponse(BaseModel):
    name: str
    value: str


class ProductVariantResponse(BaseModel):
    name: str
    sku: str
    stock_count: int = 0
    image_url: str = ""
    price: Optional[float] = None
    uuid: str


class ProductVariantsListResponse(BaseModel):
    variants: List[ProductVariantResponse]


class ProductDetailResponse(BaseModel):
    uuid: str
    sku: str
    name: str
    slug: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    short_desc: Optional[str] = None
    full_desc: Optional[str] = None
    stock_count: int = 0
    images: List[ProductImageResponse]
    specs: List[ProductSpecResponse]
    variants: List[ProductVariantResponse]


def render_product_list(rows: List[Dict]) -> ProductListResponse:
    return ProductListResponse(products=[ProductResponse.model_validate(r) for r in rows])


def render_variants(rows: List[Dict]) -> List[ProductVariantResponse]:
    return [ProductVariantResponse.model_validate({**r, "image_url": r.get("image_url") or ""}) for r in rows]


def render_product_detail(d: Dict) -> ProductDetailResponse:
    return ProductDetailResponse(
        uuid=d["uuid"],
        sku=d["sku"],
        name=d["name"],
        slug=d.get("slug"),
        price=d.get("price"),
        original_price=d.get("original_price"),
        short_desc=d.get("short_desc"),
        full_desc=d.get("full_desc"),
        stock_count=d.get("stock_count") or 0,
        images=[ProductImageResponse(url=i["url"], is_primary=bool(i["is_primary"])) for i in d.get("images", [])],
        specs=[ProductSpecResponse(**s) for s in d.get("specs", [])],
        variants=render_variants(d.get("variants", [])),
    )


# --- Identity provider webhooks ---
class ClerkEmailVerification(BaseModel):
    status: str = ""
    strategy: str = ""


class ClerkEmailAddress(BaseModel):
    email_address: str
    id: str = ""
    verification: ClerkEmailVerification = ClerkEmailVerification()


class ClerkUser(BaseModel):
    id: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_addresses: List[ClerkEmailAddress] = []
    image_url: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0
    external_id: Optional[str] = None

    def primary_email(self) -> Optional[str]:
        """First verified address, else the first address on file."""
        if not self.email_addresses:
            return None
        for e in self.email_addresses:
            if e.verification.status == "verified":
                return e.email_address
        return self.email_addresses[0].email_address

    def full_name(self) -> str:
        name = " ".join(n for n in (self.first_name, self.last_name) if n)
        return name or "User"


class ClerkWebhookEvent(BaseModel):
    data: ClerkUser = ClerkUser()
    object: str = ""
    type: str = ""
    timestamp: int = 0
    instance_id: str = ""
