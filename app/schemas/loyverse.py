"""
Pydantic models for Loyverse API payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _LoyverseModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class LoyverseTokenResponse(BaseModel):
    """Successful response from the OAuth token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int
    scope: str = ""


class LoyverseMerchant(_LoyverseModel):
    id: str
    business_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[dict] = None
    created_at: Optional[str] = None


class LoyverseStore(_LoyverseModel):
    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    description: Optional[str] = None


class LoyverseVariant(_LoyverseModel):
    variant_id: str
    item_id: Optional[str] = None
    sku: Optional[str] = None
    cost: Optional[float] = None
    default_price: Optional[float] = None
    option1_value: Optional[str] = None
    option2_value: Optional[str] = None
    option3_value: Optional[str] = None


class LoyverseItem(_LoyverseModel):
    id: str
    item_name: str
    reference_id: Optional[str] = None
    category_id: Optional[str] = None
    description: Optional[str] = None
    track_stock: bool = False
    sold_by_weight: bool = False
    is_composite: bool = False
    use_production: bool = False
    modifier_ids: List[str] = Field(default_factory=list)
    tax_ids: List[str] = Field(default_factory=list)
    variants: List[LoyverseVariant] = Field(default_factory=list)
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class LoyverseCategory(_LoyverseModel):
    id: str
    name: str
    color: Optional[str] = None


class LoyverseModifierOption(_LoyverseModel):
    id: str
    name: str
    price: Optional[float] = None


class LoyverseModifierList(_LoyverseModel):
    id: str
    name: str
    modifier_options: List[LoyverseModifierOption] = Field(default_factory=list)


class LoyverseInventoryLevel(_LoyverseModel):
    variant_id: str
    store_id: str
    in_stock: float = 0
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Page:
    """One decoded page of a list endpoint."""

    items: List[Any] = field(default_factory=list)
    next_cursor: Optional[str] = None


def decode_page(payload: Any, *, collection_key: str = "items") -> Page:
    """Normalize a list response into a :class:`Page`.

    Handles ``{"items": [...], "cursor": ...}``, a bare JSON array, and any
    other payload, which is treated as a single-element page. Resource
    endpoints may name the collection after the resource (``stores``,
    ``categories``), hence ``collection_key``.
    """
    if isinstance(payload, list):
        return Page(items=list(payload))

    if isinstance(payload, dict):
        cursor = payload.get("cursor") or None
        for key in (collection_key, "items"):
            collection = payload.get(key)
            if isinstance(collection, list):
                return Page(items=list(collection), next_cursor=cursor)
        return Page(items=[payload], next_cursor=cursor)

    if payload is None:
        return Page()
    return Page(items=[payload])


class ConnectionTestResult(BaseModel):
    """Response returned after probing a restaurant's Loyverse connection."""

    success: bool = True
    message: str = "Loyverse integration is working"
    merchant: LoyverseMerchant
    stores: List[LoyverseStore] = Field(default_factory=list)


__all__ = [
    "ConnectionTestResult",
    "LoyverseCategory",
    "LoyverseInventoryLevel",
    "LoyverseItem",
    "LoyverseMerchant",
    "LoyverseModifierList",
    "LoyverseModifierOption",
    "LoyverseStore",
    "LoyverseTokenResponse",
    "LoyverseVariant",
    "Page",
    "decode_page",
]
