"""
Typed read access to a restaurant's Loyverse catalog.
"""

from __future__ import annotations

from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.clients.loyverse import LoyverseAPIClient
from app.clients.loyverse_errors import ApiError
from app.schemas import (
    LoyverseCategory,
    LoyverseInventoryLevel,
    LoyverseItem,
    LoyverseMerchant,
    LoyverseModifierList,
    LoyverseStore,
)
from app.schemas.loyverse import decode_page

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: Type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ApiError(f"Unexpected Loyverse payload for {model.__name__}") from exc


class LoyverseCatalogService:
    """Map raw Loyverse responses onto schema models."""

    def __init__(self, client: LoyverseAPIClient) -> None:
        self._client = client

    async def get_merchant(self) -> LoyverseMerchant:
        return _validate(LoyverseMerchant, await self._client.get("/merchant"))

    async def list_stores(self) -> List[LoyverseStore]:
        # /stores is not cursor paginated.
        page = decode_page(await self._client.get("/stores"), collection_key="stores")
        return [_validate(LoyverseStore, store) for store in page.items]

    async def list_items(self) -> List[LoyverseItem]:
        items = await self._client.paginate("/items", collection_key="items")
        return [_validate(LoyverseItem, item) for item in items]

    async def list_categories(self) -> List[LoyverseCategory]:
        categories = await self._client.paginate(
            "/categories", collection_key="categories"
        )
        return [_validate(LoyverseCategory, category) for category in categories]

    async def list_modifiers(self) -> List[LoyverseModifierList]:
        modifiers = await self._client.paginate("/modifiers", collection_key="modifiers")
        return [_validate(LoyverseModifierList, modifier) for modifier in modifiers]

    async def list_inventory(self, *, store_id: str | None = None) -> List[LoyverseInventoryLevel]:
        params = {"store_ids": store_id} if store_id else None
        levels = await self._client.paginate(
            "/inventory", params, collection_key="inventory_levels"
        )
        return [_validate(LoyverseInventoryLevel, level) for level in levels]


__all__ = ["LoyverseCatalogService"]
