from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from app.clients.loyverse import LoyverseAPIClient
from app.clients.loyverse_auth import LoyverseOAuthClient
from app.models.integration import LoyverseCredential
from app.services.loyverse_catalog import LoyverseCatalogService


def _catalog(settings, handler) -> tuple[LoyverseCatalogService, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    transport = httpx.MockTransport(recording)
    client = LoyverseAPIClient(
        restaurant_id="resto-1",
        credential=LoyverseCredential(
            access_token="access",
            refresh_token="refresh",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        ),
        settings=settings,
        oauth_client=LoyverseOAuthClient(settings, transport=transport),
        credential_store=None,
        transport=transport,
    )
    return LoyverseCatalogService(client), seen


@pytest.mark.asyncio
async def test_list_stores_reads_stores_collection(loyverse_settings) -> None:
    catalog, seen = _catalog(
        loyverse_settings,
        lambda request: httpx.Response(
            200, json={"stores": [{"id": "s-1", "name": "Main", "city": "Lagos"}]}
        ),
    )

    stores = await catalog.list_stores()

    assert [store.id for store in stores] == ["s-1"]
    assert stores[0].city == "Lagos"
    assert "limit" not in seen[0].url.params


@pytest.mark.asyncio
async def test_list_inventory_filters_by_store(loyverse_settings) -> None:
    catalog, seen = _catalog(
        loyverse_settings,
        lambda request: httpx.Response(
            200,
            json={
                "inventory_levels": [
                    {"variant_id": "v-1", "store_id": "s-1", "in_stock": 4}
                ],
                "cursor": None,
            },
        ),
    )

    levels = await catalog.list_inventory(store_id="s-1")

    assert levels[0].in_stock == 4
    assert seen[0].url.path == "/v1.0/inventory"
    assert seen[0].url.params["store_ids"] == "s-1"
    assert seen[0].url.params["limit"] == "250"


@pytest.mark.asyncio
async def test_list_modifiers_keeps_unknown_fields(loyverse_settings) -> None:
    catalog, _ = _catalog(
        loyverse_settings,
        lambda request: httpx.Response(
            200,
            json={
                "modifiers": [
                    {
                        "id": "mod-1",
                        "name": "Milk",
                        "position": 2,
                        "modifier_options": [{"id": "o-1", "name": "Oat", "price": 0.5}],
                    }
                ]
            },
        ),
    )

    modifiers = await catalog.list_modifiers()

    assert modifiers[0].modifier_options[0].name == "Oat"
    assert modifiers[0].model_extra == {"position": 2}
