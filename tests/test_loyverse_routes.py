try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.loyverse import create_loyverse_client
from app.clients.loyverse_auth import LoyverseOAuthClient, OAuthTokenExchangeError
from app.main import app
from app.models.integration import IntegrationStatus, LoyverseCredential
from app.schemas import LoyverseTokenResponse


class StubOAuthClient:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.revoked: list[str] = []

    def build_authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://oauth.example.com/authorize?state={state}"

    async def exchange_authorization_code(self, code: str) -> LoyverseTokenResponse:
        self.codes.append(code)
        if code == "unreachable":
            raise httpx.ConnectError("token endpoint down")
        if code == "bad-code":
            raise OAuthTokenExchangeError("rejected", status_code=400, error="invalid_grant")
        return LoyverseTokenResponse(
            access_token="access-token",
            refresh_token="refresh-token",
            expires_in=3600,
            scope="ITEMS_READ",
        )

    async def revoke_token(self, token: str) -> None:
        self.revoked.append(token)


def _upstream(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/merchant"):
        return httpx.Response(200, json={"id": "merchant-1", "business_name": "Bistro"})
    if path.endswith("/stores"):
        return httpx.Response(200, json={"stores": [{"id": "store-1", "name": "Main"}]})
    if path.endswith("/items"):
        cursor = request.url.params.get("cursor")
        if cursor is None:
            return httpx.Response(
                200,
                json={"items": [{"id": "item-1", "item_name": "Latte"}], "cursor": "next"},
            )
        return httpx.Response(
            200, json={"items": [{"id": "item-2", "item_name": "Mocha"}], "cursor": None}
        )
    return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND"}]})


@pytest.fixture()
def route_overrides(credential_store, loyverse_settings):
    from app import dependencies
    from app.core.config import get_settings

    oauth_client = StubOAuthClient()
    settings = get_settings().model_copy(update={"frontend_base_url": None})
    transport = httpx.MockTransport(_upstream)

    def client_factory(restaurant_id: str):
        return create_loyverse_client(
            restaurant_id,
            credential_store=credential_store,
            oauth_client=LoyverseOAuthClient(loyverse_settings, transport=transport),
            settings=loyverse_settings,
            transport=transport,
        )

    app.dependency_overrides.update(
        {
            dependencies.get_loyverse_oauth_client: lambda: oauth_client,
            dependencies.get_credential_store: lambda: credential_store,
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_loyverse_client_factory: lambda: client_factory,
        }
    )

    yield oauth_client, credential_store

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def _connect(credential_store) -> None:
    credential_store.save_connection(
        "resto-1",
        LoyverseCredential(
            access_token="access-token",
            refresh_token="refresh-token",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        ),
    )


async def _authorize_state(client: httpx.AsyncClient) -> str:
    response = await client.get(
        "/api/integrations/loyverse/authorize", params={"restaurant_id": "resto-1"}
    )
    return response.json()["state"]


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_authorize_returns_url_and_state(route_overrides) -> None:
    oauth_client, _ = route_overrides
    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/authorize",
            params={"restaurant_id": "resto-1", "user_id": "user-9"},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["authorization_url"].startswith("https://oauth.example.com/authorize")
    assert oauth_client.states == [data["state"]]


@pytest.mark.anyio
async def test_authorize_redirects_when_requested(route_overrides) -> None:
    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/authorize",
            params={"restaurant_id": "resto-1", "redirect": "true"},
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://oauth.example.com/authorize")


@pytest.mark.anyio
async def test_callback_stores_connected_integration(route_overrides) -> None:
    oauth_client, credential_store = route_overrides
    async with _client() as client:
        state = await _authorize_state(client)
        response = await client.get(
            "/api/integrations/loyverse/callback",
            params={"code": "auth-code", "state": state},
        )

    assert response.status_code == 200
    assert response.json() == {"status": "connected", "restaurant_id": "resto-1"}
    assert oauth_client.codes == ["auth-code"]

    record = credential_store.get_integration("resto-1")
    assert record.status is IntegrationStatus.CONNECTED
    assert record.credentials.access_token == "access-token"
    assert record.credentials.scopes == "ITEMS_READ"


@pytest.mark.anyio
async def test_post_callback_rejects_tampered_state(route_overrides) -> None:
    oauth_client, _ = route_overrides
    async with _client() as client:
        response = await client.post(
            "/api/integrations/loyverse/callback",
            json={"code": "auth-code", "state": "bm90LWEtcmVhbC1zdGF0ZQ=="},
        )

    assert response.status_code == 400
    assert oauth_client.codes == []


@pytest.mark.anyio
async def test_callback_reports_provider_error(route_overrides) -> None:
    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/callback", params={"error": "access_denied"}
        )

    assert response.status_code == 400
    assert "access_denied" in response.json()["detail"]


@pytest.mark.anyio
async def test_callback_redirects_with_error_code_to_frontend(route_overrides) -> None:
    from app import dependencies
    from app.core.config import get_settings

    settings = get_settings().model_copy(
        update={"frontend_base_url": "https://frontend.example"}
    )
    app.dependency_overrides[dependencies.get_app_settings] = lambda: settings

    async with _client() as client:
        state = await _authorize_state(client)
        response = await client.get(
            "/api/integrations/loyverse/callback",
            params={"code": "bad-code", "state": state, "redirect": "true"},
        )

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert location.path == "/dashboard/settings/integrations"
    assert parse_qs(location.query) == {"error": ["invalid_grant"]}


@pytest.mark.anyio
async def test_callback_transport_failure_is_reported_not_raised(route_overrides) -> None:
    _, credential_store = route_overrides
    async with _client() as client:
        state = await _authorize_state(client)
        response = await client.get(
            "/api/integrations/loyverse/callback",
            params={"code": "unreachable", "state": state},
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "Failed to exchange authorization code."
    assert credential_store.get_integration("resto-1") is None


@pytest.mark.anyio
async def test_callback_transport_failure_redirects_browser(route_overrides) -> None:
    from app import dependencies
    from app.core.config import get_settings

    settings = get_settings().model_copy(
        update={"frontend_base_url": "https://frontend.example"}
    )
    app.dependency_overrides[dependencies.get_app_settings] = lambda: settings

    async with _client() as client:
        state = await _authorize_state(client)
        response = await client.get(
            "/api/integrations/loyverse/callback",
            params={"code": "unreachable", "state": state},
            headers={"Accept": "text/html"},
        )

    assert response.status_code == 307
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert query == {"error": ["token_exchange_failed"]}


@pytest.mark.anyio
async def test_connection_test_returns_merchant_and_stores(route_overrides) -> None:
    _, credential_store = route_overrides
    _connect(credential_store)

    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/test", params={"restaurant_id": "resto-1"}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["merchant"]["id"] == "merchant-1"
    assert [store["id"] for store in data["stores"]] == ["store-1"]


@pytest.mark.anyio
async def test_connection_test_404_when_not_connected(route_overrides) -> None:
    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/test", params={"restaurant_id": "nobody"}
        )

    assert response.status_code == 404


@pytest.mark.anyio
async def test_items_endpoint_returns_all_pages(route_overrides) -> None:
    _, credential_store = route_overrides
    _connect(credential_store)

    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/items", params={"restaurant_id": "resto-1"}
        )

    assert response.status_code == 200
    assert [item["item_name"] for item in response.json()] == ["Latte", "Mocha"]


@pytest.mark.anyio
async def test_disconnect_revokes_and_marks_disconnected(route_overrides) -> None:
    oauth_client, credential_store = route_overrides
    _connect(credential_store)

    async with _client() as client:
        response = await client.post(
            "/api/integrations/loyverse/disconnect", json={"restaurant_id": "resto-1"}
        )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert oauth_client.revoked == ["access-token"]
    record = credential_store.get_integration("resto-1")
    assert record.status is IntegrationStatus.DISCONNECTED
    assert record.credentials is None


@pytest.mark.anyio
async def test_disconnect_unknown_integration_returns_404(route_overrides) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/integrations/loyverse/disconnect", json={"restaurant_id": "ghost"}
        )

    assert response.status_code == 404


@pytest.mark.anyio
async def test_items_endpoint_rejects_malformed_upstream_records(
    route_overrides, loyverse_settings
) -> None:
    from app import dependencies

    _, credential_store = route_overrides
    _connect(credential_store)
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"items": [{"id": "x"}], "cursor": None})
    )

    def client_factory(restaurant_id: str):
        return create_loyverse_client(
            restaurant_id,
            credential_store=credential_store,
            oauth_client=LoyverseOAuthClient(loyverse_settings, transport=transport),
            settings=loyverse_settings,
            transport=transport,
        )

    app.dependency_overrides[dependencies.get_loyverse_client_factory] = lambda: client_factory

    async with _client() as client:
        response = await client.get(
            "/api/integrations/loyverse/items", params={"restaurant_id": "resto-1"}
        )

    assert response.status_code == 502
    assert "LoyverseItem" in response.json()["detail"]
