"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.clients.integration_store import IntegrationStore
from app.core.config import LoyverseSettings
from app.services.loyverse_credentials import LoyverseCredentialStore
from app.services.token_cipher import TokenCipherService


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def loyverse_settings() -> LoyverseSettings:
    return LoyverseSettings(
        client_id="client",
        client_secret="secret",
        token_url="https://oauth.example/token",
        revoke_url="https://oauth.example/revoke",
        api_base_url="https://api.example",
        requests_per_minute=1000,
    )


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="secret-key")


@pytest.fixture
def integration_store(tmp_path) -> IntegrationStore:
    return IntegrationStore(str(tmp_path / "integrations.db"))


@pytest.fixture
def credential_store(integration_store, cipher) -> LoyverseCredentialStore:
    return LoyverseCredentialStore(integration_store, cipher)
