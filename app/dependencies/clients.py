"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache, partial
from typing import Callable, Optional

from fastapi import Depends

from app.clients import (
    IntegrationStore,
    LoyverseAPIClient,
    LoyverseOAuthClient,
    OAuthStateEncoder,
    create_loyverse_client,
)
from app.core.config import LoyverseSettings, get_settings
from app.dependencies.config import get_loyverse_settings
from app.services import LoyverseCredentialStore, TokenCipherService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Loyverse client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.loyverse.client_secret)


@lru_cache()
def get_loyverse_oauth_client() -> LoyverseOAuthClient:
    """Create a singleton Loyverse OAuth client."""
    return LoyverseOAuthClient(_settings().loyverse)


@lru_cache()
def get_integration_store() -> IntegrationStore:
    """Provide shared SQLite integration store."""
    return IntegrationStore(_settings().database_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for credential storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.loyverse.client_secret
    return TokenCipherService(
        secret=secret, previous_secrets=settings.security.previous_secrets
    )


@lru_cache()
def get_credential_store() -> LoyverseCredentialStore:
    """Provide encrypted Loyverse credential persistence."""
    return LoyverseCredentialStore(
        store=get_integration_store(),
        token_cipher=get_token_cipher_service(),
    )


def get_loyverse_client_factory(
    credential_store: LoyverseCredentialStore = Depends(get_credential_store),
    oauth_client: LoyverseOAuthClient = Depends(get_loyverse_oauth_client),
    settings: LoyverseSettings = Depends(get_loyverse_settings),
) -> Callable[[str], Optional[LoyverseAPIClient]]:
    """Provide a callable building a per-restaurant API client."""
    return partial(
        create_loyverse_client,
        credential_store=credential_store,
        oauth_client=oauth_client,
        settings=settings,
    )


__all__ = [
    "get_credential_store",
    "get_integration_store",
    "get_loyverse_client_factory",
    "get_loyverse_oauth_client",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
]
