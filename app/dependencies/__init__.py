"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_store,
    get_integration_store,
    get_loyverse_client_factory,
    get_loyverse_oauth_client,
    get_oauth_state_encoder,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings, get_loyverse_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_credential_store",
    "get_integration_store",
    "get_loyverse_client_factory",
    "get_loyverse_oauth_client",
    "get_loyverse_settings",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
]
