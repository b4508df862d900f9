"""Expose constructed client wrappers."""

from .integration_store import IntegrationStore
from .loyverse import LoyverseAPIClient, create_loyverse_client
from .loyverse_auth import LoyverseOAuthClient, OAuthStateEncoder
from .loyverse_errors import (
    ApiError,
    AuthenticationError,
    LoyverseError,
    MaxRetriesExceededError,
)

__all__ = [
    "ApiError",
    "AuthenticationError",
    "IntegrationStore",
    "LoyverseAPIClient",
    "LoyverseError",
    "LoyverseOAuthClient",
    "MaxRetriesExceededError",
    "OAuthStateEncoder",
    "create_loyverse_client",
]
