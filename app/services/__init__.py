"""Service layer exports."""

from .loyverse_catalog import LoyverseCatalogService
from .loyverse_credentials import LoyverseCredentialStore
from .token_cipher import TokenCipherService

__all__ = [
    "LoyverseCatalogService",
    "LoyverseCredentialStore",
    "TokenCipherService",
]
