"""Public schema exports."""

from .auth import DisconnectRequest, OAuthCallbackPayload
from .loyverse import (
    ConnectionTestResult,
    LoyverseCategory,
    LoyverseInventoryLevel,
    LoyverseItem,
    LoyverseMerchant,
    LoyverseModifierList,
    LoyverseStore,
    LoyverseTokenResponse,
    Page,
    decode_page,
)

__all__ = [
    "ConnectionTestResult",
    "DisconnectRequest",
    "LoyverseCategory",
    "LoyverseInventoryLevel",
    "LoyverseItem",
    "LoyverseMerchant",
    "LoyverseModifierList",
    "LoyverseStore",
    "LoyverseTokenResponse",
    "OAuthCallbackPayload",
    "Page",
    "decode_page",
]
