"""
Domain models for POS integration persistence.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

LOYVERSE_PLATFORM_ID = "loyverse"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntegrationStatus(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


class LoyverseCredential(BaseModel):
    """OAuth token set for one restaurant's Loyverse connection."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    scopes: str = ""


class IntegrationSettings(BaseModel):
    """Per-restaurant synchronisation preferences."""

    sync_prices: bool = False
    sync_inventory: bool = False
    sync_direction: Literal["TO_LOYVERSE", "FROM_LOYVERSE", "BIDIRECTIONAL"] = (
        "FROM_LOYVERSE"
    )


class IntegrationRecord(BaseModel):
    """Represents an integration row keyed by restaurant and platform."""

    restaurant_id: str = Field(..., description="Tenant owning the integration.")
    platform_id: str = Field(LOYVERSE_PLATFORM_ID)
    status: IntegrationStatus = IntegrationStatus.DISCONNECTED
    credentials: Optional[LoyverseCredential] = Field(
        None, description="Decrypted credentials; absent once disconnected."
    )
    settings: IntegrationSettings = Field(default_factory=IntegrationSettings)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_connected(self) -> bool:
        return self.status is IntegrationStatus.CONNECTED


__all__ = [
    "IntegrationRecord",
    "IntegrationSettings",
    "IntegrationStatus",
    "LOYVERSE_PLATFORM_ID",
    "LoyverseCredential",
]
