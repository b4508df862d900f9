"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by Loyverse OAuth.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class DisconnectRequest(BaseModel):
    """Body accepted by the disconnect endpoint."""

    restaurant_id: str = Field(..., min_length=1)


__all__ = ["DisconnectRequest", "OAuthCallbackPayload"]
