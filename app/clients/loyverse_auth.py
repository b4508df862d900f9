"""
Loyverse OAuth utilities.

These helpers manage the merchant authorization flow and the token refresh
lifecycle.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.clients.loyverse_errors import (
    AuthenticationError,
    LoyverseError,
    parse_error_payload,
)
from app.core.config import LoyverseSettings
from app.schemas.loyverse import LoyverseTokenResponse

logger = logging.getLogger(__name__)


class InvalidOAuthStateError(ValueError):
    """Raised when a state token is malformed, tampered with, or expired."""


class OAuthTokenExchangeError(LoyverseError):
    """Raised when the authorization code exchange is rejected."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        body = dict(payload)
        body.setdefault("issued_at", datetime.now(timezone.utc).isoformat())
        serialized = json.dumps(body, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str, *, max_age_seconds: Optional[int] = None) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidOAuthStateError("OAuth state is not valid base64.") from exc

        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidOAuthStateError("Invalid OAuth state signature.")

        payload = json.loads(serialized)
        if max_age_seconds is not None:
            issued_at = _parse_issued_at(payload.get("issued_at"))
            if datetime.now(timezone.utc) - issued_at > timedelta(seconds=max_age_seconds):
                raise InvalidOAuthStateError("OAuth state token has expired.")
        return payload


def _parse_issued_at(raw: Any) -> datetime:
    if not raw:
        raise InvalidOAuthStateError("Missing issued_at in state token.")
    try:
        issued_at = datetime.fromisoformat(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidOAuthStateError("Invalid issued_at in state token.") from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return issued_at


class LoyverseOAuthClient:
    """Build Loyverse authorization URLs and talk to the token endpoints."""

    def __init__(
        self,
        settings: LoyverseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def build_authorization_url(self, state: str) -> str:
        """Construct the Loyverse OAuth consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "response_type": "code",
            "scope": self._settings.scopes,
            "state": state,
        }
        return f"{self._settings.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> LoyverseTokenResponse:
        """Exchange an authorization code for an access/refresh token pair."""
        payload = {
            "grant_type": "authorization_code",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
            "redirect_uri": str(self._settings.redirect_uri),
        }
        response = await self._post_form(self._settings.token_url, payload)
        if not response.is_success:
            error, description = _error_fields(response)
            raise OAuthTokenExchangeError(
                f"Authorization code exchange failed: {description or error}",
                status_code=response.status_code,
                error=error,
                error_description=description,
            )

        tokens = _parse_token_response(response, OAuthTokenExchangeError)
        if not tokens.refresh_token:
            raise OAuthTokenExchangeError(
                "Incomplete token payload returned from Loyverse."
            )
        return tokens

    async def refresh_token(self, refresh_token: str) -> LoyverseTokenResponse:
        """Exchange a refresh token for a new token pair."""
        payload = {
            "grant_type": "refresh_token",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "refresh_token": refresh_token,
        }
        response = await self._post_form(self._settings.token_url, payload)
        if not response.is_success:
            error, description = _error_fields(response)
            raise AuthenticationError(
                f"Token refresh failed: {description or error}",
                status_code=response.status_code,
                error=error,
                error_description=description,
            )
        return _parse_token_response(response, AuthenticationError)

    async def revoke_token(self, token: str) -> None:
        """Ask Loyverse to revoke a token; failures are logged, not raised."""
        payload = {
            "token": token,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        try:
            response = await self._post_form(self._settings.revoke_url, payload)
        except httpx.HTTPError:
            logger.exception("Failed to revoke Loyverse token")
            return
        if not response.is_success:
            logger.warning(
                "Loyverse token revocation returned HTTP %s", response.status_code
            )

    async def _post_form(self, url: str, data: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds, transport=self._transport
        ) as client:
            return await client.post(url, data=data)


def _error_fields(response: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return f"http_{response.status_code}", response.text or None
    error, description = parse_error_payload(body)
    return error or f"http_{response.status_code}", description


def _parse_token_response(
    response: httpx.Response, error_cls: type[LoyverseError]
) -> LoyverseTokenResponse:
    try:
        return LoyverseTokenResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise error_cls("Incomplete token payload returned from Loyverse.") from exc


__all__ = [
    "InvalidOAuthStateError",
    "LoyverseOAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
]
