"""
Loyverse REST API client.

Wraps the versioned resource API with per-instance rate limiting, a single
token refresh on 401, exponential backoff on 429 and transport failures, and
cursor pagination.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

import httpx

from app.clients.loyverse_auth import LoyverseOAuthClient
from app.clients.loyverse_errors import (
    ApiError,
    AuthenticationError,
    MaxRetriesExceededError,
    RateLimitExceeded,
    parse_error_payload,
)
from app.core.config import LoyverseSettings
from app.models.integration import LoyverseCredential
from app.schemas.loyverse import decode_page
from app.utils.http import RetryConfig, join_url, parse_retry_after
from app.utils.rate_limit import FixedWindowRateLimiter

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.loyverse_credentials import LoyverseCredentialStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoyverseAPIClient:
    """Authenticated client for one restaurant's Loyverse account."""

    def __init__(
        self,
        *,
        restaurant_id: str,
        credential: LoyverseCredential,
        settings: LoyverseSettings,
        oauth_client: LoyverseOAuthClient,
        credential_store: "LoyverseCredentialStore",
        rate_limiter: FixedWindowRateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._restaurant_id = restaurant_id
        self._credential = credential
        self._settings = settings
        self._oauth = oauth_client
        self._credential_store = credential_store
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter(
            max_requests=settings.requests_per_minute,
            window_seconds=settings.rate_limit_window_seconds,
            sleep=sleep,
        )
        self._retry = RetryConfig(
            max_retries=settings.max_retries,
            base_delay_seconds=settings.retry_base_delay_seconds,
        )
        self._transport = transport
        self._sleep = sleep
        self._now = now
        self._http: httpx.AsyncClient | None = None

    @property
    def restaurant_id(self) -> str:
        return self._restaurant_id

    @property
    def credential(self) -> LoyverseCredential:
        return self._credential

    async def __aenter__(self) -> "LoyverseAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def refresh_access_token(self) -> str:
        """Exchange the stored refresh token and persist the rotated pair."""
        refreshed_at = self._now()
        try:
            tokens = await self._oauth.refresh_token(self._credential.refresh_token)
        except httpx.TransportError as exc:
            raise AuthenticationError("Token refresh request failed") from exc
        except AuthenticationError:
            logger.error(
                "Failed to refresh Loyverse token for restaurant %s",
                self._restaurant_id,
            )
            raise

        credential = LoyverseCredential(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token or self._credential.refresh_token,
            expires_at=refreshed_at + timedelta(seconds=tokens.expires_in),
            scopes=tokens.scope or self._credential.scopes,
        )
        self._credential_store.update_credential(self._restaurant_id, credential)
        self._credential = credential
        logger.info("Refreshed Loyverse access token for restaurant %s", self._restaurant_id)
        return credential.access_token

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Perform one logical API call and return the decoded JSON body."""
        url = join_url(self._settings.resource_base_url, endpoint)
        retries = 0
        waited = 0.0
        refreshed = False

        while True:
            await self._rate_limiter.check_rate_limit()
            try:
                response = await self._send(method, url, params=params, json=json)
                if response.status_code == 429:
                    raise RateLimitExceeded(retry_after=parse_retry_after(response.headers))
            except RateLimitExceeded as exc:
                delay = (
                    exc.retry_after
                    if exc.retry_after is not None
                    else self._retry.backoff_delay(retries)
                )
                reason = "rate limited"
            except httpx.TransportError as exc:
                delay = self._retry.backoff_delay(retries)
                reason = type(exc).__name__
            else:
                if response.status_code == 401:
                    if refreshed:
                        raise AuthenticationError(
                            "Authentication failed after token refresh",
                            status_code=401,
                        )
                    await self.refresh_access_token()
                    refreshed = True
                    continue
                return self._parse_response(response)

            if retries >= self._retry.max_retries:
                raise MaxRetriesExceededError(attempts=retries + 1, waited_seconds=waited)
            logger.warning(
                "Loyverse %s %s %s; retry %s/%s in %.2fs",
                method,
                endpoint,
                reason,
                retries + 1,
                self._retry.max_retries,
                delay,
            )
            await self._sleep(delay)
            waited += delay
            retries += 1

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("POST", endpoint, json=data)

    async def put(self, endpoint: str, data: Any) -> Any:
        return await self.request("PUT", endpoint, json=data)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)

    async def paginate(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        collection_key: str = "items",
    ) -> List[Any]:
        """Follow ``cursor`` links until exhausted and return every item in order."""
        results: List[Any] = []
        cursor: Optional[str] = None
        while True:
            query: Dict[str, Any] = {**(params or {}), "limit": self._settings.page_limit}
            if cursor:
                query["cursor"] = cursor
            page = decode_page(
                await self.get(endpoint, params=query), collection_key=collection_key
            )
            results.extend(page.items)
            if not page.next_cursor:
                return results
            cursor = page.next_cursor

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Any,
    ) -> httpx.Response:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            )
        headers = {
            "Authorization": f"Bearer {self._credential.access_token}",
            "Accept": "application/json",
        }
        return await self._http.request(
            method, url, params=params, json=json, headers=headers
        )

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            error, description = parse_error_payload(body)
            raise ApiError(
                f"API request failed: {description or error or response.status_code}",
                status_code=response.status_code,
                error=error,
                error_description=description,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                "API returned a non-JSON body", status_code=response.status_code
            ) from exc


def create_loyverse_client(
    restaurant_id: str,
    *,
    credential_store: "LoyverseCredentialStore",
    oauth_client: LoyverseOAuthClient,
    settings: LoyverseSettings,
    **client_kwargs: Any,
) -> Optional[LoyverseAPIClient]:
    """Build a client for a connected restaurant, or ``None`` if not configured."""
    integration = credential_store.get_integration(restaurant_id)
    if integration is None or not integration.is_connected:
        return None

    credential = integration.credentials
    if credential is None or not credential.access_token or not credential.refresh_token:
        return None

    return LoyverseAPIClient(
        restaurant_id=restaurant_id,
        credential=credential,
        settings=settings,
        oauth_client=oauth_client,
        credential_store=credential_store,
        **client_kwargs,
    )


__all__ = ["LoyverseAPIClient", "create_loyverse_client"]
