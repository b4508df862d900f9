"""
FastAPI routes for the Loyverse POS integration.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.clients.loyverse_auth import InvalidOAuthStateError, OAuthTokenExchangeError
from app.clients.loyverse_errors import (
    AuthenticationError,
    LoyverseError,
    MaxRetriesExceededError,
)
from app.dependencies import (
    get_app_settings,
    get_credential_store,
    get_loyverse_client_factory,
    get_loyverse_oauth_client,
    get_oauth_state_encoder,
)
from app.models.integration import LoyverseCredential
from app.schemas import (
    ConnectionTestResult,
    DisconnectRequest,
    LoyverseItem,
    OAuthCallbackPayload,
)
from app.services import LoyverseCatalogService

router = APIRouter()
logger = logging.getLogger(__name__)

_INTEGRATIONS_PAGE = "/dashboard/settings/integrations"


class _CallbackFailure(Exception):
    """Connection could not be completed; ``code`` is surfaced to the front-end."""

    def __init__(self, code: str, detail: str) -> None:
        super().__init__(detail)
        self.code = code
        self.detail = detail


def _wants_redirect(request: Request, redirect: bool) -> bool:
    accept_header = request.headers.get("accept", "")
    return redirect or "text/html" in accept_header.lower()


def _integrations_redirect(settings: Any, **params: str) -> Optional[RedirectResponse]:
    if not settings.frontend_base_url:
        return None
    base = str(settings.frontend_base_url).rstrip("/")
    return RedirectResponse(
        url=f"{base}{_INTEGRATIONS_PAGE}?{urlencode(params)}",
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )


def _upstream_http_error(exc: LoyverseError) -> HTTPException:
    if isinstance(exc, AuthenticationError):
        status_code = HTTPStatus.UNAUTHORIZED
        detail = "Loyverse rejected the stored credentials; reconnect the integration."
    elif isinstance(exc, MaxRetriesExceededError):
        status_code = HTTPStatus.SERVICE_UNAVAILABLE
        detail = "Loyverse is rate limiting or unavailable; try again later."
    else:
        status_code = HTTPStatus.BAD_GATEWAY
        detail = f"Loyverse API request failed: {exc.detail}"
    return HTTPException(status_code=status_code, detail=detail)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/integrations/loyverse/authorize", status_code=HTTPStatus.OK)
async def start_loyverse_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_loyverse_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    restaurant_id: str = Query(..., description="Restaurant connecting its Loyverse account."),
    user_id: str | None = Query(
        default=None, description="User initiating the connection, for auditing."
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Loyverse consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "restaurant_id": restaurant_id,
            "user_id": user_id,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state)

    if _wants_redirect(request, redirect):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


async def _complete_loyverse_connection(
    *,
    code: str | None,
    state: str | None,
    oauth_client: Any,
    state_encoder: Any,
    credential_store: Any,
    settings: Any,
) -> str:
    """Validate state, exchange the code and persist the connection."""
    if not code or not state:
        raise _CallbackFailure("missing_parameters", "Missing OAuth code or state.")

    try:
        state_data = state_encoder.decode(
            state, max_age_seconds=settings.oauth.state_ttl_seconds
        )
    except InvalidOAuthStateError as exc:
        raise _CallbackFailure("invalid_state", str(exc)) from exc

    restaurant_id = state_data.get("restaurant_id")
    if not restaurant_id:
        raise _CallbackFailure(
            "invalid_state", "Missing restaurant identifier in state token."
        )

    exchanged_at = datetime.now(timezone.utc)
    try:
        tokens = await oauth_client.exchange_authorization_code(code)
    except OAuthTokenExchangeError as exc:
        logger.error("Loyverse token exchange failed: %s", exc)
        raise _CallbackFailure(
            exc.error or "token_exchange_failed",
            "Failed to exchange authorization code.",
        ) from exc
    except httpx.HTTPError as exc:
        logger.error("Loyverse token endpoint unreachable: %s", exc)
        raise _CallbackFailure(
            "token_exchange_failed", "Failed to exchange authorization code."
        ) from exc

    credential_store.save_connection(
        restaurant_id,
        LoyverseCredential(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=exchanged_at + timedelta(seconds=tokens.expires_in),
            scopes=tokens.scope,
        ),
    )
    logger.info("Connected Loyverse for restaurant %s", restaurant_id)
    return restaurant_id


@router.post("/integrations/loyverse/callback", status_code=HTTPStatus.OK)
async def handle_loyverse_oauth_callback(
    payload: OAuthCallbackPayload,
    oauth_client: Annotated[Any, Depends(get_loyverse_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Complete the OAuth exchange for clients posting the callback parameters."""
    try:
        restaurant_id = await _complete_loyverse_connection(
            code=payload.code,
            state=payload.state,
            oauth_client=oauth_client,
            state_encoder=state_encoder,
            credential_store=credential_store,
            settings=settings,
        )
    except _CallbackFailure as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=exc.detail) from exc

    return {"status": "connected", "restaurant_id": restaurant_id}


@router.get("/integrations/loyverse/callback", status_code=HTTPStatus.OK)
async def handle_loyverse_oauth_callback_get(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_loyverse_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code from Loyverse."),
    state: str | None = Query(default=None, description="OAuth state token."),
    error: str | None = Query(default=None, description="Error reported by Loyverse."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    wants_redirect = _wants_redirect(request, redirect)
    try:
        if error:
            logger.error("Loyverse OAuth error: %s", error)
            raise _CallbackFailure(error, f"Loyverse authorization failed: {error}")
        restaurant_id = await _complete_loyverse_connection(
            code=code,
            state=state,
            oauth_client=oauth_client,
            state_encoder=state_encoder,
            credential_store=credential_store,
            settings=settings,
        )
    except _CallbackFailure as exc:
        response = _integrations_redirect(settings, error=exc.code) if wants_redirect else None
        if response is not None:
            return response
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=exc.detail) from exc

    response = (
        _integrations_redirect(settings, success="loyverse_connected")
        if wants_redirect
        else None
    )
    if response is not None:
        return response
    return JSONResponse(content={"status": "connected", "restaurant_id": restaurant_id})


@router.get("/integrations/loyverse/test", response_model=ConnectionTestResult)
async def check_loyverse_connection(
    client_factory: Annotated[Any, Depends(get_loyverse_client_factory)],
    restaurant_id: str = Query(..., description="Restaurant whose connection to check."),
) -> ConnectionTestResult:
    """Fetch the merchant profile and stores to prove the credentials work."""
    client = client_factory(restaurant_id)
    if client is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail="Loyverse integration not connected.",
        )

    async with client:
        catalog = LoyverseCatalogService(client)
        try:
            merchant = await catalog.get_merchant()
            stores = await catalog.list_stores()
        except LoyverseError as exc:
            logger.warning("Loyverse connection test failed for %s: %s", restaurant_id, exc)
            raise _upstream_http_error(exc) from exc

    return ConnectionTestResult(merchant=merchant, stores=stores)


@router.get("/integrations/loyverse/items", response_model=list[LoyverseItem])
async def list_loyverse_items(
    client_factory: Annotated[Any, Depends(get_loyverse_client_factory)],
    restaurant_id: str = Query(..., description="Restaurant whose catalog to read."),
) -> list[LoyverseItem]:
    """Return every item in the restaurant's Loyverse catalog."""
    client = client_factory(restaurant_id)
    if client is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail="Loyverse integration not connected.",
        )

    async with client:
        try:
            return await LoyverseCatalogService(client).list_items()
        except LoyverseError as exc:
            logger.warning("Loyverse item listing failed for %s: %s", restaurant_id, exc)
            raise _upstream_http_error(exc) from exc


@router.post("/integrations/loyverse/disconnect", status_code=HTTPStatus.OK)
async def disconnect_loyverse(
    payload: DisconnectRequest,
    oauth_client: Annotated[Any, Depends(get_loyverse_oauth_client)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
) -> dict:
    """Revoke the stored token and mark the integration disconnected."""
    integration = credential_store.get_integration(payload.restaurant_id)
    if integration is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Integration not found."
        )

    if integration.credentials is not None:
        await oauth_client.revoke_token(integration.credentials.access_token)

    credential_store.disconnect(payload.restaurant_id)
    logger.info("Disconnected Loyverse for restaurant %s", payload.restaurant_id)
    return {
        "success": True,
        "message": "Loyverse integration disconnected successfully",
    }
