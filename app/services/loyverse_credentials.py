"""
Persistence of Loyverse OAuth credentials on top of the integration store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.clients.integration_store import IntegrationStore
from app.models.integration import (
    IntegrationRecord,
    IntegrationSettings,
    IntegrationStatus,
    LOYVERSE_PLATFORM_ID,
    LoyverseCredential,
)
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class LoyverseCredentialStore:
    """Read and write encrypted Loyverse credentials for a restaurant."""

    def __init__(self, store: IntegrationStore, token_cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = token_cipher

    def get_integration(self, restaurant_id: str) -> Optional[IntegrationRecord]:
        row = self._store.get_integration(
            restaurant_id=restaurant_id, platform_id=LOYVERSE_PLATFORM_ID
        )
        if row is None:
            return None
        return self._to_record(row)

    def find_credential(self, restaurant_id: str) -> Optional[LoyverseCredential]:
        record = self.get_integration(restaurant_id)
        if record is None:
            return None
        return record.credentials

    def update_credential(self, restaurant_id: str, credential: LoyverseCredential) -> None:
        updated = self._store.update_integration(
            restaurant_id=restaurant_id,
            platform_id=LOYVERSE_PLATFORM_ID,
            credentials=self._encode(credential),
        )
        if not updated:
            # Integration was removed while a client was still in use.
            logger.warning(
                "Refreshed Loyverse credentials for restaurant %s were not stored; "
                "no integration record exists",
                restaurant_id,
            )

    def save_connection(self, restaurant_id: str, credential: LoyverseCredential) -> None:
        """Mark the integration connected with freshly exchanged tokens."""
        self._store.upsert_integration(
            restaurant_id=restaurant_id,
            platform_id=LOYVERSE_PLATFORM_ID,
            status=IntegrationStatus.CONNECTED.value,
            credentials=self._encode(credential),
            settings=IntegrationSettings().model_dump(),
        )

    def disconnect(self, restaurant_id: str) -> bool:
        return self._store.update_integration(
            restaurant_id=restaurant_id,
            platform_id=LOYVERSE_PLATFORM_ID,
            credentials={},
            status=IntegrationStatus.DISCONNECTED.value,
        )

    def list_integrations(self) -> List[IntegrationRecord]:
        rows = self._store.list_integrations(platform_id=LOYVERSE_PLATFORM_ID)
        return [self._to_record(row) for row in rows]

    def rotate_encryption(self) -> int:
        """Re-encrypt every stored token under the current secret.

        Every row is re-encrypted in memory before any is written, so an
        undecryptable row leaves the table untouched. Returns the number of
        integrations rewritten.
        """
        pending: List[tuple[str, Dict[str, Any]]] = []
        for row in self._store.list_integrations(platform_id=LOYVERSE_PLATFORM_ID):
            credentials = dict(row["credentials"])
            keys = [
                key
                for key in ("access_token_encrypted", "refresh_token_encrypted")
                if credentials.get(key)
            ]
            if not keys:
                continue
            try:
                for key in keys:
                    credentials[key] = self._cipher.rotate(credentials[key])
            except ValueError as exc:
                raise ValueError(
                    f"Stored tokens for restaurant {row['restaurant_id']} cannot be "
                    "decrypted with the configured secrets; no rows were rotated"
                ) from exc
            pending.append((row["restaurant_id"], credentials))

        for restaurant_id, credentials in pending:
            self._store.update_integration(
                restaurant_id=restaurant_id,
                platform_id=LOYVERSE_PLATFORM_ID,
                credentials=credentials,
            )
        return len(pending)

    def _to_record(self, row: Dict[str, Any]) -> IntegrationRecord:
        return IntegrationRecord(
            restaurant_id=row["restaurant_id"],
            platform_id=row["platform_id"],
            status=IntegrationStatus(row["status"]),
            credentials=self._decode(row["credentials"]),
            settings=IntegrationSettings(**row["settings"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _encode(self, credential: LoyverseCredential) -> Dict[str, Any]:
        expires_at = credential.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return {
            "access_token_encrypted": self._cipher.encrypt(credential.access_token),
            "refresh_token_encrypted": self._cipher.encrypt(credential.refresh_token),
            "expires_at": expires_at.isoformat(),
            "scopes": credential.scopes,
        }

    def _decode(self, payload: Dict[str, Any]) -> Optional[LoyverseCredential]:
        encrypted_access = payload.get("access_token_encrypted")
        encrypted_refresh = payload.get("refresh_token_encrypted")
        expires_at = payload.get("expires_at")
        if not encrypted_access or not encrypted_refresh or not expires_at:
            return None
        return LoyverseCredential(
            access_token=self._cipher.decrypt(encrypted_access),
            refresh_token=self._cipher.decrypt(encrypted_refresh),
            expires_at=datetime.fromisoformat(expires_at),
            scopes=payload.get("scopes") or "",
        )


__all__ = ["LoyverseCredentialStore"]
