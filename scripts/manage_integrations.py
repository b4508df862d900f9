"""Operational commands for stored POS integrations.

Commands:

``check``
    Validate that the settings in an env file load (required Loyverse keys
    present, URLs well-formed) before services are restarted.
``list``
    Print every Loyverse integration with its status and token expiry.
``rotate-keys``
    Re-encrypt stored tokens with ``TOKEN_ENCRYPTION_SECRET`` after moving the
    old secret into ``TOKEN_ENCRYPTION_PREVIOUS_SECRETS``.

Example usages::

    python -m scripts.manage_integrations check --env-file /opt/menu/.env
    python -m scripts.manage_integrations rotate-keys
"""

from __future__ import annotations

import argparse
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Mapping

from dotenv import dotenv_values
from pydantic import ValidationError

from app.clients.integration_store import IntegrationStore
from app.core.config import (
    AppSettings,
    LoyverseSettings,
    OAuthSettings,
    SecuritySettings,
)
from app.services.loyverse_credentials import LoyverseCredentialStore
from app.services.token_cipher import TokenCipherService

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5


@contextmanager
def _environ_overlay(values: Mapping[str, str | None]) -> Iterator[None]:
    """Expose env-file values to settings without leaking them afterwards."""
    previous = {key: os.environ.get(key) for key in values}
    try:
        for key, value in values.items():
            if value is not None:
                os.environ[key] = value
        yield
    finally:
        for key, value in previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


def _load_settings(env_file: Path) -> AppSettings:
    # Only the requested env file counts; the implicit .env in the cwd is skipped.
    with _environ_overlay(dotenv_values(env_file)):
        return AppSettings(
            _env_file=None,
            security=SecuritySettings(_env_file=None),
            oauth=OAuthSettings(_env_file=None),
            loyverse=LoyverseSettings(_env_file=None),  # type: ignore[call-arg]
        )


def _credential_store(settings: AppSettings) -> LoyverseCredentialStore:
    secret = settings.security.token_encryption_secret or settings.loyverse.client_secret
    cipher = TokenCipherService(
        secret=secret, previous_secrets=settings.security.previous_secrets
    )
    return LoyverseCredentialStore(IntegrationStore(settings.database_path), cipher)


def _check(settings: AppSettings) -> int:
    print(
        f"Settings OK ({settings.environment}); "
        f"Loyverse API at {settings.loyverse.resource_base_url}"
    )
    return EXIT_OK


def _list(settings: AppSettings) -> int:
    records = _credential_store(settings).list_integrations()
    if not records:
        print("No Loyverse integrations stored.")
        return EXIT_OK
    for record in records:
        expires = (
            record.credentials.expires_at.isoformat() if record.credentials else "-"
        )
        print(f"{record.restaurant_id}\t{record.status.value}\texpires={expires}")
    return EXIT_OK


def _rotate_keys(settings: AppSettings) -> int:
    if not settings.security.previous_secrets:
        print(
            "TOKEN_ENCRYPTION_PREVIOUS_SECRETS is empty; nothing to rotate from.",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    rotated = _credential_store(settings).rotate_encryption()
    print(f"Re-encrypted credentials for {rotated} integration(s).")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate settings and maintain stored POS integrations."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("check", "Validate settings loaded from the env file."),
        ("list", "List stored Loyverse integrations."),
        ("rotate-keys", "Re-encrypt stored tokens with the current secret."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[AppSettings], int]] = {
        "check": _check,
        "list": _list,
        "rotate-keys": _rotate_keys,
    }
    try:
        return handlers[args.command](settings)
    except ValueError as exc:
        print(f"Command failed: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
