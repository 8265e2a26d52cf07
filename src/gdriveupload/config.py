"""Configuration loading for gdriveupload (TOML files + environment)."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from gdriveupload.errors import ConfigurationError
from gdriveupload.models import AccountConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_CALLBACK_HOST_PORT = "localhost:8080"
DEFAULT_CREDENTIALS_FILE = "google_credentials.json"
DEFAULT_ACCOUNT_ID = "0"
SECRET_ENV_VAR = "GDRIVEUPLOAD_SECRET"

# Used only when neither the environment nor the config supplies a secret.
FALLBACK_SECRET = "gdriveupload-local-secret"

CREDENTIALS_HELP = (
    "Create an OAuth client of type 'Desktop app' in the Google Cloud console "
    "and download its JSON to this path."
)


@dataclass(frozen=True)
class AppConfig:
    """Everything the registry and uploader need from configuration."""

    accounts: tuple[AccountConfig, ...]
    callback_host_port: str = DEFAULT_CALLBACK_HOST_PORT
    secret: str = field(default=FALLBACK_SECRET, repr=False)

    @property
    def enabled_accounts(self) -> tuple[AccountConfig, ...]:
        return tuple(a for a in self.accounts if a.enabled)


def load_config(
    *paths: str | Path,
    environ: Optional[Mapping[str, str]] = None,
    check_files: bool = True,
) -> AppConfig:
    """
    Load and validate configuration.

    Later files override top-level keys of earlier ones; a later `accounts`
    list replaces the earlier one as a whole. Defaults to config.toml.

    Raises:
        ConfigurationError: unreadable file, bad values, duplicate ids, or a
            missing credentials file for an enabled account.
    """
    env = os.environ if environ is None else environ
    files = [Path(p) for p in paths] or [Path(DEFAULT_CONFIG_FILE)]

    merged: dict[str, Any] = {}
    for path in files:
        merged.update(_read_toml(path))

    return parse_config(merged, environ=env, check_files=check_files)


def parse_config(
    data: Mapping[str, Any],
    *,
    environ: Optional[Mapping[str, str]] = None,
    check_files: bool = True,
) -> AppConfig:
    """Build an AppConfig from an already-merged mapping."""
    env = os.environ if environ is None else environ

    host_port = data.get("oauth_callback_host_port", DEFAULT_CALLBACK_HOST_PORT)
    if not isinstance(host_port, str) or not host_port.strip():
        raise ConfigurationError("oauth_callback_host_port must be a non-empty string")

    raw_accounts = data.get("accounts", [])
    if not isinstance(raw_accounts, list):
        raise ConfigurationError("accounts must be an array of tables")

    accounts: list[AccountConfig] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_accounts):
        account = _parse_account(raw, index)
        if account.id in seen:
            raise ConfigurationError(
                "Duplicate account id",
                details={"account_id": account.id},
            )
        seen.add(account.id)
        if check_files and account.enabled:
            _check_credentials_file(account)
        accounts.append(account)

    return AppConfig(
        accounts=tuple(accounts),
        callback_host_port=host_port.strip(),
        secret=_resolve_secret(data, env),
    )


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Config file not found: {path}",
            details={"path": str(path)},
            cause=exc,
        ) from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(
            f"Failed to load config file {path}: {exc}",
            details={"path": str(path)},
            cause=exc,
        ) from exc


def _parse_account(raw: Any, index: int) -> AccountConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Each account must be a table",
            details={"index": index},
        )

    folder_id = raw.get("folder_id") or None
    try:
        return AccountConfig(
            id=str(raw.get("id", DEFAULT_ACCOUNT_ID)),
            credentials_file=raw.get("credentials_file", DEFAULT_CREDENTIALS_FILE),
            folder_id=folder_id,
            retention_count=raw.get("retention_count", 1),
            enabled=bool(raw.get("enabled", True)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Invalid account #{index}: {exc}",
            details={"index": index},
            cause=exc,
        ) from exc


def _check_credentials_file(account: AccountConfig) -> None:
    if os.path.isfile(account.credentials_file):
        return
    raise ConfigurationError(
        f"Credentials file not found for account {account.id}: "
        f"{account.credentials_file}. {CREDENTIALS_HELP}",
        details={"account_id": account.id, "path": account.credentials_file},
    )


def _resolve_secret(data: Mapping[str, Any], env: Mapping[str, str]) -> str:
    secret = env.get(SECRET_ENV_VAR) or data.get("secret")
    if secret is None:
        logger.warning(
            "No secret configured (set %s or 'secret'); using the built-in default",
            SECRET_ENV_VAR,
        )
        return FALLBACK_SECRET
    if not isinstance(secret, str) or not secret:
        raise ConfigurationError("secret must be a non-empty string")
    return secret
