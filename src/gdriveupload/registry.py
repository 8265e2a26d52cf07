"""Account registry: one authenticated Drive handle per configured account."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Sequence

from gdriveupload.auth import (
    CredentialStore,
    OAuthClient,
    TokenManager,
    redirect_uri_for,
    token_file_for,
)
from gdriveupload.controller import DriveController
from gdriveupload.errors import ConfigurationError, GDriveUploadError, UnknownAccountError
from gdriveupload.models import AccountConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountHandle:
    """An enabled account paired with its Drive capability."""

    config: AccountConfig
    drive: DriveController

    @property
    def id(self) -> str:
        return self.config.id


@dataclass(frozen=True)
class AccountFailure:
    """An account that could not be connected (skip_failed builds only)."""

    account_id: str
    error: GDriveUploadError


Connector = Callable[[AccountConfig], AccountHandle]


class AccountRegistry:
    """
    Immutable, ordered set of account handles.

    The default account is the first handle and is fixed at construction.
    """

    def __init__(
        self,
        handles: Sequence[AccountHandle],
        *,
        failures: Sequence[AccountFailure] = (),
    ) -> None:
        if not handles:
            raise ConfigurationError(
                "No usable accounts configured",
                details={"failed": [f.account_id for f in failures]},
            )

        seen: set[str] = set()
        for handle in handles:
            if handle.id in seen:
                raise ConfigurationError(
                    "Duplicate account id",
                    details={"account_id": handle.id},
                )
            seen.add(handle.id)

        self._handles: tuple[AccountHandle, ...] = tuple(handles)
        self._default = self._handles[0]
        self._failures: tuple[AccountFailure, ...] = tuple(failures)

    @classmethod
    def build(
        cls,
        accounts: Iterable[AccountConfig],
        *,
        connect: Connector,
        skip_failed: bool = False,
    ) -> "AccountRegistry":
        """
        Connect every enabled account in declaration order.

        Policy:
            - skip_failed=False (default): the first failing account aborts
              the whole build.
            - skip_failed=True: failures are collected in `failures` and
              logged; the build succeeds if at least one account connected.

        Raises:
            ConfigurationError: if no account could be connected.
        """
        handles: list[AccountHandle] = []
        failures: list[AccountFailure] = []

        for config in accounts:
            if not config.enabled:
                logger.debug("Skipping disabled account %r", config.id)
                continue

            try:
                handle = connect(config)
            except GDriveUploadError as exc:
                if not skip_failed:
                    raise
                logger.warning("Skipping account %r: %s", config.id, exc)
                failures.append(AccountFailure(account_id=config.id, error=exc))
                continue

            handles.append(handle)

        return cls(handles, failures=failures)

    # ----------------------------
    # Lookup
    # ----------------------------
    @property
    def default(self) -> AccountHandle:
        return self._default

    @property
    def handles(self) -> tuple[AccountHandle, ...]:
        return self._handles

    @property
    def failures(self) -> tuple[AccountFailure, ...]:
        return self._failures

    def ids(self) -> list[str]:
        return [h.id for h in self._handles]

    def resolve(self, account_id: Optional[str] = None) -> AccountHandle:
        """
        Return the handle for account_id; empty or None selects the default.

        Raises:
            UnknownAccountError: if no account has that id.
        """
        if not account_id:
            return self._default

        for handle in self._handles:
            if handle.id == account_id:
                return handle

        raise UnknownAccountError(
            f"Unknown account id: {account_id}",
            details={"account_id": account_id, "known": self.ids()},
        )

    def __iter__(self) -> Iterator[AccountHandle]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)


def connect_account(
    config: AccountConfig,
    *,
    store: CredentialStore,
    callback_host_port: str,
    deadline: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    **token_manager_kwargs,
) -> AccountHandle:
    """
    Build the handle for one account.

    Steps: reveal the client secrets, obtain a token (cache, refresh or
    interactive authorization), then build the Drive controller.
    """
    secrets = store.reveal(config.credentials_file)
    oauth = OAuthClient.from_client_secrets(secrets, redirect_uri_for(callback_host_port))

    manager = TokenManager(
        oauth,
        store,
        token_file_for(config.credentials_file),
        callback_host_port=callback_host_port,
        account_id=config.id,
        **token_manager_kwargs,
    )
    token = manager.get_token(deadline=deadline, cancel=cancel)

    drive = DriveController(oauth.to_credentials(token))
    logger.debug("Connected account %r", config.id)
    return AccountHandle(config=config, drive=drive)


def build_registry(
    accounts: Iterable[AccountConfig],
    *,
    store: CredentialStore,
    callback_host_port: str,
    skip_failed: bool = False,
) -> AccountRegistry:
    """Convenience wrapper: AccountRegistry.build with connect_account."""

    def _connect(config: AccountConfig) -> AccountHandle:
        return connect_account(config, store=store, callback_host_port=callback_host_port)

    return AccountRegistry.build(accounts, connect=_connect, skip_failed=skip_failed)
