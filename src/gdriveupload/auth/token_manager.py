"""Per-account token lifecycle: cache, refresh, or interactive authorization."""

from __future__ import annotations

import logging
import os
import threading
import webbrowser
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from gdriveupload.errors import AuthorizationError, CredentialError, CredentialNotFoundError
from gdriveupload.models import Token
from gdriveupload.util.ids import new_state_token
from gdriveupload.util.time import now_utc

from .callback import CallbackListener
from .credential_store import CredentialStore
from .oauth_client import OAuthClient

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 300.0

ListenerFactory = Callable[[str, str], CallbackListener]


class TokenState(Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRED_REFRESHABLE = "expired_refreshable"
    EXPIRED_TERMINAL = "expired_terminal"
    AWAITING_AUTHORIZATION = "awaiting_authorization"


def token_file_for(credentials_file: str) -> str:
    """Sidecar token path: "<credentials without extension>_token.json"."""
    root, _ = os.path.splitext(credentials_file)
    return f"{root}_token.json"


def classify_token(token: Optional[Token], now: Optional[datetime] = None) -> TokenState:
    if token is None:
        return TokenState.ABSENT
    if token.is_valid(now):
        return TokenState.VALID
    if token.refreshable:
        return TokenState.EXPIRED_REFRESHABLE
    return TokenState.EXPIRED_TERMINAL


class TokenManager:
    """Produce a usable token for one account."""

    def __init__(
        self,
        oauth_client: OAuthClient,
        store: CredentialStore,
        token_file: str,
        *,
        callback_host_port: str,
        auth_timeout: float = AUTH_TIMEOUT_SECONDS,
        open_browser: Callable[[str], bool] = webbrowser.open,
        listener_factory: ListenerFactory = CallbackListener,
        account_id: str = "",
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._token_file = token_file
        self._callback_host_port = callback_host_port
        self._auth_timeout = auth_timeout
        self._open_browser = open_browser
        self._listener_factory = listener_factory
        self._account_id = account_id

    @property
    def token_file(self) -> str:
        return self._token_file

    def get_token(
        self,
        *,
        deadline: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Token:
        """
        Return a valid token.

        Args:
            deadline: Optional absolute time.monotonic() bound for the
                interactive wait, on top of the fixed auth_timeout.
            cancel: Optional event that aborts the interactive wait.

        Raises:
            AuthorizationError: timeout, denial, or failed code exchange.
            OperationCancelledError: if cancel was set during the wait.
        """
        token = self.load_token()
        state = classify_token(token, now_utc())

        if state is TokenState.VALID:
            return token  # type: ignore[return-value]

        if state is TokenState.EXPIRED_REFRESHABLE:
            logger.info("Token for account %r expired, refreshing", self._account_id)
            try:
                refreshed = self._oauth.refresh_token(token)  # type: ignore[arg-type]
            except AuthorizationError as exc:
                logger.warning(
                    "Token refresh for account %r failed, falling back to authorization: %s",
                    self._account_id,
                    exc,
                )
            else:
                self._persist(refreshed)
                return refreshed

        return self.authorize(deadline=deadline, cancel=cancel)

    def authorize(
        self,
        *,
        deadline: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Token:
        """Run the interactive browser round-trip and persist the new token."""
        state = new_state_token()
        auth_url = self._oauth.build_authorization_url(state)

        listener = self._listener_factory(self._callback_host_port, state)
        listener.start()
        try:
            logger.info("Open this URL to authorize account %r: %s", self._account_id, auth_url)
            try:
                opened = self._open_browser(auth_url)
            except Exception as exc:  # webbrowser backends raise arbitrary errors
                logger.warning("Could not open a browser, copy the URL manually: %s", exc)
            else:
                if opened is False:
                    logger.warning("Could not open a browser, copy the URL manually")

            code = listener.wait_for_code(self._auth_timeout, deadline=deadline, cancel=cancel)
        finally:
            listener.shutdown()

        token = self._oauth.exchange_code_for_token(code)
        self._persist(token)
        return token

    def load_token(self) -> Optional[Token]:
        """Return the cached token, or None if it is absent or unreadable."""
        try:
            raw = self._store.reveal(self._token_file)
        except CredentialNotFoundError:
            return None
        except CredentialError as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self._token_file, exc)
            return None

        try:
            token = Token.from_json(raw)
        except ValueError as exc:
            logger.warning("Ignoring unparsable token file %s: %s", self._token_file, exc)
            return None

        logger.debug("Loaded token from %s (expiry %s)", self._token_file, token.expiry)
        return token

    def _persist(self, token: Token) -> None:
        try:
            self._store.write_protected(self._token_file, token.to_json().encode("utf-8"))
        except CredentialError as exc:
            logger.warning("Could not save token to %s: %s", self._token_file, exc)
        else:
            logger.info("Token for account %r saved", self._account_id)
