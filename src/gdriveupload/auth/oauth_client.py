"""OAuth client utilities for gdriveupload."""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from gdriveupload.errors import AuthorizationError, ConfigurationError
from gdriveupload.models import Token
from gdriveupload.util.time import from_naive_utc, to_naive_utc

CALLBACK_PATH = "/oauth2/callback"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


def redirect_uri_for(host_port: str) -> str:
    """Return the local redirect URI served by the callback listener."""
    return f"http://{host_port}{CALLBACK_PATH}"


class OAuthClient:
    """
    Authorization capability for one OAuth client (client secrets JSON).

    A single instance keeps the Flow of the current authorization round so the
    PKCE verifier generated for the URL is reused for the code exchange.
    """

    DEFAULT_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/drive",)

    def __init__(
        self,
        client_config: dict[str, Any],
        redirect_uri: str,
        *,
        scopes: Optional[Sequence[str]] = None,
    ) -> None:
        if not isinstance(client_config, dict):
            raise ConfigurationError("OAuth client config must be a JSON object")

        section = client_config.get("installed") or client_config.get("web")
        if not isinstance(section, dict):
            raise ConfigurationError(
                "OAuth client config must contain an 'installed' or 'web' section",
            )
        for key in ("client_id", "client_secret"):
            if not section.get(key):
                raise ConfigurationError(f"OAuth client config is missing '{key}'")

        use_scopes = list(scopes) if scopes is not None else list(self.DEFAULT_SCOPES)
        if not use_scopes or not all(isinstance(s, str) and s.strip() for s in use_scopes):
            raise ConfigurationError("scopes must be a non-empty sequence of strings")

        self._client_config = client_config
        self._section = section
        self._redirect_uri = redirect_uri
        self._scopes = use_scopes
        self._flow: Any = None

    @classmethod
    def from_client_secrets(
        cls,
        data: bytes,
        redirect_uri: str,
        *,
        scopes: Optional[Sequence[str]] = None,
    ) -> "OAuthClient":
        """Create a client from the raw bytes of a client secrets JSON file."""
        try:
            client_config = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ConfigurationError("OAuth client secrets are not valid JSON", cause=exc) from exc
        return cls(client_config, redirect_uri, scopes=scopes)

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def scopes(self) -> list[str]:
        return list(self._scopes)

    # ----------------------------
    # Authorization capability
    # ----------------------------
    def build_authorization_url(self, state: str) -> str:
        """Return the consent URL bound to the anti-forgery state."""
        self._flow = self._new_flow()
        try:
            url, _ = self._flow.authorization_url(
                access_type="offline",
                prompt="consent",
                state=state,
            )
        except Exception as exc:
            raise AuthorizationError("Failed to build authorization URL", cause=exc) from exc
        return url

    def exchange_code_for_token(self, code: str) -> Token:
        """Exchange an authorization code for a token."""
        flow = self._flow if self._flow is not None else self._new_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise AuthorizationError(
                "Failed to exchange authorization code for token",
                cause=exc,
            ) from exc
        finally:
            self._flow = None
        return self.token_from_credentials(flow.credentials)

    def refresh_token(self, token: Token) -> Token:
        """Use the refresh value to obtain a new access value."""
        if not token.refresh_value:
            raise AuthorizationError("Token has no refresh value")

        try:
            from google.auth.transport.requests import Request
        except Exception as exc:  # pragma: no cover
            raise AuthorizationError(
                "Google auth libraries are not available",
                details={"hint": "Install google-auth"},
                cause=exc,
            ) from exc

        creds = self.to_credentials(token)
        try:
            creds.refresh(Request())
        except Exception as exc:
            raise AuthorizationError("Failed to refresh OAuth token", cause=exc) from exc

        refreshed = self.token_from_credentials(creds)
        if not refreshed.refresh_value:
            # The token endpoint may omit the refresh value on refresh.
            refreshed = Token(
                access_value=refreshed.access_value,
                refresh_value=token.refresh_value,
                expiry=refreshed.expiry,
                scope=refreshed.scope or token.scope,
                token_type=refreshed.token_type,
            )
        return refreshed

    # ----------------------------
    # Conversions
    # ----------------------------
    def to_credentials(self, token: Token):
        """
        Build google-auth credentials for API clients.

        Returns:
            google.oauth2.credentials.Credentials
        """
        from google.oauth2.credentials import Credentials

        return Credentials(
            token=token.access_value,
            refresh_token=token.refresh_value,
            token_uri=self._section.get("token_uri") or DEFAULT_TOKEN_URI,
            client_id=self._section["client_id"],
            client_secret=self._section["client_secret"],
            scopes=list(token.scope) or list(self._scopes),
            expiry=to_naive_utc(token.expiry) if token.expiry is not None else None,
        )

    @staticmethod
    def token_from_credentials(creds: Any) -> Token:
        if not getattr(creds, "token", None):
            raise AuthorizationError("Authorization server returned no access token")

        expiry = getattr(creds, "expiry", None)
        scopes = getattr(creds, "granted_scopes", None) or getattr(creds, "scopes", None) or ()
        return Token(
            access_value=creds.token,
            refresh_value=getattr(creds, "refresh_token", None) or None,
            expiry=from_naive_utc(expiry) if expiry is not None else None,
            scope=tuple(scopes),
        )

    # ----------------------------
    # Internals
    # ----------------------------
    def _new_flow(self):
        try:
            from google_auth_oauthlib.flow import Flow
        except Exception as exc:  # pragma: no cover
            raise AuthorizationError(
                "google-auth-oauthlib is not available",
                details={"hint": "Install google-auth-oauthlib"},
                cause=exc,
            ) from exc

        return Flow.from_client_config(
            self._client_config,
            scopes=list(self._scopes),
            redirect_uri=self._redirect_uri,
        )
