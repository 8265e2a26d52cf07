"""OAuth token model and its JSON form."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from gdriveupload.util.time import now_utc, parse_rfc3339, to_rfc3339

EXPIRY_SKEW = timedelta(seconds=10)


@dataclass(slots=True, frozen=True)
class Token:
    """
    Access/refresh credential pair for one account.

    expiry is tz-aware UTC; None means the access value never expires.
    """

    access_value: str
    refresh_value: Optional[str] = None
    expiry: Optional[datetime] = None
    scope: tuple[str, ...] = ()
    token_type: str = "Bearer"

    @property
    def refreshable(self) -> bool:
        return bool(self.refresh_value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True if the token expires within EXPIRY_SKEW of now."""
        if self.expiry is None:
            return False
        current = now if now is not None else now_utc()
        return self.expiry - EXPIRY_SKEW <= current

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return bool(self.access_value) and not self.is_expired(now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "access_token": self.access_value,
            "token_type": self.token_type,
            "scope": list(self.scope),
        }
        if self.refresh_value:
            data["refresh_token"] = self.refresh_value
        if self.expiry is not None:
            data["expiry"] = to_rfc3339(self.expiry)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        """
        Build a Token from its JSON dict.

        Raises:
            ValueError: if access_token is missing or a field has a bad type.
        """
        if not isinstance(data, dict):
            raise ValueError("token payload must be a JSON object")

        access = data.get("access_token")
        if not isinstance(access, str) or not access:
            raise ValueError("token payload has no access_token")

        refresh = data.get("refresh_token")
        if refresh is not None and not isinstance(refresh, str):
            raise ValueError("refresh_token must be a string")

        expiry = None
        raw_expiry = data.get("expiry")
        if raw_expiry:
            expiry = parse_rfc3339(raw_expiry)

        raw_scope = data.get("scope") or ()
        if isinstance(raw_scope, str):
            scope = tuple(raw_scope.split())
        elif isinstance(raw_scope, (list, tuple)):
            scope = tuple(str(s) for s in raw_scope)
        else:
            raise ValueError("scope must be a string or a list")

        token_type = data.get("token_type") or "Bearer"

        return cls(
            access_value=access,
            refresh_value=refresh or None,
            expiry=expiry,
            scope=scope,
            token_type=str(token_type),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Token":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"token is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
