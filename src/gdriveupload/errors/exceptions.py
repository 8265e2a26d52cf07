"""Exception hierarchy and HTTP error mapping for gdriveupload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class GDriveUploadError(Exception):
    """
    Base exception for gdriveupload.

    Attributes:
        details: Optional structured information (e.g., HTTP status, sizes).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


# ----------------------------
# Configuration
# ----------------------------
class ConfigurationError(GDriveUploadError):
    """Raised when no usable account exists or the config is invalid."""


class UnknownAccountError(ConfigurationError):
    """Raised when an account id does not match any configured account."""


# ----------------------------
# Credentials at rest
# ----------------------------
class CredentialError(GDriveUploadError):
    """Raised when a protected secret file cannot be read or decrypted."""


class CredentialNotFoundError(CredentialError):
    """Raised when the secret file does not exist."""


class EmptyCredentialError(CredentialError):
    """Raised when the secret file is empty."""


class MalformedCredentialError(CredentialError):
    """Raised when the payload after the marker is not valid base64."""


class CredentialDecryptError(CredentialError):
    """Raised when decryption fails (corrupt data, other host or secret)."""


# ----------------------------
# Authorization
# ----------------------------
class AuthorizationError(GDriveUploadError):
    """Raised when OAuth authorization or code exchange fails."""


class AuthorizationTimeoutError(AuthorizationError):
    """Raised when no authorization callback arrives in time."""


# ----------------------------
# Local files / space
# ----------------------------
class LocalIOError(GDriveUploadError):
    """Raised when the local file cannot be stat'ed, opened or read."""


class InsufficientSpaceError(GDriveUploadError):
    """Raised when the destination account has not enough free space."""

    def __init__(
        self,
        message: str,
        *,
        required: int,
        free: int,
        total: int,
        used: int,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        merged = {"required": required, "free": free, "total": total, "used": used}
        if details:
            merged.update(details)
        super().__init__(message, details=merged, cause=cause)
        self.required = required
        self.free = free
        self.total = total
        self.used = used


class OperationCancelledError(GDriveUploadError):
    """Raised when an external cancellation signal aborts an operation."""


# ----------------------------
# Remote storage
# ----------------------------
class RemoteOperationError(GDriveUploadError):
    """Base for failures reported by the remote storage API."""


class InvalidArgumentError(RemoteOperationError):
    """Raised when request arguments are invalid (HTTP 400, etc.)."""


class RemoteAuthError(RemoteOperationError):
    """Raised when the remote API rejects the credentials (HTTP 401)."""


class PermissionDeniedError(RemoteOperationError):
    """Raised when access is denied (HTTP 403 non-quota)."""


class NotFoundError(RemoteOperationError):
    """Raised when a Drive resource is not found (HTTP 404)."""


class ConflictError(RemoteOperationError):
    """Raised when a conflict occurs (HTTP 409/412)."""


class RateLimitError(RemoteOperationError):
    """Raised when rate-limited (HTTP 429)."""


class QuotaExceededError(RemoteOperationError):
    """Raised when quota is exceeded (HTTP 403 with quota-related reason)."""


class NetworkError(RemoteOperationError):
    """Raised when network/timeout issues prevent the request."""


class ApiError(RemoteOperationError):
    """Raised for unclassified API errors (5xx, unknown 4xx, etc.)."""


class UploadError(RemoteOperationError):
    """Raised when the create-file request for an upload fails."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to gdriveupload exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_QUOTA_REASON_KEYWORDS: tuple[str, ...] = (
    "quota",
    "dailyLimitExceeded",
    "usageLimits",
    "storageQuotaExceeded",
)

_RATE_LIMIT_REASONS: tuple[str, ...] = (
    "rateLimitExceeded",
    "userRateLimitExceeded",
)


def _is_quota_reason(reason: str | None) -> bool:
    if not reason:
        return False
    return any(key.lower() in reason.lower() for key in _QUOTA_REASON_KEYWORDS)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> RemoteOperationError:
    """
    Map an HTTP error to a gdriveupload exception.

    Policy:
        - 400 -> InvalidArgumentError
        - 401 -> RemoteAuthError
        - 403 -> PermissionDeniedError (default), RateLimitError for
          rate-limit reasons, QuotaExceededError if quota-related
        - 404 -> NotFoundError
        - 409/412 -> ConflictError
        - 429 -> RateLimitError
        - otherwise -> ApiError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 400:
        return InvalidArgumentError(message, details=details, cause=cause)
    if info.status_code == 401:
        return RemoteAuthError(message, details=details, cause=cause)
    if info.status_code == 403:
        if info.reason in _RATE_LIMIT_REASONS:
            return RateLimitError(message, details=details, cause=cause)
        if _is_quota_reason(info.reason):
            return QuotaExceededError(message, details=details, cause=cause)
        return PermissionDeniedError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code in (409, 412):
        return ConflictError(message, details=details, cause=cause)
    if info.status_code == 429:
        return RateLimitError(message, details=details, cause=cause)

    return ApiError(message, details=details, cause=cause)
