"""Public error exports for gdriveupload."""

from __future__ import annotations

from .exceptions import (
    ApiError,
    AuthorizationError,
    AuthorizationTimeoutError,
    ConfigurationError,
    ConflictError,
    CredentialDecryptError,
    CredentialError,
    CredentialNotFoundError,
    EmptyCredentialError,
    GDriveUploadError,
    HttpErrorInfo,
    InsufficientSpaceError,
    InvalidArgumentError,
    LocalIOError,
    MalformedCredentialError,
    NetworkError,
    NotFoundError,
    OperationCancelledError,
    PermissionDeniedError,
    QuotaExceededError,
    RateLimitError,
    RemoteAuthError,
    RemoteOperationError,
    UnknownAccountError,
    UploadError,
    map_http_error,
)

__all__ = [
    "GDriveUploadError",
    "ConfigurationError",
    "UnknownAccountError",
    "CredentialError",
    "CredentialNotFoundError",
    "EmptyCredentialError",
    "MalformedCredentialError",
    "CredentialDecryptError",
    "AuthorizationError",
    "AuthorizationTimeoutError",
    "LocalIOError",
    "InsufficientSpaceError",
    "OperationCancelledError",
    "RemoteOperationError",
    "InvalidArgumentError",
    "RemoteAuthError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "QuotaExceededError",
    "NetworkError",
    "ApiError",
    "UploadError",
    "HttpErrorInfo",
    "map_http_error",
]
