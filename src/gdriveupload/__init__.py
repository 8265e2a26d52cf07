"""gdriveupload public API."""

from __future__ import annotations

from gdriveupload.auth import CallbackListener, CredentialStore, OAuthClient, TokenManager
from gdriveupload.config import AppConfig, load_config
from gdriveupload.controller import DriveController
from gdriveupload.errors import (
    ApiError,
    AuthorizationError,
    AuthorizationTimeoutError,
    ConfigurationError,
    CredentialDecryptError,
    CredentialError,
    GDriveUploadError,
    InsufficientSpaceError,
    LocalIOError,
    NotFoundError,
    OperationCancelledError,
    RemoteOperationError,
    UnknownAccountError,
    UploadError,
)
from gdriveupload.models import (
    AccountConfig,
    RemoteFileRecord,
    StorageQuota,
    Token,
    UploadResult,
    UploadTask,
)
from gdriveupload.registry import AccountHandle, AccountRegistry, build_registry, connect_account
from gdriveupload.uploader import Uploader

__all__ = [
    # High-level
    "Uploader",
    "AccountRegistry",
    "AccountHandle",
    "build_registry",
    "connect_account",
    "DriveController",
    # Config
    "AppConfig",
    "load_config",
    # Auth
    "CallbackListener",
    "CredentialStore",
    "OAuthClient",
    "TokenManager",
    # Models
    "AccountConfig",
    "RemoteFileRecord",
    "StorageQuota",
    "Token",
    "UploadTask",
    "UploadResult",
    # Errors
    "GDriveUploadError",
    "ConfigurationError",
    "UnknownAccountError",
    "CredentialError",
    "CredentialDecryptError",
    "AuthorizationError",
    "AuthorizationTimeoutError",
    "LocalIOError",
    "InsufficientSpaceError",
    "OperationCancelledError",
    "RemoteOperationError",
    "NotFoundError",
    "ApiError",
    "UploadError",
]
