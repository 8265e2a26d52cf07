"""Public model exports for gdriveupload."""

from __future__ import annotations

from .account import AccountConfig
from .file_record import RemoteFileRecord
from .quota import StorageQuota
from .results import UploadResult, UploadTask
from .token import Token

__all__ = [
    "AccountConfig",
    "RemoteFileRecord",
    "StorageQuota",
    "Token",
    "UploadTask",
    "UploadResult",
]
