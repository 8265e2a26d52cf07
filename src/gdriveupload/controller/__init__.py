"""Drive controller exports for gdriveupload."""

from __future__ import annotations

from .drive_controller import (
    DriveController,
    copies_query,
    quote_query_value,
    trash_query,
)

__all__ = ["DriveController", "copies_query", "quote_query_value", "trash_query"]
