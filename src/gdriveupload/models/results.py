"""Task and result models for uploads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(slots=True, frozen=True)
class UploadTask:
    """One requested upload. account_id None or "" selects the default account."""

    local_path: str
    account_id: Optional[str] = None


@dataclass(slots=True)
class UploadResult:
    """Outcome of a successful upload."""

    account_id: str
    file_id: str
    name: str
    size: int
    location: str

    pruned: list[str] = field(default_factory=list)
    reclaimed_bytes: int = 0
