"""Data model for remote Drive items."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class RemoteFileRecord:
    """A Drive item as returned by one listing; never persisted locally."""

    id: str
    name: str
    modified_time: Optional[datetime] = None
    size: Optional[int] = None
    trashed_time: Optional[datetime] = None
    parents: list[str] = field(default_factory=list)
