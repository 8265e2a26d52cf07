"""Storage quota snapshot."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class StorageQuota:
    """Capacity figures of one account, in bytes."""

    total_bytes: int
    used_bytes: int
    used_in_trash_bytes: int = 0

    @property
    def free_bytes(self) -> int:
        return self.total_bytes - self.used_bytes
