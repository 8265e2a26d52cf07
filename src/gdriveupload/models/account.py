"""Per-account destination configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True, frozen=True)
class AccountConfig:
    """
    One configured upload destination.

    Notes:
        - folder_id None or "" means "upload to the storage root".
        - retention_count is the number of same-named copies a destination
          keeps; 0 and 1 both mean "only the newest copy".
    """

    id: str
    credentials_file: str
    folder_id: Optional[str] = None
    retention_count: int = 1
    enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("AccountConfig.id must be a non-empty string")
        if not isinstance(self.credentials_file, str) or not self.credentials_file.strip():
            raise ValueError("AccountConfig.credentials_file must be a non-empty string")
        if self.folder_id is not None and not isinstance(self.folder_id, str):
            raise TypeError("AccountConfig.folder_id must be a string or None")
        if isinstance(self.retention_count, bool) or not isinstance(self.retention_count, int):
            raise TypeError("AccountConfig.retention_count must be an int")
        if self.retention_count < 0:
            raise ValueError("AccountConfig.retention_count must be >= 0")

    @property
    def has_folder(self) -> bool:
        """True if uploads go to a specific folder rather than the root."""
        return bool(self.folder_id)

    @property
    def copies_to_keep(self) -> int:
        """Prior copies kept before a new upload is added."""
        return max(self.retention_count - 1, 0)
