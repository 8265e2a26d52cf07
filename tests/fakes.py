"""In-memory stand-ins for the Drive controller used across tests."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from gdriveupload.errors import ApiError, NotFoundError
from gdriveupload.models import AccountConfig, RemoteFileRecord, StorageQuota
from gdriveupload.registry import AccountHandle

_NAME_RE = re.compile(r"name = '((?:[^'\\]|\\.)*)'")
_PARENT_RE = re.compile(r"'((?:[^'\\]|\\.)*)' in parents")

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeDrive:
    """Minimal Drive: files with name/parent/mtime/size, trash, and a quota."""

    def __init__(self, total_bytes: int = 10_000) -> None:
        self.total_bytes = total_bytes
        self.files: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_delete: set[str] = set()
        self.list_error: Optional[Exception] = None
        self.trash_list_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self._seq = 0

    # ----------------------------
    # Seeding helpers
    # ----------------------------
    def add(
        self,
        name: str,
        *,
        parent: str = "root",
        size: int = 0,
        trashed_at: Optional[datetime] = None,
    ) -> str:
        self._seq += 1
        file_id = f"F{self._seq}"
        self.files[file_id] = {
            "name": name,
            "parent": parent,
            "size": size,
            "modified": BASE_TIME + timedelta(minutes=self._seq),
            "trashed_at": trashed_at,
        }
        return file_id

    def copies(self, name: str, parent: str = "root") -> list[str]:
        return [
            fid
            for fid, f in self.files.items()
            if f["name"] == name and f["parent"] == parent and f["trashed_at"] is None
        ]

    def remote_calls(self) -> list[tuple]:
        return list(self.calls)

    # ----------------------------
    # Remote capability
    # ----------------------------
    def get_quota(self, *, cancel=None) -> StorageQuota:
        self.calls.append(("get_quota",))
        used = sum(f["size"] for f in self.files.values())
        trash = sum(f["size"] for f in self.files.values() if f["trashed_at"] is not None)
        return StorageQuota(total_bytes=self.total_bytes, used_bytes=used, used_in_trash_bytes=trash)

    def list_files(self, query: str, *, order_by=None, cancel=None) -> list[RemoteFileRecord]:
        self.calls.append(("list_files", query))
        if self.list_error is not None:
            if isinstance(self.list_error, NotFoundError):
                return []
            raise self.list_error

        if "trashed = true" in query:
            if self.trash_list_error is not None:
                raise self.trash_list_error
            matches = [(fid, f) for fid, f in self.files.items() if f["trashed_at"] is not None]
        else:
            name = _unquote(_NAME_RE.search(query).group(1))
            parent = _unquote(_PARENT_RE.search(query).group(1))
            matches = [
                (fid, f)
                for fid, f in self.files.items()
                if f["trashed_at"] is None and f["name"] == name and f["parent"] == parent
            ]

        return [
            RemoteFileRecord(
                id=fid,
                name=f["name"],
                modified_time=f["modified"],
                size=f["size"],
                trashed_time=f["trashed_at"],
                parents=[f["parent"]],
            )
            for fid, f in matches
        ]

    def delete_file(self, file_id: str, *, cancel=None) -> None:
        self.calls.append(("delete_file", file_id))
        if file_id in self.fail_delete:
            raise ApiError("delete failed", details={"status_code": 500})
        del self.files[file_id]

    def create_file(self, name, parent_id, stream, *, mime_type=None, cancel=None) -> RemoteFileRecord:
        self.calls.append(("create_file", name, parent_id))
        if self.create_error is not None:
            raise self.create_error
        data = stream.read()
        file_id = self.add(name, parent=parent_id or "root", size=len(data))
        self.files[file_id]["content"] = data
        return RemoteFileRecord(id=file_id, name=name, size=len(data), parents=[parent_id or "root"])


def _unquote(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def make_handle(
    account_id: str = "A",
    *,
    drive: Optional[FakeDrive] = None,
    folder_id: Optional[str] = None,
    retention_count: int = 1,
) -> AccountHandle:
    config = AccountConfig(
        id=account_id,
        credentials_file=f"{account_id}_credentials.json",
        folder_id=folder_id,
        retention_count=retention_count,
    )
    return AccountHandle(config=config, drive=drive if drive is not None else FakeDrive())  # type: ignore[arg-type]
