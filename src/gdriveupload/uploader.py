"""Uploader: prune old copies, assure space, then stream the file to Drive."""

from __future__ import annotations

import io
import logging
import os
import threading
from typing import IO, Optional

from gdriveupload import quota
from gdriveupload.errors import (
    GDriveUploadError,
    LocalIOError,
    OperationCancelledError,
    UploadError,
)
from gdriveupload.models import UploadResult, UploadTask
from gdriveupload.registry import AccountHandle, AccountRegistry
from gdriveupload.util.mime import guess_mime_type
from gdriveupload.util.units import format_bytes

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SECONDS = 60.0
FOLDER_URL = "https://drive.google.com/drive/folders/{folder_id}"
ROOT_URL = "https://drive.google.com/drive/my-drive"


def location_url(folder_id: Optional[str]) -> str:
    """Browser URL of the destination folder, or of "My Drive" for the root."""
    if folder_id:
        return FOLDER_URL.format(folder_id=folder_id)
    return ROOT_URL


class ProgressReader(io.RawIOBase):
    """
    Read-through wrapper that records how far the stream has been read.

    The chunked uploader seeks back when it resends a chunk, so progress is
    the highest offset reached rather than a running sum.
    """

    def __init__(self, raw: IO[bytes], total_size: int) -> None:
        super().__init__()
        self._raw = raw
        self._total = total_size
        self._uploaded = 0
        self._lock = threading.Lock()

    @property
    def total_size(self) -> int:
        return self._total

    @property
    def uploaded(self) -> int:
        with self._lock:
            return self._uploaded

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read(size)
        position = self._raw.tell()
        with self._lock:
            if position > self._uploaded:
                self._uploaded = position
        return data

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._raw.seek(offset, whence)

    def tell(self) -> int:
        return self._raw.tell()


class ProgressReporter:
    """Log upload progress on a fixed interval from a daemon thread."""

    def __init__(
        self,
        reader: ProgressReader,
        filename: str,
        *,
        interval: float = PROGRESS_INTERVAL_SECONDS,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._reader = reader
        self._filename = filename
        self._interval = interval
        self._cancel = cancel
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "ProgressReporter":
        self._thread = threading.Thread(
            target=self._run,
            name="upload-progress",
            daemon=True,
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Signal the reporter to stop; does not wait for a blocked tick."""
        self._stop.set()

    def __enter__(self) -> "ProgressReporter":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def report(self) -> None:
        uploaded = self._reader.uploaded
        total = self._reader.total_size
        percent = (uploaded / total * 100) if total else 100.0
        logger.info(
            "Uploading %s: %s of %s (%.2f%%)",
            self._filename,
            format_bytes(uploaded),
            format_bytes(total),
            percent,
        )

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            if self._cancel is not None and self._cancel.is_set():
                return
            try:
                self.report()
            except Exception:
                logger.debug("Progress report failed", exc_info=True)


class Uploader:
    """Orchestrates one upload at a time per call; holds no per-upload state."""

    def __init__(
        self,
        registry: AccountRegistry,
        *,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
    ) -> None:
        self._registry = registry
        self._progress_interval = progress_interval

    @property
    def registry(self) -> AccountRegistry:
        return self._registry

    def upload_file(
        self,
        local_path: str,
        account_id: Optional[str] = None,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> UploadResult:
        return self.upload(UploadTask(local_path=local_path, account_id=account_id), cancel=cancel)

    def upload(self, task: UploadTask, *, cancel: Optional[threading.Event] = None) -> UploadResult:
        """
        Upload task.local_path to the selected account.

        Steps:
            1. resolve the account (unknown id fails before any remote call)
            2. stat the local file
            3. prune old copies (failures are logged, not raised)
            4. ensure space, reclaiming trash when short
            5. stream the file with periodic progress logging

        Raises:
            UnknownAccountError, LocalIOError, InsufficientSpaceError,
            UploadError, RemoteOperationError, OperationCancelledError.
        """
        account = self._registry.resolve(task.account_id)
        path = task.local_path

        try:
            size = os.stat(path).st_size
        except OSError as exc:
            raise LocalIOError(
                f"Cannot stat file: {path}",
                details={"path": path},
                cause=exc,
            ) from exc

        pruned = self._prune(account, path, cancel)
        quota_before, reclaimed = quota.ensure_space(account, size, cancel=cancel)

        try:
            stream = open(path, "rb")
        except OSError as exc:
            raise LocalIOError(
                f"Cannot open file: {path}",
                details={"path": path},
                cause=exc,
            ) from exc

        name = os.path.basename(path)
        try:
            record = self._transfer(account, stream, name, size, cancel)
        finally:
            try:
                stream.close()
            except OSError:
                logger.exception("Failed to close %s", path)

        location = location_url(account.config.folder_id)
        logger.info(
            "Uploaded %s (%s) to account %r; free space after upload %s; %s",
            name,
            format_bytes(size),
            account.id,
            format_bytes(quota_before.free_bytes - size),
            location,
        )
        return UploadResult(
            account_id=account.id,
            file_id=record.id,
            name=record.name or name,
            size=record.size if record.size is not None else size,
            location=location,
            pruned=pruned,
            reclaimed_bytes=reclaimed,
        )

    # ----------------------------
    # Internals
    # ----------------------------
    def _prune(
        self,
        account: AccountHandle,
        path: str,
        cancel: Optional[threading.Event],
    ) -> list[str]:
        try:
            return quota.prune_old_copies(account, path, cancel=cancel)
        except OperationCancelledError:
            raise
        except GDriveUploadError as exc:
            logger.warning("Could not prune old copies of %s: %s", path, exc)
            return []

    def _transfer(
        self,
        account: AccountHandle,
        stream: IO[bytes],
        name: str,
        size: int,
        cancel: Optional[threading.Event],
    ):
        reader = ProgressReader(stream, size)
        with ProgressReporter(reader, name, interval=self._progress_interval, cancel=cancel):
            try:
                return account.drive.create_file(
                    name,
                    account.config.folder_id if account.config.has_folder else None,
                    reader,
                    mime_type=guess_mime_type(name),
                    cancel=cancel,
                )
            except OperationCancelledError:
                raise
            except GDriveUploadError as exc:
                raise UploadError(
                    f"Failed to upload {name}: {exc}",
                    details={"filename": name, "account_id": account.id, **exc.details},
                    cause=exc,
                ) from exc
