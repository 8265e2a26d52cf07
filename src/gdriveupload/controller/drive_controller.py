"""Google Drive API controller: the remote storage capability."""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import IO, Any, Callable, Optional, TypeVar

from gdriveupload.errors import (
    ApiError,
    HttpErrorInfo,
    NetworkError,
    NotFoundError,
    OperationCancelledError,
    RateLimitError,
    RemoteAuthError,
    RemoteOperationError,
    map_http_error,
)
from gdriveupload.models import RemoteFileRecord, StorageQuota
from gdriveupload.util.mime import DEFAULT_MIME
from gdriveupload.util.time import parse_rfc3339

from .fields import FILE_FIELDS, LIST_FIELDS, QUOTA_FIELDS

T = TypeVar("T")

logger = logging.getLogger(__name__)

ROOT_FOLDER_ID = "root"
# Resumable chunks must be multiples of 256 KiB; one chunk is the unit of cancellation.
DEFAULT_CHUNK_SIZE = 1024 * 1024
UNLIMITED_QUOTA = sys.maxsize


@dataclass(frozen=True)
class _RetryPolicy:
    max_retries: int = 3
    initial_delay_sec: float = 1.0


class DriveController:
    """
    Drive API controller.

    Notes:
        - The Drive `service` object is NOT exposed.
        - Every call accepts an optional threading.Event; once it is set the
          call stops before its next request, page, chunk or retry. A request
          already on the wire (at most one upload chunk) runs to completion.
    """

    def __init__(
        self,
        credentials: Any,
        *,
        supports_all_drives: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        try:
            from googleapiclient.discovery import build
        except Exception as exc:  # pragma: no cover
            raise RemoteOperationError(
                "google-api-python-client is not available",
                details={"hint": "Install google-api-python-client"},
                cause=exc,
            ) from exc

        try:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        except Exception as exc:
            raise RemoteAuthError("Failed to build Drive service", cause=exc) from exc

        self._init(service, supports_all_drives=supports_all_drives, chunk_size=chunk_size)

    @classmethod
    def from_service(
        cls,
        service: Any,
        *,
        supports_all_drives: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "DriveController":
        """Create controller from a pre-built Drive service (useful for tests)."""
        obj = cls.__new__(cls)
        obj._init(service, supports_all_drives=supports_all_drives, chunk_size=chunk_size)
        return obj

    def _init(self, service: Any, *, supports_all_drives: bool, chunk_size: int) -> None:
        self._service = service
        self._supports_all_drives = supports_all_drives
        self._chunk_size = chunk_size
        self._retry_policy = _RetryPolicy()

    # ----------------------------
    # Public API
    # ----------------------------
    def get_quota(self, *, cancel: Optional[threading.Event] = None) -> StorageQuota:
        """Query the live storage quota (never cached)."""
        req = self._service.about().get(fields=QUOTA_FIELDS)
        data = self._execute(req.execute, cancel)
        return _quota_dict_to_storage_quota(data.get("storageQuota") or {})

    def list_files(
        self,
        query: str,
        *,
        order_by: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> list[RemoteFileRecord]:
        """
        List all files matching a Drive query, following pages.

        A 404 from the listing means "nothing matches" and yields [].
        """
        records: list[RemoteFileRecord] = []
        page_token: Optional[str] = None

        while True:
            kwargs: dict[str, Any] = {
                "q": query,
                "fields": LIST_FIELDS,
                "pageToken": page_token,
                **self._common_list_kwargs(),
            }
            if order_by:
                kwargs["orderBy"] = order_by

            req = self._service.files().list(**kwargs)
            try:
                data = self._execute(req.execute, cancel)
            except NotFoundError:
                return records

            for f in data.get("files", []) or []:
                records.append(_file_dict_to_record(f))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return records

    def delete_file(self, file_id: str, *, cancel: Optional[threading.Event] = None) -> None:
        """Permanently delete a file (bypasses trash)."""
        req = self._service.files().delete(
            fileId=file_id,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute, cancel)

    def create_file(
        self,
        name: str,
        parent_id: Optional[str],
        stream: IO[bytes],
        *,
        mime_type: str = DEFAULT_MIME,
        cancel: Optional[threading.Event] = None,
    ) -> RemoteFileRecord:
        """
        Upload stream as a new file with a resumable, chunked request.

        parent_id None or "" uploads to the storage root. The stream must
        support read/seek/tell.
        """
        try:
            from googleapiclient.http import MediaIoBaseUpload
        except Exception as exc:  # pragma: no cover
            raise RemoteOperationError(
                "google-api-python-client is not available",
                cause=exc,
            ) from exc

        body: dict[str, Any] = {"name": name}
        if parent_id:
            body["parents"] = [parent_id]

        media = MediaIoBaseUpload(
            stream,
            mimetype=mime_type,
            chunksize=self._chunk_size,
            resumable=True,
        )
        req = self._service.files().create(
            body=body,
            media_body=media,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )

        response = None
        while response is None:
            _, response = self._execute(req.next_chunk, cancel)
        return _file_dict_to_record(response)

    # ----------------------------
    # Internals
    # ----------------------------
    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _execute(self, func: Callable[[], T], cancel: Optional[threading.Event] = None) -> T:
        delay = self._retry_policy.initial_delay_sec
        for attempt in range(self._retry_policy.max_retries + 1):
            _check_cancel(cancel)
            try:
                return func()
            except Exception as exc:
                mapped = self._map_exception(exc)
                if self._should_retry(mapped) and attempt < self._retry_policy.max_retries:
                    logger.debug("Retrying Drive request in %.1fs after %s", delay, mapped)
                    _sleep(delay, cancel)
                    delay *= 2
                    continue
                raise mapped from exc

        raise ApiError("Unexpected retry loop termination")

    def _should_retry(self, exc: Exception) -> bool:
        if isinstance(exc, RateLimitError):
            return True
        if isinstance(exc, NetworkError):
            return True
        if isinstance(exc, ApiError):
            status_code = getattr(exc, "details", {}).get("status_code")
            return isinstance(status_code, int) and 500 <= status_code <= 599
        return False

    def _map_exception(self, exc: Exception) -> Exception:
        if isinstance(exc, (RemoteOperationError, OperationCancelledError)):
            return exc

        try:
            from googleapiclient.errors import HttpError
        except Exception:  # pragma: no cover
            HttpError = None  # type: ignore[assignment]

        if HttpError is not None and isinstance(exc, HttpError):
            info = _http_error_to_info(exc)
            return map_http_error(info, cause=exc)

        if isinstance(exc, (OSError, TimeoutError)):
            return NetworkError("Network error", cause=exc)

        return ApiError("Drive API error", cause=exc)


def quote_query_value(value: str) -> str:
    """Escape a string literal for a Drive query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def copies_query(name: str, folder_id: Optional[str]) -> str:
    """Query for non-trashed files named exactly `name` in the folder (or root)."""
    parent = folder_id or ROOT_FOLDER_ID
    return (
        f"name = '{quote_query_value(name)}' "
        f"and '{quote_query_value(parent)}' in parents "
        "and trashed = false"
    )


def trash_query() -> str:
    """Query for trashed items owned by the authenticated user."""
    return "trashed = true and 'me' in owners"


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("Drive request was cancelled")


def _sleep(delay: float, cancel: Optional[threading.Event]) -> None:
    if cancel is None:
        time.sleep(delay)
        return
    if cancel.wait(delay):
        raise OperationCancelledError("Drive request was cancelled")


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _parse_time(value: Any):
    if not isinstance(value, str):
        return None
    try:
        return parse_rfc3339(value)
    except ValueError:
        return None


def _file_dict_to_record(data: dict[str, Any]) -> RemoteFileRecord:
    file_id = data.get("id")
    name = data.get("name", "")
    parents = data.get("parents", []) or []

    return RemoteFileRecord(
        id=file_id if isinstance(file_id, str) else "",
        name=name if isinstance(name, str) else "",
        modified_time=_parse_time(data.get("modifiedTime")),
        size=_parse_int(data.get("size")),
        trashed_time=_parse_time(data.get("trashedTime")),
        parents=list(parents) if isinstance(parents, list) else [],
    )


def _quota_dict_to_storage_quota(data: dict[str, Any]) -> StorageQuota:
    # A missing limit means the account has unlimited storage.
    limit = _parse_int(data.get("limit"))
    return StorageQuota(
        total_bytes=limit if limit is not None else UNLIMITED_QUOTA,
        used_bytes=_parse_int(data.get("usage")) or 0,
        used_in_trash_bytes=_parse_int(data.get("usageInDriveTrash")) or 0,
    )


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    status_code = getattr(getattr(exc, "resp", None), "status", None)
    reason = getattr(getattr(exc, "resp", None), "reason", None)

    message = None
    details: dict[str, Any] = {}

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        try:
            payload = json.loads(content.decode("utf-8"))
            err = payload.get("error", {})
            message = err.get("message") or None
            errors = err.get("errors") or []
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                details["domain"] = errors[0].get("domain")
                details["reason_detail"] = errors[0].get("reason")
                if isinstance(errors[0].get("reason"), str):
                    reason = errors[0]["reason"]
        except (ValueError, AttributeError, UnicodeDecodeError):
            pass

    if not isinstance(status_code, int):
        status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message,
        details=details or None,
    )
