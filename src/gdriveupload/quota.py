"""Quota checks, trash reclamation and copy-retention pruning."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Optional

from gdriveupload.controller import copies_query, trash_query
from gdriveupload.errors import (
    InsufficientSpaceError,
    OperationCancelledError,
    RemoteOperationError,
)
from gdriveupload.models import RemoteFileRecord, StorageQuota
from gdriveupload.registry import AccountHandle
from gdriveupload.util.units import format_bytes

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def get_quota(account: AccountHandle, *, cancel: Optional[threading.Event] = None) -> StorageQuota:
    """Live quota of the account; never cached."""
    return account.drive.get_quota(cancel=cancel)


def has_enough_space(
    account: AccountHandle,
    required_bytes: int,
    *,
    cancel: Optional[threading.Event] = None,
) -> tuple[bool, StorageQuota]:
    quota = get_quota(account, cancel=cancel)
    return quota.free_bytes >= required_bytes, quota


def prune_old_copies(
    account: AccountHandle,
    filename: str,
    *,
    keep: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> list[str]:
    """
    Delete the oldest same-named copies so at most `keep` remain.

    Only the basename of filename is matched, inside the account's folder
    (or the root). keep defaults to retention_count - 1 (floored at 0).
    Individual delete failures are logged and skipped.

    Returns:
        Ids of the deleted files.
    """
    if keep is None:
        keep = account.config.copies_to_keep
    keep = max(keep, 0)

    basename = os.path.basename(filename)
    records = account.drive.list_files(
        copies_query(basename, account.config.folder_id),
        order_by="modifiedTime",
        cancel=cancel,
    )
    records = [r for r in records if r.name == basename]
    if len(records) <= keep:
        return []

    records.sort(key=_modified_key)
    deleted: list[str] = []
    for record in records[: len(records) - keep]:
        if _delete_quietly(account, record, cancel):
            deleted.append(record.id)
            logger.info(
                "Deleted old copy %s (modified %s) from account %r",
                record.name,
                record.modified_time,
                account.id,
            )
    return deleted


def reclaim_trash(
    account: AccountHandle,
    target_bytes: int,
    *,
    cancel: Optional[threading.Event] = None,
) -> int:
    """
    Permanently delete trashed items, oldest first, until target_bytes are freed.

    A failed trash listing and individual delete failures are logged and
    skipped; the caller re-checks the quota afterwards.

    Returns:
        Bytes freed (sum of the sizes of the deleted items).
    """
    try:
        records = account.drive.list_files(trash_query(), cancel=cancel)
    except OperationCancelledError:
        raise
    except RemoteOperationError as exc:
        logger.warning("Failed to list trash of account %r: %s", account.id, exc)
        return 0
    records.sort(key=_trashed_key)

    freed = 0
    for record in records:
        if freed >= target_bytes:
            break
        if _delete_quietly(account, record, cancel):
            size = record.size or 0
            freed += size
            logger.info(
                "Deleted trashed item %s (%s) from account %r",
                record.name,
                format_bytes(size),
                account.id,
            )

    logger.info(
        "Reclaimed %s from trash of account %r (target %s)",
        format_bytes(freed),
        account.id,
        format_bytes(target_bytes),
    )
    return freed


def ensure_space(
    account: AccountHandle,
    required_bytes: int,
    *,
    cancel: Optional[threading.Event] = None,
) -> tuple[StorageQuota, int]:
    """
    Make sure required_bytes fit, reclaiming trash when they do not.

    Returns:
        (quota after the check, bytes reclaimed from trash)

    Raises:
        InsufficientSpaceError: if space is still short after reclamation.
    """
    ok, quota = has_enough_space(account, required_bytes, cancel=cancel)
    if ok:
        return quota, 0

    logger.info(
        "Not enough space on account %r (need %s, free %s), emptying trash",
        account.id,
        format_bytes(required_bytes),
        format_bytes(quota.free_bytes),
    )
    reclaimed = reclaim_trash(account, required_bytes, cancel=cancel)

    ok, quota = has_enough_space(account, required_bytes, cancel=cancel)
    if ok:
        return quota, reclaimed

    raise InsufficientSpaceError(
        "Not enough free space on account {acc}: required {req}, free {free} "
        "(total {total}, used {used})".format(
            acc=account.id,
            req=format_bytes(required_bytes),
            free=format_bytes(quota.free_bytes),
            total=format_bytes(quota.total_bytes),
            used=format_bytes(quota.used_bytes),
        ),
        required=required_bytes,
        free=quota.free_bytes,
        total=quota.total_bytes,
        used=quota.used_bytes,
        details={"account_id": account.id, "reclaimed": reclaimed},
    )


def _delete_quietly(
    account: AccountHandle,
    record: RemoteFileRecord,
    cancel: Optional[threading.Event],
) -> bool:
    try:
        account.drive.delete_file(record.id, cancel=cancel)
    except OperationCancelledError:
        raise
    except RemoteOperationError as exc:
        logger.warning(
            "Failed to delete %s (%s) from account %r: %s",
            record.name,
            record.id,
            account.id,
            exc,
        )
        return False
    return True


def _modified_key(record: RemoteFileRecord) -> datetime:
    return record.modified_time or _EPOCH


def _trashed_key(record: RemoteFileRecord) -> datetime:
    return record.trashed_time or record.modified_time or _EPOCH
