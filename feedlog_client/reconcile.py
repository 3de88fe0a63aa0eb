"""
Merge-by-recency: reconcile a fresh server snapshot with the local list.

The gateway has no atomic update and no notion of a pending local change,
so a refetch that races an in-flight write can return stale data. Local
records touched within a short window are preferred over the snapshot;
once the window passes the server's view wins.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from feedlog.ordering import sort_records

RECENCY_WINDOW_MS = 5 * 60 * 1000


def _updated_at(record: Mapping) -> int:
    value = record.get("updatedAt")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def is_recent(updated_at: float, now_ms: int, window_ms: int = RECENCY_WINDOW_MS) -> bool:
    return updated_at > 0 and now_ms - updated_at < window_ms


def merge_by_recency(
    server_records: Iterable[dict],
    local_records: Iterable[dict],
    now_ms: int,
    window_ms: int = RECENCY_WINDOW_MS,
    deleted: Optional[Mapping[str, int]] = None,
) -> list[dict]:
    """
    Merge ``server_records`` with ``local_records`` and return them sorted.

    The server wins by default. A local record whose ``updatedAt`` lies
    within ``window_ms`` of ``now_ms`` replaces the server entry when the
    server lacks its id or has an older ``updatedAt``. ``deleted`` maps ids
    removed locally to the instant of removal; recent ones are dropped even
    if the snapshot still carries them.
    """
    merged: dict[str, dict] = {}
    for record in server_records:
        merged[record.get("id")] = record

    for record in local_records:
        updated_at = _updated_at(record)
        if not is_recent(updated_at, now_ms, window_ms):
            continue
        record_id = record.get("id")
        server_record = merged.get(record_id)
        if server_record is None or updated_at > _updated_at(server_record):
            merged[record_id] = record

    for record_id, deleted_at in (deleted or {}).items():
        if is_recent(deleted_at, now_ms, window_ms):
            merged.pop(record_id, None)

    return sort_records(merged.values())


def prune_tombstones(
    deleted: Mapping[str, int], now_ms: int, window_ms: int = RECENCY_WINDOW_MS
) -> dict[str, int]:
    """Drop deletion markers that have aged out of the recency window."""
    return {
        record_id: deleted_at
        for record_id, deleted_at in deleted.items()
        if is_recent(deleted_at, now_ms, window_ms)
    }
