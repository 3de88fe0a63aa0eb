"""
Optimistic, locally cached view over the remote record list.

All mutations are applied locally first, mirrored to the cache, then sent
to the gateway. A delayed refetch reconciles the local list with the
server through merge-by-recency. Failed writes follow one policy: when the
server answered with an error the local change is reverted, when it could
not be reached the local change is kept and reported as local-only.
"""

from __future__ import annotations

import enum
import logging
import math
import random
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union

from feedlog.ordering import sort_records
from feedlog_client import views
from feedlog_client.api import RecordsApi
from feedlog_client.cache import D3_CACHE_KEY, RECORDS_CACHE_KEY, LocalCache
from feedlog_client.config import ClientSettings, get_client_settings
from feedlog_client.errors import NetworkFailure
from feedlog_client.reconcile import merge_by_recency, prune_tombstones

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local_"
DEFAULT_D3_STATUS = [False, False]

_ID_ALPHABET = string.ascii_lowercase + string.digits


class SyncOutcome(enum.Enum):
    SYNCED = "synced"
    SAVED_LOCALLY = "saved_locally"
    REVERTED = "reverted"


@dataclass
class MutationResult:
    outcome: SyncOutcome
    record: Optional[dict] = None
    message: str = ""

    @property
    def synced(self) -> bool:
        return self.outcome is SyncOutcome.SYNCED


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def generate_local_id(now_ms: int) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{LOCAL_ID_PREFIX}{now_ms}_{suffix}"


def is_pending(record_id: Any) -> bool:
    """Records created locally keep a ``local_`` id until the server confirms them."""
    return isinstance(record_id, str) and record_id.startswith(LOCAL_ID_PREFIX)


def _validate_amount(amount: Any) -> Union[int, float]:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError(f"Amount must be a number, got {amount!r}")
    if not math.isfinite(amount):
        raise ValueError(f"Amount must be finite, got {amount!r}")
    if amount < 0:
        raise ValueError("Amount must not be negative")
    return amount


def _validate_time(display_time: str) -> str:
    try:
        parsed = datetime.strptime(display_time, views.TIME_FORMAT)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Time must be HH:MM, got {display_time!r}") from exc
    return views.format_time(parsed)


class FeedingTracker:
    """
    Client state: the record list, the selected day, the edit/delete
    selection and the D3 checklist, plus the timers that keep them fresh.
    """

    def __init__(
        self,
        api: RecordsApi,
        cache: LocalCache,
        clock: Callable[[], datetime] = datetime.now,
        settings: Optional[ClientSettings] = None,
    ):
        self.api = api
        self.cache = cache
        self.clock = clock
        self.settings = settings or get_client_settings()

        self.now = clock()
        self.selected_date = views.format_date(self.now)
        self.editing_id: Optional[str] = None
        self.pending_delete_id: Optional[str] = None
        self.deleted: dict[str, int] = {}

        # Cached state is shown before the first network round-trip completes.
        self.records: list[dict] = sort_records(cache.get(RECORDS_CACHE_KEY) or [])
        self.d3_status: dict[str, list] = cache.get(D3_CACHE_KEY) or {}

        self._refetch_due: list[int] = []
        self._next_poll_at = self.now_ms

    # ---- clock and timers ----

    @property
    def now_ms(self) -> int:
        return to_epoch_ms(self.now)

    @property
    def today(self) -> str:
        return views.format_date(self.now)

    @property
    def _window_ms(self) -> int:
        return int(self.settings.recency_window_seconds * 1000)

    def _sample_clock(self) -> None:
        self.now = self.clock()

    def schedule_refetch(self, delay_seconds: float) -> None:
        self._refetch_due.append(self.now_ms + int(delay_seconds * 1000))

    def tick(self) -> bool:
        """
        Advance the clock and run any refetch that has come due, either a
        delayed post-mutation refetch or the periodic poll. Returns True
        when a refetch ran.
        """
        self._sample_clock()
        now_ms = self.now_ms
        due = [t for t in self._refetch_due if t <= now_ms]
        poll_due = now_ms >= self._next_poll_at
        if not due and not poll_due:
            return False

        self._refetch_due = [t for t in self._refetch_due if t > now_ms]
        if poll_due:
            self._next_poll_at = now_ms + int(self.settings.poll_interval_seconds * 1000)
        self.refresh()
        return True

    # ---- persistence ----

    def _persist(self) -> None:
        self.cache.set(RECORDS_CACHE_KEY, self.records)

    def _persist_d3(self) -> None:
        self.cache.set(D3_CACHE_KEY, self.d3_status)

    def _find(self, record_id: str) -> Optional[dict]:
        for record in self.records:
            if record.get("id") == record_id:
                return record
        return None

    def _require(self, record_id: str) -> dict:
        record = self._find(record_id)
        if record is None:
            raise KeyError(record_id)
        return record

    def _replace(self, record_id: str, record: dict) -> None:
        self.records = sort_records(
            record if r.get("id") == record_id else r for r in self.records
        )

    def _remove(self, record_id: str) -> None:
        self.records = [r for r in self.records if r.get("id") != record_id]

    def _insert(self, record: dict) -> None:
        self.records = sort_records([*self.records, record])

    def _failed(
        self,
        exc: NetworkFailure,
        record: Optional[dict],
        revert: Callable[[], None],
        local_message: str,
    ) -> MutationResult:
        if exc.unreachable:
            logger.warning("%s: %s", local_message, exc)
            return MutationResult(SyncOutcome.SAVED_LOCALLY, record, local_message)
        logger.error("Server rejected change, reverting: %s", exc)
        revert()
        return MutationResult(SyncOutcome.REVERTED, record, exc.message)

    # ---- sync ----

    def refresh(self) -> bool:
        """Fetch the server list and merge it into local state."""
        self._sample_clock()
        try:
            server_records = self.api.list_records()
        except NetworkFailure as exc:
            logger.warning("Refresh failed, keeping local state: %s", exc)
            return False

        now_ms = self.now_ms
        self.records = merge_by_recency(
            server_records,
            self.records,
            now_ms,
            window_ms=self._window_ms,
            deleted=self.deleted,
        )
        self.deleted = prune_tombstones(self.deleted, now_ms, self._window_ms)
        self._persist()
        self.refresh_d3()
        return True

    def refresh_d3(self, date_string: Optional[str] = None) -> bool:
        date_string = date_string or self.selected_date
        try:
            status = self.api.get_d3_status(date_string)
        except NetworkFailure as exc:
            logger.warning("D3 status fetch failed for %s: %s", date_string, exc)
            return False
        self.d3_status[date_string] = list(status)
        self._persist_d3()
        return True

    # ---- mutations ----

    def add(self, amount: Union[int, float]) -> MutationResult:
        """
        Log a feeding at the current time. New records always belong to
        today, so the selected day jumps back to today.
        """
        amount = _validate_amount(amount)
        self._sample_clock()
        now_ms = self.now_ms
        record = {
            "id": generate_local_id(now_ms),
            "amount": amount,
            "dateString": self.today,
            "displayTime": views.format_time(self.now),
            "timestamp": now_ms,
            "updatedAt": now_ms,
        }
        local_id = record["id"]
        self._insert(record)
        self.selected_date = self.today
        self._persist()

        try:
            server_id = self.api.create_record(
                {k: v for k, v in record.items() if k != "id"}
            )
        except NetworkFailure as exc:
            def revert():
                self._remove(local_id)
                self._persist()

            return self._failed(exc, record, revert, "Saved locally only")

        confirmed = dict(record, id=server_id)
        self._replace(local_id, confirmed)
        self._persist()
        self.schedule_refetch(self.settings.add_refetch_delay_seconds)
        return MutationResult(SyncOutcome.SYNCED, confirmed)

    def begin_edit(self, record_id: str) -> None:
        self._require(record_id)
        self.editing_id = record_id
        self.pending_delete_id = None

    def save_edit(
        self,
        record_id: Optional[str] = None,
        amount: Optional[Union[int, float]] = None,
        display_time: Optional[str] = None,
    ) -> MutationResult:
        """
        Change a record's amount and/or time of day.

        The gateway has no in-place update, so the old key is deleted and
        the updated record is created again under the same id. A pending
        record that never reached the server is simply created.
        """
        record_id = record_id or self.editing_id
        if record_id is None:
            raise ValueError("No record selected for editing")
        original = dict(self._require(record_id))

        self._sample_clock()
        updated = dict(original, updatedAt=self.now_ms)
        if amount is not None:
            updated["amount"] = _validate_amount(amount)
        if display_time is not None:
            updated["displayTime"] = _validate_time(display_time)

        self._replace(record_id, updated)
        self.editing_id = None
        self._persist()

        def revert():
            self._replace(updated["id"], original)
            self._persist()

        try:
            if is_pending(record_id):
                server_id = self.api.create_record(
                    {k: v for k, v in updated.items() if k != "id"}
                )
                updated = dict(updated, id=server_id)
                self._replace(record_id, updated)
                self._persist()
            else:
                self.api.delete_record(record_id)
        except NetworkFailure as exc:
            return self._failed(exc, updated, revert, "Saved locally only")

        if not is_pending(record_id):
            try:
                self.api.create_record(updated)
            except NetworkFailure as exc:
                # The old key is already gone from the server.
                return self._recreate_after_failed_edit(exc, original, updated)

        self.schedule_refetch(self.settings.refetch_delay_seconds)
        return MutationResult(SyncOutcome.SYNCED, updated)

    def _recreate_after_failed_edit(
        self, exc: NetworkFailure, original: dict, updated: dict
    ) -> MutationResult:
        """
        The delete half of an edit succeeded but the create half did not.
        Put the original back on the server; if that fails too, keep the
        edited record locally with a fresh ``updatedAt`` so the next
        refetch does not drop it.
        """
        record_id = updated["id"]
        if not exc.unreachable:
            logger.error("Edit of %s rejected, restoring original: %s", record_id, exc)
            try:
                self.api.create_record(original)
            except NetworkFailure as restore_exc:
                logger.error("Restoring %s failed: %s", record_id, restore_exc)
            else:
                self._replace(record_id, original)
                self._persist()
                self.schedule_refetch(self.settings.refetch_delay_seconds)
                return MutationResult(SyncOutcome.REVERTED, original, exc.message)

        self._sample_clock()
        kept = dict(updated, updatedAt=self.now_ms)
        self._replace(record_id, kept)
        self._persist()
        logger.warning("Edit of %s saved locally only: %s", record_id, exc)
        return MutationResult(SyncOutcome.SAVED_LOCALLY, kept, "Saved locally only")

    def request_delete(self, record_id: str) -> None:
        """First step of a delete: select the record for confirmation."""
        self._require(record_id)
        self.pending_delete_id = record_id
        self.editing_id = None

    def cancel(self) -> None:
        self.pending_delete_id = None
        self.editing_id = None

    def confirm_delete(self) -> MutationResult:
        """Second step of a delete: remove the selected record."""
        record_id = self.pending_delete_id
        if record_id is None:
            raise ValueError("No delete pending confirmation")
        record = self._require(record_id)
        self.pending_delete_id = None

        self._sample_clock()
        self._remove(record_id)
        self.deleted[record_id] = self.now_ms
        self._persist()

        try:
            self.api.delete_record(record_id)
        except NetworkFailure as exc:
            def revert():
                self.deleted.pop(record_id, None)
                self._insert(record)
                self._persist()

            return self._failed(exc, record, revert, "Deleted locally only")

        self.schedule_refetch(self.settings.refetch_delay_seconds)
        return MutationResult(SyncOutcome.SYNCED, record)

    def d3_for(self, date_string: Optional[str] = None) -> list:
        date_string = date_string or self.selected_date
        return list(self.d3_status.get(date_string) or DEFAULT_D3_STATUS)

    def toggle_d3(self, index: int) -> MutationResult:
        """Flip one of the two daily D3 doses for the selected day."""
        date_string = self.selected_date
        previous = self.d3_for(date_string)
        if not 0 <= index < len(previous):
            raise IndexError(f"D3 dose index out of range: {index}")
        status = list(previous)
        status[index] = not status[index]
        self.d3_status[date_string] = status
        self._persist_d3()

        entry = {"dateString": date_string, "status": status}
        try:
            self.api.set_d3_status(date_string, status)
        except NetworkFailure as exc:
            def revert():
                self.d3_status[date_string] = previous
                self._persist_d3()

            return self._failed(exc, entry, revert, "Saved locally only")
        return MutationResult(SyncOutcome.SYNCED, entry)

    # ---- navigation ----

    def select_date(self, date_string: str) -> None:
        views.parse_date(date_string)
        if date_string > self.today:
            raise ValueError("Cannot select a future date")
        self.selected_date = date_string

    def shift_selected_date(self, offset: int) -> str:
        self.selected_date = min(views.shift_date(self.selected_date, offset), self.today)
        return self.selected_date

    @property
    def is_today(self) -> bool:
        return self.selected_date == self.today

    # ---- derived views ----

    def day_records(self) -> list:
        return views.day_records(self.records, self.selected_date)

    def day_total(self) -> Union[int, float]:
        return views.day_total(self.records, self.selected_date)

    def day_count(self) -> int:
        return views.day_count(self.records, self.selected_date)

    def time_since_last_feed(self) -> str:
        return views.time_since_last_feed(self.records, self.now)

    def history(self) -> list:
        return views.daily_totals(self.records)

    def trend(self) -> list:
        return views.trend(self.records, self.now)
