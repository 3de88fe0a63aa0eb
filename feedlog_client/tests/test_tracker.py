import unittest
from datetime import datetime, timedelta
from unittest.mock import MagicMock, call

from feedlog_client.cache import D3_CACHE_KEY, RECORDS_CACHE_KEY, InMemoryLocalCache
from feedlog_client.config import ClientSettings
from feedlog_client.errors import NetworkFailure
from feedlog_client.tracker import FeedingTracker, SyncOutcome, is_pending, to_epoch_ms


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def _confirmed(record_id, amount=100, display_time="08:00", date_string="2024-01-10", **fields):
    record = {
        "id": record_id,
        "amount": amount,
        "dateString": date_string,
        "displayTime": display_time,
        "timestamp": 1000,
    }
    record.update(fields)
    return record


class FeedingTrackerTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(datetime(2024, 1, 10, 20, 30))
        self.cache = InMemoryLocalCache()
        self.api = MagicMock()
        self.api.list_records.return_value = []
        self.api.get_d3_status.return_value = [False, False]
        self.api.create_record.return_value = "record_1_abcdefghi"
        self.settings = ClientSettings()

    def _tracker(self):
        return FeedingTracker(self.api, self.cache, clock=self.clock, settings=self.settings)

    def _tracker_with(self, *records):
        self.cache.set(RECORDS_CACHE_KEY, list(records))
        return self._tracker()

    def test_cached_records_are_available_before_network(self):
        tracker = self._tracker_with(
            _confirmed("r1", display_time="07:00"), _confirmed("r2", display_time="09:00")
        )
        self.api.list_records.assert_not_called()
        self.assertEqual([r["id"] for r in tracker.records], ["r2", "r1"])
        self.assertEqual(tracker.selected_date, "2024-01-10")
        self.assertEqual(tracker.day_total(), 200)
        self.assertEqual(tracker.day_count(), 2)

    def test_refresh_replaces_with_server_view_and_caches(self):
        tracker = self._tracker_with(_confirmed("stale"))
        self.api.list_records.return_value = [_confirmed("r1", amount=150)]
        self.assertTrue(tracker.refresh())
        self.assertEqual([r["id"] for r in tracker.records], ["r1"])
        self.assertEqual(self.cache.get(RECORDS_CACHE_KEY), tracker.records)

    def test_refresh_failure_keeps_local_state(self):
        tracker = self._tracker_with(_confirmed("r1"))
        self.api.list_records.side_effect = NetworkFailure("down")
        self.assertFalse(tracker.refresh())
        self.assertEqual([r["id"] for r in tracker.records], ["r1"])

    def test_add_success_adopts_server_id_and_schedules_refetch(self):
        tracker = self._tracker()
        tracker.tick()  # initial poll
        self.api.list_records.reset_mock()

        result = tracker.add(150)
        self.assertEqual(result.outcome, SyncOutcome.SYNCED)
        self.assertEqual(result.record["id"], "record_1_abcdefghi")

        sent = self.api.create_record.call_args.args[0]
        self.assertNotIn("id", sent)
        now_ms = to_epoch_ms(self.clock())
        self.assertEqual(
            sent,
            {
                "amount": 150,
                "dateString": "2024-01-10",
                "displayTime": "20:30",
                "timestamp": now_ms,
                "updatedAt": now_ms,
            },
        )
        self.assertEqual([r["id"] for r in tracker.records], ["record_1_abcdefghi"])
        self.assertEqual(self.cache.get(RECORDS_CACHE_KEY)[0]["id"], "record_1_abcdefghi")

        self.clock.advance(seconds=1)
        self.assertFalse(tracker.tick())
        self.clock.advance(seconds=3)
        self.assertTrue(tracker.tick())
        self.api.list_records.assert_called_once()

    def test_refetch_that_misses_new_record_keeps_it(self):
        tracker = self._tracker()
        tracker.add(150)
        self.clock.advance(seconds=3)
        self.api.list_records.return_value = []
        tracker.refresh()
        self.assertEqual([r["id"] for r in tracker.records], ["record_1_abcdefghi"])

        self.clock.advance(minutes=10)
        tracker.refresh()
        self.assertEqual(tracker.records, [])

    def test_add_while_unreachable_saves_locally(self):
        self.api.create_record.side_effect = NetworkFailure("connection refused")
        tracker = self._tracker()
        result = tracker.add(120)
        self.assertEqual(result.outcome, SyncOutcome.SAVED_LOCALLY)
        self.assertEqual(result.message, "Saved locally only")
        self.assertEqual(len(tracker.records), 1)
        self.assertTrue(is_pending(tracker.records[0]["id"]))

    def test_add_rejected_by_server_is_reverted(self):
        self.api.create_record.side_effect = NetworkFailure("boom", status_code=500)
        tracker = self._tracker()
        result = tracker.add(120)
        self.assertEqual(result.outcome, SyncOutcome.REVERTED)
        self.assertEqual(tracker.records, [])
        self.assertEqual(self.cache.get(RECORDS_CACHE_KEY), [])

    def test_add_jumps_back_to_today(self):
        tracker = self._tracker()
        tracker.shift_selected_date(-3)
        self.assertEqual(tracker.selected_date, "2024-01-07")
        tracker.add(100)
        self.assertEqual(tracker.selected_date, "2024-01-10")
        self.assertTrue(tracker.is_today)

    def test_add_rejects_negative_amount(self):
        tracker = self._tracker()
        with self.assertRaises(ValueError):
            tracker.add(-5)
        self.api.create_record.assert_not_called()

    def test_add_and_edit_reject_non_finite_amounts(self):
        tracker = self._tracker_with(_confirmed("r1", amount=100))
        for bad in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(ValueError):
                tracker.add(bad)
            with self.assertRaises(ValueError):
                tracker.save_edit("r1", amount=bad)
        self.api.create_record.assert_not_called()
        self.api.delete_record.assert_not_called()
        self.assertEqual(tracker.records, [_confirmed("r1", amount=100)])

    def test_edit_deletes_then_recreates(self):
        tracker = self._tracker_with(_confirmed("r1", amount=100, display_time="08:00"))
        tracker.begin_edit("r1")
        self.assertEqual(tracker.editing_id, "r1")

        result = tracker.save_edit(amount=130, display_time="07:15")
        self.assertEqual(result.outcome, SyncOutcome.SYNCED)
        self.assertIsNone(tracker.editing_id)

        updated = tracker.records[0]
        self.assertEqual(updated["amount"], 130)
        self.assertEqual(updated["displayTime"], "07:15")
        self.assertEqual(updated["timestamp"], 1000)
        self.assertEqual(updated["updatedAt"], to_epoch_ms(self.clock()))
        self.assertEqual(
            self.api.method_calls,
            [call.delete_record("r1"), call.create_record(updated)],
        )

    def test_edit_of_pending_record_creates_it(self):
        self.api.create_record.side_effect = [NetworkFailure("offline"), "record_2_zzzzzzzzz"]
        tracker = self._tracker()
        tracker.add(100)
        local_id = tracker.records[0]["id"]

        result = tracker.save_edit(local_id, amount=110)
        self.assertEqual(result.outcome, SyncOutcome.SYNCED)
        self.assertEqual(tracker.records[0]["id"], "record_2_zzzzzzzzz")
        self.api.delete_record.assert_not_called()

    def test_edit_rejected_by_server_is_reverted(self):
        original = _confirmed("r1", amount=100)
        tracker = self._tracker_with(original)
        self.api.delete_record.side_effect = NetworkFailure("bad", status_code=500)
        result = tracker.save_edit("r1", amount=130)
        self.assertEqual(result.outcome, SyncOutcome.REVERTED)
        self.assertEqual(tracker.records, [original])
        self.api.create_record.assert_not_called()

    def test_edit_create_rejected_restores_original_on_server(self):
        original = _confirmed("r1", amount=100)
        tracker = self._tracker_with(original)
        self.api.create_record.side_effect = [
            NetworkFailure("bad", status_code=500),
            "r1",
        ]
        result = tracker.save_edit("r1", amount=130)
        self.assertEqual(result.outcome, SyncOutcome.REVERTED)
        self.assertEqual(tracker.records, [original])

        sent = [c.args[0] for c in self.api.create_record.call_args_list]
        self.assertEqual(len(sent), 2)
        self.assertEqual(sent[0]["amount"], 130)
        self.assertEqual(sent[1], original)

    def test_edit_create_and_restore_rejected_keeps_edit_locally(self):
        tracker = self._tracker_with(_confirmed("r1", amount=100))
        self.api.create_record.side_effect = NetworkFailure("bad", status_code=500)
        result = tracker.save_edit("r1", amount=130)
        self.assertEqual(result.outcome, SyncOutcome.SAVED_LOCALLY)
        self.assertEqual(result.message, "Saved locally only")
        self.assertEqual(tracker.records[0]["amount"], 130)
        self.assertEqual(tracker.records[0]["updatedAt"], to_epoch_ms(self.clock()))
        self.assertEqual(self.cache.get(RECORDS_CACHE_KEY)[0]["amount"], 130)

        # The server no longer has r1; the next poll must not drop the edit.
        self.clock.advance(seconds=30)
        self.api.list_records.return_value = []
        tracker.refresh()
        self.assertEqual([r["id"] for r in tracker.records], ["r1"])
        self.assertEqual(tracker.records[0]["amount"], 130)

    def test_edit_create_unreachable_keeps_edit_locally(self):
        tracker = self._tracker_with(_confirmed("r1", amount=100))
        self.api.create_record.side_effect = NetworkFailure("offline")
        result = tracker.save_edit("r1", amount=130)
        self.assertEqual(result.outcome, SyncOutcome.SAVED_LOCALLY)
        self.assertEqual(tracker.records[0]["amount"], 130)
        self.api.create_record.assert_called_once()

    def test_edit_while_unreachable_keeps_local_change(self):
        tracker = self._tracker_with(_confirmed("r1", amount=100))
        self.api.delete_record.side_effect = NetworkFailure("offline")
        result = tracker.save_edit("r1", amount=130)
        self.assertEqual(result.outcome, SyncOutcome.SAVED_LOCALLY)
        self.assertEqual(tracker.records[0]["amount"], 130)

    def test_edit_rejects_bad_time(self):
        tracker = self._tracker_with(_confirmed("r1"))
        with self.assertRaises(ValueError):
            tracker.save_edit("r1", display_time="25:99")

    def test_delete_requires_confirmation(self):
        tracker = self._tracker_with(_confirmed("r1"))
        with self.assertRaises(ValueError):
            tracker.confirm_delete()

        tracker.begin_edit("r1")
        tracker.request_delete("r1")
        self.assertEqual(tracker.pending_delete_id, "r1")
        self.assertIsNone(tracker.editing_id)

        tracker.begin_edit("r1")
        self.assertIsNone(tracker.pending_delete_id)

        tracker.request_delete("r1")
        tracker.cancel()
        self.assertIsNone(tracker.pending_delete_id)
        self.api.delete_record.assert_not_called()

    def test_confirmed_delete_is_not_undone_by_stale_refetch(self):
        record = _confirmed("r1")
        tracker = self._tracker_with(record)
        tracker.request_delete("r1")
        result = tracker.confirm_delete()
        self.assertEqual(result.outcome, SyncOutcome.SYNCED)
        self.api.delete_record.assert_called_once_with("r1")
        self.assertEqual(tracker.records, [])

        self.api.list_records.return_value = [record]
        self.clock.advance(seconds=2)
        tracker.refresh()
        self.assertEqual(tracker.records, [])

    def test_delete_while_unreachable_stays_deleted_locally(self):
        tracker = self._tracker_with(_confirmed("r1"))
        self.api.delete_record.side_effect = NetworkFailure("offline")
        tracker.request_delete("r1")
        result = tracker.confirm_delete()
        self.assertEqual(result.outcome, SyncOutcome.SAVED_LOCALLY)
        self.assertEqual(result.message, "Deleted locally only")
        self.assertEqual(tracker.records, [])

    def test_delete_rejected_by_server_is_restored(self):
        record = _confirmed("r1")
        tracker = self._tracker_with(record)
        self.api.delete_record.side_effect = NetworkFailure("bad", status_code=500)
        tracker.request_delete("r1")
        result = tracker.confirm_delete()
        self.assertEqual(result.outcome, SyncOutcome.REVERTED)
        self.assertEqual(tracker.records, [record])
        self.assertEqual(tracker.deleted, {})

    def test_toggle_d3(self):
        tracker = self._tracker()
        result = tracker.toggle_d3(1)
        self.assertEqual(result.outcome, SyncOutcome.SYNCED)
        self.assertEqual(tracker.d3_for(), [False, True])
        self.api.set_d3_status.assert_called_once_with("2024-01-10", [False, True])
        self.assertEqual(self.cache.get(D3_CACHE_KEY), {"2024-01-10": [False, True]})

    def test_toggle_d3_rejected_is_reverted(self):
        self.api.set_d3_status.side_effect = NetworkFailure("bad", status_code=500)
        tracker = self._tracker()
        result = tracker.toggle_d3(0)
        self.assertEqual(result.outcome, SyncOutcome.REVERTED)
        self.assertEqual(tracker.d3_for(), [False, False])

    def test_refresh_loads_d3_for_selected_date(self):
        self.api.get_d3_status.return_value = [True, False]
        tracker = self._tracker()
        tracker.refresh()
        self.api.get_d3_status.assert_called_once_with("2024-01-10")
        self.assertEqual(tracker.d3_for(), [True, False])

    def test_date_navigation_stops_at_today(self):
        tracker = self._tracker()
        self.assertEqual(tracker.shift_selected_date(1), "2024-01-10")
        self.assertEqual(tracker.shift_selected_date(-1), "2024-01-09")
        self.assertFalse(tracker.is_today)
        with self.assertRaises(ValueError):
            tracker.select_date("2024-01-11")

    def test_poll_runs_on_interval(self):
        tracker = self._tracker()
        self.assertTrue(tracker.tick())
        self.clock.advance(seconds=30)
        self.assertFalse(tracker.tick())
        self.clock.advance(seconds=31)
        self.assertTrue(tracker.tick())
        self.assertEqual(self.api.list_records.call_count, 2)

    def test_time_since_last_feed_uses_clock(self):
        record = _confirmed("r1", display_time="18:00")
        self.api.list_records.return_value = [record]
        tracker = self._tracker_with(record)
        self.assertEqual(tracker.time_since_last_feed(), "2h 30m ago")
        self.clock.advance(minutes=30)
        tracker.tick()
        self.assertEqual(tracker.time_since_last_feed(), "3h 0m ago")


if __name__ == "__main__":
    unittest.main()
