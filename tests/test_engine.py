"""Tests for the alignment engine."""

import pytest

from conftest import make_events
from eventsync.dataset import ColumnarDataset
from eventsync.engine import AlignmentEngine, Direction
from eventsync.errors import PersistenceError, ResultsFormatError
from eventsync.store import Record


class TestInitialize:
    def test_starts_at_first_event_without_results(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        assert engine.current_event_index == 0
        assert engine.frame_offset == 0
        assert engine.last_sync_offset == 0

    def test_starts_at_first_unsynced(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E1": 1100, "E2": 2000})
        assert engine.current_event_index == 2

    def test_all_synced_is_complete(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 1000, "E2": 2000})
        assert engine.current_event_index == engine.num_events
        assert engine.is_complete
        assert engine.current_event() is None

    def test_reload_reproduces_cursor(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.set_offset(2)
        engine.confirm(1100)
        engine.confirm(2000)

        reloaded = AlignmentEngine(events, tracking, engine.export_results())
        assert reloaded.current_event_index == engine.current_event_index

        engine.jump(0)
        reloaded.jump(0)
        assert reloaded.frame_offset == engine.frame_offset == 2


class TestFindFirstUnsynced:
    def test_scan_properties(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E1": 1000, "E2": 2000, "E4": 50})
        for start in range(engine.num_events + 1):
            result = engine.find_first_unsynced(start)
            assert result >= start
            for j in range(start, result):
                assert engine.is_synced(j)

    def test_returns_num_rows_when_rest_synced(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E5": 400})
        assert engine.find_first_unsynced(4) == 5

    def test_fallback_ids_use_row_index(self, tracking):
        events = ColumnarDataset.from_columns(
            {"opta_event_id": [None, "B"], "period_id": [1, 1], "matched_time": [1000, 1200]}
        )
        engine = AlignmentEngine(events, tracking, {"0": 1000})
        assert engine.event_id(0) == "0"
        assert engine.event_id(1) == "B"
        assert engine.current_event_index == 1

    def test_missing_id_column(self, tracking):
        events = ColumnarDataset.from_columns({"period_id": [1, 1], "matched_time": [1000, 1200]})
        engine = AlignmentEngine(events, tracking)
        engine.confirm(1000)
        assert engine.export_results() == {"0": 1000}

    def test_integral_float_ids(self, tracking):
        events = ColumnarDataset.from_columns(
            {"opta_event_id": [10234.0, None], "period_id": [1, 1], "matched_time": [1000, 1200]}
        )
        engine = AlignmentEngine(events, tracking)
        assert engine.event_id(0) == "10234"
        assert engine.event_id(1) == "1"


class TestOffsetForEvent:
    def test_reproduces_confirmed_choice(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 1100})
        assert engine.offset_for_event(0, 0) == 2
        assert engine.offset_for_event(0, 0) == 2

    def test_negative_offset(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 900})
        assert engine.offset_for_event(0, 7) == -2

    def test_unsynced_returns_fallback(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        assert engine.offset_for_event(1, 13) == 13

    def test_no_tracking_for_period_returns_fallback(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E4": 50})
        assert engine.offset_for_event(3, 5) == 5

    def test_confirmed_time_after_last_sample_clamps(self, two_events, tracking, period1_times):
        engine = AlignmentEngine(two_events, tracking, {"E1": 99999})
        assert engine.offset_for_event(0, 0) == (len(period1_times) - 1) - 2

    def test_out_of_range_index_returns_fallback(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        assert engine.offset_for_event(2, 4) == 4


class TestNavigation:
    def test_jump_clamps(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.jump(-5)
        assert engine.current_event_index == 0
        engine.jump(engine.num_events + 5)
        assert engine.current_event_index == engine.num_events - 1

    def test_advance_clamps_at_ends(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.advance(Direction.PREV)
        assert engine.current_event_index == 0
        engine.jump(4)
        engine.advance("next")
        assert engine.current_event_index == 4

    def test_advance_uses_last_sync_offset_for_unsynced(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.set_offset(3)
        engine.confirm(1050)
        engine.prev_event()
        assert engine.current_event_index == 0
        # E1 is synced: offset comes from its confirmed time
        assert engine.frame_offset == 1
        engine.next_event()
        assert engine.frame_offset == 3

    def test_invalid_direction(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        with pytest.raises(ValueError):
            engine.advance("sideways")

    def test_adjust_offset_is_not_clamped(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.adjust_offset(300)
        engine.adjust_offset(5)
        assert engine.frame_offset == 305
        assert engine.display_offset() == 250

    def test_skip_to_next_unsynced(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E2": 2000, "E3": 100})
        engine.skip_to_next_unsynced()
        assert engine.current_event_index == 3

    def test_skip_does_not_record(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.set_offset(4)
        engine.confirm(1100)
        engine.set_offset(-3)
        engine.skip()
        assert engine.export_results() == {"E1": 1100}
        assert engine.last_sync_offset == 4
        assert engine.current_event_index == 2
        assert engine.frame_offset == 4

    def test_skip_past_last_event_completes(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        engine.jump(1)
        engine.skip()
        assert engine.is_complete

    def test_skip_to_next_unsynced_does_not_clamp(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E3": 100, "E4": 1500, "E5": 2000})
        engine.jump(1)
        engine.skip_to_next_unsynced()
        assert engine.current_event_index == engine.num_events
        assert engine.is_complete
        engine.jump(99)
        assert engine.current_event_index == engine.num_events - 1

    def test_empty_events(self, tracking):
        engine = AlignmentEngine(make_events([]), tracking)
        assert engine.is_complete
        engine.next_event()
        engine.jump(3)
        assert engine.current_event_index == 0
        assert engine.confirm(1000) is False


class TestConfirm:
    def test_confirm_example(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        engine.adjust_offset(2)
        assert engine.current_frame().time == 1100

        assert engine.confirm(1100) is True
        assert engine.results["E1"] == 1100
        assert engine.last_sync_offset == 2
        assert engine.current_event_index == 1
        assert engine.frame_offset == 2

    def test_reconfirm_overwrites(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 1100})
        engine.jump(0)
        engine.adjust_offset(1)
        engine.confirm(1150)
        assert engine.export_results() == {"E1": 1150}
        assert engine.last_sync_offset == 3

    def test_confirm_when_complete_is_noop(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 1000, "E2": 2000})
        assert engine.confirm(5) is False
        assert engine.export_results() == {"E1": 1000, "E2": 2000}

    def test_confirm_skips_already_synced(self, events, tracking):
        engine = AlignmentEngine(events, tracking, {"E2": 2000})
        engine.confirm(1000)
        assert engine.current_event_index == 2

    def test_confirm_current_uses_frame_time(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        engine.adjust_offset(-1)
        assert engine.confirm_current() is True
        assert engine.results["E1"] == 950

    def test_confirm_current_without_tracking(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.jump(3)
        assert engine.current_frame().time is None
        assert engine.confirm_current() is False
        assert "E4" not in engine.results

    def test_confirm_previous(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        assert engine.previous_synced_time() is None
        assert engine.confirm_previous() is False

        engine.confirm(1100)
        assert engine.previous_synced_time() == 1100
        assert engine.confirm_previous() is True
        assert engine.results["E2"] == 1100

    def test_confirm_persists_complete_map(self, two_events, tracking, store):
        engine = AlignmentEngine(two_events, tracking, store=store)
        engine.confirm(1000)
        engine.confirm(2050)
        assert store.load(Record.RESULTS) == {"E1": 1000, "E2": 2050}


class TestImportExport:
    def test_import_is_destructive(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking, {"E1": 1100, "E2": 1900})
        engine.import_results({"E2": 2100})
        assert engine.export_results() == {"E2": 2100}
        assert engine.current_event_index == 0
        assert engine.frame_offset == 0
        assert engine.last_sync_offset == 0

    def test_import_resets_last_sync_offset(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.set_offset(9)
        engine.confirm(1000)
        engine.import_results({"E2": 2000})
        assert engine.current_event_index == 0
        assert engine.last_sync_offset == 0

    def test_invalid_import_leaves_state_unchanged(self, two_events, tracking, store):
        engine = AlignmentEngine(two_events, tracking, store=store)
        engine.set_offset(2)
        engine.confirm(1100)

        with pytest.raises(ResultsFormatError) as exc:
            engine.import_results({"E1": 1000, "E2": "late"})
        assert exc.value.key == "E2"
        with pytest.raises(ResultsFormatError):
            engine.import_results([["E1", 1000]])

        assert engine.export_results() == {"E1": 1100}
        assert engine.current_event_index == 1
        assert engine.last_sync_offset == 2
        assert store.load(Record.RESULTS) == {"E1": 1100}

    def test_round_trip(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.confirm(1000)
        engine.confirm(2000)
        before = engine.export_results()
        engine.import_results(engine.export_results())
        assert engine.export_results() == before
        assert engine.current_event_index == 2

    def test_export_is_a_snapshot(self, two_events, tracking):
        engine = AlignmentEngine(two_events, tracking)
        snap = engine.export_results()
        engine.confirm(1000)
        assert snap == {}


class TestPersistence:
    def test_failed_write_keeps_memory_state(self, two_events, tracking, flaky_store):
        engine = AlignmentEngine(two_events, tracking, store=flaky_store)
        flaky_store.failing = True

        with pytest.raises(PersistenceError):
            engine.confirm(1000)

        assert engine.export_results() == {"E1": 1000}
        assert engine.current_event_index == 1
        assert engine.pending_write
        assert flaky_store.load(Record.RESULTS) is None

    def test_next_operation_retries_write(self, two_events, tracking, flaky_store):
        engine = AlignmentEngine(two_events, tracking, store=flaky_store)
        flaky_store.failing = True
        with pytest.raises(PersistenceError):
            engine.confirm(1000)

        flaky_store.failing = False
        engine.prev_event()
        assert not engine.pending_write
        assert flaky_store.load(Record.RESULTS) == {"E1": 1000}

    def test_explicit_persist(self, two_events, tracking, flaky_store):
        engine = AlignmentEngine(two_events, tracking, store=flaky_store)
        flaky_store.failing = True
        with pytest.raises(PersistenceError):
            engine.import_results({"E2": 2000})
        flaky_store.failing = False
        engine.persist()
        assert flaky_store.load(Record.RESULTS) == {"E2": 2000}

    def test_from_store(self, two_events, tracking, store):
        from eventsync.schemas import Metadata, ProcessedMatch
        from eventsync.store import save_match

        save_match(store, ProcessedMatch(tracking=tracking, events=two_events, metadata=Metadata("g1", [10, 20])))
        first = AlignmentEngine.from_store(store)
        first.confirm(1100)

        second = AlignmentEngine.from_store(store)
        assert second.export_results() == {"E1": 1100}
        assert second.current_event_index == 1

    def test_from_empty_store(self, store):
        with pytest.raises(ValueError):
            AlignmentEngine.from_store(store)


class TestCurrentFrame:
    def test_base_frame_at_nominal_time(self, two_events, tracking, period1_times):
        engine = AlignmentEngine(two_events, tracking)
        frame = engine.current_frame()
        assert frame.time == 1000
        assert frame.frame_index == 2
        assert frame.total_frames == len(period1_times)
        assert len(frame.rows) == 3
        assert sum(r.is_ball for r in frame.rows) == 1

    def test_offset_clamps_to_period(self, two_events, tracking, period1_times):
        engine = AlignmentEngine(two_events, tracking)
        engine.adjust_offset(-100)
        assert engine.current_frame().time == period1_times[0]
        engine.adjust_offset(1000)
        assert engine.current_frame().time == period1_times[-1]

    def test_nominal_after_last_sample(self, tracking, period1_times):
        engine = AlignmentEngine(make_events([("L", 1, 50000)]), tracking)
        assert engine.current_frame().time == period1_times[-1]

    def test_no_tracking_period(self, events, tracking):
        engine = AlignmentEngine(events, tracking)
        engine.jump(3)
        frame = engine.current_frame()
        assert not frame.has_tracking
        assert frame.rows == []
