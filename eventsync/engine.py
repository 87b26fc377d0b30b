"""
Alignment engine: the cursor over events and the map of confirmed syncs.

State is {current_event_index, frame_offset, last_sync_offset} plus the
SyncedResults map. Only the map is ground truth; the frame offset for a
synced event is always re-derived from it (offset_for_event), while the
offset of an unsynced event is an ephemeral operator adjustment seeded from
the last confirmed offset.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Union

import structlog

from .config import DEFAULT_CONFIG, SyncConfig
from .dataset import ColumnarDataset
from .errors import PersistenceError, StoreError
from .ids import event_ids
from .results import parse_results
from .schemas import AlignmentState, EventRow, FrameView, SyncedResults
from .store import Record, ResultsStore, load_match, load_results
from .timeindex import PeriodTimeIndex, nearest_index_at_or_after

logger = structlog.get_logger(__name__)


class Direction(str, Enum):
    NEXT = "next"
    PREV = "prev"


class AlignmentEngine:
    def __init__(
        self,
        events: ColumnarDataset,
        tracking: ColumnarDataset,
        results: Optional[Mapping[str, Any]] = None,
        *,
        store: Optional[ResultsStore] = None,
        config: Optional[SyncConfig] = None,
    ):
        self.events = events
        self.tracking = tracking
        self.store = store
        self.config = config or DEFAULT_CONFIG
        self.times = PeriodTimeIndex(tracking)
        self.state = AlignmentState()
        self.pending_write = False
        self._ids = event_ids(events)
        self._results: SyncedResults = {}
        self.initialize(results)

    @classmethod
    def from_store(cls, store: ResultsStore, *, config: Optional[SyncConfig] = None) -> "AlignmentEngine":
        pm = load_match(store)
        if pm is None:
            raise ValueError("No stored match data; load tracking and events first.")
        return cls(pm.events, pm.tracking, load_results(store), store=store, config=config)

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def num_events(self) -> int:
        return self.events.num_rows

    @property
    def current_event_index(self) -> int:
        return self.state.current_event_index

    @property
    def frame_offset(self) -> int:
        return self.state.frame_offset

    @property
    def last_sync_offset(self) -> int:
        return self.state.last_sync_offset

    @property
    def results(self) -> SyncedResults:
        return self._results

    @property
    def synced_count(self) -> int:
        return len(self._results)

    @property
    def is_complete(self) -> bool:
        return self.state.current_event_index >= self.num_events

    def event_id(self, index: int) -> str:
        return self._ids[index]

    def is_synced(self, index: int) -> bool:
        return 0 <= index < self.num_events and self._ids[index] in self._results

    def initialize(self, results: Optional[Mapping[str, Any]] = None) -> None:
        self._results = parse_results(results or {})
        first = self.find_first_unsynced(0)
        self.state = AlignmentState(
            current_event_index=first,
            frame_offset=self.offset_for_event(first, 0),
            last_sync_offset=0,
        )
        logger.info(
            "Initialized alignment",
            events=self.num_events,
            synced=self.synced_count,
            current_event_index=first,
        )

    # ------------------------------------------------------------------
    # derivations
    # ------------------------------------------------------------------
    def find_first_unsynced(self, start_index: int) -> int:
        index = max(0, start_index)
        while index < self.num_events and self._ids[index] in self._results:
            index += 1
        return index

    def offset_for_event(self, index: int, fallback: int) -> int:
        """
        Frame offset reproducing the confirmed time of a synced event, relative
        to the sample nearest at-or-after its nominal time. Unsynced events and
        periods without tracking samples return fallback unchanged.
        """
        if not 0 <= index < self.num_events:
            return fallback
        eid = self._ids[index]
        if eid not in self._results:
            return fallback

        row = self.events.row(index)
        nominal = row.get("matched_time")
        times = self.times.times(row.get("period_id"))
        if len(times) == 0 or nominal is None:
            return fallback

        base_idx = nearest_index_at_or_after(times, nominal)
        sync_idx = nearest_index_at_or_after(times, self._results[eid])
        return sync_idx - base_idx

    def _move_to(self, index: int, fallback: int) -> None:
        self.state.current_event_index = index
        self.state.frame_offset = self.offset_for_event(index, fallback)

    def _clamp_index(self, index: int) -> int:
        return max(0, min(self.num_events - 1, int(index)))

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------
    def advance(self, direction: Union[Direction, str]) -> None:
        step = 1 if Direction(direction) is Direction.NEXT else -1
        self._move_to(self._clamp_index(self.state.current_event_index + step), self.state.last_sync_offset)
        logger.debug("Advanced", direction=Direction(direction).value, index=self.state.current_event_index)
        self._flush_pending()

    def next_event(self) -> None:
        self.advance(Direction.NEXT)

    def prev_event(self) -> None:
        self.advance(Direction.PREV)

    def jump(self, target_index: int) -> None:
        self._move_to(self._clamp_index(target_index), self.state.last_sync_offset)
        logger.debug("Jumped", target=target_index, index=self.state.current_event_index)
        self._flush_pending()

    def skip_to_next_unsynced(self) -> None:
        # may land on num_events: every later event is already synced
        index = self.find_first_unsynced(self.state.current_event_index + 1)
        self._move_to(index, self.state.last_sync_offset)
        self._flush_pending()

    def skip(self) -> None:
        """Move on without recording anything or touching last_sync_offset."""
        skipped = self.state.current_event_index
        self.skip_to_next_unsynced()
        logger.info("Skipped event", index=skipped, next_index=self.state.current_event_index)

    def adjust_offset(self, delta: int) -> None:
        self.state.frame_offset += int(delta)

    def set_offset(self, offset: int) -> None:
        self.state.frame_offset = int(offset)

    def display_offset(self) -> int:
        return self.config.clamp_offset(self.state.frame_offset)

    # ------------------------------------------------------------------
    # confirmation
    # ------------------------------------------------------------------
    def confirm(self, current_tracking_time: int) -> bool:
        """
        Record the current event as synced at current_tracking_time and move to
        the next unsynced event, seeding its offset with the one just used.
        """
        index = self.state.current_event_index
        if index >= self.num_events:
            return False

        eid = self._ids[index]
        previous = self._results.get(eid)
        self._results[eid] = int(current_tracking_time)
        self.state.last_sync_offset = self.state.frame_offset
        self._move_to(self.find_first_unsynced(index + 1), self.state.last_sync_offset)

        logger.info(
            "Confirmed event",
            event_id=eid,
            time=int(current_tracking_time),
            replaced=previous,
            offset=self.state.last_sync_offset,
            next_index=self.state.current_event_index,
        )
        self._persist()
        return True

    def confirm_current(self) -> bool:
        frame = self.current_frame()
        if frame.time is None:
            return False
        return self.confirm(frame.time)

    def previous_synced_time(self) -> Optional[int]:
        prev = self.state.current_event_index - 1
        if prev < 0 or prev >= self.num_events:
            return None
        return self._results.get(self._ids[prev])

    def confirm_previous(self) -> bool:
        """Sync the current event to the same instant as the event before it."""
        t = self.previous_synced_time()
        if t is None:
            return False
        return self.confirm(t)

    # ------------------------------------------------------------------
    # import / export
    # ------------------------------------------------------------------
    def import_results(self, results: Mapping[str, Any]) -> None:
        """Replace the whole map (never merge) and restart from the first unsynced event."""
        validated = parse_results(results)
        self._results = validated
        first = self.find_first_unsynced(0)
        self.state = AlignmentState(
            current_event_index=first,
            frame_offset=self.offset_for_event(first, 0),
            last_sync_offset=0,
        )
        logger.info("Imported results", synced=len(validated), current_event_index=first)
        self._persist()

    def export_results(self) -> SyncedResults:
        return dict(self._results)

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------
    def current_event(self) -> Optional[EventRow]:
        index = self.state.current_event_index
        if index >= self.num_events:
            return None
        return EventRow.from_row(self.events.row(index), index=index, event_id=self._ids[index])

    def current_event_id(self) -> Optional[str]:
        index = self.state.current_event_index
        return self._ids[index] if index < self.num_events else None

    def current_frame(self) -> FrameView:
        event = self.current_event()
        if event is None or event.matched_time is None:
            return FrameView(time=None, frame_index=0, total_frames=0)

        times = self.times.times(event.period_id)
        if len(times) == 0:
            return FrameView(time=None, frame_index=0, total_frames=0)

        base_idx = nearest_index_at_or_after(times, event.matched_time)
        target = max(0, min(len(times) - 1, base_idx + self.state.frame_offset))
        time = int(times[target])
        return FrameView(
            time=time,
            frame_index=target,
            total_frames=len(times),
            rows=self.times.frame_rows(event.period_id, time),
        )

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def persist(self) -> None:
        """Write the complete current map. Raises PersistenceError on failure."""
        self._persist()

    def _flush_pending(self) -> None:
        if self.pending_write:
            self._persist()

    def _persist(self) -> None:
        if self.store is None:
            self.pending_write = False
            return
        try:
            self.store.save(Record.RESULTS, dict(self._results))
        except StoreError as e:
            self.pending_write = True
            logger.error("Failed to persist results", error=str(e), synced=len(self._results))
            raise PersistenceError(f"Results were updated but could not be saved: {e}") from e
        self.pending_write = False
