from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .dataset import ColumnarDataset
from .schemas import TrackingRow


def period_times(tracking: ColumnarDataset, period_id: Optional[int]) -> np.ndarray:
    """Sorted, distinct matched_time values of one period (int64, possibly empty)."""
    if period_id is None or not tracking.has_columns("period_id", "matched_time"):
        return np.empty(0, dtype="int64")

    in_period = tracking.series("period_id").eq(period_id).fillna(False).astype(bool)
    times = tracking.series("matched_time")[in_period].dropna()
    return np.unique(times.to_numpy(dtype="int64"))


def nearest_index_at_or_after(times: Sequence[int], target: float) -> int:
    """
    Smallest i with times[i] >= target. A target after the last sample
    yields the last index rather than "not found".
    """
    n = len(times)
    if n == 0:
        raise ValueError("no sample times to search")
    i = int(np.searchsorted(np.asarray(times), target, side="left"))
    return min(i, n - 1)


class PeriodTimeIndex:
    """Per-period sample times over one tracking dataset, built on first use."""

    def __init__(self, tracking: ColumnarDataset):
        self.tracking = tracking
        self._cache: Dict[int, np.ndarray] = {}
        self._instants: Optional[Dict[Tuple[int, int], np.ndarray]] = None

    def times(self, period_id: Optional[int]) -> np.ndarray:
        if period_id is None:
            return np.empty(0, dtype="int64")
        key = int(period_id)
        if key not in self._cache:
            arr = period_times(self.tracking, key)
            arr.setflags(write=False)
            self._cache[key] = arr
        return self._cache[key]

    def _instant_positions(self) -> Dict[Tuple[int, int], np.ndarray]:
        # (period_id, matched_time) -> row positions; rows missing either key are left out
        if self._instants is None:
            t = self.tracking
            if not t.has_columns("period_id", "matched_time") or t.num_rows == 0:
                self._instants = {}
            else:
                groups = t.frame.groupby(["period_id", "matched_time"], sort=False).indices
                self._instants = {(int(p), int(m)): pos for (p, m), pos in groups.items()}
        return self._instants

    def frame_rows(self, period_id: Optional[int], time: Optional[int]) -> List[TrackingRow]:
        if period_id is None or time is None:
            return []
        positions = self._instant_positions().get((int(period_id), int(time)))
        if positions is None:
            return []
        frame = self.tracking.take(positions)
        return [TrackingRow.from_row(frame.row(i)) for i in range(frame.num_rows)]
