from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import FrozenSet, Tuple

# Opta type ids an operator is asked to sync: passes, clearances, shots,
# aerials, interceptions/recoveries, out of play and corners.
SYNCABLE_EVENT_TYPES: FrozenSet[int] = frozenset({1, 2, 5, 6, 8, 12, 13, 14, 15, 16, 44, 49})


@dataclass(frozen=True)
class SyncConfig:
    # display range for the frame slider (25 fps -> +/- 10 s)
    min_offset: int = -250
    max_offset: int = 250

    sync_periods: Tuple[int, ...] = (1, 2)
    syncable_event_types: FrozenSet[int] = SYNCABLE_EVENT_TYPES

    pitch_length: float = 105.0
    pitch_width: float = 68.0

    store_dir: Path = Path("data/store")

    def clamp_offset(self, offset: int) -> int:
        return max(self.min_offset, min(self.max_offset, int(offset)))

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """
        Defaults overridden by environment:
          EVENTSYNC_STORE_DIR, EVENTSYNC_MIN_OFFSET, EVENTSYNC_MAX_OFFSET
        """
        cfg = cls()
        store_dir = os.environ.get("EVENTSYNC_STORE_DIR")
        if store_dir:
            cfg = replace(cfg, store_dir=Path(store_dir))
        lo = os.environ.get("EVENTSYNC_MIN_OFFSET")
        if lo:
            cfg = replace(cfg, min_offset=int(lo))
        hi = os.environ.get("EVENTSYNC_MAX_OFFSET")
        if hi:
            cfg = replace(cfg, max_offset=int(hi))
        if cfg.min_offset > cfg.max_offset:
            raise ValueError(f"min_offset {cfg.min_offset} is greater than max_offset {cfg.max_offset}")
        return cfg


DEFAULT_CONFIG = SyncConfig()
