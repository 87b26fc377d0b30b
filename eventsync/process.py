from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np
import structlog

from .config import DEFAULT_CONFIG, SyncConfig
from .convert import real_to_opta_arrays
from .dataset import ColumnarDataset, ColumnKind
from .io import MatchFiles, read_parquet_dataset
from .schemas import EVENT_KINDS, EVENT_REQUIRED, TRACKING_KINDS, TRACKING_REQUIRED, Metadata, ProcessedMatch
from .validate import missing_columns, require_columns

logger = structlog.get_logger(__name__)


def convert_tracking_to_opta(tracking: ColumnarDataset, cfg: SyncConfig = DEFAULT_CONFIG) -> ColumnarDataset:
    """Replace pos_x/pos_y (metres, centre origin) with Opta 0-100 coordinates."""
    missing = missing_columns(tracking, ["pos_x", "pos_y"])
    if missing:
        logger.warning("Tracking data missing position columns, skipping conversion", missing=missing)
        return tracking

    ox, oy = real_to_opta_arrays(
        tracking.series("pos_x").to_numpy(dtype=float, na_value=np.nan),
        tracking.series("pos_y").to_numpy(dtype=float, na_value=np.nan),
        pitch_length=cfg.pitch_length,
        pitch_width=cfg.pitch_width,
    )
    return tracking.with_column("pos_x", ox, ColumnKind.FLOAT).with_column("pos_y", oy, ColumnKind.FLOAT)


def filter_events_to_sync(events: ColumnarDataset, cfg: SyncConfig = DEFAULT_CONFIG) -> ColumnarDataset:
    """
    Keep the events an operator should sync:
      - x and y present
      - period in cfg.sync_periods
      - event type in cfg.syncable_event_types
    """
    missing = missing_columns(events, ["x", "y", "period_id", "event_type_id"])
    if missing:
        logger.warning("Events data missing columns for filtering, keeping all rows", missing=missing)
        return events

    keep = (
        events.series("x").notna()
        & events.series("y").notna()
        & events.series("period_id").isin(list(cfg.sync_periods)).fillna(False)
        & events.series("event_type_id").isin(sorted(cfg.syncable_event_types)).fillna(False)
    ).astype(bool)

    out = events.filter_rows(keep.to_numpy())
    logger.info("Filtered events to sync", kept=out.num_rows, dropped=events.num_rows - out.num_rows)
    return out


def map_jersey_numbers_to_events(events: ColumnarDataset, tracking: ColumnarDataset) -> ColumnarDataset:
    """Fill events.jersey_no from tracking, matching player_id to player_opta_id."""
    missing = missing_columns(tracking, ["player_opta_id", "jersey_no"])
    if missing:
        logger.warning("Tracking data missing player columns, jersey numbers not mapped", missing=missing)
        return events
    if "player_id" not in events.kinds:
        logger.warning("Events data missing player_id column, jersey numbers not mapped")
        return events

    pairs = tracking.frame[["player_opta_id", "jersey_no"]].dropna()
    pairs = pairs[pairs["player_opta_id"] != -1]
    # last row wins for players whose number changes mid-match
    jersey_by_player: Dict[int, int] = {
        int(p): int(j) for p, j in zip(pairs["player_opta_id"].tolist(), pairs["jersey_no"].tolist())
    }

    mapped: List[Optional[int]] = [
        jersey_by_player.get(pid) if pid is not None else None for pid in events.column("player_id")
    ]
    return events.with_column("jersey_no", mapped, ColumnKind.NULLABLE_INT)


def game_uuid_from_name(name: str) -> str:
    return name.replace(".parquet", "").replace("tracking_", "").replace("events_", "")


def build_metadata(tracking: ColumnarDataset, tracking_name: str) -> Metadata:
    require_columns(tracking, ["team_opta_id"], name="tracking")

    team_ids: List[int] = []
    for t in tracking.series("team_opta_id").dropna().unique().tolist():
        if int(t) != -1 and int(t) not in team_ids:
            team_ids.append(int(t))

    if len(team_ids) < 2:
        raise ValueError(f"Could not detect two teams from tracking data (found {team_ids})")

    return Metadata(game_uuid=game_uuid_from_name(tracking_name), team_ids=team_ids[:2])


def process_match(match: MatchFiles, cfg: SyncConfig = DEFAULT_CONFIG) -> ProcessedMatch:
    tracking_name = match.tracking_name
    events_name = match.events_name

    tracking = read_parquet_dataset(match.get(tracking_name), kinds=TRACKING_KINDS, name=tracking_name)
    events = read_parquet_dataset(match.get(events_name), kinds=EVENT_KINDS, name=events_name)
    for ds, required, name in ((tracking, TRACKING_REQUIRED, tracking_name), (events, EVENT_REQUIRED, events_name)):
        missing = missing_columns(ds, required)
        if missing:
            # loads anyway; affected events show "no tracking data" and fall back to defaults
            logger.warning("Missing columns needed for alignment", file=name, missing=missing)

    tracking = convert_tracking_to_opta(tracking, cfg)
    events = filter_events_to_sync(events, cfg)

    metadata = build_metadata(tracking, tracking_name)
    events = map_jersey_numbers_to_events(events, tracking)

    logger.info(
        "Processed match",
        game_uuid=metadata.game_uuid,
        tracking_rows=tracking.num_rows,
        event_rows=events.num_rows,
        team_ids=metadata.team_ids,
    )
    return ProcessedMatch(tracking=tracking, events=events, metadata=metadata)
