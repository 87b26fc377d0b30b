from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from .dataset import ColumnarDataset, ColumnKind

SyncedResults = Dict[str, int]

# Columns alignment cannot work without; everything else degrades to a warning.
TRACKING_REQUIRED = ("period_id", "matched_time")
EVENT_REQUIRED = ("period_id", "matched_time")

TRACKING_KINDS: Dict[str, ColumnKind] = {
    "period_id": ColumnKind.NULLABLE_INT,
    "matched_time": ColumnKind.NULLABLE_INT,
    "team_opta_id": ColumnKind.NULLABLE_INT,
    "player_opta_id": ColumnKind.NULLABLE_INT,
    "jersey_no": ColumnKind.NULLABLE_INT,
    "pos_x": ColumnKind.FLOAT,
    "pos_y": ColumnKind.FLOAT,
    "is_ball": ColumnKind.BOOL,
}

# opta_event_id is opaque (int or str) and keeps its decoded kind
EVENT_KINDS: Dict[str, ColumnKind] = {
    "period_id": ColumnKind.NULLABLE_INT,
    "matched_time": ColumnKind.NULLABLE_INT,
    "team_id": ColumnKind.NULLABLE_INT,
    "player_id": ColumnKind.NULLABLE_INT,
    "jersey_no": ColumnKind.NULLABLE_INT,
    "x": ColumnKind.FLOAT,
    "y": ColumnKind.FLOAT,
    "pass_end_x": ColumnKind.FLOAT,
    "pass_end_y": ColumnKind.FLOAT,
    "event_type_id": ColumnKind.NULLABLE_INT,
    "event_type_desc": ColumnKind.STR,
}


@dataclass(frozen=True)
class Metadata:
    game_uuid: str
    team_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"game_uuid": self.game_uuid, "team_ids": list(self.team_ids)}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Metadata":
        return cls(
            game_uuid=str(d.get("game_uuid") or "unknown"),
            team_ids=[int(t) for t in (d.get("team_ids") or [])],
        )


@dataclass(frozen=True, eq=False)
class ProcessedMatch:
    tracking: ColumnarDataset
    events: ColumnarDataset
    metadata: Metadata


@dataclass(frozen=True)
class TrackingRow:
    period_id: Optional[int]
    matched_time: Optional[int]
    team_opta_id: Optional[int]
    jersey_no: Optional[int]
    pos_x: Optional[float]
    pos_y: Optional[float]
    is_ball: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TrackingRow":
        return cls(
            period_id=row.get("period_id"),
            matched_time=row.get("matched_time"),
            team_opta_id=row.get("team_opta_id"),
            jersey_no=row.get("jersey_no"),
            pos_x=row.get("pos_x"),
            pos_y=row.get("pos_y"),
            is_ball=bool(row.get("is_ball") or False),
        )


@dataclass(frozen=True)
class EventRow:
    """One event, viewed by the operator. `event_id` follows the shared id rule."""

    index: int
    event_id: str
    period_id: Optional[int]
    matched_time: Optional[int]
    team_id: Optional[int]
    jersey_no: Optional[int]
    x: Optional[float]
    y: Optional[float]
    pass_end_x: Optional[float] = None
    pass_end_y: Optional[float] = None
    event_type_id: Optional[Union[int, str]] = None
    event_type_desc: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, index: int, event_id: str) -> "EventRow":
        return cls(
            index=index,
            event_id=event_id,
            period_id=row.get("period_id"),
            matched_time=row.get("matched_time"),
            team_id=row.get("team_id"),
            jersey_no=row.get("jersey_no"),
            x=row.get("x"),
            y=row.get("y"),
            pass_end_x=row.get("pass_end_x"),
            pass_end_y=row.get("pass_end_y"),
            event_type_id=row.get("event_type_id"),
            event_type_desc=row.get("event_type_desc"),
        )


@dataclass(frozen=True, eq=False)
class FrameView:
    """
    The tracking instant shown for the current event.

    time is None when the event's period has no tracking samples.
    """

    time: Optional[int]
    frame_index: int
    total_frames: int
    rows: List[TrackingRow] = field(default_factory=list)

    @property
    def has_tracking(self) -> bool:
        return self.time is not None


@dataclass
class AlignmentState:
    current_event_index: int = 0
    frame_offset: int = 0
    last_sync_offset: int = 0
