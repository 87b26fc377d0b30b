from __future__ import annotations

from typing import Any, List

from .dataset import ColumnarDataset

EVENT_ID_FIELD = "opta_event_id"


def format_event_id(value: Any) -> str:
    # integral floats come from decoders that widen id columns holding nulls
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def event_ids(events: ColumnarDataset) -> List[str]:
    """
    The id every component uses for each event row:
    str(opta_event_id) when present and not null, else str(row index).
    """
    if EVENT_ID_FIELD not in events.kinds:
        return [str(i) for i in range(events.num_rows)]
    return [
        format_event_id(v) if v is not None else str(i)
        for i, v in enumerate(events.column(EVENT_ID_FIELD))
    ]
