from __future__ import annotations

import json
import math
import numbers
from typing import Any, Dict, Mapping, Optional

from .errors import ResultsFormatError
from .schemas import Metadata, SyncedResults


def parse_results(obj: Any) -> SyncedResults:
    """
    Validate a decoded results payload: {event_id: tracking_time_ms, ...}.

    The payload is rejected as a whole if the top level is not an object or
    any value is not a finite number; nothing is partially applied.
    """
    if not isinstance(obj, Mapping):
        raise ResultsFormatError("Invalid format: expected a JSON object")

    out: Dict[str, int] = {}
    for key, value in obj.items():
        if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
            raise ResultsFormatError(
                f'Invalid value for event "{key}": expected a number, got {value!r}',
                key=str(key),
            )
        # times are whole milliseconds; fractional imports round half-up
        out[str(key)] = int(value) if isinstance(value, numbers.Integral) else int(math.floor(float(value) + 0.5))
    return out


def loads_results(text: str) -> SyncedResults:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResultsFormatError(f"Invalid JSON: {e}") from e
    return parse_results(obj)


def dumps_results(results: Mapping[str, Any]) -> str:
    return json.dumps(dict(results), indent=2)


def export_filename(metadata: Optional[Metadata]) -> str:
    game = metadata.game_uuid if metadata is not None and metadata.game_uuid else "unknown"
    return f"sync_results_{game}.json"
