"""
Durable storage for one sync session.

Four records: tracking dataset, events dataset, metadata, synced results.
Every save writes a temp file next to the target and renames it into place,
so a load never observes a partial write.
"""
from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, Union

import pandas as pd
import structlog

from .dataset import ColumnarDataset
from .errors import StoreError
from .results import parse_results
from .schemas import EVENT_KINDS, TRACKING_KINDS, Metadata, ProcessedMatch

logger = structlog.get_logger(__name__)


class Record(str, Enum):
    TRACKING = "tracking"
    EVENTS = "events"
    METADATA = "metadata"
    RESULTS = "results"


class ResultsStore(Protocol):
    def save(self, record: Record, value: Any) -> None: ...

    def load(self, record: Record) -> Optional[Any]: ...

    def clear(self, record: Record) -> None: ...

    def exists(self, record: Record) -> bool: ...


_DATASET_KINDS = {Record.TRACKING: TRACKING_KINDS, Record.EVENTS: EVENT_KINDS}


class DirectoryResultsStore:
    """
    Store records as files under one folder:
      <root>/tracking.parquet
      <root>/events.parquet
      <root>/metadata.json
      <root>/results.json
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path(self, record: Record) -> Path:
        record = Record(record)
        suffix = ".parquet" if record in _DATASET_KINDS else ".json"
        return self.root / f"{record.value}{suffix}"

    def save(self, record: Record, value: Any) -> None:
        record = Record(record)
        target = self.path(record)
        tmp = target.with_name(target.name + ".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            if record in _DATASET_KINDS:
                value.to_frame().to_parquet(tmp, index=False, engine="pyarrow")
            else:
                payload = value.to_dict() if isinstance(value, Metadata) else dict(value)
                tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            if tmp.exists():
                tmp.unlink()
            raise StoreError(f"Failed to save {record.value} to {target}: {e}") from e
        logger.debug("Saved record", record=record.value, path=str(target))

    def load(self, record: Record) -> Optional[Any]:
        record = Record(record)
        target = self.path(record)
        if not target.exists():
            return None
        try:
            if record in _DATASET_KINDS:
                df = pd.read_parquet(target, engine="pyarrow")
                return ColumnarDataset.from_frame(df, kinds=_DATASET_KINDS[record])
            data = json.loads(target.read_text(encoding="utf-8"))
            if record is Record.METADATA:
                return Metadata.from_dict(data)
            return parse_results(data)
        # JSONDecodeError, ResultsFormatError and pyarrow.ArrowInvalid are all ValueErrors
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error("Failed to load record", record=record.value, path=str(target), error=str(e))
            raise StoreError(f"Stored {record.value} at {target} is unreadable: {e}") from e

    def clear(self, record: Record) -> None:
        target = self.path(record)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to clear {target}: {e}") from e

    def exists(self, record: Record) -> bool:
        return self.path(record).exists()


def save_match(store: ResultsStore, pm: ProcessedMatch) -> None:
    """Persist a freshly loaded match; any previous results are dropped."""
    store.save(Record.TRACKING, pm.tracking)
    store.save(Record.EVENTS, pm.events)
    store.save(Record.METADATA, pm.metadata)
    store.clear(Record.RESULTS)
    logger.info(
        "Saved match",
        game_uuid=pm.metadata.game_uuid,
        tracking_rows=pm.tracking.num_rows,
        event_rows=pm.events.num_rows,
    )


def has_stored_data(store: ResultsStore) -> bool:
    return store.exists(Record.TRACKING) and store.exists(Record.EVENTS)


def load_match(store: ResultsStore) -> Optional[ProcessedMatch]:
    if not has_stored_data(store):
        return None
    tracking = store.load(Record.TRACKING)
    events = store.load(Record.EVENTS)
    if tracking is None or events is None:
        return None
    metadata = store.load(Record.METADATA) or Metadata(game_uuid="unknown")
    return ProcessedMatch(tracking=tracking, events=events, metadata=metadata)


def load_results(store: ResultsStore) -> dict:
    return store.load(Record.RESULTS) or {}


def clear_all(store: ResultsStore) -> None:
    for record in Record:
        store.clear(record)
    logger.info("Cleared stored session")
