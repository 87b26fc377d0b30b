"""
Event <-> tracking synchronization for football matches.

Raw parquet files are processed once into a stored session:
  data/store/
    tracking.parquet   (positions converted to Opta 0-100)
    events.parquet     (syncable events only, jersey numbers mapped)
    metadata.json
    results.json       ({event_id: tracking_time_ms})
"""
from .dataset import ColumnarDataset, ColumnKind
from .engine import AlignmentEngine, Direction
from .errors import EventSyncError, PersistenceError, ResultsFormatError, StoreError
from .schemas import Metadata, ProcessedMatch
from .store import DirectoryResultsStore, Record

__all__ = [
    "AlignmentEngine",
    "ColumnKind",
    "ColumnarDataset",
    "Direction",
    "DirectoryResultsStore",
    "EventSyncError",
    "Metadata",
    "PersistenceError",
    "ProcessedMatch",
    "Record",
    "ResultsFormatError",
    "StoreError",
]
