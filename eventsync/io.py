from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import pandas as pd

from .dataset import ColumnarDataset, ColumnKind

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass
class MatchFiles:
    """
    Raw parquet payloads for one match, keyed by basename:
      "tracking_6f1c....parquet" -> b"PAR1..."
      "events_6f1c....parquet"   -> b"PAR1..."

    The tracking/events pair is picked by name, so any game id prefix works.
    """

    files: Dict[str, bytes]

    def has(self, name: str) -> bool:
        return name in self.files

    def get(self, name: str) -> bytes:
        try:
            return self.files[name]
        except KeyError as e:
            raise FileNotFoundError(f"Missing required file: {name}") from e

    def find(self, kind: str) -> str:
        names = sorted(n for n in self.files if n.lower().endswith(".parquet") and kind in n.lower())
        if not names:
            raise FileNotFoundError(f"Missing {kind} parquet file (have: {sorted(self.files)})")
        return names[0]

    @property
    def tracking_name(self) -> str:
        return self.find("tracking")

    @property
    def events_name(self) -> str:
        return self.find("events")


def load_match_from_paths(tracking: Union[str, Path], events: Union[str, Path]) -> MatchFiles:
    files: Dict[str, bytes] = {}
    for p in (Path(tracking), Path(events)):
        if not p.is_file():
            raise FileNotFoundError(f"File not found: {p}")
        files[p.name] = p.read_bytes()
    return MatchFiles(files=files)


def load_match_from_folder(folder: Union[str, Path]) -> MatchFiles:
    folder = Path(folder)
    if not folder.exists():
        raise FileNotFoundError(f"Folder not found: {folder}")

    files: Dict[str, bytes] = {}
    for p in folder.glob("*.parquet"):
        if p.is_file():
            files[p.name] = p.read_bytes()

    return MatchFiles(files=files)


def load_match_from_zip(zip_bytes: BytesLike, *, root_prefix: Optional[str] = None) -> MatchFiles:
    """
    Load parquet files from a zip.

    - root_prefix: optional path prefix inside zip (e.g. "raw/match_01/")

    Basenames are matched regardless of zip nesting; mac metadata is ignored.
    """
    files: Dict[str, bytes] = {}

    with zipfile.ZipFile(io.BytesIO(zip_bytes), "r") as z:
        for info in z.infolist():
            if info.is_dir():
                continue

            path = info.filename
            if path.startswith("__MACOSX/") or "/._" in path:
                continue
            if root_prefix and not path.startswith(root_prefix):
                continue

            name = Path(path).name
            if name.lower().endswith(".parquet"):
                files[name] = z.read(info.filename)

    return MatchFiles(files=files)


def read_parquet_dataset(
    raw: BytesLike,
    *,
    kinds: Optional[Mapping[str, ColumnKind]] = None,
    name: str = "parquet",
) -> ColumnarDataset:
    if raw is None or len(raw) == 0:
        raise ValueError(f"{name}: payload is empty.")

    # Quick guardrail: parquet files start (and end) with the PAR1 magic
    head = bytes(raw[:4])
    if head != b"PAR1":
        preview = bytes(raw[:40]).decode("utf-8", errors="replace").replace("\n", "\\n")
        raise ValueError(f"{name}: not a parquet file. First bytes: {preview}")

    try:
        df = pd.read_parquet(io.BytesIO(bytes(raw)), engine="pyarrow")
    except (ValueError, OSError) as e:
        raise ValueError(f"{name}: failed to parse parquet: {e}") from e

    return ColumnarDataset.from_frame(df, kinds=kinds)
