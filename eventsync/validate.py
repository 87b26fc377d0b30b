from __future__ import annotations

from collections.abc import Iterable
from typing import List

from .dataset import ColumnarDataset


def missing_columns(ds: ColumnarDataset, cols: Iterable[str]) -> List[str]:
    return [c for c in cols if c not in ds.kinds]


def require_columns(ds: ColumnarDataset, cols: Iterable[str], *, name: str) -> None:
    missing = missing_columns(ds, cols)
    if missing:
        raise ValueError(f"{name}: missing required columns: {missing}")

