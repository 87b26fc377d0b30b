from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


class ColumnKind(str, Enum):
    INT = "int"
    NULLABLE_INT = "nullable_int"
    FLOAT = "float"
    STR = "str"
    BOOL = "bool"


def _to_float(s: pd.Series) -> pd.Series:
    out = pd.to_numeric(s, errors="coerce").astype("float64")
    return out.where(np.isfinite(out))


def _to_nullable_int(s: pd.Series) -> pd.Series:
    num = _to_float(s)
    num = num.where(num % 1 == 0)
    return num.astype("Int64")


def coerce_column(s: pd.Series, kind: ColumnKind, *, name: str) -> pd.Series:
    """Coerce one column to its declared kind. Unparseable values become missing."""
    if kind is ColumnKind.FLOAT:
        return _to_float(s)
    if kind is ColumnKind.NULLABLE_INT:
        return _to_nullable_int(s)
    if kind is ColumnKind.INT:
        out = _to_nullable_int(s)
        if out.isna().any():
            raise ValueError(f"{name}: {int(out.isna().sum())} missing or non-integer values in int column")
        return out.astype("int64")
    if kind is ColumnKind.BOOL:
        if pd.api.types.is_bool_dtype(s.dtype) and not s.isna().any():
            return s.astype(bool)
        return _to_float(s).fillna(0.0).ne(0.0)
    return s.astype("string")


def infer_kind(s: pd.Series) -> ColumnKind:
    dtype = s.dtype
    if pd.api.types.is_bool_dtype(dtype):
        return ColumnKind.BOOL
    if pd.api.types.is_integer_dtype(dtype):
        return ColumnKind.NULLABLE_INT if s.isna().any() else ColumnKind.INT
    if pd.api.types.is_float_dtype(dtype):
        return ColumnKind.FLOAT
    return ColumnKind.STR


def _py(value: Any) -> Any:
    if value is None or value is pd.NA:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    return value


@dataclass(frozen=True, eq=False)
class ColumnarDataset:
    """
    Immutable table of named, typed columns of equal length.

    Every transformation returns a new dataset; the wrapped frame is never
    mutated in place. `field_names` is the ordered set of active columns.
    """

    frame: pd.DataFrame
    kinds: Mapping[str, ColumnKind] = field(default_factory=dict)

    def __post_init__(self) -> None:
        names = list(self.frame.columns)
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"duplicate field names: {dupes}")
        missing = [n for n in names if n not in self.kinds]
        if missing:
            raise ValueError(f"no declared kind for columns: {missing}")

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------
    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        kinds: Optional[Mapping[str, ColumnKind]] = None,
    ) -> "ColumnarDataset":
        declared = dict(kinds or {})
        out: Dict[str, pd.Series] = {}
        resolved: Dict[str, ColumnKind] = {}
        for name in df.columns:
            name = str(name)
            s = df[name].reset_index(drop=True)
            kind = declared.get(name) or infer_kind(s)
            out[name] = coerce_column(s, kind, name=name)
            resolved[name] = kind
        frame = pd.DataFrame(out, index=pd.RangeIndex(len(df)))
        return cls(frame=frame, kinds=resolved)

    @classmethod
    def from_columns(
        cls,
        columns: Mapping[str, Sequence[Any]],
        field_names: Optional[Sequence[str]] = None,
        kinds: Optional[Mapping[str, ColumnKind]] = None,
    ) -> "ColumnarDataset":
        names = list(field_names) if field_names is not None else list(columns.keys())
        absent = [n for n in names if n not in columns]
        if absent:
            raise ValueError(f"field names not present in columns: {absent}")
        lengths = {n: len(columns[n]) for n in names}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"columns have unequal lengths: {lengths}")
        df = pd.DataFrame({n: pd.Series(list(columns[n]), dtype=object) for n in names})
        if names and df.empty:
            df = pd.DataFrame({n: pd.Series([], dtype="float64") for n in names})
        return cls.from_frame(_infer_objects(df), kinds=kinds)

    @classmethod
    def empty(cls) -> "ColumnarDataset":
        return cls(frame=pd.DataFrame(), kinds={})

    # ------------------------------------------------------------------
    # access
    # ------------------------------------------------------------------
    @property
    def num_rows(self) -> int:
        return len(self.frame)

    def __len__(self) -> int:
        return self.num_rows

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(self.frame.columns)

    @property
    def columns(self) -> Dict[str, pd.Series]:
        return {name: self.frame[name] for name in self.field_names}

    def has_columns(self, *names: str) -> bool:
        return all(n in self.kinds for n in names)

    def kind(self, name: str) -> ColumnKind:
        return self.kinds[name]

    def series(self, name: str) -> pd.Series:
        # read-only by convention; use with_column to replace values
        return self.frame[name]

    def column(self, name: str) -> List[Any]:
        return [_py(v) for v in self.frame[name].tolist()]

    def value(self, name: str, index: int) -> Any:
        self._check_index(index)
        return _py(self.frame[name].iat[index])

    def row(self, index: int) -> Dict[str, Any]:
        self._check_index(index)
        return {name: _py(self.frame[name].iat[index]) for name in self.field_names}

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_rows:
            raise IndexError(f"row {index} out of range for dataset of {self.num_rows} rows")

    # ------------------------------------------------------------------
    # transformations (each returns a new dataset)
    # ------------------------------------------------------------------
    def filter_rows(self, mask: Iterable[bool]) -> "ColumnarDataset":
        keep = np.asarray(list(mask) if not isinstance(mask, (pd.Series, np.ndarray)) else mask, dtype=bool)
        if len(keep) != self.num_rows:
            raise ValueError(f"mask length {len(keep)} does not match {self.num_rows} rows")
        frame = self.frame.loc[keep].reset_index(drop=True)
        return ColumnarDataset(frame=frame, kinds=dict(self.kinds))

    def take(self, indices: Sequence[int]) -> "ColumnarDataset":
        frame = self.frame.iloc[list(indices)].reset_index(drop=True)
        return ColumnarDataset(frame=frame, kinds=dict(self.kinds))

    def select(self, names: Sequence[str]) -> "ColumnarDataset":
        frame = self.frame[list(names)].copy()
        return ColumnarDataset(frame=frame, kinds={n: self.kinds[n] for n in names})

    def with_column(
        self,
        name: str,
        values: Sequence[Any],
        kind: Optional[ColumnKind] = None,
    ) -> "ColumnarDataset":
        """Add or replace a column. A new name is appended to field_names."""
        if len(values) != self.num_rows:
            raise ValueError(f"{name}: {len(values)} values for {self.num_rows} rows")
        s = pd.Series(values, index=self.frame.index)
        if kind is None:
            kind = self.kinds.get(name) or infer_kind(_infer_objects(s.to_frame(name=name))[name])
        frame = self.frame.copy()
        frame[name] = coerce_column(s, kind, name=name)
        kinds = dict(self.kinds)
        kinds[name] = kind
        return ColumnarDataset(frame=frame, kinds=kinds)

    def to_frame(self) -> pd.DataFrame:
        return self.frame.copy()


def _infer_objects(df: pd.DataFrame) -> pd.DataFrame:
    # None-padded object columns from python lists -> numeric/bool where possible
    out = df.copy()
    for name in out.columns:
        s = out[name]
        if s.dtype != object:
            continue
        present = s.dropna()
        if present.empty:
            out[name] = s.astype("float64")
        elif present.map(lambda v: isinstance(v, (bool, np.bool_))).all():
            out[name] = s.astype("boolean") if s.isna().any() else s.astype(bool)
        elif present.map(lambda v: isinstance(v, (int, np.integer)) and not isinstance(v, bool)).all():
            out[name] = s.astype("Int64")
        elif present.map(lambda v: isinstance(v, (int, float, np.number)) and not isinstance(v, bool)).all():
            out[name] = s.astype("float64")
    return out
