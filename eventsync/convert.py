"""
Real-world (metres, centre origin) -> Opta (0-100, corner origin) pitch coordinates.

The mapping is piecewise linear between pitch-marking breakpoints (box
edges, six-yard line, penalty spot, ...) and mirror symmetric about the
halfway line and the long axis, so only one half of each axis is tabulated.
"""
from __future__ import annotations

import math
from bisect import bisect_left
from typing import Sequence, Tuple

import numpy as np

PITCH_LENGTH = 105.0
PITCH_WIDTH = 68.0

REAL_X_MID = 52.5
REAL_Y_MID = 34.0

X_BREAKS_REAL = (0.0, 5.5, 11.0, 16.5, 20.15, 43.35, 52.5)
X_BREAKS_OPTA = (0.0, 5.8, 11.5, 17.0, 20.4, 41.0, 50.0)

Y_BREAKS_REAL = (0.0, 13.84, 24.84, 26.69, 30.22, 30.34, 34.0)
Y_BREAKS_OPTA = (0.0, 21.1, 36.8, 40.0, 44.2, 45.2, 50.0)


def _round2(v: float) -> float:
    # half-up, matches the rounding used when event coordinates were produced
    return math.floor(v * 100.0 + 0.5) / 100.0


def interp(value: float, source: Sequence[float], target: Sequence[float]) -> float:
    """Linear interpolation; values beyond the table follow the end segment's line."""
    i = min(bisect_left(source, value, 1) - 1, len(source) - 2)
    t = (value - source[i]) / (source[i + 1] - source[i])
    return target[i] + t * (target[i + 1] - target[i])


def convert_with_mirror(
    value: float,
    source: Sequence[float],
    target: Sequence[float],
    source_mid: float,
) -> float:
    mirrored = value > source_mid
    adj = 2.0 * source_mid - value if mirrored else value
    target_mid = target[-1]
    out = interp(adj, source, target)
    return 2.0 * target_mid - out if mirrored else out


def real_to_opta(
    x: float,
    y: float,
    *,
    pitch_length: float = PITCH_LENGTH,
    pitch_width: float = PITCH_WIDTH,
) -> Tuple[float, float]:
    """Convert one point. Non-finite input gives NaN for that axis."""
    out = []
    for v, half, mid, src, tgt in (
        (x, pitch_length / 2.0, REAL_X_MID, X_BREAKS_REAL, X_BREAKS_OPTA),
        (y, pitch_width / 2.0, REAL_Y_MID, Y_BREAKS_REAL, Y_BREAKS_OPTA),
    ):
        if v is None or not math.isfinite(v):
            out.append(math.nan)
            continue
        norm = v * mid / half + mid
        out.append(_round2(convert_with_mirror(norm, src, tgt, mid)))
    return out[0], out[1]


def _interp_array(values: np.ndarray, source: Sequence[float], target: Sequence[float]) -> np.ndarray:
    src = np.asarray(source, dtype=float)
    tgt = np.asarray(target, dtype=float)
    i = np.searchsorted(src[1:], values, side="left")
    i = np.clip(i, 0, len(src) - 2)
    t = (values - src[i]) / (src[i + 1] - src[i])
    return tgt[i] + t * (tgt[i + 1] - tgt[i])


def _convert_axis(
    values: np.ndarray,
    half: float,
    mid: float,
    source: Sequence[float],
    target: Sequence[float],
) -> np.ndarray:
    norm = values * mid / half + mid
    mirrored = norm > mid
    adj = np.where(mirrored, 2.0 * mid - norm, norm)
    out = _interp_array(adj, source, target)
    out = np.where(mirrored, 2.0 * target[-1] - out, out)
    return np.floor(out * 100.0 + 0.5) / 100.0


def real_to_opta_arrays(
    xs: Sequence[float],
    ys: Sequence[float],
    *,
    pitch_length: float = PITCH_LENGTH,
    pitch_width: float = PITCH_WIDTH,
) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorised real_to_opta over whole columns. NaN stays NaN."""
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"x/y length mismatch: {x.shape} vs {y.shape}")

    with np.errstate(invalid="ignore"):
        ox = _convert_axis(x, pitch_length / 2.0, REAL_X_MID, X_BREAKS_REAL, X_BREAKS_OPTA)
        oy = _convert_axis(y, pitch_width / 2.0, REAL_Y_MID, Y_BREAKS_REAL, Y_BREAKS_OPTA)
    return ox, oy
