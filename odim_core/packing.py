"""Linear packing of physical values into stored sample codes and back.

    physical = gain * raw + offset

Two raw codes are reserved: `nodata` (no measurement) and `undetect`
(measured, but nothing detected). Sentinel codes are always compared in the
dtype of the stored array, before any conversion.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np

from .h5.errors import BadValueError

logger = logging.getLogger(__name__)

Predicate = Callable[[np.ndarray], np.ndarray]
"""Vectorised test on physical values, returning a boolean (array or scalar)."""


def sentinel_mask(raw: np.ndarray, code: Optional[float]) -> np.ndarray:
    """Return a mask of the samples in `raw` equal to a sentinel code.

    The code is converted to the dtype of `raw` first. A code that the dtype
    cannot represent (or None) matches nothing.
    """
    raw = np.asarray(raw)
    if code is None:
        return np.zeros(raw.shape, dtype=bool)
    if raw.dtype.kind in "iu":
        info = np.iinfo(raw.dtype)
        if not float(code).is_integer() or not info.min <= code <= info.max:
            return np.zeros(raw.shape, dtype=bool)
        return raw == raw.dtype.type(int(code))
    return raw == raw.dtype.type(code)


def unpack(
    raw: np.ndarray,
    gain: float = 1.0,
    offset: float = 0.0,
    nodata: Optional[float] = None,
    undetect: Optional[float] = None,
    nodata_value: float = np.nan,
    undetect_value: float = np.nan,
    dtype=np.float64,
) -> np.ndarray:
    """Convert stored codes into physical values.

    Samples equal to the `nodata` code become `nodata_value`, samples equal to
    the `undetect` code become `undetect_value` (undetect wins if the codes
    coincide).
    """
    raw = np.asarray(raw)
    is_undetect = sentinel_mask(raw, undetect)
    is_nodata = sentinel_mask(raw, nodata) & ~is_undetect
    out = np.asarray(raw.astype(dtype) * gain + offset, dtype=dtype)
    out[is_undetect] = undetect_value
    out[is_nodata] = nodata_value
    return out


def _evaluate(pred: Optional[Predicate], values: np.ndarray) -> np.ndarray:
    if pred is None:
        return np.zeros(values.shape, dtype=bool)
    return np.broadcast_to(np.asarray(pred(values), dtype=bool), values.shape)


def _code(code: Optional[float], dtype: np.dtype, which: str) -> np.generic:
    if code is None:
        raise BadValueError("pack", name=which, reason="sentinel code is not set")
    return dtype.type(code)


def pack(
    values: np.ndarray,
    gain: float = 1.0,
    offset: float = 0.0,
    nodata: Optional[float] = None,
    undetect: Optional[float] = None,
    is_nodata: Optional[Predicate] = None,
    is_undetect: Optional[Predicate] = None,
    dtype=np.uint8,
) -> np.ndarray:
    """Convert physical values into stored codes of given dtype.

    Samples selected by `is_nodata` / `is_undetect` get the exact sentinel
    code (undetect wins), all others are `(value - offset) / gain`, rounded to
    the nearest code and clipped to the range of integer dtypes.

    Raises:
        BadValueError: if gain is zero, or a predicate is given for an unset code
    """
    if gain == 0:
        raise BadValueError("pack", name="gain", reason="gain must not be zero")
    dtype = np.dtype(dtype)
    values = np.asarray(values, dtype=np.float64)
    ud = _evaluate(is_undetect, values)
    nd = _evaluate(is_nodata, values) & ~ud

    scaled = (values - offset) / gain
    with np.errstate(invalid="ignore"):
        if dtype.kind in "iu":
            info = np.iinfo(dtype)
            scaled = np.clip(np.rint(scaled), info.min, info.max)
        out = scaled.astype(dtype)
    if ud.any():
        out[ud] = _code(undetect, dtype, "undetect")
    if nd.any():
        out[nd] = _code(nodata, dtype, "nodata")
    return out
