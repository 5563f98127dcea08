"""
Diverging color encoding for grid fields.

A value v maps linearly per channel from COLOR_LOW (v = 0) to COLOR_HIGH
(v = 1). Values are not clamped before the blend; the resulting channels are
clipped so slightly out-of-range floats saturate, and NaN renders as the
midpoint color.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from config import Config

RGB = Tuple[int, int, int]


def _endpoints(low: Optional[Sequence[int]], high: Optional[Sequence[int]]) -> Tuple[np.ndarray, np.ndarray]:
    if low is None or high is None:
        cfg = Config()
        low = low if low is not None else cfg.COLOR_LOW
        high = high if high is not None else cfg.COLOR_HIGH
    return np.asarray(low, dtype=np.float64), np.asarray(high, dtype=np.float64)


def values_to_rgb(
    values: np.ndarray,
    low: Optional[Sequence[int]] = None,
    high: Optional[Sequence[int]] = None
) -> np.ndarray:
    """
    Map an array of values to RGB.

    Args:
        values: Array of any shape
        low: Color for 0 (default Config.COLOR_LOW)
        high: Color for 1 (default Config.COLOR_HIGH)

    Returns:
        uint8 array of shape values.shape + (3,)
    """
    low_rgb, high_rgb = _endpoints(low, high)
    v = np.asarray(values, dtype=np.float64)
    v = np.where(np.isnan(v), 0.5, v)[..., None]
    blended = low_rgb * (1.0 - v) + high_rgb * v
    return np.clip(np.floor(blended), 0, 255).astype(np.uint8)


def value_to_rgb(
    value: float,
    low: Optional[Sequence[int]] = None,
    high: Optional[Sequence[int]] = None
) -> RGB:
    """Map a single value to an (r, g, b) tuple."""
    r, g, b = values_to_rgb(np.array(value), low, high).tolist()
    return (r, g, b)


def field_to_rgb(field, low: Optional[Sequence[int]] = None, high: Optional[Sequence[int]] = None) -> np.ndarray:
    """Color a GridField: (resolution, resolution, 3) uint8, same row-major layout."""
    return values_to_rgb(field.values, low, high)
