import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from . import settings
from .grid_engine import AnyGridResult, ComplexGridResult

FALLBACK_LIMITS: Tuple[float, float] = (-10.0, 10.0)
PADDING_FRACTION = 0.1


def auto_limits(grid: AnyGridResult, percentile: Optional[float] = None) -> Tuple[float, float]:
    """
    Display range for the height channel that ignores the outer (100 - p)% of values.

    Takes the finite heights, sorts them and picks the values at the
    floor(n(100-p)/200) and ceil(n(100+p)/200) - 1 positions (clamped into the
    array), then pads by 10% of the span on both sides.
    """
    if percentile is None:
        percentile = settings.DEFAULT_PERCENTILE
    values = np.asarray(grid.height, dtype=float).ravel()
    values = np.sort(values[np.isfinite(values)])
    n = values.size
    if n == 0:
        return FALLBACK_LIMITS

    lower_index = math.floor(n * (100 - percentile) / 200)
    upper_index = math.ceil(n * (100 + percentile) / 200) - 1
    lower_index = min(max(lower_index, 0), n - 1)
    upper_index = min(max(upper_index, 0), n - 1)

    lower = float(values[lower_index])
    upper = float(values[upper_index])
    padding = (upper - lower) * PADDING_FRACTION
    return lower - padding, upper + padding


@dataclass
class GridStatistics:
    mean: float
    median: float
    total_count: int
    valid_count: int
    nan_count: int
    # complex grids only
    imaginary_mean: Optional[float] = None
    imaginary_median: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "mean": data["mean"],
            "median": data["median"],
            "imaginaryMean": data["imaginary_mean"],
            "imaginaryMedian": data["imaginary_median"],
            "totalCount": data["total_count"],
            "validCount": data["valid_count"],
            "nanCount": data["nan_count"],
        }


def _mean_median(values: np.ndarray) -> Tuple[float, float]:
    if values.size == 0:
        return 0.0, 0.0
    return float(np.mean(values)), float(np.median(values))


def grid_statistics(grid: AnyGridResult) -> GridStatistics:
    """Mean/median over valid cells plus cell counts. No valid cells -> zeros."""
    if isinstance(grid, ComplexGridResult):
        real = np.asarray(grid.real, dtype=float)
        imaginary = np.asarray(grid.imaginary, dtype=float)
        valid = np.isfinite(real) & np.isfinite(imaginary)
        mean, median = _mean_median(real[valid])
        imaginary_mean, imaginary_median = _mean_median(imaginary[valid])
    else:
        z = np.asarray(grid.z, dtype=float)
        valid = np.isfinite(z)
        mean, median = _mean_median(z[valid])
        imaginary_mean = imaginary_median = None

    total = int(valid.size)
    valid_count = int(np.count_nonzero(valid))
    return GridStatistics(
        mean=mean,
        median=median,
        total_count=total,
        valid_count=valid_count,
        nan_count=total - valid_count,
        imaginary_mean=imaginary_mean,
        imaginary_median=imaginary_median,
    )
