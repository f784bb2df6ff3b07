import math
import time
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from . import settings
from .parse_engine import COMPLEX, REAL, CompiledExpression, complex_outcome, real_outcome
from .utils import setup_logger

logger = setup_logger(__name__)

# ---------------------------------------------------------------------------
# [1] Sampling parameters
# ---------------------------------------------------------------------------

def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Domain:
    """Sampling rectangle. A degenerate axis (min == max) is a single-point axis."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self):
        values = (self.x_min, self.x_max, self.y_min, self.y_max)
        if not all(math.isfinite(float(v)) for v in values):
            raise ValueError(f"Domain bounds must be finite numbers: {values}")
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError(
                f"Domain bounds are reversed: x=[{self.x_min}, {self.x_max}], y=[{self.y_min}, {self.y_max}]"
            )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Domain":
        """Accepts {xMin, xMax, yMin, yMax} (UI) or snake_case keys; missing keys use settings."""
        data = data or {}
        dx_min, dx_max, dy_min, dy_max = settings.DEFAULT_DOMAIN
        return cls(
            x_min=float(_pick(data, "xMin", "x_min", default=dx_min)),
            x_max=float(_pick(data, "xMax", "x_max", default=dx_max)),
            y_min=float(_pick(data, "yMin", "y_min", default=dy_min)),
            y_max=float(_pick(data, "yMax", "y_max", default=dy_max)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"xMin": self.x_min, "xMax": self.x_max, "yMin": self.y_min, "yMax": self.y_max}


@dataclass(frozen=True)
class ClipRange:
    """Saturation window for the height channel only."""

    lower: float
    upper: float

    def __post_init__(self):
        if not (math.isfinite(float(self.lower)) and math.isfinite(float(self.upper))):
            raise ValueError(f"Clip bounds must be finite numbers: [{self.lower}, {self.upper}]")
        if self.lower > self.upper:
            raise ValueError(f"Clip range is reversed: [{self.lower}, {self.upper}]")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["ClipRange"]:
        if not data:
            return None
        return cls(lower=float(data["min"]), upper=float(data["max"]))

    def apply(self, values: np.ndarray) -> np.ndarray:
        finite = np.isfinite(values)
        return np.where(finite, np.clip(values, self.lower, self.upper), np.nan)

# ---------------------------------------------------------------------------
# [2] Results
# ---------------------------------------------------------------------------

def _finite_bounds(values: np.ndarray) -> Tuple[float, float]:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return 0.0, 0.0
    return float(np.min(finite)), float(np.max(finite))


def _json_vector(values: np.ndarray) -> List[Optional[float]]:
    return [v if math.isfinite(v) else None for v in values.tolist()]


def _json_matrix(values: np.ndarray) -> List[List[Optional[float]]]:
    return [[v if math.isfinite(v) else None for v in row] for row in values.tolist()]


@dataclass
class GridResult:
    xs: np.ndarray
    ys: np.ndarray
    z: np.ndarray
    z_min: float
    z_max: float
    mode: str = REAL

    @property
    def height(self) -> np.ndarray:
        return self.z

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "x": _json_vector(self.xs),
            "y": _json_vector(self.ys),
            "z": _json_matrix(self.z),
            "zMin": self.z_min,
            "zMax": self.z_max,
        }


@dataclass
class ComplexGridResult:
    xs: np.ndarray
    ys: np.ndarray
    real: np.ndarray
    imaginary: np.ndarray
    real_min: float
    real_max: float
    imaginary_min: float
    imaginary_max: float
    mode: str = COMPLEX

    @property
    def height(self) -> np.ndarray:
        return self.real

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "x": _json_vector(self.xs),
            "y": _json_vector(self.ys),
            "real": _json_matrix(self.real),
            "imaginary": _json_matrix(self.imaginary),
            "realMin": self.real_min,
            "realMax": self.real_max,
            "imaginaryMin": self.imaginary_min,
            "imaginaryMax": self.imaginary_max,
        }


AnyGridResult = Union[GridResult, ComplexGridResult]

# ---------------------------------------------------------------------------
# [3] Sweep
# ---------------------------------------------------------------------------

def linspace(start: float, end: float, n: int) -> np.ndarray:
    """n evenly spaced samples from start to end; just [start] when n < 2."""
    if n < 2:
        return np.array([float(start)])
    return np.linspace(float(start), float(end), n)


class _VectorizationFailed(Exception):
    pass


def _as_grid_array(W: Any, shape: Tuple[int, ...]) -> np.ndarray:
    W = np.asarray(W)
    if W.dtype.kind not in "biufc":
        raise _VectorizationFailed(f"non-numeric result dtype {W.dtype}")
    if W.shape != shape:
        try:
            W = np.broadcast_to(W, shape)
        except ValueError as e:
            raise _VectorizationFailed(str(e)) from e
    return W


def _real_vectorized(compiled: CompiledExpression, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
    W = _as_grid_array(compiled.function(X, Y), X.shape)
    # booleans and complex values are never a real height
    if W.dtype.kind in "bc":
        return np.full(X.shape, np.nan)
    Z = np.array(W, dtype=float)
    Z[~np.isfinite(Z)] = np.nan
    return Z


def _complex_vectorized(compiled: CompiledExpression, X: np.ndarray, Y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    Xc, Yc = X.astype(complex), Y.astype(complex)
    W = _as_grid_array(compiled.function(Xc + 1j * Yc, Xc, Yc), X.shape)
    if W.dtype.kind == "b":
        return np.full(X.shape, np.nan), np.full(X.shape, np.nan)
    if W.dtype.kind == "c":
        R = np.array(W.real, dtype=float)
        I = np.array(W.imag, dtype=float)
    else:
        R = np.array(W, dtype=float)
        I = np.zeros(X.shape)
    bad = ~(np.isfinite(R) & np.isfinite(I))
    R[bad] = np.nan
    I[bad] = np.nan
    return R, I


def _real_pointwise(compiled: CompiledExpression, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    Z = np.empty((len(ys), len(xs)))
    for i in range(len(ys)):
        for j in range(len(xs)):
            Z[i, j] = real_outcome(compiled, xs[j], ys[i])
    return Z


def _complex_pointwise(compiled: CompiledExpression, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    R = np.empty((len(ys), len(xs)))
    I = np.empty((len(ys), len(xs)))
    for i in range(len(ys)):
        for j in range(len(xs)):
            R[i, j], I[i, j] = complex_outcome(compiled, xs[j], ys[i])
    return R, I


def sample_grid(
    compiled: CompiledExpression,
    domain: Domain,
    resolution: int,
    clip: Optional[ClipRange] = None,
    vectorize: Optional[bool] = None,
) -> AnyGridResult:
    """
    Evaluates the expression on a resolution x resolution lattice.

    z[i][j] = f(xs[j], ys[i]). Cells that fail to evaluate are NaN and never abort
    the sweep. The whole lattice goes through numpy in one call when the expression
    allows it; otherwise every cell is evaluated on its own. Both paths give the
    same per-cell result.
    """
    if isinstance(resolution, bool) or int(resolution) != resolution or resolution < 1:
        raise ValueError(f"resolution must be an integer >= 1, got {resolution!r}")
    resolution = int(resolution)
    if vectorize is None:
        vectorize = settings.VECTORIZE_GRID

    xs = linspace(domain.x_min, domain.x_max, resolution)
    ys = linspace(domain.y_min, domain.y_max, resolution)
    X, Y = np.meshgrid(xs, ys)

    started = time.perf_counter()
    path = "vectorized"
    with warnings.catch_warnings(), np.errstate(all="ignore"):
        warnings.simplefilter("ignore")
        try:
            if not vectorize:
                raise _VectorizationFailed("disabled")
            if compiled.mode == COMPLEX:
                R, I = _complex_vectorized(compiled, X, Y)
            else:
                Z = _real_vectorized(compiled, X, Y)
        except Exception as e:
            path = "pointwise"
            logger.debug("Vectorized sweep unavailable for %r (%s); evaluating per point", compiled.expression, e)
            if compiled.mode == COMPLEX:
                R, I = _complex_pointwise(compiled, xs, ys)
            else:
                Z = _real_pointwise(compiled, xs, ys)

    if compiled.mode == COMPLEX:
        if clip is not None:
            R = clip.apply(R)
        real_min, real_max = _finite_bounds(R)
        imaginary_min, imaginary_max = _finite_bounds(I)
        result: AnyGridResult = ComplexGridResult(
            xs=xs, ys=ys, real=R, imaginary=I,
            real_min=real_min, real_max=real_max,
            imaginary_min=imaginary_min, imaginary_max=imaginary_max,
        )
    else:
        if clip is not None:
            Z = clip.apply(Z)
        z_min, z_max = _finite_bounds(Z)
        result = GridResult(xs=xs, ys=ys, z=Z, z_min=z_min, z_max=z_max)

    logger.debug(
        "Sampled %dx%d %s grid for %r via %s sweep in %.3fs",
        resolution, resolution, compiled.mode, compiled.expression, path, time.perf_counter() - started,
    )
    return result
