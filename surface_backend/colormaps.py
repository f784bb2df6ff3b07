import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from matplotlib import colormaps as mpl_colormaps
from matplotlib.colors import Colormap, LinearSegmentedColormap

SEQUENTIAL = "sequential"
DIVERGING = "diverging"
CYCLIC = "cyclic"
COLORMAP_TYPES = (SEQUENTIAL, DIVERGING, CYCLIC)


@dataclass(frozen=True)
class ColorMap:
    name: str
    value: str
    type: str
    description: str


COLORMAPS: List[ColorMap] = [
    # sequential: general functions
    ColorMap("Viridis", "Viridis", SEQUENTIAL, "Perceptually uniform, colorblind-friendly"),
    ColorMap("Plasma", "Plasma", SEQUENTIAL, "High contrast, purple to yellow"),
    ColorMap("Inferno", "Inferno", SEQUENTIAL, "Dark background, warm colors"),
    ColorMap("Magma", "Magma", SEQUENTIAL, "Similar to inferno, more magenta"),
    ColorMap("Cividis", "Cividis", SEQUENTIAL, "Optimized for colorblind viewers"),
    ColorMap("Blues", "Blues", SEQUENTIAL, "Light to dark blue"),
    ColorMap("Greens", "Greens", SEQUENTIAL, "Light to dark green"),
    ColorMap("Reds", "Reds", SEQUENTIAL, "Light to dark red"),
    ColorMap("Hot", "Hot", SEQUENTIAL, "Black-red-yellow-white"),
    ColorMap("Jet", "Jet", SEQUENTIAL, "Rainbow colors (not perceptually uniform)"),
    # diverging: functions centered around zero
    ColorMap("RdBu", "RdBu", DIVERGING, "Red to blue through white"),
    ColorMap("RdYlBu", "RdYlBu", DIVERGING, "Red-yellow-blue diverging"),
    ColorMap("Spectral", "Spectral", DIVERGING, "Rainbow diverging colormap"),
    ColorMap("Picnic", "Picnic", DIVERGING, "Blue to red through white"),
    ColorMap("Portland", "Portland", DIVERGING, "Blue-white-red"),
    # cyclic: periodic/angular functions
    ColorMap("HSV", "HSV", CYCLIC, "Full hue cycle, good for angles"),
    ColorMap("Phase", "Phase", CYCLIC, "Cyclic colormap for phase"),
    ColorMap("Twilight", "Twilight", CYCLIC, "Perceptually uniform cyclic"),
    ColorMap("IceFire", "IceFire", CYCLIC, "Cyan-black-orange cyclic"),
]

DEFAULT_COLORMAPS: Dict[str, str] = {
    "general": "Viridis",
    "periodic": "HSV",
    "diverging": "RdBu",
}

DISTINCT_BASE_COLORS = (
    "#1f77b4",  # blue
    "#ff7f0e",  # orange
    "#2ca02c",  # green
    "#d62728",  # red
    "#9467bd",  # purple
    "#8c564b",  # brown
    "#e377c2",  # pink
    "#7f7f7f",  # gray
    "#bcbd22",  # olive
    "#17becf",  # cyan
)


def get_color_map(name: str) -> Optional[ColorMap]:
    for cm in COLORMAPS:
        if cm.name == name or cm.value == name:
            return cm
    return None


def get_color_maps_by_type(cmap_type: str) -> List[ColorMap]:
    return [cm for cm in COLORMAPS if cm.type == cmap_type]


def get_distinct_colors(count: int) -> List[str]:
    """Line colors for several plots: the ten base colors, then evenly spaced HSL hues."""
    if count <= 0:
        return []
    if count <= len(DISTINCT_BASE_COLORS):
        return list(DISTINCT_BASE_COLORS[:count])
    return [f"hsl({i * 360 / count:g}, 70%, 50%)" for i in range(count)]

# ---------------------------------------------------------------------------
# matplotlib colormap objects for the catalog names
# ---------------------------------------------------------------------------

# catalog entries matplotlib does not ship; built from color stops
_CUSTOM_STOPS: Dict[str, List[str]] = {
    "Picnic": ["#0000ff", "#3399ff", "#66ccff", "#99ccff", "#ccccff", "#ffffff",
               "#ffccff", "#ff99ff", "#ff66cc", "#ff6666", "#ff0000"],
    "Portland": ["#0c3383", "#0a88ba", "#f2d338", "#f28f38", "#d91e1e"],
    "Phase": ["#ff0000", "#ffff00", "#00ff00", "#00ffff", "#0000ff", "#ff00ff", "#ff0000"],
    "IceFire": ["#bde7db", "#3e9ad6", "#3a3e9a", "#1a1a1a", "#8a2a46", "#e8663a", "#f9d8a7"],
    "Mathematica": ["#0000cd", "#00ffff", "#00ff00", "#ffff00", "#ff0000"],
}


def resolve_cmap(name: Optional[str] = None) -> Colormap:
    """Catalog or matplotlib colormap name -> matplotlib Colormap (Viridis when unknown)."""
    name = name or DEFAULT_COLORMAPS["general"]
    entry = get_color_map(name)
    key = entry.value if entry else name

    if key in _CUSTOM_STOPS:
        return LinearSegmentedColormap.from_list(key.lower(), _CUSTOM_STOPS[key])
    for candidate in (key, key.lower()):
        try:
            return mpl_colormaps.get_cmap(candidate)
        except (KeyError, ValueError):
            continue
    return mpl_colormaps.get_cmap(DEFAULT_COLORMAPS["general"].lower())


def surface_colors(values: np.ndarray, limits: Tuple[float, float], name: Optional[str] = None) -> np.ndarray:
    """
    Per-cell RGB for a height matrix. Values are normalized into limits;
    NaN sits mid-scale, +inf/-inf at the ends.
    """
    cmap = resolve_cmap(name)
    values = np.asarray(values, dtype=float)
    lower, upper = limits
    span = (upper - lower) or 1.0
    with np.errstate(all="ignore"):
        norm = (values - lower) / span
    norm = np.where(np.isnan(values), 0.5, norm)
    norm = np.where(np.isposinf(values), 1.0, norm)
    norm = np.where(np.isneginf(values), 0.0, norm)
    norm = np.clip(norm, 0.0, 1.0)
    return cmap(norm)[..., :3]

# ---------------------------------------------------------------------------
# Phase coloring for complex surfaces
# ---------------------------------------------------------------------------

Number = Union[float, np.ndarray]


def complex_to_phase(real: Number, imaginary: Number) -> Number:
    """Angle of re + i*im in radians, in [-pi, pi]."""
    if np.ndim(real) == 0 and np.ndim(imaginary) == 0:
        return math.atan2(float(imaginary), float(real))
    return np.arctan2(imaginary, real)


def phase_to_hue(phase: Number) -> Number:
    """[-pi, pi] -> [0, 360] degrees."""
    return (phase + math.pi) / (2 * math.pi) * 360
