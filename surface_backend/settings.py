import os

from dotenv import load_dotenv

# --- Project paths ---
PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

# .env one level above the package (project root)
ENV_PATH = os.path.join(os.path.dirname(PACKAGE_DIR), ".env")
load_dotenv(dotenv_path=ENV_PATH)


# --- small helpers for env parsing ---
def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        return default


# --- Logging ---
LOG_LEVEL = os.getenv("SURFACE_LOG_LEVEL", "INFO")

# --- Sampling defaults (overridable per request through the "config" dict) ---
DEFAULT_RESOLUTION = _env_int("SURFACE_RESOLUTION", 50)
MAX_RESOLUTION = _env_int("SURFACE_MAX_RESOLUTION", 400)
DEFAULT_DOMAIN = (
    _env_float("SURFACE_X_MIN", -5.0),
    _env_float("SURFACE_X_MAX", 5.0),
    _env_float("SURFACE_Y_MIN", -5.0),
    _env_float("SURFACE_Y_MAX", 5.0),
)
DEFAULT_PERCENTILE = _env_float("SURFACE_PERCENTILE", 95.0)

# Vectorized numpy sweep first, per-point fallback when it fails
VECTORIZE_GRID = _env_bool("SURFACE_VECTORIZE", True)

# --- Worker pool for PlotSession ---
MAX_WORKERS = _env_int("SURFACE_MAX_WORKERS", 2)
