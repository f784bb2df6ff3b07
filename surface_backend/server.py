import json
import sys
from typing import Any, Dict

import numpy as np

from . import settings
from .colormaps import COLORMAPS, DEFAULT_COLORMAPS, surface_colors
from .errors import ExpressionError, InvalidVariablesError
from .grid_engine import ClipRange, Domain, sample_grid
from .latex_engine import latex_to_plain
from .parse_engine import (
    AVAILABLE_COMPLEX_FUNCTIONS,
    AVAILABLE_FUNCTIONS,
    COMPLEX,
    REAL,
    evaluate_complex,
    evaluate_real,
    parse_expression,
)
from .stats_engine import auto_limits, grid_statistics
from .utils import setup_logger

logger = setup_logger(__name__)


def _finite_or_none(v: float):
    return v if np.isfinite(v) else None


def _resolution(req: Dict[str, Any], config: Dict[str, Any]) -> int:
    value = req.get('resolution', config.get('resolution', settings.DEFAULT_RESOLUTION))
    resolution = int(value)
    max_resolution = int(config.get('maxResolution', settings.MAX_RESOLUTION))
    if resolution < 1 or resolution > max_resolution:
        raise ValueError(f"resolution must be between 1 and {max_resolution}, got {resolution}")
    return resolution


def handle_plot(req: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    mode = req.get('mode', REAL)
    compiled = parse_expression(req.get('expression', ''), mode, latex=bool(req.get('latex', False)))

    domain = Domain.from_dict(req.get('domain') or config.get('domain'))
    resolution = _resolution(req, config)
    clip = ClipRange.from_dict(req.get('clip'))
    percentile = float(req.get('percentile', config.get('percentile', settings.DEFAULT_PERCENTILE)))

    grid = sample_grid(compiled, domain, resolution, clip, vectorize=config.get('vectorize'))
    limits = auto_limits(grid, percentile)
    stats = grid_statistics(grid)

    result = {
        "status": "success",
        "expression": compiled.expression,
        "mode": compiled.mode,
        "vars": list(compiled.variables),
        "domain": domain.to_dict(),
        "resolution": resolution,
        "grid": grid.to_dict(),
        "limits": {"min": limits[0], "max": limits[1]},
        "stats": stats.to_dict(),
    }

    colormap = req.get('colormap', config.get('colormap'))
    if colormap:
        colors = surface_colors(grid.height, limits, colormap)
        result["colormap"] = colormap
        result["colors"] = np.round(colors, 4).tolist()
    return result


def handle_evaluate(req: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    mode = req.get('mode', REAL)
    compiled = parse_expression(req.get('expression', ''), mode, latex=bool(req.get('latex', False)))
    x = float(req.get('x', 0.0))
    y = float(req.get('y', 0.0))

    if mode == COMPLEX:
        re_part, im_part = evaluate_complex(compiled, x, y)
        value = {"real": _finite_or_none(re_part), "imaginary": _finite_or_none(im_part)}
    else:
        value = _finite_or_none(evaluate_real(compiled, x, y))
    return {"status": "success", "expression": compiled.expression, "vars": list(compiled.variables), "value": value}


def handle_validate(req: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    mode = req.get('mode', REAL)
    compiled = parse_expression(req.get('expression', ''), mode, latex=bool(req.get('latex', False)))
    return {"status": "success", "valid": True, "expression": compiled.expression, "vars": list(compiled.variables)}


def handle_convert(req: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    plain = latex_to_plain(req.get('expression', ''))
    return {"status": "success", "plain": plain}


def handle_catalog(req: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "status": "success",
        "functions": {REAL: AVAILABLE_FUNCTIONS, COMPLEX: AVAILABLE_COMPLEX_FUNCTIONS},
        "colormaps": [
            {"name": cm.name, "value": cm.value, "type": cm.type, "description": cm.description}
            for cm in COLORMAPS
        ],
        "defaultColormaps": DEFAULT_COLORMAPS,
    }


ACTIONS = {
    "plot": handle_plot,
    "evaluate": handle_evaluate,
    "validate": handle_validate,
    "convert": handle_convert,
    "catalog": handle_catalog,
}


def _error(message: str, error_type: str, **extra) -> str:
    payload = {"status": "error", "message": message, "errorType": error_type}
    payload.update(extra)
    return json.dumps(payload)


def execute_plot(parsed_json_str: str) -> str:
    """One JSON request -> one JSON response. Never raises."""
    try:
        req = json.loads(parsed_json_str)
        if not isinstance(req, dict):
            return _error("Request must be a JSON object", "InvalidRequest")
        config = req.get('config') or {}
        action = req.get('action', 'plot')

        handler = ACTIONS.get(action)
        if handler is None:
            return _error(f"Unknown action: {action}", "InvalidRequest")
        return json.dumps(handler(req, config))

    except InvalidVariablesError as e:
        return _error(str(e), e.error_type, invalidVariables=e.names)
    except ExpressionError as e:
        return _error(str(e), e.error_type)
    except json.JSONDecodeError as e:
        return _error(f"Malformed request: {e}", "InvalidRequest")
    except (ValueError, TypeError, KeyError) as e:
        return _error(str(e), "InvalidRequest")
    except Exception as e:
        logger.exception("Unexpected failure while handling request")
        return _error(str(e), "InternalError")


def serve(stdin=None, stdout=None) -> None:
    """JSON-lines bridge: one request per input line, one response per output line."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logger.info("Surface backend listening on stdin")
    for line in stdin:
        line = line.strip()
        if not line:
            continue
        stdout.write(execute_plot(line) + "\n")
        stdout.flush()


if __name__ == "__main__":
    serve()
