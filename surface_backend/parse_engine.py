import math
import numbers
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Tuple

import numpy as np
import sympy as sp
from scipy import special
from sympy.parsing.sympy_parser import (
    auto_number,
    auto_symbol,
    convert_xor,
    factorial_notation,
    parse_expr,
    repeated_decimals,
)

from .errors import EmptyExpressionError, ExpressionSyntaxError, InvalidVariablesError
from .latex_engine import latex_to_plain
from .preprocess import CONSTANT_NAMES, FUNCTION_NAMES, extract_right_hand_side, normalize_implicit_multiplication
from .utils import setup_logger

logger = setup_logger(__name__)

REAL = "real"
COMPLEX = "complex"
MODES = (REAL, COMPLEX)

PERMITTED_VARIABLES: Dict[str, FrozenSet[str]] = {
    REAL: frozenset({"x", "y"}),
    COMPLEX: frozenset({"z", "x", "y"}),
}

X_SYMBOL, Y_SYMBOL, Z_SYMBOL = sp.Symbol("x"), sp.Symbol("y"), sp.Symbol("z")

NAN = float("nan")

# ---------------------------------------------------------------------------
# [1] Numeric implementations for names SymPy has no (or a different) idea of
# ---------------------------------------------------------------------------

def _cbrt(v):
    # real cube root on the real axis, principal root elsewhere
    if np.iscomplexobj(v):
        return np.power(v, 1.0 / 3.0)
    return np.cbrt(v)


def _log(v, base=None):
    if base is None:
        return np.log(v)
    return np.log(v) / np.log(base)


def _factorial(v):
    # gamma(v + 1): defined off the integers, non-finite at the poles
    return special.gamma(v + 1)


def _round_half_away(v):
    return np.sign(v) * np.floor(np.abs(v) + 0.5)


def _componentwise(op: Callable) -> Callable:
    """Rounding of a complex value rounds its real and imaginary parts separately."""
    def apply(v):
        if np.iscomplexobj(v):
            return op(np.real(v)) + 1j * op(np.imag(v))
        return op(v)
    return apply


def _real_axis(op: Callable) -> Callable:
    """Binary ops that only exist for reals: complex input off the real axis is NaN."""
    def apply(a, b):
        a = np.asarray(a)
        b = np.asarray(b)
        on_axis = (np.imag(a) == 0) & (np.imag(b) == 0)
        result = np.where(on_axis, op(np.real(a), np.real(b)), np.nan)
        return result[()] if result.ndim == 0 else result
    return apply


def _integer_only(op: Callable) -> Callable:
    """gcd/lcm are defined for integral arguments only; anything else is NaN."""
    def apply(a, b):
        a = np.asarray(a, dtype=float)
        b = np.asarray(b, dtype=float)
        integral = np.isfinite(a) & np.isfinite(b) & (np.mod(a, 1) == 0) & (np.mod(b, 1) == 0)
        safe_a = np.where(integral, a, 0).astype(np.int64)
        safe_b = np.where(integral, b, 0).astype(np.int64)
        result = np.where(integral, op(safe_a, safe_b).astype(float), np.nan)
        return result[()] if result.ndim == 0 else result
    return apply


_NUMERIC_FUNCTIONS: Dict[str, Callable] = {
    "log": _log,
    "log10": np.log10,
    "log2": np.log2,
    "cbrt": _cbrt,
    "round": _componentwise(_round_half_away),
    "floor": _componentwise(np.floor),
    "ceil": _componentwise(np.ceil),
    "mod": _real_axis(np.mod),
    "atan2": _real_axis(np.arctan2),
    "gcd": _real_axis(_integer_only(np.gcd)),
    "lcm": _real_axis(_integer_only(np.lcm)),
    # reciprocal trig, spelled out so the printer never needs a rewrite rule
    "sec": lambda v: 1 / np.cos(v),
    "csc": lambda v: 1 / np.sin(v),
    "cot": lambda v: 1 / np.tan(v),
    "asec": lambda v: np.arccos(1 / v),
    "acsc": lambda v: np.arcsin(1 / v),
    "acot": lambda v: np.arctan(1 / v),
    "factorial": _factorial,
}

# Names missing here parse to an undefined sp.Function bound to the numeric table.
_SYMPY_FUNCTIONS: Dict[str, Any] = {
    "sin": sp.sin, "cos": sp.cos, "tan": sp.tan,
    "asin": sp.asin, "acos": sp.acos, "atan": sp.atan,
    "sinh": sp.sinh, "cosh": sp.cosh, "tanh": sp.tanh,
    "asinh": sp.asinh, "acosh": sp.acosh, "atanh": sp.atanh,
    "sec": sp.sec, "csc": sp.csc, "cot": sp.cot,
    "asec": sp.asec, "acsc": sp.acsc, "acot": sp.acot,
    "exp": sp.exp, "log": sp.log, "ln": sp.log, "sqrt": sp.sqrt,
    "abs": sp.Abs, "sign": sp.sign, "pow": sp.Pow,
    "min": sp.Min, "max": sp.Max,
    "conj": sp.conjugate, "arg": sp.arg,
    "real": sp.re, "imag": sp.im, "re": sp.re, "im": sp.im,
}

_SYMPY_CONSTANTS: Dict[str, Any] = {
    "pi": sp.pi, "PI": sp.pi,
    "e": sp.E, "E": sp.E,
    "i": sp.I,
    "Infinity": sp.oo, "NaN": sp.nan,
    # booleans take part in arithmetic as 1 and 0
    "true": sp.Integer(1), "false": sp.Integer(0),
}

# Names the generated parser code itself refers to.
_PARSER_GLOBALS = (
    "Integer", "Float", "Rational", "Symbol", "Function",
    "Add", "Mul", "Pow", "factorial", "factorial2",
)

_TRANSFORMATIONS = (auto_symbol, repeated_decimals, auto_number, factorial_notation, convert_xor)

# Only the infix math dialect gets through to the parser.
_ALLOWED_TEXT = re.compile(r"^[A-Za-z0-9_\s+\-*/^().,!%]*$")
_FORBIDDEN_TEXT = re.compile(r"__|\.\s*[A-Za-z_]")


@dataclass(frozen=True)
class EvaluationContext:
    """
    The fixed vocabulary an expression is compiled against: the SymPy objects each
    function/constant name parses to, and the numeric namespace lambdify binds.
    Stateless; every call hands out fresh dicts because parse_expr mutates them.
    """

    functions: Dict[str, Any] = field(default_factory=dict)
    constants: Dict[str, Any] = field(default_factory=dict)
    numeric: Dict[str, Callable] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "EvaluationContext":
        functions = dict(_SYMPY_FUNCTIONS)
        for name in _NUMERIC_FUNCTIONS:
            functions.setdefault(name, sp.Function(name))
        missing = set(FUNCTION_NAMES) - set(functions)
        if missing:
            raise RuntimeError(f"function table has no implementation for: {sorted(missing)}")
        missing = set(CONSTANT_NAMES) - set(_SYMPY_CONSTANTS)
        if missing:
            raise RuntimeError(f"constant table has no value for: {sorted(missing)}")
        return cls(functions=functions, constants=dict(_SYMPY_CONSTANTS), numeric=dict(_NUMERIC_FUNCTIONS))

    def local_dict(self) -> Dict[str, Any]:
        local = dict(self.functions)
        local.update(self.constants)
        return local

    def global_dict(self) -> Dict[str, Any]:
        return {name: getattr(sp, name) for name in _PARSER_GLOBALS}

    def modules(self) -> List[Any]:
        return [dict(self.numeric), "numpy", "scipy"]

    def is_reserved(self, name: str) -> bool:
        return name in self.functions or name in self.constants


DEFAULT_CONTEXT = EvaluationContext.default()

# ---------------------------------------------------------------------------
# [2] Compiled expression
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompiledExpression:
    """Parsed once, evaluated many times. Safe to share read-only between threads."""

    expression: str
    mode: str
    sympy_expr: sp.Basic
    function: Callable = field(repr=False, compare=False)
    variables: Tuple[str, ...] = ()

    @property
    def arguments(self) -> Tuple[str, ...]:
        return ("x", "y") if self.mode == REAL else ("z", "x", "y")

    def evaluate(self, x: float, y: float):
        if self.mode == COMPLEX:
            return evaluate_complex(self, x, y)
        return evaluate_real(self, x, y)


def collect_free_variables(node: sp.Basic) -> FrozenSet[str]:
    """
    Walks the parse tree once. Symbols are variables; a function application only
    contributes its arguments (its name lives in node.func, which is never visited);
    constants parse to SymPy numbers, not Symbols.
    """
    names = set()

    def traverse(n):
        if isinstance(n, sp.Symbol):
            names.add(n.name)
            return
        for arg in getattr(n, "args", ()):
            traverse(arg)

    traverse(node)
    return frozenset(names)


def _check_dialect(expr: str) -> None:
    if not _ALLOWED_TEXT.match(expr):
        bad = sorted({ch for ch in expr if not _ALLOWED_TEXT.match(ch)})
        raise ExpressionSyntaxError(f"Unexpected character(s): {' '.join(bad)}")
    match = _FORBIDDEN_TEXT.search(expr)
    if match:
        raise ExpressionSyntaxError(f"Unexpected token at position {match.start()}: {match.group(0)!r}")


def compile_expression(expr: str, mode: str = REAL, context: EvaluationContext = DEFAULT_CONTEXT) -> CompiledExpression:
    """Normalized, RHS-extracted text -> CompiledExpression (or an ExpressionError)."""
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r} (expected one of {', '.join(MODES)})")

    trimmed = (expr or "").strip()
    if not trimmed:
        raise EmptyExpressionError()

    _check_dialect(trimmed)

    try:
        # a % 0 must stay a per-point NaN, so operators are not reduced either
        with sp.evaluate(False):
            parsed = parse_expr(
                trimmed,
                local_dict=context.local_dict(),
                global_dict=context.global_dict(),
                transformations=_TRANSFORMATIONS,
                evaluate=False,
            )
    except Exception as e:
        raise ExpressionSyntaxError(f"{type(e).__name__}: {e}") from e

    if not isinstance(parsed, sp.Basic):
        raise ExpressionSyntaxError(f"Expected a single expression, got {type(parsed).__name__}")

    variables = collect_free_variables(parsed)
    permitted = PERMITTED_VARIABLES[mode]
    invalid = variables - permitted
    if invalid:
        raise InvalidVariablesError(invalid, permitted)

    args = (X_SYMBOL, Y_SYMBOL) if mode == REAL else (Z_SYMBOL, X_SYMBOL, Y_SYMBOL)
    try:
        function = sp.lambdify(args, parsed, modules=context.modules())
    except Exception as e:
        raise ExpressionSyntaxError(f"Could not compile {trimmed!r}: {e}") from e

    logger.debug("Compiled %r (%s) -> variables %s", trimmed, mode, sorted(variables))
    return CompiledExpression(
        expression=trimmed,
        mode=mode,
        sympy_expr=parsed,
        function=function,
        variables=tuple(sorted(variables)),
    )


def parse_expression(raw: str, mode: str = REAL, latex: bool = False,
                     context: EvaluationContext = DEFAULT_CONTEXT) -> CompiledExpression:
    """Full pipeline: [LaTeX ->] extract RHS -> implicit multiplication -> compile."""
    text = latex_to_plain(raw) if latex else (raw or "")
    if not text.strip():
        raise EmptyExpressionError()
    rhs = extract_right_hand_side(text)
    normalized = normalize_implicit_multiplication(rhs)
    return compile_expression(normalized, mode, context)


def is_valid_expression(raw: str, mode: str = REAL, latex: bool = False) -> bool:
    try:
        parse_expression(raw, mode, latex)
        return True
    except ValueError:
        return False

# ---------------------------------------------------------------------------
# [3] Point evaluation (never raises for mathematical failures)
# ---------------------------------------------------------------------------

def _unwrap(value):
    if isinstance(value, np.ndarray):
        if value.shape != ():
            return None
        value = value[()]
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, sp.Basic):
        # a value lambdify could not lower to numpy
        if not value.is_number:
            return None
        value = float(value) if value.is_real else complex(value)
    return value


def classify_real(value) -> float:
    """Finite real -> float; complex, non-finite or non-numeric -> NaN."""
    try:
        value = _unwrap(value)
        if isinstance(value, numbers.Real):
            v = float(value)
            return v if math.isfinite(v) else NAN
    except (TypeError, ValueError, OverflowError):
        pass
    return NAN


def classify_complex(value) -> Tuple[float, float]:
    """Real -> (v, 0); complex -> (re, im); anything non-finite or non-numeric -> (NaN, NaN)."""
    try:
        value = _unwrap(value)
        if isinstance(value, numbers.Real):
            v = float(value)
            if math.isfinite(v):
                return v, 0.0
        elif isinstance(value, numbers.Complex):
            re_part, im_part = float(value.real), float(value.imag)
            if math.isfinite(re_part) and math.isfinite(im_part):
                return re_part, im_part
    except (TypeError, ValueError, OverflowError):
        pass
    return NAN, NAN


def real_outcome(compiled: CompiledExpression, x: float, y: float) -> float:
    # caller owns the floating-point error state
    try:
        value = compiled.function(np.float64(x), np.float64(y))
    except Exception:
        return NAN
    return classify_real(value)


def complex_outcome(compiled: CompiledExpression, x: float, y: float) -> Tuple[float, float]:
    # x and y are complex too, so sqrt(x) at negative x is a value, not NaN
    x128, y128 = np.complex128(x), np.complex128(y)
    try:
        value = compiled.function(x128 + 1j * y128, x128, y128)
    except Exception:
        return NAN, NAN
    return classify_complex(value)


def evaluate_real(compiled: CompiledExpression, x: float, y: float) -> float:
    """f(x, y) in real mode; NaN for every failure mode."""
    if compiled.mode != REAL:
        raise ValueError("evaluate_real needs an expression compiled in real mode")
    with np.errstate(all="ignore"):
        return real_outcome(compiled, x, y)


def evaluate_complex(compiled: CompiledExpression, x: float, y: float) -> Tuple[float, float]:
    """f(z) at z = x + iy in complex mode; (NaN, NaN) for every failure mode."""
    if compiled.mode != COMPLEX:
        raise ValueError("evaluate_complex needs an expression compiled in complex mode")
    with np.errstate(all="ignore"):
        return complex_outcome(compiled, x, y)

# ---------------------------------------------------------------------------
# [4] Catalog for autocomplete / documentation
# ---------------------------------------------------------------------------

AVAILABLE_FUNCTIONS = {
    "trigonometric": ["sin", "cos", "tan", "asin", "acos", "atan", "atan2", "sinh", "cosh", "tanh"],
    "exponential": ["exp", "log", "log10", "log2", "ln", "sqrt", "cbrt"],
    "arithmetic": ["abs", "ceil", "floor", "round", "sign", "pow"],
    "other": ["min", "max", "mod"],
    "constants": ["pi", "e"],
}

AVAILABLE_COMPLEX_FUNCTIONS = {
    "trigonometric": ["sin", "cos", "tan", "asin", "acos", "atan", "sinh", "cosh", "tanh"],
    "exponential": ["exp", "log", "ln", "sqrt", "pow"],
    "complex": ["conj", "arg", "real", "imag", "re", "im", "abs"],
    "arithmetic": ["abs", "sign"],
    "constants": ["pi", "e", "i"],
}
