from typing import Optional, Tuple

from .errors import EmptyRightHandSideError

# ---------------------------------------------------------------------------
# [1] Token tables shared by the normalizer and the compiler
# ---------------------------------------------------------------------------

FUNCTION_NAMES: Tuple[str, ...] = (
    'sin', 'cos', 'tan', 'asin', 'acos', 'atan', 'atan2',
    'sinh', 'cosh', 'tanh', 'asinh', 'acosh', 'atanh',
    'sec', 'csc', 'cot', 'asec', 'acsc', 'acot',
    'exp', 'log', 'log10', 'log2', 'ln', 'sqrt', 'cbrt',
    'abs', 'ceil', 'floor', 'round', 'sign', 'pow',
    'min', 'max', 'mod', 'gcd', 'lcm', 'factorial',
    'conj', 'arg', 'real', 'imag', 're', 'im',
)

CONSTANT_NAMES: Tuple[str, ...] = (
    'pi', 'e', 'i', 'PI', 'E', 'Infinity', 'NaN', 'true', 'false',
)

# Longest name first so that e.g. "asinh(" is never read as "a" + "sinh(".
_FUNCTION_SCAN_ORDER = tuple(sorted(FUNCTION_NAMES, key=lambda n: (-len(n), n)))
_CONSTANT_SCAN_ORDER = tuple(sorted(CONSTANT_NAMES, key=lambda n: (-len(n), n)))


def _is_letter(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def _is_digit(ch: str) -> bool:
    return ch.isascii() and ch.isdigit()


def _is_identifier_char(ch: str) -> bool:
    return _is_letter(ch) or _is_digit(ch)


def match_function(expr: str, pos: int) -> Optional[str]:
    """Returns "name(" when a known function call starts at pos."""
    for name in _FUNCTION_SCAN_ORDER:
        if expr.startswith(name + '(', pos):
            return name + '('
    return None


def match_constant(expr: str, pos: int) -> Optional[str]:
    """Returns the constant name starting at pos when it is not glued to another identifier char."""
    for name in _CONSTANT_SCAN_ORDER:
        end = pos + len(name)
        if expr.startswith(name, pos) and (end >= len(expr) or not _is_identifier_char(expr[end])):
            return name
    return None


# ---------------------------------------------------------------------------
# [2] Equation-form extractor ("z = ...", "f(x,y) = ...")
# ---------------------------------------------------------------------------

def extract_right_hand_side(raw: str) -> str:
    """Keeps only the text after the first '=' (or the whole input when there is none)."""
    trimmed = raw.strip()
    equals_index = trimmed.find('=')
    if equals_index == -1:
        return trimmed

    rhs = trimmed[equals_index + 1:].strip()
    if not rhs:
        raise EmptyRightHandSideError()
    return rhs


# ---------------------------------------------------------------------------
# [3] Implicit multiplication ("2x", "xy", "xsin(y)", "sin(x)cos(y)")
# ---------------------------------------------------------------------------

_DIGIT, _LETTER, _OPEN, _CLOSE, _CONSTANT, _OTHER = 'digit', 'letter', 'open', 'close', 'constant', 'other'

# kinds that can end a factor, and the kinds each one multiplies into
_MULTIPLIES_INTO = {
    _DIGIT: {_LETTER, _OPEN},
    _LETTER: {_DIGIT, _LETTER, _OPEN},
    _CLOSE: {_DIGIT, _LETTER, _OPEN},
    _CONSTANT: {_DIGIT, _LETTER, _OPEN},
}


def _char_kind(ch: str) -> str:
    if _is_digit(ch):
        return _DIGIT
    if _is_letter(ch):
        return _LETTER
    if ch == '(':
        return _OPEN
    if ch == ')':
        return _CLOSE
    return _OTHER


def normalize_implicit_multiplication(expr: str) -> str:
    """
    Makes every juxtaposition explicit in one left-to-right pass.

    Function calls ("sin(") and constants ("pi") from the fixed tables are copied
    whole and never split; any other run of letters is a product of one-letter
    variables ("xy" -> "x*y"). Whitespace between two factors counts as
    juxtaposition.
    """
    out = []
    prev_kind = None
    pos = 0
    n = len(expr)

    while pos < n:
        ch = expr[pos]
        if ch.isspace():
            out.append(ch)
            pos += 1
            continue

        token = match_function(expr, pos)
        if token is not None:
            if prev_kind in _MULTIPLIES_INTO:
                out.append('*')
            out.append(token)
            pos += len(token)
            prev_kind = _OPEN
            continue

        token = match_constant(expr, pos)
        if token is not None:
            if prev_kind in _MULTIPLIES_INTO:
                out.append('*')
            out.append(token)
            pos += len(token)
            prev_kind = _CONSTANT
            continue

        kind = _char_kind(ch)
        if kind in _MULTIPLIES_INTO.get(prev_kind, ()):
            out.append('*')
        out.append(ch)
        prev_kind = kind
        pos += 1

    return ''.join(out)


def prepare_expression(raw: str) -> str:
    """Extractor followed by normalizer: raw user text -> normalized expression."""
    return normalize_implicit_multiplication(extract_right_hand_side(raw))
