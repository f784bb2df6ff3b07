import re
from typing import Callable, List, Tuple, Union

from .preprocess import FUNCTION_NAMES

# ---------------------------------------------------------------------------
# [1] Math-mode delimiters
# ---------------------------------------------------------------------------

def strip_latex_delimiters(text: str) -> str:
    r"""Removes the $...$, $$...$$, \[...\] and \(...\) math-mode delimiters."""
    text = text.strip()
    # $$...$$ or \[...\]
    if len(text) >= 4 and ((text.startswith('$$') and text.endswith('$$')) or (text.startswith(r'\[') and text.endswith(r'\]'))):
        return text[2:-2].strip()
    # $...$ or \(...\)
    if len(text) >= 2 and text.startswith('$') and text.endswith('$'):
        return text[1:-1].strip()
    if len(text) >= 4 and text.startswith(r'\(') and text.endswith(r'\)'):
        return text[2:-2].strip()
    return text

# ---------------------------------------------------------------------------
# [2] Rewrite tables (order matters: later rules rely on earlier ones)
# ---------------------------------------------------------------------------

Replacement = Union[str, Callable[[re.Match], str]]

_NOT_LETTER = r'(?![a-zA-Z])'

# \name -> plain dialect name. \ln is the natural log ("log"), \log is base 10.
_FUNCTION_COMMANDS: List[Tuple[str, str]] = [
    ('sin', 'sin'), ('cos', 'cos'), ('tan', 'tan'),
    ('cot', 'cot'), ('sec', 'sec'), ('csc', 'csc'),
    ('arcsin', 'asin'), ('arccos', 'acos'), ('arctan', 'atan'),
    ('arccot', 'acot'), ('arcsec', 'asec'), ('arccsc', 'acsc'),
    ('sinh', 'sinh'), ('cosh', 'cosh'), ('tanh', 'tanh'),
    ('ln', 'log'),
    ('log', 'log10'),
    ('exp', 'exp'),
    ('min', 'min'), ('max', 'max'),
]

_GREEK_LETTERS = (
    'alpha', 'beta', 'gamma', 'delta', 'epsilon', 'zeta', 'eta', 'theta',
    'iota', 'kappa', 'lambda', 'mu', 'nu', 'xi', 'pi', 'rho', 'sigma',
    'tau', 'upsilon', 'phi', 'chi', 'psi', 'omega',
)

_PREFIX_RULES: List[Tuple[str, Replacement]] = (
    [(r'\\operatorname\{([a-zA-Z]+)\}', r'\1'),
     (r'\\mathrm\{([a-zA-Z]+)\}', r'\1'),
     (r'\\text\{([a-zA-Z]+)\}', r'\1')]
    + [(r'\\' + cmd + _NOT_LETTER + r'\s*', name) for cmd, name in _FUNCTION_COMMANDS]
)

# Brace-consuming rules only match innermost groups and are re-applied until
# nothing changes, so nested \frac / \sqrt / ^{...} unwind from the inside out.
_GROUP_RULES: List[Tuple[str, Replacement]] = [
    (r'\\sqrt\[([^\[\]{}]+)\]\{([^{}]*)\}', r'((\2)^(1/(\1)))'),
    (r'\\sqrt\{([^{}]*)\}', r'sqrt(\1)'),
    (r'\\left\|([^|]+)\\right\|', r'abs(\1)'),
    (r'\|([^|]+)\|', r'abs(\1)'),
    (r'\\frac\{([^{}]*)\}\{([^{}]*)\}', r'((\1)/(\2))'),
    (r'\^\\left\\?\{([^{}]*)\\right\\?\}', r'^(\1)'),
    (r'\^\\\{([^{}]*)\\\}', r'^(\1)'),
    (r'\^\{([^{}]*)\}', r'^(\1)'),
]


def _paren_multiplication(match: re.Match) -> str:
    """'x(' -> 'x*(' and '2(' -> '2*(' unless the run ends in a function name ("log10(")."""
    run = match.group(1)
    if any(run.endswith(fn) for fn in FUNCTION_NAMES):
        return run + '('
    return run + '*('


_SUFFIX_RULES: List[Tuple[str, Replacement]] = (
    [(r'\\' + letter + _NOT_LETTER, letter) for letter in _GREEK_LETTERS]
    + [
        (r'\\e' + _NOT_LETTER, 'e'),

        # Operators
        (r'\s*\\cdot\s*', ' * '),
        (r'\s*\\times\s*', ' * '),
        (r'\s*\\div\s*', ' / '),

        # Parentheses variants
        (r'\\left\(', '('),
        (r'\\right\)', ')'),
        (r'\\left\[', '('),
        (r'\\right\]', ')'),
        (r'\\left\\\{', '('),
        (r'\\right\\\}', ')'),

        # Spacing commands
        (r'\\,', ''),
        (r'\\;', ''),
        (r'\\:', ''),
        (r'\\!', ''),
        (r'\\ ', ''),
        (r'\\q?quad' + _NOT_LETTER, ' '),

        # Implicit multiplication
        (r'(\d)([a-zA-Z])', r'\1*\2'),
        (r'\)([a-zA-Z])', r')*\1'),
        (r'\)\(', r')*('),
        (r'([a-zA-Z0-9.]+)\(', _paren_multiplication),
        (r'\)(\d)', r')*\1'),

        # Remaining backslashes
        (r'\\', ''),
    ]
)

_COMPILED_PREFIX = [(re.compile(p), r) for p, r in _PREFIX_RULES]
_COMPILED_GROUPS = [(re.compile(p), r) for p, r in _GROUP_RULES]
_COMPILED_SUFFIX = [(re.compile(p), r) for p, r in _SUFFIX_RULES]

# ---------------------------------------------------------------------------
# [3] Converter
# ---------------------------------------------------------------------------

def latex_to_plain(latex: str) -> str:
    """LaTeX from the math editor -> the plain infix dialect read by the normalizer."""
    if not latex or not latex.strip():
        return ''

    result = strip_latex_delimiters(latex)

    for pattern, replacement in _COMPILED_PREFIX:
        result = pattern.sub(replacement, result)

    previous = None
    while previous != result:
        previous = result
        for pattern, replacement in _COMPILED_GROUPS:
            result = pattern.sub(replacement, result)

    for pattern, replacement in _COMPILED_SUFFIX:
        result = pattern.sub(replacement, result)

    # leftover grouping braces degrade to parentheses
    result = result.replace('{', '(').replace('}', ')')
    return result.strip()


def can_convert_latex(latex: str) -> bool:
    try:
        return len(latex_to_plain(latex)) > 0
    except (TypeError, re.error):
        return False


LATEX_EXAMPLES = {
    'basic': {
        'latex': 'x^2 + y^2',
        'plain': 'x^2 + y^2',
    },
    'fraction': {
        'latex': '\\frac{x}{y}',
        'plain': '((x)/(y))',
    },
    'sqrt': {
        'latex': '\\sqrt{x^2 + y^2}',
        'plain': 'sqrt(x^2 + y^2)',
    },
    'trig': {
        'latex': '\\sin(x) \\cdot \\cos(y)',
        'plain': 'sin(x) * cos(y)',
    },
    'complex': {
        'latex': '\\frac{\\sin(\\sqrt{x^2 + y^2})}{\\sqrt{x^2 + y^2}}',
        'plain': '((sin(sqrt(x^2 + y^2)))/(sqrt(x^2 + y^2)))',
    },
}
