from .errors import (
    EmptyExpressionError,
    EmptyRightHandSideError,
    ExpressionError,
    ExpressionSyntaxError,
    InvalidVariablesError,
)
from .grid_engine import ClipRange, ComplexGridResult, Domain, GridResult, linspace, sample_grid
from .latex_engine import can_convert_latex, latex_to_plain
from .parse_engine import (
    COMPLEX,
    REAL,
    CompiledExpression,
    compile_expression,
    evaluate_complex,
    evaluate_real,
    is_valid_expression,
    parse_expression,
)
from .preprocess import extract_right_hand_side, normalize_implicit_multiplication
from .session import PlotSession
from .stats_engine import GridStatistics, auto_limits, grid_statistics

__version__ = "0.1.0"
