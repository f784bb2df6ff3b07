import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

from . import settings
from .errors import ExpressionError
from .grid_engine import AnyGridResult, ClipRange, Domain, sample_grid
from .parse_engine import REAL, CompiledExpression, parse_expression
from .stats_engine import GridStatistics, auto_limits, grid_statistics
from .utils import setup_logger

logger = setup_logger(__name__)


@dataclass
class PlotUpdate:
    """One finished sweep. `applied` is False when a newer request superseded it."""

    ticket: int
    grid: AnyGridResult
    limits: Tuple[float, float]
    statistics: GridStatistics
    applied: bool


class PlotSession:
    """
    Page-level plotting state: the current expression and sampling parameters,
    plus the last grid that was applied.

    Every request_grid() call is stamped with a strictly increasing ticket.
    A finished sweep is applied only if its ticket is still the latest one
    issued, so a slow old sweep can never overwrite a newer result.
    """

    def __init__(self, mode: str = REAL, domain: Optional[Domain] = None,
                 resolution: Optional[int] = None, clip: Optional[ClipRange] = None,
                 percentile: Optional[float] = None, max_workers: Optional[int] = None):
        self.mode = mode
        self.domain = domain or Domain.from_dict(None)
        self.resolution = resolution or settings.DEFAULT_RESOLUTION
        self.clip = clip
        self.percentile = settings.DEFAULT_PERCENTILE if percentile is None else percentile

        self.compiled: Optional[CompiledExpression] = None
        self.error: Optional[ExpressionError] = None
        self.grid: Optional[AnyGridResult] = None
        self.limits: Optional[Tuple[float, float]] = None
        self.statistics: Optional[GridStatistics] = None

        self._lock = threading.Lock()
        self._latest_ticket = 0
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.MAX_WORKERS,
            thread_name_prefix="surface-sweep",
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    # -- expression -------------------------------------------------------

    def set_expression(self, raw: str, latex: bool = False) -> CompiledExpression:
        """Compiles raw input for the session's mode. On failure the previous expression is kept."""
        try:
            compiled = parse_expression(raw, self.mode, latex=latex)
        except ExpressionError as e:
            self.error = e
            logger.info("Rejected expression %r: %s", raw, e.detail)
            raise
        self.compiled = compiled
        self.error = None
        return compiled

    # -- requests ---------------------------------------------------------

    @property
    def latest_ticket(self) -> int:
        with self._lock:
            return self._latest_ticket

    def _issue_ticket(self) -> int:
        with self._lock:
            self._latest_ticket += 1
            return self._latest_ticket

    def request_grid(self) -> "Future[PlotUpdate]":
        """Schedules a sweep with the current parameters on the worker pool."""
        if self.compiled is None:
            raise RuntimeError("No expression has been set for this session")
        ticket = self._issue_ticket()
        return self._executor.submit(
            self._sweep, ticket, self.compiled, self.domain, self.resolution, self.clip, self.percentile,
        )

    def refresh(self) -> PlotUpdate:
        return self.request_grid().result()

    def _sweep(self, ticket: int, compiled: CompiledExpression, domain: Domain,
               resolution: int, clip: Optional[ClipRange], percentile: float) -> PlotUpdate:
        grid = sample_grid(compiled, domain, resolution, clip)
        limits = auto_limits(grid, percentile)
        statistics = grid_statistics(grid)
        return self._apply(PlotUpdate(ticket, grid, limits, statistics, applied=False))

    def _apply(self, update: PlotUpdate) -> PlotUpdate:
        with self._lock:
            if update.ticket != self._latest_ticket:
                logger.debug("Discarding stale sweep #%d (latest is #%d)", update.ticket, self._latest_ticket)
                return update
            self.grid = update.grid
            self.limits = update.limits
            self.statistics = update.statistics
            update.applied = True
        return update
