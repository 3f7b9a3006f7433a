"""
Multilateration Solver (linearized 2D least squares).

Turns >= 3 (anchor, range) pairs into a single planar position fix. The
squared-range equation of the first anchor is subtracted from every other
anchor's equation, which cancels the quadratic terms and leaves a linear
system in (x, y). The 2x2 normal equations are accumulated across all
pairs and solved with Cramer's rule.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ipos_core.errors import (
    DegenerateGeometryError,
    InsufficientAnchorsError,
    InvalidMeasurementError,
)
from ipos_core.localization.anchor_registry import AnchorRegistry
from ipos_core.metrics import get_metrics
from ipos_core.proto.position_fix import FixSource, PositionFix
from ipos_core.proto.range_reading import RangeReading

logger = logging.getLogger(__name__)

MIN_ANCHORS = 3

# Normal matrix is singular when |det| <= max(REL * a00 * a11, ABS)
DEGENERATE_REL_EPS = 1e-9
DEGENERATE_ABS_EPS = 1e-12


def solve_2d_least_squares(
    triples: Sequence[Tuple[float, float, float]],
    anchor_ids: Optional[Sequence[str]] = None,
) -> Tuple[float, float]:
    """
    Solve a planar position from anchor/range triples.

    Args:
        triples: (anchor_x, anchor_y, distance) per anchor, meters
        anchor_ids: Optional IDs matching `triples`, for error diagnostics

    Returns:
        (x, y) minimizing the squared residuals of the linearized equations

    Raises:
        InsufficientAnchorsError: Fewer than 3 triples
        InvalidMeasurementError: Any non-finite coordinate or distance
        DegenerateGeometryError: Collinear / coincident anchors
    """
    ids = list(anchor_ids) if anchor_ids is not None else []
    if len(triples) < MIN_ANCHORS:
        raise InsufficientAnchorsError(len(triples), MIN_ANCHORS, ids)

    for xi, yi, di in triples:
        if not (math.isfinite(xi) and math.isfinite(yi) and math.isfinite(di)):
            raise InvalidMeasurementError(f"Non-finite multilateration input: ({xi}, {yi}, {di})")

    x0, y0, d0 = triples[0]

    # Normal equations A^T A p = A^T b, accumulated row by row
    a00 = a01 = a11 = 0.0
    b0 = b1 = 0.0
    for xi, yi, di in triples[1:]:
        ai0 = 2.0 * (xi - x0)
        ai1 = 2.0 * (yi - y0)
        bi = (d0 * d0 - di * di) + (xi * xi - x0 * x0) + (yi * yi - y0 * y0)
        a00 += ai0 * ai0
        a01 += ai0 * ai1
        a11 += ai1 * ai1
        b0 += ai0 * bi
        b1 += ai1 * bi

    det = a00 * a11 - a01 * a01
    if abs(det) <= max(DEGENERATE_REL_EPS * a00 * a11, DEGENERATE_ABS_EPS):
        raise DegenerateGeometryError(ids, det)

    x = (b0 * a11 - a01 * b1) / det
    y = (a00 * b1 - a01 * b0) / det
    return x, y


def range_residual_rms(
    x: float,
    y: float,
    triples: Sequence[Tuple[float, float, float]],
) -> float:
    """RMS of (computed range - measured range) at (x, y)."""
    residuals = [math.hypot(x - xi, y - yi) - di for xi, yi, di in triples]
    return float(np.sqrt(np.mean(np.square(residuals))))


@dataclass
class MultilaterationConfig:
    """
    Configuration for the multilateration solver.

    Attributes:
        min_anchors: Minimum usable anchor/range pairs
        default_std_dev_m: Range std dev assumed when readings report none (m)
        sigma_scale: Inflation applied to the mean range std dev
        min_sigma_m: Lower clamp on the fix sigma (m)
        max_sigma_m: Upper clamp on the fix sigma (m)
    """

    min_anchors: int = MIN_ANCHORS
    default_std_dev_m: float = 1.3
    sigma_scale: float = 1.5
    min_sigma_m: float = 1.0
    max_sigma_m: float = 6.0

    def __post_init__(self):
        """Validate configuration."""
        assert self.min_anchors >= MIN_ANCHORS, "2D solve needs at least 3 anchors"
        assert self.default_std_dev_m > 0, "default std dev must be positive"
        assert self.sigma_scale > 0, "sigma scale must be positive"
        assert 0 < self.min_sigma_m <= self.max_sigma_m, "need 0 < min_sigma <= max_sigma"


class MultilaterationSolver:
    """
    Solve device position from one ranging cycle.

    Usage:
        solver = MultilaterationSolver(config)

        try:
            fix = solver.solve(batch.get_successful_readings(), registry)
        except (InsufficientAnchorsError, DegenerateGeometryError):
            # keep previous estimate, try next cycle
            ...

    Notes:
        - Stateless apart from configuration
        - Only successful readings whose anchor is registered are used
        - Reading order decides the reference anchor
    """

    def __init__(self, config: Optional[MultilaterationConfig] = None):
        """
        Initialize solver.

        Args:
            config: Solver configuration (uses defaults if None)
        """
        self.config = config or MultilaterationConfig()
        self.metrics = get_metrics()

    def solve(
        self,
        readings: List[RangeReading],
        registry: AnchorRegistry,
        t_nanos: Optional[int] = None,
    ) -> PositionFix:
        """
        Solve a raw position fix from readings and registered anchors.

        Args:
            readings: Range readings of one ranging cycle
            registry: Anchor coordinates
            t_nanos: Timestamp stamped on the fix

        Returns:
            PositionFix with FixSource.RANGING, anchors used, residual, sigma

        Raises:
            InsufficientAnchorsError: Fewer than min_anchors usable pairs
            DegenerateGeometryError: Near-singular anchor geometry
        """
        self.metrics.increment('solver_attempts')

        usable = [r for r in readings if r.is_successful]
        pairs = registry.resolve(usable)

        unknown = len(usable) - len(pairs)
        if unknown:
            self.metrics.increment_drop('unknown_anchor', unknown)

        anchor_ids = [anchor.anchor_id for anchor, _ in pairs]
        if len(pairs) < self.config.min_anchors:
            self.metrics.increment_drop('insufficient_anchors')
            raise InsufficientAnchorsError(len(pairs), self.config.min_anchors, anchor_ids)

        triples = [(anchor.x, anchor.y, reading.distance_m) for anchor, reading in pairs]

        try:
            x, y = solve_2d_least_squares(triples, anchor_ids)
        except DegenerateGeometryError:
            self.metrics.increment_drop('degenerate_geometry')
            raise

        residual = range_residual_rms(x, y, triples)
        sigma = self.estimate_sigma([reading for _, reading in pairs])

        self.metrics.increment('solver_success')
        self.metrics.record_histogram('solver_residual_m', residual)
        logger.debug(
            f"Solved ({x:.2f}, {y:.2f}) sigma={sigma:.2f} from {len(pairs)} anchors, "
            f"residual={residual:.3f}m"
        )

        return PositionFix(
            x=x,
            y=y,
            sigma=sigma,
            source=FixSource.RANGING,
            t_nanos=t_nanos,
            anchor_ids=anchor_ids,
            residual_m=residual,
        )

    def estimate_sigma(self, readings: Sequence[RangeReading]) -> float:
        """
        Scalar fix uncertainty from the readings used in a solve.

        Mean reported std dev (or the default when there are no readings),
        inflated by sigma_scale and clamped to [min_sigma_m, max_sigma_m].
        """
        if readings:
            mean_std = sum(r.std_dev_m for r in readings) / len(readings)
        else:
            mean_std = self.config.default_std_dev_m

        sigma = mean_std * self.config.sigma_scale
        return min(max(sigma, self.config.min_sigma_m), self.config.max_sigma_m)
