"""
Position Fix Schema.

A planar point estimate with a single scalar uncertainty radius. Produced
raw by the multilateration solver and fused by the Kalman filter; the
fused form is what the orchestrator publishes to observers.
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

from ipos_core.errors import InvalidMeasurementError


class FixSource(IntEnum):
    """Where a position fix came from."""

    NO_FIX = 0          # Placeholder, no usable position
    RANGING = 1         # Raw multilateration result
    FUSED = 2           # Kalman filter output


@dataclass(frozen=True)
class PositionFix:
    """
    Planar position estimate in the local floor frame.

    Attributes:
        x: X coordinate in meters
        y: Y coordinate in meters
        sigma: Uncertainty radius in meters (must be > 0 to be usable)
        source: Origin of the fix (NO_FIX, RANGING, FUSED)
        t_nanos: Timestamp of the event that produced the fix

        # Optional kinematic info (FUSED)
        vel: Velocity estimate (vx, vy) in m/s

        # Optional solver diagnostics (RANGING)
        anchor_ids: Anchors used in the solve
        residual_m: RMS range residual of the solve (m)

    Notes:
        - Construction does not validate; call validate() before using a
          fix as a measurement, so rejected input can still be represented
        - For NO_FIX, x/y are the filter's default prior (origin)
    """

    x: float
    y: float
    sigma: float
    source: FixSource = FixSource.RANGING
    t_nanos: Optional[int] = None

    vel: Optional[Tuple[float, float]] = None
    anchor_ids: List[str] = field(default_factory=list)
    residual_m: Optional[float] = None

    def validate(self):
        """
        Check the fix is usable as a measurement.

        Raises:
            InvalidMeasurementError: If x/y/sigma are non-finite or sigma <= 0
        """
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise InvalidMeasurementError(f"Fix position must be finite: ({self.x}, {self.y})")

        if not math.isfinite(self.sigma) or self.sigma <= 0:
            raise InvalidMeasurementError(f"Fix sigma must be positive: {self.sigma}")

    @property
    def has_valid_fix(self) -> bool:
        """Check if this is a real position (not the NO_FIX placeholder)."""
        return self.source != FixSource.NO_FIX

    @property
    def position(self) -> Tuple[float, float]:
        """Get (x, y) in meters."""
        return (self.x, self.y)

    def distance_to(self, x: float, y: float) -> float:
        """Planar distance from this fix to (x, y) in meters."""
        return math.hypot(self.x - x, self.y - y)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'x': self.x,
            'y': self.y,
            'sigma': self.sigma,
            'source': self.source.name,
            't_nanos': self.t_nanos,
            'vel': self.vel,
            'anchor_ids': list(self.anchor_ids),
            'residual_m': self.residual_m,
        }


def create_no_fix(sigma: float, t_nanos: Optional[int] = None) -> PositionFix:
    """
    Create the NO_FIX placeholder published after a reset.

    Args:
        sigma: Placeholder uncertainty (the filter's prior std dev)
        t_nanos: Timestamp of the reset, if known

    Returns:
        PositionFix at the origin with FixSource.NO_FIX
    """
    return PositionFix(
        x=0.0,
        y=0.0,
        sigma=sigma,
        source=FixSource.NO_FIX,
        t_nanos=t_nanos,
    )
