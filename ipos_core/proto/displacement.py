"""
Displacement Event Schema.

One pedestrian dead-reckoning step, projected into the anchor frame.
"""

import math
from dataclasses import dataclass

from ipos_core.errors import InvalidMeasurementError


@dataclass(frozen=True)
class DisplacementEvent:
    """
    Planar displacement for one detected step.

    Attributes:
        dx: Displacement along x in meters
        dy: Displacement along y in meters
        t_nanos: Step timestamp (monotonic nanoseconds)
    """

    dx: float
    dy: float
    t_nanos: int

    def __post_init__(self):
        if not (math.isfinite(self.dx) and math.isfinite(self.dy)):
            raise InvalidMeasurementError(
                f"Displacement must be finite: ({self.dx}, {self.dy})"
            )

    @property
    def length_m(self) -> float:
        """Step length in meters."""
        return math.hypot(self.dx, self.dy)
