"""
Range Reading Message Schema.

Defines one RTT ranging result from the device to an anchor, and the batch
of results produced by a single ranging cycle.
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from ipos_core.errors import InvalidMeasurementError


class RangingStatus(IntEnum):
    """Outcome of a single ranging attempt, as reported by the radio stack."""

    SUCCESS = 0
    FAIL = 1
    RESPONDER_NOT_CAPABLE = 2


@dataclass
class RangeReading:
    """
    RTT range measurement from the device to one anchor.

    Attributes:
        anchor_id: ID of the anchor (e.g., a BSSID "aa:bb:cc:dd:ee:ff")
        distance_m: Measured distance in meters
        std_dev_m: Measurement standard deviation in meters
        rssi: Received signal strength (dBm), if reported
        status: Ranging outcome; only SUCCESS readings are usable

    Notes:
        - Distance and standard deviation are never negative
        - Anchor IDs are matched against the registry after normalization
    """

    anchor_id: str
    distance_m: float
    std_dev_m: float = 0.0
    rssi: Optional[int] = None
    status: RangingStatus = RangingStatus.SUCCESS

    def __post_init__(self):
        """Validate reading after initialization."""
        if not math.isfinite(self.distance_m):
            raise InvalidMeasurementError(f"Distance must be finite: {self.distance_m}")

        if self.distance_m < 0:
            raise InvalidMeasurementError(f"Distance cannot be negative: {self.distance_m}")

        if not math.isfinite(self.std_dev_m) or self.std_dev_m < 0:
            raise InvalidMeasurementError(
                f"Std dev must be finite and non-negative: {self.std_dev_m}"
            )

    @property
    def is_successful(self) -> bool:
        """Check if the radio reported a successful measurement."""
        return self.status == RangingStatus.SUCCESS


@dataclass
class RangingBatch:
    """
    All readings delivered by one ranging cycle.

    Attributes:
        t_nanos: Cycle timestamp (monotonic nanoseconds)
        readings: List of RangeReading, successful or not
    """

    t_nanos: int
    readings: List[RangeReading] = field(default_factory=list)

    def get_successful_readings(self) -> List[RangeReading]:
        """Get readings the radio marked as successful."""
        return [r for r in self.readings if r.is_successful]

    @property
    def num_successful(self) -> int:
        """Number of successful readings in batch."""
        return len(self.get_successful_readings())

    @property
    def anchor_ids(self) -> List[str]:
        """Get list of anchor IDs in this batch."""
        return [r.anchor_id for r in self.readings]

    @property
    def mean_std_dev_m(self) -> Optional[float]:
        """Mean std dev of successful readings, or None if there are none."""
        ok = self.get_successful_readings()
        if not ok:
            return None
        return sum(r.std_dev_m for r in ok) / len(ok)
