"""
Step-and-heading PDR displacement source.

Each detected step moves the device by the step length along the current
heading:

    dx = L * cos(heading),  dy = L * sin(heading)

Heading is supplied by the orientation pipeline (azimuth in radians, in the
same planar frame as the anchors). Step detection itself is external; call
on_step() once per detected step.
"""

import math
import threading
from typing import Callable, List

from ipos_core.proto.displacement import DisplacementEvent

DEFAULT_STEP_LENGTH_M = 0.7

DisplacementListener = Callable[[DisplacementEvent], None]


def wrap_heading(heading_rad: float) -> float:
    """Wrap heading angle to [-pi, pi]."""
    return math.atan2(math.sin(heading_rad), math.cos(heading_rad))


class StepDisplacementSource:
    """
    Projects detected steps onto the current heading.

    Usage:
        pdr = StepDisplacementSource(step_length_m=0.7)
        pdr.subscribe(fusion.on_displacement)

        pdr.set_heading(azimuth_rad)     # orientation updates
        pdr.on_step(t_nanos)             # step detector pulses
    """

    def __init__(self, step_length_m: float = DEFAULT_STEP_LENGTH_M):
        self._lock = threading.Lock()
        self._heading_rad = 0.0
        self._step_length_m = DEFAULT_STEP_LENGTH_M
        self._listeners: List[DisplacementListener] = []
        self.set_step_length(step_length_m)

    def subscribe(self, listener: DisplacementListener):
        """Register a listener for displacement events."""
        with self._lock:
            self._listeners.append(listener)

    def set_heading(self, heading_rad: float):
        if not math.isfinite(heading_rad):
            raise ValueError(f"Heading must be finite: {heading_rad}")
        with self._lock:
            self._heading_rad = wrap_heading(heading_rad)

    def set_step_length(self, step_length_m: float):
        if not math.isfinite(step_length_m) or step_length_m < 0:
            raise ValueError(f"Step length must be finite and non-negative: {step_length_m}")
        with self._lock:
            self._step_length_m = step_length_m

    @property
    def heading_rad(self) -> float:
        return self._heading_rad

    @property
    def step_length_m(self) -> float:
        return self._step_length_m

    def on_step(self, t_nanos: int) -> DisplacementEvent:
        """
        Emit the displacement for one detected step.

        Args:
            t_nanos: Step timestamp

        Returns:
            The DisplacementEvent delivered to listeners
        """
        with self._lock:
            heading = self._heading_rad
            length = self._step_length_m
            listeners = list(self._listeners)

        event = DisplacementEvent(
            dx=length * math.cos(heading),
            dy=length * math.sin(heading),
            t_nanos=t_nanos,
        )

        for listener in listeners:
            listener(event)

        return event
