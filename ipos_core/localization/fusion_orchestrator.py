"""
Fusion Orchestrator.

Owns the constant-velocity filter and sequences displacement (predict) and
RTT fix (correct) events into it from any number of producer threads.
Every state change publishes an immutable fused snapshot to observers.

Lifecycle:
    UNINITIALIZED --predict--> UNINITIALIZED  (dropped, nothing published)
    UNINITIALIZED --correct--> INITIALIZED    (seeded at fix, published)
    INITIALIZED   --predict--> INITIALIZED    (published)
    INITIALIZED   --correct--> INITIALIZED    (published)
    any           --reset----> UNINITIALIZED  (NO_FIX placeholder published)
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ipos_core.errors import InvalidMeasurementError, SingularMatrixError
from ipos_core.localization.kinematic_filter import (
    ConstantVelocityFilter,
    KinematicFilterConfig,
)
from ipos_core.metrics import get_metrics
from ipos_core.proto.displacement import DisplacementEvent
from ipos_core.proto.position_fix import PositionFix, create_no_fix

logger = logging.getLogger(__name__)

FixObserver = Callable[[PositionFix], None]


class FusionState(Enum):
    """Orchestrator lifecycle state."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


@dataclass
class FusionConfig:
    """
    Configuration for the fusion orchestrator.

    Attributes:
        filter_config: Constant-velocity filter configuration
    """

    filter_config: Optional[KinematicFilterConfig] = None


class FusionOrchestrator:
    """
    Serialized owner of the fused position estimate.

    Usage:
        fusion = FusionOrchestrator()
        fusion.subscribe(lambda fix: print(fix.x, fix.y, fix.sigma))

        pdr.subscribe(fusion.on_displacement)     # step thread
        fusion.correct(rtt_fix, t_nanos)          # ranging thread

        latest = fusion.latest                    # any thread, never blocks

    Notes:
        - All mutations hold one lock; predict/correct/reset never interleave
        - Observers run in publication order while the lock is held, so they
          must not block; an observer that raises is logged and skipped
        - Timestamps are bookkeeping only; the filter step is fixed by config
    """

    def __init__(self, config: Optional[FusionConfig] = None):
        """
        Initialize orchestrator in the UNINITIALIZED state.

        Args:
            config: Orchestrator configuration (uses defaults if None)
        """
        self.config = config or FusionConfig()
        self.metrics = get_metrics()

        self._lock = threading.RLock()
        self._filter = ConstantVelocityFilter(self.config.filter_config or KinematicFilterConfig())
        self._state = FusionState.UNINITIALIZED
        self._last_update_nanos: Optional[int] = None
        self._latest: Optional[PositionFix] = None
        self._observers: List[FixObserver] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: FixObserver) -> Callable[[], None]:
        """
        Register an observer for published snapshots.

        Returns:
            Function that removes the observer again
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _publish(self, fix: PositionFix):
        self._latest = fix
        self.metrics.increment('fixes_published')
        self.metrics.record_histogram('published_sigma_m', fix.sigma)

        for observer in list(self._observers):
            try:
                observer(fix)
            except Exception:
                self.metrics.increment_drop('observer_error')
                logger.exception("Fix observer raised; continuing with remaining observers")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def predict(self, dx: float, dy: float, t_nanos: Optional[int] = None) -> Optional[PositionFix]:
        """
        Apply a PDR displacement.

        Args:
            dx: Displacement along x (m)
            dy: Displacement along y (m)
            t_nanos: Step timestamp (bookkeeping)

        Returns:
            Published snapshot, or None if dropped before initialization

        Raises:
            InvalidMeasurementError: Non-finite displacement (state unchanged)
        """
        with self._lock:
            self.metrics.increment('displacement_events')

            if self._state is FusionState.UNINITIALIZED:
                self.metrics.increment_drop('predict_before_init')
                return None

            try:
                self._filter.predict(dx, dy)
            except InvalidMeasurementError:
                self.metrics.increment_drop('invalid_measurement')
                raise

            self._last_update_nanos = t_nanos
            fix = self._filter.snapshot(t_nanos)
            self._publish(fix)
            return fix

    def on_displacement(self, event: DisplacementEvent) -> Optional[PositionFix]:
        """Adapter for StepDisplacementSource listeners."""
        return self.predict(event.dx, event.dy, event.t_nanos)

    def correct(self, fix: PositionFix, t_nanos: Optional[int] = None) -> PositionFix:
        """
        Apply an RTT position fix; the first valid fix initializes the filter.

        Args:
            fix: Raw position fix (sigma must be > 0)
            t_nanos: Fix timestamp (defaults to fix.t_nanos)

        Returns:
            Published snapshot

        Raises:
            InvalidMeasurementError: sigma <= 0 or non-finite fix (state unchanged)
            SingularMatrixError: Innovation covariance not invertible (state unchanged)
        """
        if t_nanos is None:
            t_nanos = fix.t_nanos

        with self._lock:
            try:
                fix.validate()
            except InvalidMeasurementError:
                self.metrics.increment_drop('invalid_measurement')
                logger.warning(f"Rejected fix with sigma={fix.sigma} at ({fix.x}, {fix.y})")
                raise

            if self._state is FusionState.UNINITIALIZED:
                self._filter.initialize_at(fix.x, fix.y)
                self._state = FusionState.INITIALIZED
                logger.info(f"Fusion initialized at ({fix.x:.2f}, {fix.y:.2f})")
            else:
                try:
                    self._filter.correct(fix)
                except SingularMatrixError:
                    logger.warning("Skipped correction: innovation covariance is singular")
                    raise

            self._last_update_nanos = t_nanos
            fused = self._filter.snapshot(t_nanos)
            self._publish(fused)
            return fused

    def reset(self, t_nanos: Optional[int] = None) -> PositionFix:
        """
        Return to UNINITIALIZED with the default prior (e.g., on a floor change).

        Returns:
            The published NO_FIX placeholder
        """
        with self._lock:
            self._filter.reset()
            self._state = FusionState.UNINITIALIZED
            self._last_update_nanos = None
            self.metrics.increment('filter_resets')
            logger.info("Fusion reset to uninitialized prior")

            placeholder = create_no_fix(self._filter.sigma, t_nanos)
            self._publish(placeholder)
            return placeholder

    def set_noise(self, position_q: float = 0.05, velocity_q: float = 0.5):
        """Tune process noise (bigger is smoother but laggier). Reset restores defaults."""
        with self._lock:
            self._filter.set_process_noise(position_q, velocity_q)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def latest(self) -> Optional[PositionFix]:
        """Most recently published snapshot (None before the first publish)."""
        return self._latest

    @property
    def state(self) -> FusionState:
        """Current lifecycle state."""
        return self._state

    def is_initialized(self) -> bool:
        """Check if a fix has seeded the filter."""
        return self._state is FusionState.INITIALIZED

    @property
    def last_update_nanos(self) -> Optional[int]:
        """Timestamp of the last applied event."""
        return self._last_update_nanos

    @property
    def filter(self) -> ConstantVelocityFilter:
        """The owned filter. Read-only use; mutate only through this orchestrator."""
        return self._filter

    def get_statistics(self) -> dict:
        """Get orchestrator statistics."""
        return {
            'state': self._state.value,
            'displacement_events': self.metrics.get_counter('displacement_events'),
            'predicts': self.metrics.get_counter('filter_predicts'),
            'corrections': self.metrics.get_counter('filter_corrections'),
            'resets': self.metrics.get_counter('filter_resets'),
            'published': self.metrics.get_counter('fixes_published'),
            'dropped_before_init': self.metrics.get_drop_count('predict_before_init'),
            'rejected_fixes': self.metrics.get_drop_count('invalid_measurement'),
        }


def create_default_orchestrator() -> FusionOrchestrator:
    """
    Create orchestrator with default configuration.

    Returns:
        FusionOrchestrator with a 20 Hz nominal step and default noise
    """
    config = FusionConfig(
        filter_config=KinematicFilterConfig(dt_s=0.05, q_pos=0.05, q_vel=0.5, initial_variance=100.0),
    )
    return FusionOrchestrator(config)
