"""
Ranging Pipeline.

Turns one RTT ranging cycle into a raw multilateration fix and feeds it to
the fusion orchestrator.

Usage:
    pipeline = RangingPipeline(registry, fusion)

    fused = pipeline.process(batch)
    if fused is None:
        print(f"Kept previous estimate: {pipeline.last_error}")
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ipos_core.errors import (
    DegenerateGeometryError,
    InsufficientAnchorsError,
    LocalizationError,
)
from ipos_core.localization.anchor_registry import AnchorRegistry
from ipos_core.localization.fusion_orchestrator import FusionOrchestrator
from ipos_core.localization.multilateration import (
    MultilaterationConfig,
    MultilaterationSolver,
)
from ipos_core.metrics import get_metrics
from ipos_core.proto.position_fix import PositionFix
from ipos_core.proto.range_reading import RangingBatch

logger = logging.getLogger(__name__)


@dataclass
class RangingPipelineConfig:
    """
    Configuration for the ranging pipeline.

    Attributes:
        solver_config: MultilaterationSolver configuration
    """

    solver_config: Optional[MultilaterationConfig] = None


class RangingPipeline:
    """
    Per-cycle ranging → multilateration → fusion correction.

    Pipeline stages:
    1. Drop unsuccessful readings
    2. Join with the anchor registry and solve (>= 3 anchors)
    3. Correct the fused estimate with the raw fix

    Notes:
        - Insufficient or degenerate cycles are logged and counted, and the
          previous fused estimate is kept
        - No retries; the ranging collaborator decides when to range again
    """

    def __init__(
        self,
        registry: AnchorRegistry,
        fusion: FusionOrchestrator,
        config: Optional[RangingPipelineConfig] = None,
    ):
        """
        Initialize pipeline.

        Args:
            registry: Anchor coordinates (read-only here)
            fusion: Orchestrator receiving corrections
            config: Pipeline configuration (uses defaults if None)
        """
        self.registry = registry
        self.fusion = fusion
        self.config = config or RangingPipelineConfig()
        self.metrics = get_metrics()

        self.solver = MultilaterationSolver(self.config.solver_config or MultilaterationConfig())

        self._last_raw_fix: Optional[PositionFix] = None
        self._last_error: Optional[LocalizationError] = None

    def process(self, batch: RangingBatch) -> Optional[PositionFix]:
        """
        Process one ranging cycle.

        Args:
            batch: Readings of the cycle

        Returns:
            Published fused snapshot, or None if the cycle produced no fix
        """
        self.metrics.increment('ranging_cycles')

        failed = len(batch.readings) - batch.num_successful
        if failed:
            self.metrics.increment_drop('ranging_failed', failed)

        try:
            raw_fix = self.solver.solve(batch.get_successful_readings(), self.registry, batch.t_nanos)
        except InsufficientAnchorsError as e:
            self._last_error = e
            logger.warning(f"Ranging cycle skipped: {e}")
            return None
        except DegenerateGeometryError as e:
            self._last_error = e
            logger.warning(f"Ranging cycle skipped: {e}")
            return None

        self._last_raw_fix = raw_fix
        self._last_error = None
        return self.fusion.correct(raw_fix, batch.t_nanos)

    @property
    def last_raw_fix(self) -> Optional[PositionFix]:
        """Latest successful multilateration fix."""
        return self._last_raw_fix

    @property
    def last_error(self) -> Optional[LocalizationError]:
        """Error of the latest cycle, None if it produced a fix."""
        return self._last_error

    def get_statistics(self) -> dict:
        """Get pipeline statistics."""
        return {
            'cycles': self.metrics.get_counter('ranging_cycles'),
            'solver_success': self.metrics.get_counter('solver_success'),
            'insufficient_anchors': self.metrics.get_drop_count('insufficient_anchors'),
            'degenerate_geometry': self.metrics.get_drop_count('degenerate_geometry'),
            'ranging_failed': self.metrics.get_drop_count('ranging_failed'),
            'unknown_anchor': self.metrics.get_drop_count('unknown_anchor'),
        }


def create_default_pipeline(
    registry: AnchorRegistry,
    fusion: FusionOrchestrator,
) -> RangingPipeline:
    """
    Create ranging pipeline with default configuration.

    Args:
        registry: Anchor coordinates
        fusion: Orchestrator receiving corrections

    Returns:
        Configured RangingPipeline
    """
    config = RangingPipelineConfig(
        solver_config=MultilaterationConfig(
            default_std_dev_m=1.3,
            sigma_scale=1.5,
            min_sigma_m=1.0,
            max_sigma_m=6.0,
        ),
    )
    return RangingPipeline(registry, fusion, config)
