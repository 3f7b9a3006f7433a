"""
Localization Module: Anchor registry, multilateration, fusion.

Key classes:
- AnchorRegistry: Anchor ID -> planar coordinates
- MultilaterationSolver: >= 3 anchor ranges -> raw (x, y, sigma) fix
- ConstantVelocityFilter: [x, y, vx, vy] Kalman filter (PDR predict, RTT correct)
- FusionOrchestrator: Serialized filter owner, lifecycle and publication
- RangingPipeline: One ranging cycle -> raw fix -> fused correction
"""

from .anchor_registry import (
    Anchor,
    AnchorRegistry,
    normalize_anchor_id,
)
from .multilateration import (
    MultilaterationSolver,
    MultilaterationConfig,
    solve_2d_least_squares,
)
from .kinematic_filter import (
    ConstantVelocityFilter,
    KinematicFilterConfig,
)
from .fusion_orchestrator import (
    FusionOrchestrator,
    FusionConfig,
    FusionState,
    create_default_orchestrator,
)
from .ranging_pipeline import (
    RangingPipeline,
    RangingPipelineConfig,
    create_default_pipeline,
)

__all__ = [
    # Anchors
    'Anchor',
    'AnchorRegistry',
    'normalize_anchor_id',
    # Multilateration
    'MultilaterationSolver',
    'MultilaterationConfig',
    'solve_2d_least_squares',
    # Filter
    'ConstantVelocityFilter',
    'KinematicFilterConfig',
    # Orchestration
    'FusionOrchestrator',
    'FusionConfig',
    'FusionState',
    'create_default_orchestrator',
    'RangingPipeline',
    'RangingPipelineConfig',
    'create_default_pipeline',
]
