"""
Pytest configuration and shared fixtures for the indoor positioning tests.

Provides anchor layouts, range synthesis helpers and freshly constructed
core components (registry, orchestrator, pipeline) backed by a clean
metrics collector.
"""

import sys
import math
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ipos_core.localization import (
    AnchorRegistry,
    FusionOrchestrator,
    RangingPipeline,
)
from ipos_core.metrics import get_metrics, reset_metrics
from ipos_core.proto import RangeReading, RangingBatch, RangingStatus


# =============================================================================
# Metrics
# =============================================================================


@pytest.fixture(autouse=True)
def metrics():
    """
    Fresh global metrics collector for every test.

    Components grab the collector at construction, so fixtures that build
    components depend on this one.
    """
    reset_metrics()
    return get_metrics()


# =============================================================================
# Anchor Configuration Fixtures
# =============================================================================


@pytest.fixture
def anchor_layout() -> Dict[str, Dict[str, float]]:
    """
    Standard anchor layout (triangle plus a fourth corner).

    Returns:
        Mapping anchor_id -> {"x", "y"} in meters.
    """
    return {
        "7c:8b:ca:12:34:56": {"x": 0.0, "y": 0.0},
        "7c:8b:ca:12:34:57": {"x": 10.0, "y": 0.0},
        "7c:8b:ca:12:34:58": {"x": 5.0, "y": 8.0},
        "7c:8b:ca:12:34:59": {"x": 0.0, "y": 8.0},
    }


@pytest.fixture
def triangle_anchors() -> List[Tuple[float, float]]:
    """Three non-collinear anchors: (0,0), (10,0), (5,8)."""
    return [(0.0, 0.0), (10.0, 0.0), (5.0, 8.0)]


@pytest.fixture
def collinear_anchors() -> List[Tuple[float, float]]:
    """Three anchors on the x axis."""
    return [(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)]


@pytest.fixture
def registry(metrics, anchor_layout) -> AnchorRegistry:
    """AnchorRegistry loaded with anchor_layout."""
    return AnchorRegistry.from_config(anchor_layout)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def fusion(metrics) -> FusionOrchestrator:
    """Uninitialized orchestrator with default configuration."""
    return FusionOrchestrator()


@pytest.fixture
def pipeline(metrics, registry, fusion) -> RangingPipeline:
    """Ranging pipeline wired to the registry and orchestrator fixtures."""
    return RangingPipeline(registry, fusion)


# =============================================================================
# Helper Functions
# =============================================================================


def exact_triples(
    anchors: Sequence[Tuple[float, float]],
    position: Tuple[float, float],
) -> List[Tuple[float, float, float]]:
    """
    Noise-free (anchor_x, anchor_y, distance) triples for a true position.

    Args:
        anchors: Anchor (x, y) positions.
        position: True device (x, y).

    Returns:
        List of triples in anchor order.
    """
    return [
        (ax, ay, math.hypot(position[0] - ax, position[1] - ay))
        for ax, ay in anchors
    ]


def make_batch(
    layout: Dict[str, Dict[str, float]],
    position: Tuple[float, float],
    std_dev_m: float = 0.5,
    t_nanos: int = 0,
    anchor_ids: Sequence[str] = None,
    failed_ids: Sequence[str] = (),
) -> RangingBatch:
    """
    Noise-free ranging batch for a true position.

    Args:
        layout: Anchor layout mapping.
        position: True device (x, y).
        std_dev_m: Reported std dev for every reading.
        t_nanos: Batch timestamp.
        anchor_ids: Subset of anchors to include (default: all, layout order).
        failed_ids: Anchors reported with RangingStatus.FAIL.

    Returns:
        RangingBatch with one reading per included anchor.
    """
    ids = list(anchor_ids) if anchor_ids is not None else list(layout)
    readings = []
    for aid in ids:
        coords = layout[aid]
        distance = math.hypot(position[0] - coords["x"], position[1] - coords["y"])
        status = RangingStatus.FAIL if aid in failed_ids else RangingStatus.SUCCESS
        readings.append(RangeReading(aid, distance, std_dev_m, rssi=-60, status=status))
    return RangingBatch(t_nanos=t_nanos, readings=readings)
