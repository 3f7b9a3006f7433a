"""
Unit tests for the multilateration solver.

Tests cover:
- Exact solves from noise-free ranges (3 and 4 anchors)
- Degenerate geometry and insufficient anchor detection
- Registry join (unknown anchors, failed readings)
- Fix sigma derivation from reported std devs
"""

import math

import numpy as np
import pytest

from conftest import exact_triples, make_batch
from ipos_core.errors import (
    DegenerateGeometryError,
    InsufficientAnchorsError,
    InvalidMeasurementError,
)
from ipos_core.localization import (
    AnchorRegistry,
    MultilaterationConfig,
    MultilaterationSolver,
    solve_2d_least_squares,
)
from ipos_core.proto import FixSource, RangeReading, RangingStatus


# =============================================================================
# Test solve_2d_least_squares
# =============================================================================


class TestSolve2DLeastSquares:
    """Tests for the pure linearized solve."""

    def test_exact_three_anchors(self, triangle_anchors):
        """Noise-free ranges to 3 anchors give the true position."""
        triples = exact_triples(triangle_anchors, (5.0, 3.0))

        x, y = solve_2d_least_squares(triples)

        assert x == pytest.approx(5.0, abs=1e-6)
        assert y == pytest.approx(3.0, abs=1e-6)

    @pytest.mark.parametrize("position", [
        (1.0, 1.0),
        (9.0, 1.0),
        (5.0, 7.5),
        (-3.0, 12.0),   # outside the anchor hull
    ])
    def test_exact_various_positions(self, triangle_anchors, position):
        """Exact solve holds inside and outside the anchor triangle."""
        x, y = solve_2d_least_squares(exact_triples(triangle_anchors, position))

        assert x == pytest.approx(position[0], abs=1e-6)
        assert y == pytest.approx(position[1], abs=1e-6)

    def test_exact_four_anchors(self):
        """Over-determined exact system still recovers the position."""
        anchors = [(0.0, 0.0), (10.0, 0.0), (5.0, 8.0), (0.0, 8.0)]

        x, y = solve_2d_least_squares(exact_triples(anchors, (3.5, 4.25)))

        assert x == pytest.approx(3.5, abs=1e-6)
        assert y == pytest.approx(4.25, abs=1e-6)

    def test_deterministic_for_fixed_order(self, triangle_anchors):
        """Same input in the same order gives bit-identical output."""
        triples = exact_triples(triangle_anchors, (2.0, 6.0))

        assert solve_2d_least_squares(triples) == solve_2d_least_squares(list(triples))

    def test_noisy_ranges_stay_close(self, triangle_anchors):
        """Small range noise gives a nearby solution."""
        rng = np.random.default_rng(42)
        triples = [
            (ax, ay, d + rng.normal(0.0, 0.05))
            for ax, ay, d in exact_triples(triangle_anchors, (5.0, 3.0))
        ]

        x, y = solve_2d_least_squares(triples)

        assert math.hypot(x - 5.0, y - 3.0) < 0.5

    def test_collinear_anchors_raise(self, collinear_anchors):
        """Collinear anchors never yield a silently wrong answer."""
        triples = [(ax, ay, 4.0) for ax, ay in collinear_anchors]

        with pytest.raises(DegenerateGeometryError) as exc_info:
            solve_2d_least_squares(triples, ["a", "b", "c"])

        assert exc_info.value.anchor_ids == ["a", "b", "c"]
        assert exc_info.value.determinant == pytest.approx(0.0, abs=1e-9)

    def test_coincident_anchors_raise(self):
        """All anchors at one point is degenerate."""
        triples = [(3.0, 3.0, 1.0), (3.0, 3.0, 2.0), (3.0, 3.0, 3.0)]

        with pytest.raises(DegenerateGeometryError):
            solve_2d_least_squares(triples)

    def test_two_anchors_insufficient(self, triangle_anchors):
        """Exactly 2 triples is insufficient."""
        triples = exact_triples(triangle_anchors[:2], (5.0, 3.0))

        with pytest.raises(InsufficientAnchorsError) as exc_info:
            solve_2d_least_squares(triples)

        assert exc_info.value.available == 2
        assert exc_info.value.required == 3

    def test_non_finite_input_raises(self, triangle_anchors):
        """NaN distances are rejected."""
        triples = exact_triples(triangle_anchors, (5.0, 3.0))
        triples[1] = (triples[1][0], triples[1][1], float('nan'))

        with pytest.raises(InvalidMeasurementError):
            solve_2d_least_squares(triples)

    def test_errors_are_value_errors(self, collinear_anchors):
        """Solver errors remain catchable as ValueError."""
        with pytest.raises(ValueError):
            solve_2d_least_squares([(ax, ay, 1.0) for ax, ay in collinear_anchors])


# =============================================================================
# Test MultilaterationSolver
# =============================================================================


class TestMultilaterationSolver:
    """Tests for the registry-aware solver."""

    def test_solve_returns_ranging_fix(self, registry, anchor_layout):
        """Solver joins readings with registry and returns a raw fix."""
        solver = MultilaterationSolver()
        batch = make_batch(anchor_layout, (4.0, 3.0), t_nanos=123)

        fix = solver.solve(batch.readings, registry, batch.t_nanos)

        assert fix.source == FixSource.RANGING
        assert fix.x == pytest.approx(4.0, abs=1e-6)
        assert fix.y == pytest.approx(3.0, abs=1e-6)
        assert fix.t_nanos == 123
        assert fix.residual_m == pytest.approx(0.0, abs=1e-6)
        assert len(fix.anchor_ids) == 4

    def test_anchor_ids_matched_case_insensitively(self, registry, anchor_layout):
        """Upper-case reading IDs still resolve."""
        batch = make_batch(anchor_layout, (4.0, 3.0))
        readings = [
            RangeReading(r.anchor_id.upper(), r.distance_m, r.std_dev_m)
            for r in batch.readings
        ]

        fix = MultilaterationSolver().solve(readings, registry)

        assert fix.anchor_ids == list(anchor_layout)

    def test_unknown_anchors_not_counted(self, registry, anchor_layout, metrics):
        """Readings for unregistered anchors are dropped before the solve."""
        ids = list(anchor_layout)[:2]
        batch = make_batch(anchor_layout, (4.0, 3.0), anchor_ids=ids)
        readings = batch.readings + [RangeReading("de:ad:be:ef:00:01", 5.0, 0.5)]

        with pytest.raises(InsufficientAnchorsError) as exc_info:
            MultilaterationSolver().solve(readings, registry)

        assert exc_info.value.available == 2
        assert metrics.get_drop_count('unknown_anchor') == 1
        assert metrics.get_drop_count('insufficient_anchors') == 1

    def test_failed_readings_excluded(self, registry, anchor_layout):
        """Unsuccessful readings do not take part in the solve."""
        ids = list(anchor_layout)
        batch = make_batch(anchor_layout, (4.0, 3.0), failed_ids=ids[:2])

        with pytest.raises(InsufficientAnchorsError):
            MultilaterationSolver().solve(batch.readings, registry)

    def test_degenerate_registry_geometry(self, metrics):
        """Collinear registered anchors raise and are counted."""
        registry = AnchorRegistry.from_config({
            "a": {"x": 0.0, "y": 0.0},
            "b": {"x": 5.0, "y": 0.0},
            "c": {"x": 10.0, "y": 0.0},
        })
        readings = [RangeReading(aid, 4.0, 0.5) for aid in ("a", "b", "c")]

        with pytest.raises(DegenerateGeometryError) as exc_info:
            MultilaterationSolver().solve(readings, registry)

        assert exc_info.value.anchor_ids == ["a", "b", "c"]
        assert metrics.get_drop_count('degenerate_geometry') == 1

    @pytest.mark.parametrize("std_dev, expected", [
        (0.2, 1.0),     # 0.3 clamped up to min
        (2.0, 3.0),     # 2.0 * 1.5
        (5.0, 6.0),     # 7.5 clamped down to max
    ])
    def test_sigma_from_reported_std_dev(self, registry, anchor_layout, std_dev, expected):
        """Fix sigma is the scaled, clamped mean range std dev."""
        batch = make_batch(anchor_layout, (4.0, 3.0), std_dev_m=std_dev)

        fix = MultilaterationSolver().solve(batch.readings, registry)

        assert fix.sigma == pytest.approx(expected)

    def test_sigma_default_without_readings(self):
        """No readings falls back to the default std dev."""
        solver = MultilaterationSolver(MultilaterationConfig(default_std_dev_m=2.0))

        assert solver.estimate_sigma([]) == pytest.approx(3.0)

    def test_config_validation(self):
        """Invalid configuration is rejected."""
        with pytest.raises(AssertionError):
            MultilaterationConfig(min_anchors=2)
        with pytest.raises(AssertionError):
            MultilaterationConfig(min_sigma_m=5.0, max_sigma_m=1.0)

    def test_unsuccessful_status_flag(self):
        """RangingStatus other than SUCCESS marks a reading unusable."""
        reading = RangeReading("a", 1.0, 0.1, status=RangingStatus.RESPONDER_NOT_CAPABLE)

        assert not reading.is_successful
