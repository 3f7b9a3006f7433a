"""
Constant-Velocity Kalman Filter for PDR + RTT fusion.

State: [x, y, vx, vy] (2D position in m + velocity in m/s)

Predict integrates a PDR step displacement straight into position and
propagates the covariance with the constant-velocity model for a fixed
nominal time step. Correct applies a standard linear Kalman update with an
RTT position fix.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ipos_core.errors import InvalidMeasurementError, SingularMatrixError
from ipos_core.localization.matrix import add, eye, inv2, mul, sub, transpose
from ipos_core.metrics import get_metrics
from ipos_core.proto.position_fix import FixSource, PositionFix

logger = logging.getLogger(__name__)

# Measurement z = [x, y]
H = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
])


@dataclass
class KinematicFilterConfig:
    """
    Configuration for the constant-velocity filter.

    Attributes:
        dt_s: Nominal time step used for covariance propagation (s)
        q_pos: Process noise added to each position variance per predict (m²)
        q_vel: Process noise added to each velocity variance per predict (m²/s²)
        initial_variance: Diagonal of the prior covariance
    """

    dt_s: float = 0.05              # ~20 Hz integration
    q_pos: float = 0.05
    q_vel: float = 0.5
    initial_variance: float = 100.0  # 10 m prior std dev

    def __post_init__(self):
        """Validate configuration."""
        assert self.dt_s > 0, "dt must be positive"
        assert self.q_pos >= 0 and self.q_vel >= 0, "process noise must be non-negative"
        assert self.initial_variance > 0, "initial variance must be positive"

    @property
    def initial_sigma_m(self) -> float:
        """Prior position std dev (m)."""
        return math.sqrt(self.initial_variance)


class ConstantVelocityFilter:
    """
    Constant-velocity Kalman filter driven by PDR steps and RTT fixes.

    Usage:
        kf = ConstantVelocityFilter(config)
        kf.initialize_at(fix.x, fix.y)

        kf.predict(step.dx, step.dy)     # every detected step
        kf.correct(rtt_fix)              # every ranging cycle

        fused = kf.snapshot()

    Notes:
        - Not thread-safe; the owner serializes all calls
        - A rejected correct/predict leaves state and covariance untouched
        - Reported sigma is sqrt(max(P[x,x], P[y,y])), a conservative scalar
    """

    def __init__(self, config: Optional[KinematicFilterConfig] = None):
        """
        Initialize filter at the default prior.

        Args:
            config: Filter configuration (uses defaults if None)
        """
        self.config = config or KinematicFilterConfig()
        self.metrics = get_metrics()

        dt = self.config.dt_s
        self._F = np.array([
            [1.0, 0.0, dt, 0.0],
            [0.0, 1.0, 0.0, dt],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

        self._state = np.zeros(4)
        self._covariance = eye(4, self.config.initial_variance)
        self._Q = self._build_process_noise(self.config.q_pos, self.config.q_vel)
        self._last_innovation_m: Optional[float] = None

    @staticmethod
    def _build_process_noise(position_q: float, velocity_q: float) -> np.ndarray:
        return np.diag([position_q, position_q, velocity_q, velocity_q])

    def reset(self):
        """Return to the default prior: zero state, P = initial_variance * I, default Q."""
        self._state = np.zeros(4)
        self._covariance = eye(4, self.config.initial_variance)
        self._Q = self._build_process_noise(self.config.q_pos, self.config.q_vel)
        self._last_innovation_m = None

    def initialize_at(self, x: float, y: float):
        """Seed position at (x, y) with zero velocity and the default prior covariance."""
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidMeasurementError(f"Initial position must be finite: ({x}, {y})")

        self._state = np.array([x, y, 0.0, 0.0])
        self._covariance = eye(4, self.config.initial_variance)
        self._last_innovation_m = None
        logger.debug(f"Filter seeded at ({x:.2f}, {y:.2f})")

    def set_process_noise(self, position_q: float, velocity_q: float):
        """
        Replace the diagonal process noise.

        Args:
            position_q: Added to x and y variance per predict
            velocity_q: Added to vx and vy variance per predict
        """
        for q in (position_q, velocity_q):
            if not math.isfinite(q) or q < 0:
                raise ValueError(f"Process noise must be finite and non-negative: {q}")
        self._Q = self._build_process_noise(position_q, velocity_q)

    def predict(self, dx: float, dy: float):
        """
        Integrate a step displacement and propagate covariance.

        x <- x + dx, y <- y + dy;  P <- F P F^T + Q

        Raises:
            InvalidMeasurementError: If dx or dy is not finite
        """
        if not (math.isfinite(dx) and math.isfinite(dy)):
            raise InvalidMeasurementError(f"Displacement must be finite: ({dx}, {dy})")

        state = self._state.copy()
        state[0] += dx
        state[1] += dy

        FP = mul(self._F, self._covariance)
        covariance = add(mul(FP, transpose(self._F)), self._Q)

        self._state = state
        self._covariance = covariance
        self.metrics.increment('filter_predicts')

    def correct(self, fix: PositionFix) -> float:
        """
        Kalman update with a position fix, R = diag(sigma², sigma²).

        Args:
            fix: Measured position; sigma must be > 0

        Returns:
            Innovation magnitude |z - Hx| in meters

        Raises:
            InvalidMeasurementError: sigma <= 0 or non-finite fix
            SingularMatrixError: Innovation covariance not invertible
        """
        fix.validate()

        var = fix.sigma * fix.sigma
        R = np.array([
            [var, 0.0],
            [0.0, var],
        ])

        # y = z - Hx
        z = np.array([fix.x, fix.y])
        y = sub(z, mul(H, self._state))

        # S = H P H^T + R
        Ht = transpose(H)
        S = add(mul(mul(H, self._covariance), Ht), R)
        try:
            S_inv = inv2(S)
        except SingularMatrixError:
            self.metrics.increment_drop('singular_matrix')
            raise

        # K = P H^T S^-1
        K = mul(mul(self._covariance, Ht), S_inv)

        state = self._state + mul(K, y)
        covariance = mul(sub(eye(4), mul(K, H)), self._covariance)

        self._state = state
        self._covariance = covariance

        innovation_m = float(math.hypot(y[0], y[1]))
        self._last_innovation_m = innovation_m
        self.metrics.increment('filter_corrections')
        self.metrics.record_histogram('filter_innovation_m', innovation_m)
        return innovation_m

    def snapshot(self, t_nanos: Optional[int] = None) -> PositionFix:
        """Current fused estimate as an immutable PositionFix."""
        return PositionFix(
            x=float(self._state[0]),
            y=float(self._state[1]),
            sigma=self.sigma,
            source=FixSource.FUSED,
            t_nanos=t_nanos,
            vel=(float(self._state[2]), float(self._state[3])),
        )

    @property
    def sigma(self) -> float:
        """Scalar position uncertainty: sqrt(max(P[x,x], P[y,y]))."""
        return math.sqrt(max(self._covariance[0, 0], self._covariance[1, 1]))

    @property
    def state(self) -> np.ndarray:
        """Copy of the state vector [x, y, vx, vy]."""
        return self._state.copy()

    @property
    def covariance(self) -> np.ndarray:
        """Copy of the 4x4 covariance."""
        return self._covariance.copy()

    @property
    def process_noise(self) -> np.ndarray:
        """Copy of the 4x4 process noise."""
        return self._Q.copy()

    @property
    def trace(self) -> float:
        """Trace of the covariance."""
        return float(np.trace(self._covariance))

    @property
    def position(self) -> Tuple[float, float]:
        """Current (x, y) estimate."""
        return (float(self._state[0]), float(self._state[1]))

    @property
    def last_innovation_m(self) -> Optional[float]:
        """Innovation magnitude of the latest correction, None before any."""
        return self._last_innovation_m
