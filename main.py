"""
Indoor positioning replay.

Walks a rectangular path through a synthetic anchor layout, feeds PDR steps
and noisy RTT ranging cycles through the positioning core, and prints the
fused track next to the ground truth.
"""

import sys
import math
import logging
import argparse
from typing import List, Tuple

import numpy as np

import config
from ipos_core.localization import (
    AnchorRegistry,
    FusionConfig,
    FusionOrchestrator,
    KinematicFilterConfig,
    MultilaterationConfig,
    RangingPipeline,
    RangingPipelineConfig,
)
from ipos_core.metrics import get_metrics
from ipos_core.proto import PositionFix, RangeReading, RangingBatch
from ipos_core.sensors import StepDisplacementSource

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)

STEP_PERIOD_NANOS = 500_000_000  # 2 steps/s


class WalkReplay:
    """Synthetic walk driving the full ranging + PDR fusion chain."""

    def __init__(self, sim_config: dict, seed: int):
        """
        Build the positioning chain from host configuration.

        Args:
            sim_config: SIMULATION_CONFIG-style dictionary
            seed: Random seed for range and heading noise
        """
        self.sim = sim_config
        self.rng = np.random.default_rng(seed)

        self.registry = AnchorRegistry.from_config(self.sim["anchors"])

        filter_config = KinematicFilterConfig(
            dt_s=config.FUSION_CONFIG["dt_s"],
            q_pos=config.FUSION_CONFIG["position_q"],
            q_vel=config.FUSION_CONFIG["velocity_q"],
            initial_variance=config.FUSION_CONFIG["initial_variance"],
        )
        self.fusion = FusionOrchestrator(FusionConfig(filter_config=filter_config))

        solver_config = MultilaterationConfig(**config.RANGING_CONFIG)
        self.pipeline = RangingPipeline(
            self.registry, self.fusion, RangingPipelineConfig(solver_config=solver_config)
        )

        self.pdr = StepDisplacementSource(config.PDR_CONFIG["step_length_m"])
        self.pdr.subscribe(self.fusion.on_displacement)

        self.truth = self.sim["start"]
        self.track: List[Tuple[Tuple[float, float], PositionFix]] = []
        self.fusion.subscribe(self._on_fix)

        logger.info(f"Replay initialized with {len(self.registry)} anchors")

    def _on_fix(self, fix: PositionFix):
        self.track.append((self.truth, fix))
        if len(self.track) % self.sim["print_interval"] == 0:
            err = fix.distance_to(*self.truth)
            print(f"[{fix.source.name:7s}] est=({fix.x:6.2f}, {fix.y:6.2f}) "
                  f"sigma={fix.sigma:5.2f}  truth=({self.truth[0]:6.2f}, {self.truth[1]:6.2f})  "
                  f"err={err:5.2f} m")

    def _heading_for_step(self, step: int) -> float:
        # Rectangle: east, north, west, south
        leg = (step // self.sim["leg_steps"]) % 4
        return leg * math.pi / 2

    def _ranging_batch(self, t_nanos: int) -> RangingBatch:
        readings = []
        for anchor in self.registry.entries():
            true_range = math.hypot(self.truth[0] - anchor.x, self.truth[1] - anchor.y)
            noisy = max(0.0, true_range + self.rng.normal(0.0, self.sim["range_noise_m"]))
            readings.append(RangeReading(
                anchor_id=anchor.anchor_id.upper(),
                distance_m=noisy,
                std_dev_m=self.sim["range_noise_m"],
                rssi=int(-40 - 2 * true_range),
            ))
        return RangingBatch(t_nanos=t_nanos, readings=readings)

    def run(self, steps: int):
        """Replay `steps` steps with a ranging cycle every N steps."""
        step_len = self.pdr.step_length_m

        # First ranging cycle seeds the filter; steps before it are dropped
        self.pipeline.process(self._ranging_batch(0))

        for step in range(steps):
            t_nanos = (step + 1) * STEP_PERIOD_NANOS
            heading = self._heading_for_step(step)

            self.truth = (
                self.truth[0] + step_len * math.cos(heading),
                self.truth[1] + step_len * math.sin(heading),
            )
            self.pdr.set_heading(heading + self.rng.normal(0.0, self.sim["heading_noise_rad"]))
            self.pdr.on_step(t_nanos)

            if (step + 1) % self.sim["ranging_every"] == 0:
                self.pipeline.process(self._ranging_batch(t_nanos))

    def print_report(self):
        """Print final error statistics and metrics."""
        errors = [fix.distance_to(*truth) for truth, fix in self.track if fix.has_valid_fix]

        print("\n" + "=" * 60)
        print("               Replay finished")
        print("=" * 60)
        if errors:
            print(f"Published fixes: {len(errors)}")
            print(f"Mean error:      {np.mean(errors):.2f} m")
            print(f"Max error:       {np.max(errors):.2f} m")
        print("=" * 60)

        get_metrics().print_summary()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description='Indoor RTT + PDR fusion replay')
    parser.add_argument('--steps', '-n', type=int, default=None,
                        help='number of steps to walk')
    parser.add_argument('--seed', '-s', type=int, default=None,
                        help='random seed')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    steps = args.steps if args.steps is not None else config.SIMULATION_CONFIG["steps"]
    seed = args.seed if args.seed is not None else config.SIMULATION_CONFIG["seed"]

    replay = WalkReplay(config.SIMULATION_CONFIG, seed)
    replay.run(steps)
    replay.print_report()
    return 0


if __name__ == "__main__":
    sys.exit(main())
