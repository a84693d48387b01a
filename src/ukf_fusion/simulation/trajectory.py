"""
CTRV ground-truth trajectory and measurement scenario generation.

Mathematical Framework:
    An object moving at constant speed v with constant yaw rate ω has the
    closed-form trajectory

        ψ(t)  = ψ₀ + ωt
        px(t) = px₀ + v/ω · (sin ψ(t) - sin ψ₀)
        py(t) = py₀ + v/ω · (cos ψ₀ - cos ψ(t))

    and, for ω = 0, the straight line px(t) = px₀ + vt cos ψ₀,
    py(t) = py₀ + vt sin ψ₀.

Scenarios alternate lidar and radar readings at a fixed interval, the same
interleaved layout as the recorded datasets.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..fusion.angles import normalize_angle
from ..sensors.lidar import LidarSensor
from ..sensors.package import MeasurementPackage
from ..sensors.radar import RadarSensor

logger = logging.getLogger(__name__)


@dataclass
class TrajectoryParameters:
    """Initial CTRV state of the simulated object, with validation."""

    px: float = 5.0               # Initial x position [m]
    py: float = 3.0               # Initial y position [m]
    speed: float = 5.0            # Constant speed magnitude [m/s]
    yaw: float = 0.5              # Initial heading [rad]
    yaw_rate: float = 0.2         # Constant yaw rate [rad/s]

    def __post_init__(self):
        """Validate trajectory parameters against physical constraints."""
        values = (self.px, self.py, self.speed, self.yaw, self.yaw_rate)
        if not np.all(np.isfinite(values)):
            raise ValueError("Trajectory parameters must be finite")
        if self.speed < 0:
            raise ValueError(f"Speed must be non-negative, got {self.speed}")
        if abs(self.yaw_rate) > 10.0:
            raise ValueError(f"Yaw rate {self.yaw_rate} rad/s exceeds plausible limits")


@dataclass
class ScenarioParameters:
    """Timing of a simulated measurement stream."""

    duration: float = 15.0        # Scenario length [s]
    step_us: int = 50000          # Interval between consecutive packages [µs]
    start_us: int = 0             # Timestamp of the first package [µs]

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Duration must be positive, got {self.duration}")
        if self.step_us <= 0:
            raise ValueError(f"Step must be positive, got {self.step_us}")
        if self.start_us < 0:
            raise ValueError(f"Start time must be non-negative, got {self.start_us}")


class CTRVTrajectory:
    """
    Exact constant turn rate and velocity trajectory.

    Attributes:
        params: Initial state and motion parameters
    """

    def __init__(self, params: Optional[TrajectoryParameters] = None):
        self.params = params if params is not None else TrajectoryParameters()

    def get_state(self, t: float) -> np.ndarray:
        """
        True CTRV state at time t.

        Args:
            t: Time since the start of the trajectory (seconds)

        Returns:
            [px, py, v, yaw, yaw_rate] with yaw in (-π, π]
        """
        p = self.params
        yaw_t = p.yaw + p.yaw_rate * t

        if p.yaw_rate == 0.0:
            px = p.px + p.speed * t * np.cos(p.yaw)
            py = p.py + p.speed * t * np.sin(p.yaw)
        else:
            radius = p.speed / p.yaw_rate
            px = p.px + radius * (np.sin(yaw_t) - np.sin(p.yaw))
            py = p.py + radius * (np.cos(p.yaw) - np.cos(yaw_t))

        return np.array([px, py, p.speed, normalize_angle(yaw_t), p.yaw_rate])

    def get_position(self, t: float) -> np.ndarray:
        return self.get_state(t)[:2]

    def get_velocity(self, t: float) -> np.ndarray:
        """Cartesian velocity [vx, vy] at time t."""
        state = self.get_state(t)
        return state[2] * np.array([np.cos(state[3]), np.sin(state[3])])

    def sample(self, times: np.ndarray) -> np.ndarray:
        """States at the given times, one row per time."""
        return np.array([self.get_state(t) for t in times])

    def __repr__(self) -> str:
        p = self.params
        return (f"CTRVTrajectory(start=({p.px:.2f}, {p.py:.2f}), v={p.speed:.2f} m/s, "
                f"yaw={p.yaw:.2f} rad, yaw_rate={p.yaw_rate:.3f} rad/s)")


def generate_scenario(trajectory: Optional[CTRVTrajectory] = None,
                      scenario: Optional[ScenarioParameters] = None,
                      lidar: Optional[LidarSensor] = None,
                      radar: Optional[RadarSensor] = None,
                      rng: Optional[np.random.Generator] = None) -> List[MeasurementPackage]:
    """
    Generate an interleaved lidar/radar measurement stream.

    Packages alternate lidar, radar, lidar, ... starting with lidar. Each
    package carries the ground truth at its timestamp.

    Args:
        trajectory: Object trajectory; defaults to CTRVTrajectory()
        scenario: Stream timing; defaults to ScenarioParameters()
        lidar: Lidar sensor; created from ``rng`` if None
        radar: Radar sensor; created from ``rng`` if None
        rng: Random generator shared by sensors created here

    Returns:
        List of MeasurementPackage in timestamp order
    """
    trajectory = trajectory or CTRVTrajectory()
    scenario = scenario or ScenarioParameters()
    rng = rng if rng is not None else np.random.default_rng()
    lidar = lidar or LidarSensor(rng=rng)
    radar = radar or RadarSensor(rng=rng)

    step_count = int(round(scenario.duration * 1e6 / scenario.step_us))
    packages = []
    for k in range(step_count + 1):
        timestamp_us = scenario.start_us + k * scenario.step_us
        t = (timestamp_us - scenario.start_us) / 1e6
        state = trajectory.get_state(t)
        sensor = lidar if k % 2 == 0 else radar
        packages.append(sensor.get_measurement(state, timestamp_us))

    logger.debug(f"Generated {len(packages)} packages over {scenario.duration:.1f}s")
    return packages
