"""
Measurement packages exchanged between sensors and the estimator.

A package carries the sensor type, a timestamp in integer microseconds and
the raw measurement vector:
    LIDAR: [px, py]               (meters)
    RADAR: [rho, phi, rho_dot]    (meters, radians, m/s)

Simulated and recorded packages may also carry the ground-truth state
[px, py, vx, vy] (optionally followed by yaw and yaw rate) for evaluation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from ..fusion.errors import InvalidMeasurementError


class SensorType(Enum):
    """Enumeration of supported sensor types."""
    LIDAR = "lidar"
    RADAR = "radar"


MEASUREMENT_DIMENSIONS = {
    SensorType.LIDAR: 2,
    SensorType.RADAR: 3,
}


@dataclass
class MeasurementPackage:
    """
    Single sensor reading.

    Attributes:
        sensor_type: Sensor that produced the reading
        timestamp_us: Measurement time in microseconds
        raw_measurements: Measurement vector
        ground_truth: Optional true state for evaluation
    """
    sensor_type: SensorType
    timestamp_us: int
    raw_measurements: np.ndarray
    ground_truth: Optional[np.ndarray] = None

    def __post_init__(self):
        self.raw_measurements = np.asarray(self.raw_measurements, dtype=float)
        if self.ground_truth is not None:
            self.ground_truth = np.asarray(self.ground_truth, dtype=float)

    def validate(self) -> None:
        """
        Check sensor type, measurement length and values.

        Raises:
            InvalidMeasurementError: If the package cannot be processed
        """
        if not isinstance(self.sensor_type, SensorType):
            raise InvalidMeasurementError(f"Unsupported sensor type: {self.sensor_type!r}")

        expected = MEASUREMENT_DIMENSIONS[self.sensor_type]
        if self.raw_measurements.shape != (expected,):
            raise InvalidMeasurementError(
                f"{self.sensor_type.value} measurement must have {expected} elements, "
                f"got shape {self.raw_measurements.shape}")

        if not np.all(np.isfinite(self.raw_measurements)):
            raise InvalidMeasurementError("Measurement contains NaN or infinite values")

        if self.timestamp_us < 0:
            raise InvalidMeasurementError(f"Timestamp must be non-negative, got {self.timestamp_us}")

    @property
    def timestamp_s(self) -> float:
        return self.timestamp_us / 1e6


def ground_truth_vector(state: np.ndarray) -> np.ndarray:
    """
    Convert a CTRV state [px, py, v, yaw, yaw_rate] into the ground-truth
    layout [px, py, vx, vy, yaw, yaw_rate] used by packages and datasets.
    """
    px, py, v, yaw, yaw_rate = np.asarray(state, dtype=float)
    return np.array([px, py, v * np.cos(yaw), v * np.sin(yaw), yaw, yaw_rate])
