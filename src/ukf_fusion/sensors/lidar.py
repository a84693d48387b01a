"""
Lidar sensor simulation.

Lidar Measurement Model:
    z_lidar = [px, py]ᵀ + n_lidar,   n_lidar ~ N(0, diag(σ_px², σ_py²))

The sensor observes the object's Cartesian position directly; speed and
heading are not observed.
"""

import numpy as np
from typing import Optional

from .package import MeasurementPackage, SensorType, ground_truth_vector


class LidarSensor:
    """
    Position-only lidar with additive Gaussian noise.

    Attributes:
        std_px: Noise standard deviation along x (meters)
        std_py: Noise standard deviation along y (meters)
        sensor_id: Identifier for this lidar unit
    """

    def __init__(self, std_px: float = 0.15, std_py: float = 0.15, sensor_id: int = 1,
                 rng: Optional[np.random.Generator] = None):
        """
        Args:
            std_px: Standard deviation of x noise (meters)
            std_py: Standard deviation of y noise (meters)
            sensor_id: Unique identifier
            rng: Random generator; a fresh default generator if None
        """
        if std_px < 0 or std_py < 0:
            raise ValueError("Lidar noise standard deviations must be non-negative")

        self.std_px = std_px
        self.std_py = std_py
        self.sensor_id = sensor_id
        self.rng = rng if rng is not None else np.random.default_rng()

    def get_measurement(self, true_state: np.ndarray, timestamp_us: int) -> MeasurementPackage:
        """
        Generate a noisy lidar reading.

        Args:
            true_state: True CTRV state [px, py, v, yaw, yaw_rate]
            timestamp_us: Measurement time in microseconds

        Returns:
            MeasurementPackage with ground truth attached
        """
        if len(true_state) != 5:
            raise ValueError("Lidar requires the 5-element CTRV state")

        noise = self.rng.normal(0.0, [self.std_px, self.std_py])
        measurement = np.asarray(true_state[:2], dtype=float) + noise

        return MeasurementPackage(
            sensor_type=SensorType.LIDAR,
            timestamp_us=int(timestamp_us),
            raw_measurements=measurement,
            ground_truth=ground_truth_vector(true_state),
        )

    def get_measurement_covariance(self) -> np.ndarray:
        """2x2 measurement noise covariance."""
        return np.diag([self.std_px ** 2, self.std_py ** 2])

    def get_sensor_info(self) -> dict:
        return {
            'sensor_id': self.sensor_id,
            'sensor_type': SensorType.LIDAR.value,
            'noise_std': [self.std_px, self.std_py],
            'covariance': self.get_measurement_covariance().tolist(),
        }
