"""
Radar sensor simulation.

Radar Measurement Model:
    ρ   = √(px² + py²)                        + n_ρ
    φ   = atan2(py, px)                       + n_φ
    ρ̇   = (px·v·cos ψ + py·v·sin ψ) / ρ       + n_ρ̇

    n ~ N(0, diag(σ_ρ², σ_φ², σ_ρ̇²))

The sensor sits at the origin of the tracking frame. The noisy bearing is
wrapped into (-π, π] like a real sensor output.
"""

import numpy as np
from typing import Optional

from .package import MeasurementPackage, SensorType, ground_truth_vector
from ..fusion.angles import normalize_angle


class RadarSensor:
    """
    Range / bearing / range-rate radar with additive Gaussian noise.

    Attributes:
        std_range: Range noise standard deviation (meters)
        std_bearing: Bearing noise standard deviation (radians)
        std_range_rate: Range-rate noise standard deviation (m/s)
        sensor_id: Identifier for this radar unit
    """

    def __init__(self, std_range: float = 0.3, std_bearing: float = 0.03,
                 std_range_rate: float = 0.3, sensor_id: int = 1,
                 rng: Optional[np.random.Generator] = None):
        if min(std_range, std_bearing, std_range_rate) < 0:
            raise ValueError("Radar noise standard deviations must be non-negative")

        self.std_range = std_range
        self.std_bearing = std_bearing
        self.std_range_rate = std_range_rate
        self.sensor_id = sensor_id
        self.rng = rng if rng is not None else np.random.default_rng()

    @staticmethod
    def ideal_measurement(true_state: np.ndarray) -> np.ndarray:
        """
        Noise-free radar reading of a CTRV state.

        Raises:
            ValueError: If the object sits at the sensor origin
        """
        px, py, v, yaw = true_state[0], true_state[1], true_state[2], true_state[3]
        rho = np.hypot(px, py)
        if rho == 0:
            raise ValueError("Radar cannot observe an object at its own origin")
        phi = np.arctan2(py, px)
        rho_dot = (px * v * np.cos(yaw) + py * v * np.sin(yaw)) / rho
        return np.array([rho, phi, rho_dot])

    def get_measurement(self, true_state: np.ndarray, timestamp_us: int) -> MeasurementPackage:
        """
        Generate a noisy radar reading.

        Args:
            true_state: True CTRV state [px, py, v, yaw, yaw_rate]
            timestamp_us: Measurement time in microseconds

        Returns:
            MeasurementPackage with ground truth attached
        """
        if len(true_state) != 5:
            raise ValueError("Radar requires the 5-element CTRV state")

        measurement = self.ideal_measurement(true_state)
        measurement += self.rng.normal(0.0, [self.std_range, self.std_bearing, self.std_range_rate])
        measurement[1] = normalize_angle(measurement[1])

        return MeasurementPackage(
            sensor_type=SensorType.RADAR,
            timestamp_us=int(timestamp_us),
            raw_measurements=measurement,
            ground_truth=ground_truth_vector(true_state),
        )

    def get_measurement_covariance(self) -> np.ndarray:
        """3x3 measurement noise covariance."""
        return np.diag([self.std_range ** 2, self.std_bearing ** 2, self.std_range_rate ** 2])

    def get_sensor_info(self) -> dict:
        return {
            'sensor_id': self.sensor_id,
            'sensor_type': SensorType.RADAR.value,
            'noise_std': [self.std_range, self.std_bearing, self.std_range_rate],
            'covariance': self.get_measurement_covariance().tolist(),
        }
