"""
Sensor measurement models.

Both sensors share one interface: a projection h(·) from state space to
measurement space, a fixed noise covariance R and the optional index of an
angular component whose residuals must be wrapped.

Lidar (linear):
    h(x) = [px, py]ᵀ
    R = diag(σ_px², σ_py²)

Radar (nonlinear):
    ρ   = √(px² + py²)
    φ   = atan2(py, px)
    ρ̇   = (px·v·cos ψ + py·v·sin ψ) / ρ
    R = diag(σ_ρ², σ_φ², σ_ρ̇²)

The predicted measurement distribution is recovered from the projected sigma
points:
    ẑ = Σ wᵢ Zᵢ          (bearing averaged as offsets from the central point)
    S = Σ wᵢ (Zᵢ - ẑ)(Zᵢ - ẑ)ᵀ + R
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .angles import normalize_component, weighted_angle_mean
from ..sensors.package import SensorType

logger = logging.getLogger(__name__)


@dataclass
class MeasurementPrediction:
    """Projected sigma points and the predicted measurement distribution."""
    points: np.ndarray
    mean: np.ndarray
    covariance: np.ndarray


class MeasurementModel(ABC):
    """
    Base class for sensor measurement models.

    Subclasses define ``sensor_type``, ``dimension``, ``angle_index`` and
    implement ``project``.
    """

    sensor_type: SensorType
    dimension: int
    angle_index: Optional[int] = None

    def __init__(self, noise_std: np.ndarray):
        noise_std = np.asarray(noise_std, dtype=float)
        if noise_std.shape != (self.dimension,):
            raise ValueError(
                f"{self.sensor_type.value} noise needs {self.dimension} values, got {noise_std.shape}")
        if np.any(noise_std < 0):
            raise ValueError("Measurement noise standard deviations must be non-negative")
        self._noise_covariance = np.diag(noise_std ** 2)

    @property
    def noise_covariance(self) -> np.ndarray:
        """Fixed sensor noise covariance R."""
        return self._noise_covariance.copy()

    @abstractmethod
    def project(self, state: np.ndarray) -> np.ndarray:
        """Map one state vector into measurement space."""

    def project_sigma_points(self, state_points: np.ndarray) -> np.ndarray:
        """Project a (5, n_sigma) state sigma-point matrix column by column."""
        return np.column_stack([
            self.project(state_points[:, i]) for i in range(state_points.shape[1])
        ])

    def residual(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Difference a - b with the angular component wrapped into (-π, π]."""
        difference = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
        if self.angle_index is not None:
            difference = normalize_component(difference, self.angle_index)
        return difference

    def predict_measurement(self, state_points: np.ndarray,
                            weights: np.ndarray) -> MeasurementPrediction:
        """
        Predict the measurement mean and covariance from state sigma points.

        Args:
            state_points: (5, n_sigma) predicted state sigma points
            weights: Sigma-point weights

        Returns:
            MeasurementPrediction with projected points, ẑ and S (R included)
        """
        points = self.project_sigma_points(state_points)
        mean = points @ weights
        if self.angle_index is not None:
            mean[self.angle_index] = weighted_angle_mean(points[self.angle_index], weights)
        deviations = points - mean[:, np.newaxis]
        if self.angle_index is not None:
            deviations = normalize_component(deviations, self.angle_index)
        covariance = (deviations * weights) @ deviations.T + self._noise_covariance
        return MeasurementPrediction(points=points, mean=mean, covariance=covariance)


class LidarModel(MeasurementModel):
    """Position-only lidar measurement model."""

    sensor_type = SensorType.LIDAR
    dimension = 2

    def __init__(self, std_laspx: float = 0.15, std_laspy: float = 0.15):
        super().__init__(np.array([std_laspx, std_laspy]))

    def project(self, state: np.ndarray) -> np.ndarray:
        return np.array([state[0], state[1]], dtype=float)


class RadarModel(MeasurementModel):
    """
    Range / bearing / range-rate radar measurement model.

    The range used as the range-rate divisor is floored at ``min_range`` so a
    sigma point at the sensor origin still gives a finite projection.
    """

    sensor_type = SensorType.RADAR
    dimension = 3
    angle_index = 1

    def __init__(self, std_radr: float = 0.3, std_radphi: float = 0.03,
                 std_radrd: float = 0.3, min_range: float = 1e-4):
        super().__init__(np.array([std_radr, std_radphi, std_radrd]))
        if min_range <= 0:
            raise ValueError(f"Minimum radar range must be positive, got {min_range}")
        self.min_range = min_range

    def project(self, state: np.ndarray) -> np.ndarray:
        px, py, v, yaw = state[0], state[1], state[2], state[3]

        rho = np.hypot(px, py)
        if rho < self.min_range:
            logger.debug(f"Radar range {rho:.2e} floored at {self.min_range:.2e}")
            divisor = self.min_range
        else:
            divisor = rho

        phi = np.arctan2(py, px)
        rho_dot = (px * v * np.cos(yaw) + py * v * np.sin(yaw)) / divisor
        return np.array([rho, phi, rho_dot], dtype=float)


def create_measurement_models(std_laspx: float = 0.15, std_laspy: float = 0.15,
                              std_radr: float = 0.3, std_radphi: float = 0.03,
                              std_radrd: float = 0.3,
                              min_radar_range: float = 1e-4) -> dict:
    """
    Build the lidar and radar models keyed by sensor type.

    Returns:
        Dictionary {SensorType: MeasurementModel}
    """
    return {
        SensorType.LIDAR: LidarModel(std_laspx, std_laspy),
        SensorType.RADAR: RadarModel(std_radr, std_radphi, std_radrd, min_radar_range),
    }
