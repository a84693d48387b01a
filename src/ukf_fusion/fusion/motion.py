"""
CTRV (constant turn rate and velocity magnitude) motion model.

State Evolution (deterministic part, yaw rate ψ̇ ≠ 0):
    px' = px + v/ψ̇ · (sin(ψ + ψ̇Δt) - sin ψ)
    py' = py + v/ψ̇ · (cos ψ - cos(ψ + ψ̇Δt))
    v'  = v
    ψ'  = ψ + ψ̇Δt
    ψ̇'  = ψ̇

For |ψ̇| below a small threshold the straight-line limit is used:
    px' = px + vΔt cos ψ
    py' = py + vΔt sin ψ

Process noise (ν_a longitudinal, ν_ψ̈ yaw acceleration):
    px' += ½ν_a Δt² cos ψ
    py' += ½ν_a Δt² sin ψ
    v'  += ν_a Δt
    ψ'  += ½ν_ψ̈ Δt²
    ψ̇'  += ν_ψ̈ Δt
"""

import logging
from typing import Tuple

import numpy as np

from .sigma_points import SigmaPointGenerator

logger = logging.getLogger(__name__)

# Index of the heading angle in the state vector
YAW_INDEX = 3

DEFAULT_YAW_RATE_THRESHOLD = 1e-3


class CTRVMotionModel:
    """
    Propagates augmented sigma points through the CTRV model.

    Attributes:
        yaw_rate_threshold: |yaw_rate| at or below which the straight-line
                            branch is used
    """

    def __init__(self, yaw_rate_threshold: float = DEFAULT_YAW_RATE_THRESHOLD):
        if yaw_rate_threshold < 0:
            raise ValueError(f"Yaw rate threshold must be non-negative, got {yaw_rate_threshold}")
        self.yaw_rate_threshold = yaw_rate_threshold

    def propagate_point(self, point: np.ndarray, dt: float) -> np.ndarray:
        """
        Propagate one augmented sigma point by dt seconds.

        Args:
            point: Augmented state [px, py, v, yaw, yaw_rate, nu_a, nu_yawdd]
            dt: Time step (seconds)

        Returns:
            Predicted 5-element state
        """
        px, py, v, yaw, yaw_rate, nu_a, nu_yawdd = point

        if abs(yaw_rate) > self.yaw_rate_threshold:
            px_p = px + v / yaw_rate * (np.sin(yaw + yaw_rate * dt) - np.sin(yaw))
            py_p = py + v / yaw_rate * (np.cos(yaw) - np.cos(yaw + yaw_rate * dt))
        else:
            px_p = px + v * dt * np.cos(yaw)
            py_p = py + v * dt * np.sin(yaw)

        v_p = v
        yaw_p = yaw + yaw_rate * dt
        yaw_rate_p = yaw_rate

        half_dt2 = 0.5 * dt * dt
        px_p += half_dt2 * nu_a * np.cos(yaw)
        py_p += half_dt2 * nu_a * np.sin(yaw)
        v_p += nu_a * dt
        yaw_p += half_dt2 * nu_yawdd
        yaw_rate_p += nu_yawdd * dt

        return np.array([px_p, py_p, v_p, yaw_p, yaw_rate_p])

    def predict_sigma_points(self, augmented_points: np.ndarray, dt: float) -> np.ndarray:
        """
        Propagate every augmented sigma point; the noise rows are dropped.

        Args:
            augmented_points: (7, n_sigma) augmented sigma points
            dt: Time step (seconds)

        Returns:
            (5, n_sigma) predicted sigma points
        """
        return np.column_stack([
            self.propagate_point(augmented_points[:, i], dt)
            for i in range(augmented_points.shape[1])
        ])

    def predict(self, generator: SigmaPointGenerator, x: np.ndarray, P: np.ndarray,
                dt: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Prediction step of the unscented filter.

        Args:
            generator: Sigma-point generator holding the weights and noise
            x: Current state mean
            P: Current state covariance
            dt: Time step (seconds), non-negative

        Returns:
            Tuple of (predicted sigma points, predicted mean, predicted covariance)

        Raises:
            SingularCovarianceError: If the augmented covariance cannot be factorized
        """
        if dt > 0:
            augmented = generator.augmented_sigma_points(x, P)
            points = self.predict_sigma_points(augmented, dt)
        else:
            points = generator.state_sigma_points(x, P)

        mean, covariance = generator.recombine(points, angle_index=YAW_INDEX)
        logger.debug(f"CTRV prediction completed, dt={dt:.4f}s")
        return points, mean, covariance
