"""
Unscented measurement update.

    Tc = Σ wᵢ (Xᵢ - x̂)(Zᵢ - ẑ)ᵀ
    K  = Tc S⁻¹
    y  = z - ẑ
    x̂ ← x̂ + K y
    P  ← P - K S Kᵀ

State deviations are wrapped at the heading index and measurement deviations
at the sensor's angular index, if it has one.
"""

import logging
from dataclasses import dataclass

import numpy as np
import scipy.linalg

from .angles import normalize_angle, normalize_component
from .consistency import normalized_innovation_squared
from .errors import SingularCovarianceError
from .measurement import MeasurementModel, MeasurementPrediction
from .motion import YAW_INDEX

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Fused estimate and the per-update intermediates."""
    x: np.ndarray
    P: np.ndarray
    innovation: np.ndarray
    innovation_covariance: np.ndarray
    gain: np.ndarray
    nis: float


class Updater:
    """Fuses a measurement into a predicted state using sigma-point statistics."""

    def cross_correlation(self, state_points: np.ndarray, x: np.ndarray,
                          prediction: MeasurementPrediction, model: MeasurementModel,
                          weights: np.ndarray) -> np.ndarray:
        """
        Cross-correlation between state and measurement sigma-point deviations.

        Returns:
            (n_x, n_z) matrix Tc
        """
        state_dev = normalize_component(state_points - x[:, np.newaxis], YAW_INDEX)
        meas_dev = prediction.points - prediction.mean[:, np.newaxis]
        if model.angle_index is not None:
            meas_dev = normalize_component(meas_dev, model.angle_index)
        return (state_dev * weights) @ meas_dev.T

    def update(self, x: np.ndarray, P: np.ndarray, state_points: np.ndarray,
               prediction: MeasurementPrediction, z: np.ndarray,
               model: MeasurementModel, weights: np.ndarray) -> UpdateResult:
        """
        Fuse measurement z into the predicted state.

        Args:
            x: Predicted state mean
            P: Predicted state covariance
            state_points: Predicted state sigma points
            prediction: Predicted measurement distribution
            z: Actual measurement
            model: Measurement model of the sensor that produced z
            weights: Sigma-point weights

        Returns:
            UpdateResult with the fused state and covariance

        Raises:
            SingularCovarianceError: If S cannot be inverted
        """
        S = prediction.covariance
        S_inv = self._invert(S)

        Tc = self.cross_correlation(state_points, x, prediction, model, weights)
        K = Tc @ S_inv

        innovation = model.residual(z, prediction.mean)

        x_new = x + K @ innovation
        x_new[YAW_INDEX] = normalize_angle(x_new[YAW_INDEX])

        P_new = P - K @ S @ K.T
        P_new = (P_new + P_new.T) * 0.5

        nis = normalized_innovation_squared(innovation, S_inv)
        logger.debug(f"{model.sensor_type.value} update applied: NIS={nis:.3f}")

        return UpdateResult(x=x_new, P=P_new, innovation=innovation,
                            innovation_covariance=S, gain=K, nis=nis)

    @staticmethod
    def _invert(S: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(S)):
            raise SingularCovarianceError("Measurement covariance contains non-finite values")
        try:
            S_inv = scipy.linalg.inv(S)
        except np.linalg.LinAlgError as exc:
            logger.warning("Singular measurement covariance")
            raise SingularCovarianceError("Measurement covariance is not invertible") from exc
        if not np.all(np.isfinite(S_inv)):
            raise SingularCovarianceError("Measurement covariance inverse is not finite")
        return S_inv
