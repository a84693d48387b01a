"""
Augmented sigma-point generation for the unscented transform.

The process state x ∈ ℝ⁵ is extended with the two process-noise terms of the
CTRV model so that noise is carried through the nonlinear motion model:

    x_aug = [px, py, v, yaw, yaw_rate, ν_a, ν_yawdd]ᵀ ∈ ℝ⁷

    P_aug = | P   0              |
            | 0   diag(σ_a², σ_yawdd²) |

Sigma points (columns of a 7 × 15 matrix):

    χ₀     = x_aug
    χᵢ     = x_aug + √(λ + n_aug) · Lᵢ         i = 1..n_aug
    χᵢ₊ₙ   = x_aug - √(λ + n_aug) · Lᵢ

where L is the lower Cholesky factor of P_aug and λ the spreading parameter.

Weights:
    w₀ = λ / (λ + n_aug),   wᵢ = 1 / (2(λ + n_aug))
"""

import logging
from typing import Optional, Tuple

import numpy as np
import scipy.linalg

from .angles import normalize_component
from .errors import SingularCovarianceError

logger = logging.getLogger(__name__)

# Number of process-noise terms appended to the state
NOISE_DIMENSION = 2


class SigmaPointGenerator:
    """
    Builds augmented sigma points and the fixed weight vector.

    Attributes:
        n_x: State dimension
        n_aug: Augmented state dimension (n_x + 2)
        n_sigma: Number of sigma points (2·n_aug + 1)
        lambda_: Spreading parameter
        weights: Sigma-point weights, computed once at construction
    """

    def __init__(self, std_a: float, std_yawdd: float, n_x: int = 5,
                 spreading: Optional[float] = None):
        """
        Args:
            std_a: Longitudinal acceleration noise standard deviation (m/s²)
            std_yawdd: Yaw acceleration noise standard deviation (rad/s²)
            n_x: Dimension of the process state
            spreading: Spreading parameter λ; defaults to 3 - n_aug

        Raises:
            ValueError: If the spreading parameter makes λ + n_aug non-positive
        """
        self.n_x = n_x
        self.n_aug = n_x + NOISE_DIMENSION
        self.n_sigma = 2 * self.n_aug + 1
        self.lambda_ = float(3 - self.n_aug) if spreading is None else float(spreading)

        if self.lambda_ + self.n_aug <= 0:
            raise ValueError(
                f"Spreading parameter {self.lambda_} gives non-positive λ + n_aug")

        self.noise_covariance = np.diag([std_a ** 2, std_yawdd ** 2])
        self.weights = self._compute_weights()

    def _compute_weights(self) -> np.ndarray:
        denominator = self.lambda_ + self.n_aug
        weights = np.full(self.n_sigma, 0.5 / denominator)
        weights[0] = self.lambda_ / denominator
        return weights

    @property
    def scale(self) -> float:
        """Sigma-point spread factor √(λ + n_aug)."""
        return float(np.sqrt(self.lambda_ + self.n_aug))

    def augment(self, x: np.ndarray, P: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build the augmented mean and covariance.

        Args:
            x: State mean (n_x,)
            P: State covariance (n_x, n_x)

        Returns:
            Tuple of (x_aug, P_aug)
        """
        x_aug = np.zeros(self.n_aug)
        x_aug[:self.n_x] = x

        P_aug = np.zeros((self.n_aug, self.n_aug))
        P_aug[:self.n_x, :self.n_x] = P
        P_aug[self.n_x:, self.n_x:] = self.noise_covariance
        return x_aug, P_aug

    def augmented_sigma_points(self, x: np.ndarray, P: np.ndarray) -> np.ndarray:
        """
        Generate the augmented sigma-point matrix.

        Args:
            x: State mean (n_x,)
            P: State covariance (n_x, n_x)

        Returns:
            (n_aug, n_sigma) matrix, one sigma point per column

        Raises:
            SingularCovarianceError: If P_aug is not positive definite
        """
        x_aug, P_aug = self.augment(x, P)
        L = self._square_root(P_aug)
        return self._spread(x_aug, L)

    def state_sigma_points(self, x: np.ndarray, P: np.ndarray) -> np.ndarray:
        """
        Sigma points restricted to the state rows.

        Used when no time has elapsed: the noise terms have zero effect, so
        the state-space points are the first n_x rows of the augmented set.
        """
        return self.augmented_sigma_points(x, P)[:self.n_x]

    def _square_root(self, covariance: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(covariance)):
            raise SingularCovarianceError("Augmented covariance contains non-finite values")
        try:
            return scipy.linalg.cholesky(covariance, lower=True)
        except np.linalg.LinAlgError as exc:
            logger.warning("Cholesky decomposition of augmented covariance failed")
            raise SingularCovarianceError(
                "Augmented covariance is not positive definite") from exc

    def _spread(self, mean: np.ndarray, L: np.ndarray) -> np.ndarray:
        offsets = self.scale * L
        points = np.empty((mean.size, self.n_sigma))
        points[:, 0] = mean
        points[:, 1:self.n_aug + 1] = mean[:, np.newaxis] + offsets
        points[:, self.n_aug + 1:] = mean[:, np.newaxis] - offsets
        return points

    def recombine(self, points: np.ndarray,
                  angle_index: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Weighted mean and covariance of a sigma-point set.

        Args:
            points: (dim, n_sigma) sigma points
            angle_index: Row holding an angle whose deviations are wrapped

        Returns:
            Tuple of (mean, covariance)
        """
        mean = points @ self.weights
        deviations = points - mean[:, np.newaxis]
        if angle_index is not None:
            deviations = normalize_component(deviations, angle_index)
        covariance = (deviations * self.weights) @ deviations.T
        return mean, covariance
