"""
Filter consistency diagnostics.

Normalized Innovation Squared:
    ε = yᵀ S⁻¹ y

For a consistent filter ε follows a χ² distribution with as many degrees of
freedom as the measurement dimension. Counting how often ε exceeds the χ²
quantile tells whether the process noise is tuned too low (frequent
exceedance) or too high (almost none). The monitor only observes; it never
changes the filter state.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np
from scipy import stats

from ..sensors.package import SensorType

logger = logging.getLogger(__name__)


def normalized_innovation_squared(innovation: np.ndarray, S_inv: np.ndarray) -> float:
    """
    Compute NIS = yᵀ S⁻¹ y.

    Args:
        innovation: Measurement residual y
        S_inv: Inverse of the predicted measurement covariance

    Returns:
        Scalar NIS value
    """
    innovation = np.asarray(innovation, dtype=float)
    return float(innovation @ S_inv @ innovation)


def chi_square_threshold(dof: int, confidence: float = 0.95) -> float:
    """χ² quantile for ``dof`` degrees of freedom (5.991 for 2, 7.815 for 3 at 95 %)."""
    return float(stats.chi2.ppf(confidence, dof))


class ConsistencyMonitor:
    """
    Records NIS values per sensor and compares them with χ² thresholds.

    Attributes:
        confidence: Quantile used for the χ² threshold
        history: NIS values per sensor type, in arrival order
    """

    def __init__(self, confidence: float = 0.95):
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
        self.confidence = confidence
        self.history: Dict[SensorType, List[float]] = defaultdict(list)
        self._dimensions: Dict[SensorType, int] = {}

    def record(self, sensor_type: SensorType, nis: float, dimension: int) -> None:
        """Store one NIS value for a sensor with the given measurement dimension."""
        self.history[sensor_type].append(float(nis))
        self._dimensions[sensor_type] = dimension

    def threshold(self, sensor_type: SensorType) -> Optional[float]:
        if sensor_type not in self._dimensions:
            return None
        return chi_square_threshold(self._dimensions[sensor_type], self.confidence)

    def exceedance_ratio(self, sensor_type: SensorType) -> float:
        """Fraction of recorded NIS values above the χ² threshold."""
        values = self.history.get(sensor_type)
        if not values:
            return 0.0
        return float(np.mean(np.asarray(values) > self.threshold(sensor_type)))

    def summary(self) -> Dict[str, Dict[str, float]]:
        """
        Per-sensor NIS summary.

        Returns:
            Dictionary keyed by sensor name with count, mean, threshold and
            exceedance ratio
        """
        report = {}
        for sensor_type, values in self.history.items():
            if not values:
                continue
            report[sensor_type.value] = {
                'count': len(values),
                'mean_nis': float(np.mean(values)),
                'threshold': self.threshold(sensor_type),
                'exceedance_ratio': self.exceedance_ratio(sensor_type),
            }
        return report

    def reset(self) -> None:
        self.history.clear()
        self._dimensions.clear()
