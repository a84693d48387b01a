"""
Unscented estimation engine for ukf-fusion.

This module implements the sigma-point generator, the CTRV motion model, the
lidar and radar measurement models, the measurement update and the NIS
consistency monitor, orchestrated by UnscentedKalmanFilter.
"""

from .angles import normalize_angle
from .consistency import ConsistencyMonitor, chi_square_threshold, normalized_innovation_squared
from .errors import FilterError, InvalidMeasurementError, SingularCovarianceError
from .measurement import LidarModel, MeasurementModel, MeasurementPrediction, RadarModel
from .motion import CTRVMotionModel
from .sigma_points import SigmaPointGenerator
from .ukf import (
    EstimatorOutput,
    FilterState,
    ProcessingStatus,
    StateEstimator,
    UKFConfig,
    UnscentedKalmanFilter,
)
from .update import Updater, UpdateResult

__all__ = [
    "UnscentedKalmanFilter",
    "StateEstimator",
    "UKFConfig",
    "FilterState",
    "EstimatorOutput",
    "ProcessingStatus",
    "SigmaPointGenerator",
    "CTRVMotionModel",
    "MeasurementModel",
    "MeasurementPrediction",
    "LidarModel",
    "RadarModel",
    "Updater",
    "UpdateResult",
    "ConsistencyMonitor",
    "normalized_innovation_squared",
    "chi_square_threshold",
    "normalize_angle",
    "FilterError",
    "SingularCovarianceError",
    "InvalidMeasurementError",
]
