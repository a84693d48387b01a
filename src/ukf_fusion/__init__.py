"""
ukf-fusion: Lidar and Radar Object Tracking with an Unscented Kalman Filter

A scientific Python package for tracking a single object moving in the plane
by fusing asynchronous lidar and radar measurements.

This package implements:
- Unscented Kalman Filter with augmented sigma points
- CTRV (constant turn rate and velocity) motion model
- Linear lidar and nonlinear radar measurement models
- NIS consistency monitoring
- Simulated sensors, CTRV ground truth and dataset I/O
- RMSE evaluation and trajectory/NIS plots
"""

from .fusion.ukf import UnscentedKalmanFilter, StateEstimator, UKFConfig, EstimatorOutput
from .fusion.errors import FilterError, SingularCovarianceError, InvalidMeasurementError
from .sensors.package import MeasurementPackage, SensorType
from .sensors.lidar import LidarSensor
from .sensors.radar import RadarSensor
from .simulation.trajectory import CTRVTrajectory, generate_scenario

__version__ = "1.0.0"
__author__ = "ukf-fusion developers"

__all__ = [
    "UnscentedKalmanFilter",
    "StateEstimator",
    "UKFConfig",
    "EstimatorOutput",
    "FilterError",
    "SingularCovarianceError",
    "InvalidMeasurementError",
    "MeasurementPackage",
    "SensorType",
    "LidarSensor",
    "RadarSensor",
    "CTRVTrajectory",
    "generate_scenario",
]
