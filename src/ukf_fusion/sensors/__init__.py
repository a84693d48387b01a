"""
Sensor modules for ukf-fusion.

This module contains the measurement package type shared with the estimator
and simulated lidar and radar sensors with Gaussian noise models.
"""

from .package import MeasurementPackage, SensorType, MEASUREMENT_DIMENSIONS, ground_truth_vector
from .lidar import LidarSensor
from .radar import RadarSensor

__all__ = [
    "MeasurementPackage",
    "SensorType",
    "MEASUREMENT_DIMENSIONS",
    "ground_truth_vector",
    "LidarSensor",
    "RadarSensor",
]
