"""
Simulation components for ukf-fusion.

Components:
    - CTRVTrajectory: Closed-form ground truth for a constant turn rate object
    - generate_scenario: Interleaved lidar/radar measurement stream
"""

from .trajectory import CTRVTrajectory, ScenarioParameters, TrajectoryParameters, generate_scenario

__all__ = [
    "CTRVTrajectory",
    "TrajectoryParameters",
    "ScenarioParameters",
    "generate_scenario",
]
