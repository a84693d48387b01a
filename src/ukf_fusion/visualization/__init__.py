"""
Evaluation and visualization for ukf-fusion.

This module provides RMSE and NIS statistics for runs with ground truth and
matplotlib plots of trajectories and filter consistency.
"""

from .metrics import (
    TrackingStatistics,
    compute_rmse,
    evaluate_run,
    format_report,
    nis_series,
    position_error_statistics,
    state_to_cartesian,
)
from .plotter import TrackingPlotter

__all__ = [
    "TrackingStatistics",
    "compute_rmse",
    "evaluate_run",
    "format_report",
    "nis_series",
    "position_error_statistics",
    "state_to_cartesian",
    "TrackingPlotter",
]
