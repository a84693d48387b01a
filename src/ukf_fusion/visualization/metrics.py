"""
Accuracy metrics for estimator runs with ground truth.

RMSE per component:
    RMSE_j = √( (1/N) Σₖ (x̂ₖⱼ - xₖⱼ)² )

evaluated on [px, py, vx, vy], the layout used by the recorded datasets
(the filter's speed and heading are converted to Cartesian velocity).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np

from ..fusion.ukf import EstimatorOutput, ProcessingStatus
from ..io.dataset import measurement_position

logger = logging.getLogger(__name__)


@dataclass
class TrackingStatistics:
    """Container for position-error statistics."""
    rmse: float
    max_error: float
    mean_error: float
    std_error: float
    median_error: float
    percentile_95: float
    sample_count: int


def compute_rmse(estimates: np.ndarray, ground_truth: np.ndarray) -> np.ndarray:
    """
    Root-mean-square error per column.

    Args:
        estimates: (N, d) estimates
        ground_truth: (N, d) true values

    Returns:
        (d,) RMSE vector

    Raises:
        ValueError: If inputs are empty or shapes differ
    """
    estimates = np.atleast_2d(np.asarray(estimates, dtype=float))
    ground_truth = np.atleast_2d(np.asarray(ground_truth, dtype=float))
    if estimates.shape != ground_truth.shape:
        raise ValueError(f"Shape mismatch: {estimates.shape} vs {ground_truth.shape}")
    if estimates.size == 0:
        raise ValueError("Cannot compute RMSE of empty input")
    return np.sqrt(np.mean((estimates - ground_truth) ** 2, axis=0))


def state_to_cartesian(state: np.ndarray) -> np.ndarray:
    """CTRV state [px, py, v, yaw, yaw_rate] → [px, py, vx, vy]."""
    px, py, v, yaw = state[0], state[1], state[2], state[3]
    return np.array([px, py, v * np.cos(yaw), v * np.sin(yaw)])


def position_error_statistics(estimated: np.ndarray, truth: np.ndarray) -> TrackingStatistics:
    """
    Error statistics of 2-D positions.

    Args:
        estimated: (N, 2) estimated positions
        truth: (N, 2) true positions
    """
    errors = np.linalg.norm(np.asarray(estimated) - np.asarray(truth), axis=1)
    if errors.size == 0:
        raise ValueError("Cannot compute statistics of empty input")
    return TrackingStatistics(
        rmse=float(np.sqrt(np.mean(errors ** 2))),
        max_error=float(np.max(errors)),
        mean_error=float(np.mean(errors)),
        std_error=float(np.std(errors)),
        median_error=float(np.median(errors)),
        percentile_95=float(np.percentile(errors, 95)),
        sample_count=int(errors.size),
    )


def _evaluated(outputs: Iterable[EstimatorOutput], skip: int) -> List[EstimatorOutput]:
    usable = [
        output for output in outputs
        if output.ground_truth is not None and output.status is not ProcessingStatus.IGNORED
    ]
    return usable[skip:]


def evaluate_run(outputs: Iterable[EstimatorOutput], skip: int = 0) -> Dict[str, object]:
    """
    Compare estimator outputs with their ground truth.

    Args:
        outputs: Estimator outputs carrying ground truth
        skip: Number of leading outputs to leave out (filter warm-up)

    Returns:
        Dictionary with the estimate RMSE [px, py, vx, vy], the position RMSE
        of the raw measurements and position-error statistics for both
    """
    usable = _evaluated(outputs, skip)
    if not usable:
        raise ValueError("No outputs with ground truth to evaluate")

    estimates = np.array([state_to_cartesian(o.state) for o in usable])
    truth = np.array([o.ground_truth[:4] for o in usable])
    measured = np.array([measurement_position(o.sensor_type, o.measurement) for o in usable])

    rmse = compute_rmse(estimates, truth)
    measurement_rmse = compute_rmse(measured, truth[:, :2])

    report = {
        'rmse': rmse,
        'measurement_rmse': measurement_rmse,
        'estimate_statistics': position_error_statistics(estimates[:, :2], truth[:, :2]),
        'measurement_statistics': position_error_statistics(measured, truth[:, :2]),
    }
    logger.info(f"Run evaluated over {len(usable)} outputs: "
                f"RMSE px={rmse[0]:.4f}, py={rmse[1]:.4f}, vx={rmse[2]:.4f}, vy={rmse[3]:.4f}")
    return report


def nis_series(outputs: Iterable[EstimatorOutput]) -> Dict[str, np.ndarray]:
    """
    NIS values per sensor as (timestamp_s, nis) arrays.

    Returns:
        Dictionary keyed by sensor name with an (N, 2) array
    """
    series: Dict[str, List[List[float]]] = {}
    for output in outputs:
        if output.nis is None:
            continue
        series.setdefault(output.sensor_type.value, []).append(
            [output.timestamp_us / 1e6, output.nis])
    return {name: np.array(values) for name, values in series.items()}


def format_report(report: Dict[str, object],
                  nis_summary: Optional[Dict[str, Dict[str, float]]] = None) -> str:
    """Human-readable summary of an evaluation report."""
    rmse = report['rmse']
    lines = [
        "Estimate RMSE:",
        f"  px={rmse[0]:.4f}  py={rmse[1]:.4f}  vx={rmse[2]:.4f}  vy={rmse[3]:.4f}",
        "Raw measurement position RMSE:",
        f"  px={report['measurement_rmse'][0]:.4f}  py={report['measurement_rmse'][1]:.4f}",
    ]
    stats = report['estimate_statistics']
    lines.append(f"Position error: mean={stats.mean_error:.4f} m, "
                 f"95th percentile={stats.percentile_95:.4f} m, max={stats.max_error:.4f} m")
    for sensor, summary in (nis_summary or {}).items():
        lines.append(f"NIS {sensor}: n={summary['count']}, mean={summary['mean_nis']:.3f}, "
                     f"{100 * summary['exceedance_ratio']:.1f}% above "
                     f"{summary['threshold']:.3f}")
    return '\n'.join(lines)
