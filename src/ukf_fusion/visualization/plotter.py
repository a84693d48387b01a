"""
Plots for estimator runs.

Classes:
    TrackingPlotter: Trajectory (truth, estimate, measurements) and NIS plots
"""

import logging
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import matplotlib.gridspec as gridspec
import numpy as np
from matplotlib.patches import Ellipse

from ..fusion.consistency import chi_square_threshold
from ..fusion.ukf import EstimatorOutput, ProcessingStatus
from ..io.dataset import measurement_position
from ..sensors.package import MEASUREMENT_DIMENSIONS, SensorType
from .metrics import nis_series

logger = logging.getLogger(__name__)

SENSOR_COLORS = {
    SensorType.LIDAR: 'tab:green',
    SensorType.RADAR: 'tab:orange',
}


class TrackingPlotter:
    """
    Static plots of a processed measurement stream.

    Parameters:
        confidence (float): χ² confidence level for NIS threshold lines and
                            covariance ellipses. Default: 0.95
        ellipse_every (int): Draw a position covariance ellipse every N
                             outputs; 0 disables ellipses. Default: 20
    """

    def __init__(self, confidence: float = 0.95, ellipse_every: int = 20):
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
        if ellipse_every < 0:
            raise ValueError("ellipse_every must be non-negative")
        self.confidence = confidence
        self.ellipse_every = ellipse_every

    def covariance_ellipse(self, mean: np.ndarray, covariance: np.ndarray, **kwargs) -> Ellipse:
        """Confidence ellipse of a 2-D Gaussian position estimate."""
        eigenvalues, eigenvectors = np.linalg.eigh(covariance)
        eigenvalues = np.clip(eigenvalues, 0.0, None)
        scale = np.sqrt(chi_square_threshold(2, self.confidence))
        width, height = 2.0 * scale * np.sqrt(eigenvalues[::-1])
        angle = np.degrees(np.arctan2(eigenvectors[1, -1], eigenvectors[0, -1]))
        return Ellipse(xy=mean, width=width, height=height, angle=angle, **kwargs)

    def plot_trajectory(self, ax, outputs: Sequence[EstimatorOutput]) -> None:
        """Estimated track, ground truth and raw measurements in the x-y plane."""
        processed = [o for o in outputs if o.status is not ProcessingStatus.IGNORED]
        if not processed:
            logger.warning("No processed outputs to plot")
            return

        estimates = np.array([o.state[:2] for o in processed])
        ax.plot(estimates[:, 0], estimates[:, 1], color='tab:blue', linewidth=1.5, label='UKF estimate')

        truth = [o.ground_truth[:2] for o in processed if o.ground_truth is not None]
        if truth:
            truth = np.array(truth)
            ax.plot(truth[:, 0], truth[:, 1], 'k--', linewidth=1.0, label='Ground truth')

        for sensor_type, color in SENSOR_COLORS.items():
            points = [measurement_position(o.sensor_type, o.measurement)
                      for o in processed if o.sensor_type is sensor_type]
            if points:
                points = np.array(points)
                ax.scatter(points[:, 0], points[:, 1], s=6, color=color, alpha=0.5,
                           label=f'{sensor_type.value} measurement')

        if self.ellipse_every:
            for output in processed[::self.ellipse_every]:
                ax.add_patch(self.covariance_ellipse(
                    output.state[:2], output.covariance[:2, :2],
                    fill=False, edgecolor='tab:blue', alpha=0.6))

        ax.set_xlabel('x [m]')
        ax.set_ylabel('y [m]')
        ax.set_aspect('equal', adjustable='datalim')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='best')
        ax.set_title('Trajectory')

    def plot_nis(self, ax, outputs: Sequence[EstimatorOutput], sensor_type: SensorType) -> None:
        """NIS over time for one sensor with its χ² threshold."""
        series = nis_series(outputs).get(sensor_type.value)
        threshold = chi_square_threshold(MEASUREMENT_DIMENSIONS[sensor_type], self.confidence)

        if series is not None:
            ax.plot(series[:, 0], series[:, 1], color=SENSOR_COLORS[sensor_type], linewidth=1.0)
        ax.axhline(threshold, color='tab:red', linestyle='--',
                   label=f'χ² {100 * self.confidence:.0f}% = {threshold:.3f}')
        ax.set_xlabel('time [s]')
        ax.set_ylabel('NIS')
        ax.set_title(f'{sensor_type.value} NIS')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right')

    def create_figure(self, outputs: Sequence[EstimatorOutput]):
        """Figure with the trajectory on the left and both NIS plots on the right."""
        fig = plt.figure(figsize=(14, 8))
        gs = gridspec.GridSpec(2, 2, figure=fig, width_ratios=[3, 2], hspace=0.35, wspace=0.25)

        self.plot_trajectory(fig.add_subplot(gs[:, 0]), outputs)
        self.plot_nis(fig.add_subplot(gs[0, 1]), outputs, SensorType.LIDAR)
        self.plot_nis(fig.add_subplot(gs[1, 1]), outputs, SensorType.RADAR)

        fig.suptitle('Unscented Kalman Filter tracking', fontsize=14, fontweight='bold')
        return fig

    def show(self, outputs: Sequence[EstimatorOutput], save_path: Optional[str] = None) -> None:
        """Render the figure, saving it when ``save_path`` is given, else showing it."""
        fig = self.create_figure(outputs)
        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
            logger.info(f"Figure saved to {save_path}")
            plt.close(fig)
        else:
            plt.show()
