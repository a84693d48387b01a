"""
Unscented Kalman Filter for lidar/radar object tracking.

This module orchestrates the unscented estimation engine for a single object
moving in the plane under the CTRV (constant turn rate and velocity
magnitude) model.

State Vector Definition:
    x = [px, py, v, ψ, ψ̇]ᵀ ∈ ℝ⁵

Where:
    - [px, py]: Position in the tracking frame (m)
    - v: Speed magnitude (m/s)
    - ψ: Heading (rad), kept in (-π, π]
    - ψ̇: Yaw rate (rad/s)

UKF Recursion:
    Prediction:
        χ = sigma points of (x̂, P) augmented with process noise
        χ⁻ = f(χ, Δt)
        x̂⁻ = Σ wᵢ χ⁻ᵢ,   P⁻ = Σ wᵢ (χ⁻ᵢ - x̂⁻)(χ⁻ᵢ - x̂⁻)ᵀ

    Update:
        Z = h(χ⁻),   ẑ = Σ wᵢ Zᵢ,   S = Σ wᵢ (Zᵢ - ẑ)(Zᵢ - ẑ)ᵀ + R
        K = Tc S⁻¹
        x̂ = x̂⁻ + K(z - ẑ),   P = P⁻ - K S Kᵀ

Lifecycle:
    The filter is uninitialized until the first measurement of an enabled
    sensor. That measurement sets position (radar via polar-to-Cartesian
    conversion), zero speed/heading/yaw rate and a fixed prior covariance.
    Each later measurement runs Predict then Update. Work is done on copies
    and committed only when both succeed, so a failed cycle leaves the prior
    estimate in place.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .angles import normalize_angle
from .consistency import ConsistencyMonitor
from .measurement import MeasurementModel, MeasurementPrediction, create_measurement_models
from .motion import CTRVMotionModel, YAW_INDEX
from .sigma_points import SigmaPointGenerator
from .update import Updater, UpdateResult
from ..sensors.package import MeasurementPackage, SensorType

logger = logging.getLogger(__name__)

STATE_DIMENSION = 5

MICROSECONDS_PER_SECOND = 1e6


@dataclass
class UKFConfig:
    """
    Filter configuration, fixed at construction.

    Process noise (std_a, std_yawdd) is the tuning knob. Measurement noise
    values come from the sensor manufacturer and are treated as constants.
    """
    std_a: float = 1.5             # Longitudinal acceleration noise [m/s²]
    std_yawdd: float = 2.0         # Yaw acceleration noise [rad/s²]
    std_laspx: float = 0.15        # Lidar x noise [m]
    std_laspy: float = 0.15        # Lidar y noise [m]
    std_radr: float = 0.3          # Radar range noise [m]
    std_radphi: float = 0.03       # Radar bearing noise [rad]
    std_radrd: float = 0.3         # Radar range-rate noise [m/s]
    use_laser: bool = True
    use_radar: bool = True
    yaw_rate_threshold: float = 1e-3
    min_radar_range: float = 1e-4
    spreading: Optional[float] = None
    initial_covariance_diagonal: Tuple[float, ...] = (1.0, 1.0, 1.0, 0.5, 0.5)
    nis_confidence: float = 0.95

    def __post_init__(self):
        """Validate configuration values."""
        if self.std_a <= 0 or self.std_yawdd <= 0:
            raise ValueError(
                f"Process noise must be positive, got std_a={self.std_a}, std_yawdd={self.std_yawdd}")

        measurement_noise = (self.std_laspx, self.std_laspy, self.std_radr,
                             self.std_radphi, self.std_radrd)
        if any(std < 0 for std in measurement_noise):
            raise ValueError("Measurement noise standard deviations must be non-negative")

        if not (self.use_laser or self.use_radar):
            raise ValueError("At least one of use_laser and use_radar must be enabled")

        if self.yaw_rate_threshold <= 0:
            raise ValueError(f"Yaw rate threshold must be positive, got {self.yaw_rate_threshold}")

        if self.min_radar_range <= 0:
            raise ValueError(f"Minimum radar range must be positive, got {self.min_radar_range}")

        if len(self.initial_covariance_diagonal) != STATE_DIMENSION:
            raise ValueError(
                f"Initial covariance diagonal must have {STATE_DIMENSION} elements, "
                f"got {len(self.initial_covariance_diagonal)}")
        if any(value <= 0 for value in self.initial_covariance_diagonal):
            raise ValueError("Initial covariance diagonal must be positive")

    def sensor_enabled(self, sensor_type: SensorType) -> bool:
        if sensor_type is SensorType.LIDAR:
            return self.use_laser
        return self.use_radar


@dataclass
class FilterState:
    """State mean and covariance owned by one estimator."""
    x: np.ndarray = field(default_factory=lambda: np.zeros(STATE_DIMENSION))
    P: np.ndarray = field(default_factory=lambda: np.eye(STATE_DIMENSION))

    def copy(self) -> 'FilterState':
        return FilterState(x=self.x.copy(), P=self.P.copy())


class ProcessingStatus(Enum):
    """Outcome of processing one measurement package."""
    INITIALIZED = "initialized"
    UPDATED = "updated"
    IGNORED = "ignored"


@dataclass
class EstimatorOutput:
    """Estimate exposed to the caller after each package."""
    status: ProcessingStatus
    state: np.ndarray
    covariance: np.ndarray
    timestamp_us: Optional[int]
    sensor_type: SensorType
    nis: Optional[float] = None
    ground_truth: Optional[np.ndarray] = None
    measurement: Optional[np.ndarray] = None


@dataclass
class Prediction:
    """Predicted sigma points and state distribution for one cycle."""
    points: np.ndarray
    x: np.ndarray
    P: np.ndarray
    dt: float


class UnscentedKalmanFilter:
    """
    Unscented Kalman Filter with CTRV motion and lidar/radar updates.

    Example:
        >>> ukf = UnscentedKalmanFilter()
        >>> output = ukf.process_measurement(package)
        >>> output.state, output.covariance, output.nis
    """

    def __init__(self, config: Optional[UKFConfig] = None):
        """
        Args:
            config: Filter configuration; defaults to UKFConfig()
        """
        self.config = config or UKFConfig()

        self.sigma_points = SigmaPointGenerator(
            std_a=self.config.std_a,
            std_yawdd=self.config.std_yawdd,
            n_x=STATE_DIMENSION,
            spreading=self.config.spreading,
        )
        self.motion_model = CTRVMotionModel(self.config.yaw_rate_threshold)
        self.measurement_models: Dict[SensorType, MeasurementModel] = create_measurement_models(
            std_laspx=self.config.std_laspx,
            std_laspy=self.config.std_laspy,
            std_radr=self.config.std_radr,
            std_radphi=self.config.std_radphi,
            std_radrd=self.config.std_radrd,
            min_radar_range=self.config.min_radar_range,
        )
        self.updater = Updater()
        self.consistency = ConsistencyMonitor(self.config.nis_confidence)

        self._state = FilterState()
        self._is_initialized = False
        self._timestamp_us: Optional[int] = None
        self._prediction_count = 0
        self._update_count = 0
        self._ignored_count = 0
        self._last_nis: Optional[float] = None

        logger.info("Unscented Kalman Filter created")

    @property
    def weights(self) -> np.ndarray:
        return self.sigma_points.weights

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def timestamp_us(self) -> Optional[int]:
        return self._timestamp_us

    @property
    def x(self) -> np.ndarray:
        """Copy of the state mean."""
        return self._state.x.copy()

    @property
    def P(self) -> np.ndarray:
        """Copy of the state covariance."""
        return self._state.P.copy()

    @property
    def state(self) -> FilterState:
        return self._state.copy()

    @property
    def initial_covariance(self) -> np.ndarray:
        return np.diag(np.asarray(self.config.initial_covariance_diagonal, dtype=float))

    def process_measurement(self, package: MeasurementPackage) -> EstimatorOutput:
        """
        Process one measurement package.

        Args:
            package: Sensor reading

        Returns:
            EstimatorOutput with the estimate after this package

        Raises:
            InvalidMeasurementError: If the package is malformed (state untouched)
            SingularCovarianceError: If Predict or Update cannot factorize a
                                     covariance (prior estimate retained)
        """
        package.validate()

        if not self.config.sensor_enabled(package.sensor_type):
            self._ignored_count += 1
            logger.debug(f"{package.sensor_type.value} disabled, package at "
                         f"{package.timestamp_us}us ignored")
            return self._output(ProcessingStatus.IGNORED, package)

        if not self._is_initialized:
            self.initialize(package)
            return self._output(ProcessingStatus.INITIALIZED, package)

        dt = self._elapsed_seconds(package.timestamp_us)
        prediction = self.predict(dt)
        result = self.update(package, prediction)

        self._state = FilterState(x=result.x, P=result.P)
        self._timestamp_us = max(self._timestamp_us, package.timestamp_us)
        self._prediction_count += 1
        self._update_count += 1
        self._last_nis = result.nis
        model = self.measurement_models[package.sensor_type]
        self.consistency.record(package.sensor_type, result.nis, model.dimension)

        return self._output(ProcessingStatus.UPDATED, package, nis=result.nis)

    def initialize(self, package: MeasurementPackage) -> None:
        """
        Set the state from the first measurement.

        Lidar gives position directly; radar range/bearing is converted to
        Cartesian coordinates. Speed, heading and yaw rate start at zero.
        """
        package.validate()
        z = package.raw_measurements

        if package.sensor_type is SensorType.LIDAR:
            px, py = z[0], z[1]
        else:
            rho, phi = z[0], z[1]
            px, py = rho * np.cos(phi), rho * np.sin(phi)

        self._state = FilterState(
            x=np.array([px, py, 0.0, 0.0, 0.0]),
            P=self.initial_covariance,
        )
        self._timestamp_us = package.timestamp_us
        self._is_initialized = True

        logger.info(f"Filter initialized from {package.sensor_type.value} at "
                    f"px={px:.3f}, py={py:.3f}")

    def _elapsed_seconds(self, timestamp_us: int) -> float:
        dt = (timestamp_us - self._timestamp_us) / MICROSECONDS_PER_SECOND
        if dt < 0:
            logger.warning(f"Non-monotonic timestamp {timestamp_us}us after "
                           f"{self._timestamp_us}us, skipping prediction")
            return 0.0
        return dt

    def predict(self, dt: float) -> Prediction:
        """
        Prediction step; does not modify the stored estimate.

        Args:
            dt: Elapsed time in seconds; negative values are clamped to zero

        Returns:
            Prediction holding sigma points, predicted mean and covariance

        Raises:
            RuntimeError: If the filter is not initialized
            SingularCovarianceError: If the augmented covariance is not positive definite
        """
        if not self._is_initialized:
            raise RuntimeError("Filter must be initialized before prediction")
        dt = max(0.0, float(dt))

        points, x_pred, P_pred = self.motion_model.predict(
            self.sigma_points, self._state.x, self._state.P, dt)
        x_pred[YAW_INDEX] = normalize_angle(x_pred[YAW_INDEX])

        return Prediction(points=points, x=x_pred, P=P_pred, dt=dt)

    def predict_measurement(self, prediction: Prediction,
                            sensor_type: SensorType) -> MeasurementPrediction:
        """Project a prediction into the measurement space of ``sensor_type``."""
        model = self.measurement_models[sensor_type]
        return model.predict_measurement(prediction.points, self.weights)

    def update(self, package: MeasurementPackage,
               prediction: Optional[Prediction] = None) -> UpdateResult:
        """
        Update step; does not modify the stored estimate.

        Args:
            package: Measurement to fuse
            prediction: Prediction to fuse into; predicted up to the
                        package timestamp when None

        Returns:
            UpdateResult with the fused state, covariance and NIS

        Raises:
            InvalidMeasurementError: If the package is malformed
            SingularCovarianceError: If S cannot be inverted
        """
        package.validate()
        if not self._is_initialized:
            raise RuntimeError("Filter must be initialized before update")
        if prediction is None:
            prediction = self.predict(self._elapsed_seconds(package.timestamp_us))

        model = self.measurement_models[package.sensor_type]
        measurement_prediction = model.predict_measurement(prediction.points, self.weights)
        return self.updater.update(
            prediction.x, prediction.P, prediction.points, measurement_prediction,
            package.raw_measurements, model, self.weights)

    def _output(self, status: ProcessingStatus, package: MeasurementPackage,
                nis: Optional[float] = None) -> EstimatorOutput:
        return EstimatorOutput(
            status=status,
            state=self.x,
            covariance=self.P,
            timestamp_us=self._timestamp_us,
            sensor_type=package.sensor_type,
            nis=nis,
            ground_truth=package.ground_truth,
            measurement=package.raw_measurements.copy(),
        )

    def reset(self) -> None:
        """Return to the uninitialized state."""
        self._state = FilterState()
        self._is_initialized = False
        self._timestamp_us = None
        self._prediction_count = 0
        self._update_count = 0
        self._ignored_count = 0
        self._last_nis = None
        self.consistency.reset()

        logger.info("Unscented Kalman Filter reset")

    def get_position_uncertainty(self) -> np.ndarray:
        """Position standard deviations in meters."""
        return np.sqrt(np.clip(np.diag(self._state.P)[:2], 0.0, None))

    def get_state_dict(self) -> Dict[str, Any]:
        """
        Snapshot of the estimate and filter statistics as plain Python values.
        """
        x = self._state.x
        return {
            'initialized': self._is_initialized,
            'timestamp_us': self._timestamp_us,
            'position': x[:2].tolist(),
            'speed': float(x[2]),
            'yaw': float(x[3]),
            'yaw_rate': float(x[4]),
            'position_uncertainty': self.get_position_uncertainty().tolist(),
            'covariance_trace': float(np.trace(self._state.P)),
            'prediction_count': self._prediction_count,
            'update_count': self._update_count,
            'ignored_count': self._ignored_count,
            'last_nis': self._last_nis,
            'nis_summary': self.consistency.summary(),
        }


# Component name used by callers that treat the filter as a generic estimator
StateEstimator = UnscentedKalmanFilter
