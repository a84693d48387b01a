import logging

import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ukf_fusion.fusion.angles import normalize_angle
from ukf_fusion.fusion import (
    InvalidMeasurementError,
    ProcessingStatus,
    SingularCovarianceError,
    StateEstimator,
    UKFConfig,
    UnscentedKalmanFilter,
)
from ukf_fusion.sensors import MeasurementPackage, SensorType
from ukf_fusion.simulation import CTRVTrajectory, ScenarioParameters, generate_scenario
from ukf_fusion.visualization import evaluate_run

PRIOR = np.diag([1.0, 1.0, 1.0, 0.5, 0.5])


def lidar(timestamp_us, px, py, ground_truth=None):
    return MeasurementPackage(SensorType.LIDAR, timestamp_us, np.array([px, py]), ground_truth)


def radar(timestamp_us, rho, phi, rho_dot, ground_truth=None):
    return MeasurementPackage(SensorType.RADAR, timestamp_us, np.array([rho, phi, rho_dot]),
                              ground_truth)


class TestUKFConfig:
    """Test configuration validation"""

    def test_defaults(self):
        config = UKFConfig()
        assert config.std_a == 1.5
        assert config.std_yawdd == 2.0
        assert config.use_laser and config.use_radar
        assert config.initial_covariance_diagonal == (1.0, 1.0, 1.0, 0.5, 0.5)

    @pytest.mark.parametrize("kwargs", [
        {'std_a': 0.0},
        {'std_yawdd': -1.0},
        {'std_radr': -0.1},
        {'use_laser': False, 'use_radar': False},
        {'yaw_rate_threshold': 0.0},
        {'min_radar_range': 0.0},
        {'initial_covariance_diagonal': (1.0, 1.0, 1.0)},
        {'initial_covariance_diagonal': (1.0, 1.0, 0.0, 0.5, 0.5)},
    ])
    def test_invalid_configuration(self, kwargs):
        """Test invalid settings raise ValueError"""
        with pytest.raises(ValueError):
            UKFConfig(**kwargs)

    def test_sensor_enabled(self):
        config = UKFConfig(use_radar=False)
        assert config.sensor_enabled(SensorType.LIDAR)
        assert not config.sensor_enabled(SensorType.RADAR)


class TestInitialization:
    """Test the first-measurement initialization"""

    @pytest.fixture
    def ukf(self):
        return UnscentedKalmanFilter()

    def test_starts_uninitialized(self, ukf):
        assert not ukf.is_initialized
        assert ukf.timestamp_us is None

    def test_lidar_initialization(self, ukf):
        """Test a first lidar reading sets position and the fixed prior"""
        output = ukf.process_measurement(lidar(0, 1.0, 2.0))

        assert output.status is ProcessingStatus.INITIALIZED
        assert output.nis is None
        assert ukf.is_initialized
        assert ukf.timestamp_us == 0
        np.testing.assert_allclose(ukf.x, [1.0, 2.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(ukf.P, PRIOR)
        np.testing.assert_allclose(output.state, ukf.x)
        np.testing.assert_allclose(output.covariance, PRIOR)

    def test_radar_initialization(self, ukf):
        """Test a first radar reading is converted from polar coordinates"""
        output = ukf.process_measurement(radar(1000, 5.0, 0.0, 0.0))

        assert output.status is ProcessingStatus.INITIALIZED
        np.testing.assert_allclose(ukf.x, [5.0, 0.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(ukf.P, PRIOR)
        assert ukf.timestamp_us == 1000

    def test_radar_initialization_bearing(self, ukf):
        ukf.process_measurement(radar(0, 2.0, np.pi / 2, 1.0))
        np.testing.assert_allclose(ukf.x, [0.0, 2.0, 0.0, 0.0, 0.0], atol=1e-12)

    def test_custom_prior(self):
        ukf = UnscentedKalmanFilter(UKFConfig(initial_covariance_diagonal=(2.0, 2.0, 4.0, 1.0, 1.0)))
        ukf.process_measurement(lidar(0, 0.0, 0.0))
        np.testing.assert_allclose(ukf.P, np.diag([2.0, 2.0, 4.0, 1.0, 1.0]))

    def test_state_is_a_copy(self, ukf):
        """Test exposed state cannot be modified from outside"""
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        state = ukf.state
        state.x[0] = 100.0
        ukf.x[1] = 100.0

        np.testing.assert_allclose(ukf.x, [1.0, 2.0, 0.0, 0.0, 0.0])


class TestMeasurementCycle:
    """Test predict/update cycles"""

    @pytest.fixture
    def ukf(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        return ukf

    def test_zero_dt_lidar_update(self, ukf):
        """Test a same-time lidar update against the closed-form Kalman gain"""
        output = ukf.process_measurement(lidar(0, 1.5, 2.0))

        gain = 1.0 / 1.0225
        assert output.status is ProcessingStatus.UPDATED
        assert ukf.x[0] == pytest.approx(1.0 + 0.5 * gain)
        assert ukf.x[1] == pytest.approx(2.0)
        assert ukf.P[0, 0] == pytest.approx(0.0225 / 1.0225)
        assert output.nis == pytest.approx(0.25 / 1.0225)

    def test_update_advances_timestamp(self, ukf):
        output = ukf.process_measurement(radar(100000, 2.3, 1.1, 0.5))

        assert output.status is ProcessingStatus.UPDATED
        assert output.timestamp_us == 100000
        assert ukf.timestamp_us == 100000
        assert output.nis >= 0.0

    def test_nis_recorded(self, ukf):
        ukf.process_measurement(lidar(50000, 1.1, 2.1))
        ukf.process_measurement(radar(100000, 2.3, 1.1, 0.5))

        summary = ukf.consistency.summary()
        assert summary['lidar']['count'] == 1
        assert summary['radar']['count'] == 1

    def test_non_monotonic_timestamp(self, ukf, caplog):
        """Test an out-of-order package is fused with dt clamped to zero"""
        ukf.process_measurement(lidar(1000000, 1.2, 2.1))

        with caplog.at_level(logging.WARNING):
            output = ukf.process_measurement(lidar(500000, 1.2, 2.1))

        assert output.status is ProcessingStatus.UPDATED
        assert ukf.timestamp_us == 1000000
        assert "Non-monotonic" in caplog.text

    def test_predict_does_not_mutate(self, ukf):
        """Test predict returns a prediction and leaves the estimate alone"""
        prediction = ukf.predict(0.1)

        assert prediction.points.shape == (5, 15)
        assert prediction.dt == pytest.approx(0.1)
        np.testing.assert_allclose(ukf.x, [1.0, 2.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(ukf.P, PRIOR)

    def test_update_does_not_mutate(self, ukf):
        """Test update computes the fused estimate without committing it"""
        result = ukf.update(lidar(100000, 1.4, 2.2))

        assert result.nis >= 0.0
        assert result.x[0] > 1.0
        np.testing.assert_allclose(ukf.x, [1.0, 2.0, 0.0, 0.0, 0.0])
        assert ukf.timestamp_us == 0

    def test_predict_measurement(self, ukf):
        prediction = ukf.predict(0.0)
        measurement = ukf.predict_measurement(prediction, SensorType.RADAR)

        assert measurement.mean.shape == (3,)
        assert measurement.covariance.shape == (3, 3)

    def test_exact_radar_reading_behind_sensor(self):
        """Test a perfect radar reading on the negative x-axis keeps the estimate on the axis"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, -5.0, 0.0))

        measurement = ukf.predict_measurement(ukf.predict(0.0), SensorType.RADAR)
        output = ukf.process_measurement(radar(0, 5.0, np.pi, 0.0))

        assert abs(normalize_angle(measurement.mean[1] - np.pi)) < 1e-9
        assert measurement.covariance[1, 1] < 0.1
        assert output.status is ProcessingStatus.UPDATED
        assert ukf.x[1] == pytest.approx(0.0, abs=1e-6)
        assert abs(ukf.x[0] + 5.0) < 0.2

    def test_predict_requires_initialization(self):
        with pytest.raises(RuntimeError):
            UnscentedKalmanFilter().predict(0.1)

    def test_update_requires_initialization(self):
        with pytest.raises(RuntimeError):
            UnscentedKalmanFilter().update(lidar(0, 1.0, 1.0))


class TestSensorGating:
    """Test packages from disabled sensors are ignored entirely"""

    def test_disabled_sensor_does_not_initialize(self):
        ukf = UnscentedKalmanFilter(UKFConfig(use_radar=False))

        output = ukf.process_measurement(radar(0, 5.0, 0.0, 0.0))

        assert output.status is ProcessingStatus.IGNORED
        assert not ukf.is_initialized
        assert ukf.timestamp_us is None

    def test_disabled_sensor_after_initialization(self):
        ukf = UnscentedKalmanFilter(UKFConfig(use_laser=False))
        ukf.process_measurement(radar(0, 5.0, 0.0, 0.0))
        x_before, P_before = ukf.x, ukf.P

        output = ukf.process_measurement(lidar(100000, 9.0, 9.0))

        assert output.status is ProcessingStatus.IGNORED
        assert output.nis is None
        np.testing.assert_allclose(ukf.x, x_before)
        np.testing.assert_allclose(ukf.P, P_before)
        assert ukf.timestamp_us == 0
        assert ukf.get_state_dict()['ignored_count'] == 1


class TestFailureHandling:
    """Test that rejected packages and failed cycles leave the estimate intact"""

    @pytest.fixture
    def ukf(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        ukf.process_measurement(radar(50000, 2.2, 1.1, 0.3))
        return ukf

    @pytest.mark.parametrize("package", [
        MeasurementPackage(SensorType.LIDAR, 100000, np.array([np.nan, 1.0])),
        MeasurementPackage(SensorType.LIDAR, 100000, np.array([1.0, 1.0, 1.0])),
        MeasurementPackage(SensorType.RADAR, 100000, np.array([1.0, 0.1])),
        MeasurementPackage(SensorType.RADAR, 100000, np.array([1.0, 0.1, np.inf])),
        MeasurementPackage(SensorType.LIDAR, -5, np.array([1.0, 1.0])),
        MeasurementPackage('sonar', 100000, np.array([1.0, 1.0])),
    ])
    def test_invalid_measurement(self, ukf, package):
        x_before, P_before, t_before = ukf.x, ukf.P, ukf.timestamp_us

        with pytest.raises(InvalidMeasurementError):
            ukf.process_measurement(package)

        np.testing.assert_allclose(ukf.x, x_before)
        np.testing.assert_allclose(ukf.P, P_before)
        assert ukf.timestamp_us == t_before

    def test_invalid_measurement_is_value_error(self, ukf):
        with pytest.raises(ValueError):
            ukf.process_measurement(lidar(100000, np.nan, 0.0))

    def test_singular_update_keeps_prior(self, ukf, monkeypatch):
        """Test a failed inversion propagates and nothing is committed"""
        def fail(S):
            raise SingularCovarianceError("forced")

        monkeypatch.setattr(ukf.updater, '_invert', fail)
        x_before, P_before, t_before = ukf.x, ukf.P, ukf.timestamp_us
        count_before = len(ukf.consistency.history[SensorType.LIDAR])

        with pytest.raises(SingularCovarianceError):
            ukf.process_measurement(lidar(100000, 1.5, 2.5))

        np.testing.assert_allclose(ukf.x, x_before)
        np.testing.assert_allclose(ukf.P, P_before)
        assert ukf.timestamp_us == t_before
        assert len(ukf.consistency.history[SensorType.LIDAR]) == count_before

    def test_singular_prediction_keeps_prior(self, ukf, monkeypatch):
        def fail(x, P):
            raise SingularCovarianceError("forced")

        monkeypatch.setattr(ukf.sigma_points, 'augmented_sigma_points', fail)
        x_before = ukf.x

        with pytest.raises(SingularCovarianceError):
            ukf.process_measurement(radar(100000, 2.3, 1.1, 0.3))

        np.testing.assert_allclose(ukf.x, x_before)
        assert ukf.timestamp_us == 50000

    def test_recovers_after_failure(self, ukf, monkeypatch):
        """Test processing continues normally after a failed cycle"""
        def fail(S):
            raise SingularCovarianceError("forced")

        monkeypatch.setattr(ukf.updater, '_invert', fail)
        with pytest.raises(SingularCovarianceError):
            ukf.process_measurement(lidar(100000, 1.5, 2.5))
        monkeypatch.undo()

        output = ukf.process_measurement(lidar(100000, 1.5, 2.5))
        assert output.status is ProcessingStatus.UPDATED


class TestEstimatorLifecycle:

    def test_reset(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        ukf.process_measurement(lidar(50000, 1.1, 2.0))

        ukf.reset()

        assert not ukf.is_initialized
        assert ukf.timestamp_us is None
        assert ukf.consistency.summary() == {}

        output = ukf.process_measurement(radar(0, 5.0, 0.0, 0.0))
        assert output.status is ProcessingStatus.INITIALIZED

    def test_state_dict(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        ukf.process_measurement(lidar(50000, 1.1, 2.0))

        snapshot = ukf.get_state_dict()

        assert snapshot['initialized'] is True
        assert snapshot['timestamp_us'] == 50000
        assert snapshot['update_count'] == 1
        assert snapshot['prediction_count'] == 1
        assert len(snapshot['position']) == 2
        assert snapshot['last_nis'] is not None
        assert 'lidar' in snapshot['nis_summary']

    def test_position_uncertainty(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(lidar(0, 1.0, 2.0))
        np.testing.assert_allclose(ukf.get_position_uncertainty(), [1.0, 1.0])

    def test_state_estimator_alias(self):
        assert StateEstimator is UnscentedKalmanFilter

    def test_output_carries_measurement_and_truth(self):
        ukf = UnscentedKalmanFilter()
        truth = np.array([1.0, 2.0, 0.5, 0.0])
        output = ukf.process_measurement(lidar(0, 1.1, 2.1, ground_truth=truth))

        np.testing.assert_allclose(output.measurement, [1.1, 2.1])
        np.testing.assert_allclose(output.ground_truth, truth)
        assert output.sensor_type is SensorType.LIDAR


class TestTrackingPerformance:
    """End-to-end tracking on a simulated CTRV trajectory"""

    @pytest.fixture
    def run(self):
        packages = generate_scenario(
            CTRVTrajectory(),
            ScenarioParameters(duration=10.0),
            rng=np.random.default_rng(42),
        )
        ukf = UnscentedKalmanFilter()
        outputs = [ukf.process_measurement(package) for package in packages]
        return ukf, outputs

    def test_covariance_stays_symmetric_psd(self, run):
        _, outputs = run
        for output in outputs:
            P = output.covariance
            np.testing.assert_allclose(P, P.T, atol=1e-9)
            assert np.min(np.linalg.eigvalsh(P)) >= -1e-9

    def test_heading_stays_normalized(self, run):
        _, outputs = run
        for output in outputs:
            assert -np.pi < output.state[3] <= np.pi

    def test_filter_beats_raw_measurements(self, run):
        """Test the fused position is closer to the truth than the raw readings"""
        _, outputs = run
        report = evaluate_run(outputs, skip=50)

        estimate = report['estimate_statistics']
        measured = report['measurement_statistics']
        assert estimate.rmse < measured.rmse
        assert estimate.rmse < 0.3

    def test_nis_recorded_for_both_sensors(self, run):
        ukf, outputs = run
        summary = ukf.consistency.summary()

        assert summary['lidar']['count'] + summary['radar']['count'] == len(outputs) - 1
        assert summary['lidar']['threshold'] == pytest.approx(5.991, abs=1e-3)
        assert summary['radar']['threshold'] == pytest.approx(7.815, abs=1e-3)
