import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ukf_fusion.fusion import LidarModel, RadarModel, SigmaPointGenerator
from ukf_fusion.fusion.measurement import create_measurement_models
from ukf_fusion.sensors import SensorType


class TestLidarModel:
    """Test the linear position measurement model"""

    def test_projection(self):
        """Test lidar observes position only"""
        model = LidarModel()
        np.testing.assert_allclose(model.project(np.array([1.0, 2.0, 3.0, 4.0, 5.0])), [1.0, 2.0])

    def test_noise_covariance(self):
        """Test R is built from the standard deviations"""
        model = LidarModel(0.15, 0.2)
        np.testing.assert_allclose(model.noise_covariance, np.diag([0.0225, 0.04]))

    def test_noise_covariance_is_a_copy(self):
        """Test callers cannot modify R through the property"""
        model = LidarModel()
        R = model.noise_covariance
        R[0, 0] = 100.0
        assert model.noise_covariance[0, 0] == pytest.approx(0.0225)

    def test_negative_noise_rejected(self):
        """Test negative standard deviations are rejected"""
        with pytest.raises(ValueError):
            LidarModel(-0.1, 0.15)

    def test_attributes(self):
        """Test sensor type, dimension and angle index"""
        model = LidarModel()
        assert model.sensor_type is SensorType.LIDAR
        assert model.dimension == 2
        assert model.angle_index is None

    def test_predicted_mean_matches_projected_mean(self):
        """Test the linear model predicts exactly the projected state mean"""
        generator = SigmaPointGenerator(std_a=1.5, std_yawdd=2.0)
        model = LidarModel()
        x = np.array([3.0, -2.0, 4.0, 1.0, 0.3])
        P = np.diag([0.8, 0.6, 1.0, 0.4, 0.2])

        points = generator.state_sigma_points(x, P)
        prediction = model.predict_measurement(points, generator.weights)

        np.testing.assert_allclose(prediction.mean, model.project(x), atol=1e-10)
        np.testing.assert_allclose(prediction.covariance,
                                   P[:2, :2] + model.noise_covariance, atol=1e-10)


class TestRadarModel:
    """Test the nonlinear range/bearing/range-rate model"""

    @pytest.fixture
    def model(self):
        return RadarModel()

    def test_projection(self, model):
        """Test range, bearing and range rate of a known state"""
        z = model.project(np.array([3.0, 4.0, 2.0, 0.0, 0.0]))
        np.testing.assert_allclose(z, [5.0, np.arctan2(4.0, 3.0), 1.2])

    def test_attributes(self, model):
        """Test sensor type, dimension and angle index"""
        assert model.sensor_type is SensorType.RADAR
        assert model.dimension == 3
        assert model.angle_index == 1
        np.testing.assert_allclose(model.noise_covariance, np.diag([0.09, 0.0009, 0.09]))

    def test_origin_is_finite(self, model):
        """Test a state at the sensor origin still projects to finite values"""
        z = model.project(np.array([0.0, 0.0, 1.0, 0.0, 0.0]))
        assert np.all(np.isfinite(z))
        assert z[0] == pytest.approx(0.0)

    def test_range_floor(self, model):
        """Test the range-rate divisor is floored at the minimum range"""
        z = model.project(np.array([1e-6, 0.0, 1.0, 0.0, 0.0]))
        assert z[0] == pytest.approx(1e-6)
        assert z[2] == pytest.approx(1e-6 / 1e-4)

    def test_invalid_min_range(self):
        """Test a non-positive minimum range is rejected"""
        with pytest.raises(ValueError):
            RadarModel(min_range=0.0)

    def test_residual_wraps_bearing(self, model):
        """Test bearing residuals across ±π take the short way round"""
        residual = model.residual(np.array([1.0, 3.0, 0.5]), np.array([1.0, -3.0, 0.0]))
        np.testing.assert_allclose(residual, [0.0, 6.0 - 2 * np.pi, 0.5])

    def test_predicted_mean_matches_projected_mean(self, model):
        """Test the predicted measurement approaches h(x) as the spread vanishes"""
        generator = SigmaPointGenerator(std_a=1e-6, std_yawdd=1e-6)
        x = np.array([3.0, 4.0, 2.0, 0.3, 0.1])
        P = 1e-8 * np.eye(5)

        points = generator.state_sigma_points(x, P)
        prediction = model.predict_measurement(points, generator.weights)

        assert prediction.points.shape == (3, 15)
        np.testing.assert_allclose(prediction.mean, model.project(x), atol=1e-5)
        np.testing.assert_allclose(prediction.covariance, model.noise_covariance, atol=1e-6)

    def test_predicted_mean_on_negative_x_axis(self, model):
        """Test the bearing mean is not corrupted when points straddle ±π"""
        generator = SigmaPointGenerator(std_a=1e-6, std_yawdd=1e-6)
        x = np.array([-5.0, 0.0, 2.0, 0.3, 0.1])
        P = 1e-8 * np.eye(5)

        points = generator.state_sigma_points(x, P)
        prediction = model.predict_measurement(points, generator.weights)

        assert np.any(prediction.points[1] < 0) and np.any(prediction.points[1] > 0)
        np.testing.assert_allclose(model.residual(prediction.mean, model.project(x)),
                                   np.zeros(3), atol=1e-5)
        np.testing.assert_allclose(prediction.covariance, model.noise_covariance, atol=1e-6)

    def test_wide_spread_on_negative_x_axis(self, model):
        """Test bearing spread stays local for a broad prior behind the sensor"""
        generator = SigmaPointGenerator(std_a=1.5, std_yawdd=2.0)
        x = np.array([-5.0, 0.0, 0.0, 0.0, 0.0])
        P = np.diag([1.0, 1.0, 1.0, 0.5, 0.5])

        prediction = model.predict_measurement(generator.state_sigma_points(x, P), generator.weights)

        assert abs(model.residual(prediction.mean, model.project(x))[1]) < 1e-9
        assert prediction.covariance[1, 1] < 0.1


class TestCreateMeasurementModels:
    """Test the sensor-type keyed model factory"""

    def test_models_by_sensor(self):
        models = create_measurement_models(std_laspx=0.1, std_radr=0.5)

        assert isinstance(models[SensorType.LIDAR], LidarModel)
        assert isinstance(models[SensorType.RADAR], RadarModel)
        assert models[SensorType.LIDAR].noise_covariance[0, 0] == pytest.approx(0.01)
        assert models[SensorType.RADAR].noise_covariance[0, 0] == pytest.approx(0.25)
