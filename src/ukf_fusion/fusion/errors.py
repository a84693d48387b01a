"""Exception types raised by the estimation core."""

import numpy as np


class FilterError(Exception):
    """Base class for recoverable estimator failures."""


class SingularCovarianceError(FilterError, np.linalg.LinAlgError):
    """
    Covariance could not be factorized or inverted.

    Raised when the augmented covariance is not positive definite (Cholesky
    fails) or the predicted measurement covariance S is not invertible. The
    estimator keeps its prior estimate when this is raised.
    """


class InvalidMeasurementError(FilterError, ValueError):
    """Measurement package rejected before any state mutation."""
