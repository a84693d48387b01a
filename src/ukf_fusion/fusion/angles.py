"""
Angle normalization helpers.

Angles are wrapped into the half-open interval (-π, π] with a closed-form
remainder. NaN passes through unchanged.
"""

import numpy as np
from typing import Union

TWO_PI = 2.0 * np.pi


def normalize_angle(angle: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Wrap an angle (or array of angles) into (-π, π].

    Uses a = π - ((π - a) mod 2π). numpy's mod takes the sign of the
    divisor, so the remainder is always in [0, 2π).

    Args:
        angle: Angle in radians, scalar or array

    Returns:
        Wrapped angle with the same shape as the input
    """
    wrapped = np.pi - np.mod(np.pi - angle, TWO_PI)
    if np.isscalar(angle):
        return float(wrapped)
    return wrapped


def normalize_component(vectors: np.ndarray, index: int) -> np.ndarray:
    """
    Return a copy of ``vectors`` with row ``index`` wrapped into (-π, π].

    Works on a single vector or on a (dim, n_points) matrix of column vectors.
    """
    result = np.array(vectors, dtype=float, copy=True)
    result[index] = normalize_angle(result[index])
    return result


def weighted_angle_mean(angles: np.ndarray, weights: np.ndarray) -> float:
    """
    Weighted mean of angles that may straddle the ±π cut.

    Offsets are taken from the first angle and wrapped before averaging, so
    +π and -π contribute as the same direction.

    Args:
        angles: Angles in radians, one per weight
        weights: Sigma-point weights

    Returns:
        Mean angle in (-π, π]
    """
    angles = np.asarray(angles, dtype=float)
    reference = angles[0]
    offsets = normalize_angle(angles - reference)
    return normalize_angle(reference + float(offsets @ weights))
