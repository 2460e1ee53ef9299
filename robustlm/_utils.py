"""
Utility functions.
"""

import numpy as np

from .exceptions import DataError, DimensionMismatch


def check_array(X, name='X', dtype=np.float64):
    """Validate a 2-D numeric matrix."""
    X = np.asarray(X, dtype=dtype)
    if X.ndim != 2:
        raise DataError(f"{name} must be 2-dimensional, got {X.ndim} dimension(s)")
    if not np.all(np.isfinite(X)):
        raise DataError(f"{name} contains NaN or Inf")
    return X


def check_vector(y, name='y', dtype=np.float64, length=None):
    """Validate a 1-D numeric vector, optionally of a given length."""
    y = np.asarray(y, dtype=dtype)
    if y.ndim != 1:
        raise DataError(f"{name} must be 1-dimensional, got {y.ndim} dimension(s)")
    if length is not None and y.shape[0] != length:
        raise DimensionMismatch(name, length, y.shape[0])
    if not np.all(np.isfinite(y)):
        raise DataError(f"{name} contains NaN or Inf")
    return y
