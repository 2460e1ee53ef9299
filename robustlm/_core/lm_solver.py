"""
Least-squares solver.

Validates inputs, then delegates the QR solve to a backend.
"""

from typing import Optional

import numpy as np

from .._utils import check_array, check_vector
from ..exceptions import DimensionMismatch, InsufficientObservationsError
from ..options import options


def fit_least_squares(
    X: np.ndarray,
    y: np.ndarray,
    tol: Optional[float] = None,
    backend=None,
):
    """
    Fit ``y = X b + e`` by least squares.

    This is just a thin wrapper - backends do all the work.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Clean design matrix (full column rank, intercept column included
        when wanted)
    y : ndarray, shape (n,)
        Response vector
    tol : float, optional
        Singularity tolerance on the diagonal of R (default
        ``options.collin_tol``)
    backend : str or Backend, optional
        Computational backend (default ``options.backend``)

    Returns
    -------
    result : LeastSquaresResult
        Coefficients, residuals, fitted values

    Raises
    ------
    DimensionMismatch
        ``len(y) != X.shape[0]``
    InsufficientObservationsError
        Fewer observations than columns
    SingularSystemError
        X is rank deficient (collinearity detection was skipped)
    """
    from .._backends import get_backend

    X = check_array(X, name='X')
    n, k = X.shape
    y = check_vector(y, name='y', length=n)
    if n < k:
        raise InsufficientObservationsError(n, k)
    if tol is None:
        tol = options.collin_tol

    return get_backend(backend).solve_least_squares(X, y, tol)


def predict(X_new: np.ndarray, coefficients: np.ndarray) -> np.ndarray:
    """
    Linear prediction ``X_new @ coefficients``.

    ``X_new`` must be built with the same expansion as the fitted model and
    have one column per coefficient.
    """
    coefficients = np.asarray(coefficients, dtype=np.float64)
    X_new = check_array(X_new, name='X_new')
    if X_new.shape[1] != coefficients.shape[0]:
        raise DimensionMismatch('X_new columns', coefficients.shape[0], X_new.shape[1])
    return X_new @ coefficients
