"""
CPU backend using NumPy + SciPy.

This is the reference implementation.
"""

import numpy as np
from scipy.linalg import qr, solve_triangular

from ..exceptions import SingularSystemError
from .base import BackendBase, LeastSquaresResult


def singular_diagonal(R_diag: np.ndarray, tol: float) -> np.ndarray:
    """Indices where ``|R_jj|`` falls to ``tol`` times the largest entry or below."""
    R_diag = np.abs(R_diag)
    if R_diag.size == 0:
        return np.empty(0, dtype=np.int64)
    return np.flatnonzero(R_diag <= tol * R_diag.max())


class CPUBackendFP64(BackendBase):
    """
    CPU backend using NumPy + SciPy.

    Reference implementation; always uses FP64 precision.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def solve_least_squares(
        self,
        X: np.ndarray,
        y: np.ndarray,
        tol: float,
    ) -> LeastSquaresResult:
        """
        Fit least squares using LAPACK QR.

        Complete implementation - all computation stays in NumPy.
        """
        n, k = X.shape

        if k == 0:
            return LeastSquaresResult(
                coefficients=np.empty(0),
                residuals=y.copy(),
                fitted_values=np.zeros(n),
                rank=0,
                df_residual=n,
                qr_R=np.empty((0, 0)),
            )

        # Economic QR: X = Q R with R (k x k)
        Q, R = qr(X, mode='economic')

        bad = singular_diagonal(np.diag(R), tol)
        if bad.size:
            raise SingularSystemError(
                f"Design matrix is rank deficient: column(s) {bad.tolist()} "
                f"have |R_jj| <= {tol:g} * max|R_jj|"
            )

        # Solve R b = Q'y
        coef = solve_triangular(R, Q.T @ y, lower=False)
        fitted = X @ coef
        residuals = y - fitted

        return LeastSquaresResult(
            coefficients=coef,
            residuals=residuals,
            fitted_values=fitted,
            rank=k,
            df_residual=n - k,
            qr_R=R,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
