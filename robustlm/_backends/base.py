"""
Abstract base class for least-squares backends.

Defines the interface all backends must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass
class LeastSquaresResult:
    """Least-squares fit of a full-column-rank design matrix."""
    coefficients: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    rank: int
    df_residual: int
    qr_R: np.ndarray  # Triangular factor of X (k x k)


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str = "base"
    precision: str = "fp64"

    @abstractmethod
    def solve_least_squares(
        self,
        X: np.ndarray,
        y: np.ndarray,
        tol: float,
    ) -> LeastSquaresResult:
        """
        Solve ``min ||y - X b||`` via an unpivoted QR decomposition.

        Backends implement ALL computation internally using their
        native types, only converting at entry/exit.

        Parameters
        ----------
        X : ndarray, shape (n, k)
            Design matrix with full column rank and n >= k
        y : ndarray, shape (n,)
            Response vector
        tol : float
            Relative tolerance on the diagonal of R below which the system
            is reported as singular

        Returns
        -------
        LeastSquaresResult
            Complete fit (all numpy arrays)

        Raises
        ------
        SingularSystemError
            If X is numerically rank deficient
        """

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"
