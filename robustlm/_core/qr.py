"""
QR decomposition with limited column pivoting and collinearity detection.

Follows the pivoting strategy of R's dqrdc2.f: columns are reduced in their
original order with Householder reflections, and a column whose remaining
norm is negligible is moved behind all columns not yet processed instead of
being reduced. Unlike full (max-norm) pivoting this never reorders the
columns that are kept, so among exactly collinear columns the leftmost one
always survives.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .._utils import check_array
from ..exceptions import DimensionMismatch
from ..options import options

LOGGER = logging.getLogger(__name__)


@dataclass
class QRDecomposition:
    """Result of QR decomposition with limited pivoting."""
    R: np.ndarray       # Upper triangular factor, columns in pivot order
    pivot: np.ndarray   # pivot[j] = original index of column j of R (0-indexed)
    rank: int           # Number of columns reduced before deferral
    tol: float          # Relative tolerance used
    scale: float        # Largest column norm; columns below tol * scale are deferred


def qr_limited_pivoting(
    X: np.ndarray,
    tol: Optional[float] = None,
) -> QRDecomposition:
    """
    Householder QR with limited column pivoting.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Matrix to decompose (not modified)
    tol : float, optional
        Relative tolerance. A column is deferred when the norm of its part
        orthogonal to the columns already kept is at most ``tol`` times the
        largest column norm of X, the largest diagonal magnitude any
        triangular factor of X can reach. Defaults to
        ``options.collin_tol`` (1e-10).

    Returns
    -------
    result : QRDecomposition
        ``R[:rank, :rank]`` is the triangular factor of the kept columns
        ``X[:, pivot[:rank]]``; deferred columns follow in original order.

    Notes
    -----
    Algorithm, for each column in turn:

    1. Compute the norm of the column below the rows already used.
    2. If it is negligible, rotate the column to the end and shrink the
       working range (the column is rank deficient given its predecessors).
    3. Otherwise apply the Householder reflection that zeroes the column
       below the diagonal to it and to every column on its right.

    At most ``min(n, p)`` columns can be kept; once all rows are used every
    remaining column has zero residual norm and is deferred.
    """
    if tol is None:
        tol = options.collin_tol
    A = check_array(X, name='X').copy()
    n, p = A.shape
    pivot = np.arange(p)

    scale = float(np.linalg.norm(A, axis=0).max()) if p and n else 0.0
    threshold = tol * scale

    rank = 0
    limit = p
    while rank < limit:
        v = A[rank:, rank]
        d = float(np.linalg.norm(v))
        if d <= threshold:
            A[:, rank:] = np.roll(A[:, rank:], -1, axis=1)
            pivot[rank:] = np.roll(pivot[rank:], -1)
            limit -= 1
            continue

        alpha = -np.copysign(d, v[0])
        u = v.copy()
        u[0] -= alpha
        u /= np.linalg.norm(u)
        block = A[rank:, rank:]
        block -= 2.0 * np.outer(u, u @ block)
        A[rank, rank] = alpha
        A[rank + 1:, rank] = 0.0
        rank += 1

    R = np.triu(A[:min(n, p), :])
    return QRDecomposition(R=R, pivot=pivot, rank=rank, tol=tol, scale=scale)


@dataclass
class CollinearityReport:
    """Outcome of collinearity detection on a raw design matrix."""
    matrix: np.ndarray          # Clean matrix: raw columns at `kept`
    kept: np.ndarray            # Kept column indices, ascending
    omitted: np.ndarray         # Omitted column indices, ascending
    kept_names: List[str]
    omitted_names: List[str]
    rank: int

    @property
    def has_omitted(self) -> bool:
        return self.omitted.size > 0


def detect_and_remove_collinearity(
    X: np.ndarray,
    tol: Optional[float] = None,
    column_names: Optional[Sequence[str]] = None,
) -> CollinearityReport:
    """
    Drop exactly linearly dependent columns from a design matrix.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Raw design matrix
    tol : float, optional
        Relative rank tolerance (default ``options.collin_tol`` = 1e-10)
    column_names : sequence of str, optional
        Names reported for kept/omitted columns (default ``x0, x1, ...``)

    Returns
    -------
    CollinearityReport
        Clean matrix with full column rank, kept and omitted indices.

    Examples
    --------
    >>> X = np.column_stack([np.ones(4), [1., 2, 3, 4], [2., 4, 6, 8]])
    >>> report = detect_and_remove_collinearity(X, column_names=['a', 'b', 'c'])
    >>> report.kept.tolist(), report.omitted_names
    ([0, 1], ['c'])
    """
    X = check_array(X, name='X')
    k = X.shape[1]
    if column_names is None:
        column_names = [f"x{j}" for j in range(k)]
    elif len(column_names) != k:
        raise DimensionMismatch("column_names", k, len(column_names))

    decomposition = qr_limited_pivoting(X, tol=tol)
    kept = np.sort(decomposition.pivot[:decomposition.rank])
    omitted = np.sort(decomposition.pivot[decomposition.rank:])

    if omitted.size:
        LOGGER.debug(
            "Omitting %d collinear column(s) of %d: %s",
            omitted.size, k, [column_names[j] for j in omitted],
        )

    return CollinearityReport(
        matrix=X[:, kept],
        kept=kept,
        omitted=omitted,
        kept_names=[column_names[j] for j in kept],
        omitted_names=[column_names[j] for j in omitted],
        rank=decomposition.rank,
    )
