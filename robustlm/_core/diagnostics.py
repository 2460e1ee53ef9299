"""
Regression diagnostics.

Pure functions of a clean design matrix and residuals. ``leverage`` and
``qr_bread`` are also the shared primitives of the covariance estimators.

Functions that run a QR or an auxiliary regression take a ``tol``
(default ``options.collin_tol``); pass the tolerance the model was fitted
with so the same columns count as linearly independent everywhere.
"""

import numbers
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import stats
from scipy.linalg import qr, solve_triangular

from .._utils import check_array, check_vector
from ..exceptions import (
    DataError,
    InsufficientObservationsError,
    InvalidLagSpecification,
    SingularSystemError,
)
from ..options import options
from .lm_solver import fit_least_squares
from .qr import detect_and_remove_collinearity


def qr_bread(X: np.ndarray, tol: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Economic Q factor of X and ``(X'X)^-1``.

    ``(X'X)^-1 = R^-1 R^-T`` is formed from the triangular factor, never by
    inverting ``X'X`` directly. X is singular when some ``|R_jj|`` is at
    most ``tol`` times the largest one.
    """
    if tol is None:
        tol = options.collin_tol
    n, k = X.shape
    if k == 0:
        return np.empty((n, 0)), np.empty((0, 0))
    if n < k:
        raise InsufficientObservationsError(n, k)
    Q, R = qr(X, mode='economic')
    R_diag = np.abs(np.diag(R))
    if R_diag.max() == 0 or np.any(R_diag <= tol * R_diag.max()):
        raise SingularSystemError("X'X is singular; remove collinear columns first")
    R_inv = solve_triangular(R, np.eye(k), lower=False)
    XtX_inv = R_inv @ R_inv.T
    return Q, (XtX_inv + XtX_inv.T) / 2.0


def leverage(X: np.ndarray, tol: Optional[float] = None) -> np.ndarray:
    """
    Diagonal of the hat matrix ``X (X'X)^-1 X'``.

    Computed as the row sums of ``Q**2``.
    """
    X = check_array(X, name='X')
    Q, _ = qr_bread(X, tol)
    return np.sum(Q ** 2, axis=1)


def _has_constant(X: np.ndarray) -> np.ndarray:
    """Mask of constant, non-zero columns (intercept-like)."""
    if X.shape[0] == 0:
        return np.zeros(X.shape[1], dtype=bool)
    return np.all(X == X[0], axis=0) & (X[0] != 0)


def _centered_r_squared(target: np.ndarray, residuals: np.ndarray) -> float:
    tss = np.sum((target - target.mean()) ** 2)
    return 1.0 - np.sum(residuals ** 2) / tss if tss > 0 else 0.0


def _auxiliary_fit(target: np.ndarray, Z: np.ndarray, tol: Optional[float]):
    """
    Regress ``target`` on the independent columns of Z.

    Returns the residuals and the number of columns used.
    """
    report = detect_and_remove_collinearity(Z, tol=tol)
    fit = fit_least_squares(report.matrix, target, tol=tol, backend='cpu')
    return fit.residuals, report.rank


def vif(X: np.ndarray, tol: Optional[float] = None) -> np.ndarray:
    """
    Variance inflation factors.

    ``VIF_j = 1 / (1 - R^2_j)`` where ``R^2_j`` comes from regressing column
    j on all other columns of X. Constant columns (the intercept) get NaN.
    ``R^2_j`` is centered when X contains a constant and uncentered
    otherwise. Perfectly explained columns get ``inf``.
    """
    X = check_array(X, name='X')
    n, k = X.shape
    constant = _has_constant(X)
    centered = bool(constant.any())
    out = np.full(k, np.nan)
    for j in range(k):
        if constant[j]:
            continue
        xj = X[:, j]
        others = np.delete(X, j, axis=1)
        resid = fit_least_squares(others, xj, tol=tol, backend='cpu').residuals
        tss = np.sum((xj - xj.mean()) ** 2) if centered else np.sum(xj ** 2)
        r2 = 1.0 - np.sum(resid ** 2) / tss if tss > 0 else 0.0
        out[j] = np.inf if r2 >= 1.0 else 1.0 / (1.0 - r2)
    return out


def condition_number(X: np.ndarray) -> float:
    """Ratio of the largest to the smallest singular value of X."""
    X = check_array(X, name='X')
    s = np.linalg.svd(X, compute_uv=False)
    if s.size == 0:
        return np.nan
    if s[-1] == 0:
        return np.inf
    return float(s[0] / s[-1])


def cooks_distance(
    X: np.ndarray,
    residuals: np.ndarray,
    s2: Optional[float] = None,
    tol: Optional[float] = None,
) -> np.ndarray:
    """
    Cook's distance ``e_i^2 h_i / (k s^2 (1 - h_i)^2)``.

    ``s2`` defaults to ``sum(e^2) / (n - k)``.
    """
    X = check_array(X, name='X')
    n, k = X.shape
    e = check_vector(residuals, name='residuals', length=n)
    if s2 is None:
        if n <= k:
            raise InsufficientObservationsError(n, k, "Cook's distance")
        s2 = np.sum(e ** 2) / (n - k)
    h = leverage(X, tol)
    with np.errstate(divide='ignore', invalid='ignore'):
        return e ** 2 * h / (k * s2 * (1.0 - h) ** 2)


def durbin_watson(residuals: np.ndarray) -> float:
    """Durbin-Watson statistic ``sum(diff(e)^2) / sum(e^2)`` (rows in time order)."""
    e = check_vector(residuals, name='residuals')
    if e.shape[0] < 2:
        return 0.0
    denominator = np.sum(e ** 2)
    if denominator == 0:
        return 0.0
    return float(np.sum(np.diff(e) ** 2) / denominator)


def jarque_bera(residuals: np.ndarray) -> Tuple[float, float]:
    """
    Jarque-Bera normality test.

    Returns
    -------
    (statistic, p-value)
        ``n/6 (S^2 + (K - 3)^2 / 4)`` against a chi-square with 2 df.
    """
    e = check_vector(residuals, name='residuals')
    n = e.shape[0]
    centered = e - e.mean()
    m2 = np.mean(centered ** 2)
    if m2 == 0:
        return np.nan, np.nan
    skewness = np.mean(centered ** 3) / m2 ** 1.5
    kurtosis = np.mean(centered ** 4) / m2 ** 2
    statistic = n / 6.0 * (skewness ** 2 + (kurtosis - 3.0) ** 2 / 4.0)
    return float(statistic), float(stats.chi2.sf(statistic, 2))


def breusch_pagan(
    residuals: np.ndarray,
    X: np.ndarray,
    tol: Optional[float] = None,
) -> Tuple[float, float]:
    """
    Breusch-Pagan heteroskedasticity test (Koenker's n R^2 form).

    Regresses ``e^2`` on X; the statistic ``n R^2`` is compared to a
    chi-square with ``k - 1`` degrees of freedom (at least 1).

    Returns
    -------
    (statistic, p-value)
    """
    X = check_array(X, name='X')
    n, k = X.shape
    e = check_vector(residuals, name='residuals', length=n)
    u2 = e ** 2
    aux = fit_least_squares(X, u2, tol=tol, backend='cpu')
    statistic = n * _centered_r_squared(u2, aux.residuals)
    df = max(k - 1, 1)
    return float(statistic), float(stats.chi2.sf(statistic, df))


def white_test(
    residuals: np.ndarray,
    X: np.ndarray,
    tol: Optional[float] = None,
) -> Tuple[float, float, int]:
    """
    White's heteroskedasticity test (no cross products).

    Regresses ``e^2`` on a constant, the non-constant columns of X and their
    squares. Columns of that auxiliary matrix that are linearly dependent
    (e.g. the square of a 0/1 dummy) are dropped first. The statistic
    ``n R^2`` is compared to a chi-square whose degrees of freedom are the
    number of auxiliary regressors besides the constant.

    Returns
    -------
    (statistic, p-value, df)
    """
    X = check_array(X, name='X')
    n, k = X.shape
    e = check_vector(residuals, name='residuals', length=n)
    regressors = X[:, ~_has_constant(X)]
    Z = np.column_stack([np.ones(n), regressors, regressors ** 2])
    u2 = e ** 2
    aux_resid, rank = _auxiliary_fit(u2, Z, tol)
    df = rank - 1
    if df < 1:
        return np.nan, np.nan, 0
    statistic = n * _centered_r_squared(u2, aux_resid)
    return float(statistic), float(stats.chi2.sf(statistic, df)), df


def reset_test(
    y: np.ndarray,
    X: np.ndarray,
    fitted_values: np.ndarray,
    power: int = 3,
    tol: Optional[float] = None,
) -> Tuple[float, float, int, int]:
    """
    Ramsey's RESET test for functional form.

    Adds ``yhat^2, ..., yhat^power`` to X and compares the two residual sums
    of squares with an F test. Powers of the fitted values that are linearly
    dependent on X are not counted.

    Parameters
    ----------
    y : ndarray, shape (n,)
        Response the model was fitted to
    X : ndarray, shape (n, k)
        Clean design matrix
    fitted_values : ndarray, shape (n,)
        Fitted values ``X b``
    power : int
        Highest power of the fitted values (at least 2)

    Returns
    -------
    (F statistic, p-value, df numerator, df denominator)

    Raises
    ------
    ValueError
        ``power < 2``
    InsufficientObservationsError
        No residual degrees of freedom left in the augmented regression
    """
    if isinstance(power, bool) or not isinstance(power, numbers.Integral) or power < 2:
        raise ValueError(f"RESET power must be an integer >= 2, got {power!r}")
    X = check_array(X, name='X')
    n, k = X.shape
    y = check_vector(y, name='y', length=n)
    yhat = check_vector(fitted_values, name='fitted_values', length=n)

    ssr_restricted = np.sum((y - yhat) ** 2)
    Z = np.column_stack([X] + [yhat ** p for p in range(2, power + 1)])
    if n - Z.shape[1] <= 0:
        raise InsufficientObservationsError(n, Z.shape[1], "the RESET test")
    aug_resid, rank = _auxiliary_fit(y, Z, tol)
    q = rank - k
    df_denom = n - rank
    if q < 1:
        return np.nan, np.nan, 0, df_denom
    ssr_augmented = np.sum(aug_resid ** 2)
    with np.errstate(divide='ignore', invalid='ignore'):
        statistic = ((ssr_restricted - ssr_augmented) / q) / (ssr_augmented / df_denom)
    return float(statistic), float(stats.f.sf(statistic, q, df_denom)), q, df_denom


def breusch_godfrey_test(
    residuals: np.ndarray,
    X: np.ndarray,
    lags: int = 1,
    tol: Optional[float] = None,
) -> Tuple[float, float, int]:
    """
    Breusch-Godfrey test for serial correlation up to order ``lags``.

    Regresses ``e_t`` on ``x_t`` and ``e_{t-1}, ..., e_{t-lags}``. The
    first ``lags`` rows have no complete history and are dropped, so the
    statistic is ``(n - lags) R^2`` against a chi-square with ``lags``
    degrees of freedom. Rows must be in time order.

    Returns
    -------
    (statistic, p-value, lags)
    """
    X = check_array(X, name='X')
    n, k = X.shape
    e = check_vector(residuals, name='residuals', length=n)
    if isinstance(lags, bool) or not isinstance(lags, numbers.Integral):
        raise InvalidLagSpecification(f"Breusch-Godfrey lags must be an integer, got {lags!r}")
    if lags < 1 or lags >= n:
        raise InvalidLagSpecification(
            f"Breusch-Godfrey lags must be in [1, {n}), got {lags}"
        )

    lagged = [e[lags - j:n - j] for j in range(1, lags + 1)]
    Z = np.column_stack([X[lags:]] + lagged)
    target = e[lags:]
    aux_resid, _ = _auxiliary_fit(target, Z, tol)
    statistic = target.shape[0] * _centered_r_squared(target, aux_resid)
    return float(statistic), float(stats.chi2.sf(statistic, lags)), int(lags)


def goldfeld_quandt_test(
    residuals: np.ndarray,
    drop_fraction: float = 0.2,
) -> Tuple[float, float, int, int]:
    """
    Goldfeld-Quandt test comparing residual variance in the first and last
    groups of observations.

    The middle ``int(n * drop_fraction)`` rows are left out and the rest is
    split into two groups of ``g`` rows. ``F`` is the larger sum of squared
    residuals over the smaller one with ``(g, g)`` degrees of freedom, and
    the p-value is two-sided. Rows must be sorted by the variable suspected
    of driving the variance.

    Returns
    -------
    (F statistic, p-value, df1, df2)
    """
    e = check_vector(residuals, name='residuals')
    if not 0 <= drop_fraction < 1:
        raise ValueError(f"drop_fraction must be in [0, 1), got {drop_fraction}")
    n = e.shape[0]
    g = (n - int(n * drop_fraction)) // 2
    if g < 2:
        raise DataError(
            f"Goldfeld-Quandt test needs at least 2 observations per group, got {g} "
            f"(n={n}, drop_fraction={drop_fraction})"
        )
    ssr_first = np.sum(e[:g] ** 2)
    ssr_last = np.sum(e[-g:] ** 2)
    with np.errstate(divide='ignore', invalid='ignore'):
        statistic = max(ssr_first, ssr_last) / min(ssr_first, ssr_last)
    pvalue = 2.0 * min(stats.f.sf(statistic, g, g), stats.f.cdf(statistic, g, g))
    return float(statistic), float(min(pvalue, 1.0)), g, g


def partial_r_squared(
    X: np.ndarray,
    y: np.ndarray,
    columns: Sequence[int],
    tol: Optional[float] = None,
) -> float:
    """
    Partial R^2 of a group of columns.

    ``(SSR_r - SSR_f) / SSR_r``, where the restricted model leaves out
    ``columns``: the share of the variation left unexplained without them
    that they explain.
    """
    X = check_array(X, name='X')
    n, k = X.shape
    y = check_vector(y, name='y', length=n)
    columns = np.unique(np.asarray(columns, dtype=np.int64))
    if columns.size == 0:
        raise ValueError("partial_r_squared needs at least one column")
    if columns.min() < 0 or columns.max() >= k:
        raise IndexError(f"column indices must be in [0, {k}), got {columns.tolist()}")

    ssr_full = np.sum(fit_least_squares(X, y, tol=tol, backend='cpu').residuals ** 2)
    restricted = np.delete(X, columns, axis=1)
    ssr_restricted = np.sum(fit_least_squares(restricted, y, tol=tol, backend='cpu').residuals ** 2)
    if ssr_restricted == 0:
        return 0.0
    return float((ssr_restricted - ssr_full) / ssr_restricted)
