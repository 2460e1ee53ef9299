"""
Coefficient covariance estimators.

A covariance policy is a closed set of frozen dataclasses; each variant is
mapped to exactly one estimator in ``_ESTIMATORS``. All estimators share the
bread ``(X'X)^-1`` built from the QR factor of the clean design matrix:

    V = (X'X)^-1  M  (X'X)^-1

and differ only in the middle term ``M`` and the small-sample factor.
"""

import logging
import numbers
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .._utils import check_array, check_vector
from ..exceptions import (
    CovarianceTypeNotSupportedError,
    InsufficientObservationsError,
    InvalidClusterSpecification,
    InvalidLagSpecification,
)
from ..options import options
from .diagnostics import qr_bread

LOGGER = logging.getLogger(__name__)


# ============================================================================
# POLICIES
# ============================================================================

@dataclass(frozen=True)
class CovariancePolicy:
    """Base class of the covariance policy variants."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class NonRobust(CovariancePolicy):
    """Classical ``s^2 (X'X)^-1``."""


@dataclass(frozen=True)
class HC0(CovariancePolicy):
    """White's estimator, no small-sample correction."""


@dataclass(frozen=True)
class HC1(CovariancePolicy):
    """HC0 scaled by ``n / (n - k)``."""


@dataclass(frozen=True)
class HC2(CovariancePolicy):
    """Squared residuals scaled by ``1 / (1 - h_i)``."""


@dataclass(frozen=True)
class HC3(CovariancePolicy):
    """Squared residuals scaled by ``1 / (1 - h_i)^2``."""


@dataclass(frozen=True)
class HC4(CovariancePolicy):
    """Squared residuals scaled by ``1 / (1 - h_i)^delta_i``, ``delta_i = min(4, n h_i / k)``."""


@dataclass(frozen=True)
class NeweyWest(CovariancePolicy):
    """HAC estimator with Bartlett weights; rows must be in time order."""
    lags: int

    @property
    def name(self) -> str:
        return f"NeweyWest(L={self.lags})"


@dataclass(frozen=True, eq=False)
class Clustered(CovariancePolicy):
    """One-way cluster-robust estimator; one cluster id per observation."""
    clusters: Any

    @property
    def name(self) -> str:
        return f"Clustered(G={pd.unique(np.asarray(self.clusters)).size})"


@dataclass(frozen=True, eq=False)
class ClusteredTwoWay(CovariancePolicy):
    """Two-way cluster-robust estimator (Cameron, Gelbach and Miller)."""
    clusters1: Any
    clusters2: Any

    @property
    def name(self) -> str:
        g1 = pd.unique(np.asarray(self.clusters1)).size
        g2 = pd.unique(np.asarray(self.clusters2)).size
        return f"ClusteredTwoWay(G1={g1}, G2={g2})"


_POLICY_NAMES = {
    "nonrobust": NonRobust,
    "iid": NonRobust,
    "hc0": HC0,
    "hc1": HC1,
    "hetero": HC1,
    "hc2": HC2,
    "hc3": HC3,
    "hc4": HC4,
}


def resolve_policy(policy: Union[None, str, CovariancePolicy] = None) -> CovariancePolicy:
    """
    Normalize a policy argument.

    Accepts a policy instance, ``None`` (``options.vcov``) or one of the
    names ``"nonrobust"``/``"iid"``, ``"HC0"`` to ``"HC4"``, ``"hetero"``
    (HC1). Policies with a payload (lags, cluster ids) must be passed as
    instances.
    """
    if policy is None:
        policy = options.vcov
    if isinstance(policy, CovariancePolicy):
        return policy
    if isinstance(policy, str):
        try:
            return _POLICY_NAMES[policy.lower()]()
        except KeyError:
            raise CovarianceTypeNotSupportedError(
                f"Unknown covariance type '{policy}'. Valid names: "
                f"{sorted(_POLICY_NAMES)}; use NeweyWest(lags), Clustered(ids) "
                f"or ClusteredTwoWay(ids1, ids2) for the others."
            ) from None
    raise CovarianceTypeNotSupportedError(
        f"Covariance policy must be a string or CovariancePolicy, got {type(policy).__name__}"
    )


# ============================================================================
# SHARED PIECES
# ============================================================================

def _sandwich(bread: np.ndarray, meat: np.ndarray) -> np.ndarray:
    V = bread @ meat @ bread
    return (V + V.T) / 2.0


def _require_df(n: int, k: int, what: str) -> int:
    if n - k <= 0:
        raise InsufficientObservationsError(n, k, what)
    return n - k


def _leverage_adjusted(e: np.ndarray, h: np.ndarray, power) -> np.ndarray:
    """``e^2 / (1 - h)^power``; observations at the leverage clamp keep ``e^2``."""
    u2 = e ** 2
    power = np.broadcast_to(power, h.shape)
    ok = h < options.leverage_clamp
    if not np.all(ok):
        LOGGER.debug("%d observation(s) with leverage >= %g left unadjusted",
                     np.sum(~ok), options.leverage_clamp)
    u2[ok] = u2[ok] / (1.0 - h[ok]) ** power[ok]
    return u2


def _weighted_meat(X: np.ndarray, w: np.ndarray) -> np.ndarray:
    # X' diag(w) X
    return X.T @ (X * w[:, np.newaxis])


def _cluster_codes(ids, n: int, label: str = "clusters"):
    ids = np.asarray(ids)
    if ids.ndim != 1:
        raise InvalidClusterSpecification(f"{label} must be 1-dimensional")
    if ids.shape[0] != n:
        raise InvalidClusterSpecification(
            f"{label} has length {ids.shape[0]}, expected one id per observation ({n})"
        )
    codes, uniques = pd.factorize(ids)
    if np.any(codes < 0):
        raise InvalidClusterSpecification(f"{label} contains missing ids")
    return codes, len(uniques)


def _cluster_meat(scores: np.ndarray, codes: np.ndarray, G: int) -> np.ndarray:
    # sum_g (sum_{i in g} e_i x_i)(sum_{i in g} e_i x_i)'
    sums = np.zeros((G, scores.shape[1]))
    np.add.at(sums, codes, scores)
    return sums.T @ sums


def _clustered_from_codes(X, e, bread, codes, G, label="clusters"):
    n, k = X.shape
    if G < 2:
        raise InvalidClusterSpecification(
            f"Need at least 2 clusters for cluster-robust covariance, {label} has {G}"
        )
    df = _require_df(n, k, "clustered covariance")
    meat = _cluster_meat(X * e[:, np.newaxis], codes, G)
    adjustment = (G / (G - 1)) * ((n - 1) / df)
    return adjustment * _sandwich(bread, meat)


# ============================================================================
# ESTIMATORS
# ============================================================================

def _vcov_nonrobust(X, e, bread, Q, policy):
    n, k = X.shape
    s2 = np.sum(e ** 2) / _require_df(n, k, "non-robust covariance")
    return s2 * bread


def _vcov_hc0(X, e, bread, Q, policy):
    return _sandwich(bread, _weighted_meat(X, e ** 2))


def _vcov_hc1(X, e, bread, Q, policy):
    n, k = X.shape
    df = _require_df(n, k, "HC1 covariance")
    return (n / df) * _vcov_hc0(X, e, bread, Q, policy)


def _vcov_hc2(X, e, bread, Q, policy):
    h = np.sum(Q ** 2, axis=1)
    return _sandwich(bread, _weighted_meat(X, _leverage_adjusted(e, h, 1.0)))


def _vcov_hc3(X, e, bread, Q, policy):
    h = np.sum(Q ** 2, axis=1)
    return _sandwich(bread, _weighted_meat(X, _leverage_adjusted(e, h, 2.0)))


def _vcov_hc4(X, e, bread, Q, policy):
    n, k = X.shape
    h = np.sum(Q ** 2, axis=1)
    delta = np.minimum(4.0, n * h / k)
    return _sandwich(bread, _weighted_meat(X, _leverage_adjusted(e, h, delta)))


def _vcov_newey_west(X, e, bread, Q, policy):
    n, k = X.shape
    L = policy.lags
    if isinstance(L, bool) or not isinstance(L, numbers.Integral):
        raise InvalidLagSpecification(f"Newey-West lags must be an integer, got {L!r}")
    if L < 0:
        raise InvalidLagSpecification(f"Newey-West lags must be non-negative, got {L}")
    if L >= n:
        raise InvalidLagSpecification(
            f"Newey-West lags ({L}) must be smaller than the number of observations ({n})"
        )

    scores = X * e[:, np.newaxis]
    meat = scores.T @ scores
    for lag in range(1, L + 1):
        weight = 1.0 - lag / (L + 1.0)
        gamma = scores[lag:].T @ scores[:-lag]
        meat += weight * (gamma + gamma.T)
    return _sandwich(bread, meat)


def _vcov_clustered(X, e, bread, Q, policy):
    codes, G = _cluster_codes(policy.clusters, X.shape[0])
    return _clustered_from_codes(X, e, bread, codes, G)


def _vcov_clustered_twoway(X, e, bread, Q, policy):
    n = X.shape[0]
    codes1, G1 = _cluster_codes(policy.clusters1, n, "clusters1")
    codes2, G2 = _cluster_codes(policy.clusters2, n, "clusters2")
    codes12, G12 = pd.factorize(codes1.astype(np.int64) * G2 + codes2)
    V1 = _clustered_from_codes(X, e, bread, codes1, G1, "clusters1")
    V2 = _clustered_from_codes(X, e, bread, codes2, G2, "clusters2")
    V12 = _clustered_from_codes(X, e, bread, codes12, len(G12), "clusters1 x clusters2")
    # Not guaranteed positive semi-definite.
    return V1 + V2 - V12


_ESTIMATORS = {
    NonRobust: _vcov_nonrobust,
    HC0: _vcov_hc0,
    HC1: _vcov_hc1,
    HC2: _vcov_hc2,
    HC3: _vcov_hc3,
    HC4: _vcov_hc4,
    NeweyWest: _vcov_newey_west,
    Clustered: _vcov_clustered,
    ClusteredTwoWay: _vcov_clustered_twoway,
}


def compute_covariance(
    X: np.ndarray,
    residuals: np.ndarray,
    policy: Union[None, str, CovariancePolicy] = None,
    tol: Optional[float] = None,
) -> np.ndarray:
    """
    Covariance matrix of least-squares coefficients.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Clean (full column rank) design matrix
    residuals : ndarray, shape (n,)
        Least-squares residuals
    policy : CovariancePolicy or str, optional
        Estimator to use (default ``options.vcov``)
    tol : float, optional
        Singularity tolerance of the bread (default ``options.collin_tol``);
        pass the tolerance X was reduced with

    Returns
    -------
    ndarray, shape (k, k)
        Symmetric covariance matrix

    Raises
    ------
    InvalidClusterSpecification
        Cluster ids of the wrong length, missing, or fewer than 2 clusters
    InvalidLagSpecification
        Newey-West lags not an integer in ``[0, n)``
    InsufficientObservationsError
        The estimator needs ``n - k > 0``
    CovarianceTypeNotSupportedError
        Unknown policy

    Examples
    --------
    >>> V = compute_covariance(X, fit.residuals, HC1())
    >>> V = compute_covariance(X, fit.residuals, Clustered(firm_ids))
    """
    policy = resolve_policy(policy)
    X = check_array(X, name='X')
    n, k = X.shape
    e = check_vector(residuals, name='residuals', length=n)

    try:
        estimator = _ESTIMATORS[type(policy)]
    except KeyError:
        raise CovarianceTypeNotSupportedError(
            f"No estimator for covariance policy {type(policy).__name__}"
        ) from None

    if k == 0:
        return np.empty((0, 0))

    Q, bread = qr_bread(X, tol)
    LOGGER.debug("Computing %s covariance for n=%d, k=%d", policy.name, n, k)
    return estimator(X, e, bread, Q, policy)
