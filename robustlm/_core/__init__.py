"""
Core algorithms (backend-agnostic).
"""

from .qr import (
    CollinearityReport,
    QRDecomposition,
    detect_and_remove_collinearity,
    qr_limited_pivoting,
)
from .lm_solver import fit_least_squares, predict
from .covariance import (
    HC0,
    HC1,
    HC2,
    HC3,
    HC4,
    Clustered,
    ClusteredTwoWay,
    CovariancePolicy,
    NeweyWest,
    NonRobust,
    compute_covariance,
    resolve_policy,
)
from .diagnostics import (
    breusch_godfrey_test,
    breusch_pagan,
    condition_number,
    cooks_distance,
    durbin_watson,
    goldfeld_quandt_test,
    jarque_bera,
    leverage,
    partial_r_squared,
    reset_test,
    vif,
    white_test,
)

__all__ = [
    "CollinearityReport",
    "QRDecomposition",
    "detect_and_remove_collinearity",
    "qr_limited_pivoting",
    "fit_least_squares",
    "predict",
    "CovariancePolicy",
    "NonRobust",
    "HC0",
    "HC1",
    "HC2",
    "HC3",
    "HC4",
    "NeweyWest",
    "Clustered",
    "ClusteredTwoWay",
    "compute_covariance",
    "resolve_policy",
    "leverage",
    "vif",
    "condition_number",
    "cooks_distance",
    "durbin_watson",
    "jarque_bera",
    "breusch_pagan",
    "white_test",
    "reset_test",
    "breusch_godfrey_test",
    "goldfeld_quandt_test",
    "partial_r_squared",
]
