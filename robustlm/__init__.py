"""
robustlm: formula-driven least squares with robust covariance estimators.

Copyright (C) 2024 robustlm developers
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .lm import ols, LinearModel

# Formula compiler
from .formula import (
    Formula,
    Term,
    TermKind,
    build_design_matrix,
    compile_formula,
    evaluate_plan,
    expand_terms,
)

# Estimation core
from ._core import (
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
    breusch_godfrey_test,
    breusch_pagan,
    compute_covariance,
    condition_number,
    cooks_distance,
    detect_and_remove_collinearity,
    durbin_watson,
    fit_least_squares,
    goldfeld_quandt_test,
    jarque_bera,
    leverage,
    partial_r_squared,
    predict,
    reset_test,
    resolve_policy,
    vif,
    white_test,
)

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

from .options import get_option, option_context, options, set_option
from .exceptions import (
    CovarianceTypeNotSupportedError,
    DataError,
    DimensionMismatch,
    DuplicateColumnError,
    InsufficientObservationsError,
    InvalidClusterSpecification,
    InvalidLagSpecification,
    NonNumericVariableError,
    NumericalError,
    ParseError,
    RobustLMError,
    SingularSystemError,
    VariableNotFound,
)

__all__ = [
    'ols',
    'LinearModel',
    'Formula',
    'Term',
    'TermKind',
    'compile_formula',
    'expand_terms',
    'build_design_matrix',
    'evaluate_plan',
    'detect_and_remove_collinearity',
    'fit_least_squares',
    'predict',
    'CovariancePolicy',
    'NonRobust',
    'HC0',
    'HC1',
    'HC2',
    'HC3',
    'HC4',
    'NeweyWest',
    'Clustered',
    'ClusteredTwoWay',
    'compute_covariance',
    'resolve_policy',
    'leverage',
    'vif',
    'condition_number',
    'cooks_distance',
    'durbin_watson',
    'jarque_bera',
    'breusch_pagan',
    'white_test',
    'reset_test',
    'breusch_godfrey_test',
    'goldfeld_quandt_test',
    'partial_r_squared',
    'get_backend',
    'list_available_backends',
    'options',
    'set_option',
    'get_option',
    'option_context',
    'RobustLMError',
    'ParseError',
    'DataError',
    'VariableNotFound',
    'DimensionMismatch',
    'NonNumericVariableError',
    'DuplicateColumnError',
    'InvalidClusterSpecification',
    'InvalidLagSpecification',
    'NumericalError',
    'SingularSystemError',
    'InsufficientObservationsError',
    'CovarianceTypeNotSupportedError',
]
