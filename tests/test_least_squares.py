"""
Test the least-squares solver and prediction.
"""

import pytest
import numpy as np

from robustlm.exceptions import (
    DataError,
    DimensionMismatch,
    InsufficientObservationsError,
    SingularSystemError,
)
from robustlm._core.lm_solver import fit_least_squares, predict


COEF_TOL = 1e-10
RESID_TOL = 1e-10


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(123)
    n = 50
    X = np.column_stack([np.ones(n), rng.normal(size=n), rng.uniform(size=n)])
    y = X @ np.array([1.0, -2.0, 3.0]) + rng.normal(scale=0.5, size=n)
    return X, y


def test_exact_line():
    """y = x gives intercept 0, slope 1 and zero residuals."""
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    X = np.column_stack([np.ones(5), x])
    result = fit_least_squares(X, x, backend='cpu')
    np.testing.assert_allclose(result.coefficients, [0.0, 1.0], atol=COEF_TOL)
    np.testing.assert_allclose(result.residuals, np.zeros(5), atol=RESID_TOL)


def test_normal_equations(regression_data):
    """X'e = 0 at the solution."""
    X, y = regression_data
    result = fit_least_squares(X, y, backend='cpu')
    np.testing.assert_allclose(X.T @ result.residuals, np.zeros(3), atol=1e-9)


def test_residual_mean_zero_with_intercept(regression_data):
    X, y = regression_data
    result = fit_least_squares(X, y, backend='cpu')
    assert abs(result.residuals.mean()) < 1e-12


def test_fitted_plus_residual_is_response(regression_data):
    X, y = regression_data
    result = fit_least_squares(X, y, backend='cpu')
    np.testing.assert_allclose(result.fitted_values + result.residuals, y,
                               rtol=RESID_TOL, atol=RESID_TOL)


def test_degrees_of_freedom(regression_data):
    X, y = regression_data
    result = fit_least_squares(X, y, backend='cpu')
    assert result.rank == 3
    assert result.df_residual == 47


def test_square_system_is_exact():
    X = np.array([[1.0, 2.0], [3.0, 5.0]])
    y = np.array([1.0, 2.0])
    result = fit_least_squares(X, y, backend='cpu')
    np.testing.assert_allclose(X @ result.coefficients, y, atol=1e-12)
    assert result.df_residual == 0


def test_more_columns_than_rows():
    with pytest.raises(InsufficientObservationsError) as err:
        fit_least_squares(np.ones((2, 3)), np.ones(2))
    assert err.value.n_obs == 2
    assert err.value.n_params == 3


def test_length_mismatch(regression_data):
    X, y = regression_data
    with pytest.raises(DimensionMismatch):
        fit_least_squares(X, y[:-1])


def test_rank_deficient_input(regression_data):
    X, y = regression_data
    X = np.column_stack([X, X[:, 1] + X[:, 2]])
    with pytest.raises(SingularSystemError):
        fit_least_squares(X, y, backend='cpu')


def test_non_finite_response(regression_data):
    X, y = regression_data
    y = y.copy()
    y[3] = np.inf
    with pytest.raises(DataError, match="NaN or Inf"):
        fit_least_squares(X, y)


def test_one_dimensional_design_rejected():
    with pytest.raises(DataError, match="2-dimensional"):
        fit_least_squares(np.ones(4), np.ones(4))


def test_predict(regression_data):
    X, y = regression_data
    result = fit_least_squares(X, y, backend='cpu')
    np.testing.assert_allclose(predict(X, result.coefficients), result.fitted_values,
                               rtol=1e-12)


def test_predict_column_mismatch():
    with pytest.raises(DimensionMismatch):
        predict(np.ones((3, 2)), np.array([1.0, 2.0, 3.0]))
