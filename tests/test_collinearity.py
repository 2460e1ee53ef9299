"""
Test QR with limited pivoting and collinearity detection.

Among exactly collinear columns the leftmost must always be kept, and the
kept columns must keep their original order.
"""

import pytest
import numpy as np

from robustlm.exceptions import DataError, DimensionMismatch
from robustlm._core.qr import detect_and_remove_collinearity, qr_limited_pivoting

TOL_STRICT = 1e-10


@pytest.fixture
def X_full_rank():
    rng = np.random.default_rng(42)
    return np.column_stack([np.ones(30), rng.normal(size=(30, 3))])


class TestQRLimitedPivoting:
    """The triangular factor and the pivot."""

    def test_full_rank_keeps_order(self, X_full_rank):
        qr = qr_limited_pivoting(X_full_rank)
        assert qr.rank == 4
        np.testing.assert_array_equal(qr.pivot, [0, 1, 2, 3])

    def test_R_matches_cross_product(self, X_full_rank):
        qr = qr_limited_pivoting(X_full_rank)
        R = qr.R[:qr.rank, :qr.rank]
        np.testing.assert_allclose(R.T @ R, X_full_rank.T @ X_full_rank,
                                   rtol=TOL_STRICT, atol=TOL_STRICT)

    def test_deferred_columns_keep_relative_order(self):
        x = np.arange(1.0, 7.0)
        X = np.column_stack([x, 2 * x, np.ones(6), 3 * x, x ** 2])
        qr = qr_limited_pivoting(X)
        assert qr.rank == 3
        np.testing.assert_array_equal(qr.pivot, [0, 2, 4, 1, 3])

    def test_input_not_modified(self, X_full_rank):
        before = X_full_rank.copy()
        qr_limited_pivoting(X_full_rank)
        np.testing.assert_array_equal(X_full_rank, before)

    def test_more_columns_than_rows(self):
        rng = np.random.default_rng(0)
        X = rng.normal(size=(3, 5))
        qr = qr_limited_pivoting(X)
        assert qr.rank == 3
        np.testing.assert_array_equal(qr.pivot[:3], [0, 1, 2])


class TestCollinearityDetection:
    """Kept and omitted columns."""

    def test_no_collinearity(self, X_full_rank):
        report = detect_and_remove_collinearity(X_full_rank)
        assert not report.has_omitted
        assert report.kept.tolist() == [0, 1, 2, 3]
        assert report.kept_names == ['x0', 'x1', 'x2', 'x3']
        np.testing.assert_array_equal(report.matrix, X_full_rank)

    def test_exact_sum_drops_last(self, X_full_rank):
        x1, x2 = X_full_rank[:, 1], X_full_rank[:, 2]
        X = np.column_stack([np.ones(30), x1, x2, x1 + x2])
        report = detect_and_remove_collinearity(
            X, column_names=['Intercept', 'x1', 'x2', 'x3']
        )
        assert report.omitted.tolist() == [3]
        assert report.omitted_names == ['x3']
        assert report.kept_names == ['Intercept', 'x1', 'x2']
        assert report.rank == 3

    @pytest.mark.parametrize("position", [1, 2, 3])
    def test_duplicate_drops_later_copy(self, X_full_rank, position):
        X = np.column_stack([X_full_rank, X_full_rank[:, position]])
        report = detect_and_remove_collinearity(X)
        assert report.omitted.tolist() == [4]
        assert position in report.kept

    def test_duplicate_placed_before(self, X_full_rank):
        # The copy comes first, so the original (later) column is dropped
        X = np.column_stack([X_full_rank[:, 2], X_full_rank])
        report = detect_and_remove_collinearity(X)
        assert report.omitted.tolist() == [3]

    def test_dummy_trap(self):
        male = np.array([1.0, 0, 1, 1, 0, 0, 1, 0])
        female = 1.0 - male
        X = np.column_stack([np.ones(8), male, female])
        report = detect_and_remove_collinearity(X, column_names=['Intercept', 'male', 'female'])
        assert report.omitted_names == ['female']

    def test_two_independent_dependencies(self, X_full_rank):
        x1, x2 = X_full_rank[:, 1], X_full_rank[:, 2]
        X = np.column_stack([np.ones(30), x1, x2, x1 + x2, x1 - x2])
        report = detect_and_remove_collinearity(X)
        assert report.omitted.tolist() == [3, 4]

    def test_zero_column(self, X_full_rank):
        X = np.column_stack([X_full_rank, np.zeros(30)])
        report = detect_and_remove_collinearity(X)
        assert report.omitted.tolist() == [4]

    def test_near_collinear_kept_above_tolerance(self, X_full_rank):
        x1 = X_full_rank[:, 1]
        noise = np.random.default_rng(7).normal(size=30) * 1e-4
        X = np.column_stack([X_full_rank, x1 + noise])
        report = detect_and_remove_collinearity(X)
        assert not report.has_omitted

    def test_tolerance_argument(self, X_full_rank):
        x1 = X_full_rank[:, 1]
        noise = np.random.default_rng(7).normal(size=30) * 1e-4
        X = np.column_stack([X_full_rank, x1 + noise])
        report = detect_and_remove_collinearity(X, tol=1e-3)
        assert report.omitted.tolist() == [4]

    def test_clean_matrix_has_full_rank(self, X_full_rank):
        x1, x2 = X_full_rank[:, 1], X_full_rank[:, 2]
        X = np.column_stack([np.ones(30), x1, 2 * x1, x2, x1 - x2])
        report = detect_and_remove_collinearity(X)
        assert np.linalg.matrix_rank(report.matrix) == report.matrix.shape[1]

    def test_name_count_mismatch(self, X_full_rank):
        with pytest.raises(DimensionMismatch):
            detect_and_remove_collinearity(X_full_rank, column_names=['a', 'b'])

    def test_nan_rejected(self, X_full_rank):
        X = X_full_rank.copy()
        X[0, 1] = np.nan
        with pytest.raises(DataError):
            detect_and_remove_collinearity(X)
