"""
Linear regression with a formula interface and robust inference.

Runs the whole pipeline: compile the formula, build the design matrix,
drop collinear columns, solve least squares, then compute the requested
covariance and the inference that depends on it.
"""

import logging
import warnings
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy import stats

from ._backends import get_backend
from ._core import diagnostics as _diag
from ._core.covariance import CovariancePolicy, compute_covariance, resolve_policy
from ._core.lm_solver import fit_least_squares, predict as _predict
from ._core.qr import detect_and_remove_collinearity
from .formula import Formula, build_design_matrix, compile_formula, evaluate_plan
from .options import options

LOGGER = logging.getLogger(__name__)


class LinearModel:
    """
    Fit an ordinary least-squares model from a formula.

    Examples
    --------
    >>> import pandas as pd
    >>> from robustlm import ols, Clustered
    >>>
    >>> data = pd.read_csv('wages.csv')
    >>>
    >>> model = ols("wage ~ educ + C(region) + educ:exper", data,
    ...             cov_type=Clustered(data['firm']))
    >>>
    >>> model.coef         # Named coefficients
    >>> model.std_errors   # Cluster-robust standard errors
    >>> model.conf_int()   # Confidence intervals
    >>> model.tidy()       # Everything in one DataFrame
    """

    def __init__(
        self,
        formula: Union[str, Formula],
        data,
        cov_type: Union[None, str, CovariancePolicy] = None,
        backend=None,
        collin_tol: Optional[float] = None,
    ):
        """
        Fit the model.

        Parameters
        ----------
        formula : str or Formula
            Model formula, e.g. ``"y ~ x1 + C(group) + I(x2^2)"``
        data : DataFrame, mapping or ColumnAccessor
            Dataset containing every variable the formula names
        cov_type : str or CovariancePolicy, optional
            Covariance estimator (default ``options.vcov``)
        backend : str or Backend, optional
            Least-squares backend: 'auto', 'cpu', 'torch', 'gpu'
            (default ``options.backend``)
        collin_tol : float, optional
            Relative tolerance of the collinearity check
            (default ``options.collin_tol``)
        """
        if isinstance(formula, str):
            formula = compile_formula(formula)
        self.formula = formula
        self.policy = resolve_policy(cov_type)
        self.backend = get_backend(backend)
        self.collin_tol = options.collin_tol if collin_tol is None else collin_tol

        self.design = build_design_matrix(formula, data)
        self.y_values = self.design.response
        self.y_name = formula.response

        self._collinearity = detect_and_remove_collinearity(
            self.design.matrix, tol=self.collin_tol, column_names=self.design.column_names
        )
        if self._collinearity.has_omitted and options.warn_collinear:
            warnings.warn(
                f"{len(self.omitted_names)} column(s) omitted because of exact "
                f"collinearity: {', '.join(self.omitted_names)}",
                UserWarning,
                stacklevel=2,
            )
        self.X_values = self._collinearity.matrix

        self.n_obs = self.X_values.shape[0]
        self.n_coef = self.X_values.shape[1]

        self._backend_result = fit_least_squares(
            self.X_values, self.y_values, tol=self.collin_tol, backend=self.backend
        )
        LOGGER.debug("Fitted %s with backend %s", formula, self.backend.name)

        self._compute_statistics()

    def _compute_statistics(self):
        """Compute covariance, standard errors, t-stats, p-values, fit statistics."""
        result = self._backend_result

        self.coefficients = result.coefficients
        self.residuals = result.residuals
        self.fitted_values = result.fitted_values
        self.rank = result.rank
        self.df_residual = result.df_residual

        self.vcov = compute_covariance(
            self.X_values, self.residuals, self.policy, tol=self.collin_tol
        )
        self.std_errors = np.sqrt(np.diag(self.vcov))

        with np.errstate(divide='ignore', invalid='ignore'):
            self.t_values = self.coefficients / self.std_errors
        if self.df_residual > 0:
            self.pvalues = 2 * stats.t.sf(np.abs(self.t_values), self.df_residual)
        else:
            self.pvalues = np.full(self.n_coef, np.nan)

        n = self.n_obs
        rss = np.sum(self.residuals ** 2)
        self.rss = rss
        self.sigma = np.sqrt(rss / self.df_residual) if self.df_residual > 0 else np.nan

        # Centered R^2 with an intercept, uncentered without (as in R)
        if self.formula.intercept:
            tss = np.sum((self.y_values - np.mean(self.y_values)) ** 2)
            df_model = self.rank - 1
        else:
            tss = np.sum(self.y_values ** 2)
            df_model = self.rank
        self.tss = tss
        self.df_model = df_model

        self.r_squared = 1 - (rss / tss) if tss > 0 else 0.0
        if self.df_residual > 0:
            df_total = n - 1 if self.formula.intercept else n
            self.adj_r_squared = 1 - (1 - self.r_squared) * df_total / self.df_residual
        else:
            self.adj_r_squared = np.nan

        if df_model > 0 and self.df_residual > 0 and rss > 0:
            self.f_statistic = ((tss - rss) / df_model) / (rss / self.df_residual)
            self.f_pvalue = stats.f.sf(self.f_statistic, df_model, self.df_residual)
        else:
            self.f_statistic = np.nan
            self.f_pvalue = np.nan

        # Gaussian log-likelihood at the MLE of sigma^2
        with np.errstate(divide='ignore'):
            self.log_likelihood = -n / 2.0 * (np.log(2 * np.pi) + np.log(rss / n) + 1)
        self.aic = 2 * self.n_coef - 2 * self.log_likelihood
        self.bic = self.n_coef * np.log(n) - 2 * self.log_likelihood

    @property
    def kept_names(self):
        """Names of the estimated coefficients, in design order."""
        return list(self._collinearity.kept_names)

    @property
    def omitted_names(self):
        """Names of columns dropped for exact collinearity."""
        return list(self._collinearity.omitted_names)

    @property
    def coef(self):
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.kept_names)

    def conf_int(self, alpha: float = 0.05):
        """
        Confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)

        Returns
        -------
        DataFrame
            Confidence intervals with columns 'lower' and 'upper'
        """
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        if self.df_residual > 0:
            t_crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        else:
            t_crit = np.nan
        lower = self.coefficients - t_crit * self.std_errors
        upper = self.coefficients + t_crit * self.std_errors

        return pd.DataFrame({
            'lower': lower,
            'upper': upper
        }, index=self.kept_names)

    def tidy(self, alpha: float = 0.05):
        """
        Coefficient table as a DataFrame.

        Columns: estimate, std_error, t_value, p_value, lower, upper.
        """
        ci = self.conf_int(alpha)
        return pd.DataFrame({
            'estimate': self.coefficients,
            'std_error': self.std_errors,
            't_value': self.t_values,
            'p_value': self.pvalues,
            'lower': ci['lower'].to_numpy(),
            'upper': ci['upper'].to_numpy(),
        }, index=self.kept_names)

    def partial_r_squared(self, terms) -> float:
        """
        Partial R² of one or more coefficients.

        Parameters
        ----------
        terms : str, int or sequence of them
            Kept coefficient names (see ``kept_names``) or positions

        Returns
        -------
        float
            ``(SSR_r - SSR) / SSR_r`` where the restricted model drops
            ``terms``

        Examples
        --------
        >>> model = ols("wage ~ educ + exper + I(exper^2)", data)
        >>> model.partial_r_squared(['exper', 'exper^2'])
        """
        if isinstance(terms, (str, int, np.integer)):
            terms = [terms]
        names = self.kept_names
        columns = []
        for term in terms:
            if isinstance(term, str):
                if term not in names:
                    raise KeyError(f"'{term}' is not an estimated coefficient; "
                                   f"choose from {names}")
                columns.append(names.index(term))
            else:
                columns.append(int(term))
        return _diag.partial_r_squared(self.X_values, self.y_values, columns,
                                       tol=self.collin_tol)

    def diagnostics(self, lags: int = 1, reset_power: int = 3,
                    drop_fraction: float = 0.2) -> dict:
        """
        Regression diagnostics of the clean design matrix and residuals.

        Parameters
        ----------
        lags : int
            Order of the Breusch-Godfrey test
        reset_power : int
            Highest power of the fitted values in the RESET test
        drop_fraction : float
            Share of middle observations left out of the Goldfeld-Quandt test

        Returns
        -------
        dict
            ``leverage``, ``cooks_distance`` (arrays), ``vif`` (Series by
            coefficient name), ``condition_number``, ``durbin_watson``,
            ``jarque_bera`` and ``breusch_pagan`` (statistic, p-value),
            ``white`` and ``breusch_godfrey`` (statistic, p-value, df),
            ``reset`` and ``goldfeld_quandt`` (F, p-value, df1, df2).
        """
        X, e, tol = self.X_values, self.residuals, self.collin_tol
        out = {
            'leverage': _diag.leverage(X, tol),
            'vif': pd.Series(_diag.vif(X, tol), index=self.kept_names),
            'condition_number': _diag.condition_number(X),
            'durbin_watson': _diag.durbin_watson(e),
            'jarque_bera': _diag.jarque_bera(e),
            'breusch_pagan': _diag.breusch_pagan(e, X, tol),
            'white': _diag.white_test(e, X, tol),
            'reset': _diag.reset_test(self.y_values, X, self.fitted_values,
                                      power=reset_power, tol=tol),
            'breusch_godfrey': _diag.breusch_godfrey_test(e, X, lags=lags, tol=tol),
            'goldfeld_quandt': _diag.goldfeld_quandt_test(e, drop_fraction=drop_fraction),
        }
        if self.df_residual > 0 and self.rss > 0:
            out['cooks_distance'] = _diag.cooks_distance(X, e, s2=self.sigma ** 2, tol=tol)
        else:
            out['cooks_distance'] = np.full(self.n_obs, np.nan)
        return out

    def predict(self, newdata) -> np.ndarray:
        """
        Predict response for new data.

        Parameters
        ----------
        newdata : DataFrame, mapping or array
            - DataFrame / mapping: re-expanded with the fitted formula;
              categorical levels are those seen during fitting
            - array: design matrix with one column per kept coefficient

        Returns
        -------
        array
            Predicted values
        """
        if isinstance(newdata, np.ndarray):
            X_new = newdata
        else:
            X_full = evaluate_plan(self.design.plan, newdata)
            X_new = X_full[:, self._collinearity.kept]
        return _predict(X_new, self.coefficients)

    def __repr__(self):
        return (f"LinearModel('{self.formula}', n={self.n_obs}, k={self.n_coef}, "
                f"vcov={self.policy.name}, R²={self.r_squared:.3f})")


def ols(formula, data, **kwargs):
    """
    Fit a linear regression model (convenience function).

    Parameters
    ----------
    formula : str or Formula
        Model formula
    data : DataFrame, mapping or ColumnAccessor
        Dataset
    **kwargs
        Additional arguments passed to LinearModel (``cov_type``,
        ``backend``, ``collin_tol``)

    Returns
    -------
    LinearModel
        Fitted model object

    Examples
    --------
    >>> model = ols("mpg ~ wt + hp", mtcars, cov_type="HC3")
    >>> model.coef
    >>> model.pvalues
    >>> new_cars = pd.DataFrame({'wt': [3.0, 3.5], 'hp': [110, 150]})
    >>> model.predict(new_cars)
    """
    return LinearModel(formula, data, **kwargs)
