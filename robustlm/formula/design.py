"""
Design matrix builder.

Reads data through a narrow column-accessor interface and materializes the
response vector and the raw design matrix of a formula.
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Protocol, Union

import numpy as np
import pandas as pd

from ..exceptions import DimensionMismatch, VariableNotFound
from .expander import ExpansionPlan, _as_float, expand_terms
from .parser import compile_formula
from .terms import Formula

LOGGER = logging.getLogger(__name__)


class ColumnAccessor(Protocol):
    """Read-only view of a tabular data store."""

    def get_column(self, name: str) -> np.ndarray:
        """Values of ``name``; raises VariableNotFound when absent."""
        ...

    def has_column(self, name: str) -> bool:
        ...

    def row_count(self) -> int:
        ...


class DataFrameAccessor:
    """Column accessor over a pandas DataFrame."""

    def __init__(self, data: pd.DataFrame):
        self.data = data

    def get_column(self, name: str) -> np.ndarray:
        if name not in self.data.columns:
            raise VariableNotFound(name)
        return self.data[name].to_numpy()

    def has_column(self, name: str) -> bool:
        return name in self.data.columns

    def row_count(self) -> int:
        return len(self.data)


class MappingAccessor:
    """Column accessor over a ``{name: sequence}`` mapping."""

    def __init__(self, data: Mapping):
        self.data = data

    def get_column(self, name: str) -> np.ndarray:
        if name not in self.data:
            raise VariableNotFound(name)
        return np.asarray(self.data[name])

    def has_column(self, name: str) -> bool:
        return name in self.data

    def row_count(self) -> int:
        lengths = {len(v) for v in self.data.values()}
        if len(lengths) > 1:
            raise DimensionMismatch("<data>", max(lengths), min(lengths))
        return lengths.pop() if lengths else 0


def as_accessor(data) -> ColumnAccessor:
    """Wrap a DataFrame or mapping; accessors pass through unchanged."""
    if isinstance(data, pd.DataFrame):
        return DataFrameAccessor(data)
    if isinstance(data, Mapping):
        return MappingAccessor(data)
    if all(hasattr(data, attr) for attr in ("get_column", "has_column", "row_count")):
        return data
    raise TypeError(
        f"data must be a pandas DataFrame, a mapping of columns, or a column "
        f"accessor; got {type(data).__name__}"
    )


@dataclass
class DesignMatrix:
    """Response vector, raw design matrix and column names."""
    response: np.ndarray
    matrix: np.ndarray
    column_names: List[str]
    plan: ExpansionPlan

    @property
    def n_obs(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_columns(self) -> int:
        return self.matrix.shape[1]


def _read_variables(names, accessor, n=None):
    """Fetch every variable once and check they share one length."""
    values = {}
    for name in names:
        column = np.asarray(accessor.get_column(name))
        if column.ndim != 1:
            column = column.reshape(-1)
        if n is None:
            n = column.shape[0]
        elif column.shape[0] != n:
            raise DimensionMismatch(name, n, column.shape[0])
        values[name] = column
    return values, n


def evaluate_plan(plan: ExpansionPlan, data, n: int = None) -> np.ndarray:
    """
    Evaluate an expansion plan on a data source.

    Used to rebuild aligned design matrices for new data; categorical
    levels come from the plan, not from ``data``.
    """
    accessor = as_accessor(data)
    values, n = _read_variables(plan.variables, accessor, n)
    if n is None:
        n = accessor.row_count()

    X = np.empty((n, plan.n_columns), dtype=np.float64)
    for j, column in enumerate(plan.columns):
        X[:, j] = column.evaluate(values, n)
    return X


def build_design_matrix(
    formula: Union[str, Formula],
    data,
) -> DesignMatrix:
    """
    Build the response and design matrix of a formula.

    Parameters
    ----------
    formula : str or Formula
        Model formula; strings are compiled first.
    data : DataFrame, mapping or ColumnAccessor
        Data source.

    Returns
    -------
    DesignMatrix
        ``response`` (n,), ``matrix`` (n, k), ``column_names`` (k) and the
        expansion plan.

    Raises
    ------
    VariableNotFound
        A referenced variable is absent.
    DimensionMismatch
        Referenced variables have unequal lengths.

    Examples
    --------
    >>> dm = build_design_matrix("y ~ I(x^3)", {"y": [1, 2, 3], "x": [1, 2, 3]})
    >>> dm.column_names
    ['Intercept', 'x^2', 'x^3']
    """
    if isinstance(formula, str):
        formula = compile_formula(formula)
    accessor = as_accessor(data)

    if not accessor.has_column(formula.response):
        raise VariableNotFound(formula.response)
    y_raw = np.asarray(accessor.get_column(formula.response)).reshape(-1)
    y = _as_float(y_raw, formula.response)
    n = y.shape[0]

    plan = expand_terms(formula, accessor)
    X = evaluate_plan(plan, accessor, n)

    LOGGER.debug("Built design matrix %d x %d", n, plan.n_columns)
    return DesignMatrix(y, X, plan.column_names, plan)
