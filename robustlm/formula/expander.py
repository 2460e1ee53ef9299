"""
Term expansion.

Maps the symbolic terms of a :class:`Formula` onto the ordered list of
design-matrix columns. Every output column carries a value rule
(identity, indicator, power or product) that the builder evaluates later,
so the total width is known before any storage is allocated.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..exceptions import DuplicateColumnError, NonNumericVariableError, VariableNotFound
from .terms import Formula, Term, TermKind

LOGGER = logging.getLogger(__name__)

INTERCEPT_NAME = "Intercept"


class ColumnRule(Enum):
    CONSTANT = "constant"    # intercept
    IDENTITY = "identity"    # x
    INDICATOR = "indicator"  # 1{x == level}
    POWER = "power"          # x ** p
    PRODUCT = "product"      # elementwise product of factor columns


@dataclass(frozen=True)
class ExpandedColumn:
    """One design-matrix column and the rule that produces its values."""
    name: str
    rule: ColumnRule
    variable: Optional[str] = None
    level: Any = None
    power: Optional[int] = None
    factors: Tuple["ExpandedColumn", ...] = ()

    def evaluate(self, values: Dict[str, np.ndarray], n: int) -> np.ndarray:
        """Values of this column given the raw variables (name -> array)."""
        if self.rule is ColumnRule.CONSTANT:
            return np.ones(n, dtype=np.float64)
        if self.rule is ColumnRule.INDICATOR:
            return (values[self.variable] == self.level).astype(np.float64)
        if self.rule is ColumnRule.PRODUCT:
            out = self.factors[0].evaluate(values, n)
            for factor in self.factors[1:]:
                out = out * factor.evaluate(values, n)
            return out

        x = _as_float(values[self.variable], self.variable)
        if self.rule is ColumnRule.POWER:
            return x ** self.power
        return x


@dataclass(frozen=True)
class TermWidth:
    """Number of columns a term contributes."""
    label: str
    width: int


@dataclass(frozen=True)
class ExpansionPlan:
    """
    Ordered design-matrix layout for one formula on one dataset.

    Categorical levels are fixed at expansion time, so the same plan can
    be evaluated on new data (for prediction) and produce aligned columns.
    """
    formula: Formula
    columns: Tuple[ExpandedColumn, ...]
    term_widths: Tuple[TermWidth, ...] = field(default=())

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def n_columns(self) -> int:
        return len(self.columns)

    @property
    def variables(self) -> Tuple[str, ...]:
        """Predictor variables the plan reads (response excluded)."""
        names = []
        for term in self.formula.terms:
            for v in term.variables:
                if v not in names:
                    names.append(v)
        return tuple(names)


def _as_float(values: np.ndarray, name: str) -> np.ndarray:
    if values.dtype.kind in "fiub":
        return values.astype(np.float64, copy=False)
    try:
        return np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise NonNumericVariableError(name) from e


def _format_level(level) -> str:
    if isinstance(level, (float, np.floating)) and float(level).is_integer():
        return str(int(level))
    return str(level)


def _flatten(term: Term) -> List[Term]:
    """Rewrite ``a*b`` as ``a + b + a:b`` (recursively); other terms pass through."""
    if term.kind is not TermKind.FULL_INTERACTION:
        return [term]
    left = _flatten(term.left)
    right = _flatten(term.right)
    products = [Term.interaction(a, b) for a in left for b in right]
    return left + right + products


class _Expander:
    def __init__(self, accessor):
        self.accessor = accessor
        self._levels: Dict[str, list] = {}

    def _require(self, name: str):
        if not self.accessor.has_column(name):
            raise VariableNotFound(name)

    def levels(self, name: str) -> list:
        """Distinct values of ``name`` in first-appearance order."""
        if name not in self._levels:
            self._require(name)
            self._levels[name] = list(pd.unique(np.asarray(self.accessor.get_column(name))))
        return self._levels[name]

    def columns(self, term: Term) -> List[ExpandedColumn]:
        if term.kind is TermKind.VARIABLE:
            name = term.variables[0]
            self._require(name)
            return [ExpandedColumn(name, ColumnRule.IDENTITY, variable=name)]

        if term.kind is TermKind.CATEGORICAL:
            name = term.variables[0]
            levels = self.levels(name)
            if len(levels) <= 1:
                LOGGER.debug("C(%s) has %d distinct level(s); no columns", name, len(levels))
            return [
                ExpandedColumn(f"{name}_{_format_level(level)}", ColumnRule.INDICATOR,
                               variable=name, level=level)
                for level in levels[1:]
            ]

        if term.kind is TermKind.POLYNOMIAL:
            name = term.variables[0]
            self._require(name)
            return [
                ExpandedColumn(f"{name}^{p}", ColumnRule.POWER, variable=name, power=p)
                for p in range(2, term.degree + 1)
            ]

        if term.kind is TermKind.INTERACTION:
            left = self.columns(term.left)
            right = self.columns(term.right)
            return [
                ExpandedColumn(f"{a.name}:{b.name}", ColumnRule.PRODUCT, factors=(a, b))
                for a in left for b in right
            ]

        raise ValueError(f"Unexpected term kind {term.kind}")  # FULL_INTERACTION is flattened


def expand_terms(formula: Formula, accessor) -> ExpansionPlan:
    """
    Compute the ordered column layout of a formula on a dataset.

    Parameters
    ----------
    formula : Formula
        Compiled formula.
    accessor : ColumnAccessor
        Data source; only read, never modified.

    Returns
    -------
    ExpansionPlan
        Columns (intercept first when enabled) and per-term widths.

    Raises
    ------
    VariableNotFound
        A referenced variable is absent.
    DuplicateColumnError
        Two distinct terms produce the same column name.

    Notes
    -----
    Expanded terms are deduplicated by identity, first occurrence wins:
    ``a*b + a:b`` yields a single ``a:b`` block, ``a:b`` and ``b:a`` are the
    same term. Subtracted terms are removed wherever they appear.
    """
    units: List[Term] = []
    removed = set()
    for term in formula.terms:
        for unit in _flatten(term):
            if term.included:
                units.append(unit)
            else:
                removed.add(unit.key)

    kept: List[Term] = []
    seen = set()
    for unit in units:
        if unit.key in seen or unit.key in removed:
            continue
        seen.add(unit.key)
        kept.append(unit)

    expander = _Expander(accessor)
    columns: List[ExpandedColumn] = []
    widths: List[TermWidth] = []
    if formula.intercept:
        columns.append(ExpandedColumn(INTERCEPT_NAME, ColumnRule.CONSTANT))
        widths.append(TermWidth(INTERCEPT_NAME, 1))

    for unit in kept:
        cols = expander.columns(unit)
        columns.extend(cols)
        widths.append(TermWidth(unit.label, len(cols)))

    names = set()
    for col in columns:
        if col.name in names:
            raise DuplicateColumnError(col.name)
        names.add(col.name)

    LOGGER.debug("Expanded '%s' into %d columns", formula.source or formula, len(columns))
    return ExpansionPlan(formula, tuple(columns), tuple(widths))
