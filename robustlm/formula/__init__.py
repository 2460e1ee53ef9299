"""
Formula compiler: parsing, term expansion and design matrix construction.
"""

from .terms import Term, TermKind, Formula
from .parser import compile_formula
from .expander import (
    INTERCEPT_NAME,
    ColumnRule,
    ExpandedColumn,
    ExpansionPlan,
    TermWidth,
    expand_terms,
)
from .design import (
    ColumnAccessor,
    DataFrameAccessor,
    DesignMatrix,
    MappingAccessor,
    as_accessor,
    build_design_matrix,
    evaluate_plan,
)

__all__ = [
    "Term",
    "TermKind",
    "Formula",
    "compile_formula",
    "INTERCEPT_NAME",
    "ColumnRule",
    "ExpandedColumn",
    "ExpansionPlan",
    "TermWidth",
    "expand_terms",
    "ColumnAccessor",
    "DataFrameAccessor",
    "DesignMatrix",
    "MappingAccessor",
    "as_accessor",
    "build_design_matrix",
    "evaluate_plan",
]
