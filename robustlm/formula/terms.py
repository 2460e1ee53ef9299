"""
Symbolic model terms.

Terms and formulas are immutable values produced once by the parser and
shared read-only across fits.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class TermKind(Enum):
    """Kind of a symbolic predictor term."""
    VARIABLE = "variable"                  # x
    CATEGORICAL = "categorical"            # C(x)
    POLYNOMIAL = "polynomial"              # I(x^n)
    INTERACTION = "interaction"            # a:b
    FULL_INTERACTION = "full_interaction"  # a*b  ->  a + b + a:b


@dataclass(frozen=True)
class Term:
    """
    One predictor term of a formula.

    Attributes
    ----------
    kind : TermKind
        What the term expands to.
    variables : tuple of str
        Base variable names referenced by the term, in order of appearance.
    degree : int, optional
        Highest power for polynomial terms (always >= 2).
    left, right : Term, optional
        Operands of an interaction.
    included : bool
        False when the term was subtracted (``- x``) and must be removed
        from the expansion.
    """
    kind: TermKind
    variables: Tuple[str, ...]
    degree: Optional[int] = None
    left: Optional["Term"] = None
    right: Optional["Term"] = None
    included: bool = True

    @classmethod
    def variable(cls, name: str) -> "Term":
        return cls(TermKind.VARIABLE, (name,))

    @classmethod
    def categorical(cls, name: str) -> "Term":
        return cls(TermKind.CATEGORICAL, (name,))

    @classmethod
    def polynomial(cls, name: str, degree: int) -> "Term":
        return cls(TermKind.POLYNOMIAL, (name,), degree=degree)

    @classmethod
    def interaction(cls, left: "Term", right: "Term", full: bool = False) -> "Term":
        kind = TermKind.FULL_INTERACTION if full else TermKind.INTERACTION
        names = left.variables + tuple(v for v in right.variables if v not in left.variables)
        return cls(kind, names, left=left, right=right)

    def excluded(self) -> "Term":
        """Same term, marked for removal."""
        return Term(self.kind, self.variables, self.degree, self.left, self.right, included=False)

    @property
    def label(self) -> str:
        if self.kind is TermKind.VARIABLE:
            return self.variables[0]
        if self.kind is TermKind.CATEGORICAL:
            return f"C({self.variables[0]})"
        if self.kind is TermKind.POLYNOMIAL:
            return f"I({self.variables[0]}^{self.degree})"
        op = "*" if self.kind is TermKind.FULL_INTERACTION else ":"
        return f"{self.left.label}{op}{self.right.label}"

    @property
    def factors(self) -> Tuple["Term", ...]:
        """Non-interaction components of a product term, left to right."""
        if self.kind is TermKind.INTERACTION:
            return self.left.factors + self.right.factors
        return (self,)

    @property
    def key(self) -> Tuple[str, ...]:
        """
        Identity used to deduplicate expanded terms.

        Products are commutative, so ``a:b`` and ``b:a`` share a key.
        """
        if self.kind is TermKind.INTERACTION:
            return tuple(sorted(f.label for f in self.factors))
        return (self.label,)

    def __str__(self) -> str:
        return self.label if self.included else f"-{self.label}"


@dataclass(frozen=True)
class Formula:
    """
    Compiled model formula: ``response ~ terms``.

    Create with :func:`robustlm.formula.compile_formula`.
    """
    response: str
    terms: Tuple[Term, ...]
    intercept: bool = True
    source: str = ""

    @property
    def variables(self) -> Tuple[str, ...]:
        """Every variable the formula reads, response first, without repeats."""
        seen = [self.response]
        for term in self.terms:
            for name in term.variables:
                if name not in seen:
                    seen.append(name)
        return tuple(seen)

    def __str__(self) -> str:
        rhs = [] if self.intercept else ["0"]
        for term in self.terms:
            rhs.append(term.label if term.included else f"- {term.label}")
        text = " + ".join(rhs).replace("+ - ", "- ") or "1"
        return f"{self.response} ~ {text}"
