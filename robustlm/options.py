"""
Process-wide defaults.

Every function that reads one of these also accepts it as a keyword
argument; the options only supply the value when the argument is omitted.
"""

from contextlib import contextmanager
from dataclasses import asdict, dataclass

__all__ = ["get_option", "option_context", "options", "set_option"]


@dataclass
class _Options:
    collin_tol: float = 1e-10
    leverage_clamp: float = 0.9999
    backend: str = "auto"
    vcov: str = "nonrobust"
    warn_collinear: bool = True

    def update(self, **kwargs):
        for k, v in kwargs.items():
            if not hasattr(self, k):
                raise KeyError(f"Unknown option '{k}'")
            setattr(self, k, v)

    def to_dict(self):
        return asdict(self)


options = _Options()


def set_option(**kwargs):
    """Globally set default options."""
    options.update(**kwargs)


def get_option(name: str):
    return getattr(options, name)


@contextmanager
def option_context(**kwargs):
    "Temporarily override options inside a `with` block."
    old = options.to_dict()
    try:
        options.update(**kwargs)
        yield
    finally:
        options.__dict__.update(old)
