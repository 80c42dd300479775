"""varbvs — Variational inference for Bayesian variable selection.

Fits a fully factorised spike-and-slab approximation to the posterior
of a linear or logistic regression by coordinate ascent on the
evidence lower bound, returning per-variable posterior inclusion
probabilities and a lower bound on the log marginal likelihood that
can be compared across hyperparameter settings.  Sweeps run through a
NumPy loop or, optionally, a JAX-compiled kernel; the design matrix
may be stored in single precision.

Public API:
    .. autosummary::
        varbvs_fit
        fit_grid
        lower_bound
        coordinate_update
        update_stats
        update_eta
        get_backend
        set_backend
        get_precision
        set_precision
        LikelihoodFamily
        NormalFamily
        BinomialFamily
        resolve_family
        register_family
        DesignMatrix
        VariationalEngine
        VariationalState
        FitContext
        FitResult
        IterationRecord
        StopState
        ConfigurationError
"""

from ._config import get_backend, get_precision, set_backend, set_precision
from ._context import FitContext
from ._errors import ConfigurationError
from ._results import FitResult, IterationRecord, StopState
from ._state import VariationalState
from .bound import lower_bound
from .core import fit_grid, varbvs_fit
from .display import print_progress
from .engine import VariationalEngine
from .eta import update_eta
from .families import (
    BinomialFamily,
    LikelihoodFamily,
    NormalFamily,
    register_family,
    resolve_family,
)
from .matrix import DesignMatrix
from .statistics import normal_stats, update_stats
from .update import coordinate_update

__all__ = [
    "ConfigurationError",
    "FitContext",
    "FitResult",
    "IterationRecord",
    "StopState",
    "VariationalState",
    "varbvs_fit",
    "fit_grid",
    "lower_bound",
    "coordinate_update",
    "normal_stats",
    "update_stats",
    "update_eta",
    "print_progress",
    "get_backend",
    "set_backend",
    "get_precision",
    "set_precision",
    "LikelihoodFamily",
    "NormalFamily",
    "BinomialFamily",
    "resolve_family",
    "register_family",
    "DesignMatrix",
    "VariationalEngine",
]

__version__ = "0.1.0"
