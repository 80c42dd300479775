"""Typed result objects for variational fits.

Frozen dataclasses that provide:

* **Attribute access** — ``result.alpha``, ``result.logw``, etc.
* **Dict-like access** — ``result["alpha"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python.
* **Tabulation** — ``.to_frame()`` returns the per-variable posterior
  summaries as a :class:`pandas.DataFrame`.

Results are frozen (immutable after construction) to communicate that
they are a snapshot of a completed fit.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ._context import FitContext

# ------------------------------------------------------------------ #
# Stop states
# ------------------------------------------------------------------ #


class StopState(str, enum.Enum):
    """State of the outer driver.

    ``RUNNING`` is only ever observed by the driver itself; every
    returned result carries one of the three terminal states.  None of
    the terminal states is a failure.
    """

    RUNNING = "running"
    CONVERGED = "converged"
    REVERTED_AND_STOPPED = "reverted_and_stopped"
    MAX_ITER_STOPPED = "max_iter_stopped"

    @property
    def is_terminal(self) -> bool:
        return self is not StopState.RUNNING


# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types.

    Handles nested dicts, lists, np.ndarray, np.integer, np.floating
    and enums so that :meth:`to_dict` returns a fully
    JSON-serialisable structure.
    """
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"context"})

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        Runs :func:`_numpy_to_python` on every field except those in
        ``_EXCLUDE_FROM_DICT``.
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# IterationRecord
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class IterationRecord(_DictAccessMixin):
    """Progress of one outer iteration, handed to observers."""

    iteration: int
    """1-based outer iteration number."""

    logw_before: float
    """Lower bound before the sweep."""

    logw_after: float
    """Lower bound after the sweep (and the ``eta`` update)."""

    max_err: float
    """``max |alpha − alpha_previous|``."""

    sum_alpha: float
    """Expected number of included variables."""

    sa: float
    """Prior variance after this iteration's M-step."""

    sigma: float | None
    """Residual variance (``None`` for the logistic model)."""

    outer_iter: int | None = None
    """Caller-supplied label (e.g. grid index) for progress output."""


# ------------------------------------------------------------------ #
# FitResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class FitResult(_DictAccessMixin):
    """Result of fitting one hyperparameter setting.

    Returned by :func:`~varbvs.varbvs_fit` and by each entry of
    :func:`~varbvs.fit_grid`.  All fields are accessible both as
    attributes and via dict syntax.
    """

    # ---- Bound & hyperparameters -----------------------------------
    logw: float
    """Variational lower bound recorded by the driver at stopping."""

    sa: float
    """Prior variance of included coefficients (final)."""

    sigma: float | None
    """Residual variance (``None`` for the logistic model)."""

    # ---- Variational parameters ------------------------------------
    alpha: np.ndarray
    """Posterior inclusion probabilities ``(p,)``."""

    mu: np.ndarray
    """Posterior means given inclusion ``(p,)``."""

    s: np.ndarray
    """Posterior variances given inclusion ``(p,)``."""

    Xr: np.ndarray
    """Fitted linear predictor ``X·(alpha⊙mu)``, ``(n,)``."""

    eta: np.ndarray | None
    """Free parameters of the logistic bound, ``None`` for linear."""

    # ---- Stopping --------------------------------------------------
    stop_state: StopState
    """Terminal state of the driver."""

    n_iter: int
    """Number of outer iterations run."""

    max_err: float
    """Last ``max |Δalpha|`` (``nan`` if no iteration ran)."""

    # ---- Metadata --------------------------------------------------
    family: str
    """Likelihood family name (``"normal"`` or ``"binomial"``)."""

    backend: str
    """Compute backend used."""

    feature_names: list[str]
    """Variable labels, ``x0..x{p-1}`` when none were supplied."""

    # ---- Computation context (not serialised) ----------------------
    context: FitContext | None = field(default=None, repr=False, compare=False)
    """Per-run accumulator (iteration history, toggles).  Excluded
    from ``to_dict()`` serialisation."""

    @property
    def converged(self) -> bool:
        return self.stop_state is StopState.CONVERGED

    @property
    def beta(self) -> np.ndarray:
        """Posterior mean coefficients ``alpha⊙mu``."""
        return self.alpha * self.mu

    def to_frame(self) -> pd.DataFrame:
        """Per-variable posterior summaries indexed by feature name."""
        return pd.DataFrame(
            {
                "alpha": self.alpha,
                "mu": self.mu,
                "s": self.s,
                "beta": self.beta,
            },
            index=pd.Index(self.feature_names, name="variable"),
        )


__all__ = ["FitResult", "IterationRecord", "StopState"]
