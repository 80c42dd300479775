"""Likelihood family protocol and resolution logic.

The ``LikelihoodFamily`` protocol isolates everything that differs
between the linear ("normal") and logistic ("binomial") variants of
the variational fit:

* which statistics the kernel regresses against
  (:meth:`~LikelihoodFamily.compute_statistics`),
* the data-fit term of the lower bound
  (:meth:`~LikelihoodFamily.data_term`),
* whether there are free variational parameters to re-optimise
  (:meth:`~LikelihoodFamily.update_free_parameters`),
* whether there is a residual variance to re-estimate
  (:meth:`~LikelihoodFamily.update_residual_variance`).

The coordinate-ascent kernel, the lower-bound evaluator and the outer
driver program against the protocol, never against ``if binomial:``
branches.  The linear family's "statistics" are the trivial
pass-through ``(Xᵗy, diag(XᵗX))``; its residual variance ``sigma``
scales the kernel.  The logistic family fixes ``sigma = 1`` and
folds the bound's curvature into the statistics instead.

Each concrete family is a frozen ``@dataclass`` that carries no
mutable state.  :func:`resolve_family` maps a user-facing string
(``"normal"``/``"linear"``, ``"binomial"``/``"logistic"``, or
``"auto"``) to an instance.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np

from ._state import VariationalState
from .bound import int_linear, int_logit
from .eta import update_eta
from .matrix import DesignMatrix
from .quadform import betavar
from .statistics import LogisticStats, NormalStats, normal_stats, update_stats

# ------------------------------------------------------------------ #
# LikelihoodFamily protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class LikelihoodFamily(Protocol):
    """Interface that every likelihood family must implement.

    Attributes:
        name: Short identifier used in results (``"normal"``,
            ``"binomial"``).
        has_free_parameters: Whether the family carries per-observation
            free parameters ``eta`` that are re-optimised between
            sweeps.
        has_residual_variance: Whether ``sigma`` is a parameter of the
            likelihood (and may be re-estimated).
    """

    @property
    def name(self) -> str: ...

    @property
    def has_free_parameters(self) -> bool: ...

    @property
    def has_residual_variance(self) -> bool: ...

    # ---- Validation ------------------------------------------------

    def validate_y(self, y: np.ndarray) -> None:
        """Raise ``ValueError`` if *y* is unsuitable for this family."""
        ...

    # ---- Statistics ------------------------------------------------

    def initial_eta(self, n: int) -> np.ndarray | None:
        """Default free parameters for *n* observations, or ``None``."""
        ...

    def compute_statistics(
        self,
        X: DesignMatrix,
        y: np.ndarray,
        eta: np.ndarray | None,
    ) -> NormalStats | LogisticStats:
        """Statistics bundle consumed by the kernel and the bound."""
        ...

    def slab_variance(self, sa: float, sigma: float) -> float:
        """Prior variance of an included coefficient."""
        ...

    # ---- Lower bound -----------------------------------------------

    def data_term(
        self,
        y: np.ndarray,
        stats: NormalStats | LogisticStats,
        state: VariationalState,
    ) -> float:
        """Expected log-likelihood (or its bound) under *state*."""
        ...

    # ---- M-steps ---------------------------------------------------

    def update_free_parameters(
        self,
        X: DesignMatrix,
        y: np.ndarray,
        state: VariationalState,
        stats: NormalStats | LogisticStats,
    ) -> np.ndarray:
        """Return re-optimised free parameters ``eta``.

        Raises:
            NotImplementedError: For families without free parameters.
        """
        ...

    def update_residual_variance(
        self,
        y: np.ndarray,
        state: VariationalState,
        stats: NormalStats | LogisticStats,
    ) -> float:
        """Return the maximising residual variance ``sigma``.

        Raises:
            NotImplementedError: For families without ``sigma``.
        """
        ...

    def update_prior_variance(
        self,
        state: VariationalState,
        sa0: float,
        n0: float,
    ) -> float:
        """MAP estimate of ``sa`` under a scaled inverse-chi-square prior."""
        ...


def _map_prior_variance(
    state: VariationalState,
    sa0: float,
    n0: float,
) -> float:
    """``(sa0·n0 + Σ alpha(s + mu²)) / (n0 + σ·Σ alpha)``.

    ``sa0`` and ``n0`` act as a prior guess and its pseudo-count.  The
    ``σ`` factor converts the slab second moments back to the
    ``sa`` scale for the linear model (``σ = 1`` for logistic).

    With ``n0 = 0`` and no inclusion mass the estimate is ``0/0``; the
    current ``sa`` is kept in that case.
    """
    alpha, mu, s = state.alpha, state.mu, state.s
    denom = n0 + state.sigma * np.sum(alpha)
    if denom <= 0:
        return float(state.sa)
    return float((sa0 * n0 + np.dot(alpha, s + mu**2)) / denom)


# ------------------------------------------------------------------ #
# NormalFamily
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class NormalFamily:
    """Linear regression with Gaussian residuals of variance ``sigma``.

    The likelihood is conjugate to the slab, so no free parameters are
    needed and the statistics never change during a run.
    """

    @property
    def name(self) -> str:
        return "normal"

    @property
    def has_free_parameters(self) -> bool:
        return False

    @property
    def has_residual_variance(self) -> bool:
        return True

    def validate_y(self, y: np.ndarray) -> None:
        """Check that *y* is numeric and finite."""
        if not np.issubdtype(y.dtype, np.number):
            msg = "NormalFamily requires numeric y values."
            raise ValueError(msg)
        if not np.all(np.isfinite(y)):
            msg = "NormalFamily requires finite y values."
            raise ValueError(msg)

    def initial_eta(self, n: int) -> None:  # noqa: ARG002
        return None

    def compute_statistics(
        self,
        X: DesignMatrix,
        y: np.ndarray,
        eta: np.ndarray | None,  # noqa: ARG002
    ) -> NormalStats:
        return normal_stats(X, y)

    def slab_variance(self, sa: float, sigma: float) -> float:
        return sa * sigma

    def data_term(
        self,
        y: np.ndarray,
        stats: NormalStats,
        state: VariationalState,
    ) -> float:
        return int_linear(
            state.Xr, stats.xdx, y, state.sigma, state.alpha, state.mu, state.s
        )

    def update_free_parameters(self, X, y, state, stats):  # noqa: ARG002
        msg = "NormalFamily has no free variational parameters."
        raise NotImplementedError(msg)

    def update_residual_variance(
        self,
        y: np.ndarray,
        state: VariationalState,
        stats: NormalStats,
    ) -> float:
        """Maximiser of the bound in ``sigma`` (with the slab prior).

        ``(‖y − Xr‖² + xdxᵗ·betavar + alphaᵗ(s + mu²)/sa) / (n + Σ alpha)``
        """
        resid = y - state.Xr
        alpha, mu, s = state.alpha, state.mu, state.s
        return float(
            (
                np.dot(resid, resid)
                + np.dot(stats.xdx, betavar(alpha, mu, s))
                + np.dot(alpha, s + mu**2) / state.sa
            )
            / (y.shape[0] + np.sum(alpha))
        )

    def update_prior_variance(
        self,
        state: VariationalState,
        sa0: float,
        n0: float,
    ) -> float:
        return _map_prior_variance(state, sa0, n0)


# ------------------------------------------------------------------ #
# BinomialFamily
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class BinomialFamily:
    """Logistic regression of a binary outcome.

    The log-logistic factors are replaced by the Jaakkola–Jordan
    quadratic bound with one free parameter per observation; the
    intercept is profiled out analytically (see
    :mod:`varbvs.statistics`).
    """

    @property
    def name(self) -> str:
        return "binomial"

    @property
    def has_free_parameters(self) -> bool:
        return True

    @property
    def has_residual_variance(self) -> bool:
        return False

    def validate_y(self, y: np.ndarray) -> None:
        """Check that *y* takes values in {0, 1}.

        A constant *y* is allowed (the profiled intercept absorbs it)
        but almost always a data-preparation mistake, so it warns.
        """
        if not np.all(np.isin(y, [0, 1])):
            msg = "BinomialFamily requires binary y with values in {0, 1}."
            raise ValueError(msg)
        if np.unique(y).size < 2:
            warnings.warn(
                "y is constant; the fitted inclusion probabilities will "
                "reflect the prior only.",
                UserWarning,
                stacklevel=3,
            )

    def initial_eta(self, n: int) -> np.ndarray:
        return np.ones(n)

    def compute_statistics(
        self,
        X: DesignMatrix,
        y: np.ndarray,
        eta: np.ndarray | None,
    ) -> LogisticStats:
        if eta is None:
            msg = "BinomialFamily statistics require free parameters eta."
            raise ValueError(msg)
        return update_stats(X, y, eta)

    def slab_variance(self, sa: float, sigma: float) -> float:  # noqa: ARG002
        return sa

    def data_term(
        self,
        y: np.ndarray,
        stats: LogisticStats,
        state: VariationalState,
    ) -> float:
        return int_logit(
            y, stats, state.alpha, state.mu, state.s, state.Xr, state.eta
        )

    def update_free_parameters(
        self,
        X: DesignMatrix,
        y: np.ndarray,
        state: VariationalState,
        stats: LogisticStats,
    ) -> np.ndarray:
        v = betavar(state.alpha, state.mu, state.s)
        return update_eta(X, y, v, state.Xr, stats.d)

    def update_residual_variance(self, y, state, stats):  # noqa: ARG002
        msg = "BinomialFamily has no residual variance to estimate."
        raise NotImplementedError(msg)

    def update_prior_variance(
        self,
        state: VariationalState,
        sa0: float,
        n0: float,
    ) -> float:
        return _map_prior_variance(state, sa0, n0)


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, type] = {}
"""Registry mapping family name strings to concrete classes."""

_ALIASES: dict[str, str] = {
    "linear": "normal",
    "gaussian": "normal",
    "logistic": "binomial",
}


def register_family(name: str, cls: type) -> None:
    """Register a concrete ``LikelihoodFamily`` class under *name*.

    Args:
        name: Lookup key (e.g. ``"normal"``).
        cls: A class implementing the ``LikelihoodFamily`` protocol.

    Raises:
        TypeError: If *cls* does not satisfy the protocol.
    """
    try:
        instance = cls()
    except Exception:  # noqa: BLE001
        msg = f"{cls!r} could not be instantiated for protocol check."
        raise TypeError(msg) from None
    if not isinstance(instance, LikelihoodFamily):
        msg = f"{cls!r} does not implement the LikelihoodFamily protocol."
        raise TypeError(msg)
    _FAMILIES[name] = cls


def resolve_family(
    family: str | LikelihoodFamily,
    y: np.ndarray | None = None,
) -> LikelihoodFamily:
    """Resolve a family string or instance to a ``LikelihoodFamily``.

    Instances are returned as-is.  ``"auto"`` picks ``"binomial"``
    when *y* has exactly the two values {0, 1} and ``"normal"``
    otherwise.  ``"linear"``/``"gaussian"`` and ``"logistic"`` are
    accepted as aliases.

    Raises:
        ValueError: If *family* is ``"auto"`` without *y*, or an
            unknown name.
    """
    if isinstance(family, LikelihoodFamily):
        return family

    key = family.strip().lower()
    if key == "auto":
        if y is None:
            msg = "resolve_family() requires 'y' when family='auto'."
            raise ValueError(msg)
        unique_y = np.unique(y)
        is_binary = bool(len(unique_y) == 2 and np.all(np.isin(unique_y, [0, 1])))
        key = "binomial" if is_binary else "normal"

    key = _ALIASES.get(key, key)
    if key not in _FAMILIES:
        available = ", ".join(sorted(_FAMILIES)) or "(none registered)"
        msg = f"Unknown family {family!r}.  Available families: {available}."
        raise ValueError(msg)

    instance: LikelihoodFamily = _FAMILIES[key]()
    return instance


register_family("normal", NormalFamily)
register_family("binomial", BinomialFamily)


__all__ = [
    "BinomialFamily",
    "LikelihoodFamily",
    "NormalFamily",
    "register_family",
    "resolve_family",
]
