"""Sufficient statistics consumed by the coordinate-ascent kernel.

The kernel is written once for both likelihoods.  What differs is the
quadratic form it regresses against, and that is carried entirely by a
statistics bundle with four attributes:

=============  ==========================  ==============================
attribute      normal (linear)             binomial (logistic)
=============  ==========================  ==============================
``xy``         ``Xᵗy``                     ``Xᵗŷ`` (pseudo-response)
``xdx``        ``diag(XᵗX)``               ``diag(Xᵗ D̂ X)``
``weights``    ``None`` (plain products)   ``d = slope(eta)``
``xd``         ``None``                    ``Xᵗd``
=============  ==========================  ==============================

Logistic case
~~~~~~~~~~~~~
The Jaakkola–Jordan bound replaces each log-logistic factor by a
Gaussian-shaped factor with precision ``dᵢ = slope(ηᵢ)``.  Profiling
out the intercept ``β₀`` then leaves a weighted least-squares problem
with

    β₀ = Σ(y − ½) / Σd,      ŷ = y − ½ − β₀·d,
    D̂ = diag(d) − d·dᵗ / Σd,

so the effective Gram diagonal is ``diagsq(X, d) − xd² / Σd``.  The
statistics depend on ``eta`` only and are recomputed each time the
free parameters move.

Both products ``Xᵗŷ`` and ``Xᵗd`` are formed as ``(vᵗX)ᵗ`` through
:meth:`DesignMatrix.rmatvec` so that ``Xᵗ`` is never materialised.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._special import slope
from .matrix import DesignMatrix


@dataclass(frozen=True)
class NormalStats:
    """Pass-through statistics of the linear model.

    Constant for the whole run: they depend on ``X`` and ``y`` only.
    """

    xy: np.ndarray
    """``Xᵗy``, shape ``(p,)``."""

    xdx: np.ndarray
    """``diag(XᵗX)``, shape ``(p,)``."""

    weights: None = None
    xd: None = None


@dataclass(frozen=True)
class LogisticStats:
    """Statistics of the bounded logistic likelihood at a given ``eta``."""

    d: np.ndarray
    """Bound slopes ``slope(eta)``, shape ``(n,)``."""

    yhat: np.ndarray
    """Pseudo-response after profiling out the intercept, ``(n,)``."""

    xy: np.ndarray
    """``Xᵗŷ``, shape ``(p,)``."""

    xd: np.ndarray
    """``Xᵗd``, shape ``(p,)``."""

    xdx: np.ndarray
    """Diagonal of the profiled Gram matrix ``Xᵗ D̂ X``, ``(p,)``."""

    @property
    def weights(self) -> np.ndarray:
        return self.d


def normal_stats(X: DesignMatrix, y: np.ndarray) -> NormalStats:
    """Compute ``Xᵗy`` and the diagonal of ``XᵗX``."""
    return NormalStats(xy=X.rmatvec(y), xdx=X.diagsq())


def update_stats(X: DesignMatrix, y: np.ndarray, eta: np.ndarray) -> LogisticStats:
    """Compute the logistic statistics bundle for free parameters *eta*.

    Raises:
        FloatingPointError: If ``Σ slope(eta)`` is zero or not finite,
            in which case the profiled intercept is undefined.
    """
    d = slope(eta)
    sum_d = float(np.sum(d))
    if not np.isfinite(sum_d) or sum_d <= 0:
        msg = (
            f"Sum of bound slopes must be positive and finite, got {sum_d!r}; "
            "the free parameters eta are degenerate."
        )
        raise FloatingPointError(msg)

    beta0 = np.sum(y - 0.5) / sum_d
    yhat = y - 0.5 - beta0 * d

    xy = X.rmatvec(yhat)
    xd = X.rmatvec(d)
    xdx = X.diagsq(d) - xd**2 / sum_d

    return LogisticStats(d=d, yhat=yhat, xy=xy, xd=xd, xdx=xdx)


__all__ = ["LogisticStats", "NormalStats", "normal_stats", "update_stats"]
