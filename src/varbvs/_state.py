"""Immutable variational state threaded through the fit.

Every operation of the fit — a coordinate sweep, an ``eta`` update, a
hyperparameter M-step — takes a :class:`VariationalState` and returns
a new one.  Nothing downstream can observe a half-updated state, and
the driver can roll back to a snapshot by simply keeping the old
object.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np


@dataclass(frozen=True)
class VariationalState:
    """Parameters of the factorized posterior plus the running fit.

    Invariant: ``Xr == X @ (alpha * mu)`` up to rounding.
    """

    alpha: np.ndarray
    """Posterior inclusion probabilities ``(p,)``."""

    mu: np.ndarray
    """Posterior means given inclusion ``(p,)``."""

    s: np.ndarray
    """Posterior variances given inclusion ``(p,)``."""

    Xr: np.ndarray
    """Running linear predictor ``X·(alpha⊙mu)``, shape ``(n,)``."""

    sa: float
    """Prior variance of included coefficients."""

    sigma: float
    """Residual variance (held at 1 for the logistic model)."""

    eta: np.ndarray | None = None
    """Free parameters of the logistic bound ``(n,)``, else ``None``."""

    def evolve(self, **changes) -> VariationalState:
        """Return a copy with *changes* applied."""
        return replace(self, **changes)

    @property
    def beta(self) -> np.ndarray:
        """Posterior mean coefficients ``alpha⊙mu``."""
        return self.alpha * self.mu


__all__ = ["VariationalState"]
