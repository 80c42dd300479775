"""M-step for the free parameters of the logistic likelihood bound.

Each observation's log-logistic factor is bounded below by a quadratic
in the linear predictor ``uᵢ = β₀ + xᵢᵗβ`` that touches the true curve
at ``uᵢ = ±ηᵢ``.  The bound is tightest in expectation when

    ηᵢ² = E[uᵢ²] = (E[uᵢ])² + Var[uᵢ],

with the expectation taken under the current variational posterior,
including the profiled intercept.  Under the fully-factorized
approximation the coefficient covariance is ``diag(v)`` with
``v = betavar(alpha, mu, s)``, and the intercept contributes

    a   = 1 / Σd                     conditional variance of β₀
    μ₀  = a·(Σ(y − ½) − dᵗXr)        posterior mean of β₀
    s₀  = a·(1 + a·vᵗ(Xᵗd)²)         marginal variance of β₀
    c   = −a·(Xᵗd)⊙v                 Cov(β₀, β)

so that

    η = sqrt((μ₀ + Xr)² + s₀ + diagsqt(X, v) + 2·X·c).

This is one fixed-point step, not a solve: the driver applies it once
per outer iteration between coordinate sweeps.
"""

from __future__ import annotations

import numpy as np

from .matrix import DesignMatrix


def update_eta(
    X: DesignMatrix,
    y: np.ndarray,
    v: np.ndarray,
    Xr: np.ndarray,
    d: np.ndarray,
) -> np.ndarray:
    """Return the updated free parameters ``eta``.

    Args:
        X: Design matrix ``(n, p)``.
        y: Binary response ``(n,)``.
        v: Posterior coefficient variances ``betavar(alpha, mu, s)``.
        Xr: Running fit ``X·(alpha⊙mu)``.
        d: Current bound slopes ``slope(eta)``.

    Returns:
        New ``eta`` of shape ``(n,)``.
    """
    a = 1.0 / np.sum(d)
    mu0 = a * (np.sum(y - 0.5) - np.dot(d, Xr))

    xd = X.rmatvec(d)
    s0 = a * (1.0 + a * np.dot(v, xd**2))

    c = -a * xd * v

    return np.sqrt((mu0 + Xr) ** 2 + s0 + X.diagsqt(v) + 2.0 * X.matvec(c))


__all__ = ["update_eta"]
