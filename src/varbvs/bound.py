"""Variational lower bound (ELBO) on the marginal log-likelihood.

    logw = E_q[log p(y | β)]                 data-fit term
         − KL(q(γ) ‖ p(γ))                   prior-inclusion term
         + E_q[γ·(log N(b; 0, sa) − log q(b | γ))]   slab KL term

where ``γⱼ`` is the inclusion indicator and ``bⱼ`` the slab
coefficient, so ``βⱼ = γⱼ·bⱼ``.

Prior-inclusion term
~~~~~~~~~~~~~~~~~~~~
With ``πⱼ = sigmoid(logoddsⱼ)``,

    −KL(Bern(α) ‖ Bern(π)) = α·log π + (1 − α)·log(1 − π) + H(α)
                           = α·logσ(l) + (1 − α)·logσ(−l) + H(α),

which is zero at ``α = sigmoid(l)`` and negative elsewhere.  This is
the same Bernoulli factor whose stationarity condition gives the
kernel's ``alpha`` update.  The entropy is evaluated with
:func:`scipy.special.entr`, which is exact at ``α ∈ {0, 1}``.

Slab KL term
~~~~~~~~~~~~
For an included coefficient with posterior ``N(mu, s)`` and prior
``N(0, sa)``:

    −KL = ½·(1 + log(s/sa) − (s + mu²)/sa),

weighted by ``alpha``.  For the linear model the slab prior variance
is ``sa·σ``.

Data-fit terms
~~~~~~~~~~~~~~
:func:`int_linear` is the exact Gaussian expectation; :func:`int_logit`
is the expectation of the Jaakkola–Jordan bound with the intercept
integrated out.  Both use the marginal variance
``betavar(alpha, mu, s)`` rather than ``s``.

Every function here is pure.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
from scipy.special import entr

from ._special import logsigmoid
from .quadform import betavar, qnorm

if TYPE_CHECKING:
    from ._state import VariationalState
    from .families import LikelihoodFamily
    from .statistics import LogisticStats, NormalStats


def int_linear(
    Xr: np.ndarray,
    d: np.ndarray,
    y: np.ndarray,
    sigma: float,
    alpha: np.ndarray,
    mu: np.ndarray,
    s: np.ndarray,
) -> float:
    """Expected Gaussian log-likelihood under the variational posterior."""
    n = y.shape[0]
    resid = y - Xr
    return float(
        -n / 2 * math.log(2 * math.pi * sigma)
        - np.dot(resid, resid) / (2 * sigma)
        - np.dot(d, betavar(alpha, mu, s)) / (2 * sigma)
    )


def int_logit(
    y: np.ndarray,
    stats: LogisticStats,
    alpha: np.ndarray,
    mu: np.ndarray,
    s: np.ndarray,
    Xr: np.ndarray,
    eta: np.ndarray,
) -> float:
    """Expected logistic log-likelihood bound, intercept integrated out."""
    d = stats.d
    yhat = stats.yhat
    xdx = stats.xdx

    # Conditional variance of the intercept given the coefficients.
    a = 1.0 / np.sum(d)
    sum_y = np.sum(y - 0.5)

    return float(
        np.sum(logsigmoid(eta))
        + np.dot(eta, d * eta - 1) / 2
        + math.log(a) / 2
        + a * sum_y**2 / 2
        + np.dot(yhat, Xr)
        - qnorm(Xr, d) ** 2 / 2
        + a * np.dot(d, Xr) ** 2 / 2
        - np.dot(xdx, betavar(alpha, mu, s)) / 2
    )


def prior_inclusion_term(logodds: np.ndarray, alpha: np.ndarray) -> float:
    """Negative KL of ``Bern(alpha)`` from ``Bern(sigmoid(logodds))``."""
    return float(
        np.sum(
            alpha * logsigmoid(logodds)
            + (1 - alpha) * logsigmoid(-logodds)
            + entr(alpha)
            + entr(1 - alpha)
        )
    )


def kl_term(alpha: np.ndarray, mu: np.ndarray, s: np.ndarray, sa: float) -> float:
    """Negative KL of the Gaussian slab factors from ``N(0, sa)``."""
    return float(
        np.sum(alpha * (1 + np.log(s / sa) - (s + mu**2) / sa)) / 2
    )


def lower_bound(
    family: LikelihoodFamily,
    y: np.ndarray,
    stats: NormalStats | LogisticStats,
    state: VariationalState,
    logodds: np.ndarray,
) -> float:
    """ELBO of *state*: data term + prior-inclusion term + slab KL term."""
    return (
        family.data_term(y, stats, state)
        + prior_inclusion_term(logodds, state.alpha)
        + kl_term(
            state.alpha,
            state.mu,
            state.s,
            family.slab_variance(state.sa, state.sigma),
        )
    )


__all__ = [
    "int_linear",
    "int_logit",
    "kl_term",
    "lower_bound",
    "prior_inclusion_term",
]
