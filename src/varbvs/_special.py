"""Elementwise special functions shared by the kernel and the bound.

``sigmoid`` and ``logsigmoid`` are thin aliases of
:func:`scipy.special.expit` and :func:`scipy.special.log_expit`, which
are overflow-safe for large ``|x|``.

``slope`` is the derivative term of the Jaakkola–Jordan quadratic
bound on the log-logistic function:

    slope(η) = (σ(η) − ½) / η

It has a removable singularity at ``η = 0`` where the limit is ``¼``;
the limit is substituted there so that the statistics computed from a
freshly initialised ``eta`` never contain ``0/0``.
"""

from __future__ import annotations

import numpy as np
from scipy.special import expit, log_expit

_SLOPE_AT_ZERO = 0.25


def sigmoid(x):
    """Logistic function ``1 / (1 + exp(-x))``."""
    return expit(x)


def logsigmoid(x):
    """``log(sigmoid(x))`` without overflow."""
    return log_expit(x)


def slope(eta: np.ndarray) -> np.ndarray:
    """Slope of the conjugate bound, ``(sigmoid(eta) - 0.5) / eta``."""
    eta = np.asarray(eta, dtype=float)
    zero = eta == 0
    safe = np.where(zero, 1.0, eta)
    return np.where(zero, _SLOPE_AT_ZERO, (expit(safe) - 0.5) / safe)


__all__ = ["logsigmoid", "sigmoid", "slope"]
