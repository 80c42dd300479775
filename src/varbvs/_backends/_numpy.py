"""NumPy backend (always available).

The sweep is a plain Python loop over the visitation order.  The loop
cannot be vectorised across variables — coordinate ``j`` regresses
against the residual left by every coordinate visited before it — but
each step is three O(n) BLAS-1 operations on one column (a dot
product, an optional weighted dot product, and an AXPY into ``Xr``),
so the per-coordinate Python overhead is amortised for realistic
``n``.

Columns are widened from the storage dtype one at a time through
:meth:`DesignMatrix.column`; a single-precision ``X`` is never copied
to float64 as a whole.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from scipy.special import expit

if TYPE_CHECKING:
    from ...matrix import DesignMatrix
    from ...statistics import LogisticStats, NormalStats


@dataclass(frozen=True)
class NumpyBackend:
    """NumPy compute backend.

    Stateless; instances are cached in ``_BACKEND_CACHE``.
    """

    @property
    def name(self) -> str:
        return "numpy"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return True

    def sweep(
        self,
        X: DesignMatrix,
        stats: NormalStats | LogisticStats,
        sa: float,
        sigma: float,
        logodds: np.ndarray,
        alpha: np.ndarray,
        mu: np.ndarray,
        Xr: np.ndarray,
        order: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Gauss–Seidel pass over *order*; see the package docstring."""
        alpha = np.array(alpha, dtype=np.float64)
        mu = np.array(mu, dtype=np.float64)
        Xr = np.array(Xr, dtype=np.float64)

        xy = stats.xy
        xdx = stats.xdx
        w = stats.weights
        xd = stats.xd
        sum_w = float(np.sum(w)) if w is not None else 0.0

        for j in order:
            x = X.column(j)

            s = sa * sigma / (sa * xdx[j] + 1.0)
            r = alpha[j] * mu[j]

            if w is None:
                xtr = np.dot(x, Xr)
            else:
                xtr = np.dot(x, w * Xr) - xd[j] * np.dot(w, Xr) / sum_w

            mu[j] = s / sigma * (xy[j] + xdx[j] * r - xtr)
            alpha[j] = expit(
                logodds[j] + (math.log(s / (sa * sigma)) + mu[j] ** 2 / s) / 2.0
            )

            Xr += (alpha[j] * mu[j] - r) * x

        return alpha, mu, Xr
