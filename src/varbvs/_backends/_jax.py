"""JAX-compiled backend for the coordinate-ascent sweep.

The whole pass is expressed as a single ``jax.lax.fori_loop`` under
``jax.jit``: the loop carry is ``(alpha, mu, Xr)`` and each iteration
reads the next index from ``order``, so XLA compiles one fused kernel
per ``(n, p, len(order))`` shape instead of dispatching three small
operations per coordinate from Python.  The data dependency between
successive coordinates is preserved exactly; only the per-step
overhead changes.

NumPy ↔ JAX boundary convention
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
The public :meth:`JaxBackend.sweep` accepts and returns NumPy arrays.
The design matrix is transferred once per :class:`DesignMatrix` and
cached on it (in its storage dtype, so a single-precision ``X`` stays
single precision on the device); columns are widened to float64
inside the kernel.

Float64
~~~~~~~
``jax_enable_x64`` is switched on at import.  Posterior means of
weak effects are differences of nearly equal O(n) quantities, which
float32 cannot resolve.

Graceful degradation
~~~~~~~~~~~~~~~~~~~~
If JAX is not installed, :class:`JaxBackend` can still be instantiated
(for introspection) but ``is_available`` returns ``False`` and
:func:`resolve_backend` will raise ``ImportError`` when this backend is
explicitly requested.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ...matrix import DesignMatrix
    from ...statistics import LogisticStats, NormalStats

# ------------------------------------------------------------------ #
# Optional JAX import
# ------------------------------------------------------------------ #
#
# If JAX is absent, the module loads successfully but the compiled
# sweep is not defined; ``is_available`` returns ``False`` and
# resolve_backend() gates on that.

try:
    import jax

    jax.config.update("jax_enable_x64", True)

    import jax.numpy as jnp
    from jax import jit, lax

    _CAN_IMPORT_JAX = True
except ImportError:
    _CAN_IMPORT_JAX = False


if _CAN_IMPORT_JAX:

    @partial(jit, static_argnames=("weighted",))
    def _sweep_jax(
        X,
        xy,
        xdx,
        w,
        xd,
        sa,
        sigma,
        logodds,
        alpha,
        mu,
        Xr,
        order,
        weighted: bool,
    ):
        """Compiled Gauss–Seidel pass.

        ``w`` and ``xd`` are ignored (but must be arrays of the right
        shape) when ``weighted`` is ``False``.
        """
        sum_w = jnp.sum(w)

        def body(k, carry):
            alpha, mu, Xr = carry
            j = order[k]
            x = X[:, j].astype(jnp.float64)

            s = sa * sigma / (sa * xdx[j] + 1.0)
            r = alpha[j] * mu[j]

            if weighted:
                xtr = jnp.dot(x, w * Xr) - xd[j] * jnp.dot(w, Xr) / sum_w
            else:
                xtr = jnp.dot(x, Xr)

            mu_j = s / sigma * (xy[j] + xdx[j] * r - xtr)
            alpha_j = jax.nn.sigmoid(
                logodds[j] + (jnp.log(s / (sa * sigma)) + mu_j**2 / s) / 2.0
            )

            Xr = Xr + (alpha_j * mu_j - r) * x
            return alpha.at[j].set(alpha_j), mu.at[j].set(mu_j), Xr

        return lax.fori_loop(0, order.shape[0], body, (alpha, mu, Xr))


@dataclass(frozen=True)
class JaxBackend:
    """JAX compute backend.

    Frozen and stateless, like :class:`NumpyBackend`; device copies of
    ``X`` live on the :class:`DesignMatrix`, not here.
    """

    @property
    def name(self) -> str:
        return "jax"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return _CAN_IMPORT_JAX

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
        X_j = X.cached("jax", jnp.asarray)
        weighted = stats.weights is not None
        if weighted:
            w = jnp.asarray(stats.weights, dtype=jnp.float64)
            xd = jnp.asarray(stats.xd, dtype=jnp.float64)
        else:
            w = jnp.ones(X.n, dtype=jnp.float64)
            xd = jnp.zeros(X.p, dtype=jnp.float64)

        alpha_j, mu_j, Xr_j = _sweep_jax(
            X_j,
            jnp.asarray(stats.xy, dtype=jnp.float64),
            jnp.asarray(stats.xdx, dtype=jnp.float64),
            w,
            xd,
            jnp.float64(sa),
            jnp.float64(sigma),
            jnp.asarray(logodds, dtype=jnp.float64),
            jnp.asarray(alpha, dtype=jnp.float64),
            jnp.asarray(mu, dtype=jnp.float64),
            jnp.asarray(Xr, dtype=jnp.float64),
            jnp.asarray(order, dtype=jnp.int32),
            weighted=weighted,
        )
        # Writable host copies.
        return np.array(alpha_j), np.array(mu_j), np.array(Xr_j)
