"""Backend abstraction layer for the coordinate-ascent sweep.

Each backend implements the :class:`BackendProtocol` interface: one
Gauss–Seidel pass over an explicit visitation order.  The rest of the
package (the pure kernel in :mod:`varbvs.update`, the driver in
:mod:`varbvs.engine`) dispatches to the active backend via
:func:`resolve_backend` rather than testing for JAX at every call
site.

Resolution follows the policy set by :mod:`._config`:

1. Programmatic override via :func:`~varbvs.set_backend`.
2. ``VARBVS_BACKEND`` environment variable.
3. Auto-detection: ``"jax"`` if importable, else ``"numpy"``.

:func:`resolve_backend` translates the policy string into a concrete
backend instance.  When ``"jax"`` is explicitly requested but JAX is
not installed, an :class:`ImportError` is raised — explicit requests
are never silently degraded.  The ``"auto"`` policy is the only mode
that falls back from JAX to NumPy.

Sweep contract
~~~~~~~~~~~~~~
For each index ``j`` of ``order``, in sequence:

    s    = sa·σ / (sa·xdx[j] + 1)
    r    = alpha[j]·mu[j]
    mu   = (s/σ)·(xy[j] + xdx[j]·r − ⟨X[:, j], Xr⟩)
    alpha= sigmoid(logodds[j] + (log(s/(sa·σ)) + mu²/s) / 2)
    Xr  += (alpha[j]·mu[j] − r)·X[:, j]

where ``⟨·,·⟩`` is the plain dot product when ``stats.weights`` is
``None`` and the intercept-profiled weighted product
``xᵗ(w⊙Xr) − xd[j]·(wᵗXr)/Σw`` otherwise.  Later coordinates see the
``Xr`` left by earlier ones.  Backends copy their inputs and return
new ``(alpha, mu, Xr)`` arrays.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from .._config import get_backend

if TYPE_CHECKING:
    from ..matrix import DesignMatrix
    from ..statistics import LogisticStats, NormalStats

# ------------------------------------------------------------------ #
# BackendProtocol
# ------------------------------------------------------------------ #


@runtime_checkable
class BackendProtocol(Protocol):
    """Interface that every compute backend must implement.

    Attributes:
        name: Short identifier (e.g. ``"numpy"``, ``"jax"``).
    """

    @property
    def name(self) -> str: ...

    @property
    def is_available(self) -> bool:
        """Whether the backend's dependencies are importable."""
        ...

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
        """Run one coordinate-ascent pass in the given order.

        Args:
            X: Design matrix ``(n, p)``.
            stats: Statistics bundle (``xy``, ``xdx``, ``weights``,
                ``xd``).
            sa: Prior variance of included coefficients.
            sigma: Residual variance (1 for the logistic model).
            logodds: Prior log-odds of inclusion ``(p,)``.
            alpha: Inclusion probabilities ``(p,)``.
            mu: Posterior means ``(p,)``.
            Xr: Running fit ``(n,)``.
            order: Visitation order, integer indices into ``0..p-1``.

        Returns:
            Updated ``(alpha, mu, Xr)`` as new float64 NumPy arrays.
        """
        ...


# ------------------------------------------------------------------ #
# Backend resolution
# ------------------------------------------------------------------ #

# Singleton cache — instantiated once per backend name.
_BACKEND_CACHE: dict[str, BackendProtocol] = {}


def resolve_backend(name: str | None = None) -> BackendProtocol:
    """Return a :class:`BackendProtocol` instance for *name*.

    When *name* is ``None`` (the default), the policy from
    :func:`~varbvs._config.get_backend` is used.

    Args:
        name: ``"numpy"``, ``"jax"``, or ``None`` for policy default.

    Returns:
        A backend instance ready to run sweeps.

    Raises:
        ImportError: If ``"jax"`` is explicitly requested but JAX
            is not installed.
        ValueError: If *name* is not a recognised backend.
    """
    if name is None:
        name = get_backend()
    name = name.strip().lower()

    if name in _BACKEND_CACHE:
        return _BACKEND_CACHE[name]

    if name == "numpy":
        from ._numpy import NumpyBackend

        backend: BackendProtocol = NumpyBackend()

    elif name == "jax":
        from ._jax import JaxBackend

        jax_backend = JaxBackend()
        if not jax_backend.is_available:
            msg = (
                "Backend 'jax' was explicitly requested but JAX is "
                "not installed.  Install JAX (`pip install jax`) or "
                "use set_backend('numpy')."
            )
            raise ImportError(msg)
        backend = jax_backend

    else:
        msg = f"Unknown backend {name!r}.  Choose 'numpy' or 'jax'."
        raise ValueError(msg)

    _BACKEND_CACHE[name] = backend
    return backend
