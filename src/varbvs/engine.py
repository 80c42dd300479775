"""Variational engine — input resolution and the outer driver loop.

The :class:`VariationalEngine` centralises everything that happens
*before* the first sweep:

1. **Design matrix** — coerce ``X`` to a read-only
   :class:`~varbvs.matrix.DesignMatrix` in the requested precision.
2. **Family resolution** — map ``"auto"`` / ``"normal"`` /
   ``"binomial"`` to a ``LikelihoodFamily`` instance and validate
   ``y`` against it.
3. **Contract checks** — shapes, finiteness and hyperparameter
   domains.  Every violation raises
   :class:`~varbvs._errors.ConfigurationError` here, before any
   iteration; caller arrays are copied, never modified.
4. **Initial state** — random ``alpha``/``mu`` when not supplied,
   ``Xr`` computed from scratch (the only full ``X·(alpha⊙mu)`` of
   the run), initial statistics and slab variances.
5. **Backend resolution** — NumPy loop or compiled JAX sweep.

:meth:`VariationalEngine.run` is the outer driver.  It is a small
state machine over immutable :class:`~varbvs._state.VariationalState`
objects::

    RUNNING ──(logw_after < logw_before)──▶ REVERTED_AND_STOPPED
       │   ──(max|Δalpha| < tol)──────────▶ CONVERGED
       └── ──(iteration cap)──────────────▶ MAX_ITER_STOPPED

Each iteration snapshots the state, evaluates the bound, sweeps
forward on odd and backward on even iterations, re-optimises ``eta``
(logistic), evaluates the bound again, then applies the optional
``sigma`` and ``sa`` M-steps.  A decrease of the bound restores the
snapshot and stops; the previous parameters are returned as a
regular result, not raised.

The engine is immutable after construction: calling :meth:`run`
twice yields identical results.
"""

from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Sequence
from typing import Any

import numpy as np

from ._backends import BackendProtocol, resolve_backend
from ._compat import _vector_values
from ._context import FitContext
from ._errors import ConfigurationError
from ._results import FitResult, IterationRecord, StopState
from ._state import VariationalState
from ._typing import ArrayLike, IterationCallback, VectorLike
from .bound import lower_bound
from .families import LikelihoodFamily, resolve_family
from .matrix import DesignMatrix, as_design_matrix
from .statistics import LogisticStats, NormalStats
from .update import coordinate_update, posterior_variance, sweep_order

logger = logging.getLogger(__name__)


def _positive_scalar(value: Any, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        msg = f"'{name}' must be a positive scalar, got {value!r}."
        raise ConfigurationError(msg) from None
    if not math.isfinite(out) or out <= 0:
        msg = f"'{name}' must be a positive finite scalar, got {out!r}."
        raise ConfigurationError(msg)
    return out


def _vector(value: Any, length: int, name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != (length,):
        msg = f"'{name}' must have shape ({length},), got {arr.shape}."
        raise ConfigurationError(msg)
    if not np.all(np.isfinite(arr)):
        msg = f"'{name}' must contain only finite values."
        raise ConfigurationError(msg)
    return arr


class VariationalEngine:
    """Builder that validates inputs and runs the outer driver.

    Attributes:
        X: The design matrix (shared, read-only).
        y: Response as a float64 vector.
        family: Resolved ``LikelihoodFamily``.
        backend: Resolved compute backend.
        logodds: Prior log-odds ``(p,)``.
        initial_state: State before the first iteration.
        initial_stats: Statistics matching ``initial_state``.
        ctx: Accumulator for the run's history.
    """

    def __init__(
        self,
        X: ArrayLike,
        y: ArrayLike,
        *,
        sa: float,
        logodds: float | VectorLike,
        family: str | LikelihoodFamily = "auto",
        sigma: float | None = None,
        alpha: VectorLike | None = None,
        mu: VectorLike | None = None,
        eta: VectorLike | None = None,
        tol: float = 1e-4,
        maxiter: int = 10_000,
        update_sa: bool = False,
        update_sigma: bool = False,
        optimize_eta: bool = True,
        sa0: float = 1.0,
        n0: float = 10.0,
        order: Sequence[int] | np.ndarray | None = None,
        alternate: bool = True,
        precision: str | None = None,
        backend: str | BackendProtocol | None = None,
        random_state: int | np.random.Generator | None = None,
        callback: IterationCallback | None = None,
        outer_iter: int | None = None,
        ctx: FitContext | None = None,
    ) -> None:
        self.ctx: FitContext = ctx if ctx is not None else FitContext()

        # ---- Design matrix & response -----------------------------
        try:
            self.X: DesignMatrix = as_design_matrix(X, precision)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        n, p = self.X.shape
        if n == 0:
            msg = "X must contain at least one observation."
            raise ConfigurationError(msg)
        if p == 0:
            msg = "X must contain at least one variable."
            raise ConfigurationError(msg)
        if not np.all(np.isfinite(self.X.data)):
            msg = "X must contain only finite values."
            raise ConfigurationError(msg)

        try:
            y_values = _vector_values(y, name="y")
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        if y_values.ndim != 1 or y_values.shape[0] != n:
            msg = (
                f"'y' must be a vector with one entry per row of X "
                f"({n}), got shape {y_values.shape}."
            )
            raise ConfigurationError(msg)
        if not np.all(np.isfinite(y_values)):
            msg = "'y' must contain only finite values."
            raise ConfigurationError(msg)
        self.y: np.ndarray = y_values

        # ---- Family -------------------------------------------------
        try:
            self.family: LikelihoodFamily = resolve_family(family, y_values)
            self.family.validate_y(y_values)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        # ---- Hyperparameters ----------------------------------------
        sa = _positive_scalar(sa, "sa")

        if self.family.has_residual_variance:
            if sigma is None:
                sigma = float(np.var(y_values))
            sigma = _positive_scalar(sigma, "sigma")
        else:
            if sigma is not None:
                warnings.warn(
                    f"sigma is not a parameter of the {self.family.name} "
                    "likelihood and is ignored.",
                    UserWarning,
                    stacklevel=3,
                )
            sigma = 1.0

        logodds_arr = np.array(logodds, dtype=np.float64)
        if logodds_arr.ndim == 0:
            logodds_arr = np.full(p, float(logodds_arr))
        self.logodds: np.ndarray = _vector(logodds_arr, p, "logodds")

        # ---- Driver settings ----------------------------------------
        tol = _positive_scalar(tol, "tol")
        if isinstance(maxiter, bool) or not isinstance(maxiter, (int, np.integer)) or maxiter < 1:
            msg = f"'maxiter' must be a positive integer, got {maxiter!r}."
            raise ConfigurationError(msg)
        if update_sigma and not self.family.has_residual_variance:
            msg = (
                f"update_sigma=True is not supported by the "
                f"{self.family.name} family (it has no residual variance)."
            )
            raise ConfigurationError(msg)
        if update_sa:
            sa0 = _positive_scalar(sa0, "sa0")
            n0 = float(n0)
            if not math.isfinite(n0) or n0 < 0:
                msg = f"'n0' must be a non-negative finite number, got {n0!r}."
                raise ConfigurationError(msg)

        self.order: np.ndarray | None = None
        if order is not None:
            order_arr = np.asarray(order)
            if (
                order_arr.ndim != 1
                or not np.issubdtype(order_arr.dtype, np.integer)
                or not np.array_equal(np.sort(order_arr), np.arange(p))
            ):
                msg = f"'order' must be a permutation of 0..{p - 1}."
                raise ConfigurationError(msg)
            self.order = order_arr.astype(np.intp)

        self.tol = float(tol)
        self.maxiter = int(maxiter)
        self.update_sa = bool(update_sa)
        self.update_sigma = bool(update_sigma)
        self.optimize_eta = bool(optimize_eta) and self.family.has_free_parameters
        self.sa0 = sa0
        self.n0 = n0
        self.alternate = bool(alternate)
        self.callback = callback
        self.outer_iter = outer_iter

        # ---- Variational parameters ---------------------------------
        rng = np.random.default_rng(random_state)
        if alpha is None:
            alpha_arr = rng.random(p)
            alpha_arr /= alpha_arr.sum()
        else:
            alpha_arr = _vector(alpha, p, "alpha")
            if np.any(alpha_arr < 0) or np.any(alpha_arr > 1):
                msg = "'alpha' must lie in [0, 1]."
                raise ConfigurationError(msg)
        mu_arr = rng.standard_normal(p) if mu is None else _vector(mu, p, "mu")

        if self.family.has_free_parameters:
            eta_arr = self.family.initial_eta(n) if eta is None else _vector(eta, n, "eta")
        else:
            if eta is not None:
                msg = f"'eta' does not apply to the {self.family.name} family."
                raise ConfigurationError(msg)
            eta_arr = None

        # ---- Backend ------------------------------------------------
        if isinstance(backend, BackendProtocol):
            self.backend: BackendProtocol = backend
        else:
            self.backend = resolve_backend(backend)

        # ---- Initial state ------------------------------------------
        self.initial_stats: NormalStats | LogisticStats = (
            self.family.compute_statistics(self.X, self.y, eta_arr)
        )
        self.initial_state = VariationalState(
            alpha=alpha_arr,
            mu=mu_arr,
            s=posterior_variance(self.initial_stats, sa, sigma),
            Xr=self.X.matvec(alpha_arr * mu_arr),
            sa=sa,
            sigma=sigma,
            eta=eta_arr,
        )

        self.feature_names: list[str] = (
            list(self.X.feature_names)
            if self.X.feature_names is not None
            else [f"x{j}" for j in range(p)]
        )

        # ---- Context ------------------------------------------------
        self.ctx.n = n
        self.ctx.p = p
        self.ctx.precision = self.X.precision
        self.ctx.family_name = self.family.name
        self.ctx.backend = self.backend.name
        self.ctx.update_sa = self.update_sa
        self.ctx.update_sigma = self.update_sigma
        self.ctx.optimize_eta = self.optimize_eta
        self.ctx.alternate = self.alternate

    # ---- Bound ------------------------------------------------------

    def lower_bound(
        self,
        state: VariationalState,
        stats: NormalStats | LogisticStats,
    ) -> float:
        """ELBO of *state* under this engine's data and prior."""
        return lower_bound(self.family, self.y, stats, state, self.logodds)

    # ---- Outer driver -----------------------------------------------

    def run(self) -> FitResult:
        """Iterate until convergence, a bound decrease, or ``maxiter``.

        A reverted result reports the whole pre-sweep snapshot, including
        the ``sa`` and ``sigma`` in force before that iteration's M-steps.

        Returns:
            A :class:`FitResult` in one of the terminal stop states.
        """
        family = self.family
        X, y = self.X, self.y
        p = X.p

        state = self.initial_state
        stats = self.initial_stats
        self.ctx.history = []

        stop = StopState.RUNNING
        logw = -math.inf
        max_err = math.nan
        iteration = 0

        for iteration in range(1, self.maxiter + 1):
            # (1) Snapshot for rollback.
            prev_state, prev_stats = state, stats

            # (2) Bound before the sweep.
            logw_before = self.lower_bound(state, stats)

            # (3) Forward on odd, backward on even iterations.
            order = sweep_order(p, iteration, self.order, self.alternate)
            state = coordinate_update(X, state, stats, self.logodds, order, self.backend)

            # (4) Free parameters of the logistic bound.
            if self.optimize_eta:
                eta = family.update_free_parameters(X, y, state, stats)
                stats = family.compute_statistics(X, y, eta)
                state = state.evolve(
                    eta=eta, s=posterior_variance(stats, state.sa, state.sigma)
                )

            # (5) Bound after the sweep.
            logw = self.lower_bound(state, stats)

            # (6) Residual variance, then prior variance.
            if self.update_sigma:
                sigma = family.update_residual_variance(y, state, stats)
                state = state.evolve(
                    sigma=sigma, s=posterior_variance(stats, state.sa, sigma)
                )
            if self.update_sa:
                sa = family.update_prior_variance(state, self.sa0, self.n0)
                state = state.evolve(
                    sa=sa, s=posterior_variance(stats, sa, state.sigma)
                )

            # (7) Convergence.
            max_err = float(np.max(np.abs(state.alpha - prev_state.alpha)))
            rec = IterationRecord(
                iteration=iteration,
                logw_before=logw_before,
                logw_after=logw,
                max_err=max_err,
                sum_alpha=float(np.sum(state.alpha)),
                sa=state.sa,
                sigma=state.sigma if family.has_residual_variance else None,
                outer_iter=self.outer_iter,
            )
            self.ctx.record(rec)
            if self.callback is not None:
                self.callback(rec)
            logger.debug(
                "iter %d: logw %.6e -> %.6e, max|dalpha| %.2e, sum(alpha) %.2f",
                iteration,
                logw_before,
                logw,
                max_err,
                rec.sum_alpha,
            )

            if logw < logw_before:
                state, stats = prev_state, prev_stats
                logw = logw_before
                stop = StopState.REVERTED_AND_STOPPED
                logger.debug(
                    "Lower bound decreased at iteration %d; reverted to the "
                    "previous parameters.",
                    iteration,
                )
                break
            if max_err < self.tol:
                stop = StopState.CONVERGED
                break
        else:
            stop = StopState.MAX_ITER_STOPPED
            logger.debug(
                "Reached maxiter=%d with max|dalpha| = %.2e (tol %.1e).",
                self.maxiter,
                max_err,
                self.tol,
            )

        self.ctx.stop_state = stop

        return FitResult(
            logw=float(logw),
            sa=float(state.sa),
            sigma=float(state.sigma) if family.has_residual_variance else None,
            alpha=state.alpha,
            mu=state.mu,
            s=state.s,
            Xr=state.Xr,
            eta=state.eta,
            stop_state=stop,
            n_iter=iteration,
            max_err=max_err,
            family=family.name,
            backend=self.backend.name,
            feature_names=self.feature_names,
            context=self.ctx,
        )


__all__ = ["VariationalEngine"]
