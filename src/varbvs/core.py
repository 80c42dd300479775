"""Variational spike-and-slab regression — public entry points.

The model places an independent spike-and-slab prior on every
coefficient of a linear or logistic regression:

    βⱼ ~ πⱼ·N(0, sa·σ) + (1 − πⱼ)·δ₀,    logodds(πⱼ) = lⱼ

and approximates the posterior by a fully factorised family

    q(βⱼ) = alphaⱼ·N(muⱼ, sⱼ) + (1 − alphaⱼ)·δ₀

fitted by coordinate ascent on the evidence lower bound (ELBO).
``alphaⱼ`` is the posterior inclusion probability of variable ``j``;
``logw`` approximates the log marginal likelihood and is what a caller
compares across hyperparameter settings.

For the logistic model the log-logistic likelihood is replaced by the
Jaakkola–Jordan quadratic bound with one free parameter ``eta`` per
observation, re-optimised after every sweep, and the intercept is
integrated out analytically.

:func:`varbvs_fit` fits one hyperparameter setting.
:func:`fit_grid` fits many settings concurrently against one shared
read-only design matrix and returns the individual results; weighting
or averaging them is left to the caller.

References:
    Carbonetto, P. & Stephens, M. (2012). Scalable variational
    inference for Bayesian variable selection in regression, and its
    accuracy in genetic association studies. *Bayesian Analysis*,
    7(1), 73–108.

    Jaakkola, T. S. & Jordan, M. I. (2000). Bayesian parameter
    estimation via variational methods. *Statistics and Computing*,
    10(1), 25–37.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
from joblib import Parallel, delayed

from ._backends import BackendProtocol, resolve_backend
from ._errors import ConfigurationError
from ._results import FitResult, IterationRecord
from ._typing import ArrayLike, IterationCallback, VectorLike
from .display import print_progress
from .engine import VariationalEngine
from .families import LikelihoodFamily
from .matrix import as_design_matrix

logger = logging.getLogger(__name__)


def _observers(
    callback: IterationCallback | None,
    verbose: bool,
) -> IterationCallback | None:
    if not verbose:
        return callback
    if callback is None:
        return print_progress

    def _both(rec: IterationRecord) -> None:
        print_progress(rec)
        callback(rec)

    return _both


def varbvs_fit(
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
    verbose: bool = False,
    outer_iter: int | None = None,
) -> FitResult:
    """Fit the variational approximation for one hyperparameter setting.

    Args:
        X: Design matrix ``(n, p)``: NumPy array, pandas or Polars
            DataFrame, or a :class:`~varbvs.DesignMatrix`.  DataFrame
            column names become ``feature_names``.
        y: Response of length ``n``.  Binary ``{0, 1}`` for the
            logistic model.
        sa: Prior variance of included coefficients (scaled by
            ``sigma`` in the linear model).
        logodds: Prior log-odds of inclusion, scalar or ``(p,)``.
            Must be finite.
        family: ``"normal"``/``"linear"``, ``"binomial"``/``"logistic"``,
            ``"auto"`` (binary ``y`` → logistic), or a
            ``LikelihoodFamily`` instance.
        sigma: Residual variance of the linear model.  Defaults to
            ``var(y)``.  Ignored (with a warning) for logistic.
        alpha: Initial inclusion probabilities.  Drawn at random and
            normalised to sum to one when omitted.
        mu: Initial posterior means.  Standard normal when omitted.
        eta: Initial free parameters of the logistic bound (ones when
            omitted).
        tol: Convergence threshold on ``max |Δalpha|``.
        maxiter: Cap on outer iterations.
        update_sa: Re-estimate ``sa`` after every iteration (MAP under
            a scaled inverse-chi-square prior with ``sa0``, ``n0``).
        update_sigma: Re-estimate ``sigma`` after every iteration
            (linear model only).
        optimize_eta: Re-optimise ``eta`` after every sweep (logistic
            model only).
        sa0: Prior guess for ``sa``.
        n0: Pseudo-count attached to ``sa0``.
        order: Forward visitation order, a permutation of ``0..p-1``.
        alternate: Reverse the order on even iterations.
        precision: ``"single"`` or ``"double"`` storage of ``X``;
            ``"auto"`` follows the dtype of ``X``.  ``None`` defers to
            :func:`~varbvs.get_precision`.
        backend: ``"numpy"``, ``"jax"``, a backend instance, or
            ``None`` for the configured policy.
        random_state: Seed or generator for the random initialisation.
        callback: Called with an :class:`IterationRecord` after every
            iteration.
        verbose: Print one status line per iteration.
        outer_iter: Label shown in the status line (e.g. grid index).

    Returns:
        A :class:`FitResult`.  Check ``stop_state``: a run that hit
        ``maxiter`` or stopped on a bound decrease still returns the
        best parameters it accepted.

    Raises:
        ConfigurationError: If an input violates the model's
            contract.  Raised before any iteration.
        TypeError: If ``X`` or ``y`` is an unsupported container.
        ImportError: If ``backend="jax"`` and JAX is missing.
        FloatingPointError: If the logistic weights sum to zero.
    """
    engine = VariationalEngine(
        X,
        y,
        sa=sa,
        logodds=logodds,
        family=family,
        sigma=sigma,
        alpha=alpha,
        mu=mu,
        eta=eta,
        tol=tol,
        maxiter=maxiter,
        update_sa=update_sa,
        update_sigma=update_sigma,
        optimize_eta=optimize_eta,
        sa0=sa0,
        n0=n0,
        order=order,
        alternate=alternate,
        precision=precision,
        backend=backend,
        random_state=random_state,
        callback=_observers(callback, verbose),
        outer_iter=outer_iter,
    )
    logger.debug(
        "Fitting %s model: n=%d, p=%d, backend=%s, precision=%s",
        engine.family.name,
        engine.X.n,
        engine.X.p,
        engine.backend.name,
        engine.X.precision,
    )
    result = engine.run()
    logger.debug(
        "Stopped in state %s after %d iteration(s), logw=%.6e",
        result.stop_state.value,
        result.n_iter,
        result.logw,
    )
    return result


def fit_grid(
    X: ArrayLike,
    y: ArrayLike,
    settings: Sequence[Mapping[str, Any]],
    *,
    n_jobs: int = 1,
    **kwargs: Any,
) -> list[FitResult]:
    """Fit several hyperparameter settings against one design matrix.

    Each entry of *settings* is a mapping of :func:`varbvs_fit`
    keyword arguments (typically ``sa`` and ``logodds``) that
    overrides *kwargs* for that fit.  The fits are independent: they
    share ``X`` read-only and nothing else.

    Args:
        X: Design matrix, converted once and shared.
        y: Response.
        settings: One mapping per fit.
        n_jobs: Number of joblib worker threads (``-1`` for all
            cores).  Forced to 1 with the JAX backend.
        **kwargs: Keyword arguments common to every fit.

    Returns:
        One :class:`FitResult` per setting, in the order given.  Each
        result's status line (with ``verbose=True``) is labelled with
        its index.

    Raises:
        ConfigurationError: If *settings* is empty or an entry is not
            a mapping.
    """
    settings = list(settings)
    if not settings:
        msg = "fit_grid() requires at least one setting."
        raise ConfigurationError(msg)
    for i, setting in enumerate(settings):
        if not isinstance(setting, Mapping):
            msg = f"settings[{i}] must be a mapping, got {type(setting).__name__}."
            raise ConfigurationError(msg)

    precision = kwargs.pop("precision", None)
    try:
        design = as_design_matrix(X, precision)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    backend = kwargs.pop("backend", None)
    if not isinstance(backend, BackendProtocol):
        backend = resolve_backend(backend)

    # JAX compiles one sweep per shape and keeps X on the device;
    # threads would only contend for it.
    if n_jobs != 1 and backend.name == "jax":
        warnings.warn(
            "n_jobs is ignored when the JAX backend is active.  "
            "Falling back to n_jobs=1.",
            UserWarning,
            stacklevel=2,
        )
        n_jobs = 1

    def _fit_one(index: int, setting: Mapping[str, Any]) -> FitResult:
        options = {
            "backend": backend,
            "outer_iter": index,
            "precision": "auto",
            **kwargs,
            **setting,
        }
        return varbvs_fit(design, y, **options)

    logger.debug(
        "Fitting %d setting(s) on n=%d, p=%d with n_jobs=%d",
        len(settings),
        design.n,
        design.p,
        n_jobs,
    )

    if n_jobs == 1:
        return [_fit_one(i, s) for i, s in enumerate(settings)]

    results = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_fit_one)(i, s) for i, s in enumerate(settings)
    )
    return list(results)


__all__ = ["fit_grid", "varbvs_fit"]
