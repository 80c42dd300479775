"""Tests for VariationalEngine: input validation and the outer driver."""

import itertools

import numpy as np
import pytest
from scipy.special import expit

from varbvs import (
    ConfigurationError,
    NormalFamily,
    StopState,
    VariationalEngine,
)
from varbvs.families import BinomialFamily

# ------------------------------------------------------------------ #
# Shared fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def linear_data(rng):
    """Three strong effects among twenty independent variables."""
    n, p = 200, 20
    X = rng.standard_normal((n, p))
    beta = np.zeros(p)
    beta[[1, 7, 13]] = [1.0, -1.0, 0.8]
    y = X @ beta + rng.standard_normal(n)
    return X, y


@pytest.fixture()
def binary_data(rng):
    n, p = 300, 10
    X = rng.standard_normal((n, p))
    y = rng.binomial(1, expit(2.0 * X[:, 0] - 2.0 * X[:, 5])).astype(float)
    return X, y


def _engine(X, y, **kwargs):
    options = dict(sa=1.0, logodds=-2.0, random_state=0, backend="numpy")
    options.update(kwargs)
    return VariationalEngine(X, y, **options)


class _DecreasingFamily(NormalFamily):
    """Normal family whose data term drops on every evaluation."""

    def __init__(self):
        object.__setattr__(self, "_calls", itertools.count())

    def data_term(self, y, stats, state):
        return -1e6 * next(self._calls)


class _DecreasingBinomialFamily(BinomialFamily):
    """Binomial family whose data term drops on every evaluation."""

    def __init__(self):
        object.__setattr__(self, "_calls", itertools.count())

    def data_term(self, y, stats, state):
        return -1e6 * next(self._calls)


# ------------------------------------------------------------------ #
# Linear fits
# ------------------------------------------------------------------ #


class TestLinearDriver:
    def test_converges_and_selects(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0).run()
        assert res.stop_state is StopState.CONVERGED
        assert res.converged
        assert res.max_err < 1e-4
        assert np.all(res.alpha[[1, 7, 13]] > 0.9)
        nulls = np.delete(res.alpha, [1, 7, 13])
        assert nulls.mean() < 0.2

    def test_result_metadata(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0).run()
        assert res.family == "normal"
        assert res.backend == "numpy"
        assert res.eta is None
        assert res.sigma == 1.0
        assert res.sa == 1.0
        assert res.feature_names == [f"x{j}" for j in range(20)]

    def test_xr_matches_posterior_mean(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0).run()
        np.testing.assert_allclose(res.Xr, X @ (res.alpha * res.mu), atol=1e-8)

    def test_history_is_monotone(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0).run()
        history = res.context.history
        assert len(history) == res.n_iter
        for rec in history:
            assert rec.logw_after >= rec.logw_before
        assert res.logw == history[-1].logw_after

    def test_deterministic(self, linear_data):
        X, y = linear_data
        a = _engine(X, y, sigma=1.0).run()
        b = _engine(X, y, sigma=1.0).run()
        np.testing.assert_array_equal(a.alpha, b.alpha)
        assert a.logw == b.logw

    def test_run_twice_same_engine(self, linear_data):
        X, y = linear_data
        engine = _engine(X, y, sigma=1.0)
        np.testing.assert_array_equal(engine.run().alpha, engine.run().alpha)

    def test_max_iter(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0, maxiter=1, tol=1e-12).run()
        assert res.stop_state is StopState.MAX_ITER_STOPPED
        assert res.n_iter == 1
        assert not res.converged

    def test_default_sigma_is_variance_of_y(self, linear_data):
        X, y = linear_data
        engine = _engine(X, y)
        assert engine.initial_state.sigma == pytest.approx(np.var(y))

    def test_explicit_initialisation(self, linear_data):
        X, y = linear_data
        p = X.shape[1]
        alpha0 = np.full(p, 0.1)
        mu0 = np.zeros(p)
        engine = _engine(X, y, sigma=1.0, alpha=alpha0, mu=mu0)
        np.testing.assert_array_equal(engine.initial_state.alpha, alpha0)
        np.testing.assert_array_equal(engine.initial_state.Xr, np.zeros(X.shape[0]))

    def test_random_initialisation(self, linear_data):
        X, y = linear_data
        state = _engine(X, y, sigma=1.0).initial_state
        assert state.alpha.sum() == pytest.approx(1.0)
        assert np.all(state.alpha >= 0)

    def test_custom_order(self, linear_data):
        X, y = linear_data
        p = X.shape[1]
        res = _engine(X, y, sigma=1.0, order=np.arange(p)[::-1]).run()
        assert res.stop_state is StopState.CONVERGED
        assert np.all(res.alpha[[1, 7, 13]] > 0.9)

    def test_very_negative_logodds(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0, logodds=-1e4).run()
        assert res.stop_state is StopState.CONVERGED
        np.testing.assert_allclose(res.alpha, 0.0, atol=1e-12)
        np.testing.assert_allclose(res.Xr, 0.0, atol=1e-8)

    def test_per_variable_logodds(self, linear_data):
        X, y = linear_data
        logodds = np.full(X.shape[1], -2.0)
        logodds[7] = -1e4
        res = _engine(X, y, sigma=1.0, logodds=logodds).run()
        assert res.alpha[7] < 1e-12
        assert res.alpha[1] > 0.9


class TestHyperparameterUpdates:
    def test_update_sigma(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=5.0, update_sigma=True).run()
        assert res.stop_state.is_terminal
        assert 0.5 < res.sigma < 1.5
        assert res.context.update_sigma

    def test_update_sa(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0, sa=10.0, update_sa=True, sa0=1.0, n0=1.0).run()
        assert res.stop_state.is_terminal
        assert res.sa != 10.0
        assert res.sa > 0
        assert res.context.history[-1].sa == res.sa or res.stop_state is (
            StopState.REVERTED_AND_STOPPED
        )

    def test_update_sa_without_pseudo_count_stays_finite(self, linear_data):
        X, y = linear_data
        res = _engine(
            X, y, sigma=1.0, sa=1.0, logodds=-1e4, update_sa=True, n0=0.0
        ).run()
        assert res.stop_state is StopState.CONVERGED
        assert res.sa == 1.0
        assert np.isfinite(res.logw)
        assert np.all(np.isfinite(res.mu))
        assert np.all(res.alpha == 0.0)

    def test_sigma_recorded_per_iteration(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=5.0, update_sigma=True, maxiter=3, tol=1e-12).run()
        sigmas = [rec.sigma for rec in res.context.history]
        assert all(s is not None for s in sigmas)
        assert sigmas[0] != 5.0


# ------------------------------------------------------------------ #
# Logistic fits
# ------------------------------------------------------------------ #


class TestLogisticDriver:
    def test_selects_effects(self, binary_data):
        X, y = binary_data
        res = _engine(X, y, logodds=-1.0).run()
        assert res.family == "binomial"
        assert res.stop_state.is_terminal
        assert res.alpha[0] > 0.9
        assert res.alpha[5] > 0.9
        assert res.sigma is None
        assert res.eta.shape == y.shape
        assert np.all(res.eta > 0)

    def test_without_eta_updates(self, binary_data):
        X, y = binary_data
        res = _engine(X, y, logodds=-1.0, optimize_eta=False).run()
        np.testing.assert_array_equal(res.eta, np.ones(y.shape[0]))

    def test_explicit_eta(self, binary_data):
        X, y = binary_data
        eta0 = np.full(y.shape[0], 0.5)
        engine = _engine(X, y, logodds=-1.0, eta=eta0, optimize_eta=False)
        res = engine.run()
        np.testing.assert_array_equal(res.eta, eta0)

    def test_sigma_ignored_with_warning(self, binary_data):
        X, y = binary_data
        with pytest.warns(UserWarning, match="sigma"):
            engine = _engine(X, y, sigma=3.0, maxiter=2)
        assert engine.initial_state.sigma == 1.0

    def test_constant_response_warns(self, binary_data):
        X, _ = binary_data
        with pytest.warns(UserWarning, match="constant"):
            _engine(X, np.zeros(X.shape[0]), family="binomial", maxiter=2)


# ------------------------------------------------------------------ #
# Revert
# ------------------------------------------------------------------ #


class TestRevert:
    def test_decrease_restores_previous_state(self, linear_data):
        X, y = linear_data
        p = X.shape[1]
        alpha0 = np.full(p, 0.3)
        mu0 = np.linspace(-1, 1, p)
        engine = _engine(
            X, y, family=_DecreasingFamily(), sigma=1.0, alpha=alpha0, mu=mu0
        )
        res = engine.run()

        assert res.stop_state is StopState.REVERTED_AND_STOPPED
        assert res.n_iter == 1
        np.testing.assert_array_equal(res.alpha, alpha0)
        np.testing.assert_array_equal(res.mu, mu0)
        np.testing.assert_allclose(res.Xr, X @ (alpha0 * mu0))
        rec = res.context.history[0]
        assert rec.logw_after < rec.logw_before
        assert res.logw == rec.logw_before

    def test_decrease_reports_pre_sweep_hyperparameters(self, linear_data):
        X, y = linear_data
        engine = _engine(
            X, y, family=_DecreasingFamily(), sigma=2.0, sa=5.0,
            update_sa=True, update_sigma=True,
        )
        res = engine.run()

        assert res.stop_state is StopState.REVERTED_AND_STOPPED
        assert (res.sa, res.sigma) == (5.0, 2.0)
        rec = res.context.history[0]
        assert (rec.sa, rec.sigma) != (5.0, 2.0)

    def test_decrease_restores_free_parameters(self, binary_data):
        X, y = binary_data
        p = X.shape[1]
        alpha0 = np.full(p, 0.3)
        mu0 = np.linspace(-1, 1, p)
        eta0 = np.full(X.shape[0], 0.7)
        engine = _engine(
            X, y, family=_DecreasingBinomialFamily(), alpha=alpha0, mu=mu0, eta=eta0
        )
        res = engine.run()

        assert res.stop_state is StopState.REVERTED_AND_STOPPED
        assert res.n_iter == 1
        np.testing.assert_array_equal(res.eta, eta0)
        np.testing.assert_array_equal(res.alpha, alpha0)
        np.testing.assert_array_equal(res.mu, mu0)
        np.testing.assert_array_equal(res.s, engine.initial_state.s)
        assert res.sa == 1.0

    def test_caller_arrays_untouched(self, linear_data):
        X, y = linear_data
        p = X.shape[1]
        alpha0 = np.full(p, 0.3)
        mu0 = np.linspace(-1, 1, p)
        before = (X.copy(), y.copy(), alpha0.copy(), mu0.copy())
        _engine(X, y, sigma=1.0, alpha=alpha0, mu=mu0).run()
        for a, b in zip(before, (X, y, alpha0, mu0)):
            np.testing.assert_array_equal(a, b)


# ------------------------------------------------------------------ #
# Observers
# ------------------------------------------------------------------ #


class TestCallback:
    def test_called_once_per_iteration(self, linear_data):
        X, y = linear_data
        seen = []
        res = _engine(X, y, sigma=1.0, callback=seen.append).run()
        assert [r.iteration for r in seen] == list(range(1, res.n_iter + 1))
        assert seen[-1].max_err == res.max_err

    def test_outer_iter_label(self, linear_data):
        X, y = linear_data
        seen = []
        _engine(X, y, sigma=1.0, callback=seen.append, outer_iter=4, maxiter=2).run()
        assert all(r.outer_iter == 4 for r in seen)

    def test_context_fields(self, linear_data):
        X, y = linear_data
        res = _engine(X, y, sigma=1.0).run()
        ctx = res.context
        assert (ctx.n, ctx.p) == X.shape
        assert ctx.family_name == "normal"
        assert ctx.backend == "numpy"
        assert ctx.precision == "double"
        assert ctx.stop_state is res.stop_state
        assert ctx.logw_trace.shape == (res.n_iter, 2)
        np.testing.assert_array_equal(
            ctx.logw_trace[:, 1], [r.logw_after for r in ctx.history]
        )


# ------------------------------------------------------------------ #
# Validation
# ------------------------------------------------------------------ #


class TestValidation:
    @pytest.mark.parametrize(
        ("override", "match"),
        [
            ({"sa": 0.0}, "'sa'"),
            ({"sa": -1.0}, "'sa'"),
            ({"sa": np.inf}, "'sa'"),
            ({"sigma": 0.0}, "'sigma'"),
            ({"tol": 0.0}, "'tol'"),
            ({"maxiter": 0}, "'maxiter'"),
            ({"maxiter": 2.5}, "'maxiter'"),
            ({"logodds": np.inf}, "'logodds'"),
            ({"logodds": np.zeros(3)}, "'logodds'"),
            ({"alpha": np.full(20, 1.5)}, "'alpha'"),
            ({"alpha": np.full(19, 0.5)}, "'alpha'"),
            ({"mu": np.zeros(21)}, "'mu'"),
            ({"mu": np.full(20, np.nan)}, "'mu'"),
            ({"order": [0, 1, 2]}, "'order'"),
            ({"order": np.arange(20) + 1}, "'order'"),
            ({"update_sa": True, "sa0": 0.0}, "'sa0'"),
            ({"update_sa": True, "n0": -1.0}, "'n0'"),
            ({"eta": np.ones(200)}, "'eta'"),
            ({"precision": "half"}, "precision"),
            ({"family": "poisson"}, "Unknown family"),
        ],
    )
    def test_bad_input(self, linear_data, override, match):
        X, y = linear_data
        options = {"sigma": 1.0, **override}
        with pytest.raises(ConfigurationError, match=match):
            _engine(X, y, **options)

    def test_configuration_error_is_value_error(self, linear_data):
        X, y = linear_data
        with pytest.raises(ValueError):
            _engine(X, y, sa=-1.0)

    def test_y_length(self, linear_data):
        X, y = linear_data
        with pytest.raises(ConfigurationError, match="'y'"):
            _engine(X, y[:-1], sigma=1.0)

    def test_non_finite_x(self, linear_data):
        X, y = linear_data
        X = X.copy()
        X[3, 4] = np.nan
        with pytest.raises(ConfigurationError, match="finite"):
            _engine(X, y, sigma=1.0)

    def test_non_finite_y(self, linear_data):
        X, y = linear_data
        y = y.copy()
        y[0] = np.inf
        with pytest.raises(ConfigurationError, match="finite"):
            _engine(X, y, sigma=1.0)

    def test_empty_x(self):
        with pytest.raises(ConfigurationError, match="at least one"):
            _engine(np.empty((0, 3)), np.empty(0), sigma=1.0)

    def test_binomial_non_binary(self, linear_data):
        X, y = linear_data
        with pytest.raises(ConfigurationError, match="binary"):
            _engine(X, y, family="binomial")

    def test_update_sigma_logistic(self, binary_data):
        X, y = binary_data
        with pytest.raises(ConfigurationError, match="update_sigma"):
            _engine(X, y, update_sigma=True)

    def test_eta_length(self, binary_data):
        X, y = binary_data
        with pytest.raises(ConfigurationError, match="'eta'"):
            _engine(X, y, eta=np.ones(5))

    def test_unsupported_container(self, linear_data):
        _, y = linear_data
        with pytest.raises(TypeError):
            _engine("not a matrix", y, sigma=1.0)

    def test_nothing_mutated_on_error(self, linear_data):
        X, y = linear_data
        alpha0 = np.full(20, 1.5)
        snapshot = alpha0.copy()
        with pytest.raises(ConfigurationError):
            _engine(X, y, sigma=1.0, alpha=alpha0)
        np.testing.assert_array_equal(alpha0, snapshot)

    def test_backend_instance_accepted(self, linear_data):
        from varbvs._backends import resolve_backend

        X, y = linear_data
        engine = _engine(X, y, sigma=1.0, backend=resolve_backend("numpy"))
        assert engine.backend.name == "numpy"

    def test_binomial_family_instance(self, binary_data):
        X, y = binary_data
        engine = _engine(X, y, family=BinomialFamily())
        assert engine.family.name == "binomial"
