"""Tests for the free-parameter update of the logistic bound."""

import numpy as np
import pytest
from scipy.special import expit

from varbvs._special import slope
from varbvs._state import VariationalState
from varbvs.bound import int_logit
from varbvs.eta import update_eta
from varbvs.matrix import DesignMatrix
from varbvs.quadform import betavar
from varbvs.statistics import update_stats
from varbvs.update import posterior_variance


@pytest.fixture()
def problem():
    rng = np.random.default_rng(21)
    n, p = 80, 6
    X = rng.standard_normal((n, p))
    y = rng.binomial(1, expit(1.5 * X[:, 1] - 0.3)).astype(float)
    alpha = rng.uniform(0.05, 0.95, p)
    mu = rng.standard_normal(p)
    return DesignMatrix(X), X, y, alpha, mu


class TestUpdateEta:
    def test_shape_and_sign(self, problem):
        dm, X, y, alpha, mu = problem
        n = y.shape[0]
        eta0 = np.ones(n)
        stats = update_stats(dm, y, eta0)
        s = posterior_variance(stats, 1.0, 1.0)
        eta = update_eta(dm, y, betavar(alpha, mu, s), X @ (alpha * mu), stats.d)
        assert eta.shape == (n,)
        assert np.all(eta > 0)

    def test_dense_formula(self, problem):
        dm, X, y, alpha, mu = problem
        n = y.shape[0]
        d = slope(np.full(n, 0.8))
        s = np.full(alpha.shape, 0.2)
        v = betavar(alpha, mu, s)
        Xr = X @ (alpha * mu)

        a = 1 / d.sum()
        xd = X.T @ d
        mu0 = a * (np.sum(y - 0.5) - d @ Xr)
        s0 = a * (1 + a * np.sum(v * xd**2))
        c = -a * xd * v
        expected = np.sqrt(
            (mu0 + Xr) ** 2 + s0 + np.diag(X @ np.diag(v) @ X.T) + 2 * X @ c
        )

        np.testing.assert_allclose(update_eta(dm, y, v, Xr, d), expected)

    def test_point_mass_at_zero(self, problem):
        dm, _, y, _, _ = problem
        n = y.shape[0]
        p = dm.p
        d = np.full(n, 0.2)
        a = 1 / d.sum()
        eta = update_eta(dm, y, np.zeros(p), np.zeros(n), d)
        # Only the intercept remains: its mean and variance.
        expected = np.sqrt((a * np.sum(y - 0.5)) ** 2 + a)
        np.testing.assert_allclose(eta, expected)

    def test_update_does_not_decrease_bound(self, problem):
        dm, X, y, alpha, mu = problem
        n = y.shape[0]
        eta0 = np.ones(n)
        stats0 = update_stats(dm, y, eta0)
        s = posterior_variance(stats0, 1.0, 1.0)
        state = VariationalState(
            alpha=alpha, mu=mu, s=s, Xr=X @ (alpha * mu), sa=1.0, sigma=1.0, eta=eta0
        )
        before = int_logit(y, stats0, alpha, mu, s, state.Xr, eta0)

        eta1 = update_eta(dm, y, betavar(alpha, mu, s), state.Xr, stats0.d)
        stats1 = update_stats(dm, y, eta1)
        after = int_logit(y, stats1, alpha, mu, s, state.Xr, eta1)

        assert after >= before
