"""Tests for the special functions and the sufficient-statistics bundles."""

import numpy as np
import pytest
from scipy.special import expit

from varbvs._special import logsigmoid, sigmoid, slope
from varbvs.matrix import DesignMatrix
from varbvs.statistics import LogisticStats, NormalStats, normal_stats, update_stats


@pytest.fixture()
def rng():
    return np.random.default_rng(5)


@pytest.fixture()
def binary_data(rng):
    n, p = 60, 5
    X = rng.standard_normal((n, p))
    y = rng.binomial(1, expit(X[:, 0])).astype(float)
    return DesignMatrix(X), X, y


# ------------------------------------------------------------------ #
# Special functions
# ------------------------------------------------------------------ #


class TestSpecial:
    def test_slope_limit_at_zero(self):
        assert slope(np.array([0.0]))[0] == 0.25

    def test_slope_near_zero(self):
        assert slope(np.array([1e-8]))[0] == pytest.approx(0.25, rel=1e-6)

    def test_slope_is_even(self):
        eta = np.array([0.3, 1.0, 4.0])
        np.testing.assert_allclose(slope(eta), slope(-eta))

    def test_slope_definition(self):
        eta = np.array([0.5, 2.0, 10.0])
        np.testing.assert_allclose(slope(eta), (expit(eta) - 0.5) / eta)

    def test_slope_no_warning_at_zero(self):
        with np.errstate(all="raise"):
            slope(np.zeros(3))

    def test_sigmoid_and_log(self):
        x = np.array([-800.0, 0.0, 800.0])
        np.testing.assert_allclose(sigmoid(x), [0.0, 0.5, 1.0])
        out = logsigmoid(x)
        assert np.all(np.isfinite(out))
        assert out[0] == pytest.approx(-800.0)
        assert out[1] == pytest.approx(np.log(0.5))


# ------------------------------------------------------------------ #
# Linear statistics
# ------------------------------------------------------------------ #


class TestNormalStats:
    def test_values(self, rng):
        X = rng.standard_normal((20, 4))
        y = rng.standard_normal(20)
        stats = normal_stats(DesignMatrix(X), y)
        assert isinstance(stats, NormalStats)
        np.testing.assert_allclose(stats.xy, X.T @ y)
        np.testing.assert_allclose(stats.xdx, (X**2).sum(axis=0))
        assert stats.weights is None
        assert stats.xd is None


# ------------------------------------------------------------------ #
# Logistic statistics
# ------------------------------------------------------------------ #


class TestUpdateStats:
    def test_matches_dense_profiled_gram(self, binary_data, rng):
        dm, X, y = binary_data
        eta = rng.uniform(0.1, 3.0, y.shape[0])
        stats = update_stats(dm, y, eta)
        assert isinstance(stats, LogisticStats)

        d = slope(eta)
        D_hat = np.diag(d) - np.outer(d, d) / d.sum()
        yhat = y - 0.5 - d * np.sum(y - 0.5) / d.sum()

        np.testing.assert_allclose(stats.d, d)
        np.testing.assert_allclose(stats.yhat, yhat)
        np.testing.assert_allclose(stats.xy, X.T @ yhat)
        np.testing.assert_allclose(stats.xd, X.T @ d)
        np.testing.assert_allclose(stats.xdx, np.diag(X.T @ D_hat @ X))

    def test_weights_alias(self, binary_data):
        dm, _, y = binary_data
        stats = update_stats(dm, y, np.ones(y.shape[0]))
        assert stats.weights is stats.d

    def test_pseudo_response_is_weight_orthogonal(self, binary_data):
        dm, _, y = binary_data
        stats = update_stats(dm, y, np.full(y.shape[0], 0.7))
        # The profiled intercept leaves no weighted mean in yhat.
        assert np.sum(stats.yhat) == pytest.approx(0.0, abs=1e-10)

    def test_profiled_gram_nonnegative(self, binary_data, rng):
        dm, _, y = binary_data
        stats = update_stats(dm, y, rng.uniform(0.0, 5.0, y.shape[0]))
        assert np.all(stats.xdx >= -1e-12)

    def test_zero_eta_uses_limit(self, binary_data):
        dm, _, y = binary_data
        stats = update_stats(dm, y, np.zeros(y.shape[0]))
        np.testing.assert_allclose(stats.d, 0.25)

    def test_degenerate_eta(self, binary_data):
        dm, _, y = binary_data
        with pytest.raises(FloatingPointError, match="slopes"):
            update_stats(dm, y, np.full(y.shape[0], np.inf))
