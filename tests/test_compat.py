"""Tests for Polars input conversion in _compat.py.

Polars is an optional dependency; the whole module is skipped when it
is not installed.
"""

import numpy as np
import pandas as pd
import pytest

pl = pytest.importorskip("polars")

from varbvs import varbvs_fit  # noqa: E402
from varbvs._compat import (  # noqa: E402
    _ensure_pandas_df,
    _matrix_values,
    _vector_values,
)


@pytest.fixture()
def frames():
    rng = np.random.default_rng(7)
    data = {"a": rng.standard_normal(40), "b": rng.standard_normal(40)}
    return pd.DataFrame(data), pl.DataFrame(data)


class TestEnsurePandasDf:
    def test_pandas_passthrough(self, frames):
        pdf, _ = frames
        assert _ensure_pandas_df(pdf) is pdf

    def test_polars_dataframe(self, frames):
        pdf, pldf = frames
        out = _ensure_pandas_df(pldf)
        assert isinstance(out, pd.DataFrame)
        pd.testing.assert_frame_equal(out, pdf)

    def test_polars_lazyframe(self, frames):
        pdf, pldf = frames
        out = _ensure_pandas_df(pldf.lazy())
        pd.testing.assert_frame_equal(out, pdf)

    def test_rejects_other_types(self):
        with pytest.raises(TypeError, match="Polars"):
            _ensure_pandas_df([1, 2, 3], name="X")


class TestPolarsValues:
    def test_matrix_names(self, frames):
        _, pldf = frames
        values, names = _matrix_values(pldf)
        assert names == ["a", "b"]
        assert values.shape == (40, 2)

    def test_polars_series(self, frames):
        pdf, pldf = frames
        np.testing.assert_array_equal(_vector_values(pldf["a"]), pdf["a"].to_numpy())

    def test_single_column_frame(self, frames):
        pdf, pldf = frames
        np.testing.assert_array_equal(
            _vector_values(pldf.select("b")), pdf["b"].to_numpy()
        )


class TestFitWithPolars:
    def test_matches_pandas_fit(self, frames):
        pdf, pldf = frames
        rng = np.random.default_rng(3)
        y = 1.5 * pdf["a"].to_numpy() + rng.standard_normal(40)

        kwargs = dict(sa=1.0, logodds=-1.0, sigma=1.0, random_state=0, backend="numpy")
        res_pl = varbvs_fit(pldf, pl.Series("y", y), **kwargs)
        res_pd = varbvs_fit(pdf, pd.Series(y), **kwargs)

        assert res_pl.feature_names == ["a", "b"]
        np.testing.assert_allclose(res_pl.alpha, res_pd.alpha)
        np.testing.assert_allclose(res_pl.mu, res_pd.mu)
