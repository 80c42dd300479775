"""Input compatibility layer for NumPy, pandas and optional Polars.

The numerical core operates on plain NumPy arrays.  Public entry
points accept pandas objects as well: a ``DataFrame`` design matrix
contributes its column labels as feature names, and a single-column
``DataFrame`` or ``Series`` is accepted for the response.  When a user
passes a ``polars.DataFrame`` (or ``polars.LazyFrame`` /
``polars.Series``) it is converted to pandas at the boundary so that
the rest of the code path is unchanged.

Polars is **not** a required dependency.  If it is not installed, the
converter simply passes pandas and NumPy objects through untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame
else:
    DataFrameLike: TypeAlias = pd.DataFrame

# Runtime detection — avoids a hard dependency on Polars.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "input") -> pd.DataFrame:
    """Convert *obj* to a :class:`pandas.DataFrame` if necessary.

    Accepted types:
        * ``pandas.DataFrame`` — returned as-is.
        * ``polars.DataFrame`` — converted via ``.to_pandas()``.
        * ``polars.LazyFrame`` — collected then converted.

    Args:
        obj: A pandas or Polars DataFrame (or LazyFrame).
        name: Label used in error messages (e.g. ``"X"`` or ``"y"``).

    Returns:
        A pandas ``DataFrame``.

    Raises:
        TypeError: If *obj* is not a recognised DataFrame type.
    """
    if isinstance(obj, pd.DataFrame):
        return obj

    if _HAS_POLARS:
        if isinstance(obj, pl.LazyFrame):
            return obj.collect().to_pandas()
        if isinstance(obj, pl.DataFrame):
            return obj.to_pandas()

    raise TypeError(
        f"'{name}' must be a pandas DataFrame"
        + (" or Polars DataFrame/LazyFrame" if _HAS_POLARS else "")
        + f", got {type(obj).__name__}."
    )


def _is_frame(obj: object) -> bool:
    """Return ``True`` for pandas or Polars frame objects."""
    if isinstance(obj, pd.DataFrame):
        return True
    return _HAS_POLARS and isinstance(obj, (pl.DataFrame, pl.LazyFrame))


def _matrix_values(obj: object, *, name: str = "X") -> tuple[np.ndarray, list[str] | None]:
    """Extract a 2-D array and optional column labels from *obj*.

    NumPy arrays keep their dtype (so single-precision storage is not
    silently widened).  Frames contribute ``list(df.columns)`` as
    labels.

    Raises:
        TypeError: If *obj* is neither an array nor a frame.
    """
    if isinstance(obj, np.ndarray):
        return obj, None
    if _is_frame(obj):
        df = _ensure_pandas_df(obj, name=name)  # type: ignore[arg-type]
        return df.to_numpy(), [str(c) for c in df.columns]
    raise TypeError(
        f"'{name}' must be a NumPy array or a pandas DataFrame"
        + (" or Polars DataFrame/LazyFrame" if _HAS_POLARS else "")
        + f", got {type(obj).__name__}."
    )


def _vector_values(obj: object, *, name: str = "y") -> np.ndarray:
    """Extract a 1-D float64 array from *obj*.

    Accepts NumPy arrays, Python sequences, pandas ``Series``,
    single-column frames and Polars ``Series``.  Shape checks beyond
    "one column" are left to the caller.

    Raises:
        TypeError: If *obj* is not a recognised container.
        ValueError: If a frame has more than one column.
    """
    if _HAS_POLARS and isinstance(obj, pl.Series):
        obj = obj.to_pandas()
    if isinstance(obj, pd.Series):
        return obj.to_numpy(dtype=float)
    if _is_frame(obj):
        df = _ensure_pandas_df(obj, name=name)  # type: ignore[arg-type]
        if df.shape[1] != 1:
            msg = f"'{name}' must have exactly one column, got {df.shape[1]}."
            raise ValueError(msg)
        return df.iloc[:, 0].to_numpy(dtype=float)
    if isinstance(obj, (np.ndarray, list, tuple)):
        return np.asarray(obj, dtype=float)
    raise TypeError(
        f"'{name}' must be array-like (ndarray, list, Series or "
        f"single-column DataFrame), got {type(obj).__name__}."
    )
