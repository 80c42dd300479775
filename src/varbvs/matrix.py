"""Read-only access to the design matrix.

Genotype matrices for fine-mapping routinely have hundreds of
thousands of columns, so :class:`DesignMatrix` lets the caller keep
``X`` in single precision to halve its memory footprint.  The storage
dtype never leaks into the arithmetic: every accessor widens to
float64 inside the expression that consumes the data, so a fit on a
single-precision matrix differs from a double-precision fit only by
the rounding of the stored entries themselves.

Entries are stored column-major (Fortran order) because the
coordinate-ascent kernel reads one column at a time.

The matrix is never mutated after construction and may be shared by
any number of concurrent fits.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np

from . import quadform
from ._compat import _matrix_values
from ._config import get_precision

_PRECISIONS: dict[str, type] = {
    "single": np.float32,
    "double": np.float64,
}


def _resolve_precision(precision: str) -> type:
    try:
        return _PRECISIONS[precision.strip().lower()]
    except (KeyError, AttributeError):
        msg = (
            f"Unknown precision {precision!r}.  Choose from: "
            f"{sorted(_PRECISIONS)}."
        )
        raise ValueError(msg) from None


class DesignMatrix:
    """Dense ``n × p`` observation matrix with column access.

    Args:
        data: 2-D array of observations (rows) by variables (columns).
        precision: ``"double"`` (float64) or ``"single"`` (float32)
            storage.

    Attributes:
        feature_names: Optional column labels carried through to
            results.
    """

    def __init__(
        self,
        data: np.ndarray,
        precision: str = "double",
        feature_names: list[str] | None = None,
    ) -> None:
        dtype = _resolve_precision(precision)
        arr = np.asarray(data)
        if arr.ndim != 2:
            msg = f"Design matrix must be 2-D, got {arr.ndim} dimension(s)."
            raise ValueError(msg)
        # A view, so locking it does not touch the caller's array flags.
        self._data: np.ndarray = np.asfortranarray(arr, dtype=dtype).view()
        self._data.flags.writeable = False
        self.feature_names = feature_names
        self._cache: dict[str, Any] = {}

    # ---- Shape & storage -----------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape  # type: ignore[return-value]

    @property
    def n(self) -> int:
        return self._data.shape[0]

    @property
    def p(self) -> int:
        return self._data.shape[1]

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def precision(self) -> str:
        return "single" if self._data.dtype == np.float32 else "double"

    @property
    def data(self) -> np.ndarray:
        """Read-only view of the stored entries (storage dtype)."""
        return self._data

    def as_precision(self, precision: str) -> DesignMatrix:
        """Return a matrix with the requested storage precision.

        Returns ``self`` when the precision already matches.
        """
        if _resolve_precision(precision) == self._data.dtype:
            return self
        return DesignMatrix(self._data, precision, self.feature_names)

    # ---- Arithmetic (always float64) -----------------------------

    def column(self, j: int) -> np.ndarray:
        """Column *j* widened to float64."""
        return self._data[:, j].astype(np.float64)

    def matvec(self, v: np.ndarray) -> np.ndarray:
        """``X·v`` as float64."""
        v = np.asarray(v, dtype=np.float64)
        return self._data @ v

    def rmatvec(self, u: np.ndarray) -> np.ndarray:
        """``Xᵗ·u`` computed as ``(uᵗ·X)ᵗ``, never forming ``Xᵗ``."""
        u = np.asarray(u, dtype=np.float64)
        return u @ self._data

    def diagsq(self, a: np.ndarray | None = None) -> np.ndarray:
        """Diagonal of ``Xᵗ·diag(a)·X``; see :func:`quadform.diagsq`."""
        return quadform.diagsq(self._data, a)

    def diagsqt(self, a: np.ndarray) -> np.ndarray:
        """Diagonal of ``X·diag(a)·Xᵗ``; see :func:`quadform.diagsqt`."""
        return quadform.diagsqt(self._data, a)

    # ---- Backend support -----------------------------------------

    def cached(self, key: str, factory: Callable[[np.ndarray], Any]) -> Any:
        """Return ``factory(data)``, computed once per *key*.

        Backends use this to keep a device-resident copy of ``X``
        across sweeps instead of transferring it on every call.
        """
        if key not in self._cache:
            self._cache[key] = factory(self._data)
        return self._cache[key]

    def __repr__(self) -> str:
        return f"DesignMatrix(n={self.n}, p={self.p}, precision={self.precision!r})"


def as_design_matrix(X: Any, precision: str | None = None) -> DesignMatrix:
    """Coerce *X* to a :class:`DesignMatrix`.

    Accepts an existing ``DesignMatrix``, a NumPy array, or a pandas /
    Polars frame.  ``precision=None`` defers to
    :func:`~varbvs.get_precision`; under its default ``"auto"`` a
    float32 array is kept in single precision and everything else is
    stored as float64.

    Raises:
        TypeError: If *X* is not a supported container.
    """
    if precision is None:
        precision = get_precision()
    if isinstance(X, DesignMatrix):
        return X if precision == "auto" else X.as_precision(precision)
    values, names = _matrix_values(X, name="X")
    if precision == "auto":
        precision = "single" if values.dtype == np.float32 else "double"
    return DesignMatrix(values, precision, names)


__all__ = ["DesignMatrix", "as_design_matrix"]
