"""Shared type aliases for the varbvs package."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, TypeAlias

import numpy as np

if TYPE_CHECKING:
    from ._results import IterationRecord

# Design-matrix and response containers accepted by the public API:
# ndarray, pandas/Polars frames and series, or a DesignMatrix.
ArrayLike: TypeAlias = Any

# Per-variable or per-observation vectors (alpha, mu, eta, logodds).
VectorLike: TypeAlias = Sequence[float] | np.ndarray

# Observer invoked once per outer iteration.
IterationCallback: TypeAlias = Callable[["IterationRecord"], None]
