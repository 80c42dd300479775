"""Quadratic-form primitives over the design matrix.

The variational updates only ever need *diagonals* of weighted Gram
matrices, never the full ``p × p`` product ``Xᵗ·X`` (which would not
fit in memory for genome-scale ``p``):

    diagsq(X, a)[j]  = Σᵢ aᵢ · Xᵢⱼ²     diag(Xᵗ · diag(a) · X)
    diagsqt(X, a)[i] = Σⱼ Xᵢⱼ² · aⱼ     diag(X · diag(a) · Xᵗ)

Both are computed over blocks of columns.  Each block is widened to
float64 just long enough to square it, so a single-precision ``X`` is
never copied to double precision in full.

``betavar`` is the marginal posterior variance of a coefficient under
the spike-and-slab mixture, and ``qnorm`` is the weighted norm used by
the logistic data term.
"""

from __future__ import annotations

import numpy as np

# Columns widened to float64 at a time.
_BLOCK_SIZE: int = 1024


def _blocks(p: int, block_size: int = _BLOCK_SIZE):
    for start in range(0, p, block_size):
        yield start, min(start + block_size, p)


def diagsq(X: np.ndarray, a: np.ndarray | None = None) -> np.ndarray:
    """Diagonal of ``Xᵗ·diag(a)·X``.

    Args:
        X: Design matrix ``(n, p)``, any floating dtype.
        a: Observation weights ``(n,)``.  ``None`` means all ones,
            giving the plain column sums of squares.

    Returns:
        float64 vector of length ``p``.
    """
    n, p = X.shape
    weights = np.ones(n) if a is None else np.asarray(a, dtype=np.float64)
    out = np.empty(p, dtype=np.float64)
    for start, stop in _blocks(p):
        block = np.asarray(X[:, start:stop], dtype=np.float64)
        out[start:stop] = weights @ (block * block)
    return out


def diagsqt(X: np.ndarray, a: np.ndarray) -> np.ndarray:
    """Diagonal of ``X·diag(a)·Xᵗ``.

    Args:
        X: Design matrix ``(n, p)``, any floating dtype.
        a: Variable weights ``(p,)``.

    Returns:
        float64 vector of length ``n``.
    """
    n, p = X.shape
    a = np.asarray(a, dtype=np.float64)
    out = np.zeros(n, dtype=np.float64)
    for start, stop in _blocks(p):
        block = np.asarray(X[:, start:stop], dtype=np.float64)
        out += (block * block) @ a[start:stop]
    return out


def qnorm(x: np.ndarray, w: np.ndarray) -> float:
    """Weighted norm ``sqrt(Σ wᵢ xᵢ²)``."""
    x = np.asarray(x, dtype=np.float64)
    return float(np.sqrt(np.dot(w, x * x)))


def betavar(alpha: np.ndarray, mu: np.ndarray, s: np.ndarray) -> np.ndarray:
    """Posterior variance of each coefficient under the mixture.

    ``alpha·s + alpha·(1 − alpha)·mu²`` — the slab variance plus the
    between-component variance of the spike-and-slab mixture.  This,
    not ``s`` alone, is the variance the logistic ``eta`` update and
    both data terms of the lower bound need.
    """
    return alpha * s + alpha * (1 - alpha) * mu**2


__all__ = ["betavar", "diagsq", "diagsqt", "qnorm"]
