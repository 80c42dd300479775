"""Runtime configuration for the varbvs package.

Two process-wide policies are configurable:

``backend``
    Whether the coordinate-ascent sweep runs through the JAX-compiled
    kernel (``"jax"``) or the plain NumPy loop (``"numpy"``).

``precision``
    Storage dtype of the design matrix when a fit is called with
    ``precision=None``: ``"single"`` (float32), ``"double"`` (float64),
    or ``"auto"`` to keep float32 input in single precision and store
    everything else as float64.

Each policy resolves in the same order (first match wins):
    1. Programmatic override via :func:`set_backend` /
       :func:`set_precision`.
    2. The ``VARBVS_BACKEND`` / ``VARBVS_PRECISION`` environment
       variable.
    3. The default: ``"jax"`` if JAX is importable, else ``"numpy"``;
       ``"auto"`` for precision.

Names are case-insensitive.

Examples:
    Force the NumPy sweep and single-precision storage from the shell::

        export VARBVS_BACKEND=numpy
        export VARBVS_PRECISION=single

    The same programmatically::

        import varbvs
        varbvs.set_backend("numpy")
        varbvs.set_precision("single")

    Restore the defaults::

        varbvs.set_backend("auto")
        varbvs.set_precision("auto")
"""

from __future__ import annotations

import os

_VALID_BACKENDS = {"jax", "numpy", "auto"}
_VALID_PRECISIONS = {"single", "double", "auto"}

_BACKEND_ENV_VAR = "VARBVS_BACKEND"
_PRECISION_ENV_VAR = "VARBVS_PRECISION"

# ``None`` means no programmatic override has been set.
_backend_override: str | None = None
_precision_override: str | None = None


def _jax_is_available() -> bool:
    """Return ``True`` if JAX can be imported."""
    try:
        import jax  # noqa: F401

        return True
    except ImportError:
        return False


def _normalise(name: str, valid: set[str], kind: str) -> str:
    normalised = name.strip().lower()
    if normalised not in valid:
        raise ValueError(f"Unknown {kind} '{name}'. Choose from: {sorted(valid)}")
    return normalised


def _from_env(var: str, valid: set[str]) -> str | None:
    env = os.environ.get(var, "").strip().lower()
    return env if env in valid else None


# ------------------------------------------------------------------ #
# Backend
# ------------------------------------------------------------------ #


def get_backend() -> str:
    """Return the active backend name (``"jax"`` or ``"numpy"``).

    Resolution order:
        1. Value set by :func:`set_backend` (unless ``"auto"``).
        2. ``VARBVS_BACKEND`` environment variable.
        3. ``"jax"`` if importable, otherwise ``"numpy"``.

    Returns:
        ``"jax"`` or ``"numpy"``.
    """
    if _backend_override is not None and _backend_override != "auto":
        return _backend_override

    env = _from_env(_BACKEND_ENV_VAR, {"jax", "numpy"})
    if env is not None:
        return env

    return "jax" if _jax_is_available() else "numpy"


def set_backend(name: str) -> None:
    """Override the backend selection.

    Args:
        name: One of ``"jax"``, ``"numpy"``, or ``"auto"``
            (case-insensitive).  ``"auto"`` restores the default
            resolution order.

    Raises:
        ValueError: If *name* is not a recognised backend.
    """
    global _backend_override
    _backend_override = _normalise(name, _VALID_BACKENDS, "backend")


# ------------------------------------------------------------------ #
# Design-matrix precision
# ------------------------------------------------------------------ #


def get_precision() -> str:
    """Return the default storage precision for the design matrix.

    Returns:
        ``"single"``, ``"double"``, or ``"auto"`` (follow the input
        dtype).
    """
    if _precision_override is not None:
        return _precision_override

    env = _from_env(_PRECISION_ENV_VAR, _VALID_PRECISIONS)
    return env if env is not None else "auto"


def set_precision(name: str) -> None:
    """Override the default storage precision of the design matrix.

    Only consulted when a fit is called with ``precision=None``; an
    explicit ``precision`` argument always wins.

    Args:
        name: One of ``"single"``, ``"double"``, or ``"auto"``
            (case-insensitive).

    Raises:
        ValueError: If *name* is not a recognised precision.
    """
    global _precision_override
    normalised = _normalise(name, _VALID_PRECISIONS, "precision")
    _precision_override = None if normalised == "auto" else normalised
