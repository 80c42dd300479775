"""Exception types raised by the varbvs package."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Inputs violate the caller contract of a fit.

    Raised once, at entry, before any iteration runs: shape mismatches
    between ``X``, ``y``, ``alpha``, ``mu``, ``eta`` and ``logodds``,
    non-finite data, hyperparameters outside their domain, or a toggle
    the chosen likelihood family does not support.  Caller arrays are
    never modified when this is raised.
    """


__all__ = ["ConfigurationError"]
