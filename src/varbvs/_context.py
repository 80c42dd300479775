"""Computation context — mutable accumulator for one fit.

A :class:`FitContext` travels alongside the outer driver, collecting
what happened during the run: the resolved family and backend, the
toggles that were active, and one
:class:`~varbvs._results.IterationRecord` per outer iteration.
Diagnostics and tests read the history from the context instead of
re-running the fit.

The context is **not** part of the public serialisation API:
:meth:`~varbvs._results.FitResult.to_dict` skips it automatically.

Lifecycle::

    ┌──────────────────────────────────────────────┐
    │  varbvs_fit()                                │
    │  ├─ VariationalEngine(…)                     │
    │  │   ├─ ctx = FitContext()                   │
    │  │   ├─ ctx.family / backend / n / p / …     │
    │  ├─ engine.run()                             │
    │  │   ├─ ctx.record(IterationRecord) × t      │
    │  │   └─ ctx.stop_state = …                   │
    │  └─ result.context = ctx                     │
    └──────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ._results import IterationRecord, StopState


@dataclass
class FitContext:
    """Mutable accumulator for a single fit.

    Every field defaults to ``None`` (or an empty container) so the
    context can be created empty and populated as the engine resolves
    its inputs and the driver runs.
    """

    # ---- Inputs --------------------------------------------------
    n: int | None = None
    """Number of observations."""

    p: int | None = None
    """Number of variables."""

    precision: str | None = None
    """Storage precision of the design matrix."""

    # ---- Resolution ----------------------------------------------
    family_name: str | None = None
    """Resolved likelihood family name."""

    backend: str | None = None
    """Compute backend name."""

    # ---- Toggles -------------------------------------------------
    update_sa: bool = False
    update_sigma: bool = False
    optimize_eta: bool = False
    alternate: bool = True

    # ---- History -------------------------------------------------
    history: list[IterationRecord] = field(default_factory=list)
    """One record per completed outer iteration, in order."""

    stop_state: StopState | None = None
    """Terminal state, set by the driver when it stops."""

    def record(self, rec: IterationRecord) -> None:
        self.history.append(rec)

    @property
    def logw_trace(self) -> np.ndarray:
        """``(t, 2)`` array of ``(logw_before, logw_after)`` per iteration."""
        if not self.history:
            return np.empty((0, 2))
        return np.array([(r.logw_before, r.logw_after) for r in self.history])


__all__ = ["FitContext"]
