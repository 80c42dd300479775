"""Progress reporting for the outer driver.

Reporting is an observer: the driver hands an
:class:`~varbvs._results.IterationRecord` to any callable once per
iteration, and nothing in the numerical core depends on what the
observer does.  :func:`print_progress` is the observer behind
``verbose=True`` and prints the classic one-line status::

    [grid] iter        logw   max|Δα|   Σα    sa

``iter`` and ``grid`` are zero-padded, the bound is printed in signed
scientific notation.
"""

from __future__ import annotations

import sys
from typing import TextIO

from ._results import IterationRecord


def format_status(rec: IterationRecord) -> str:
    """One-line status string for *rec*."""
    prefix = "" if rec.outer_iter is None else f"{rec.outer_iter:05d} "
    sigma = "---" if rec.sigma is None else f"{rec.sigma:0.1e}"
    return (
        f"{prefix}{rec.iteration:05d} {rec.logw_after:+13.6e} "
        f"{rec.max_err:0.1e} {rec.sum_alpha:06.1f} {sigma:>7}  {rec.sa:0.1e}"
    )


def print_progress(rec: IterationRecord, file: TextIO | None = None) -> None:
    """Write :func:`format_status` of *rec* as one line."""
    print(format_status(rec), file=file if file is not None else sys.stdout)


__all__ = ["format_status", "print_progress"]
