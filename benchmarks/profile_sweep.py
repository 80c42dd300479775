"""Profile one coordinate-ascent sweep across (n, p), backend and precision.

Measures wall-clock time per sweep and peak Python-side memory for the
NumPy loop and (when installed) the JAX-compiled kernel, with the
design matrix stored in single and double precision.

Usage::

    python benchmarks/profile_sweep.py          # full grid
    python benchmarks/profile_sweep.py --quick  # reduced grid for smoke test

Outputs:
    benchmarks/results/sweep_profile.csv
    docs/image/sweep-profile/time_per_coordinate.png
"""

from __future__ import annotations

import argparse
import platform
import sys
import time
import tracemalloc
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

# Ensure the package is importable when running from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from varbvs._backends import resolve_backend  # noqa: E402
from varbvs._config import _jax_is_available  # noqa: E402
from varbvs._state import VariationalState  # noqa: E402
from varbvs.matrix import DesignMatrix  # noqa: E402
from varbvs.statistics import normal_stats  # noqa: E402
from varbvs.update import coordinate_update, posterior_variance  # noqa: E402

# ------------------------------------------------------------------ #
# Configuration
# ------------------------------------------------------------------ #

SHAPES_FULL = [(500, 1_000), (1_000, 5_000), (2_000, 10_000), (5_000, 20_000)]
SHAPES_QUICK = [(200, 500), (500, 2_000)]

REPEATS = 3
SEED = 42

RESULTS_DIR = Path(__file__).resolve().parent / "results"
IMAGE_DIR = Path(__file__).resolve().parents[1] / "docs" / "image" / "sweep-profile"


# ------------------------------------------------------------------ #
# Benchmark helpers
# ------------------------------------------------------------------ #


def _problem(n: int, p: int, precision: str):
    rng = np.random.default_rng(SEED)
    X = rng.binomial(2, 0.3, size=(n, p)).astype(np.float64)
    X -= X.mean(axis=0)
    y = X[:, : min(p, 5)].sum(axis=1) + rng.standard_normal(n)
    dm = DesignMatrix(X, precision=precision)
    stats = normal_stats(dm, y)
    alpha = np.full(p, 1 / p)
    mu = np.zeros(p)
    state = VariationalState(
        alpha=alpha,
        mu=mu,
        s=posterior_variance(stats, 1.0, 1.0),
        Xr=dm.matvec(alpha * mu),
        sa=1.0,
        sigma=1.0,
    )
    return dm, stats, state, np.full(p, np.log(10 / p))


def _time_sweep(backend_name: str, n: int, p: int, precision: str) -> dict:
    backend = resolve_backend(backend_name)
    dm, stats, state, logodds = _problem(n, p, precision)
    order = np.arange(p)

    # Warm-up (compilation for JAX).
    coordinate_update(dm, state, stats, logodds, order, backend)

    times = []
    tracemalloc.start()
    for _ in range(REPEATS):
        t0 = time.perf_counter()
        coordinate_update(dm, state, stats, logodds, order, backend)
        times.append(time.perf_counter() - t0)
    _, peak = tracemalloc.get_traced_memory()
    tracemalloc.stop()

    return {
        "backend": backend_name,
        "precision": precision,
        "n": n,
        "p": p,
        "median_s": float(np.median(times)),
        "us_per_coordinate": float(np.median(times)) / p * 1e6,
        "peak_mb": peak / 1e6,
    }


def _make_time_per_coordinate(df: pd.DataFrame, image_dir: Path) -> None:
    """Line plot: microseconds per coordinate vs. n, one line per backend/precision."""
    fig, ax = plt.subplots(figsize=(10, 6))
    for (backend, precision), subset in df.groupby(["backend", "precision"]):
        subset = subset.sort_values("n")
        marker = "o" if backend == "numpy" else "s"
        linestyle = "-" if precision == "double" else "--"
        ax.plot(
            subset["n"],
            subset["us_per_coordinate"],
            marker=marker,
            linestyle=linestyle,
            label=f"{backend} / {precision}",
        )

    ax.set_xlabel("n (observations)")
    ax.set_ylabel("Median time per coordinate (µs)")
    ax.set_title("Sweep Cost per Coordinate")
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.legend(title="backend / precision")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(image_dir / "time_per_coordinate.png", dpi=150)
    plt.close(fig)
    print(f"  Saved {image_dir / 'time_per_coordinate.png'}")


# ------------------------------------------------------------------ #
# Main
# ------------------------------------------------------------------ #


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--quick", action="store_true", help="reduced grid")
    args = parser.parse_args()

    shapes = SHAPES_QUICK if args.quick else SHAPES_FULL
    backends = ["numpy"] + (["jax"] if _jax_is_available() else [])

    print(f"Python {platform.python_version()} | NumPy {np.__version__}")
    print(f"Backends: {', '.join(backends)}\n")

    rows = []
    for n, p in shapes:
        for backend_name in backends:
            for precision in ("double", "single"):
                row = _time_sweep(backend_name, n, p, precision)
                rows.append(row)
                print(
                    f"n={n:>6} p={p:>6} {backend_name:>5} {precision:>6}  "
                    f"{row['median_s']:8.3f} s  "
                    f"{row['us_per_coordinate']:7.2f} µs/coord  "
                    f"{row['peak_mb']:7.1f} MB"
                )

    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    out = RESULTS_DIR / "sweep_profile.csv"
    pd.DataFrame(rows).to_csv(out, index=False)
    print(f"\nWrote {out}")

    IMAGE_DIR.mkdir(parents=True, exist_ok=True)
    _make_time_per_coordinate(pd.DataFrame(rows), IMAGE_DIR)


if __name__ == "__main__":
    main()
