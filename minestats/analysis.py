"""Analysis and diagnostics tools for the Monte Carlo estimator."""

import random
from collections import defaultdict
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .engine import SimulationResult, run_simulation
from .utils import DEFAULT_THRESHOLD, GRID_WIDTH, TOTAL_CELLS, validate_config


def _as_map(source: Union[SimulationResult, Mapping[int, float]]) -> Mapping[int, float]:
    if isinstance(source, SimulationResult):
        return source.confidence_map
    return source


def confidence_grid(
    source: Union[SimulationResult, Mapping[int, float]], width: int = GRID_WIDTH
) -> np.ndarray:
    """
    Lay a confidence map out as a 2D array in row-major order.

    Args:
        source: A simulation result or a cell -> confidence mapping.
        width: Number of columns per row.

    Returns:
        Array of shape (rows, width). Cells missing from the map are NaN.
    """
    confidence = _as_map(source)
    if width <= 0:
        raise ValueError("width must be positive.")
    total = max(confidence.keys(), default=-1) + 1
    rows = -(-total // width)

    grid = np.full(rows * width, np.nan)
    for cell, value in confidence.items():
        grid[cell] = value
    return grid.reshape(rows, width)


def format_confidence_map(
    source: Union[SimulationResult, Mapping[int, float]],
    width: int = GRID_WIDTH,
    *,
    highlight: Collection[int] = (),
    show_coords: bool = True,
) -> str:
    """
    Format a confidence map as a human-readable percentage grid.

    Args:
        source: A simulation result or a cell -> confidence mapping.
        width: Number of columns per row.
        highlight: Cells to flag with a trailing '*' (e.g. suggestions).
        show_coords: If True, include coordinate labels and a header.

    Returns:
        A text grid; cells without a value are shown as '.'.
    """
    grid = confidence_grid(source, width)
    rows = grid.shape[0]
    marked = frozenset(highlight)

    def cell_str(row: int, col: int) -> str:
        value = grid[row, col]
        if np.isnan(value):
            return "    .  "
        flag = "*" if row * width + col in marked else " "
        return f" {value * 100:5.1f}{flag}"

    lines: List[str] = []
    if show_coords:
        header = "".join(f"{col:7d}" for col in range(width))
        lines.append("   " + header)
        lines.append("   " + "-" * (7 * width))

    for row in range(rows):
        body = "".join(cell_str(row, col) for col in range(width))
        lines.append(f"{row:2d} |" + body if show_coords else body)

    return "\n".join(lines)


def confidence_standard_errors(result: SimulationResult) -> Dict[int, float]:
    """Binomial standard error sqrt(p(1-p)/n) of every cell's confidence."""
    p = np.array([result.confidence_map[c] for c in sorted(result.confidence_map)])
    errors = np.sqrt(p * (1.0 - p) / result.iterations)
    return {cell: float(err) for cell, err in zip(sorted(result.confidence_map), errors)}


def run_convergence_study(
    mines: int,
    iterations_list: Sequence[int],
    runs: int,
    *,
    threshold: float = DEFAULT_THRESHOLD,
    recent_patterns: Sequence[Collection[int]] = (),
    seed: Optional[int] = None,
    total_cells: int = TOTAL_CELLS,
) -> Dict[int, Dict[str, float]]:
    """
    Measure how confidence estimates approach the analytic prior as iterations grow.

    With no history the true per-cell safety is ``1 - mines / total_cells``.
    For each iteration count, ``runs`` independent simulations are compared
    against it.

    Args:
        mines: Mines per layout.
        iterations_list: Iteration counts to study.
        runs: Independent simulations per iteration count.
        threshold: Base confidence threshold passed to every run.
        recent_patterns: Optional history to steer away from.
        seed: Seed for a shared random source, for reproducible studies.
        total_cells: Number of cells on the grid.

    Returns:
        Mapping iteration count -> {"mean_abs_error", "max_abs_error",
        "mean_std_error", "fallback_rate", "avg_patterns_avoided"}.
    """
    validate_config(mines, total_cells)
    if runs <= 0:
        raise ValueError("runs must be positive.")

    rng = random.Random(seed)
    expected = 1.0 - mines / total_cells
    results: Dict[int, Dict[str, float]] = {}

    for iterations in iterations_list:
        sums: Dict[str, float] = defaultdict(float)
        max_abs_error = 0.0

        for _ in range(runs):
            result = run_simulation(
                mines,
                iterations,
                threshold,
                recent_patterns,
                total_cells=total_cells,
                rng=rng,
            )
            values = np.array([result.confidence_map[c] for c in range(total_cells)])
            deviation = np.abs(values - expected)
            sums["mean_abs_error"] += float(deviation.mean())
            max_abs_error = max(max_abs_error, float(deviation.max()))
            sums["mean_std_error"] += float(
                np.mean(list(confidence_standard_errors(result).values()))
            )
            sums["fallback_rate"] += 1.0 if result.fallback_used else 0.0
            sums["avg_patterns_avoided"] += float(result.patterns_avoided)

        out = {k: total / runs for k, total in sums.items()}
        out["max_abs_error"] = max_abs_error
        results[iterations] = out

    return results


def plot_confidence_heatmap(
    result: SimulationResult, width: int = GRID_WIDTH, *, show: bool = True
) -> Figure:
    """Draw the confidence map as an annotated heatmap, outlining the safe cells."""
    grid = confidence_grid(result, width)

    fig, ax = plt.subplots()  # type: ignore[misc]
    image = ax.imshow(grid, vmin=0.0, vmax=1.0, cmap="RdYlGn")
    fig.colorbar(image, ax=ax, label="P(safe)")

    safe = frozenset(result.safe_cells)
    for row in range(grid.shape[0]):
        for col in range(grid.shape[1]):
            value = grid[row, col]
            if np.isnan(value):
                continue
            weight = "bold" if row * width + col in safe else "normal"
            ax.text(col, row, f"{value:.2f}", ha="center", va="center", fontweight=weight)

    title = f"Confidence map ({result.iterations:,} iterations, threshold {result.threshold:.2f})"
    if result.fallback_used:
        title += " [fallback]"
    ax.set_title(title)
    ax.set_xticks(range(grid.shape[1]))
    ax.set_yticks(range(grid.shape[0]))
    fig.tight_layout()
    if show:
        plt.show()  # type: ignore[misc]
    return fig


def plot_convergence(study: Dict[int, Dict[str, float]], *, show: bool = True) -> Figure:
    """Plot mean/max absolute error and mean standard error against iteration count."""
    iterations = sorted(study)
    x = np.array(iterations)

    fig, ax = plt.subplots()  # type: ignore[misc]
    ax.plot(x, [study[n]["mean_abs_error"] for n in iterations], marker="o", label="mean |error|")
    ax.plot(x, [study[n]["max_abs_error"] for n in iterations], marker="s", label="max |error|")
    ax.plot(
        x,
        [study[n]["mean_std_error"] for n in iterations],
        linestyle="--",
        label="mean std error",
    )
    ax.set_xscale("log")
    ax.set_xlabel("Iterations")
    ax.set_ylabel("Deviation from analytic P(safe)")
    ax.set_title("Monte Carlo convergence")
    ax.legend()
    fig.tight_layout()
    if show:
        plt.show()  # type: ignore[misc]
    return fig
