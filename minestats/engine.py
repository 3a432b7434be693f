"""Adaptive Monte Carlo estimation of per-cell safety with staged progress events."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Callable,
    Collection,
    Dict,
    Iterable,
    List,
    Literal,
    Optional,
    Sequence,
)

from .patterns import generate_adaptive_layout
from .utils import (
    BATCH_COUNT,
    DEFAULT_ITERATIONS,
    DEFAULT_THRESHOLD,
    FALLBACK_COUNT,
    MAX_TRAINING_BONUS,
    SIMULATION_MAX_ATTEMPTS,
    THRESHOLD_FLOOR,
    TOTAL_CELLS,
    TRAINING_BONUS_STEP,
    validate_config,
)

logger = logging.getLogger(__name__)

StepType = Literal["info", "process", "success", "warning"]


class SimulationCancelled(Exception):
    """Raised when a run is aborted between batches; partial counts are discarded."""


@dataclass(frozen=True)
class AnalysisStep:
    """One human-readable progress event emitted during a run."""

    timestamp: datetime
    message: str
    type: StepType


ProgressCallback = Callable[[int, AnalysisStep], None]


@dataclass
class SimulationResult:
    """
    Outcome of one Monte Carlo run.

    Attributes:
        safe_cells: Cells at or above the adjusted threshold (or the fallback
            top cells), sorted by descending confidence then ascending index.
        confidence_map: Fraction of simulated layouts in which each cell was safe.
        iterations: Number of simulated layouts.
        threshold: Confidence threshold after the training adjustment.
        patterns_avoided: Draws in which at least one candidate was rejected as
            too similar to recent history.
        training_bonus: Threshold relaxation applied, as a percentage.
        fallback_used: True when no cell met the threshold.
    """

    safe_cells: List[int]
    confidence_map: Dict[int, float]
    iterations: int
    threshold: float
    patterns_avoided: int = 0
    training_bonus: float = 0.0
    fallback_used: bool = False
    steps: List[AnalysisStep] = field(default_factory=list, repr=False, compare=False)


def training_bonus(training_level: int) -> float:
    """Threshold relaxation earned by a training level, capped at 5%."""
    return min(max(training_level, 0) * TRAINING_BONUS_STEP, MAX_TRAINING_BONUS)


def adjusted_threshold(threshold: float, training_level: int) -> float:
    """Relax ``threshold`` by the training bonus, never below the hard floor."""
    return max(threshold - training_bonus(training_level), THRESHOLD_FLOOR)


def rank_cells(confidence_map: Dict[int, float], cells: Iterable[int]) -> List[int]:
    """Sort cells by descending confidence, ties broken by ascending index."""
    return sorted(cells, key=lambda cell: (-confidence_map[cell], cell))


def _batch_sizes(iterations: int, batches: int = BATCH_COUNT) -> List[int]:
    base = iterations // batches
    sizes = [base] * batches
    sizes[-1] += iterations - base * batches
    return sizes


async def run_adaptive_simulation(
    mines: int,
    iterations: int = DEFAULT_ITERATIONS,
    threshold: float = DEFAULT_THRESHOLD,
    recent_patterns: Sequence[Collection[int]] = (),
    training_level: int = 0,
    on_progress: Optional[ProgressCallback] = None,
    *,
    total_cells: int = TOTAL_CELLS,
    rng: Optional[random.Random] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> SimulationResult:
    """
    Estimate how often each cell is safe over many history-aware random layouts.

    Each draw comes from ``generate_adaptive_layout`` and steers away from
    ``recent_patterns``. Draws run in ten sequential batches. Control is yielded
    to the event loop after every phase and batch, so progress events reach the
    caller incrementally.

    Args:
        mines: Mines per simulated layout.
        iterations: Total number of simulated layouts.
        threshold: Base confidence a cell needs to count as safe.
        recent_patterns: Recently confirmed layouts, most recent first.
        training_level: History maturity in [0, 10]; relaxes the threshold.
        on_progress: Receives (percent, step) for every progress event.
        total_cells: Number of cells on the grid.
        rng: Random source; pass a seeded ``random.Random`` for reproducible runs.
        should_cancel: Consulted before each batch; returning True aborts the run.

    Returns:
        A SimulationResult with a total confidence map and a non-empty,
        deterministically ordered list of safe cells.

    Raises:
        ValueError: If the mine count, iterations or threshold are invalid.
        SimulationCancelled: If ``should_cancel`` requested an abort.
    """
    validate_config(mines, total_cells, iterations)
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must lie in [0, 1], got {threshold}.")

    # Frozen copy so the run never observes later history mutations.
    history = tuple(frozenset(pattern) for pattern in recent_patterns)
    steps: List[AnalysisStep] = []

    def emit(progress: int, message: str, step_type: StepType) -> None:
        step = AnalysisStep(datetime.now(timezone.utc), message, step_type)
        steps.append(step)
        if on_progress is not None:
            on_progress(progress, step)

    bonus = training_bonus(training_level)
    threshold_used = adjusted_threshold(threshold, training_level)
    cell_hit_count = [0] * total_cells
    patterns_avoided = 0

    logger.info(
        "Starting simulation: mines=%d iterations=%d threshold=%.3f (adjusted %.3f), "
        "%d recent patterns",
        mines,
        iterations,
        threshold,
        threshold_used,
        len(history),
    )

    emit(5, "[INIT] Initializing adaptive simulation engine...", "info")
    await asyncio.sleep(0)

    if history:
        emit(10, f"[TRAIN] Loading {len(history)} patterns from history...", "info")
        await asyncio.sleep(0)

    emit(15, f"[CALC] Computing {iterations:,} adaptive permutations...", "process")
    await asyncio.sleep(0)

    for batch, size in enumerate(_batch_sizes(iterations)):
        if should_cancel is not None and should_cancel():
            logger.info("Simulation cancelled before batch %d.", batch + 1)
            raise SimulationCancelled(f"Cancelled before batch {batch + 1}/{BATCH_COUNT}.")

        for _ in range(size):
            positions, _, avoided = generate_adaptive_layout(
                mines,
                history,
                max_attempts=SIMULATION_MAX_ATTEMPTS,
                total_cells=total_cells,
                rng=rng,
            )
            if avoided:
                patterns_avoided += 1
            for cell in range(total_cells):
                if cell not in positions:
                    cell_hit_count[cell] += 1

        logger.debug(
            "Batch %d/%d done (%d draws, %d avoided so far).",
            batch + 1,
            BATCH_COUNT,
            size,
            patterns_avoided,
        )
        emit(
            20 + (batch + 1) * 6,
            f"[SIM] Processing batch {batch + 1}/{BATCH_COUNT}... ({(batch + 1) * 10}%)",
            "process",
        )
        await asyncio.sleep(0)

    if training_level > 0:
        emit(82, f"[ADAPT] Applying training correction (level {training_level})...", "info")
        await asyncio.sleep(0)

    emit(90, f"[FILTER] Filtered {patterns_avoided} repetitive patterns...", "process")
    await asyncio.sleep(0)

    emit(95, "[ANALYZE] Analyzing probability density...", "process")
    await asyncio.sleep(0)

    confidence_map = {cell: cell_hit_count[cell] / iterations for cell in range(total_cells)}
    safe_cells = [cell for cell in range(total_cells) if confidence_map[cell] >= threshold_used]

    fallback_used = not safe_cells
    if fallback_used:
        safe_cells = rank_cells(confidence_map, range(total_cells))[:FALLBACK_COUNT]
        logger.warning(
            "No cell reached %.3f confidence; falling back to top %d cells.",
            threshold_used,
            len(safe_cells),
        )
        emit(
            97,
            f"[FALLBACK] No cell reached {threshold_used:.1%}; "
            f"using top {len(safe_cells)} by confidence.",
            "warning",
        )
        await asyncio.sleep(0)
    else:
        safe_cells = rank_cells(confidence_map, safe_cells)

    emit(100, f"[SUCCESS] {len(safe_cells)} high-confidence signals found!", "success")
    logger.info(
        "Simulation finished: %d safe cells, %d patterns avoided.",
        len(safe_cells),
        patterns_avoided,
    )

    return SimulationResult(
        safe_cells=safe_cells,
        confidence_map=confidence_map,
        iterations=iterations,
        threshold=threshold_used,
        patterns_avoided=patterns_avoided,
        training_bonus=bonus * 100,
        fallback_used=fallback_used,
        steps=steps,
    )


def run_simulation(
    mines: int,
    iterations: int = DEFAULT_ITERATIONS,
    threshold: float = DEFAULT_THRESHOLD,
    recent_patterns: Sequence[Collection[int]] = (),
    training_level: int = 0,
    on_progress: Optional[ProgressCallback] = None,
    *,
    total_cells: int = TOTAL_CELLS,
    rng: Optional[random.Random] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> SimulationResult:
    """Blocking wrapper around ``run_adaptive_simulation`` for callers without an event loop."""
    return asyncio.run(
        run_adaptive_simulation(
            mines,
            iterations,
            threshold,
            recent_patterns,
            training_level,
            on_progress,
            total_cells=total_cells,
            rng=rng,
            should_cancel=should_cancel,
        )
    )


async def run_monte_carlo_simulation(
    mines: int,
    iterations: int = DEFAULT_ITERATIONS,
    threshold: float = DEFAULT_THRESHOLD,
    on_progress: Optional[ProgressCallback] = None,
    *,
    total_cells: int = TOTAL_CELLS,
    rng: Optional[random.Random] = None,
) -> SimulationResult:
    """Plain (non-adaptive) simulation: no history and no training bonus."""
    return await run_adaptive_simulation(
        mines,
        iterations,
        threshold,
        (),
        0,
        on_progress,
        total_cells=total_cells,
        rng=rng,
    )


def top_suggestions(
    result: SimulationResult, count: int = FALLBACK_COUNT, exclude: Iterable[int] = ()
) -> List[int]:
    """
    Pick the first ``count`` safe cells of a result, skipping ``exclude``.

    Args:
        result: A completed simulation.
        count: Maximum number of suggestions.
        exclude: Cells that must not be suggested (e.g. already revealed).

    Returns:
        Up to ``count`` cells in the result's ranking order.
    """
    if count <= 0:
        return []
    skipped = frozenset(exclude)
    return [cell for cell in result.safe_cells if cell not in skipped][:count]
