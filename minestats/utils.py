"""Configuration constants and small helpers shared by the estimation engine."""

from typing import Optional

# Reference grid: 5x5 cells.
TOTAL_CELLS = 25
GRID_WIDTH = 5

# Monte Carlo defaults.
DEFAULT_ITERATIONS = 1000
DEFAULT_THRESHOLD = 0.97
THRESHOLD_FLOOR = 0.90
TRAINING_BONUS_STEP = 0.005
MAX_TRAINING_BONUS = 0.05
BATCH_COUNT = 10
FALLBACK_COUNT = 5

# Adaptive avoidance.
SIMILARITY_THRESHOLD = 0.6
GENERATOR_MAX_ATTEMPTS = 10
SIMULATION_MAX_ATTEMPTS = 5
RECENT_PATTERN_COUNT = 3

# History / training.
MAX_HISTORY_SIZE = 50
TRAINING_SATURATION = 50
ENTRIES_PER_LEVEL = 5
MAX_TRAINING_LEVEL = 10


def validate_config(
    mine_count: int, total_cells: int = TOTAL_CELLS, iterations: Optional[int] = None
) -> None:
    """
    Reject configurations that cannot be sampled.

    Args:
        mine_count: Number of mines per layout. Must satisfy 0 < mine_count < total_cells.
        total_cells: Number of cells on the grid. Must be positive.
        iterations: Optional number of Monte Carlo draws. Must be positive when given.

    Raises:
        ValueError: If any value is out of range.
    """
    if total_cells <= 0:
        raise ValueError(f"total_cells must be positive, got {total_cells}.")
    if mine_count <= 0:
        raise ValueError(f"mine_count must be positive, got {mine_count}.")
    if mine_count >= total_cells:
        raise ValueError(
            f"mine_count must be smaller than total_cells "
            f"({mine_count} >= {total_cells})."
        )
    if iterations is not None and iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}.")


def format_cell(index: int, width: int = GRID_WIDTH) -> str:
    """Render a cell index as ``[row,col]`` for log and progress messages."""
    row, col = divmod(index, width)
    return f"[{row},{col}]"
