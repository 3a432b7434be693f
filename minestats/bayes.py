"""Closed-form prior/posterior estimates and Shannon entropy of a confidence map."""

import logging
from math import log2
from typing import Dict, Iterable, Mapping

from .utils import TOTAL_CELLS

logger = logging.getLogger(__name__)


def base_probability(mines: int, total_cells: int = TOTAL_CELLS) -> float:
    """
    Prior probability that any single unrevealed cell holds a mine.

    Raises:
        ValueError: If total_cells is non-positive.
    """
    if total_cells <= 0:
        raise ValueError("total_cells must be positive.")
    return mines / total_cells


def _remaining(
    mines: int, revealed_safe: Iterable[int], revealed_mines: Iterable[int], total_cells: int
):
    safe = frozenset(revealed_safe)
    hit = frozenset(revealed_mines)
    for cell in safe | hit:
        if cell < 0 or cell >= total_cells:
            raise ValueError(f"Revealed cell {cell} is outside [0, {total_cells}).")
    # A cell listed as both safe and mine counts as safe.
    remaining_mines = mines - len(hit - safe)
    remaining_cells = total_cells - len(safe | hit)
    return safe, hit, remaining_mines, remaining_cells


def is_degenerate_posterior(
    mines: int,
    revealed_safe: Iterable[int],
    revealed_mines: Iterable[int],
    total_cells: int = TOTAL_CELLS,
) -> bool:
    """
    Return True when the revealed sets leave no room for a well-defined posterior.

    That is the case when no unrevealed cells remain, or when more mines remain
    than there are unrevealed cells to hold them.
    """
    _, _, remaining_mines, remaining_cells = _remaining(
        mines, revealed_safe, revealed_mines, total_cells
    )
    if remaining_cells <= 0:
        return True
    return remaining_mines > remaining_cells


def posterior(
    mines: int,
    revealed_safe: Iterable[int],
    revealed_mines: Iterable[int],
    total_cells: int = TOTAL_CELLS,
) -> Dict[int, float]:
    """
    Per-cell probability of being safe given the cells revealed so far.

    Revealed safe cells map to 1.0 and revealed mines to 0.0. Every other cell
    gets the uniform posterior ``1 - remaining_mines / remaining_cells``.
    Degenerate input is clamped into [0, 1] and logged instead of dividing by
    zero (see ``is_degenerate_posterior``).

    Args:
        mines: Total mines on the grid.
        revealed_safe: Cells already known to be safe.
        revealed_mines: Cells already known to be mines.
        total_cells: Number of cells on the grid.

    Returns:
        A total mapping from every cell index to a probability in [0, 1].

    Raises:
        ValueError: If a revealed cell lies outside the grid.
    """
    safe, hit, remaining_mines, remaining_cells = _remaining(
        mines, revealed_safe, revealed_mines, total_cells
    )

    if remaining_mines <= 0:
        uniform = 1.0
    elif remaining_cells <= 0:
        logger.warning(
            "Degenerate posterior input: %d mines remain but no unrevealed cells.",
            remaining_mines,
        )
        uniform = 0.0
    else:
        uniform = 1.0 - remaining_mines / remaining_cells
        if uniform < 0.0:
            logger.warning(
                "Degenerate posterior input: %d mines remain for %d cells; clamping.",
                remaining_mines,
                remaining_cells,
            )
            uniform = 0.0

    probabilities: Dict[int, float] = {}
    for cell in range(total_cells):
        if cell in safe:
            probabilities[cell] = 1.0
        elif cell in hit:
            probabilities[cell] = 0.0
        else:
            probabilities[cell] = uniform
    return probabilities


def entropy(confidence_map: Mapping[int, float]) -> float:
    """
    Shannon entropy, in bits, summed over cells with 0 < p < 1.

    Cells with p in {0, 1} carry no uncertainty and contribute nothing.
    """
    total = 0.0
    for p in confidence_map.values():
        if 0.0 < p < 1.0:
            total -= p * log2(p) + (1.0 - p) * log2(1.0 - p)
    return total


def normalized_entropy(confidence_map: Mapping[int, float]) -> float:
    """Entropy divided by the number of cells in the map (0.0 for an empty map)."""
    if not confidence_map:
        return 0.0
    return entropy(confidence_map) / len(confidence_map)
