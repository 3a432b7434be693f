"""Jaccard similarity between mine layouts and history-aware layout generation."""

import random
from typing import FrozenSet, Iterable, NamedTuple, Optional, Sequence

from .utils import (
    GENERATOR_MAX_ATTEMPTS,
    SIMILARITY_THRESHOLD,
    TOTAL_CELLS,
    validate_config,
)

Layout = FrozenSet[int]


class AdaptiveLayout(NamedTuple):
    """Outcome of one adaptive draw: the accepted layout and how it was reached."""

    positions: Layout
    attempts: int
    avoided: bool


def similarity(a: Iterable[int], b: Iterable[int]) -> float:
    """
    Jaccard index of two layouts.

    Args:
        a: First layout (any iterable of cell indices; duplicates are ignored).
        b: Second layout.

    Returns:
        |a ∩ b| / |a ∪ b| in [0, 1], or 0.0 if either layout is empty.
    """
    set_a = frozenset(a)
    set_b = frozenset(b)
    if not set_a or not set_b:
        return 0.0

    intersection = len(set_a & set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union


def is_too_similar(
    candidate: Iterable[int],
    recent: Iterable[Iterable[int]],
    threshold: float = SIMILARITY_THRESHOLD,
) -> bool:
    """Return True if ``candidate`` reaches ``threshold`` similarity with any recent layout."""
    candidate_set = frozenset(candidate)
    return any(similarity(candidate_set, pattern) >= threshold for pattern in recent)


def random_layout(
    mine_count: int,
    total_cells: int = TOTAL_CELLS,
    rng: Optional[random.Random] = None,
) -> Layout:
    """
    Draw a uniformly random layout of ``mine_count`` distinct cells.

    Args:
        mine_count: Number of mines to place.
        total_cells: Number of cells on the grid.
        rng: Random source; the module-level generator is used when omitted.

    Returns:
        A frozenset of ``mine_count`` indices in [0, total_cells).
    """
    validate_config(mine_count, total_cells)
    sampler = rng if rng is not None else random
    return frozenset(sampler.sample(range(total_cells), mine_count))


def generate_adaptive_layout(
    mine_count: int,
    recent: Sequence[Iterable[int]],
    max_attempts: int = GENERATOR_MAX_ATTEMPTS,
    total_cells: int = TOTAL_CELLS,
    rng: Optional[random.Random] = None,
) -> AdaptiveLayout:
    """
    Draw a layout, retrying while it is too similar to a recent one.

    The first draw that passes ``is_too_similar`` is accepted. When every one of
    ``max_attempts`` draws is rejected, the last draw is accepted anyway, so the
    call always terminates.

    Args:
        mine_count: Number of mines per layout.
        recent: Recently confirmed layouts to steer away from.
        max_attempts: Upper bound on draws for this call, must be >= 1.
        total_cells: Number of cells on the grid.
        rng: Random source; the module-level generator is used when omitted.

    Returns:
        AdaptiveLayout(positions, attempts, avoided), where ``avoided`` is True iff
        at least one draw was rejected.

    Raises:
        ValueError: If the configuration is invalid or max_attempts < 1.
    """
    validate_config(mine_count, total_cells)
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}.")

    avoided = False
    attempts = 0
    while True:
        positions = random_layout(mine_count, total_cells, rng)
        attempts += 1
        if not recent or not is_too_similar(positions, recent):
            break
        if attempts >= max_attempts:
            break
        avoided = True

    return AdaptiveLayout(positions, attempts, avoided)
