"""Operator-side marking of a true layout before it is confirmed into history."""

from typing import List, Tuple

from .history import HistoryEntry, HistorySaveError, HistoryStore
from .utils import TOTAL_CELLS, validate_config


class MarkingSession:
    """Collects exactly ``mine_count`` marked cells, then records them as a training pattern."""

    def __init__(self, mine_count: int, total_cells: int = TOTAL_CELLS) -> None:
        validate_config(mine_count, total_cells)
        self.mine_count: int = mine_count
        self.total_cells: int = total_cells
        self._marks: List[int] = []

    @property
    def marks(self) -> Tuple[int, ...]:
        return tuple(sorted(self._marks))

    @property
    def is_complete(self) -> bool:
        return len(self._marks) == self.mine_count

    def toggle(self, cell: int) -> bool:
        """
        Mark or unmark a cell.

        A new mark is ignored once ``mine_count`` cells are already marked.

        Returns:
            True if the marks changed.

        Raises:
            ValueError: If the cell is outside the grid.
        """
        if cell < 0 or cell >= self.total_cells:
            raise ValueError(f"Cell {cell} is outside [0, {self.total_cells}).")
        if cell in self._marks:
            self._marks.remove(cell)
            return True
        if len(self._marks) < self.mine_count:
            self._marks.append(cell)
            return True
        return False

    def reset(self) -> None:
        self._marks = []

    def confirm(self, store: HistoryStore) -> HistoryEntry:
        """
        Record the marked layout into ``store`` and start over.

        Raises:
            ValueError: If fewer than ``mine_count`` cells are marked.
            HistorySaveError: If the store cannot persist the entry. The entry
                is kept in memory and the marks are cleared.
        """
        if not self.is_complete:
            raise ValueError(
                f"Mark exactly {self.mine_count} cells before confirming "
                f"({len(self._marks)} marked)."
            )
        try:
            entry = store.record(self._marks, self.mine_count)
        except HistorySaveError:
            self.reset()
            raise
        self.reset()
        return entry
