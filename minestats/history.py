"""Bounded history of confirmed mine layouts and its persistence providers."""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Tuple,
    Union,
)

from .utils import (
    ENTRIES_PER_LEVEL,
    MAX_HISTORY_SIZE,
    MAX_TRAINING_LEVEL,
    RECENT_PATTERN_COUNT,
    TOTAL_CELLS,
    TRAINING_SATURATION,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "mines_training_history"


class HistoryLoadError(Exception):
    """Raised when persisted history exists but cannot be decoded."""


class HistorySaveError(Exception):
    """Raised when the store cannot persist a mutation through its provider."""


@dataclass(frozen=True)
class HistoryEntry:
    """One confirmed layout. Immutable once created."""

    id: str
    timestamp: datetime
    mine_positions: Tuple[int, ...]
    mine_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON-compatible shape used by the persistence providers."""
        stamp = self.timestamp.astimezone(timezone.utc).isoformat()
        return {
            "id": self.id,
            "timestamp": stamp.replace("+00:00", "Z"),
            "minePositions": list(self.mine_positions),
            "mineCount": self.mine_count,
        }

    @classmethod
    def from_dict(cls, data: Any, total_cells: int = TOTAL_CELLS) -> "HistoryEntry":
        """
        Rebuild an entry from its serialized form.

        Args:
            data: One decoded entry object.
            total_cells: Grid size the layout must fit in.

        Raises:
            HistoryLoadError: If a field is missing, has the wrong type, or the
                layout is not mineCount distinct cells in [0, total_cells).
        """
        if not isinstance(data, dict):
            raise HistoryLoadError(f"History entry must be an object, got {type(data).__name__}.")
        try:
            entry_id = data["id"]
            raw_stamp = data["timestamp"]
            positions = data["minePositions"]
            mine_count = data["mineCount"]
        except KeyError as exc:
            raise HistoryLoadError(f"History entry is missing field {exc.args[0]!r}.") from exc

        if not isinstance(entry_id, str) or not isinstance(raw_stamp, str):
            raise HistoryLoadError("History entry id and timestamp must be strings.")
        if not isinstance(positions, list) or not all(
            isinstance(p, int) and not isinstance(p, bool) for p in positions
        ):
            raise HistoryLoadError("History entry minePositions must be a list of integers.")
        if not isinstance(mine_count, int) or isinstance(mine_count, bool):
            raise HistoryLoadError("History entry mineCount must be an integer.")
        if len(set(positions)) != len(positions):
            raise HistoryLoadError(f"History entry minePositions has duplicates: {positions}.")
        if len(positions) != mine_count:
            raise HistoryLoadError(
                f"History entry has {len(positions)} cells, expected mineCount {mine_count}."
            )
        if any(p < 0 or p >= total_cells for p in positions):
            raise HistoryLoadError(
                f"History entry minePositions must lie in [0, {total_cells}): {positions}."
            )

        try:
            timestamp = datetime.fromisoformat(raw_stamp.replace("Z", "+00:00"))
        except ValueError as exc:
            raise HistoryLoadError(f"Invalid history timestamp {raw_stamp!r}.") from exc
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return cls(
            id=entry_id,
            timestamp=timestamp,
            mine_positions=tuple(sorted(positions)),
            mine_count=mine_count,
        )


class HistoryProvider(Protocol):
    """Durable storage for the serialized, most-recent-first list of entries."""

    def load(self) -> List[Dict[str, Any]]:
        ...

    def save(self, entries: List[Dict[str, Any]]) -> None:
        ...


class InMemoryHistoryProvider:
    """Key-value provider backed by a plain dict; nothing survives the process."""

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        key: str = STORAGE_KEY,
    ) -> None:
        self.data: Dict[str, Any] = data if data is not None else {}
        self.key = key

    def load(self) -> List[Dict[str, Any]]:
        raw = self.data.get(self.key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise HistoryLoadError(f"Stored history under {self.key!r} is not a list.")
        return [dict(item) if isinstance(item, dict) else item for item in raw]

    def save(self, entries: List[Dict[str, Any]]) -> None:
        self.data[self.key] = [dict(item) for item in entries]


class JsonFileHistoryProvider:
    """
    Key-value provider persisting to a JSON file.

    The file holds one object mapping storage keys to entry lists, so several
    histories can share a file. A missing file loads as empty history.
    """

    def __init__(self, path: Union[str, Path], key: str = STORAGE_KEY) -> None:
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise HistoryLoadError(f"Corrupt history file {self.path}: {exc}") from exc
        if not isinstance(document, dict):
            raise HistoryLoadError(f"History file {self.path} must contain a JSON object.")
        return document

    def load(self) -> List[Dict[str, Any]]:
        raw = self._read_document().get(self.key, [])
        if not isinstance(raw, list):
            raise HistoryLoadError(f"History under {self.key!r} in {self.path} is not a list.")
        return raw

    def save(self, entries: List[Dict[str, Any]]) -> None:
        try:
            document = self._read_document()
        except HistoryLoadError:
            # Unreadable document: replaced wholesale.
            document = {}
        document[self.key] = entries

        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


def _default_id_factory(now: datetime) -> str:
    return f"{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def training_label(level: int) -> str:
    """Coarse maturity label for a training level."""
    if level >= 8:
        return "EXPERT"
    if level >= 5:
        return "ADVANCED"
    if level >= 2:
        return "INTERMEDIATE"
    return "BEGINNER"


class HistoryStore:
    """
    Ordered, bounded record of confirmed layouts, most recent first.

    All mutation goes through ``record`` and ``clear``. Each mutation is written
    through to the provider, if one is configured. Reads hand out immutable
    snapshots, so a simulation run sees a consistent view even if the caller
    keeps a reference to the store.
    """

    def __init__(
        self,
        provider: Optional[HistoryProvider] = None,
        capacity: int = MAX_HISTORY_SIZE,
        total_cells: int = TOTAL_CELLS,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[datetime], str]] = None,
    ) -> None:
        """
        Create a store and load any persisted history.

        Args:
            provider: Durable storage; when None the store is purely in-memory.
            capacity: Maximum number of retained entries, must be > 0.
            total_cells: Grid size used to validate recorded layouts.
            clock: Returns the current time; defaults to UTC now.
            id_factory: Builds a fresh id from the creation time.

        Raises:
            ValueError: If capacity is non-positive.
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive.")

        self.provider = provider
        self.capacity: int = capacity
        self.total_cells: int = total_cells
        self._clock: Callable[[], datetime] = clock or _utc_now
        self._id_factory: Callable[[datetime], str] = id_factory or _default_id_factory
        self._entries: List[HistoryEntry] = []
        self.load_error: Optional[Exception] = None

        if provider is not None:
            self._load(provider)

    def _load(self, provider: HistoryProvider) -> None:
        try:
            raw_entries = provider.load()
            entries = [HistoryEntry.from_dict(item, self.total_cells) for item in raw_entries]
        except (HistoryLoadError, OSError) as exc:
            self.load_error = exc
            self._entries = []
            logger.warning("Failed to load training history, starting empty: %s", exc)
            return

        self._entries = entries[: self.capacity]
        logger.info("Loaded %d training history entries.", len(self._entries))

    def _save(self) -> None:
        if self.provider is None:
            return
        try:
            self.provider.save([entry.to_dict() for entry in self._entries])
        except OSError as exc:
            logger.error("Failed to save training history: %s", exc)
            raise HistorySaveError(str(exc)) from exc

    def record(self, layout: Iterable[int], mine_count: int) -> HistoryEntry:
        """
        Prepend a confirmed layout, evicting the oldest entry beyond capacity.

        Args:
            layout: The true mine positions, exactly ``mine_count`` distinct cells.
            mine_count: Mine count the layout was observed with.

        Returns:
            The newly created entry.

        Raises:
            ValueError: If the layout size or indices are invalid.
            HistorySaveError: If the provider fails to persist the new state.
        """
        positions = tuple(sorted(set(layout)))
        if len(positions) != mine_count:
            raise ValueError(
                f"Layout has {len(positions)} distinct cells, expected {mine_count}."
            )
        if positions and (positions[0] < 0 or positions[-1] >= self.total_cells):
            raise ValueError(f"Layout cells must lie in [0, {self.total_cells}).")

        now = self._clock()
        entry = HistoryEntry(
            id=self._id_factory(now),
            timestamp=now,
            mine_positions=positions,
            mine_count=mine_count,
        )
        self._entries.insert(0, entry)
        del self._entries[self.capacity :]
        logger.info(
            "Recorded training pattern %s (%d entries).", list(positions), len(self._entries)
        )
        self._save()
        return entry

    def clear(self) -> None:
        """Remove every entry."""
        self._entries = []
        logger.info("Cleared training history.")
        self._save()

    def recent_patterns(self, count: int = RECENT_PATTERN_COUNT) -> Tuple[Tuple[int, ...], ...]:
        """Return up to ``count`` most recent layouts, most recent first."""
        if count <= 0:
            return ()
        return tuple(entry.mine_positions for entry in self._entries[:count])

    def training_level(self) -> int:
        """Maturity level in [0, 10], one level per five entries."""
        return min(len(self._entries) // ENTRIES_PER_LEVEL, MAX_TRAINING_LEVEL)

    def training_progress(self) -> float:
        """Progress toward the saturation point, as a percentage in [0, 100]."""
        return min(len(self._entries) / TRAINING_SATURATION * 100, 100.0)

    @property
    def total_entries(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))
