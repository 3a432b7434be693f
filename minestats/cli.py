"""Terminal front end: run analyses, confirm true layouts, inspect training status."""

import argparse
import logging
import random
from pathlib import Path
from typing import Callable, List, Optional

from .analysis import format_confidence_map
from .bayes import base_probability, entropy
from .engine import AnalysisStep, SimulationResult, run_simulation, top_suggestions
from .history import HistorySaveError, HistoryStore, JsonFileHistoryProvider, training_label
from .training import MarkingSession
from .utils import (
    DEFAULT_ITERATIONS,
    DEFAULT_THRESHOLD,
    FALLBACK_COUNT,
    GRID_WIDTH,
    RECENT_PATTERN_COUNT,
    TOTAL_CELLS,
    format_cell,
)

_ANSI_RESET = "\033[0m"
_STEP_COLORS = {
    "info": "\033[96m",
    "process": "\033[95m",
    "success": "\033[92m",
    "warning": "\033[93m",
}

HELP = (
    "Commands:\n"
    "  analyze            run a simulation and print the confidence grid\n"
    "  mark <cells...>    toggle marks for the true layout (0-based indices)\n"
    "  confirm            save the marked layout as a training pattern\n"
    "  clear              erase the training history\n"
    "  status             show training level and history size\n"
    "  q                  quit"
)


def print_step(progress: int, step: AnalysisStep) -> None:
    """Print one progress event with a severity color."""
    color = _STEP_COLORS.get(step.type, "")
    stamp = step.timestamp.strftime("%H:%M:%S")
    print(f"{color}{progress:3d}% {stamp} {step.message}{_ANSI_RESET}")


def format_status(store: HistoryStore) -> str:
    level = store.training_level()
    return (
        f"Training level {level}/10 ({training_label(level)}), "
        f"{store.training_progress():.0f}% progress, "
        f"{store.total_entries} patterns stored."
    )


def format_result(result: SimulationResult, suggestions: List[int]) -> str:
    lines = [format_confidence_map(result, GRID_WIDTH, highlight=suggestions)]
    if result.patterns_avoided:
        lines.append(f"[ADAPT] {result.patterns_avoided} repetitive patterns avoided")
    if result.training_bonus > 0:
        lines.append(f"[BONUS] +{result.training_bonus:.1f}% threshold relaxation applied")
    cells = ", ".join(
        f"{format_cell(c)} {result.confidence_map[c]:.1%}" for c in suggestions
    )
    lines.append(f"Suggestions: {cells if cells else 'none'}")
    lines.append(f"Grid entropy: {entropy(result.confidence_map):.2f} bits")
    return "\n".join(lines)


def run_cli(
    store: HistoryStore,
    mines: int,
    *,
    iterations: int = DEFAULT_ITERATIONS,
    threshold: float = DEFAULT_THRESHOLD,
    suggestions: int = FALLBACK_COUNT,
    rng: Optional[random.Random] = None,
    input_fn: Optional[Callable[[str], str]] = None,
) -> None:
    """
    Run the interactive estimator loop until the user quits.

    Args:
        store: Training history used for adaptive avoidance.
        mines: Mines per layout.
        iterations: Monte Carlo draws per analysis.
        threshold: Base confidence threshold.
        suggestions: Maximum cells to suggest per analysis.
        rng: Random source for the simulations.
        input_fn: Source of user commands; defaults to the builtin input.
    """
    read = input_fn if input_fn is not None else input
    session = MarkingSession(mines, store.total_cells)

    print("Mines probability estimator. Type 'help' for commands, 'q' to quit.\n")
    print(f"Base mine probability: {base_probability(mines, store.total_cells):.1%}")
    print(format_status(store))
    if store.load_error is not None:
        print(f"Warning: history could not be loaded ({store.load_error}); starting empty.")

    while True:
        try:
            s = read("\n> ").strip()
        except EOFError:
            print("Quit.")
            return

        parts = s.replace(",", " ").split()
        if not parts:
            continue
        command, args = parts[0].lower(), parts[1:]

        if command in {"q", "quit", "exit"}:
            print("Quit.")
            return

        if command == "help":
            print(HELP)
        elif command == "analyze":
            result = run_simulation(
                mines,
                iterations,
                threshold,
                store.recent_patterns(RECENT_PATTERN_COUNT),
                store.training_level(),
                print_step,
                total_cells=store.total_cells,
                rng=rng,
            )
            print()
            print(format_result(result, top_suggestions(result, suggestions)))
        elif command == "mark":
            try:
                cells = [int(a) for a in args]
            except ValueError as exc:
                print(f"Invalid input: {exc}")
                continue
            outside = [cell for cell in cells if cell < 0 or cell >= store.total_cells]
            if outside:
                print(f"Invalid input: cells {outside} are outside [0, {store.total_cells}).")
                continue
            for cell in cells:
                if not session.toggle(cell):
                    print(f"Already {mines} cells marked; unmark one first.")
            print(f"Marked: {list(session.marks)} ({len(session.marks)}/{mines})")
        elif command == "confirm":
            try:
                entry = session.confirm(store)
            except ValueError as exc:
                print(exc)
                continue
            except HistorySaveError as exc:
                print(f"Warning: pattern kept in memory but could not be saved ({exc}).")
                continue
            print(f"[TRAIN] Pattern saved: {list(entry.mine_positions)}")
            print(format_status(store))
        elif command == "clear":
            try:
                store.clear()
            except HistorySaveError as exc:
                print(f"Warning: history cleared in memory but could not be saved ({exc}).")
                continue
            print("[CLEAR] Training history cleared.")
        elif command == "status":
            print(format_status(store))
        else:
            print(f"Unknown command {command!r}. Type 'help'.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minestats",
        description="Monte Carlo safety estimator for a mines grid with adaptive history.",
    )
    parser.add_argument("--mines", type=int, default=3, help="mines per layout (default: 3)")
    parser.add_argument("--iterations", type=int, default=DEFAULT_ITERATIONS)
    parser.add_argument("--threshold", type=float, default=DEFAULT_THRESHOLD)
    parser.add_argument("--suggestions", type=int, default=FALLBACK_COUNT)
    parser.add_argument(
        "--history-file",
        type=Path,
        default=Path.home() / ".minestats" / "history.json",
        help="JSON file holding the training history",
    )
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible runs")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = HistoryStore(JsonFileHistoryProvider(args.history_file), total_cells=TOTAL_CELLS)
    run_cli(
        store,
        args.mines,
        iterations=args.iterations,
        threshold=args.threshold,
        suggestions=args.suggestions,
        rng=random.Random(args.seed),
    )
    return 0
