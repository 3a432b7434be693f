"""Tests for the interactive terminal front end."""

import io
import random
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any, Dict, Iterable, List
from unittest import mock

from minestats.cli import build_parser, main, run_cli
from minestats.history import HistoryStore, JsonFileHistoryProvider


def _scripted(commands: Iterable[str]):
    queue = list(commands)

    def read(_: str) -> str:
        if not queue:
            raise EOFError
        return queue.pop(0)

    return read


class _ReadOnlyProvider:
    def load(self) -> List[Dict[str, Any]]:
        return []

    def save(self, entries: List[Dict[str, Any]]) -> None:
        raise PermissionError("read-only")


class TestRunCli(unittest.TestCase):
    def _run(self, store: HistoryStore, commands: Iterable[str]) -> str:
        out = io.StringIO()
        with redirect_stdout(out):
            run_cli(
                store,
                3,
                iterations=100,
                rng=random.Random(0),
                input_fn=_scripted(commands),
            )
        return out.getvalue()

    def test_mark_confirm_and_analyze(self) -> None:
        store = HistoryStore()
        output = self._run(store, ["mark 4 9 13", "confirm", "analyze", "status", "q"])

        self.assertEqual(store.recent_patterns(1), ((4, 9, 13),))
        self.assertIn("Pattern saved: [4, 9, 13]", output)
        self.assertIn("[SUCCESS]", output)
        self.assertIn("Suggestions:", output)
        self.assertIn("1 patterns stored", output)
        self.assertTrue(output.rstrip().endswith("Quit."))

    def test_incomplete_confirm_and_bad_input(self) -> None:
        store = HistoryStore()
        output = self._run(store, ["mark 1", "confirm", "mark x", "mark 99", "bogus", "help"])

        self.assertEqual(len(store), 0)
        self.assertIn("Mark exactly 3 cells", output)
        self.assertIn("Invalid input", output)
        self.assertIn("Unknown command", output)
        self.assertIn("Commands:", output)

    def test_mark_limit_and_clear(self) -> None:
        store = HistoryStore()
        store.record([0, 1, 2], 3)
        output = self._run(store, ["mark 5 6 7 8", "clear", "q"])

        self.assertIn("Already 3 cells marked", output)
        self.assertEqual(len(store), 0)

    def test_out_of_range_mark_toggles_nothing(self) -> None:
        store = HistoryStore()
        output = self._run(store, ["mark 1 99", "mark 2", "q"])

        self.assertIn("Invalid input: cells [99]", output)
        self.assertIn("Marked: [2] (1/3)", output)
        self.assertNotIn("Marked: [1", output)

    def test_save_failures_keep_the_loop_running(self) -> None:
        store = HistoryStore(_ReadOnlyProvider())
        with self.assertLogs("minestats.history", level="ERROR"):
            output = self._run(store, ["mark 1 2 3", "confirm", "mark 4", "clear", "q"])

        self.assertIn("pattern kept in memory but could not be saved (read-only)", output)
        self.assertIn("Marked: [4] (1/3)", output)
        self.assertIn("history cleared in memory but could not be saved (read-only)", output)
        self.assertEqual(len(store), 0)
        self.assertTrue(output.rstrip().endswith("Quit."))


class TestMain(unittest.TestCase):
    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args([])
        self.assertEqual(args.mines, 3)
        self.assertEqual(args.iterations, 1000)
        self.assertAlmostEqual(args.threshold, 0.97)

    def test_main_uses_history_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "history.json"
            argv = ["--history-file", str(path), "--iterations", "100", "--seed", "1"]

            with mock.patch("builtins.input", side_effect=["mark 1 2 3", "confirm", "q"]):
                with redirect_stdout(io.StringIO()):
                    self.assertEqual(main(argv), 0)

            reloaded = HistoryStore(JsonFileHistoryProvider(path))
            self.assertEqual(reloaded.recent_patterns(1), ((1, 2, 3),))


if __name__ == "__main__":
    unittest.main()
