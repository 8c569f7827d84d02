import argparse
import contextlib
import datetime as dt
import io
import json
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from walletgraph.cli.main import _date_until, _label, bounds_from_args, build_arg_parser, main


class CliTests(unittest.TestCase):
    def test_static_run_writes_outputs_and_labels(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "out"
            prefs = Path(tmp) / "prefs.json"
            argv = [
                "--use-static",
                "--address", "0xAAAA",
                "--depth", "2",
                "--out", str(out),
                "--prefs", str(prefs),
                "--label", "0xAAAA=Root",
            ]
            with contextlib.redirect_stdout(io.StringIO()) as buf:
                code = main(argv)

            self.assertEqual(code, 0)
            self.assertTrue((out / "graph.json").exists())
            self.assertTrue((out / "summary.md").exists())
            self.assertIn("Total transactions: 0", buf.getvalue())

            stored = json.loads(prefs.read_text(encoding="utf-8"))
            self.assertEqual(stored["maxDepth"], 2)
            self.assertEqual(stored["walletNames"], [["0xaaaa", "Root"]])

    def test_negative_depth_is_usage_error(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            self.assertEqual(main(["--use-static", "--depth", "-1"]), 2)

    def test_filter_arguments(self) -> None:
        args = build_arg_parser().parse_args([
            "--date-from", "2024-01-01",
            "--date-to", "2024-01-31",
            "--amount-min", "5",
        ])
        bounds = bounds_from_args(args)

        self.assertEqual(bounds.date_from, dt.datetime(2024, 1, 1))
        self.assertEqual(bounds.date_to, dt.datetime(2024, 1, 31, 23, 59, 59, 999999))
        self.assertEqual(bounds.amount_min, Decimal("5"))
        self.assertIsNone(bounds.amount_max)

    def test_date_until_keeps_explicit_time(self) -> None:
        self.assertEqual(_date_until("2024-01-31T12:00:00"), dt.datetime(2024, 1, 31, 12))

    def test_label_argument(self) -> None:
        self.assertEqual(_label("0xabc=Cold wallet"), ("0xabc", "Cold wallet"))
        with self.assertRaises(argparse.ArgumentTypeError):
            _label("0xabc")


if __name__ == "__main__":
    unittest.main()
