import json
import tempfile
import unittest
from decimal import Decimal

from walletgraph.adapters.ledger.static_ledger_adapter import StaticLedgerAdapter
from walletgraph.io.output_writer import write_graph_json, write_summary_md
from walletgraph.io.schemas import node_tooltip
from walletgraph.services.analytics import AnalyticsEngine
from walletgraph.services.graph_builder import GraphBuilder

A = "0xaaaa000000000000000000000000000000000000"
B = "0xbbbb000000000000000000000000000000000000"
C = "0xcccc000000000000000000000000000000000000"


def _build(max_depth=2):
    ledger = StaticLedgerAdapter(
        batches={
            A: [
                {"from": A, "to": B, "value": "10", "timestamp": 1704067200, "hash": "0x01"},
                {"from": C, "to": A, "value": "4", "timestamp": 1704060000},
            ],
        },
        failing=[B],
    )
    return GraphBuilder(ledger).build_sync(A, max_depth)


class OutputWriterTests(unittest.TestCase):
    def test_graph_json(self) -> None:
        result = _build()
        filtered, summary = AnalyticsEngine().run(result.transactions)

        with tempfile.TemporaryDirectory() as out:
            path = write_graph_json(result, out, labels={A: "Root"}, filtered=filtered, summary=summary)
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

        root = data["root"]
        self.assertEqual(root["label"], "Root")
        self.assertEqual(root["balance"], "-6.00")
        self.assertIsNone(root["value"])
        self.assertEqual(root["last_transaction"], "2024-01-01 00:00:00")
        self.assertEqual(root["transactions"][0]["value"], "10")
        self.assertEqual(root["transactions"][0]["tx_hash"], "0x01")

        child = root["children"][0]
        self.assertEqual(child["address"], B)
        self.assertEqual(child["balance"], "error")
        self.assertEqual(child["value"], "10")
        self.assertEqual(child["last_transaction"], "N/A")

        self.assertEqual(data["node_count"], 2)
        self.assertEqual(len(data["transactions"]), 2)
        self.assertEqual(data["analytics"], {"count": 2, "total_volume": "14.00", "average_volume": "7.00"})

    def test_summary_md(self) -> None:
        result = _build()
        filtered, summary = AnalyticsEngine().run(result.transactions)

        with tempfile.TemporaryDirectory() as out:
            path = write_summary_md(result, out, labels={A: "Root"}, summary=summary, filtered=filtered)
            with open(path, encoding="utf-8") as f:
                text = f.read()

        self.assertIn("# Wallet Graph Summary", text)
        self.assertIn("**Root**", text)
        self.assertIn("## Failed Wallets", text)
        self.assertIn(B, text)
        self.assertIn("Total volume: **14.00**", text)

    def test_tooltip(self) -> None:
        result = _build(max_depth=1)
        tip = node_tooltip(result.root.children[0])

        self.assertEqual(tip["balance"], "max-depth")
        self.assertEqual(tip["label"], B[:10] + "...")
        self.assertEqual(result.root.children[0].value, Decimal("10"))


if __name__ == "__main__":
    unittest.main()
