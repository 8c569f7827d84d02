import unittest
from decimal import Decimal

from walletgraph.core.dto import CounterpartyStub
from walletgraph.services.aggregator import TransactionAggregator, parse_decimal, parse_timestamp

A = "0xAAAA"
B = "0xbbbb"
C = "0xcccc"


def rec(frm, to, value, timestamp=1700000000, **extra):
    r = {"from": frm, "to": to, "value": value, "timestamp": timestamp}
    r.update(extra)
    return r


class TransactionAggregatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.agg = TransactionAggregator()

    def test_balance_is_inbound_minus_outbound(self) -> None:
        batch = self.agg.aggregate("0xaaaa", [rec(A, B, "10"), rec(C, A, "4")])

        self.assertEqual(str(batch.balance), "-6.00")
        self.assertEqual(batch.children, [CounterpartyStub(address=B, value=Decimal("10"))])
        self.assertEqual(len(batch.transactions), 2)

    def test_outgoing_counterparties_summed_in_first_seen_order(self) -> None:
        batch = self.agg.aggregate(A, [
            rec(A, C, "1"),
            rec(A, B, "2"),
            rec(A, "0xCCCC", "3.5"),
        ])

        self.assertEqual(
            batch.children,
            [CounterpartyStub(C, Decimal("4.5")), CounterpartyStub(B, Decimal("2"))],
        )
        self.assertEqual(str(batch.balance), "-6.50")

    def test_non_numeric_value_counts_as_zero(self) -> None:
        batch = self.agg.aggregate(A, [rec(C, A, "not-a-number"), rec(C, A, None), rec(C, A, "NaN")])

        self.assertEqual(len(batch.transactions), 3)
        self.assertTrue(all(tx.value == 0 for tx in batch.transactions))
        self.assertEqual(str(batch.balance), "0.00")

    def test_malformed_records_are_skipped(self) -> None:
        batch = self.agg.aggregate(A, [
            None,
            "garbage",
            42,
            {"from": A},
            {"from": "", "to": B, "value": "1"},
            {"from": {"name": "no hash"}, "to": B, "value": "1"},
            rec(C, A, "5"),
        ])

        self.assertEqual(len(batch.transactions), 1)
        self.assertEqual(str(batch.balance), "5.00")

    def test_unrelated_record_is_logged_but_not_counted(self) -> None:
        batch = self.agg.aggregate(A, [rec(B, C, "9")])

        self.assertEqual(len(batch.transactions), 1)
        self.assertEqual(batch.balance, Decimal("0"))
        self.assertEqual(batch.children, [])

    def test_addresses_are_normalized(self) -> None:
        batch = self.agg.aggregate(A, [rec(A, "0xBBBB", "1")])

        tx = batch.transactions[0]
        self.assertEqual(tx.from_address, "0xaaaa")
        self.assertEqual(tx.to_address, "0xbbbb")
        self.assertEqual(batch.children[0].address, "0xbbbb")

    def test_nested_address_objects_and_iso_timestamps(self) -> None:
        raw = {
            "from": {"hash": A},
            "to": {"hash": B},
            "value": "7",
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "hash": "0xdead",
        }
        batch = self.agg.aggregate(A, [raw])

        tx = batch.transactions[0]
        self.assertEqual(tx.to_address, B)
        self.assertEqual(tx.timestamp, 1704067200)
        self.assertEqual(tx.tx_hash, "0xdead")
        self.assertEqual(tx.date_display, "2024-01-01 00:00:00")

    def test_value_decimals_scales_raw_units(self) -> None:
        agg = TransactionAggregator(value_decimals=18)
        batch = agg.aggregate(A, [rec(C, A, "1500000000000000000")])

        self.assertEqual(batch.transactions[0].value, Decimal("1.5"))
        self.assertEqual(str(batch.balance), "1.50")

    def test_balance_rounds_half_up(self) -> None:
        batch = self.agg.aggregate(A, [rec(C, A, "1.005")])
        self.assertEqual(str(batch.balance), "1.01")

    def test_transactions_keep_input_order(self) -> None:
        records = [rec(C, A, "1", 3), rec(A, B, "2", 1), rec(B, C, "3", 2)]
        batch = self.agg.aggregate(A, records)

        self.assertEqual([tx.timestamp for tx in batch.transactions], [3, 1, 2])

    def test_aggregate_is_idempotent(self) -> None:
        records = [rec(A, B, "10"), rec(C, A, "4"), rec(A, C, "1.25"), None]

        first = self.agg.aggregate(A, records)
        second = self.agg.aggregate(A, records)

        self.assertEqual(first, second)

    def test_empty_batch(self) -> None:
        batch = self.agg.aggregate(A, [])
        self.assertEqual(str(batch.balance), "0.00")
        self.assertEqual(batch.transactions, [])
        self.assertEqual(batch.children, [])

    def test_negative_value_decimals_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TransactionAggregator(value_decimals=-1)

    def test_raw_wei_amounts_keep_two_decimal_places(self) -> None:
        batch = self.agg.aggregate(A, [rec(C, A, "1000000000000000000000000000"), rec(A, B, "1")])

        self.assertEqual(str(batch.balance), "999999999999999999999999999.00")
        self.assertEqual(batch.balance.as_tuple().exponent, -2)

    def test_value_decimals_keeps_every_significant_digit(self) -> None:
        agg = TransactionAggregator(value_decimals=18)
        batch = agg.aggregate(A, [rec(C, A, "123456789012345678901234567890")])

        self.assertEqual(batch.transactions[0].value, Decimal("123456789012.34567890123456789"))
        self.assertEqual(str(batch.balance), "123456789012.35")

    def test_out_of_range_values_count_as_zero(self) -> None:
        batch = self.agg.aggregate(A, [
            rec(C, A, "1e999999999"),
            rec(C, A, "1" + "0" * 80),
            rec(C, A, "1e-999999999"),
            rec(C, A, "5"),
        ])

        self.assertEqual(len(batch.transactions), 4)
        self.assertEqual(str(batch.balance), "5.00")


class ParsingTests(unittest.TestCase):
    def test_parse_decimal(self) -> None:
        self.assertEqual(parse_decimal("12.5"), Decimal("12.5"))
        self.assertEqual(parse_decimal(3), Decimal("3"))
        self.assertEqual(parse_decimal("Infinity"), Decimal("0"))
        self.assertEqual(parse_decimal(True), Decimal("0"))
        self.assertEqual(parse_decimal(""), Decimal("0"))
        self.assertEqual(parse_decimal("1e999999999"), Decimal("0"))
        self.assertEqual(parse_decimal("9" * 78), Decimal("9" * 78))
        self.assertEqual(parse_decimal("1" + "0" * 78), Decimal("0"))

    def test_parse_timestamp(self) -> None:
        self.assertEqual(parse_timestamp(1700000000), 1700000000)
        self.assertEqual(parse_timestamp("1700000000"), 1700000000)
        self.assertEqual(parse_timestamp(1700000000.0), 1700000000)
        self.assertEqual(parse_timestamp("2024-01-01T00:00:00+00:00"), 1704067200)
        self.assertEqual(parse_timestamp("yesterday"), 0)
        self.assertEqual(parse_timestamp(None), 0)
        self.assertEqual(parse_timestamp(-5), 0)
        self.assertEqual(parse_timestamp("1e30"), 0)


if __name__ == "__main__":
    unittest.main()
