from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys
import time
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from walletgraph.config import settings
from walletgraph.core.models import FilterBounds
from walletgraph.io.output_writer import write_graph_json, write_summary_md
from walletgraph.io.preferences import PreferencesStore
from walletgraph.ports.ledger_port import Direction
from walletgraph.services.aggregator import TransactionAggregator
from walletgraph.services.session import ExplorerSession

from walletgraph.adapters.ledger.blockscout_ledger_adapter import BlockscoutLedgerAdapter
from walletgraph.adapters.ledger.static_ledger_adapter import StaticLedgerAdapter


def _amount(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}")
    if value.is_nan():
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}")
    return value


def _date(raw: str) -> dt.datetime:
    try:
        return dt.datetime.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date: {raw!r}")


def _date_until(raw: str) -> dt.datetime:
    parsed = _date(raw)
    # a bare date covers the whole day
    if len(raw.strip()) == 10:
        parsed = parsed + dt.timedelta(days=1, microseconds=-1)
    return parsed


def _label(raw: str) -> Tuple[str, str]:
    address, sep, name = raw.partition("=")
    if not sep or not address.strip() or not name.strip():
        raise argparse.ArgumentTypeError(f"expected ADDRESS=NAME, got {raw!r}")
    return address.strip(), name.strip()


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="wallet-graph", description="Recursive wallet transaction graph explorer")
    p.add_argument("--address", default=settings.STARTING_WALLET, help="Root wallet address")
    p.add_argument("--depth", type=int, default=None, help="Max depth (defaults to the stored preference)")
    p.add_argument("--batch-size", type=int, default=settings.LEDGER_BATCH_SIZE, help="Transactions fetched per wallet")
    p.add_argument("--direction", choices=["both", "outbound"], default=settings.LEDGER_DIRECTION, help="Which transactions to request per wallet")
    p.add_argument("--scope-address", default=settings.LEDGER_SCOPE_ADDRESS, help="Query this address for every wallet (legacy token-contract mode)")
    p.add_argument("--value-decimals", type=int, default=settings.LEDGER_VALUE_DECIMALS, help="Divide raw values by 10**N")
    p.add_argument("--max-concurrency", type=int, default=settings.MAX_CONCURRENCY, help="Ledger calls in flight (0=unbounded)")
    p.add_argument("--dedupe-across-branches", action="store_true", default=settings.DEDUPE_ACROSS_BRANCHES, help="Fetch each address once per build")
    p.add_argument("--date-from", type=_date, help="Only count transactions at or after this ISO date/time (UTC)")
    p.add_argument("--date-to", type=_date_until, help="Only count transactions at or before this ISO date/time (UTC); a bare date covers the whole day")
    p.add_argument("--amount-min", type=_amount, help="Minimum transaction value")
    p.add_argument("--amount-max", type=_amount, help="Maximum transaction value")
    p.add_argument("--label", type=_label, action="append", default=[], metavar="ADDRESS=NAME", help="Name a wallet (stored)")
    p.add_argument("--prefs", default=settings.PREFERENCES_PATH, help="Preferences file")
    p.add_argument("--out", default="out", help="Output folder")
    p.add_argument("--use-static", action="store_true", help="Use static adapter (dev/testing)")
    p.add_argument("--watch", action="store_true", help=f"Rebuild every {settings.REFRESH_INTERVAL_SEC}s until interrupted")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    return p


def bounds_from_args(args: argparse.Namespace) -> FilterBounds:
    return FilterBounds(
        date_from=args.date_from,
        date_to=args.date_to,
        amount_min=args.amount_min,
        amount_max=args.amount_max,
    )


def _make_progress_reporter(address: str, max_depth: int):
    start_time = time.time()
    last_print = 0.0
    is_tty = sys.stdout.isatty()

    def _short_addr(addr: str) -> str:
        if not addr:
            return ""
        if len(addr) <= 12:
            return addr
        return f"{addr[:6]}...{addr[-4:]}"

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def _print_line(message: str) -> None:
        if is_tty:
            sys.stdout.write("\r" + message.ljust(88))
            sys.stdout.flush()

    def _clear_line() -> None:
        if is_tty:
            sys.stdout.write("\r" + (" " * 88) + "\r")
            sys.stdout.flush()

    def progress(event: str, data: dict) -> None:
        nonlocal last_print, start_time
        now = time.time()
        if event == "start":
            start_time = now
            print(f"[{_ts()}] Building graph for {address} • depth {max_depth}")
            return
        if event == "fetch":
            if now - last_print < 0.2:
                return
            addr = _short_addr(str(data.get("address", "")))
            _print_line(f"Depth {data.get('depth', 0)}/{max_depth} • fetching {addr}...")
            last_print = now
            return
        if event == "done":
            _clear_line()
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['nodes']} nodes • {data['transactions']} transactions • "
                f"{data['failed']} failed fetch(es)"
            )
            return
        if event == "error":
            _clear_line()
            print(f"[{_ts()}] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return progress


def _write_outputs(session: ExplorerSession, out_dir: str) -> List[str]:
    labels = session.prefs.labels
    graph_path = write_graph_json(
        session.result, out_dir, labels=labels, filtered=session.filtered, summary=session.summary,
    )
    summary_path = write_summary_md(
        session.result, out_dir, labels=labels, summary=session.summary, filtered=session.filtered,
    )
    return [graph_path, summary_path]


def _print_analytics(session: ExplorerSession) -> None:
    s = session.summary
    print(f"Total transactions: {s.count}")
    print(f"Total volume: {s.total_volume:.2f}")
    print(f"Average transaction: {s.average_volume:.2f}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.batch_size <= 0 or args.max_concurrency < 0 or args.value_decimals < 0:
        print("--batch-size must be > 0; --max-concurrency and --value-decimals must be >= 0", file=sys.stderr)
        return 2
    if args.depth is not None and args.depth < 0:
        print("--depth must be >= 0", file=sys.stderr)
        return 2

    # Ports
    if args.use_static:
        ledger = StaticLedgerAdapter()
        adapter_label = "StaticLedgerAdapter (dev/testing)"
    else:
        ledger = BlockscoutLedgerAdapter(
            batch_size=args.batch_size,
            direction=Direction.parse(args.direction),
            scope_address=args.scope_address,
        )
        adapter_label = f"BlockscoutLedgerAdapter ({settings.LEDGER_API_URL})"

    store = PreferencesStore(args.prefs)
    session = ExplorerSession(
        ledger,
        args.address,
        store=store,
        aggregator=TransactionAggregator(value_decimals=args.value_decimals),
        max_concurrency=args.max_concurrency,
        dedupe_across_branches=args.dedupe_across_branches,
    )
    for address, name in args.label:
        session.rename_wallet(address, name)
    if args.depth is not None and args.depth != session.prefs.max_depth:
        session.prefs.max_depth = args.depth
        store.save(session.prefs)

    progress = _make_progress_reporter(args.address, session.prefs.max_depth)
    session.on_progress = progress
    session.bounds = bounds_from_args(args)
    print(f"Adapter: {adapter_label}")

    def _on_update(s: ExplorerSession) -> None:
        if s.result is None:
            progress("error", {"message": s.last_error or "build failed"})
            return
        if s.last_error:
            progress("error", {"message": f"{s.last_error} (keeping previous graph)"})
        for path in _write_outputs(s, args.out):
            print(f"Wrote: {path}")
        _print_analytics(s)

    if args.watch:
        try:
            asyncio.run(session.run_periodic(on_update=_on_update))
        except KeyboardInterrupt:
            print("Stopped.")
        return 0 if session.result is not None else 1

    asyncio.run(session.refresh())
    _on_update(session)
    return 0 if session.result is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
