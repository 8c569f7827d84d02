from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

from walletgraph.core.models import (
    AnalyticsSummary,
    FetchFailed,
    GraphBuildResult,
    Transaction,
    balance_label,
)
from walletgraph.io.preferences import display_name
from walletgraph.io.schemas import result_to_dict


def write_graph_json(
    result: GraphBuildResult,
    out_dir: str,
    filename: str = "graph.json",
    labels: Optional[Dict[str, str]] = None,
    filtered: Optional[List[Transaction]] = None,
    summary: Optional[AnalyticsSummary] = None,
) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(result_to_dict(result, labels, filtered, summary), f, indent=2)

    return str(out_path)


def write_summary_md(
    result: GraphBuildResult,
    out_dir: str,
    filename: str = "summary.md",
    labels: Optional[Dict[str, str]] = None,
    summary: Optional[AnalyticsSummary] = None,
    filtered: Optional[List[Transaction]] = None,
) -> str:
    """
    Minimal, investigator-friendly summary.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    root = result.root
    nodes = list(root.iter_nodes())
    failed = [n for n in nodes if isinstance(n.balance, FetchFailed)]

    def fmt(x: Decimal) -> str:
        return f"{x:.2f}"

    def name(addr: str) -> str:
        return display_name(addr, labels)

    lines = []
    lines.append("# Wallet Graph Summary\n")
    lines.append(f"- Root: **{name(root.address)}** ({root.address})\n")
    lines.append(f"- Root balance: **{balance_label(root.balance)}**\n")
    lines.append(f"- Max depth: **{result.max_depth}**\n")
    lines.append(f"- Nodes: **{len(nodes)}**\n")
    lines.append(f"- Transactions: **{len(result.transactions)}**\n")
    if failed:
        lines.append(f"- Failed fetches: **{len(failed)}**\n")
    lines.append("\n")

    lines.append("## Analytics\n\n")
    if summary is None:
        lines.append("_Analytics were not computed for this build._\n\n")
    else:
        lines.append(f"- Transactions: **{summary.count}**\n")
        lines.append(f"- Total volume: **{fmt(summary.total_volume)}**\n")
        lines.append(f"- Average transaction: **{fmt(summary.average_volume)}**\n\n")

    lines.append("## Wallet Tree\n\n")
    for n in nodes:
        indent = "  " * n.depth
        sent = f" | received {fmt(n.value)}" if n.value is not None else ""
        marker = " (seen above)" if n.revisit else ""
        lines.append(f"{indent}- **{name(n.address)}** | balance {balance_label(n.balance)}{sent}{marker}\n")
    lines.append("\n")

    if failed:
        lines.append("## Failed Wallets\n\n")
        for n in failed:
            lines.append(f"- {n.address} (depth {n.depth}): {n.balance.reason or 'unknown error'}\n")
        lines.append("\n")

    lines.append("## Limitations / Next steps\n\n")
    lines.append("- Each wallet contributes one page of its most recent transactions.\n")
    lines.append("- Unless branch dedup is on, a wallet reachable through several branches is fetched once per branch.\n")
    lines.append("- Balances cover the fetched page only, not the on-chain balance.\n\n")

    shown = filtered if filtered is not None else result.transactions
    top = sorted(shown, key=lambda tx: tx.value, reverse=True)[:15]
    lines.append("## Top Transactions (by value)\n\n")
    if not top:
        lines.append("_No transactions matched._\n")
    else:
        for tx in top:
            lines.append(
                f"- **{fmt(tx.value)}** | {name(tx.from_address)} -> {name(tx.to_address)} "
                f"| {tx.date_display}\n"
            )

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)
