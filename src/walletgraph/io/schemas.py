from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from walletgraph.core.models import (
    DISPLAY_DATE_FORMAT,
    AnalyticsSummary,
    GraphBuildResult,
    Transaction,
    WalletNode,
    balance_label,
)
from walletgraph.io.preferences import display_name


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "from": tx.from_address,
        "to": tx.to_address,
        "value": _dec_to_str(tx.value),
        "timestamp": tx.timestamp,
        "date": tx.date_display,
        "tx_hash": tx.tx_hash,
    }


def transactions_to_list(transactions: Iterable[Transaction]) -> List[Dict[str, Any]]:
    return [transaction_to_dict(tx) for tx in transactions]


def node_tooltip(node: WalletNode, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    last = node.last_activity
    return {
        "address": node.address,
        "label": display_name(node.address, labels),
        "balance": balance_label(node.balance),
        "last_transaction": last.strftime(DISPLAY_DATE_FORMAT) if last else "N/A",
    }


def node_to_dict(node: WalletNode, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    out = node_tooltip(node, labels)
    out.update({
        "depth": node.depth,
        "value": _dec_to_str(node.value) if node.value is not None else None,
        "revisit": node.revisit,
        "transactions": transactions_to_list(node.transactions),
        "children": [node_to_dict(c, labels) for c in node.children],
    })
    return out


def summary_to_dict(summary: AnalyticsSummary) -> Dict[str, Any]:
    return {
        "count": summary.count,
        "total_volume": _dec_to_str(summary.total_volume),
        "average_volume": _dec_to_str(summary.average_volume),
    }


def result_to_dict(
    result: GraphBuildResult,
    labels: Optional[Dict[str, str]] = None,
    filtered: Optional[List[Transaction]] = None,
    summary: Optional[AnalyticsSummary] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "max_depth": result.max_depth,
        "built_at": result.built_at,
        "node_count": result.node_count,
        "root": node_to_dict(result.root, labels),
        "transactions": transactions_to_list(result.transactions),
    }
    if filtered is not None:
        out["filtered_transactions"] = transactions_to_list(filtered)
    if summary is not None:
        out["analytics"] = summary_to_dict(summary)
    return out
