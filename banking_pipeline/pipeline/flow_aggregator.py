"""
Money flow aggregation for a canonical statement.

Decision rule:
1. period "all" and the extractor supplied explicit inflow/outflow totals
   -> use those totals as they are (pre-aggregated by the extractor)
2. otherwise -> aggregate transactions in the period by counterparty:
   credits by transfer_target | category | "Other Income",
   debits by transfer_target | category | "Other Expenses"

For a month period the explicit totals are never consulted, even when
present, so monthly graphs need not add up to the "all" graph.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import structlog

from banking_pipeline.config import settings
from banking_pipeline.models.enums import FlowNodeCategory, FlowSource
from banking_pipeline.observability.metrics import flow_graphs_computed_total
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction
from banking_pipeline.schemas.flows import FlowGraph, FlowLink, FlowNode, FlowShare, FlowStats

logger = structlog.get_logger(__name__)

ALL_PERIODS = "all"
DEFAULT_INFLOW_LABEL = "Other Income"
DEFAULT_OUTFLOW_LABEL = "Other Expenses"

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.1")


def compute_flows(
    statement: CanonicalStatement,
    period: str = ALL_PERIODS,
    account_label: Optional[str] = None,
) -> FlowGraph:
    """Build the inflow -> account -> outflow graph for one period."""
    period = (period or ALL_PERIODS).strip()

    if period == ALL_PERIODS and statement.has_explicit_flows:
        source = FlowSource.EXPLICIT
        inflows = dict(statement.explicit_inflows)
        outflows = dict(statement.explicit_outflows)
        transaction_count = len(statement.transactions)
    else:
        source = FlowSource.TRANSACTIONS
        selected = transactions_in_period(statement, period)
        inflows, outflows = aggregate_transactions(selected)
        transaction_count = len(selected)

    nodes, links = build_graph(inflows, outflows, account_label or statement.account_display_name)
    stats = summarize_flows(inflows, outflows)

    flow_graphs_computed_total.labels(source=source.value).inc()
    logger.debug(
        "flows_computed",
        period=period,
        source=source.value,
        nodes=len(nodes),
        links=len(links),
        net_position=str(stats.net_position),
    )

    return FlowGraph(
        period=period,
        source=source.value,
        transaction_count=transaction_count,
        nodes=nodes,
        links=links,
        stats=stats,
    )


def available_periods(statement: CanonicalStatement) -> list[str]:
    """"all" first, then each YYYY-MM seen on a dated transaction, ascending."""
    months = {
        t.transaction_date.isoformat()[:7]
        for t in statement.transactions
        if t.transaction_date is not None
    }
    return [ALL_PERIODS, *sorted(months)]


def transactions_in_period(statement: CanonicalStatement, period: str) -> list[Transaction]:
    """Transactions whose date starts with the period prefix; undated ones only count for "all"."""
    if period == ALL_PERIODS:
        return list(statement.transactions)
    return [
        t for t in statement.transactions
        if t.transaction_date is not None and t.transaction_date.isoformat().startswith(period)
    ]


def aggregate_transactions(
    transactions: list[Transaction],
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    """Sum credits and debits per counterparty label; zero amounts are skipped."""
    inflows: dict[str, Decimal] = {}
    outflows: dict[str, Decimal] = {}

    for t in transactions:
        if t.amount > 0:
            label = flow_label(t, DEFAULT_INFLOW_LABEL)
            inflows[label] = inflows.get(label, ZERO) + t.amount
        elif t.amount < 0:
            label = flow_label(t, DEFAULT_OUTFLOW_LABEL)
            outflows[label] = outflows.get(label, ZERO) + abs(t.amount)

    return inflows, outflows


def flow_label(t: Transaction, default: str) -> str:
    return (t.transfer_target or "").strip() or (t.category or "").strip() or default


def build_graph(
    inflows: dict[str, Decimal],
    outflows: dict[str, Decimal],
    account_label: str,
) -> tuple[list[FlowNode], list[FlowLink]]:
    """
    Nodes: inflow sources, then the account hub, then outflow targets.
    Links reference nodes by index. A label present on both sides gets
    two nodes.
    """
    if not inflows and not outflows:
        return [], []

    nodes = [FlowNode(name=label, category=FlowNodeCategory.INFLOW.value) for label in inflows]
    hub = len(nodes)
    nodes.append(FlowNode(name=account_label, category=FlowNodeCategory.ACCOUNT.value))
    nodes.extend(FlowNode(name=label, category=FlowNodeCategory.OUTFLOW.value) for label in outflows)

    links = [
        FlowLink(source=index, target=hub, value=amount)
        for index, amount in enumerate(inflows.values())
    ]
    links.extend(
        FlowLink(source=hub, target=hub + 1 + offset, value=amount)
        for offset, amount in enumerate(outflows.values())
    )
    return nodes, links


def summarize_flows(inflows: dict[str, Decimal], outflows: dict[str, Decimal]) -> FlowStats:
    total_credits = sum(inflows.values(), ZERO)
    total_debits = sum(outflows.values(), ZERO)

    top_inflows = top_shares(inflows, total_credits)
    top_outflows = top_shares(outflows, total_debits)

    return FlowStats(
        total_credits=total_credits,
        total_debits=total_debits,
        net_position=total_credits - total_debits,
        top_inflows=top_inflows,
        top_outflows=top_outflows,
        largest_inflow=top_inflows[0] if top_inflows else None,
        largest_outflow=top_outflows[0] if top_outflows else None,
    )


def top_shares(amounts: dict[str, Decimal], total: Decimal, limit: Optional[int] = None) -> list[FlowShare]:
    """Largest entries first; equal amounts keep insertion order."""
    limit = settings.FLOW_TOP_N if limit is None else limit
    ranked = sorted(amounts.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [
        FlowShare(label=label, amount=amount, percentage=percentage_of(amount, total))
        for label, amount in ranked
    ]


def percentage_of(amount: Decimal, total: Decimal) -> Decimal:
    """amount as a percentage of total, one decimal place; 0 when total is 0."""
    if total == 0:
        return ZERO
    return (amount / total * HUNDRED).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)
