"""
Flow graph output schemas.
Consumed by the Sankey-style visualisation and its summary panels.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class FlowNode(BaseModel):
    name: str
    category: str                           # inflow, account, outflow


class FlowLink(BaseModel):
    """Directed edge; source/target index into FlowGraph.nodes."""
    source: int
    target: int
    value: Decimal


class FlowShare(BaseModel):
    label: str
    amount: Decimal
    percentage: Decimal                     # 0-100, one decimal place


class FlowStats(BaseModel):
    total_credits: Decimal = Decimal("0")
    total_debits: Decimal = Decimal("0")
    net_position: Decimal = Decimal("0")
    top_inflows: list[FlowShare] = []
    top_outflows: list[FlowShare] = []
    largest_inflow: Optional[FlowShare] = None
    largest_outflow: Optional[FlowShare] = None


class FlowGraph(BaseModel):
    """
    Three-tier money flow graph.

    Invariants:
    - nodes are ordered inflow sources, then the account hub, then outflow
      targets; consumers index nodes positionally
    - every link touches the account hub
    - stats.net_position == stats.total_credits - stats.total_debits
    - no flows at all means no nodes and no links
    """
    period: str = "all"
    source: str = "transactions"            # explicit, transactions
    transaction_count: int = 0
    nodes: list[FlowNode] = []
    links: list[FlowLink] = []
    stats: FlowStats = Field(default_factory=FlowStats)
