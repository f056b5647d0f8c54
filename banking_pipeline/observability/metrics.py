"""
Prometheus metrics for the banking statement pipeline.
"""

from prometheus_client import Counter


# ── Canonical Ingest ─────────────────────────────────────────
statements_parsed_total = Counter(
    "statements_parsed_total",
    "Canonical statement XML documents parsed",
    ["outcome"],
)

transactions_parsed_total = Counter(
    "transactions_parsed_total",
    "Transactions read from canonical statement XML",
)

# ── Projections ──────────────────────────────────────────────
csv_projections_total = Counter(
    "csv_projections_total",
    "CSV projections derived from canonical statements",
)

flow_graphs_computed_total = Counter(
    "flow_graphs_computed_total",
    "Flow graphs computed",
    ["source"],
)

# ── Numbering ────────────────────────────────────────────────
document_numbers_assigned_total = Counter(
    "document_numbers_assigned_total",
    "Banking document numbers assigned at confirmation",
    ["kind"],
)

numbering_conflicts_total = Counter(
    "numbering_conflicts_total",
    "Optimistic version conflicts while assigning document numbers",
)

# ── Review ───────────────────────────────────────────────────
annotations_upserted_total = Counter(
    "annotations_upserted_total",
    "Review annotations written",
    ["operation"],
)

reconciliation_key_collisions_total = Counter(
    "reconciliation_key_collisions_total",
    "Transactions sharing a match key with an earlier transaction in the same statement",
)
