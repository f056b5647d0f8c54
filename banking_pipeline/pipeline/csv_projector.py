"""
CSV projection of a canonical statement.

Derived on demand from the canonical record; never edited by hand. The row
count always equals the number of transactions in the record, so a mismatch
against a stored CSV means the stored file is stale.
"""

import csv
import io
from decimal import Decimal
from typing import Optional, Sequence

import structlog
from pydantic import BaseModel

from banking_pipeline.models.enums import ReviewStatus
from banking_pipeline.observability.metrics import csv_projections_total
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction
from banking_pipeline.schemas.review import AnnotatedTransaction

logger = structlog.get_logger(__name__)

CSV_HEADER = ["Date", "Description", "Amount", "Balance", "Category", "Transfer_Type", "Transfer_Target"]

ANNOTATED_CSV_HEADER = ["Row", "Date", "Description", "Amount", "Balance", "Category", "Status", "Comment"]


class CsvProjection(BaseModel):
    header: list[str]
    rows: list[list[str]]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_text(self) -> str:
        return render_csv(self.header, self.rows)


def project_csv(statement: CanonicalStatement) -> CsvProjection:
    """One row per transaction, in statement (date-sorted) order."""
    rows = [_transaction_row(t) for t in statement.transactions]
    csv_projections_total.inc()
    logger.debug("csv_projected", row_count=len(rows))
    return CsvProjection(header=list(CSV_HEADER), rows=rows)


def export_annotated_csv(
    annotated: Sequence[AnnotatedTransaction],
    status: Optional[ReviewStatus] = ReviewStatus.QUERY,
) -> str:
    """
    CSV of review rows, by default only those flagged for query.
    Pass status=None to export every row.
    """
    rows = [
        [
            str(row.row_index),
            row.transaction.date_key,
            row.transaction.description,
            format_decimal(row.transaction.amount),
            format_decimal(row.transaction.balance),
            row.transaction.category or "",
            row.status.value,
            row.comment,
        ]
        for row in annotated
        if status is None or row.status == status
    ]
    logger.info("annotated_csv_exported", row_count=len(rows), status=status.value if status else "all")
    return render_csv(ANNOTATED_CSV_HEADER, rows)


def render_csv(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Standard CSV: fields with comma, quote or newline are quoted, quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def format_decimal(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return format(value, "f")


def _transaction_row(t: Transaction) -> list[str]:
    return [
        t.date_key,
        t.description,
        format_decimal(t.amount),
        format_decimal(t.balance),
        t.category or "",
        t.transfer_type or "",
        t.transfer_target or "",
    ]
