"""
Review reconciliation.

Annotations live apart from the canonical record so that re-extracting a
statement never loses reviewer work. They are re-attached by the
transaction's match key (date_key, description, amount).

Key collisions are NOT disambiguated: two identical lines on one statement
share a single annotation. Collisions are logged and counted so they can
be spotted; annotations whose key no longer matches anything are kept,
never deleted.
"""

from collections import Counter
from decimal import Decimal
from typing import Optional, Sequence

import structlog

from banking_pipeline.models.enums import ReviewStatus
from banking_pipeline.observability.metrics import reconciliation_key_collisions_total
from banking_pipeline.pipeline.csv_projector import format_decimal
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction
from banking_pipeline.schemas.review import AnnotatedTransaction, ReviewAnnotation

logger = structlog.get_logger(__name__)

MatchKey = tuple[str, str, Decimal]


def amount_key(amount: Decimal) -> str:
    """
    Exact, scale-free text for a match-key amount: Decimal("-1.005") ->
    "-1.005", Decimal("5000.00") -> "5000". Equal Decimals give equal keys.
    """
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def reconcile(
    statement: CanonicalStatement,
    annotations: Sequence[ReviewAnnotation],
) -> list[AnnotatedTransaction]:
    """Merge review state onto every transaction, in statement order."""
    lookup: dict[MatchKey, ReviewAnnotation] = {}
    for annotation in annotations:
        lookup[annotation.match_key] = annotation     # last write wins

    collisions = find_key_collisions(statement)
    if collisions:
        reconciliation_key_collisions_total.inc(len(collisions))
        logger.warning(
            "reconciliation_key_collisions",
            collisions=len(collisions),
            keys=[_key_repr(k) for k in collisions],
        )

    rows = []
    for index, t in enumerate(statement.transactions, start=1):
        annotation = lookup.get(t.match_key)
        if annotation is None:
            rows.append(AnnotatedTransaction(row_index=index, transaction=t))
        else:
            rows.append(AnnotatedTransaction(
                row_index=index,
                transaction=t,
                status=annotation.status,
                comment=annotation.comment,
                annotation_id=annotation.annotation_id,
            ))

    logger.debug(
        "annotations_reconciled",
        transactions=len(rows),
        annotations=len(annotations),
        flagged=sum(1 for r in rows if r.status == ReviewStatus.QUERY),
    )
    return rows


def apply_annotation_update(
    existing: Optional[ReviewAnnotation],
    document_id: int,
    transaction: Transaction,
    status: Optional[ReviewStatus] = None,
    comment: Optional[str] = None,
) -> ReviewAnnotation:
    """
    New annotation with defaults for whatever was not supplied, or a copy of
    the existing one with only the supplied fields changed.
    """
    if existing is None:
        return ReviewAnnotation(
            document_id=document_id,
            transaction_date=transaction.date_key,
            description=transaction.description,
            amount=transaction.amount,
            status=status if status is not None else ReviewStatus.NONE,
            comment=comment if comment is not None else "",
        )

    changes = {}
    if status is not None:
        changes["status"] = status
    if comment is not None:
        changes["comment"] = comment
    return existing.model_copy(update=changes)


def find_key_collisions(statement: CanonicalStatement) -> list[MatchKey]:
    """Match keys shared by more than one transaction, in first-seen order."""
    counts = Counter(t.match_key for t in statement.transactions)
    return [key for key, n in counts.items() if n > 1]


def orphaned_annotations(
    statement: CanonicalStatement,
    annotations: Sequence[ReviewAnnotation],
) -> list[ReviewAnnotation]:
    """Annotations that no longer match any transaction, e.g. after re-extraction."""
    keys = {t.match_key for t in statement.transactions}
    return [a for a in annotations if a.match_key not in keys]


def filter_annotated(
    rows: Sequence[AnnotatedTransaction],
    search: Optional[str] = None,
    status: Optional[ReviewStatus] = None,
) -> list[AnnotatedTransaction]:
    """Case-insensitive search over description, category and amount text."""
    needle = (search or "").strip().casefold()

    def matches(row: AnnotatedTransaction) -> bool:
        if status is not None and row.status != status:
            return False
        if not needle:
            return True
        t = row.transaction
        haystack = (t.description, t.category or "", format_decimal(t.amount))
        return any(needle in field.casefold() for field in haystack)

    return [row for row in rows if matches(row)]


def _key_repr(key: MatchKey) -> str:
    date_key, description, amount = key
    return f"{date_key}|{description}|{format_decimal(amount)}"
