"""
Banking document numbering.

Every confirmed banking document gets an account group number and a
document number "{group}.{sequence}":
- documents from the same account holder share a group
- groups are "1", "2", ... allocated in confirmation order per case
- sequences start at 1 and increase within a group

The functions here are pure. Serialising confirmations within a case is
the caller's job (see storage/numbering_store.py).
"""

import re
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from banking_pipeline.models.enums import NumberingKind
from banking_pipeline.observability.metrics import document_numbers_assigned_total
from banking_pipeline.schemas.numbering import ExistingDocumentNumber, NumberingResult

logger = structlog.get_logger(__name__)

GROUP_NUMBER_PATTERN = re.compile(r"^\d+$")
SEQUENCE_SUFFIX_PATTERN = re.compile(r"\.(\d+)$")


def assign_numbering(
    existing_documents: Sequence[ExistingDocumentNumber],
    new_account_holder_label: str,
    new_institution: str = "",
) -> NumberingResult:
    """
    Resolve the account group for a new document and give it the next
    sequence in that group. Total over any input; malformed numbers are
    tolerated.
    """
    holder_key = holder_match_key(new_account_holder_label)

    group = None
    if holder_key:
        group = _find_holder_group(existing_documents, holder_key)

    is_new_group = group is None
    if is_new_group:
        group = str(max_group_number(existing_documents) + 1)
        sequence = 1
    else:
        group_docs = [d for d in existing_documents if (d.account_group_number or "").strip() == group]
        sequence = max_sequence(group_docs) + 1

    result = NumberingResult(
        account_group_number=group,
        document_number=f"{group}.{sequence}",
        sequence=sequence,
        is_new_group=is_new_group,
    )

    kind = NumberingKind.NEW_GROUP if is_new_group else NumberingKind.EXISTING_GROUP
    document_numbers_assigned_total.labels(kind=kind.value).inc()
    logger.info(
        "document_number_assigned",
        account_group_number=result.account_group_number,
        document_number=result.document_number,
        new_group=is_new_group,
        institution=new_institution,
    )
    return result


def assign_manual_review_numbering(
    existing_documents: Sequence[ExistingDocumentNumber],
    account_holder_label: Optional[str] = None,
) -> NumberingResult:
    """
    Numbering for a document whose AI extraction failed.

    With a reviewer-entered holder label this is ordinary numbering.
    Without one there is nothing to group on, so the document opens a fresh
    group with the placeholder "{group}.1".
    """
    if account_holder_label and holder_match_key(account_holder_label):
        return assign_numbering(existing_documents, account_holder_label)

    group = str(max_group_number(existing_documents) + 1)
    document_numbers_assigned_total.labels(kind=NumberingKind.PLACEHOLDER.value).inc()
    logger.warning(
        "placeholder_document_number_assigned",
        account_group_number=group,
        document_number=f"{group}.1",
    )
    return NumberingResult(
        account_group_number=group,
        document_number=f"{group}.1",
        sequence=1,
        is_new_group=True,
        is_placeholder=True,
    )


def holder_match_key(label: Optional[str]) -> str:
    """Case-insensitive, whitespace-collapsed holder label."""
    return " ".join((label or "").split()).casefold()


def max_group_number(existing_documents: Sequence[ExistingDocumentNumber]) -> int:
    """Highest numeric group in the case, 0 when there is none."""
    numbers = [
        int(d.account_group_number.strip())
        for d in existing_documents
        if d.account_group_number and GROUP_NUMBER_PATTERN.match(d.account_group_number.strip())
    ]
    return max(numbers, default=0)


def parse_sequence(document_number: Optional[str]) -> Optional[int]:
    """Sequence suffix of "{group}.{sequence}", or None when malformed."""
    if not document_number:
        return None
    m = SEQUENCE_SUFFIX_PATTERN.search(document_number.strip())
    return int(m.group(1)) if m else None


def max_sequence(group_documents: Sequence[ExistingDocumentNumber]) -> int:
    """
    Highest sequence in a group.

    Documents without a parseable suffix count as their 1-based position in
    creation order, so a malformed number still occupies a slot.
    """
    sequences = [parse_sequence(d.document_number) for d in group_documents]
    highest = max((s for s in sequences if s is not None), default=0)
    if all(s is not None for s in sequences):
        return highest

    ordered = sorted(group_documents, key=_creation_order_key)
    for position, doc in enumerate(ordered, start=1):
        if parse_sequence(doc.document_number) is None:
            highest = max(highest, position)
    return highest


def _creation_order_key(doc: ExistingDocumentNumber) -> tuple[bool, datetime]:
    # Stored rows may come back naive (SQLite) or aware; naive values are UTC
    created = doc.created_at
    if created is None:
        return (True, datetime.min.replace(tzinfo=timezone.utc))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (False, created)


def _find_holder_group(
    existing_documents: Sequence[ExistingDocumentNumber],
    holder_key: str,
) -> Optional[str]:
    for doc in existing_documents:
        group = (doc.account_group_number or "").strip()
        if group and holder_match_key(doc.account_holder_label) == holder_key:
            return group
    return None
