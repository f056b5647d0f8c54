"""
Persisted numbering for banking documents.

Confirmations within one case are serialised on the case's
case_numbering row:
1. lock the row (SELECT ... FOR UPDATE; created on first use)
2. load the case's numbered documents and run the numbering engine
3. bump the row version with UPDATE ... WHERE version = :seen
4. write the number onto the document

A lost version check or a UNIQUE(case_id, document_number) violation
rolls the attempt back to its savepoint and the confirmation is retried.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from banking_pipeline.config import settings
from banking_pipeline.models.tables import BankingDocument, CaseNumbering
from banking_pipeline.observability.logging import case_log_context
from banking_pipeline.observability.metrics import numbering_conflicts_total
from banking_pipeline.pipeline.naming import (
    banking_display_name,
    fallback_bank_abbreviation,
    normalize_holder_label,
)
from banking_pipeline.pipeline.numbering import assign_manual_review_numbering, assign_numbering
from banking_pipeline.pipeline.xml_parser import parse_statement_xml
from banking_pipeline.schemas.canonical import CanonicalStatement
from banking_pipeline.schemas.numbering import ExistingDocumentNumber, NumberingResult

logger = structlog.get_logger(__name__)


class NumberingConflictError(Exception):
    """Concurrent confirmations in the same case kept winning the version check."""
    def __init__(self, message: str, error_code: str = "ERR_NUMBERING_CONFLICT"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class DocumentNotFoundError(Exception):
    def __init__(self, message: str, error_code: str = "ERR_DOCUMENT_NOT_FOUND"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


async def confirm_banking_document(
    session: AsyncSession,
    document_id: int,
    statement: Optional[CanonicalStatement] = None,
    bank_abbreviation: Optional[str] = None,
) -> BankingDocument:
    """
    Give a banking document its account group and document number.

    `statement` defaults to the document's stored canonical XML. A document
    with no extraction at all goes through manual-review numbering using
    whatever holder label a reviewer entered on it. Numbers are immutable:
    an already numbered document is returned unchanged.
    """
    document = await session.get(BankingDocument, document_id)
    if document is None:
        raise DocumentNotFoundError(f"Banking document {document_id} not found")

    with case_log_context(document.case_id, document_id):
        return await _confirm(session, document, statement, bank_abbreviation)


async def list_case_numbers(session: AsyncSession, case_id: int) -> list[ExistingDocumentNumber]:
    """Numbering metadata of every confirmed banking document in the case, oldest first."""
    result = await session.execute(
        select(BankingDocument)
        .where(
            BankingDocument.case_id == case_id,
            BankingDocument.document_number.is_not(None),
        )
        .order_by(BankingDocument.created_at, BankingDocument.document_id)
    )
    return [ExistingDocumentNumber.model_validate(doc) for doc in result.scalars().all()]


# ─── Internals ───────────────────────────────────────────────

async def _confirm(
    session: AsyncSession,
    document: BankingDocument,
    statement: Optional[CanonicalStatement],
    bank_abbreviation: Optional[str],
) -> BankingDocument:
    case_id = document.case_id
    if document.document_number:
        logger.info("document_already_numbered", document_number=document.document_number)
        return document

    if statement is None and document.canonical_xml:
        statement = parse_statement_xml(document.canonical_xml)

    max_attempts = max(1, settings.NUMBERING_MAX_RETRIES)
    for attempt in range(1, max_attempts + 1):
        try:
            async with session.begin_nested():
                await _number_document(session, document, case_id, statement, bank_abbreviation)
                await session.flush()
            return document
        except (NumberingConflictError, IntegrityError) as e:
            numbering_conflicts_total.inc()
            logger.warning(
                "numbering_conflict",
                attempt=attempt,
                max_attempts=max_attempts,
                error=type(e).__name__,
            )
            await session.refresh(document)

    raise NumberingConflictError(
        f"Could not number document {document.document_id} in case {case_id} "
        f"after {max_attempts} attempts"
    )


async def _number_document(
    session: AsyncSession,
    document: BankingDocument,
    case_id: int,
    statement: Optional[CanonicalStatement],
    bank_abbreviation: Optional[str],
) -> NumberingResult:
    lock = await _lock_case_numbering(session, case_id)
    seen_version = lock.version

    existing = await list_case_numbers(session, case_id)

    if statement is not None and statement.account_holders:
        holder_label = normalize_holder_label(" & ".join(statement.account_holders))
        result = assign_numbering(existing, holder_label, statement.institution)
    else:
        # Reviewer-entered labels get the same normalization as extracted holders
        holder_label = normalize_holder_label(document.account_holder_label)
        result = assign_manual_review_numbering(existing, holder_label)

    if not await _bump_version(session, case_id, seen_version):
        raise NumberingConflictError(
            f"case_numbering version for case {case_id} moved past {seen_version}"
        )

    institution = statement.institution if statement is not None else document.institution
    account_number = statement.account_number if statement is not None else document.account_number
    abbreviation = (
        bank_abbreviation
        or document.bank_abbreviation
        or fallback_bank_abbreviation(institution)
    )

    document.institution = institution or document.institution
    document.account_number = account_number or document.account_number
    document.account_holder_label = holder_label or None
    document.bank_abbreviation = abbreviation
    document.account_group_number = result.account_group_number
    document.document_number = result.document_number
    document.display_name = banking_display_name(result.document_number, abbreviation, account_number)
    document.confirmed_at = datetime.now(timezone.utc)

    logger.info(
        "banking_document_confirmed",
        document_number=result.document_number,
        account_group_number=result.account_group_number,
        display_name=document.display_name,
        placeholder=result.is_placeholder,
    )
    return result


async def _lock_case_numbering(session: AsyncSession, case_id: int) -> CaseNumbering:
    result = await session.execute(
        select(CaseNumbering)
        .where(CaseNumbering.case_id == case_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        # First confirmation in the case; a concurrent insert surfaces as IntegrityError
        row = CaseNumbering(case_id=case_id, version=0)
        session.add(row)
        await session.flush()
    return row


async def _bump_version(session: AsyncSession, case_id: int, seen_version: int) -> bool:
    result = await session.execute(
        update(CaseNumbering)
        .where(CaseNumbering.case_id == case_id, CaseNumbering.version == seen_version)
        .values(version=seen_version + 1, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
