"""
Review annotation persistence.

One row per (document, transaction match key). Writes are upserts:
select the row FOR UPDATE, change only the supplied fields, or insert a
new row. Two first writes racing on the same key meet the unique
constraint; the loser retries as an update, so the last write wins.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from banking_pipeline.config import settings
from banking_pipeline.models.enums import ReviewStatus
from banking_pipeline.models.tables import TransactionAnnotation
from banking_pipeline.observability.metrics import annotations_upserted_total
from banking_pipeline.pipeline.reconciler import amount_key, apply_annotation_update
from banking_pipeline.schemas.canonical import Transaction
from banking_pipeline.schemas.review import ReviewAnnotation

logger = structlog.get_logger(__name__)


class AnnotationValidationError(Exception):
    def __init__(self, message: str, error_code: str = "ERR_ANNOTATION_INVALID"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


async def get_annotations(session: AsyncSession, document_id: int) -> list[ReviewAnnotation]:
    result = await session.execute(
        select(TransactionAnnotation)
        .where(TransactionAnnotation.document_id == document_id)
        .order_by(TransactionAnnotation.annotation_id)
    )
    return [ReviewAnnotation.model_validate(row) for row in result.scalars().all()]


async def upsert_annotation(
    session: AsyncSession,
    document_id: int,
    transaction: Transaction,
    status: Optional[ReviewStatus] = None,
    comment: Optional[str] = None,
) -> ReviewAnnotation:
    """
    Set the review status and/or comment for one transaction.
    Fields left as None keep their stored value (or default on insert).
    """
    if comment is not None and len(comment) > settings.ANNOTATION_COMMENT_MAX_LENGTH:
        raise AnnotationValidationError(
            f"Comment is {len(comment)} characters; "
            f"the limit is {settings.ANNOTATION_COMMENT_MAX_LENGTH}"
        )

    try:
        async with session.begin_nested():
            row, operation = await _write_annotation(session, document_id, transaction, status, comment)
            await session.flush()
    except IntegrityError:
        # Another writer inserted the same key first; it exists now, so update it
        logger.info("annotation_insert_race", document_id=document_id, date_key=transaction.date_key)
        async with session.begin_nested():
            row, operation = await _write_annotation(session, document_id, transaction, status, comment)
            await session.flush()

    await session.refresh(row)
    annotations_upserted_total.labels(operation=operation).inc()
    logger.info(
        "annotation_upserted",
        document_id=document_id,
        annotation_id=row.annotation_id,
        operation=operation,
        status=row.status,
        comment_length=len(row.comment),
    )
    return ReviewAnnotation.model_validate(row)


async def _write_annotation(
    session: AsyncSession,
    document_id: int,
    transaction: Transaction,
    status: Optional[ReviewStatus],
    comment: Optional[str],
) -> tuple[TransactionAnnotation, str]:
    result = await session.execute(
        select(TransactionAnnotation)
        .where(
            TransactionAnnotation.document_id == document_id,
            TransactionAnnotation.transaction_date == transaction.date_key,
            TransactionAnnotation.description == transaction.description,
            TransactionAnnotation.amount == amount_key(transaction.amount),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()

    existing = ReviewAnnotation.model_validate(row) if row is not None else None
    updated = apply_annotation_update(existing, document_id, transaction, status=status, comment=comment)

    if row is None:
        row = TransactionAnnotation(
            document_id=document_id,
            transaction_date=updated.transaction_date,
            description=updated.description,
            amount=amount_key(updated.amount),
            status=updated.status.value,
            comment=updated.comment,
        )
        session.add(row)
        return row, "insert"

    row.status = updated.status.value
    row.comment = updated.comment
    return row, "update"
