"""
Review annotation schemas.
Annotations are persisted separately from the re-extractable canonical record.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from banking_pipeline.models.enums import ReviewStatus
from banking_pipeline.schemas.canonical import Transaction


class ReviewAnnotation(BaseModel):
    """Human review state for one transaction, keyed by its match key."""
    annotation_id: Optional[int] = None
    document_id: int
    transaction_date: str                   # Transaction.date_key
    description: str
    amount: Decimal
    status: ReviewStatus = ReviewStatus.NONE
    comment: str = ""
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def match_key(self) -> tuple[str, str, Decimal]:
        return (self.transaction_date, self.description, self.amount)


class AnnotatedTransaction(BaseModel):
    """A transaction row for the review table, with its review state merged in."""
    row_index: int                          # 1-based, date-sorted order
    transaction: Transaction
    status: ReviewStatus = ReviewStatus.NONE
    comment: str = ""
    annotation_id: Optional[int] = None

