"""
SQLAlchemy ORM models.
Column types stay portable (no PostgreSQL-only types) so the same models
run against SQLite in tests.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from banking_pipeline.models.database import Base
from banking_pipeline.models.enums import ReviewStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ────────────────────────────────────────────────────────────
# BANKING DOCUMENTS
# ────────────────────────────────────────────────────────────
class BankingDocument(Base):
    __tablename__ = "banking_documents"

    document_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[int] = mapped_column(Integer, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    institution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bank_abbreviation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    account_holder_label: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Canonical <transaction_analysis> record as returned by the extractor
    canonical_xml: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Set once on confirmation, never changed afterwards
    account_group_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    document_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    # Relationships
    annotations = relationship(
        "TransactionAnnotation", back_populates="document", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("case_id", "document_number", name="uq_banking_doc_case_number"),
        Index("idx_banking_docs_case", "case_id"),
        Index("idx_banking_docs_group", "case_id", "account_group_number"),
    )


# ────────────────────────────────────────────────────────────
# CASE NUMBERING
# One row per case; the lock target for numbering confirmations
# ────────────────────────────────────────────────────────────
class CaseNumbering(Base):
    __tablename__ = "case_numbering"

    case_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
        server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# TRANSACTION ANNOTATIONS
# Keyed by (date_key, description, amount); survives re-extraction
# ────────────────────────────────────────────────────────────
class TransactionAnnotation(Base):
    __tablename__ = "transaction_annotations"

    annotation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("banking_documents.document_id", ondelete="CASCADE"), nullable=False
    )
    transaction_date: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Exact decimal text from amount_key(); "5000.00" and "5000" share one key
    amount: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ReviewStatus.NONE.value,
        server_default=ReviewStatus.NONE.value
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
        server_default=func.now()
    )

    # Relationships
    document = relationship("BankingDocument", back_populates="annotations")

    __table_args__ = (
        UniqueConstraint(
            "document_id", "transaction_date", "description", "amount",
            name="uq_annotation_transaction_key",
        ),
        Index("idx_annotations_doc", "document_id"),
        Index("idx_annotations_status", "document_id", "status"),
    )
