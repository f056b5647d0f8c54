"""
Canonical statement schemas.
In-memory shape of one AI-extracted bank statement.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    """A single statement line as extracted."""
    transaction_date: Optional[date] = None
    date_text: str = ""                     # raw text as extracted
    description: str = ""
    amount: Decimal = Decimal("0")          # negative = debit, positive = credit
    balance: Optional[Decimal] = None
    category: Optional[str] = None
    transfer_type: Optional[str] = None
    transfer_target: Optional[str] = None

    @property
    def date_key(self) -> str:
        """ISO date if parsed, otherwise the raw text."""
        if self.transaction_date is not None:
            return self.transaction_date.isoformat()
        return self.date_text.strip()

    @property
    def match_key(self) -> tuple[str, str, Decimal]:
        """
        Composite identity used to re-attach review annotations.
        The extractor supplies no stable identifier, so two identical
        lines on one statement share a key.
        """
        return (self.date_key, self.description, self.amount)


class CanonicalStatement(BaseModel):
    """
    The structured extraction output for one bank statement.

    Invariants:
    - transactions are sorted ascending by date (stable; undated last)
    - explicit_inflows/explicit_outflows keep extractor order and only
      hold positive amounts
    """
    institution: str = ""
    account_holders: list[str] = Field(default_factory=list)
    account_type: str = ""
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    account_number: Optional[str] = None
    bsb: Optional[str] = None
    currency: str = ""
    total_credits: Decimal = Decimal("0")
    total_debits: Decimal = Decimal("0")
    transactions: list[Transaction] = Field(default_factory=list)
    explicit_inflows: dict[str, Decimal] = Field(default_factory=dict)
    explicit_outflows: dict[str, Decimal] = Field(default_factory=dict)
    summary: str = ""

    @property
    def account_holder_label(self) -> str:
        return " & ".join(h for h in self.account_holders if h)

    @property
    def account_display_name(self) -> str:
        if self.institution and self.account_number:
            return f"{self.institution} ({self.account_number})"
        return self.institution or self.account_number or "Account"

    @property
    def has_explicit_flows(self) -> bool:
        return bool(self.explicit_inflows) or bool(self.explicit_outflows)
