"""
Daily activity and statement statistics schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DailyActivity(BaseModel):
    day: date
    credits: Decimal = Decimal("0")
    debits: Decimal = Decimal("0")          # absolute value
    closing_balance: Optional[Decimal] = None
    transaction_count: int = 0

    @property
    def net_change(self) -> Decimal:
        return self.credits - self.debits


class ActivityEvent(BaseModel):
    day: date
    label: str
    balance: Optional[Decimal] = None


class ActivitySummary(BaseModel):
    starting_balance: Optional[Decimal] = None
    ending_balance: Optional[Decimal] = None
    total_credits: Decimal = Decimal("0")
    total_debits: Decimal = Decimal("0")
    net_change: Decimal = Decimal("0")
    transaction_count: int = 0


class ActivityReport(BaseModel):
    period: str = "all"
    days: list[DailyActivity] = []
    summary: ActivitySummary
    events: list[ActivityEvent] = []


class StatementStatistics(BaseModel):
    total_transactions: int = 0
    net_position: Decimal = Decimal("0")    # reported credits - reported debits
    average_transaction_amount: Decimal = Decimal("0")
    largest_credit: Decimal = Decimal("0")
    largest_debit: Decimal = Decimal("0")
