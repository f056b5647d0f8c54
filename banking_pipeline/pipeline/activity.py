"""
Daily activity and headline statistics for a canonical statement.

Days are built from dated transactions only. The summary always covers
every day on the statement; the day list and key events are narrowed to
the requested period.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import structlog

from banking_pipeline.config import settings
from banking_pipeline.schemas.activity import (
    ActivityEvent,
    ActivityReport,
    ActivitySummary,
    DailyActivity,
    StatementStatistics,
)
from banking_pipeline.schemas.canonical import CanonicalStatement

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
CENTS = Decimal("0.01")

EVENT_WENT_NEGATIVE = "Account went negative"
EVENT_LARGE_DEBIT_DAY = "Large spending day"
EVENT_LARGE_CREDIT_DAY = "Large deposit received"


def compute_daily_activity(statement: CanonicalStatement, period: str = "all") -> ActivityReport:
    days = group_by_day(statement)
    summary = summarize_days(days, transaction_count=len(statement.transactions))
    events = detect_key_events(days, summary.starting_balance)

    if period != "all":
        days = [d for d in days if d.day.isoformat().startswith(period)]
        events = [e for e in events if e.day.isoformat().startswith(period)]

    logger.debug("daily_activity_computed", period=period, days=len(days), events=len(events))
    return ActivityReport(period=period, days=days, summary=summary, events=events)


def group_by_day(statement: CanonicalStatement) -> list[DailyActivity]:
    """One entry per calendar day; closing balance is the last balance seen that day."""
    by_day: dict[date, DailyActivity] = {}

    for t in statement.transactions:
        if t.transaction_date is None:
            continue
        day = by_day.setdefault(t.transaction_date, DailyActivity(day=t.transaction_date))
        if t.amount > 0:
            day.credits += t.amount
        elif t.amount < 0:
            day.debits += abs(t.amount)
        if t.balance is not None:
            day.closing_balance = t.balance
        day.transaction_count += 1

    return [by_day[d] for d in sorted(by_day)]


def summarize_days(days: list[DailyActivity], transaction_count: int = 0) -> ActivitySummary:
    total_credits = sum((d.credits for d in days), ZERO)
    total_debits = sum((d.debits for d in days), ZERO)

    starting_balance = None
    ending_balance = None
    if days:
        first = days[0]
        if first.closing_balance is not None:
            # Back out the first day's movement to get the opening balance
            starting_balance = first.closing_balance - first.net_change
        ending_balance = days[-1].closing_balance

    return ActivitySummary(
        starting_balance=starting_balance,
        ending_balance=ending_balance,
        total_credits=total_credits,
        total_debits=total_debits,
        net_change=total_credits - total_debits,
        transaction_count=transaction_count,
    )


def detect_key_events(
    days: list[DailyActivity],
    starting_balance: Optional[Decimal] = None,
) -> list[ActivityEvent]:
    """
    Flag days where the balance first drops below zero, or where debits or
    credits exceed the configured large-day thresholds.
    """
    debit_threshold = Decimal(str(settings.LARGE_DEBIT_DAY_THRESHOLD))
    credit_threshold = Decimal(str(settings.LARGE_CREDIT_DAY_THRESHOLD))

    events: list[ActivityEvent] = []
    previous_balance = starting_balance

    for day in days:
        balance = day.closing_balance
        if balance is not None and balance < 0 and (previous_balance is None or previous_balance >= 0):
            events.append(ActivityEvent(day=day.day, label=EVENT_WENT_NEGATIVE, balance=balance))
        if day.debits > debit_threshold:
            events.append(ActivityEvent(day=day.day, label=EVENT_LARGE_DEBIT_DAY, balance=balance))
        if day.credits > credit_threshold:
            events.append(ActivityEvent(day=day.day, label=EVENT_LARGE_CREDIT_DAY, balance=balance))
        if balance is not None:
            previous_balance = balance

    return events


def statement_statistics(statement: CanonicalStatement) -> StatementStatistics:
    """Headline figures; net position uses the statement's own reported totals."""
    transactions = statement.transactions
    credits = [t.amount for t in transactions if t.amount > 0]
    debits = [abs(t.amount) for t in transactions if t.amount < 0]

    average = ZERO
    if transactions:
        total = sum((abs(t.amount) for t in transactions), ZERO)
        average = (total / len(transactions)).quantize(CENTS, rounding=ROUND_HALF_UP)

    return StatementStatistics(
        total_transactions=len(transactions),
        net_position=statement.total_credits - statement.total_debits,
        average_transaction_amount=average,
        largest_credit=max(credits, default=ZERO),
        largest_debit=max(debits, default=ZERO),
    )
