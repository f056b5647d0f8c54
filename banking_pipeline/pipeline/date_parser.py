"""
Day-first date parser for extracted statement dates.

Strategy:
1. ISO dates (what extraction is asked for) first
2. Named-month formats (unambiguous)
3. Numeric formats: assume dd/mm (AU/UK statements)
4. Year inference from the statement period for formats without year
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel


class DateParseResult(BaseModel):
    parsed_date: Optional[date] = None
    raw_text: str
    format_detected: str
    is_ambiguous: bool = False
    ambiguity_note: Optional[str] = None


# Ordered by specificity (try most specific first)
DATE_FORMATS = [
    # ISO format
    (r'(\d{4})-(\d{1,2})-(\d{1,2})', 'YYYY-MM-DD', False),
    (r'(\d{4})/(\d{1,2})/(\d{1,2})', 'YYYY/MM/DD', False),

    # Unambiguous: named month
    (r'(\d{1,2})(?:st|nd|rd|th)?\s+(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\w*,?\s+(\d{4})', 'DD_MON_YYYY', False),
    (r'(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\w*\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})', 'MON_DD_YYYY', False),
    (r'(\d{1,2})(?:st|nd|rd|th)?\s+(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\w*\s+(\d{2})\b', 'DD_MON_YY', False),

    # Numeric day-first (potentially ambiguous)
    (r'(\d{1,2})[/\-\.](\d{1,2})[/\-\.](\d{4})', 'DD/MM/YYYY', True),
    (r'(\d{1,2})[/\-\.](\d{1,2})[/\-\.](\d{2})\b', 'DD/MM/YY', True),

    # No year
    (r'(\d{1,2})\s+(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\w*', 'DD_MON', True),
]


def parse_statement_date(
    raw: Optional[str],
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> DateParseResult:
    """
    Parse a statement date. Never raises; unparseable text gives parsed_date=None.
    """
    raw = raw or ""
    raw_clean = raw.strip()

    for pattern, format_name, potentially_ambiguous in DATE_FORMATS:
        m = re.match(pattern, raw_clean, re.IGNORECASE)
        if not m:
            continue

        try:
            parsed = _parse_by_format(m, format_name, period_start)
        except (ValueError, OverflowError):
            continue

        if parsed is None:
            continue

        is_ambiguous = False
        ambiguity_note = None
        if potentially_ambiguous and format_name.startswith('DD/'):
            day_val = int(m.group(1))
            month_val = int(m.group(2))
            if day_val <= 12 and month_val <= 12 and day_val != month_val:
                is_ambiguous = True
                ambiguity_note = f"dd/mm vs mm/dd ambiguous ({m.group(1)}/{m.group(2)})"

                # Within the statement period settles it
                if period_start and period_end:
                    if period_start <= parsed <= period_end + timedelta(days=5):
                        is_ambiguous = False
                        ambiguity_note = None

        return DateParseResult(
            parsed_date=parsed,
            raw_text=raw,
            format_detected=format_name,
            is_ambiguous=is_ambiguous,
            ambiguity_note=ambiguity_note,
        )

    return DateParseResult(
        parsed_date=None,
        raw_text=raw,
        format_detected="UNKNOWN",
    )


def _parse_by_format(
    match,
    format_name: str,
    period_start: Optional[date],
) -> Optional[date]:
    """Parse date from regex match based on detected format."""

    if format_name in ('YYYY-MM-DD', 'YYYY/MM/DD'):
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    if format_name == 'DD/MM/YYYY':
        return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    if format_name == 'DD/MM/YY':
        yy = int(match.group(3))
        year = 1900 + yy if yy > 50 else 2000 + yy
        return date(year, int(match.group(2)), int(match.group(1)))

    if format_name == 'DD_MON':
        # No year in the text and no period to borrow one from
        if period_start is None:
            return None
        default = datetime(period_start.year, 1, 1)
        parsed = dateutil_parser.parse(match.group(0), dayfirst=True, default=default).date()
        if period_start.month == 12 and parsed.month == 1:
            parsed = parsed.replace(year=period_start.year + 1)
        return parsed

    if 'MON' in format_name:
        return dateutil_parser.parse(match.group(0), dayfirst=True).date()

    return None


def date_or_none(raw: Optional[str]) -> Optional[date]:
    return parse_statement_date(raw).parsed_date
