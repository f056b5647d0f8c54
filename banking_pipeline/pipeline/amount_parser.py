"""
Amount parser for extracted statement values.

Extraction is asked for plain signed decimals, but model output drifts into
statement conventions, so all of these are accepted:
- $1,234.56 / AUD 1,234.56 / 1234.56
- (1,234.56)        -> negative (parentheses)
- 1,234.56 DR       -> negative (DR/CR suffix)
- 1,234.56 CR       -> positive
- -1,234.56         -> negative (leading minus)
- 1,234.56-         -> negative (trailing minus)
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel


CURRENCY_TOKENS = ("AUD", "NZD", "USD", "GBP", "EUR", "A$", "NZ$", "US$", "$", chr(163), chr(8364))


class AmountParseResult(BaseModel):
    amount: Optional[Decimal] = None
    raw_text: str
    is_negative: bool = False
    sign_convention: Optional[str] = None  # PARENTHESES, DR_CR, MINUS, NONE


def parse_amount(raw: Optional[str]) -> AmountParseResult:
    """
    Parse a monetary amount. Unparseable text gives amount=None.
    """
    raw = raw or ""
    s = raw.strip()

    if not s or s in ('-', '--', '---'):
        return AmountParseResult(amount=None, raw_text=raw)

    for token in CURRENCY_TOKENS:
        s = re.sub(re.escape(token), '', s, flags=re.IGNORECASE)
    s = s.strip()

    if not s:
        return AmountParseResult(amount=None, raw_text=raw)

    is_negative = False
    sign_convention = 'NONE'

    # Parentheses: (100.00) -> negative
    if s.startswith('(') and s.endswith(')'):
        s = s[1:-1].strip()
        is_negative = True
        sign_convention = 'PARENTHESES'

    # DR/CR suffix: 100.00DR -> negative
    m = re.match(r'^(.+?)\s*(DR|CR)$', s, re.IGNORECASE)
    if m:
        s = m.group(1).strip()
        is_negative = m.group(2).upper() == 'DR'
        sign_convention = 'DR_CR'

    # Trailing minus: 100.00-
    if not is_negative and s.endswith('-'):
        s = s[:-1].strip()
        is_negative = True
        sign_convention = 'MINUS'

    # Leading minus, including the unicode minus sign
    if not is_negative and (s.startswith('-') or s.startswith(chr(8722))):
        s = s[1:].strip()
        is_negative = True
        sign_convention = 'MINUS'

    # A leading plus carries no information
    if s.startswith('+'):
        s = s[1:].strip()

    s = s.replace(',', '').replace(' ', '')

    try:
        amount = Decimal(s)
    except (InvalidOperation, ValueError):
        return AmountParseResult(amount=None, raw_text=raw)

    if not amount.is_finite():
        return AmountParseResult(amount=None, raw_text=raw)

    if is_negative:
        amount = -amount

    return AmountParseResult(
        amount=amount,
        raw_text=raw,
        is_negative=is_negative,
        sign_convention=sign_convention,
    )


def amount_or_default(raw: Optional[str], default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Parsed amount, or `default` when the text is missing or malformed."""
    result = parse_amount(raw)
    return result.amount if result.amount is not None else default
