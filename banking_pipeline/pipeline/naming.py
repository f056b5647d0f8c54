"""
Display naming for banking documents.
"""

import re
from typing import Optional

# Leading honorifics dropped from extracted holder names
HOLDER_TITLES = ['mr', 'mrs', 'miss', 'ms', 'dr', 'prof', 'professor', 'sir', 'madam', 'lord', 'lady']

# Words that carry no signal in a bank abbreviation
ABBREVIATION_STOP_WORDS = {'bank', 'banking', 'group', 'corporation', 'ltd', 'limited', 'australia', 'australian'}


def normalize_account_holder_name(name: Optional[str]) -> str:
    """'MR JOHN  SMITH' -> 'John Smith'."""
    normalized = " ".join((name or "").split())
    for title in HOLDER_TITLES:
        normalized = re.sub(rf'^{title}\.?\s+', '', normalized, flags=re.IGNORECASE)
    return " ".join(word[:1].upper() + word[1:].lower() for word in normalized.split(" ") if word)


def normalize_holder_label(label: Optional[str]) -> str:
    """Normalize each holder of an '&'-joined label: 'MR JOHN SMITH & mrs jane smith' -> 'John Smith & Jane Smith'."""
    names = (normalize_account_holder_name(part) for part in (label or "").split("&"))
    return " & ".join(name for name in names if name)


def fallback_bank_abbreviation(bank_name: Optional[str]) -> str:
    """
    Initials of the significant words, at most four letters.
    'Commonwealth Bank of Australia' -> 'CO', 'Bendigo and Adelaide Bank' -> 'BAA'.
    """
    clean = (bank_name or "").strip()
    if not clean:
        return "UNKNOWN"

    words = [
        w for w in re.split(r'\s+', clean.lower())
        if len(w) > 1 and w not in ABBREVIATION_STOP_WORDS
    ]
    if not words:
        return clean[:3].upper()
    return "".join(w[0] for w in words[:4]).upper()


def banking_display_name(
    document_number: str,
    bank_abbreviation: str,
    account_number: Optional[str],
) -> str:
    """'1.2 CBA 1234' - number, bank, last four digits of the account."""
    digits = re.sub(r'\s+', '', account_number or '')
    last_four = digits[-4:] if digits else 'XXXX'
    return f"{document_number} {bank_abbreviation} {last_four}"
