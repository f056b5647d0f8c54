"""
Canonical XML ingest.

Turns the extractor's <transaction_analysis> document into a
CanonicalStatement. Model output is not guaranteed to be well formed, so
every field degrades to an empty/zero default instead of raising:

- prose or code fences around the XML are cut away
- bare '&' characters are escaped before parsing
- a document that still fails to parse is read element by element, keeping
  every header field and transaction that is complete on its own
- with nothing recoverable the result is an empty statement
- a missing or malformed element yields "", 0 or None

Transactions are sorted by date on the way in (stable, undated last).
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional
from xml.etree import ElementTree as ET
from xml.sax.saxutils import unescape

import structlog

from banking_pipeline.observability.metrics import statements_parsed_total, transactions_parsed_total
from banking_pipeline.pipeline.amount_parser import amount_or_default
from banking_pipeline.pipeline.date_parser import date_or_none, parse_statement_date
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction

logger = structlog.get_logger(__name__)

ROOT_TAG = "transaction_analysis"

_ROOT_SPAN = re.compile(rf"<{ROOT_TAG}\b.*?</{ROOT_TAG}\s*>", re.DOTALL)
_BARE_AMPERSAND = re.compile(r"&(?!(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#x[0-9A-Fa-f]+);)")
_CODE_FENCE = re.compile(r"^```[A-Za-z]*\s*|\s*```$")

# Elements read one by one when the document as a whole does not parse
HEADER_TAGS = (
    "institution", "account_holder", "account_type", "start_date", "end_date",
    "account_number", "account_bsb", "currency", "total_credits", "total_debits",
    "analysis_summary",
)
TRANSACTION_TAGS = (
    "transaction_date", "transaction_description", "amount", "balance",
    "transaction_category", "transfer_type", "transfer_target",
)
FLOW_TAGS = ("target", "total_amount")


def parse_statement_xml(xml_text: Optional[str]) -> CanonicalStatement:
    """Parse extractor XML into a CanonicalStatement. Never raises."""
    root, recovered = _parse_root(xml_text or "")
    if root is None:
        statements_parsed_total.labels(outcome="unparseable").inc()
        return CanonicalStatement()

    period_start = date_or_none(_text(root, "start_date"))
    period_end = date_or_none(_text(root, "end_date"))

    transactions = [
        _parse_transaction(node, period_start, period_end)
        for node in root.iter("transaction")
    ]
    transactions = sort_transactions(transactions)

    statement = CanonicalStatement(
        institution=_text(root, "institution"),
        account_holders=_all_texts(root, "account_holder"),
        account_type=_text(root, "account_type"),
        period_start=period_start,
        period_end=period_end,
        account_number=_text(root, "account_number") or None,
        bsb=_text(root, "account_bsb") or None,
        currency=_text(root, "currency"),
        total_credits=amount_or_default(_text(root, "total_credits")),
        total_debits=amount_or_default(_text(root, "total_debits")),
        transactions=transactions,
        explicit_inflows=_parse_flow_totals(root, "from"),
        explicit_outflows=_parse_flow_totals(root, "to"),
        summary=_text(root, "analysis_summary"),
    )

    undated = sum(1 for t in transactions if t.transaction_date is None)
    if recovered:
        outcome = "recovered"
    else:
        outcome = "parsed" if transactions else "empty"
    statements_parsed_total.labels(outcome=outcome).inc()
    transactions_parsed_total.inc(len(transactions))

    logger.info(
        "statement_parsed",
        institution=statement.institution,
        transactions=len(transactions),
        undated_transactions=undated,
        explicit_inflows=len(statement.explicit_inflows),
        explicit_outflows=len(statement.explicit_outflows),
    )
    return statement


def sort_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Stable ascending date sort; transactions without a parsed date go last."""
    return sorted(
        transactions,
        key=lambda t: (t.transaction_date is None, t.transaction_date or date.min),
    )


# ─── Internals ───────────────────────────────────────────────

def _parse_root(xml_text: str) -> tuple[Optional[ET.Element], bool]:
    """Returns (root, recovered). recovered is True when the strict parse failed."""
    span = _ROOT_SPAN.search(xml_text)
    candidate = span.group(0) if span else _CODE_FENCE.sub("", xml_text.strip())
    if not candidate.strip():
        logger.warning("statement_xml_empty")
        return None, False

    candidate = _BARE_AMPERSAND.sub("&amp;", candidate)
    try:
        return ET.fromstring(candidate), False
    except ET.ParseError as e:
        error = str(e)

    root = _recover_root(xml_text)
    if root is None:
        logger.warning("statement_xml_unparseable", error=error, length=len(xml_text))
        return None, False

    logger.warning(
        "statement_xml_recovered",
        error=error,
        transactions=sum(1 for _ in root.iter("transaction")),
    )
    return root, True


def _recover_root(xml_text: str) -> Optional[ET.Element]:
    """
    Rebuild a tree from the complete elements that can still be sliced out.
    Each header tag and each closed <transaction>, <from> and <to> block is
    read on its own, so one broken fragment (a raw '<' in a description, a
    truncated tail) costs only that fragment.
    """
    root = ET.Element(ROOT_TAG)

    for tag in HEADER_TAGS:
        for value in _slice_values(xml_text, tag):
            ET.SubElement(root, tag).text = value

    for block in _slice_values(xml_text, "transaction", raw=True):
        _recover_block(root, "transaction", block, TRANSACTION_TAGS)
    for tag in ("from", "to"):
        for block in _slice_values(xml_text, tag, raw=True):
            _recover_block(root, tag, block, FLOW_TAGS)

    return root if len(root) else None


def _recover_block(root: ET.Element, tag: str, block: str, fields: tuple[str, ...]) -> None:
    node = ET.SubElement(root, tag)
    for field in fields:
        values = _slice_values(block, field)
        if values:
            ET.SubElement(node, field).text = values[0]


def _slice_values(text: str, tag: str, raw: bool = False) -> list[str]:
    pattern = re.compile(rf"<{tag}\b[^>]*>(.*?)</{tag}\s*>", re.DOTALL)
    values = pattern.findall(text)
    if raw:
        return values
    return [unescape(v.strip(), {"&quot;": '"', "&apos;": "'"}) for v in values]


def _text(node: ET.Element, tag: str) -> str:
    """Text of the first descendant named `tag`, or ""."""
    element = node.find(f".//{tag}") if node.tag != tag else node
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def _all_texts(node: ET.Element, tag: str) -> list[str]:
    texts = ("".join(element.itertext()).strip() for element in node.iter(tag))
    return [t for t in texts if t]


def _optional_text(node: ET.Element, tag: str) -> Optional[str]:
    return _text(node, tag) or None


def _parse_transaction(
    node: ET.Element,
    period_start: Optional[date],
    period_end: Optional[date],
) -> Transaction:
    date_text = _text(node, "transaction_date")
    parsed = parse_statement_date(date_text, period_start, period_end)
    if date_text and parsed.parsed_date is None:
        logger.debug("transaction_date_unparseable", date_text=date_text)

    return Transaction(
        transaction_date=parsed.parsed_date,
        date_text=date_text,
        description=_text(node, "transaction_description"),
        amount=amount_or_default(_text(node, "amount")),
        balance=amount_or_default(_text(node, "balance"), default=None),
        category=_optional_text(node, "transaction_category"),
        transfer_type=_optional_text(node, "transfer_type"),
        transfer_target=_optional_text(node, "transfer_target"),
    )


def _parse_flow_totals(root: ET.Element, tag: str) -> dict[str, Decimal]:
    """Collect <from>/<to> totals; blank targets and non-positive amounts are dropped."""
    totals: dict[str, Decimal] = {}
    for node in root.iter(tag):
        target = _text(node, "target")
        amount = amount_or_default(_text(node, "total_amount"))
        if target and amount > 0:
            totals[target] = totals.get(target, Decimal("0")) + amount
    return totals
