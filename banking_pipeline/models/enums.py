"""
Python enums matching stored column values.
Names and values MUST match the DB values exactly.
"""

from enum import Enum


class ReviewStatus(str, Enum):
    """Review flag on a single transaction."""
    NONE = "none"
    QUERY = "query"


class FlowNodeCategory(str, Enum):
    INFLOW = "inflow"
    ACCOUNT = "account"
    OUTFLOW = "outflow"


class FlowSource(str, Enum):
    """Where a flow graph's amounts came from."""
    EXPLICIT = "explicit"
    TRANSACTIONS = "transactions"


class NumberingKind(str, Enum):
    NEW_GROUP = "new_group"
    EXISTING_GROUP = "existing_group"
    PLACEHOLDER = "placeholder"
