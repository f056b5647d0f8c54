"""
Numbering schemas for banking documents within a case.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ExistingDocumentNumber(BaseModel):
    """Numbering metadata of a document already confirmed in the case."""
    account_group_number: Optional[str] = None
    account_holder_label: Optional[str] = None
    document_number: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NumberingResult(BaseModel):
    account_group_number: str
    document_number: str                    # "{group}.{sequence}"
    sequence: int
    is_new_group: bool = False
    is_placeholder: bool = False
