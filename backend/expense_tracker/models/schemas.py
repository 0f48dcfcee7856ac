"""Pydantic schemas for domain values and API payloads.

Pydantic models validate and serialise data that crosses the boundary
of the service layer. They are intentionally separate from the ORM
models: a bill row stores its staged items as plain JSON, and these
schemas are how that JSON is given a shape again when it is read.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_tracker.utils.helpers import utcnow
from expense_tracker.utils.sanitization import sanitize_string
from .enums import BillStatus


# ---------------------------------------------------------------------------
# Domain schemas


class ExpenseItem(BaseModel):
    """A staged or confirmed expense line.

    ``category_id`` may be unset while the item is staged but is
    required for confirmation. ``id`` is assigned at confirmation time
    when the caller does not provide one.
    """

    id: Optional[str] = None
    name: str
    amount: float
    date: datetime = Field(default_factory=utcnow)
    category_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v

    @field_validator("id", "category_id", mode="before")
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AnalysisResult(BaseModel):
    """Raw recognised text and the declared total found in it."""

    extracted_text: str
    total: float = 0.0


# ---------------------------------------------------------------------------
# API request/response schemas


class BillRead(BaseModel):
    id: int
    file_name: str
    file_type: str
    upload_date: datetime
    processed_date: Optional[datetime] = None
    status: BillStatus
    analysis_results: Optional[AnalysisResult] = None
    generated_expenses: List[ExpenseItem] = Field(default_factory=list)
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BillCreated(BaseModel):
    id: int


class ExpenseRead(ExpenseItem):
    id: str
    category_id: str
    bill_id: Optional[int] = None
    created_at: datetime
