"""SQLAlchemy ORM models for the expense tracker.

Bills are stored document-style: the staged items and the analysis
result live in JSON columns on the bill row, so a bill can be read and
replaced as one unit. Confirmed expenses are ordinary rows in the
ledger table. Enumerated fields are stored as strings using
SQLAlchemy's native Enum type.

If you extend or modify these models remember to call the ``init_db``
helper during development to recreate the tables.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from expense_tracker.core.database import Base
from expense_tracker.utils.helpers import utcnow
from .enums import BillStatus


class Bill(Base):
    """Uploaded bill awaiting review, and its recognition results."""

    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False, default="")
    upload_date = Column(DateTime, default=utcnow, nullable=False)
    processed_date = Column(DateTime, nullable=True)
    status = Column(Enum(BillStatus), default=BillStatus.UPLOADED, nullable=False, index=True)
    # {"extracted_text": str, "total": float}
    analysis_results = Column(JSON, nullable=True)
    # Staged items, a list of ExpenseItem dicts
    generated_expenses = Column(JSON, nullable=False, default=list)
    error = Column(Text, nullable=True)
    # Bumped by every store update; guards read-modify-write of the JSON columns
    version = Column(Integer, nullable=False, default=0)

    expenses = relationship("Expense", back_populates="bill")


class Expense(Base):
    """Confirmed ledger entry."""

    __tablename__ = "expenses"

    # Assigned by the application, never by the database
    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(DateTime, nullable=False)
    category_id = Column(String, nullable=False, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    bill = relationship("Bill", back_populates="expenses")
