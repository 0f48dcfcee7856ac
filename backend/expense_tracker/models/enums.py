"""Enumeration types used throughout the expense tracker.

Enumerations constrain the values that can be stored in the database
or passed through the API. When modifying these enums you should
update any corresponding database columns or Pydantic validators so
that new values are accepted where appropriate.
"""

from enum import Enum


class BillStatus(str, Enum):
    """Processing states for a staged bill.

    Progression is forward only: ``uploaded`` leads to ``processed`` or
    ``error``, and ``processed`` leads to ``confirmed``.
    """

    UPLOADED = "uploaded"
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    ERROR = "error"
