"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
import uuid


def utcnow() -> dt.datetime:
    """Return the current UTC time as a naive datetime.

    Timestamps are stored naive (UTC implied) so values read back from
    SQLite compare cleanly with freshly created ones.
    """
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    """Return a fresh opaque identifier for an expense item."""
    return uuid.uuid4().hex
