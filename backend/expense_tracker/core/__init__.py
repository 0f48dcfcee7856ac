"""Core application infrastructure.

Exports the default settings instance to simplify import paths inside
entry points and tests (e.g. `from expense_tracker.core import settings`).
"""

from .config import settings  # noqa: F401
