"""Top-level package for the expense tracker bill ingestion service.

This package turns a photographed or scanned receipt into reviewed
expense ledger entries. A bill is uploaded and staged, its text is
recognised by an external vision model, the text is heuristically split
into candidate line items and a declared total, and the caller reviews
and categorises the items before confirming them. Confirmation writes
the ledger entries and closes the bill in a single transaction.

To run the API locally you can execute:

```bash
uvicorn expense_tracker.api.main:app --reload
```

The default configuration uses a local SQLite database stored in
``expenses.db``. You can override configuration values using
environment variables or a ``.env`` file at the project root.
"""

__all__: list[str] = []
