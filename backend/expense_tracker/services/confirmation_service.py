"""Confirmation of reviewed bill items into the expense ledger.

Confirming a bill does two things that must be seen together or not at
all: every submitted item is inserted into the ledger, and the bill is
moved to ``confirmed`` with its staged items replaced by the submitted
set. Both writes are sent to the store as one atomic unit.

The status write is guarded on the bill still being ``processed``.
When two confirmations of the same bill race, the loser either hits a
duplicate ledger id or finds the status already changed; in both cases
its unit is rolled back and it receives ``ConflictError``, so each item
lands in the ledger exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from expense_tracker.core.errors import ConflictError, OperationCancelled, ValidationError
from expense_tracker.core.observability import sentry_breadcrumb
from expense_tracker.models.enums import BillStatus
from expense_tracker.models.schemas import ExpenseItem
from expense_tracker.services.document_store import DocumentStore, InsertMany, UpdateFields
from expense_tracker.utils.helpers import new_id

logger = logging.getLogger(__name__)


def validate_categories(items: Sequence[ExpenseItem]) -> None:
    """Raise ``ValidationError`` for the first item without a category."""
    for index, item in enumerate(items):
        if not item.category_id:
            raise ValidationError(
                f"expense {index + 1} is missing a category",
                details={"index": index, "id": item.id, "name": item.name},
            )


class ConfirmationService:
    """Commits reviewed items to the ledger and closes the bill."""

    def __init__(self, store: DocumentStore, timeout: Optional[float] = None) -> None:
        self.store = store
        self.timeout = timeout

    async def confirm(
        self, bill_id: int, items: Sequence[ExpenseItem], timeout: Optional[float] = None
    ) -> List[ExpenseItem]:
        """Confirm ``items`` for ``bill_id`` and return them with their ids.

        Raises ``ValidationError`` before touching storage when any item
        lacks a category, ``NotFound`` for an unknown bill,
        ``ConflictError`` when the bill is not (or no longer) awaiting
        confirmation, ``StoreError`` for other persistence failures and
        ``OperationCancelled`` when the deadline expires.
        """
        validate_categories(items)

        bill = await self.store.find_by_id("bills", bill_id)
        if bill.status != BillStatus.PROCESSED:
            raise ConflictError(
                f"Bill {bill_id} cannot be confirmed in state {bill.status.value}",
                details={"id": bill_id, "status": bill.status.value},
            )

        confirmed = [item if item.id else item.model_copy(update={"id": new_id()}) for item in items]
        ledger_rows = [
            {**item.model_dump(include={"id", "name", "amount", "date", "category_id"}), "bill_id": bill_id}
            for item in confirmed
        ]
        unit = [
            InsertMany("expenses", ledger_rows),
            UpdateFields(
                "bills",
                bill_id,
                {
                    "status": BillStatus.CONFIRMED,
                    "generated_expenses": [item.model_dump(mode="json") for item in confirmed],
                },
                expected={"status": BillStatus.PROCESSED},
            ),
        ]

        deadline = timeout if timeout is not None else self.timeout
        sentry_breadcrumb("bill", "confirm.start", data={"bill_id": bill_id, "items": len(confirmed)})
        try:
            await asyncio.wait_for(self.store.run_atomic(unit), timeout=deadline)
        except asyncio.TimeoutError as exc:
            logger.warning("Confirmation of bill %s exceeded its deadline; rolled back", bill_id)
            raise OperationCancelled(f"Confirmation of bill {bill_id} exceeded {deadline}s") from exc
        except ConflictError:
            logger.warning("Confirmation of bill %s lost a concurrent update; rolled back", bill_id)
            raise

        logger.info("Confirmed %d expenses for bill %s", len(confirmed), bill_id)
        sentry_breadcrumb("bill", "confirm.done", data={"bill_id": bill_id})
        return confirmed


__all__ = ["ConfirmationService", "validate_categories"]
