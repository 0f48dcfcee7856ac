"""Bill lifecycle service.

A bill is created in the ``uploaded`` state when a receipt arrives.
Processing sends the image to the recognition gateway, runs the text
classifier on the result and stores the analysis and the staged items,
moving the bill to ``processed``. A failed recognition (service
unavailable, no text, deadline exceeded) moves an ``uploaded`` bill to
``error`` before the failure is re-raised, so a caller never finds a
bill stuck in ``uploaded`` after a failed attempt. Between
``processed`` and confirmation the caller may edit staged items one at
a time; confirmation itself lives in
``expense_tracker.services.confirmation_service``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from expense_tracker.core.errors import (
    ConflictError,
    NoTextDetected,
    OperationCancelled,
    ServiceUnavailable,
)
from expense_tracker.core.observability import sentry_breadcrumb
from expense_tracker.models.enums import BillStatus
from expense_tracker.models.schemas import AnalysisResult, BillRead, ExpenseItem, ExpenseRead
from expense_tracker.services.document_store import DocumentStore
from expense_tracker.services.recognition_service import RecognitionGateway
from expense_tracker.services.text_classifier import classify
from expense_tracker.utils.helpers import new_id, utcnow

logger = logging.getLogger(__name__)

BILLS = "bills"
EXPENSES = "expenses"

# States from which (re-)processing may overwrite the analysis
PROCESSABLE_STATES = (BillStatus.UPLOADED, BillStatus.PROCESSED)


class BillService:
    """Owns the staging record and its state transitions."""

    def __init__(
        self,
        store: DocumentStore,
        gateway: RecognitionGateway,
        recognition_timeout: Optional[float] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.recognition_timeout = recognition_timeout

    async def create(self, file_name: str, file_type: str) -> BillRead:
        """Create a staging record in the ``uploaded`` state."""
        record = await self.store.create(
            BILLS,
            {
                "file_name": file_name,
                "file_type": file_type or "",
                "upload_date": utcnow(),
                "status": BillStatus.UPLOADED,
                "generated_expenses": [],
            },
        )
        logger.info("Created bill %s for %s", record.id, file_name)
        return BillRead.model_validate(record)

    async def get(self, bill_id: int) -> BillRead:
        record = await self.store.find_by_id(BILLS, bill_id)
        return BillRead.model_validate(record)

    async def process(self, bill_id: int, image_bytes: bytes, timeout: Optional[float] = None) -> BillRead:
        """Recognise, classify and stage the items of a bill.

        ``timeout`` (defaulting to the service's recognition timeout) bounds
        the recognition call; exceeding it raises ``OperationCancelled``.
        """
        bill = await self.get(bill_id)
        if bill.status not in PROCESSABLE_STATES:
            raise ConflictError(f"Bill {bill_id} cannot be processed in state {bill.status.value}")

        logger.info("Starting to process bill %s", bill_id)
        sentry_breadcrumb("bill", "process.start", data={"bill_id": bill_id})
        deadline = timeout if timeout is not None else self.recognition_timeout
        try:
            extracted_text = await asyncio.wait_for(self.gateway.recognize(image_bytes), timeout=deadline)
        except asyncio.TimeoutError as exc:
            await self._mark_error(bill, "Text recognition exceeded its deadline")
            raise OperationCancelled(f"Recognition for bill {bill_id} exceeded {deadline}s") from exc
        except (ServiceUnavailable, NoTextDetected) as exc:
            await self._mark_error(bill, exc.message)
            raise
        if not extracted_text or not extracted_text.strip():
            await self._mark_error(bill, "No text detected in the image")
            raise NoTextDetected("No text detected in the image")

        logger.debug("Extracted text for bill %s: %s", bill_id, extracted_text)
        parsed, total = classify(extracted_text)
        logger.info("Parsed %d expenses for bill %s, declared total %.2f", len(parsed), bill_id, total)

        processed_date = max(utcnow(), bill.upload_date)
        staged = [
            ExpenseItem(id=new_id(), name=item.name, amount=item.price, date=processed_date)
            for item in parsed
        ]
        analysis = AnalysisResult(extracted_text=extracted_text, total=total)
        await self.store.update_fields(
            BILLS,
            bill_id,
            {
                "status": BillStatus.PROCESSED,
                "processed_date": processed_date,
                "analysis_results": analysis.model_dump(mode="json"),
                "generated_expenses": [item.model_dump(mode="json") for item in staged],
                "error": None,
            },
            expected={"status": PROCESSABLE_STATES},
        )
        sentry_breadcrumb("bill", "process.done", data={"bill_id": bill_id, "items": len(staged)})
        logger.info("Bill %s processed successfully", bill_id)
        return await self.get(bill_id)

    async def update_staged_item(self, bill_id: int, item_id: str, new_item: ExpenseItem) -> BillRead:
        """Replace one staged item in place; the item keeps its identifier."""
        item = new_item.model_copy(update={"id": item_id})
        await self.store.replace_array_item(
            BILLS,
            bill_id,
            "generated_expenses",
            item_id,
            item.model_dump(mode="json"),
            expected={"status": BillStatus.PROCESSED},
        )
        logger.info("Updated staged item %s on bill %s", item_id, bill_id)
        return await self.get(bill_id)

    async def list_confirmed_expenses(self, bill_id: int) -> List[ExpenseRead]:
        """Return the ledger entries that were confirmed from a bill."""
        await self.store.find_by_id(BILLS, bill_id)
        records = await self.store.find_many(EXPENSES, bill_id=bill_id)
        return [ExpenseRead.model_validate(record) for record in records]

    async def _mark_error(self, bill: BillRead, message: str) -> None:
        """Record a failed attempt.

        Only a bill that was never processed moves to ``error``; a failed
        re-run keeps the earlier analysis and just records the message.
        If the bill changed state meanwhile (e.g. it was confirmed) nothing
        is written and the caller still raises the recognition failure.
        """
        logger.warning("Processing bill %s failed: %s", bill.id, message)
        sentry_breadcrumb("bill", "process.error", level="warning", data={"bill_id": bill.id})
        fields: dict = {"error": message}
        if bill.status == BillStatus.UPLOADED:
            fields["status"] = BillStatus.ERROR
        try:
            await self.store.update_fields(BILLS, bill.id, fields, expected={"status": bill.status})
        except ConflictError:
            logger.warning("Bill %s left %s while processing; failure not recorded", bill.id, bill.status.value)


__all__ = ["BillService", "PROCESSABLE_STATES"]
