"""API routes for bill upload, review and confirmation."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from expense_tracker.api.dependencies import (
    get_bill_service,
    get_confirmation_service,
    get_settings,
    read_upload,
)
from expense_tracker.core.config import Settings
from expense_tracker.models.schemas import BillCreated, BillRead, ExpenseItem, ExpenseRead
from expense_tracker.services.bill_service import BillService
from expense_tracker.services.confirmation_service import ConfirmationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["bills"])


@router.post("", response_model=BillCreated, status_code=status.HTTP_201_CREATED)
async def upload_bill(
    bill: UploadFile | None = File(None),
    settings: Settings = Depends(get_settings),
    bills: BillService = Depends(get_bill_service),
) -> BillCreated:
    """Upload a receipt image, then recognise and stage its items."""
    contents = await read_upload(bill, settings)
    logger.info("Received file: %s, size: %d bytes", bill.filename, len(contents))
    record = await bills.create(bill.filename, bill.content_type or "")
    await bills.process(record.id, contents)
    return BillCreated(id=record.id)


@router.post("/{bill_id}/process", response_model=BillRead)
async def process_bill(
    bill_id: int,
    bill: UploadFile | None = File(None),
    settings: Settings = Depends(get_settings),
    bills: BillService = Depends(get_bill_service),
) -> BillRead:
    """Re-run recognition for an existing bill with a re-uploaded image."""
    contents = await read_upload(bill, settings)
    return await bills.process(bill_id, contents)


@router.get("/{bill_id}", response_model=BillRead)
async def get_bill(bill_id: int, bills: BillService = Depends(get_bill_service)) -> BillRead:
    """Get a bill with its analysis and staged items."""
    return await bills.get(bill_id)


@router.put("/{bill_id}/expenses/{expense_id}", response_model=BillRead)
async def update_bill_expense(
    bill_id: int,
    expense_id: str,
    expense: ExpenseItem,
    bills: BillService = Depends(get_bill_service),
) -> BillRead:
    """Edit one staged item (name, amount, date or category)."""
    return await bills.update_staged_item(bill_id, expense_id, expense)


@router.post("/{bill_id}/confirm", response_model=List[ExpenseItem])
async def confirm_expenses(
    bill_id: int,
    expenses: List[ExpenseItem],
    confirmation: ConfirmationService = Depends(get_confirmation_service),
) -> List[ExpenseItem]:
    """Commit the reviewed items to the ledger and close the bill."""
    return await confirmation.confirm(bill_id, expenses)


@router.get("/{bill_id}/expenses", response_model=List[ExpenseRead])
async def list_bill_expenses(bill_id: int, bills: BillService = Depends(get_bill_service)) -> List[ExpenseRead]:
    """List the ledger entries confirmed from a bill."""
    return await bills.list_confirmed_expenses(bill_id)
