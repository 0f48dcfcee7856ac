from __future__ import annotations

import asyncio

import pytest

from expense_tracker.core.errors import (
    ConflictError,
    NoTextDetected,
    NotFound,
    OperationCancelled,
    ServiceUnavailable,
    StoreError,
)
from expense_tracker.models.enums import BillStatus
from expense_tracker.models.schemas import ExpenseItem
from expense_tracker.services.bill_service import BillService
from expense_tracker.services.confirmation_service import ConfirmationService

from fakes import FakeGateway


@pytest.mark.asyncio
async def test_create_starts_uploaded(bill_service):
    bill = await bill_service.create("receipt.png", "image/png")
    assert bill.id is not None
    assert bill.status == BillStatus.UPLOADED
    assert bill.file_name == "receipt.png"
    assert bill.file_type == "image/png"
    assert bill.processed_date is None
    assert bill.generated_expenses == []


@pytest.mark.asyncio
async def test_process_stages_items_and_total(bill_service, gateway):
    bill = await bill_service.create("receipt.jpg", "image/jpeg")
    processed = await bill_service.process(bill.id, b"image")

    assert gateway.calls == [b"image"]
    assert processed.status == BillStatus.PROCESSED
    assert processed.processed_date >= processed.upload_date
    assert processed.analysis_results.extracted_text == "Milk\n2.50\nBread\n3.20\n5.70"
    assert processed.analysis_results.total == 5.70
    assert [(e.name, e.amount) for e in processed.generated_expenses] == [("Milk", 2.50), ("Bread", 3.20)]
    assert all(e.id for e in processed.generated_expenses)
    assert all(e.category_id is None for e in processed.generated_expenses)
    assert len({e.id for e in processed.generated_expenses}) == 2


@pytest.mark.asyncio
async def test_reprocessing_overwrites_previous_analysis(store):
    gateway = FakeGateway()
    service = BillService(store, gateway)
    bill = await service.create("r.jpg", "image/jpeg")
    await service.process(bill.id, b"first")

    gateway.text = "Apples\n1.99"
    again = await service.process(bill.id, b"second")
    assert again.status == BillStatus.PROCESSED
    assert [(e.name, e.amount) for e in again.generated_expenses] == [("Apples", 1.99)]
    assert again.analysis_results.total == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, kind",
    [
        (ServiceUnavailable("quota exceeded"), ServiceUnavailable),
        (NoTextDetected("nothing there"), NoTextDetected),
    ],
)
async def test_recognition_failure_marks_error_without_staged_items(store, error, kind):
    service = BillService(store, FakeGateway(error=error))
    bill = await service.create("r.jpg", "image/jpeg")

    with pytest.raises(kind):
        await service.process(bill.id, b"img")

    failed = await service.get(bill.id)
    assert failed.status == BillStatus.ERROR
    assert failed.generated_expenses == []
    assert failed.analysis_results is None
    assert failed.error


@pytest.mark.asyncio
async def test_recognition_deadline_raises_cancelled_and_marks_error(store):
    service = BillService(store, FakeGateway(delay=1.0), recognition_timeout=0.05)
    bill = await service.create("r.jpg", "image/jpeg")

    with pytest.raises(OperationCancelled):
        await service.process(bill.id, b"img")
    assert (await service.get(bill.id)).status == BillStatus.ERROR


@pytest.mark.asyncio
async def test_failed_reprocess_keeps_previous_analysis(store):
    gateway = FakeGateway()
    service = BillService(store, gateway)
    bill = await service.create("r.jpg", "image/jpeg")
    await service.process(bill.id, b"img")

    gateway.error = ServiceUnavailable("network down")
    with pytest.raises(ServiceUnavailable):
        await service.process(bill.id, b"img")

    current = await service.get(bill.id)
    assert current.status == BillStatus.PROCESSED
    assert len(current.generated_expenses) == 2
    assert current.error == "network down"


@pytest.mark.asyncio
async def test_process_rejects_errored_bill(store):
    service = BillService(store, FakeGateway(error=ServiceUnavailable("down")))
    bill = await service.create("r.jpg", "image/jpeg")
    with pytest.raises(ServiceUnavailable):
        await service.process(bill.id, b"img")

    service.gateway = FakeGateway()
    with pytest.raises(ConflictError):
        await service.process(bill.id, b"img")


@pytest.mark.asyncio
async def test_process_unknown_bill_is_not_found(bill_service, gateway):
    with pytest.raises(NotFound):
        await bill_service.process(424242, b"img")
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_get_unknown_bill_is_not_found(bill_service):
    with pytest.raises(NotFound) as info:
        await bill_service.get(424242)
    assert not isinstance(info.value, StoreError)


@pytest.mark.asyncio
async def test_update_staged_item_replaces_in_place(bill_service, processed_bill):
    target = processed_bill.generated_expenses[1]
    edited = ExpenseItem(id="ignored", name="Sourdough", amount=4.10, date=target.date, category_id="bakery")

    updated = await bill_service.update_staged_item(processed_bill.id, target.id, edited)

    assert updated.status == BillStatus.PROCESSED
    assert [e.name for e in updated.generated_expenses] == ["Milk", "Sourdough"]
    replaced = updated.generated_expenses[1]
    assert replaced.id == target.id
    assert replaced.amount == 4.10
    assert replaced.category_id == "bakery"


@pytest.mark.asyncio
async def test_update_staged_item_unknown_pair_is_not_found(bill_service, processed_bill):
    item = ExpenseItem(name="x", amount=1.0)
    with pytest.raises(NotFound):
        await bill_service.update_staged_item(processed_bill.id, "no-such-item", item)
    with pytest.raises(NotFound):
        await bill_service.update_staged_item(424242, processed_bill.generated_expenses[0].id, item)


@pytest.mark.asyncio
async def test_stale_staged_item_edit_is_a_conflict(store, bill_service, processed_bill, monkeypatch):
    milk, bread = processed_bill.generated_expenses
    original = store._apply_update
    interleaved = []

    async def edit_in_between(session, op):
        # Another edit of the same bill commits after this one has read the array
        if not interleaved:
            interleaved.append(True)
            await bill_service.update_staged_item(
                processed_bill.id, bread.id, ExpenseItem(name="Rye", amount=3.20, date=bread.date)
            )
        return await original(session, op)

    monkeypatch.setattr(store, "_apply_update", edit_in_between)
    with pytest.raises(ConflictError):
        await bill_service.update_staged_item(
            processed_bill.id, milk.id, ExpenseItem(name="Oat milk", amount=2.90, date=milk.date)
        )

    current = await bill_service.get(processed_bill.id)
    assert [e.name for e in current.generated_expenses] == ["Milk", "Rye"]


@pytest.mark.asyncio
async def test_concurrent_staged_item_edits_never_lose_an_acknowledged_edit(bill_service, processed_bill):
    milk, bread = processed_bill.generated_expenses
    edits = {
        milk.id: ExpenseItem(name="Oat milk", amount=2.90, date=milk.date),
        bread.id: ExpenseItem(name="Rye", amount=3.20, date=bread.date),
    }

    results = await asyncio.gather(
        *(bill_service.update_staged_item(processed_bill.id, item_id, item) for item_id, item in edits.items()),
        return_exceptions=True,
    )

    assert any(not isinstance(r, BaseException) for r in results)
    assert all(isinstance(r, StoreError) for r in results if isinstance(r, BaseException))
    current = {e.id: e.name for e in (await bill_service.get(processed_bill.id)).generated_expenses}
    for (item_id, item), result in zip(edits.items(), results):
        if not isinstance(result, BaseException):
            assert current[item_id] == item.name


class _ConfirmingThenFailingGateway:
    """Confirms the bill while recognition is in flight, then fails."""

    def __init__(self, confirmation: ConfirmationService, bill):
        self.confirmation = confirmation
        self.bill = bill

    async def recognize(self, image_bytes: bytes) -> str:
        items = [e.model_copy(update={"category_id": "food"}) for e in self.bill.generated_expenses]
        await self.confirmation.confirm(self.bill.id, items)
        raise ServiceUnavailable("network down")


@pytest.mark.asyncio
async def test_failed_reprocess_racing_a_confirmation_reports_recognition_error(store, processed_bill):
    service = BillService(store, _ConfirmingThenFailingGateway(ConfirmationService(store), processed_bill))

    with pytest.raises(ServiceUnavailable):
        await service.process(processed_bill.id, b"img")

    current = await service.get(processed_bill.id)
    assert current.status == BillStatus.CONFIRMED
    assert current.error is None
