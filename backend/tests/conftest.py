from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add backend folder to sys.path so `import expense_tracker...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from expense_tracker.core.database import build_engine, build_session_factory, init_db  # noqa: E402
from expense_tracker.services.bill_service import BillService  # noqa: E402
from expense_tracker.services.confirmation_service import ConfirmationService  # noqa: E402
from expense_tracker.services.document_store import DocumentStore  # noqa: E402

from fakes import FakeGateway  # noqa: E402


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def engine(db_url):
    engine = build_engine(db_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return DocumentStore(build_session_factory(engine))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def bill_service(store, gateway):
    return BillService(store, gateway)


@pytest.fixture
def confirmation_service(store):
    return ConfirmationService(store)


@pytest_asyncio.fixture
async def processed_bill(bill_service):
    bill = await bill_service.create("receipt.jpg", "image/jpeg")
    return await bill_service.process(bill.id, b"fake-image-bytes")
