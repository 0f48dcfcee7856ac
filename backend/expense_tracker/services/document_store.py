"""Document-style persistence over SQLAlchemy.

The bill lifecycle talks to storage through a small document-store
vocabulary: create a record, find it by id, set some of its fields,
insert a batch of records, and run several writes as one atomic unit.
``DocumentStore`` implements that vocabulary on top of an async
SQLAlchemy session factory. Collections are addressed by name
(``"bills"``, ``"expenses"``) and map onto the ORM tables.

Atomic units are plain data (``InsertMany`` and ``UpdateFields``
commands) executed in order inside a single transaction, so callers
never hold a session or pass callbacks. ``UpdateFields.expected`` is a
compare-and-set guard: when the stored values do not match, the unit
is aborted with ``ConflictError`` and everything already written in it
is rolled back.

Every database failure is reported as ``StoreError`` (or its
``ConflictError`` subclass for integrity violations); ``NotFound`` is
reserved for a missing record.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from expense_tracker.core.errors import ConflictError, ExpenseTrackerError, NotFound, StoreError
from expense_tracker.models.tables import Bill, Expense

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Any] = {
    "bills": Bill,
    "expenses": Expense,
}


@dataclass(frozen=True)
class InsertMany:
    """Insert every document into ``collection``."""

    collection: str
    documents: Sequence[Mapping[str, Any]]


@dataclass(frozen=True)
class UpdateFields:
    """Set ``fields`` on one record, optionally only if ``expected`` still holds.

    ``expected`` maps field names to the value the record must have; a
    list, tuple or set value means "any of these".
    """

    collection: str
    id: Any
    fields: Mapping[str, Any]
    expected: Optional[Mapping[str, Any]] = field(default=None)


Operation = Union[InsertMany, UpdateFields]


class DocumentStore:
    """Persistence adapter used by the bill lifecycle and confirmation services."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # --- helpers -------------------------------------------------------
    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction, translating database errors."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except ExpenseTrackerError:
            raise
        except IntegrityError as exc:
            logger.warning("Store integrity violation: %s", exc.orig)
            raise ConflictError("Record already exists or violates a constraint") from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation failed: %s", exc)
            raise StoreError(f"Database operation failed: {exc.__class__.__name__}") from exc

    async def _exists(self, session: AsyncSession, model, record_id: Any) -> bool:
        result = await session.execute(select(model.id).where(model.id == record_id))
        return result.scalar_one_or_none() is not None

    async def _apply_insert(self, session: AsyncSession, op: InsertMany) -> int:
        if not op.documents:
            return 0
        model = self._model(op.collection)
        await session.execute(insert(model), [dict(doc) for doc in op.documents])
        return len(op.documents)

    async def _apply_update(self, session: AsyncSession, op: UpdateFields) -> None:
        model = self._model(op.collection)
        stmt = update(model).where(model.id == op.id)
        for name, value in (op.expected or {}).items():
            column = getattr(model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        values = dict(op.fields)
        if "version" in model.__table__.c:
            values["version"] = model.version + 1
        result = await session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        if not await self._exists(session, model, op.id):
            raise NotFound(f"No {op.collection} record with id {op.id}")
        raise ConflictError(
            f"{op.collection} record {op.id} changed concurrently",
            details={"id": op.id, "expected": {k: _plain(v) for k, v in (op.expected or {}).items()}},
        )

    # --- single operations --------------------------------------------
    async def create(self, collection: str, fields: Mapping[str, Any]):
        """Insert one record and return it with its store-assigned id."""
        model = self._model(collection)
        async with self._transaction() as session:
            record = model(**fields)
            session.add(record)
            await session.flush()
        return record

    async def find_by_id(self, collection: str, record_id: Any):
        model = self._model(collection)
        async with self._transaction() as session:
            record = await session.get(model, record_id)
        if record is None:
            raise NotFound(f"No {collection} record with id {record_id}")
        return record

    async def find_many(self, collection: str, **filters: Any) -> List[Any]:
        model = self._model(collection)
        stmt = select(model).filter_by(**filters).order_by(model.id)
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_fields(
        self,
        collection: str,
        record_id: Any,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        async with self._transaction() as session:
            await self._apply_update(session, UpdateFields(collection, record_id, fields, expected))

    async def replace_array_item(
        self,
        collection: str,
        record_id: Any,
        array_field: str,
        item_id: Any,
        item: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Replace the element whose ``id`` is ``item_id`` inside a JSON array field.

        The array is rewritten as a whole, so on versioned collections the
        write is also guarded on the version that was read. A concurrent
        update of the same record makes this call fail with
        ``ConflictError`` instead of silently dropping the other change.
        """
        model = self._model(collection)
        async with self._transaction() as session:
            record = await session.get(model, record_id)
            if record is None:
                raise NotFound(f"No {collection} record with id {record_id}")
            elements = list(getattr(record, array_field) or [])
            for index, element in enumerate(elements):
                if isinstance(element, Mapping) and element.get("id") == item_id:
                    break
            else:
                raise NotFound(f"No item {item_id} in {collection} record {record_id}")
            elements[index] = dict(item)
            guard = dict(expected or {})
            if "version" in model.__table__.c:
                guard["version"] = record.version
            await self._apply_update(
                session, UpdateFields(collection, record_id, {array_field: elements}, guard)
            )

    async def insert_many(self, collection: str, documents: Sequence[Mapping[str, Any]]) -> int:
        async with self._transaction() as session:
            return await self._apply_insert(session, InsertMany(collection, documents))

    # --- atomic units --------------------------------------------------
    async def run_atomic(self, operations: Sequence[Operation]) -> None:
        """Apply ``operations`` in order; either all of them commit or none do."""
        async with self._transaction() as session:
            for op in operations:
                if isinstance(op, InsertMany):
                    await self._apply_insert(session, op)
                elif isinstance(op, UpdateFields):
                    await self._apply_update(session, op)
                else:
                    raise TypeError(f"Unsupported store operation: {op!r}")


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    return getattr(value, "value", value)


__all__ = ["DocumentStore", "InsertMany", "UpdateFields", "Operation", "COLLECTIONS"]
