"""
Persistence boundary for shipment drafts and bookings.

The lifecycle engine talks to storage through four document-store style
calls (find_by_field / get_by_key / insert / update) keyed by a collection
name. This implementation maps collection names onto SQLAlchemy models and
commits every write on its own: there are no multi-document transactions,
and concurrent updates to the same key are last-write-wins per field.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.shipment import ShipmentEvent, ShipmentRecord

logger = logging.getLogger(__name__)

SHIPMENTS = "shipments"
SHIPMENT_EVENTS = "shipment_events"

COLLECTIONS: dict[str, type] = {
    SHIPMENTS: ShipmentRecord,
    SHIPMENT_EVENTS: ShipmentEvent,
}

# Server-owned columns: ignored on insert/update payloads.
_SERVER_FIELDS = {"id", "created_at", "updated_at"}


class DraftStoreError(Exception):
    """Raised when the underlying database rejects a read or write."""


class DraftStore:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _model(collection: str) -> type:
        model = COLLECTIONS.get(collection)
        if model is None:
            raise ValueError(f"Unknown collection '{collection}'.")
        return model

    @staticmethod
    def _column(model: type, field: str):
        columns = inspect(model).columns
        if field not in columns:
            raise ValueError(f"Unknown field '{field}' for {model.__name__}.")
        return getattr(model, field)

    @staticmethod
    def _writable(model: type, record: dict[str, Any]) -> dict[str, Any]:
        columns = inspect(model).columns
        unknown = [key for key in record if key not in columns]
        if unknown:
            raise ValueError(
                f"Unknown field(s) for {model.__name__}: {', '.join(sorted(unknown))}."
            )
        return {key: value for key, value in record.items() if key not in _SERVER_FIELDS}

    @staticmethod
    def _to_dict(row: Any) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for column in inspect(type(row)).columns:
            value = getattr(row, column.key)
            if isinstance(value, Decimal):
                value = float(value)
            data[column.key] = value
        return data

    def _fail(self, action: str, collection: str, exc: SQLAlchemyError) -> DraftStoreError:
        self.db.rollback()
        logger.error("Draft store %s failed for collection=%s: %s", action, collection, exc)
        return DraftStoreError(f"{action} on '{collection}' failed: {exc}")

    def find_by_field(
        self,
        collection: str,
        field: str,
        value: Any,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = self._model(collection)
        stmt = select(model).where(self._column(model, field) == value).order_by(model.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise self._fail("find", collection, exc) from exc
        return [self._to_dict(row) for row in rows]

    def count_by_field(self, collection: str, field: str, value: Any) -> int:
        model = self._model(collection)
        stmt = select(func.count()).select_from(model).where(self._column(model, field) == value)
        try:
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise self._fail("count", collection, exc) from exc

    def get_by_key(self, collection: str, key: int) -> dict[str, Any] | None:
        model = self._model(collection)
        try:
            row = self.db.get(model, key)
        except SQLAlchemyError as exc:
            raise self._fail("get", collection, exc) from exc
        if row is None:
            return None
        return self._to_dict(row)

    def insert(self, collection: str, record: dict[str, Any]) -> int:
        model = self._model(collection)
        row = model(**self._writable(model, record))
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("insert", collection, exc) from exc
        return row.id

    def update(self, collection: str, key: int, partial: dict[str, Any]) -> bool:
        model = self._model(collection)
        values = self._writable(model, partial)
        try:
            row = self.db.get(model, key)
            if row is None:
                return False
            for field, value in values.items():
                setattr(row, field, value)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("update", collection, exc) from exc
        return True
