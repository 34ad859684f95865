"""Record store over the SQLAlchemy models.

Rows travel as plain dictionaries keyed by the persisted field names. Every
committed mutation is announced on the process-wide :data:`change_hub` so
that any open view can re-fetch; the hub carries no row payload.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import Boolean, Date, Numeric
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Equipment, ItEquipmentRequest, NewsUpdate, TravelNotification, VacationRequest

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str], None]


class StoreError(RuntimeError):
    """A read or write was rejected by the record store."""


class UnknownTableError(StoreError):
    pass


class UnknownFieldError(StoreError):
    pass


class RecordNotFoundError(StoreError):
    pass


class DuplicateRecordError(StoreError):
    """Insert collided with an existing key or unique value."""


@dataclass(frozen=True)
class TableSpec:
    name: str
    model: Any
    key: str


TABLES: Dict[str, TableSpec] = {
    spec.name: spec
    for spec in (
        TableSpec("vacation_requests", VacationRequest, "id"),
        TableSpec("travel_notifications", TravelNotification, "id"),
        TableSpec("it_equipment_requests", ItEquipmentRequest, "id"),
        TableSpec("news_updates", NewsUpdate, "id"),
        TableSpec("equipos_ti", Equipment, "serial_number"),
    )
}


class ChangeHub:
    """Per-table change versions and subscriber callbacks."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._versions: Dict[str, int] = defaultdict(int)
        self._subscribers: Dict[str, List[ChangeCallback]] = defaultdict(list)

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers[table].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[table]:
                    self._subscribers[table].remove(callback)

        return unsubscribe

    def publish(self, table: str, event: str) -> None:
        with self._lock:
            self._versions[table] += 1
            callbacks = list(self._subscribers[table])
        for callback in callbacks:
            try:
                callback(table, event)
            except Exception:
                logger.exception("Change subscriber failed for %s (%s)", table, event)

    def version(self, table: str) -> int:
        with self._lock:
            return self._versions[table]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {name: self._versions[name] for name in TABLES}


change_hub = ChangeHub()


def _coerce(column: Any, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column.type, Date) and isinstance(value, str):
        return dt.date.fromisoformat(value) if value else None
    if isinstance(column.type, Numeric) and isinstance(value, str):
        return float(value)
    if isinstance(column.type, Boolean) and isinstance(value, str):
        return value.strip().lower() == "true"
    return value


class RecordStore:
    """CRUD and change subscription per logical table name."""

    def __init__(self, db: Session, hub: ChangeHub = change_hub):
        self.db = db
        self.hub = hub

    def _spec(self, table: str) -> TableSpec:
        try:
            return TABLES[table]
        except KeyError:
            raise UnknownTableError(f"Unknown table: {table}") from None

    def _columns(self, spec: TableSpec) -> Dict[str, Any]:
        return {column.name: column for column in spec.model.__table__.columns}

    def _to_row(self, spec: TableSpec, instance: Any) -> Dict[str, Any]:
        return {name: getattr(instance, name) for name in self._columns(spec)}

    def _prepare(self, spec: TableSpec, fields: Dict[str, Any]) -> Dict[str, Any]:
        columns = self._columns(spec)
        unknown = sorted(set(fields) - set(columns))
        if unknown:
            raise UnknownFieldError(f"Unknown field(s) for {spec.name}: {', '.join(unknown)}")
        try:
            return {name: _coerce(columns[name], value) for name, value in fields.items()}
        except ValueError as exc:
            raise StoreError(f"Invalid value for {spec.name}: {exc}") from exc

    def _load(self, spec: TableSpec, key: Any) -> Any:
        instance = self.db.get(spec.model, key)
        if instance is None:
            raise RecordNotFoundError(f"{spec.name} record {key!r} not found")
        return instance

    def _commit(self, spec: TableSpec, event: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("%s on %s rejected: %s", event, spec.name, exc.orig)
            if "UNIQUE" in str(exc.orig).upper():
                raise DuplicateRecordError(f"Duplicate {spec.name} record") from exc
            raise StoreError(f"{event} on {spec.name} rejected") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("%s on %s failed: %s", event, spec.name, exc)
            raise StoreError(f"{event} on {spec.name} failed") from exc
        self.hub.publish(spec.name, event)

    def select(self, table: str, order_by: Optional[str] = None, descending: bool = False) -> List[Dict[str, Any]]:
        spec = self._spec(table)
        query = self.db.query(spec.model)
        if order_by is not None:
            columns = self._columns(spec)
            if order_by not in columns:
                raise UnknownFieldError(f"Cannot order {table} by {order_by}")
            column = getattr(spec.model, order_by)
            query = query.order_by(column.desc() if descending else column.asc())
        try:
            return [self._to_row(spec, instance) for instance in query.all()]
        except SQLAlchemyError as exc:
            logger.error("select on %s failed: %s", table, exc)
            raise StoreError(f"select on {table} failed") from exc

    def get(self, table: str, key: Any) -> Dict[str, Any]:
        spec = self._spec(table)
        return self._to_row(spec, self._load(spec, key))

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._spec(table)
        values = self._prepare(spec, record)
        key = values.get(spec.key)
        if key is not None and self.db.get(spec.model, key) is not None:
            logger.warning("insert on %s rejected: duplicate key %r", table, key)
            raise DuplicateRecordError(f"{table} record {key!r} already exists")
        instance = spec.model(**values)
        self.db.add(instance)
        self._commit(spec, "insert")
        self.db.refresh(instance)
        return self._to_row(spec, instance)

    def update(self, table: str, key: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._spec(table)
        values = self._prepare(spec, fields)
        if spec.key in values and values[spec.key] != key:
            raise StoreError(f"{spec.key} of {table} cannot be changed")
        instance = self._load(spec, key)
        for name, value in values.items():
            setattr(instance, name, value)
        self._commit(spec, "update")
        self.db.refresh(instance)
        return self._to_row(spec, instance)

    def delete(self, table: str, key: Any) -> None:
        spec = self._spec(table)
        instance = self._load(spec, key)
        self.db.delete(instance)
        self._commit(spec, "delete")

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        self._spec(table)
        return self.hub.subscribe(table, callback)

    def version(self, table: str) -> int:
        self._spec(table)
        return self.hub.version(table)
