from __future__ import annotations

import copy
import datetime as dt
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import Boolean, Date, DateTime, Integer, JSON, Numeric, String, Uuid, select
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Session

from capex.shared.utils import as_uuid, json_safe, new_uuid


Record = dict[str, Any]

OPERATORS = ("=", "!=", ">", "<", ">=", "<=", "in", "like")


class Collection(str, Enum):
    GROUPS = "groups"
    COMPANIES = "companies"
    USERS = "users"
    USER_ROLES = "user_roles"
    INVESTMENTS = "investments"
    INVESTMENT_APPROVALS = "investment_approvals"
    CASHFLOWS = "cashflows"
    NOTIFICATIONS = "notifications"
    AUDIT_EVENTS = "audit_events"


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class QueryFilter:
    where: tuple[Condition, ...] = field(default_factory=tuple)
    order_by: OrderBy | None = None
    limit: int | None = None
    offset: int | None = None

    @classmethod
    def of(cls, *conditions: Condition, order_by: OrderBy | None = None, limit: int | None = None, offset: int | None = None) -> "QueryFilter":
        return cls(where=tuple(conditions), order_by=order_by, limit=limit, offset=offset)


def eq(field_name: str, value: Any) -> Condition:
    return Condition(field_name, "=", value)


class Repository(Protocol):
    """
    Persistence collaborator used by every workflow service.

    Records are plain dicts. Each call is treated as atomic and immediately
    visible to later calls on the same repository; commit/rollback bound a
    unit of work.
    """

    def create(self, collection: str, record: Mapping[str, Any]) -> Record: ...

    def read(self, collection: str, record_id: uuid.UUID) -> Record | None: ...

    def update(self, collection: str, record_id: uuid.UUID, partial: Mapping[str, Any]) -> Record | None: ...

    def delete(self, collection: str, record_id: uuid.UUID) -> bool: ...

    def query(self, collection: str, flt: QueryFilter | None = None) -> list[Record]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _normalize(record: Mapping[str, Any]) -> Record:
    return {str(k): _plain(v) for k, v in record.items()}


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches(record: Mapping[str, Any], cond: Condition) -> bool:
    actual = record.get(cond.field)
    expected = _plain(cond.value)
    if cond.op == "=":
        return actual == expected
    if cond.op == "!=":
        return actual != expected
    if cond.op == "in":
        return actual in [_plain(v) for v in expected]
    if cond.op == "like":
        return actual is not None and _like_to_regex(str(expected)).match(str(actual)) is not None
    if actual is None or expected is None:
        return False
    if cond.op == ">":
        return actual > expected
    if cond.op == "<":
        return actual < expected
    if cond.op == ">=":
        return actual >= expected
    return actual <= expected


def _paginate(rows: list[Record], flt: QueryFilter) -> list[Record]:
    start = flt.offset or 0
    if flt.limit is None:
        return rows[start:]
    return rows[start : start + flt.limit]


class InMemoryRepository:
    """
    Dict-backed repository.

    Every returned record is a deep copy, so callers never mutate stored state.
    rollback() restores the state of the last commit().
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[uuid.UUID, Record]] = {}
        self._snapshot: dict[str, dict[uuid.UUID, Record]] = {}

    def _table(self, collection: str) -> dict[uuid.UUID, Record]:
        return self._data.setdefault(str(_plain(collection)), {})

    def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        row = _normalize(record)
        row["id"] = as_uuid(row.get("id")) or new_uuid()
        self._table(collection)[row["id"]] = row
        return copy.deepcopy(row)

    def read(self, collection: str, record_id: uuid.UUID) -> Record | None:
        row = self._table(collection).get(as_uuid(record_id))
        return copy.deepcopy(row) if row is not None else None

    def update(self, collection: str, record_id: uuid.UUID, partial: Mapping[str, Any]) -> Record | None:
        row = self._table(collection).get(as_uuid(record_id))
        if row is None:
            return None
        changes = _normalize(partial)
        changes.pop("id", None)
        row.update(changes)
        return copy.deepcopy(row)

    def delete(self, collection: str, record_id: uuid.UUID) -> bool:
        return self._table(collection).pop(as_uuid(record_id), None) is not None

    def query(self, collection: str, flt: QueryFilter | None = None) -> list[Record]:
        flt = flt or QueryFilter()
        rows = [r for r in self._table(collection).values() if all(_matches(r, c) for c in flt.where)]
        if flt.order_by is not None:
            key = flt.order_by.field
            # None sorts last in both directions
            present = [r for r in rows if r.get(key) is not None]
            missing = [r for r in rows if r.get(key) is None]
            present.sort(key=lambda r: r[key], reverse=flt.order_by.descending)
            rows = present + missing
        return [copy.deepcopy(r) for r in _paginate(rows, flt)]

    def commit(self) -> None:
        self._snapshot = copy.deepcopy(self._data)

    def rollback(self) -> None:
        self._data = copy.deepcopy(self._snapshot)

    def seed(self, collection: str, records: Iterable[Mapping[str, Any]]) -> list[Record]:
        created = [self.create(collection, r) for r in records]
        self.commit()
        return created


def _aware(value: dt.datetime) -> dt.datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class SqlRepository:
    """Repository over a SQLAlchemy session and the declarative models."""

    def __init__(self, db: Session, models: Mapping[str, type] | None = None) -> None:
        self.db = db
        self.models = dict(models) if models is not None else default_models()

    def _model(self, collection: str) -> type:
        try:
            return self.models[str(_plain(collection))]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _columns(model: type) -> dict[str, Any]:
        # record key (column name) -> mapped attribute
        mapper = model.__mapper__
        return {prop.columns[0].name: prop for prop in mapper.column_attrs}

    @staticmethod
    def _coerce(column_type: Any, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(column_type, JSON):
            return json_safe(value)
        if isinstance(column_type, SAEnum):
            enum_class = column_type.enum_class
            if enum_class is not None and not isinstance(value, enum_class):
                return enum_class(_plain(value))
            return value
        if isinstance(column_type, Uuid):
            return as_uuid(value)
        if isinstance(column_type, DateTime):
            return dt.datetime.fromisoformat(value) if isinstance(value, str) else value
        if isinstance(column_type, Date):
            return dt.date.fromisoformat(value) if isinstance(value, str) else value
        if isinstance(column_type, Numeric):
            return value if isinstance(value, Decimal) else Decimal(str(value))
        if isinstance(column_type, (Boolean, Integer)):
            return value
        if isinstance(column_type, String):
            return str(_plain(value))
        return value

    def _assign(self, obj: Any, model: type, values: Mapping[str, Any]) -> None:
        columns = self._columns(model)
        for key, value in values.items():
            prop = columns.get(key)
            if prop is None:
                raise ValueError(f"Unknown field {key!r} for {model.__tablename__}")
            setattr(obj, prop.key, self._coerce(prop.columns[0].type, value))

    def _to_record(self, obj: Any) -> Record:
        record: Record = {}
        for name, prop in self._columns(type(obj)).items():
            value = getattr(obj, prop.key)
            if isinstance(value, dt.datetime):
                value = _aware(value)
            record[name] = _plain(value)
        return record

    def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        model = self._model(collection)
        obj = model()
        # unset id and timestamps fall back to the column defaults
        self._assign(obj, model, {k: v for k, v in record.items() if v is not None or k not in ("id", "created_at", "updated_at")})
        self.db.add(obj)
        self.db.flush()
        return self._to_record(obj)

    def read(self, collection: str, record_id: uuid.UUID) -> Record | None:
        obj = self.db.get(self._model(collection), as_uuid(record_id))
        return self._to_record(obj) if obj is not None else None

    def update(self, collection: str, record_id: uuid.UUID, partial: Mapping[str, Any]) -> Record | None:
        model = self._model(collection)
        obj = self.db.get(model, as_uuid(record_id))
        if obj is None:
            return None
        changes = dict(partial)
        changes.pop("id", None)
        self._assign(obj, model, changes)
        self.db.flush()
        return self._to_record(obj)

    def delete(self, collection: str, record_id: uuid.UUID) -> bool:
        obj = self.db.get(self._model(collection), as_uuid(record_id))
        if obj is None:
            return False
        self.db.delete(obj)
        self.db.flush()
        return True

    def _clause(self, model: type, cond: Condition) -> Any:
        prop = self._columns(model).get(cond.field)
        if prop is None:
            raise ValueError(f"Unknown field {cond.field!r} for {model.__tablename__}")
        column = getattr(model, prop.key)
        column_type = prop.columns[0].type
        if cond.op == "in":
            return column.in_([self._coerce(column_type, v) for v in cond.value])
        if cond.op == "like":
            return column.like(str(cond.value))
        value = self._coerce(column_type, cond.value)
        if cond.op == "=":
            return column.is_(None) if value is None else column == value
        if cond.op == "!=":
            return column.is_not(None) if value is None else column != value
        if cond.op == ">":
            return column > value
        if cond.op == "<":
            return column < value
        if cond.op == ">=":
            return column >= value
        return column <= value

    def query(self, collection: str, flt: QueryFilter | None = None) -> list[Record]:
        flt = flt or QueryFilter()
        model = self._model(collection)
        stmt = select(model)
        for cond in flt.where:
            stmt = stmt.where(self._clause(model, cond))
        if flt.order_by is not None:
            prop = self._columns(model)[flt.order_by.field]
            column = getattr(model, prop.key)
            stmt = stmt.order_by(column.desc().nulls_last() if flt.order_by.descending else column.asc().nulls_last())
        if flt.offset:
            stmt = stmt.offset(flt.offset)
        if flt.limit is not None:
            stmt = stmt.limit(flt.limit)
        return [self._to_record(obj) for obj in self.db.execute(stmt).scalars().all()]

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


def default_models() -> dict[str, type]:
    from capex.core.db.models import AuditEvent, Company, Group, User, UserRole
    from capex.domain.cashflows.models.cashflows import Cashflow
    from capex.domain.investments.models.investments import Investment, InvestmentApproval
    from capex.domain.notifications.models.notifications import Notification

    return {
        Collection.GROUPS.value: Group,
        Collection.COMPANIES.value: Company,
        Collection.USERS.value: User,
        Collection.USER_ROLES.value: UserRole,
        Collection.INVESTMENTS.value: Investment,
        Collection.INVESTMENT_APPROVALS.value: InvestmentApproval,
        Collection.CASHFLOWS.value: Cashflow,
        Collection.NOTIFICATIONS.value: Notification,
        Collection.AUDIT_EVENTS.value: AuditEvent,
    }
