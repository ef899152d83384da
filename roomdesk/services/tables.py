"""
Generic row access over the properties, rooms and bookings tables.

Rows travel as plain dicts with ISO-8601 dates, the same shape the REST table
API returns, so callers never see ORM objects. Writes are published on the
change feed after commit.
"""
import logging
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import GatewayError, InvalidQuery, UniqueViolation, UnknownTable
from ..models import Booking, Property, Room
from .changefeed import ChangeFeed, feed as default_feed

logger = logging.getLogger(__name__)

TABLES = {
    "properties": Property,
    "rooms": Room,
    "bookings": Booking,
}

# Server-managed columns callers may not set on insert
_READONLY_ON_INSERT = {"id", "created_at"}


def resolve_table(name: str):
    model = TABLES.get(name)
    if model is None:
        raise UnknownTable(f"Unknown table: {name}")
    return model


def _column(model, name: str):
    columns = inspect(model).columns
    if name not in columns:
        raise InvalidQuery(f"Unknown column {model.__tablename__}.{name}")
    return columns[name]


def coerce_value(column, value):
    """Convert a wire value (usually a string) to the column's Python type."""
    if value is None:
        return None
    col_type = column.type
    try:
        if isinstance(col_type, DateTime):
            return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        if isinstance(col_type, Date):
            if isinstance(value, datetime):
                return value.date()
            return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])
        if isinstance(col_type, Boolean):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in ("true", "t", "1"):
                return True
            if text in ("false", "f", "0"):
                return False
            raise ValueError(value)
        if isinstance(col_type, Integer):
            return int(value)
    except (TypeError, ValueError):
        raise InvalidQuery(f"Invalid value {value!r} for column {column.name}")
    return value


def serialize(obj) -> dict:
    row = {}
    for column in inspect(type(obj)).columns:
        value = getattr(obj, column.key)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        row[column.key] = value
    return row


def _apply_filters(query, model, filters: Optional[dict]):
    for name, value in (filters or {}).items():
        column = _column(model, name)
        if isinstance(value, (list, tuple, set, frozenset)):
            values = [coerce_value(column, v) for v in value]
            query = query.filter(getattr(model, column.key).in_(values))
        else:
            query = query.filter(getattr(model, column.key) == coerce_value(column, value))
    return query


def select_rows(db: Session, table: str, filters: Optional[dict] = None, order: Optional[Iterable[str]] = None) -> list[dict]:
    model = resolve_table(table)
    query = _apply_filters(db.query(model), model, filters)
    order_by = [getattr(model, _column(model, name).key).asc() for name in (order or [])]
    if order_by:
        query = query.order_by(*order_by)
    try:
        return [serialize(obj) for obj in query.all()]
    except SQLAlchemyError as e:
        raise GatewayError(f"Failed to read {table}: {e}")


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(orig or exc).lower()


def insert_rows(db: Session, table: str, rows: list[dict], changes: Optional[ChangeFeed] = None) -> list[dict]:
    model = resolve_table(table)
    if not rows:
        raise InvalidQuery("Nothing to insert")
    objs = []
    for row in rows:
        values = {}
        for name, value in row.items():
            if name in _READONLY_ON_INSERT:
                raise InvalidQuery(f"Column {table}.{name} is read-only")
            column = _column(model, name)
            values[column.key] = coerce_value(column, value)
        objs.append(model(**values))
    db.add_all(objs)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_unique_violation(e):
            logger.info("Duplicate %s row rejected: %s", table, rows)
            raise UniqueViolation(f"Duplicate {table} row")
        raise GatewayError(f"Failed to insert into {table}: {e.orig}")
    except SQLAlchemyError as e:
        db.rollback()
        raise GatewayError(f"Failed to insert into {table}: {e}")
    inserted = []
    for obj in objs:
        db.refresh(obj)
        inserted.append(serialize(obj))
    for row in inserted:
        (changes or default_feed).publish(table, "INSERT", row)
    return inserted


def delete_rows(db: Session, table: str, filters: dict, changes: Optional[ChangeFeed] = None) -> list[dict]:
    """Delete matching rows and return them. An empty filter is refused."""
    model = resolve_table(table)
    if not filters:
        raise InvalidQuery("Refusing to delete without filters")
    objs = _apply_filters(db.query(model), model, filters).all()
    deleted = [serialize(obj) for obj in objs]
    for obj in objs:
        db.delete(obj)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise GatewayError(f"Failed to delete from {table}: {e}")
    for row in deleted:
        (changes or default_feed).publish(table, "DELETE", row)
    return deleted
