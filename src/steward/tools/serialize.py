"""Conversion of ORM rows into JSON-friendly dicts for tool results."""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import inspect

from steward.db.models import Base


def to_jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def row_to_dict(row: Base) -> dict[str, Any]:
    """Map an ORM instance to {column name: value}, using database column names."""
    mapper = inspect(row).mapper
    return {
        attr.columns[0].name: to_jsonable(getattr(row, attr.key))
        for attr in mapper.column_attrs
    }
