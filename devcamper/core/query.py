"""Filtering, field selection, sorting and pagination for list endpoints.

Query strings follow the ``field[op]=value`` convention::

    /bootcamps?average_cost[lte]=10000&housing=true&select=name,city&sort=-average_rating&page=2&limit=10

Supported operators are ``gt``, ``gte``, ``lt``, ``lte``, ``ne`` and ``in``
(comma separated values). A bare ``field=value`` means equality.
"""

import re
from datetime import datetime
from typing import Any, Callable, Mapping

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer
from sqlalchemy.orm import Query, Session

from devcamper.core.errors import ValidationError

RESERVED_PARAMS = {"select", "sort", "page", "limit"}
DEFAULT_SORT = "-created_at"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
MAX_LIMIT = 100

_FILTER_KEY = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>gt|gte|lt|lte|ne|in)\])?$")


def _get_column(model, field: str):
    column = model.__table__.columns.get(field)
    if column is None or field in getattr(model, "__hidden_fields__", ()):
        raise ValidationError(f"Unknown field '{field}'")
    return column


def _coerce(column, raw: str) -> Any:
    column_type = column.type
    if isinstance(column_type, JSON):
        raise ValidationError(f"Cannot filter on field '{column.name}'")
    try:
        if isinstance(column_type, Boolean):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if isinstance(column_type, Integer):
            return int(raw)
        if isinstance(column_type, Float):
            return float(raw)
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid value '{raw}' for field '{column.name}'") from exc
    return raw


def apply_filters(query: Query, model, params: Mapping[str, str]) -> Query:
    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue

        match = _FILTER_KEY.match(key)
        if match is None:
            raise ValidationError(f"Invalid filter '{key}'")

        column = _get_column(model, match.group("field"))
        op = match.group("op")
        if op == "in":
            values = [_coerce(column, item) for item in raw.split(",") if item.strip()]
            query = query.filter(column.in_(values))
            continue

        value = _coerce(column, raw)
        if op == "gt":
            query = query.filter(column > value)
        elif op == "gte":
            query = query.filter(column >= value)
        elif op == "lt":
            query = query.filter(column < value)
        elif op == "lte":
            query = query.filter(column <= value)
        elif op == "ne":
            query = query.filter(column != value)
        else:
            query = query.filter(column == value)
    return query


def apply_sort(query: Query, model, sort: str | None) -> Query:
    for item in (sort or DEFAULT_SORT).split(","):
        item = item.strip()
        if not item:
            continue
        descending = item.startswith("-")
        column = _get_column(model, item.lstrip("-"))
        query = query.order_by(column.desc() if descending else column.asc())
    return query


def _parse_positive_int(params: Mapping[str, str], name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"'{name}' must be a positive integer") from exc
    if value < 1:
        raise ValidationError(f"'{name}' must be a positive integer")
    return value


def select_fields(item: dict, select: str | None) -> dict:
    if not select:
        return item
    fields = {"id"} | {field.strip() for field in select.split(",") if field.strip()}
    return {key: value for key, value in item.items() if key in fields}


def advanced_results(
    db: Session,
    model,
    params: Mapping[str, str],
    serialize: Callable[[Any], dict],
    base_query: Query | None = None,
) -> dict:
    query = base_query if base_query is not None else db.query(model)
    query = apply_filters(query, model, params)

    select = params.get("select")
    if select:
        for field in select.split(","):
            if field.strip():
                _get_column(model, field.strip())

    page = _parse_positive_int(params, "page", DEFAULT_PAGE)
    limit = min(_parse_positive_int(params, "limit", DEFAULT_LIMIT), MAX_LIMIT)
    start = (page - 1) * limit
    end = page * limit
    total = query.count()

    query = apply_sort(query, model, params.get("sort"))
    items = query.offset(start).limit(limit).all()
    data = [select_fields(serialize(item), select) for item in items]

    pagination = {}
    if end < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}

    return {
        "success": True,
        "count": len(data),
        "pagination": pagination,
        "data": data,
    }
