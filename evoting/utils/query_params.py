"""
Translate listing query parameters into SQLAlchemy filters.

A FilterSpec declares which keys a listing accepts and how each value is
matched: string fields match case-insensitively on a substring, integer
fields match exactly. The free-text ``search`` key is matched against every
field named in ``FilterSpec.search``.

Recognised control keys:
- limit: page size, clamped to 1..MAX_PAGE_SIZE
- skip: number of rows to skip
- sort: comma separated fields, "-" prefix for descending ("-name,nim")
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type
from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Query
from evoting.core.config import settings

# Always sortable regardless of the filter spec
DEFAULT_SORT_FIELDS = ("id", "created_at")


@dataclass(frozen=True)
class FilterSpec:
    fields: Dict[str, Type]
    search: Tuple[str, ...] = ()


@dataclass
class QueryParams:
    limit: int
    skip: int = 0
    filters: Dict[str, Any] = field(default_factory=dict)
    search: Optional[str] = None
    # (field, descending)
    sort: List[Tuple[str, bool]] = field(default_factory=lambda: [("id", False)])


USER_FILTER = FilterSpec(
    fields={
        "nim": str,
        "email": str,
        "name": str,
        "year_class": int,
    },
    search=("nim", "email", "name"),
)


def to_snake_case(key: str) -> str:
    """yearClass -> year_class"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Query parameter '{key}' must be an integer"
        )


def _parse_sort(value: str, spec: FilterSpec) -> List[Tuple[str, bool]]:
    allowed = set(spec.fields) | set(DEFAULT_SORT_FIELDS)
    sort = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        descending = part.startswith("-")
        name = to_snake_case(part.lstrip("-+"))
        if name not in allowed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot sort by '{name}'. Allowed: {', '.join(sorted(allowed))}"
            )
        sort.append((name, descending))
    return sort or [("id", False)]


def parse_query_params(query: Mapping[str, Any], spec: FilterSpec) -> QueryParams:
    """Build QueryParams from raw request query parameters"""
    params = QueryParams(limit=settings.DEFAULT_PAGE_SIZE)

    for raw_key, value in query.items():
        if value is None or value == "":
            continue
        key = to_snake_case(raw_key)

        if key == "limit":
            params.limit = min(max(_parse_int(key, value), 1), settings.MAX_PAGE_SIZE)
        elif key == "skip":
            params.skip = max(_parse_int(key, value), 0)
        elif key == "sort":
            params.sort = _parse_sort(str(value), spec)
        elif key == "search" and spec.search:
            params.search = str(value).strip() or None
        elif key in spec.fields:
            if spec.fields[key] is int:
                params.filters[key] = _parse_int(raw_key, value)
            else:
                params.filters[key] = spec.fields[key](value)
        # Unknown keys are ignored so clients can pass extra UI state

    return params


def apply_query_params(query: Query, model, params: QueryParams, spec: FilterSpec) -> Query:
    """Apply filters, search, sorting and pagination to an ORM query"""
    for name, value in params.filters.items():
        column = getattr(model, name)
        if spec.fields[name] is str:
            # autoescape keeps % and _ in user input literal
            query = query.filter(column.icontains(value, autoescape=True))
        else:
            query = query.filter(column == value)

    if params.search:
        query = query.filter(or_(*[
            getattr(model, name).icontains(params.search, autoescape=True)
            for name in spec.search
        ]))

    for name, descending in params.sort:
        column = getattr(model, name)
        query = query.order_by(column.desc() if descending else column.asc())

    return query.offset(params.skip).limit(params.limit)
