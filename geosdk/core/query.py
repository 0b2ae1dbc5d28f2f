"""Structured requests against address partitions.

A request names its partition sources, the columns to project, computed
columns, a predicate tree, order keys and a limit. ``render_request`` turns it
into SQL text plus bound parameters; user values only ever travel as
parameters. ``merge_rows`` applies the same ordering in Python when rows from
several per-source requests have to be combined.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from geosdk.core.security import quote_identifier, quote_literal, sanitize_columns


@dataclass(frozen=True)
class Eq:
    column: str
    value: Any


@dataclass(frozen=True)
class Between:
    """Inclusive range on a column."""
    column: str
    low: Any
    high: Any


@dataclass(frozen=True)
class Contains:
    """Substring test; case_insensitive upper-cases both sides."""
    column: str
    value: str
    case_insensitive: bool = True


@dataclass(frozen=True)
class IsNotNull:
    column: str


@dataclass(frozen=True)
class And:
    parts: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    parts: Tuple["Predicate", ...]


Predicate = Union[Eq, Between, Contains, IsNotNull, And, Or]


def all_of(*parts: Optional[Predicate]) -> Optional[Predicate]:
    """AND the given predicates, ignoring None; collapses single parts."""
    present = tuple(p for p in parts if p is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(present)


def any_of(parts: Iterable[Predicate]) -> Optional[Predicate]:
    present = tuple(p for p in parts if p is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return Or(present)


@dataclass(frozen=True)
class OrderKey:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class ComputedColumn:
    """SQL expression exposed under a whitelisted alias, with its bound values."""
    name: str
    expression: str
    params: Tuple[Any, ...] = ()


@dataclass
class AddressRequest:
    """One read over one or more partition files."""
    sources: List[str]
    columns: Sequence[str]
    where: Optional[Predicate] = None
    computed: Sequence[ComputedColumn] = ()
    order_by: Sequence[OrderKey] = ()
    limit: Optional[int] = None

    def for_source(self, source: str) -> "AddressRequest":
        """Same request restricted to a single source."""
        return AddressRequest(
            sources=[source],
            columns=self.columns,
            where=self.where,
            computed=self.computed,
            order_by=self.order_by,
            limit=self.limit,
        )


def render_source(sources: Sequence[str]) -> str:
    """read_parquet over the given files; schemas are unioned by column name."""
    if not sources:
        raise ValueError("A request needs at least one partition source")
    files = ", ".join(quote_literal(s) for s in sources)
    return f"read_parquet([{files}], union_by_name = true)"


def render_predicate(predicate: Predicate, params: List[Any]) -> str:
    """Render a predicate tree, appending bound values to params in text order."""
    if isinstance(predicate, Eq):
        params.append(predicate.value)
        return f"{_column(predicate.column)} = ?"
    if isinstance(predicate, Between):
        params.extend([predicate.low, predicate.high])
        return f"{_column(predicate.column)} BETWEEN ? AND ?"
    if isinstance(predicate, Contains):
        # contains() has no wildcard syntax, unlike LIKE
        if predicate.case_insensitive:
            params.append(predicate.value.upper())
            return f"contains(upper(coalesce({_column(predicate.column)}, '')), ?)"
        params.append(predicate.value)
        return f"contains(coalesce({_column(predicate.column)}, ''), ?)"
    if isinstance(predicate, IsNotNull):
        return f"{_column(predicate.column)} IS NOT NULL"
    if isinstance(predicate, (And, Or)):
        joiner = " AND " if isinstance(predicate, And) else " OR "
        return "(" + joiner.join(render_predicate(p, params) for p in predicate.parts) + ")"
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def render_request(request: AddressRequest) -> Tuple[str, List[Any]]:
    """
    Render a request to SQL.

    Args:
        request: The request to render

    Returns:
        (sql, params) ready for cursor.execute
    """
    params: List[Any] = []
    select = [_column(c) for c in sanitize_columns(request.columns)]
    for computed in request.computed:
        sanitize_columns([computed.name])
        select.append(f"{computed.expression} AS {quote_identifier(computed.name)}")
        params.extend(computed.params)

    sql = f"SELECT {', '.join(select)} FROM {render_source(request.sources)}"
    if request.where is not None:
        sql += " WHERE " + render_predicate(request.where, params)
    if request.order_by:
        keys = []
        for key in request.order_by:
            sanitize_columns([key.column])
            direction = "DESC" if key.descending else "ASC"
            keys.append(f"{quote_identifier(key.column)} {direction} NULLS LAST")
        sql += " ORDER BY " + ", ".join(keys)
    if request.limit is not None:
        sql += " LIMIT ?"
        params.append(int(request.limit))
    return sql, params


def sort_rows(rows: Iterable[Dict[str, Any]], order_by: Sequence[OrderKey]) -> List[Dict[str, Any]]:
    """
    Order rows by several keys, missing values last for every key.

    Applied as successive stable sorts from the last key to the first.
    """
    result = list(rows)
    for key in reversed(order_by):
        present = [r for r in result if r.get(key.column) is not None]
        missing = [r for r in result if r.get(key.column) is None]
        present.sort(key=lambda r: r[key.column], reverse=key.descending)
        result = present + missing
    return result


def merge_rows(
    batches: Iterable[List[Dict[str, Any]]],
    order_by: Sequence[OrderKey],
    limit: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Combine per-source results, re-apply ordering and the limit."""
    rows = [row for batch in batches for row in batch]
    rows = sort_rows(rows, order_by)
    if limit is not None:
        rows = rows[:limit]
    return rows


def _column(name: str) -> str:
    sanitize_columns([name])
    return quote_identifier(name)
