"""Row-fetch clients for the hosted survey store.

The store is a hosted Postgres exposed through a PostgREST-style REST layer.
Everything above this module sees it as one capability: give it a table, a
column projection, some equality/range predicates and a row cap, and get back
a list of flat dicts, or a ``StoreError``.

``RestStore`` talks HTTP via httpx.  ``MemoryStore`` evaluates the same
queries over in-memory tables (tests, offline CLI runs).
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

import httpx

from pulso.config import PulsoSettings

logger = logging.getLogger(__name__)

PredicateOp = Literal["eq", "gte", "lte"]

Row = dict[str, Any]


class StoreError(Exception):
    """The store could not be reached or returned something unusable."""


@dataclass(frozen=True)
class Predicate:
    """One ``column <op> value`` condition."""

    column: str
    op: PredicateOp
    value: int | float | str

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.column)
        if actual is None or isinstance(actual, bool):
            return False
        try:
            if self.op == "eq":
                return actual == self.value
            if self.op == "gte":
                return actual >= self.value
            if self.op == "lte":
                return actual <= self.value
        except TypeError:
            # text vs number; the database rejects the row
            return False
        raise ValueError(f"unsupported predicate op: {self.op!r}")


@dataclass(frozen=True)
class RowQuery:
    """A projection + predicates + limit against one table."""

    table: str
    columns: tuple[str, ...] = ()  # empty = all columns
    predicates: tuple[Predicate, ...] = ()
    limit: int | None = None
    order_by: str | None = None  # ascending


class RowStore(Protocol):
    def fetch_rows(self, query: RowQuery) -> list[Row]: ...


# ---------------------------------------------------------------------------
# REST store
# ---------------------------------------------------------------------------


def _format_value(value: int | float | str) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def query_params(query: RowQuery) -> list[tuple[str, str]]:
    """Translate a ``RowQuery`` into PostgREST query-string pairs.

    A column constrained twice (``gte`` + ``lte``) is sent as two separate
    params, which PostgREST ANDs together.
    """
    params: list[tuple[str, str]] = [
        ("select", ",".join(query.columns) if query.columns else "*"),
    ]
    for p in query.predicates:
        params.append((p.column, f"{p.op}.{_format_value(p.value)}"))
    if query.order_by:
        params.append(("order", f"{query.order_by}.asc"))
    if query.limit is not None:
        params.append(("limit", str(query.limit)))
    return params


class RestStore:
    """PostgREST client over httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        rest_path: str = "/rest/v1",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise StoreError("store URL is not configured (set PULSO_STORE_URL)")
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + rest_path,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def fetch_rows(self, query: RowQuery) -> list[Row]:
        try:
            resp = self._client.get(f"/{query.table}", params=query_params(query))
        except httpx.HTTPError as exc:
            raise StoreError(f"network error fetching {query.table}: {exc}") from exc

        if not resp.is_success:
            raise StoreError(
                f"store returned {resp.status_code} for {query.table}: {_error_message(resp)}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError(f"store returned invalid JSON for {query.table}") from exc
        if not isinstance(data, list):
            raise StoreError(f"expected a list of rows from {query.table}, got {type(data).__name__}")

        logger.debug("Fetched %d rows from %s", len(data), query.table)
        return [row for row in data if isinstance(row, dict)]

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RestStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and "message" in body:
        return str(body["message"])
    return str(body)[:200]


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


@dataclass
class MemoryStore:
    """Evaluates ``RowQuery`` objects over in-memory tables."""

    tables: dict[str, list[Row]] = field(default_factory=dict)

    def fetch_rows(self, query: RowQuery) -> list[Row]:
        if query.table not in self.tables:
            raise StoreError(f"unknown table: {query.table}")
        rows: Iterable[Row] = (
            r for r in self.tables[query.table] if all(p.matches(r) for p in query.predicates)
        )
        selected = list(rows)
        if query.order_by:
            col = query.order_by
            # Nulls last, as in Postgres ascending order
            selected.sort(key=lambda r: (r.get(col) is None, _sort_key(r.get(col))))
        if query.limit is not None:
            selected = selected[: query.limit]
        if query.columns:
            selected = [{c: r.get(c) for c in query.columns} for r in selected]
        else:
            selected = [dict(r) for r in selected]
        return selected

    @classmethod
    def from_json(cls, path: Path, default_table: str) -> MemoryStore:
        """Load tables from a JSON file.

        Accepts either a list of rows (stored under *default_table*) or an
        object mapping table names to lists of rows.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"cannot read rows from {path}: {exc}") from exc
        if isinstance(data, list):
            return cls(tables={default_table: data})
        if isinstance(data, dict) and all(isinstance(v, list) for v in data.values()):
            return cls(tables=dict(data))
        raise StoreError(f"{path} must hold a list of rows or a mapping of table -> rows")

    def close(self) -> None:
        """Nothing to release; present so callers can close any store."""

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value):
        return (0, value)
    return (1, str(value))


def build_store(settings: PulsoSettings, rows_file: Path | None = None) -> RestStore | MemoryStore:
    """Pick the store implementation for the given settings."""
    if rows_file is not None:
        return MemoryStore.from_json(rows_file, default_table=settings.survey_table)
    return RestStore(
        settings.store_url,
        settings.store_api_key,
        rest_path=settings.store_rest_path,
        timeout=settings.request_timeout,
    )


def close_store(store: RowStore) -> None:
    """Close *store* if it holds resources; stores without ``close`` are left alone."""
    close = getattr(store, "close", None)
    if callable(close):
        close()
