"""
Read access to the uploaded record tables.

A RecordSource returns one offset/limit page of rows per call; ``fetch_all``
walks pages sequentially until a short page signals the end. Report code
issues independent ``fetch_all`` calls concurrently, so the SQL source opens
its own session for every page.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from practicepulse.common.pagination import PageRequest
from practicepulse.config import settings
from practicepulse.records.models import RECORD_MODELS, RecordTable
from practicepulse.reports.aggregation import row_date
from practicepulse.reports.filters import FilterPredicate
from practicepulse.reports.periods import PeriodWindow

logger = logging.getLogger(__name__)


class RecordSourceError(Exception):
    """A page could not be read from the record store."""


@dataclass(frozen=True)
class RecordQuery:
    table: RecordTable
    organization_id: str
    columns: tuple[str, ...]
    window: PeriodWindow | None = None
    predicate: FilterPredicate = FilterPredicate()
    where: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def describe(self) -> str:
        span = f" {self.window.start_iso}..{self.window.end_iso}" if self.window else ""
        return f"{self.table.value}{span}"


class RecordSource(Protocol):
    async def fetch_page(self, query: RecordQuery, page: PageRequest) -> list[dict[str, Any]]: ...


async def fetch_all(source: RecordSource, query: RecordQuery, page_size: int | None = None) -> list[dict[str, Any]]:
    """Every row matching ``query``, read page by page."""
    page = PageRequest(page_size=page_size or settings.record_page_size)
    rows: list[dict[str, Any]] = []
    while True:
        batch = await source.fetch_page(query, page)
        rows.extend(batch)
        if page.is_last(len(batch)):
            break
        page = page.next()
    logger.debug("Fetched %d rows from %s in %d page(s)", len(rows), query.describe(), page.page + 1)
    return rows


class SqlRecordSource:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def statement(query: RecordQuery, page: PageRequest) -> Select:
        model = RECORD_MODELS[query.table]
        table_columns = model.__table__.c
        stmt = select(*(table_columns[name] for name in query.columns)).where(
            model.organization_id == query.organization_id
        )
        if query.window is not None:
            stmt = stmt.where(table_columns["date"] >= query.window.start, table_columns["date"] <= query.window.end)
        for name, value in query.where.items():
            stmt = stmt.where(table_columns[name] == value)
        stmt = stmt.where(*query.predicate.clauses(model))
        return stmt.order_by(model.id).offset(page.offset).limit(page.page_size)

    async def fetch_page(self, query: RecordQuery, page: PageRequest) -> list[dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(self.statement(query, page))
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as exc:
            logger.exception("Fetch from %s failed at offset %d", query.table.value, page.offset)
            raise RecordSourceError(f"Failed to fetch {query.table.value}") from exc


class InMemoryRecordSource:
    """RecordSource over materialised rows, applying the same filter semantics as SQL."""

    def __init__(self, tables: Mapping[RecordTable, Iterable[Mapping[str, Any]]] | None = None):
        self._tables: dict[RecordTable, list[dict[str, Any]]] = {
            table: [dict(row) for row in rows] for table, rows in (tables or {}).items()
        }

    def add(self, table: RecordTable, *rows: Mapping[str, Any]) -> None:
        self._tables.setdefault(table, []).extend(dict(row) for row in rows)

    def _matches(self, row: Mapping[str, Any], query: RecordQuery, columns: set[str]) -> bool:
        if row.get("organization_id") != query.organization_id:
            return False
        if query.window is not None and not query.window.contains(row_date(row)):
            return False
        if any(row.get(name) != value for name, value in query.where.items()):
            return False
        return query.predicate.matches(row, columns)

    async def fetch_page(self, query: RecordQuery, page: PageRequest) -> list[dict[str, Any]]:
        columns = set(RECORD_MODELS[query.table].__table__.c.keys())
        matching = [row for row in self._tables.get(query.table, []) if self._matches(row, query, columns)]
        return [
            {name: row.get(name) for name in query.columns}
            for row in matching[page.offset : page.offset + page.page_size]
        ]
