"""Host table collaborator.

The pipeline only talks to the :class:`BaseClient` / :class:`TableClient`
protocols. :class:`InMemoryBase` implements them for the HTTP API and tests.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from amap_distance.services.exceptions import TableNotFoundError

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    LOCATION = "location"
    NUMBER = "number"
    TEXT = "text"


@dataclass(frozen=True)
class FieldDescriptor:
    id: str
    name: str
    kind: FieldKind


@dataclass(frozen=True)
class TableHandle:
    id: str
    name: str


@dataclass
class Record:
    record_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordPage:
    records: List[Record]
    next_cursor: Optional[str]
    has_more: bool


@dataclass(frozen=True)
class RecordUpdate:
    record_id: str
    fields: Dict[str, float]


class TableClient(Protocol):
    table_id: str

    async def get_fields_of_type(self, kind: FieldKind) -> List[FieldDescriptor]: ...

    async def get_record_page(self, page_size: int, cursor: Optional[str] = None) -> RecordPage: ...

    async def write_record_fields(self, updates: Sequence[RecordUpdate]) -> None: ...


class BaseClient(Protocol):
    async def enumerate_tables(self) -> List[TableHandle]: ...

    async def get_table(self, table_id: str) -> TableClient: ...


class InMemoryTable:
    def __init__(
        self,
        name: str,
        fields: Sequence[FieldDescriptor],
        records: Sequence[Record] = (),
        table_id: Optional[str] = None,
    ) -> None:
        self.table_id = table_id or f"tbl{uuid.uuid4().hex[:12]}"
        self.name = name
        self.fields: Dict[str, FieldDescriptor] = {f.id: f for f in fields}
        self._records: Dict[str, Record] = {r.record_id: r for r in records}
        self.write_calls: List[List[RecordUpdate]] = []

    @property
    def handle(self) -> TableHandle:
        return TableHandle(id=self.table_id, name=self.name)

    @property
    def records(self) -> List[Record]:
        return list(self._records.values())

    def get_record(self, record_id: str) -> Record:
        return self._records[record_id]

    async def get_fields_of_type(self, kind: FieldKind) -> List[FieldDescriptor]:
        return [f for f in self.fields.values() if f.kind == FieldKind(kind)]

    async def get_record_page(self, page_size: int, cursor: Optional[str] = None) -> RecordPage:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        start = int(cursor) if cursor else 0
        ordered = list(self._records.values())
        chunk = ordered[start:start + page_size]
        end = start + len(chunk)
        has_more = end < len(ordered)
        return RecordPage(
            records=[Record(r.record_id, dict(r.fields)) for r in chunk],
            next_cursor=str(end) if has_more else None,
            has_more=has_more,
        )

    async def write_record_fields(self, updates: Sequence[RecordUpdate]) -> None:
        for update in updates:
            if update.record_id not in self._records:
                raise KeyError(f"Unknown record {update.record_id}")
            unknown = [fid for fid in update.fields if fid not in self.fields]
            if unknown:
                raise KeyError(f"Unknown fields {unknown} for record {update.record_id}")

        for update in updates:
            self._records[update.record_id].fields.update(update.fields)
        self.write_calls.append(list(updates))
        logger.debug("Table %s: wrote %s records", self.table_id, len(updates))


class InMemoryBase:
    def __init__(self) -> None:
        self._tables: Dict[str, InMemoryTable] = {}

    def add_table(self, table: InMemoryTable) -> InMemoryTable:
        self._tables[table.table_id] = table
        return table

    async def enumerate_tables(self) -> List[TableHandle]:
        return [table.handle for table in self._tables.values()]

    async def get_table(self, table_id: str) -> InMemoryTable:
        table = self._tables.get(table_id)
        if table is None:
            raise TableNotFoundError(f"Table {table_id} not found")
        return table


base_store = InMemoryBase()
