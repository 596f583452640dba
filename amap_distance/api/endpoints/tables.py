import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException

from amap_distance.models.schemas import (
    FieldSchema,
    RecordSchema,
    TableCreateRequest,
    TableResponse,
)
from amap_distance.services.exceptions import TableNotFoundError
from amap_distance.services.table import (
    FieldDescriptor,
    FieldKind,
    InMemoryTable,
    Record,
    base_store,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_table(table_id: str) -> InMemoryTable:
    try:
        return await base_store.get_table(table_id)
    except TableNotFoundError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("", response_model=List[TableResponse])
async def list_tables() -> List[TableResponse]:
    tables = await base_store.enumerate_tables()
    return [TableResponse(id=t.id, name=t.name) for t in tables]


@router.post("", response_model=TableResponse, status_code=201)
async def create_table(request: TableCreateRequest) -> TableResponse:
    table = InMemoryTable(
        name=request.name,
        fields=[FieldDescriptor(id=f.id, name=f.name, kind=f.kind) for f in request.fields],
        records=[Record(record_id=r.record_id, fields=dict(r.fields)) for r in request.records],
    )
    base_store.add_table(table)
    logger.info("Created table %s with %s records", table.table_id, len(request.records))
    return TableResponse(id=table.table_id, name=table.name)


@router.get("/{table_id}/fields", response_model=List[FieldSchema])
async def list_fields(table_id: str, kind: Optional[FieldKind] = None) -> List[FieldSchema]:
    table = await _get_table(table_id)
    if kind is None:
        fields = list(table.fields.values())
    else:
        fields = await table.get_fields_of_type(kind)
    return [FieldSchema(id=f.id, name=f.name, kind=f.kind) for f in fields]


@router.get("/{table_id}/records", response_model=List[RecordSchema])
async def list_records(table_id: str) -> List[RecordSchema]:
    table = await _get_table(table_id)
    return [RecordSchema(record_id=r.record_id, fields=r.fields) for r in table.records]
