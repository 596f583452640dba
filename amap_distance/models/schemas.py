from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from amap_distance.models.location import TravelMode
from amap_distance.services.table import FieldKind

DEFAULT_DRIVING_STRATEGY = "32"


class RunConfig(BaseModel):
    """User selections for one batch run."""

    table_id: str = Field(..., min_length=1)
    origin_field_id: str = Field(..., min_length=1, description="Location field holding the start point")
    destination_field_id: str = Field(..., min_length=1, description="Location field holding the end point")
    mode: TravelMode = TravelMode.DRIVING
    strategy: Optional[str] = Field(default=None, description="Numeric AMap strategy code (driving/transit only)")
    distance_field_id: Optional[str] = Field(default=None, description="Number field receiving kilometers")
    duration_field_id: Optional[str] = Field(default=None, description="Number field receiving minutes")
    api_key: Optional[str] = Field(default=None, repr=False)
    batch_size: Optional[int] = Field(default=None, ge=1, le=500)
    page_size: Optional[int] = Field(default=None, ge=1, le=5000)
    call_delay_seconds: Optional[float] = Field(default=None, ge=0, le=10)
    batch_delay_seconds: Optional[float] = Field(default=None, ge=0, le=60)

    @field_validator("strategy", "distance_field_id", "duration_field_id", "api_key", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("strategy")
    @classmethod
    def numeric_strategy(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip().isdigit():
            raise ValueError("strategy must be a numeric code")
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def check_fields(self) -> "RunConfig":
        if self.origin_field_id == self.destination_field_id:
            raise ValueError("origin and destination must be different fields")
        if not self.distance_field_id and not self.duration_field_id:
            raise ValueError("select at least one output field (distance or duration)")
        if self.distance_field_id and self.distance_field_id == self.duration_field_id:
            raise ValueError("distance and duration outputs must be different fields")

        if not self.mode.accepts_strategy:
            self.strategy = None
        elif self.mode is TravelMode.DRIVING and self.strategy is None:
            self.strategy = DEFAULT_DRIVING_STRATEGY
        return self


class LocationCell(BaseModel):
    location: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    cityname: Optional[str] = None
    address: Optional[str] = None
    adname: Optional[str] = None
    name: Optional[str] = None
    pname: Optional[str] = None


class FieldSchema(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    kind: FieldKind


class RecordSchema(BaseModel):
    record_id: str = Field(..., min_length=1)
    fields: Dict[str, Any] = Field(default_factory=dict)


class TableCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    fields: List[FieldSchema]
    records: List[RecordSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_ids(self) -> "TableCreateRequest":
        field_ids = [f.id for f in self.fields]
        if len(set(field_ids)) != len(field_ids):
            raise ValueError("field ids must be unique")
        record_ids = [r.record_id for r in self.records]
        if len(set(record_ids)) != len(record_ids):
            raise ValueError("record ids must be unique")
        return self


class TableResponse(BaseModel):
    id: str
    name: str


class RecordFailure(BaseModel):
    record_id: str
    message: str


class RunSummaryResponse(BaseModel):
    state: str
    stopped: bool
    updated: int
    failed: int
    skipped: int
    discarded: int
    total_records: int
    batches_written: int
    elapsed_seconds: float
    failures: List[RecordFailure] = []


class RunResponse(BaseModel):
    run_id: str
    table_id: str
    mode: TravelMode
    state: str
    done: bool
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None
    summary: RunSummaryResponse


class DistanceRequest(BaseModel):
    origin: LocationCell
    destination: LocationCell
    mode: TravelMode = TravelMode.DRIVING
    strategy: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)


class DistanceResponse(BaseModel):
    mode: TravelMode
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None
    no_route: bool = False
