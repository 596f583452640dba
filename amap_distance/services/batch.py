from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from amap_distance.core.config import settings
from amap_distance.models.location import LocationValue
from amap_distance.models.schemas import RunConfig
from amap_distance.services.amap_client import AmapClient
from amap_distance.services.control import CancellationToken, FixedDelayPacer
from amap_distance.services.distance import DistanceCalculator
from amap_distance.services.exceptions import (
    ConfigurationError,
    InvalidInputError,
    PipelineError,
    RunCancelled,
)
from amap_distance.services.pager import page_through
from amap_distance.services.table import (
    BaseClient,
    FieldKind,
    Record,
    RecordUpdate,
    TableClient,
)

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING_BATCH = "processing_batch"
    FLUSHING = "flushing"
    DONE = "done"
    STOPPED = "stopped"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    NO_ROUTE = "no_route"
    NO_OUTPUT = "no_output"


@dataclass
class RecordOutcome:
    record_id: str
    status: OutcomeStatus
    fields: Dict[str, float] = field(default_factory=dict)
    reason: Optional[SkipReason] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    # accepted updates dropped because the run stopped before their flush
    discarded: int = 0
    total_records: int = 0
    batches_written: int = 0
    elapsed_seconds: float = 0.0
    state: RunState = RunState.IDLE
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def stopped(self) -> bool:
        return self.state is RunState.STOPPED

    def add(self, outcome: RecordOutcome) -> None:
        if outcome.status is OutcomeStatus.UPDATED:
            self.updated += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append((outcome.record_id, outcome.error or ""))


OutcomeCallback = Callable[[RecordOutcome], None]


class BatchOrchestrator:
    """Runs the distance pipeline over every record of one table.

    Records are fetched up front, sliced into ``batch_size`` chunks and
    processed strictly one at a time. Cancellation is polled before each page
    fetch, before each record and before each chunk's write.
    """

    def __init__(
        self,
        base: BaseClient,
        config: RunConfig,
        *,
        token: Optional[CancellationToken] = None,
        calculator: Optional[DistanceCalculator] = None,
        client_factory: Callable[[], AmapClient] = AmapClient,
        on_outcome: Optional[OutcomeCallback] = None,
        call_pacer: Optional[FixedDelayPacer] = None,
        batch_pacer: Optional[FixedDelayPacer] = None,
    ) -> None:
        self.base = base
        self.config = config
        self.token = token or CancellationToken()
        self._owns_token = token is None
        self._calculator = calculator
        self._client_factory = client_factory
        self.on_outcome = on_outcome

        self.batch_size = config.batch_size or settings.BATCH_SIZE
        self.page_size = config.page_size or settings.PAGE_SIZE
        self.call_pacer = call_pacer or FixedDelayPacer(
            settings.CALL_DELAY_SECONDS if config.call_delay_seconds is None else config.call_delay_seconds
        )
        self.batch_pacer = batch_pacer or FixedDelayPacer(
            settings.BATCH_DELAY_SECONDS if config.batch_delay_seconds is None else config.batch_delay_seconds
        )

        self.state = RunState.IDLE
        self.summary = RunSummary()

    def _set_state(self, state: RunState) -> None:
        self.state = state
        self.summary.state = state
        logger.debug("Run state -> %s", state.value)

    def _record(self, outcome: RecordOutcome) -> None:
        self.summary.add(outcome)
        if self.on_outcome is not None:
            self.on_outcome(outcome)

    def stop(self) -> None:
        self.token.cancel()

    async def run(self) -> RunSummary:
        self.summary = RunSummary()
        self._set_state(RunState.IDLE)
        if self._owns_token:
            self.token.reset()
        started = time.perf_counter()

        try:
            api_key = self._resolve_api_key()
            table = await self._resolve_table()

            self._set_state(RunState.FETCHING)
            records = await self._fetch_all(table)
            self.summary.total_records = len(records)
            logger.info(
                "Loaded %s records from table %s (mode=%s, batch_size=%s)",
                len(records),
                table.table_id,
                self.config.mode.value,
                self.batch_size,
            )

            async with self._calculator_scope(api_key) as calculator:
                await self._process(table, records, calculator)
            self._set_state(RunState.DONE)
        except RunCancelled:
            self._set_state(RunState.STOPPED)
            logger.warning("Run stopped by user")
        except PipelineError as exc:
            self._set_state(RunState.FAILED)
            logger.error("Run failed: %s", exc.message)
            raise
        except Exception as exc:
            self._set_state(RunState.FAILED)
            logger.exception("Batch processing failed: %s", exc)
            raise PipelineError(f"Batch processing failed: {exc}") from exc
        finally:
            self.summary.elapsed_seconds = time.perf_counter() - started

        logger.info(
            "Run %s in %.2fs: updated=%s failed=%s skipped=%s",
            self.state.value,
            self.summary.elapsed_seconds,
            self.summary.updated,
            self.summary.failed,
            self.summary.skipped,
        )
        return self.summary

    def _resolve_api_key(self) -> Optional[str]:
        api_key = self.config.api_key or settings.AMAP_API_KEY
        if not api_key and self._calculator is None:
            raise ConfigurationError("AMap API key is not configured")
        return api_key

    async def _resolve_table(self) -> TableClient:
        table = await self.base.get_table(self.config.table_id)

        location_ids = {f.id for f in await table.get_fields_of_type(FieldKind.LOCATION)}
        for label, field_id in (
            ("origin", self.config.origin_field_id),
            ("destination", self.config.destination_field_id),
        ):
            if field_id not in location_ids:
                raise ConfigurationError(f"{label} field {field_id} is not a location field")

        number_ids = {f.id for f in await table.get_fields_of_type(FieldKind.NUMBER)}
        for label, field_id in (
            ("distance", self.config.distance_field_id),
            ("duration", self.config.duration_field_id),
        ):
            if field_id and field_id not in number_ids:
                raise ConfigurationError(f"{label} output field {field_id} is not a number field")
        return table

    async def _fetch_all(self, table: TableClient) -> List[Record]:
        records: List[Record] = []
        try:
            async for record in page_through(table, self.page_size, self.token):
                records.append(record)
        except (RunCancelled, PipelineError):
            raise
        except Exception as exc:
            raise PipelineError(f"Failed to read records from table {table.table_id}: {exc}") from exc
        return records

    @asynccontextmanager
    async def _calculator_scope(self, api_key: Optional[str]) -> AsyncIterator[DistanceCalculator]:
        if self._calculator is not None:
            yield self._calculator
            return

        # fresh client and citycode cache for every run
        async with self._client_factory() as client:
            yield DistanceCalculator(client, api_key=api_key, base_url=settings.AMAP_BASE_URL)

    async def _process(
        self,
        table: TableClient,
        records: Sequence[Record],
        calculator: DistanceCalculator,
    ) -> None:
        batches = [
            records[start:start + self.batch_size]
            for start in range(0, len(records), self.batch_size)
        ]

        for number, batch in enumerate(batches, start=1):
            self._set_state(RunState.PROCESSING_BATCH)
            pending: List[Tuple[RecordUpdate, RecordOutcome]] = []

            for record in batch:
                if self.token.cancelled:
                    self.summary.discarded += len(pending)
                    raise RunCancelled(f"Stopped during batch {number}")
                accepted = await self._process_record(record, calculator)
                if accepted is not None:
                    pending.append(accepted)

            self._set_state(RunState.FLUSHING)
            if self.token.cancelled:
                self.summary.discarded += len(pending)
                raise RunCancelled(f"Stopped before writing batch {number}")

            if pending:
                await self._flush(table, pending, number)

            if number < len(batches):
                await self.batch_pacer.wait()

    async def _process_record(
        self,
        record: Record,
        calculator: DistanceCalculator,
    ) -> Optional[Tuple[RecordUpdate, RecordOutcome]]:
        config = self.config
        origin = LocationValue.from_cell(record.fields.get(config.origin_field_id))
        destination = LocationValue.from_cell(record.fields.get(config.destination_field_id))

        try:
            result = await calculator.compute(origin, destination, config.mode, config.strategy)
        except InvalidInputError as exc:
            logger.info("Skipping record %s: %s", record.record_id, exc.message)
            self._record(
                RecordOutcome(
                    record.record_id,
                    OutcomeStatus.SKIPPED,
                    reason=SkipReason.INVALID_INPUT,
                    error=exc.message,
                )
            )
            return None
        except Exception as exc:
            logger.warning("Record %s failed: %s", record.record_id, exc)
            self._record(RecordOutcome(record.record_id, OutcomeStatus.FAILED, error=str(exc)))
            await self.call_pacer.wait()
            return None

        await self.call_pacer.wait()

        fields: Dict[str, float] = {}
        if config.distance_field_id and result.distance_km is not None:
            fields[config.distance_field_id] = result.distance_km
        if config.duration_field_id and result.duration_min is not None:
            fields[config.duration_field_id] = result.duration_min

        if not fields:
            reason = SkipReason.NO_ROUTE if result.no_route else SkipReason.NO_OUTPUT
            logger.info("Record %s: no values to write (%s)", record.record_id, reason.value)
            self._record(RecordOutcome(record.record_id, OutcomeStatus.SKIPPED, reason=reason))
            return None

        update = RecordUpdate(record_id=record.record_id, fields=fields)
        return update, RecordOutcome(record.record_id, OutcomeStatus.UPDATED, fields=dict(fields))

    async def _flush(
        self,
        table: TableClient,
        pending: Sequence[Tuple[RecordUpdate, RecordOutcome]],
        number: int,
    ) -> None:
        updates = [update for update, _ in pending]
        try:
            await table.write_record_fields(updates)
        except Exception as exc:
            raise PipelineError(f"Failed to write batch {number}: {exc}") from exc

        self.summary.batches_written += 1
        for _, outcome in pending:
            self._record(outcome)
        logger.info("Batch %s updated %s records", number, len(updates))
