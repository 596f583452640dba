from typing import List
from unittest.mock import AsyncMock

import httpx
import pytest

from amap_distance.models.location import DistanceResult, TravelMode
from amap_distance.models.schemas import RunConfig
from amap_distance.services.batch import (
    BatchOrchestrator,
    OutcomeStatus,
    RecordOutcome,
    RunState,
    SkipReason,
)
from amap_distance.services.control import CancellationToken, FixedDelayPacer
from amap_distance.services.exceptions import (
    ConfigurationError,
    InvalidInputError,
    PipelineError,
    ProviderError,
    TableNotFoundError,
)
from amap_distance.services.table import InMemoryBase

from helpers import (
    DESTINATION,
    DISTANCE,
    DURATION,
    NOTE,
    ORIGIN,
    FakeAmap,
    make_table,
    path_payload,
)

DRIVING_PATH = "/v5/direction/driving"


def make_config(**overrides) -> RunConfig:
    values = dict(
        table_id="tblTrips",
        origin_field_id=ORIGIN,
        destination_field_id=DESTINATION,
        mode=TravelMode.DRIVING,
        distance_field_id=DISTANCE,
        duration_field_id=DURATION,
        batch_size=10,
        call_delay_seconds=0,
        batch_delay_seconds=0,
    )
    values.update(overrides)
    return RunConfig(**values)


def make_base(table) -> InMemoryBase:
    base = InMemoryBase()
    base.add_table(table)
    return base


def fake_calculator(side_effect) -> AsyncMock:
    calculator = AsyncMock()
    calculator.compute = AsyncMock(side_effect=side_effect)
    return calculator


async def compute_ok(origin, destination, mode, strategy):
    if origin is None or not origin.location or destination is None or not destination.location:
        raise InvalidInputError("Origin has an empty location")
    return DistanceResult(distance_km=1.5, duration_min=10.0)


@pytest.mark.asyncio
async def test_twelve_records_two_batches_one_invalid(fake_amap: FakeAmap) -> None:
    fake_amap.on(DRIVING_PATH, path_payload(distance="1500", duration="600"))
    table = make_table(12, invalid=[7])
    orchestrator = BatchOrchestrator(make_base(table), make_config(), client_factory=fake_amap.client)

    summary = await orchestrator.run()

    assert summary.state is RunState.DONE
    assert not summary.stopped
    assert (summary.updated, summary.failed, summary.skipped) == (11, 0, 1)
    assert summary.total_records == 12
    assert summary.batches_written == 2
    assert [len(call) for call in table.write_calls] == [9, 2]
    assert len(fake_amap.calls(DRIVING_PATH)) == 11
    assert table.get_record("rec001").fields[DISTANCE] == 1.5
    assert table.get_record("rec001").fields[DURATION] == 10.0
    assert DISTANCE not in table.get_record("rec007").fields


@pytest.mark.asyncio
async def test_cancellation_mid_batch_stops_without_writing() -> None:
    table = make_table(12)
    token = CancellationToken()
    calls = 0

    async def compute(*args):
        nonlocal calls
        calls += 1
        if calls == 3:
            token.cancel()
        return DistanceResult(distance_km=2.0, duration_min=5.0)

    orchestrator = BatchOrchestrator(
        make_base(table), make_config(), token=token, calculator=fake_calculator(compute)
    )

    summary = await orchestrator.run()

    assert summary.state is RunState.STOPPED
    assert summary.stopped
    assert calls == 3
    assert (summary.updated, summary.failed, summary.skipped) == (0, 0, 0)
    assert summary.discarded == 3
    assert table.write_calls == []


@pytest.mark.asyncio
async def test_cancellation_in_second_batch_keeps_first_write() -> None:
    table = make_table(12)
    token = CancellationToken()
    outcomes: List[RecordOutcome] = []

    def on_outcome(outcome: RecordOutcome) -> None:
        outcomes.append(outcome)
        if len(outcomes) == 10:
            token.cancel()

    orchestrator = BatchOrchestrator(
        make_base(table),
        make_config(),
        token=token,
        calculator=fake_calculator(compute_ok),
        on_outcome=on_outcome,
    )

    summary = await orchestrator.run()

    assert summary.stopped
    assert summary.updated == 10
    assert summary.batches_written == 1
    assert len(table.write_calls) == 1


@pytest.mark.asyncio
async def test_http_500_fails_one_record_and_continues(fake_amap: FakeAmap) -> None:
    table = make_table(3)

    def respond(request: httpx.Request):
        if request.url.params["origin"].startswith("116.482,"):
            return httpx.Response(500)
        return path_payload()

    fake_amap.on(DRIVING_PATH, respond)
    orchestrator = BatchOrchestrator(make_base(table), make_config(), client_factory=fake_amap.client)

    summary = await orchestrator.run()

    assert (summary.updated, summary.failed, summary.skipped) == (2, 1, 0)
    assert summary.failures[0][0] == "rec002"
    assert "HTTP error 500" in summary.failures[0][1]
    assert len(fake_amap.calls(DRIVING_PATH)) == 3


@pytest.mark.asyncio
async def test_provider_error_is_recorded_per_record() -> None:
    table = make_table(2)

    async def compute(origin, *args):
        if origin.location == "起点 1":
            raise ProviderError("AMap v5 driving error: INVALID_PARAMS (infocode: 20000)")
        return DistanceResult(distance_km=3.0, duration_min=None)

    outcomes: List[RecordOutcome] = []
    orchestrator = BatchOrchestrator(
        make_base(table), make_config(), calculator=fake_calculator(compute), on_outcome=outcomes.append
    )

    summary = await orchestrator.run()

    assert (summary.updated, summary.failed) == (1, 1)
    assert summary.failures == [("rec001", "AMap v5 driving error: INVALID_PARAMS (infocode: 20000)")]
    updated = [o for o in outcomes if o.status is OutcomeStatus.UPDATED]
    assert updated[0].fields == {DISTANCE: 3.0}


@pytest.mark.asyncio
async def test_skip_reasons() -> None:
    table = make_table(3, invalid=[1])
    results = iter([DistanceResult.empty(no_route=True), DistanceResult(distance_km=None, duration_min=12.0)])

    async def compute(origin, destination, mode, strategy):
        if not origin.location:
            raise InvalidInputError("Origin has an empty location")
        return next(results)

    outcomes: List[RecordOutcome] = []
    orchestrator = BatchOrchestrator(
        make_base(table),
        make_config(duration_field_id=None),
        calculator=fake_calculator(compute),
        on_outcome=outcomes.append,
    )

    summary = await orchestrator.run()

    assert (summary.updated, summary.failed, summary.skipped) == (0, 0, 3)
    assert [o.reason for o in outcomes] == [
        SkipReason.INVALID_INPUT,
        SkipReason.NO_ROUTE,
        SkipReason.NO_OUTPUT,
    ]
    assert table.write_calls == []


@pytest.mark.asyncio
async def test_pacing_follows_each_provider_call_and_batch() -> None:
    table = make_table(5, invalid=[2])
    sleeps: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    call_pacer = FixedDelayPacer(0.05, sleep=fake_sleep)
    batch_pacer = FixedDelayPacer(0.1, sleep=fake_sleep)
    orchestrator = BatchOrchestrator(
        make_base(table),
        make_config(batch_size=2),
        calculator=fake_calculator(compute_ok),
        call_pacer=call_pacer,
        batch_pacer=batch_pacer,
    )

    await orchestrator.run()

    # four provider calls (record 2 is skipped before any call), three batches
    assert call_pacer.waits == 4
    assert batch_pacer.waits == 2
    assert sorted(sleeps) == [0.05] * 4 + [0.1] * 2


@pytest.mark.asyncio
async def test_rerun_yields_same_classification(fake_amap: FakeAmap) -> None:
    fake_amap.on(DRIVING_PATH, path_payload())
    table = make_table(4, invalid=[3])
    orchestrator = BatchOrchestrator(make_base(table), make_config(), client_factory=fake_amap.client)

    first = await orchestrator.run()
    first_counts = (first.updated, first.failed, first.skipped)
    second = await orchestrator.run()

    assert first_counts == (second.updated, second.failed, second.skipped) == (3, 0, 1)


@pytest.mark.asyncio
async def test_cancel_before_fetch_stops_with_empty_summary() -> None:
    table = make_table(3)
    token = CancellationToken()
    token.cancel()
    calculator = fake_calculator(compute_ok)

    summary = await BatchOrchestrator(make_base(table), make_config(), token=token, calculator=calculator).run()

    assert summary.stopped
    assert summary.total_records == 0
    calculator.compute.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_table_aborts_run() -> None:
    orchestrator = BatchOrchestrator(InMemoryBase(), make_config(), calculator=fake_calculator(compute_ok))

    with pytest.raises(TableNotFoundError):
        await orchestrator.run()

    assert orchestrator.state is RunState.FAILED


@pytest.mark.asyncio
async def test_output_field_must_be_numeric() -> None:
    orchestrator = BatchOrchestrator(
        make_base(make_table(1)),
        make_config(distance_field_id=NOTE),
        calculator=fake_calculator(compute_ok),
    )

    with pytest.raises(ConfigurationError):
        await orchestrator.run()


@pytest.mark.asyncio
async def test_missing_api_key_aborts_run(monkeypatch) -> None:
    from amap_distance.services import batch as batch_module

    monkeypatch.setattr(batch_module.settings, "AMAP_API_KEY", None)
    orchestrator = BatchOrchestrator(make_base(make_table(1)), make_config())

    with pytest.raises(ConfigurationError):
        await orchestrator.run()


@pytest.mark.asyncio
async def test_write_failure_aborts_run() -> None:
    table = make_table(2)
    table.write_record_fields = AsyncMock(side_effect=RuntimeError("quota exceeded"))
    orchestrator = BatchOrchestrator(make_base(table), make_config(), calculator=fake_calculator(compute_ok))

    with pytest.raises(PipelineError) as exc_info:
        await orchestrator.run()

    assert "quota exceeded" in exc_info.value.message
    assert orchestrator.summary.updated == 0
    assert orchestrator.state is RunState.FAILED


@pytest.mark.asyncio
async def test_page_failure_aborts_run() -> None:
    table = make_table(2)
    table.get_record_page = AsyncMock(side_effect=RuntimeError("backend unavailable"))
    orchestrator = BatchOrchestrator(make_base(table), make_config(), calculator=fake_calculator(compute_ok))

    with pytest.raises(PipelineError) as exc_info:
        await orchestrator.run()

    assert "backend unavailable" in exc_info.value.message
