import logging

from fastapi import APIRouter, HTTPException

from amap_distance.models.schemas import (
    RecordFailure,
    RunConfig,
    RunResponse,
    RunSummaryResponse,
)
from amap_distance.services.run_registry import RunHandle, run_registry

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(handle: RunHandle) -> RunResponse:
    summary = handle.summary
    return RunResponse(
        run_id=handle.run_id,
        table_id=handle.config.table_id,
        mode=handle.config.mode,
        state=handle.state.value,
        done=handle.done,
        error=handle.error,
        created_at=handle.created_at,
        finished_at=handle.finished_at,
        summary=RunSummaryResponse(
            state=summary.state.value,
            stopped=summary.stopped,
            updated=summary.updated,
            failed=summary.failed,
            skipped=summary.skipped,
            discarded=summary.discarded,
            total_records=summary.total_records,
            batches_written=summary.batches_written,
            elapsed_seconds=round(summary.elapsed_seconds, 3),
            failures=[
                RecordFailure(record_id=record_id, message=message)
                for record_id, message in summary.failures
            ],
        ),
    )


@router.post("", response_model=RunResponse, status_code=202)
async def start_run(config: RunConfig, wait: bool = False) -> RunResponse:
    """Start a distance run; with ``wait=true`` respond once it has finished."""

    handle = run_registry.start(config)
    if wait:
        await run_registry.wait(handle.run_id)
    return _to_response(handle)


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(run_id: str) -> RunResponse:
    handle = run_registry.get(run_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return _to_response(handle)


@router.post("/{run_id}/stop", response_model=RunResponse)
async def stop_run(run_id: str) -> RunResponse:
    handle = run_registry.stop(run_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return _to_response(handle)
