from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from amap_distance.core.tracing import reset_trace_id, set_trace_id
from amap_distance.models.schemas import RunConfig
from amap_distance.services.amap_client import AmapClient
from amap_distance.services.batch import BatchOrchestrator, RunState, RunSummary
from amap_distance.services.control import CancellationToken
from amap_distance.services.exceptions import PipelineError
from amap_distance.services.table import BaseClient, base_store

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunHandle:
    run_id: str
    config: RunConfig
    token: CancellationToken
    orchestrator: BatchOrchestrator
    task: Optional[asyncio.Task] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @property
    def state(self) -> RunState:
        return self.orchestrator.state

    @property
    def summary(self) -> RunSummary:
        return self.orchestrator.summary

    @property
    def done(self) -> bool:
        return self.finished_at is not None


class RunRegistry:
    """Tracks background runs for the lifetime of the process."""

    def __init__(
        self,
        base: BaseClient,
        client_factory: Callable[[], AmapClient] = AmapClient,
    ) -> None:
        self.base = base
        self.client_factory = client_factory
        self._runs: Dict[str, RunHandle] = {}

    def start(self, config: RunConfig) -> RunHandle:
        run_id = uuid.uuid4().hex
        token = CancellationToken()
        orchestrator = BatchOrchestrator(
            self.base,
            config,
            token=token,
            client_factory=self.client_factory,
        )
        handle = RunHandle(run_id=run_id, config=config, token=token, orchestrator=orchestrator)
        self._runs[run_id] = handle
        handle.task = asyncio.create_task(self._execute(handle))
        logger.info("Started run %s on table %s (%s)", run_id, config.table_id, config.mode.value)
        return handle

    async def _execute(self, handle: RunHandle) -> None:
        trace_token = set_trace_id(handle.run_id)
        try:
            await handle.orchestrator.run()
        except PipelineError as exc:
            handle.error = exc.message
        except Exception as exc:  # pragma: no cover - orchestrator wraps everything
            logger.exception("Run %s crashed: %s", handle.run_id, exc)
            handle.error = str(exc)
        finally:
            handle.finished_at = _utcnow()
            reset_trace_id(trace_token)

    async def wait(self, run_id: str) -> Optional[RunHandle]:
        handle = self._runs.get(run_id)
        if handle is not None and handle.task is not None:
            await asyncio.shield(handle.task)
        return handle

    def get(self, run_id: str) -> Optional[RunHandle]:
        return self._runs.get(run_id)

    def stop(self, run_id: str) -> Optional[RunHandle]:
        handle = self._runs.get(run_id)
        if handle is None:
            return None
        if not handle.done:
            handle.token.cancel()
            logger.info("Stop requested for run %s", run_id)
        return handle


run_registry = RunRegistry(base_store)
