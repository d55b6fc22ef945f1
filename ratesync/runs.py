from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import StrEnum

from pydantic import BaseModel

from ratesync.exceptions.custom import RunInProgressError
from ratesync.schemas.responses import PricingBatchResponse, SyncBatchResponse

RunResult = PricingBatchResponse | SyncBatchResponse


class RunKind(StrEnum):
    pricing = "pricing"
    sync = "sync"


class RunStatus(StrEnum):
    running = "running"
    completed = "completed"
    failed = "failed"


class Run(BaseModel):
    run_id: str
    kind: RunKind
    status: RunStatus
    created_at: datetime
    finished_at: datetime | None = None
    lease_expires_at: datetime
    result: RunResult | None = None
    error: str | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunRegistry:
    """Batch runs of this process, with one lease per run kind.

    A second run of a kind is refused while the first is running and its
    lease has not expired. Single-process only.
    """

    def __init__(
        self,
        lease_seconds: float = 600.0,
        max_runs: int = 200,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._runs: dict[str, Run] = {}
        self._lease = timedelta(seconds=lease_seconds)
        self._max_runs = max_runs
        self._clock = clock

    def _evict(self) -> None:
        if len(self._runs) <= self._max_runs:
            return
        # Remove oldest finished runs first
        candidates = sorted(
            (r for r in self._runs.values() if r.status != RunStatus.running),
            key=lambda r: r.created_at,
        )
        while len(self._runs) > self._max_runs and candidates:
            self._runs.pop(candidates.pop(0).run_id, None)

    def active_run(self, kind: RunKind) -> Run | None:
        now = self._clock()
        for run in self._runs.values():
            if run.kind == kind and run.status == RunStatus.running and run.lease_expires_at > now:
                return run
        return None

    def start_run(self, kind: RunKind) -> Run:
        if active := self.active_run(kind):
            raise RunInProgressError(kind, active.run_id)
        now = self._clock()
        run = Run(
            run_id=uuid.uuid4().hex[:12],
            kind=kind,
            status=RunStatus.running,
            created_at=now,
            lease_expires_at=now + self._lease,
        )
        self._runs[run.run_id] = run
        self._evict()
        return run

    def get_run(self, run_id: str) -> Run | None:
        return self._runs.get(run_id)

    def list_runs(self, kind: RunKind | None = None) -> list[Run]:
        runs = [r for r in self._runs.values() if kind is None or r.kind == kind]
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    def mark_completed(self, run_id: str, result: RunResult) -> None:
        if run := self._runs.get(run_id):
            run.status = RunStatus.completed
            run.result = result
            run.finished_at = self._clock()

    def mark_failed(self, run_id: str, error: str) -> None:
        if run := self._runs.get(run_id):
            run.status = RunStatus.failed
            run.error = error
            run.finished_at = self._clock()
