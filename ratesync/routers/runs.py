from fastapi import APIRouter, HTTPException

from ratesync.dependencies import CronAuth, RunRegistryDep
from ratesync.runs import RunKind
from ratesync.schemas.responses import RunStatusResponse

router = APIRouter(prefix="/runs", dependencies=[CronAuth])


@router.get("", response_model=list[RunStatusResponse])
async def list_runs(registry: RunRegistryDep, kind: RunKind | None = None) -> list[RunStatusResponse]:
    return [RunStatusResponse(**run.model_dump(mode="json")) for run in registry.list_runs(kind)]


@router.get("/{run_id}", response_model=RunStatusResponse)
async def get_run_status(run_id: str, registry: RunRegistryDep) -> RunStatusResponse:
    run = registry.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunStatusResponse(**run.model_dump(mode="json"))
