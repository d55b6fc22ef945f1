import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ratesync.dependencies import CronAuth, PricingBatchDep, RunRegistryDep, SyncBatchDep
from ratesync.runs import RunKind, RunRegistry, RunResult
from ratesync.schemas.responses import PricingBatchResponse, SyncBatchResponse
from ratesync.services.batch import describe_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", dependencies=[CronAuth])


async def _run_batch(
    kind: RunKind,
    registry: RunRegistry,
    operation: Callable[[], Awaitable[RunResult]],
) -> RunResult | JSONResponse:
    run = registry.start_run(kind)
    logger.info("Starting %s run %s", kind, run.run_id)
    try:
        result = await operation()
    except Exception as exc:
        logger.exception("%s run %s failed", kind, run.run_id)
        registry.mark_failed(run.run_id, describe_error(exc))
        return JSONResponse(
            status_code=500,
            content={"success": False, "run_id": run.run_id, "error": describe_error(exc)},
        )
    result.run_id = run.run_id
    registry.mark_completed(run.run_id, result)
    return result


@router.api_route("/apply-pricing", methods=["GET", "POST"], response_model=PricingBatchResponse)
async def apply_pricing(service: PricingBatchDep, registry: RunRegistryDep):
    return await _run_batch(RunKind.pricing, registry, service.run)


@router.api_route("/sync-channels", methods=["GET", "POST"], response_model=SyncBatchResponse)
async def sync_channels(service: SyncBatchDep, registry: RunRegistryDep):
    return await _run_batch(RunKind.sync, registry, service.run)
