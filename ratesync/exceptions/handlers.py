import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import ChannelError, ConfigurationError, RunInProgressError, StoreError

logger = logging.getLogger(__name__)


async def configuration_error_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc.message)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": f"Configuration error: {exc.message}"},
    )


async def run_in_progress_handler(_request: Request, exc: RunInProgressError) -> JSONResponse:
    logger.warning("Rejected overlapping %s run (active run_id=%s)", exc.kind, exc.run_id)
    return JSONResponse(
        status_code=409,
        content={"success": False, "error": str(exc), "run_id": exc.run_id},
    )


async def channel_error_handler(_request: Request, exc: ChannelError) -> JSONResponse:
    logger.error("Channel error: %s (channel=%s, status=%s)", exc.message, exc.channel, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": f"Channel error: {exc.message}"},
    )


async def store_error_handler(_request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store error: %s", exc.message)
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": f"Store error: {exc.message}"},
    )
