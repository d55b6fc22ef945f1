import logging
import sys
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

import httpx
from fastapi import FastAPI

from ratesync.config import Settings
from ratesync.database import create_engine, create_session_factory, init_models
from ratesync.exceptions.custom import ChannelError, ConfigurationError, RunInProgressError, StoreError
from ratesync.exceptions.handlers import (
    channel_error_handler,
    configuration_error_handler,
    run_in_progress_handler,
    store_error_handler,
)
from ratesync.routers.cron import router as cron_router
from ratesync.routers.forecast import router as forecast_router
from ratesync.routers.runs import router as runs_router
from ratesync.routers.webhooks import router as webhooks_router
from ratesync.runs import RunRegistry
from ratesync.schemas.domain import ChannelType
from ratesync.services.agoda import AgodaService
from ratesync.services.channel_adapter import ChannelAdapter
from ratesync.services.channel_manager import ChannelManager
from ratesync.services.channel_registry import ChannelConnectionRegistry
from ratesync.services.expedia import ExpediaService
from ratesync.services.occupancy import OccupancyEstimator
from ratesync.services.pricing_batch import PricingBatchService
from ratesync.services.sql_store import SqlInventoryStore
from ratesync.services.sync_batch import SyncBatchService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    engine = create_engine(settings.database_url)
    await init_models(engine)
    store = SqlInventoryStore(create_session_factory(engine))
    tz = ZoneInfo(settings.pricing_timezone)

    async with httpx.AsyncClient(timeout=settings.channel_timeout_seconds) as client:
        adapters: dict[ChannelType, ChannelAdapter] = {
            ChannelType.AGODA: AgodaService(client, settings.agoda_base_url),
        }
        if settings.expedia_client_id and settings.expedia_client_secret:
            adapters[ChannelType.EXPEDIA] = ExpediaService(
                client,
                settings.expedia_client_id,
                settings.expedia_client_secret,
                base_url=settings.expedia_base_url,
            )
        else:
            logger.info("Expedia credentials not configured, Expedia connections will fail to sync")

        occupancy = OccupancyEstimator(store, lookback_days=settings.occupancy_lookback_days)
        channel_manager = ChannelManager(store, adapters)

        app.state.settings = settings
        app.state.store = store
        app.state.occupancy = occupancy
        app.state.channel_manager = channel_manager
        app.state.run_registry = RunRegistry(lease_seconds=settings.run_lease_seconds)
        app.state.pricing_batch = PricingBatchService(
            store,
            occupancy,
            horizon_days=settings.horizon_days,
            concurrency=settings.batch_concurrency,
            entity_timeout=settings.entity_timeout_seconds,
            run_budget_seconds=settings.run_budget_seconds,
            tz=tz,
        )
        app.state.sync_batch = SyncBatchService(
            ChannelConnectionRegistry(store),
            channel_manager,
            window_days=settings.horizon_days,
            pull_lookback_hours=settings.pull_lookback_hours,
            concurrency=settings.batch_concurrency,
            entity_timeout=settings.entity_timeout_seconds,
            run_budget_seconds=settings.run_budget_seconds,
            tz=tz,
        )

        try:
            yield
        finally:
            await engine.dispose()


app = FastAPI(title="Ratesync", lifespan=lifespan)

app.add_exception_handler(ConfigurationError, configuration_error_handler)
app.add_exception_handler(RunInProgressError, run_in_progress_handler)
app.add_exception_handler(ChannelError, channel_error_handler)
app.add_exception_handler(StoreError, store_error_handler)

app.include_router(cron_router)
app.include_router(runs_router)
app.include_router(webhooks_router)
app.include_router(forecast_router)
