import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from ratesync.config import Settings
from ratesync.exceptions.custom import ConfigurationError
from ratesync.runs import RunRegistry
from ratesync.services.channel_manager import ChannelManager
from ratesync.services.occupancy import OccupancyEstimator
from ratesync.services.pricing_batch import PricingBatchService
from ratesync.services.store import InventoryStore
from ratesync.services.sync_batch import SyncBatchService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InventoryStore:
    return request.app.state.store


def get_run_registry(request: Request) -> RunRegistry:
    return request.app.state.run_registry


def get_pricing_batch(request: Request) -> PricingBatchService:
    return request.app.state.pricing_batch


def get_sync_batch(request: Request) -> SyncBatchService:
    return request.app.state.sync_batch


def get_channel_manager(request: Request) -> ChannelManager:
    return request.app.state.channel_manager


def get_occupancy(request: Request) -> OccupancyEstimator:
    return request.app.state.occupancy


SettingsDep = Annotated[Settings, Depends(get_settings)]
StoreDep = Annotated[InventoryStore, Depends(get_store)]
RunRegistryDep = Annotated[RunRegistry, Depends(get_run_registry)]
PricingBatchDep = Annotated[PricingBatchService, Depends(get_pricing_batch)]
SyncBatchDep = Annotated[SyncBatchService, Depends(get_sync_batch)]
ChannelManagerDep = Annotated[ChannelManager, Depends(get_channel_manager)]
OccupancyDep = Annotated[OccupancyEstimator, Depends(get_occupancy)]


def _matches(presented: str | None, expected: str) -> bool:
    if presented is None:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def verify_cron_secret(
    settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    if not settings.cron_secret:
        raise ConfigurationError("CRON_SECRET not set")
    if not _matches(authorization, f"Bearer {settings.cron_secret}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


def verify_webhook_secret(
    settings: SettingsDep,
    x_webhook_secret: Annotated[str | None, Header()] = None,
) -> None:
    if not settings.webhook_secret:
        raise ConfigurationError("WEBHOOK_SECRET not set")
    if not _matches(x_webhook_secret, settings.webhook_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


CronAuth = Depends(verify_cron_secret)
WebhookAuth = Depends(verify_webhook_secret)
