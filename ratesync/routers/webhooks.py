import logging

from fastapi import APIRouter, HTTPException, Request

from ratesync.dependencies import ChannelManagerDep, WebhookAuth
from ratesync.schemas.channel import WebhookResult
from ratesync.schemas.domain import ChannelType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", dependencies=[WebhookAuth])


@router.post("/{channel}", response_model=WebhookResult)
async def receive_webhook(channel: str, request: Request, manager: ChannelManagerDep) -> WebhookResult:
    try:
        channel_type = ChannelType(channel.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown channel: {channel}")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")

    result = await manager.process_webhook(channel_type, payload)
    if not result.success:
        logger.warning("%s webhook not imported: %s", channel_type, result.message)
    return result
