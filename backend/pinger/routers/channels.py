"""Notification channel CRUD API endpoints."""
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import NotificationChannel
from ..schemas.channel import (
    ChannelConfigError,
    ChannelCreate,
    ChannelUpdate,
    ChannelResponse,
    ChannelTestResponse,
    parse_channel_config,
)
from ..schemas.events import TransitionEvent
from ..services.alerter import alerter_service
from ..utils.auth import require_api_key
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channels", tags=["channels"], dependencies=[Depends(require_api_key)])


def _validate_config(kind: str, raw: str):
    """Reject configs that do not parse or lack the type's required field."""
    try:
        parse_channel_config(kind, raw)
    except ChannelConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _get_channel_or_404(db: AsyncSession, channel_id: int) -> NotificationChannel:
    result = await db.execute(select(NotificationChannel).where(NotificationChannel.id == channel_id))
    channel = result.scalar_one_or_none()
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


@router.get("", response_model=List[ChannelResponse])
async def list_channels(db: AsyncSession = Depends(get_db)):
    """List all notification channels, newest first."""
    result = await db.execute(select(NotificationChannel).order_by(NotificationChannel.id.desc()))
    return [ChannelResponse.model_validate(c) for c in result.scalars().all()]


@router.post("", response_model=ChannelResponse, status_code=201)
async def create_channel(channel: ChannelCreate, db: AsyncSession = Depends(get_db)):
    """Create a notification channel."""
    _validate_config(channel.type, channel.config)

    db_channel = NotificationChannel(
        name=channel.name,
        type=channel.type,
        config=channel.config,
        enabled=channel.enabled,
    )
    db.add(db_channel)

    await retry_on_lock(db.commit)
    await db.refresh(db_channel)

    return ChannelResponse.model_validate(db_channel)


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel(channel_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific channel by ID."""
    return ChannelResponse.model_validate(await _get_channel_or_404(db, channel_id))


@router.put("/{channel_id}", response_model=ChannelResponse)
async def update_channel(
    channel_id: int,
    update: ChannelUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a channel; the merged type and config are validated together."""
    channel = await _get_channel_or_404(db, channel_id)

    new_type = update.type or channel.type
    new_config = update.config or channel.config
    _validate_config(new_type, new_config)

    if update.name is not None:
        channel.name = update.name
    channel.type = new_type
    channel.config = new_config
    if update.enabled is not None:
        channel.enabled = update.enabled

    await retry_on_lock(db.commit)
    await db.refresh(channel)

    return ChannelResponse.model_validate(channel)


@router.delete("/{channel_id}", status_code=204)
async def delete_channel(channel_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a channel."""
    channel = await _get_channel_or_404(db, channel_id)
    await db.delete(channel)
    await retry_on_lock(db.commit)


@router.post("/{channel_id}/test", response_model=ChannelTestResponse)
async def test_channel(channel_id: int, db: AsyncSession = Depends(get_db)):
    """Send a sample recovery notification through one channel."""
    channel = await _get_channel_or_404(db, channel_id)

    try:
        parse_channel_config(channel.type, channel.config)
    except ChannelConfigError as e:
        return ChannelTestResponse(delivered=False, detail=str(e))

    event = TransitionEvent(
        target_name="Test target",
        target_type="HTTP",
        target_endpoint="https://example.com",
        status="UP",
        latency=42,
        timestamp=datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
    )
    # A disabled channel is still exercised when an admin asks for a test
    delivered = await alerter_service.send_to_channel(_enabled_copy(channel), event)
    logger.info(f"Test notification via {channel.name}: {'delivered' if delivered else 'failed'}")

    return ChannelTestResponse(
        delivered=delivered,
        detail=None if delivered else "Delivery failed, see server logs",
    )


def _enabled_copy(channel: NotificationChannel) -> NotificationChannel:
    return NotificationChannel(
        id=channel.id,
        name=channel.name,
        type=channel.type,
        config=channel.config,
        enabled=True,
    )
