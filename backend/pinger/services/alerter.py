"""Alerter service - delivers UP/DOWN transition alerts to notification channels.

Channels are independent: a channel with a broken config, an unreachable
endpoint or a slow server never stops the others from being notified, and
nothing raised by a channel reaches the scheduler.
"""
import asyncio
import html
import logging
from datetime import datetime
from typing import Optional, Sequence

import httpx

from ..config import settings
from ..models import NotificationChannel
from ..schemas.channel import (
    ChannelConfigError,
    EmailChannelConfig,
    PagerDutyChannelConfig,
    SlackChannelConfig,
    WebhookChannelConfig,
    parse_channel_config,
)
from ..schemas.events import TransitionEvent
from .email_sender import email_sender_service

logger = logging.getLogger(__name__)

# Footer shown on chat messages and prefix of PagerDuty dedup keys
BRAND = "CloudCX Monitor"
DEDUP_PREFIX = "cloudcx"

STATUS_COLORS = {"DOWN": "#dc2626", "UP": "#16a34a"}


def build_email_subject(event: TransitionEvent) -> str:
    if event.status == "DOWN":
        return f"⚠️ {event.target_name} is DOWN"
    return f"✅ {event.target_name} has recovered"


def build_email_body(event: TransitionEvent) -> str:
    """Render a status-coloured HTML summary of a transition."""
    heading = "Alert" if event.status == "DOWN" else "Recovery"
    color = STATUS_COLORS.get(event.status, "#6b7280")
    lines = [
        f'<h2 style="color: {color}">{heading}: {html.escape(event.target_name)}</h2>',
        f"<p><strong>Type:</strong> {html.escape(event.target_type)}</p>",
        f"<p><strong>Endpoint:</strong> {html.escape(event.target_endpoint)}</p>",
        f'<p><strong>Status:</strong> <span style="color: {color}">{event.status}</span></p>',
        f"<p><strong>Time:</strong> {event.timestamp}</p>",
    ]
    if event.message:
        lines.append(f"<p><strong>Message:</strong> {html.escape(event.message)}</p>")
    if event.latency:
        lines.append(f"<p><strong>Latency:</strong> {event.latency}ms</p>")
    return "\n".join(lines)


def build_slack_message(event: TransitionEvent) -> dict:
    color = "danger" if event.status == "DOWN" else "good"
    emoji = ":warning:" if event.status == "DOWN" else ":white_check_mark:"

    fields = [
        {"title": "Target", "value": event.target_name, "short": True},
        {"title": "Type", "value": event.target_type, "short": True},
        {"title": "Endpoint", "value": event.target_endpoint, "short": False},
        {"title": "Status", "value": event.status, "short": True},
    ]
    if event.latency:
        fields.append({"title": "Latency", "value": f"{event.latency}ms", "short": True})
    if event.message:
        fields.append({"title": "Message", "value": event.message, "short": False})

    return {
        "text": f"{emoji} {event.target_name} is {event.status}",
        "attachments": [
            {
                "color": color,
                "fields": fields,
                "footer": BRAND,
                "ts": _epoch_seconds(event.timestamp),
            }
        ],
    }


def build_pagerduty_event(event: TransitionEvent, routing_key: str) -> dict:
    """Events v2 payload; one dedup key per target so flaps share an incident."""
    return {
        "routing_key": routing_key,
        "event_action": "trigger" if event.status == "DOWN" else "resolve",
        "dedup_key": f"{DEDUP_PREFIX}-{event.target_name}",
        "payload": {
            "summary": f"{event.target_name} is {event.status}",
            "severity": "error" if event.status == "DOWN" else "info",
            "source": event.target_endpoint,
            "timestamp": event.timestamp,
            "custom_details": {
                "type": event.target_type,
                "endpoint": event.target_endpoint,
                "latency": event.latency,
                "message": event.message,
            },
        },
    }


def build_webhook_body(event: TransitionEvent) -> dict:
    return {
        "target": event.target_name,
        "type": event.target_type,
        "endpoint": event.target_endpoint,
        "status": event.status,
        "timestamp": event.timestamp,
        "latency": event.latency,
        "message": event.message,
    }


def _epoch_seconds(timestamp: str) -> int:
    try:
        return int(datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return int(datetime.utcnow().timestamp())


class AlerterService:
    """Service for sending transition alerts through every enabled channel."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, email_sender=None):
        self.transport = transport
        self.email_sender = email_sender or email_sender_service

    async def dispatch(self, event: TransitionEvent, channels: Sequence[NotificationChannel]) -> int:
        """Send ``event`` to all channels concurrently; returns how many succeeded."""
        if not channels:
            return 0
        outcomes = await asyncio.gather(*[self.send_to_channel(channel, event) for channel in channels])
        delivered = sum(1 for ok in outcomes if ok)
        logger.info(
            f"{event.status} alert for {event.target_name} delivered to {delivered}/{len(channels)} channel(s)"
        )
        return delivered

    async def send_to_channel(self, channel: NotificationChannel, event: TransitionEvent) -> bool:
        """Deliver to one channel. Never raises; failures are logged."""
        if not channel.enabled:
            logger.info(f"Channel {channel.name} is disabled, skipping notification")
            return False

        try:
            config = parse_channel_config(channel.type, channel.config)
        except ChannelConfigError as e:
            logger.warning(f"Skipping channel {channel.name}: {e}")
            return False

        try:
            if isinstance(config, EmailChannelConfig):
                return await self._send_email(config, event)
            elif isinstance(config, SlackChannelConfig):
                await self._request("POST", config.webhook_url, build_slack_message(event))
            elif isinstance(config, PagerDutyChannelConfig):
                await self._request(
                    "POST",
                    settings.pagerduty_events_url,
                    build_pagerduty_event(event, config.routing_key),
                )
            elif isinstance(config, WebhookChannelConfig):
                await self._request(config.method, config.url, build_webhook_body(event), config.headers)
        except Exception as e:
            logger.error(f"Failed to send notification via {channel.name}: {e}")
            return False

        logger.info(f"Notification sent via {channel.name} ({channel.type}): {event.target_name} is {event.status}")
        return True

    async def send_legacy_alert(self, alert_email: Optional[str], event: TransitionEvent) -> bool:
        """E-mail the single alert address stored directly on a target."""
        if not alert_email:
            return False
        try:
            return await self.email_sender.send_email(
                alert_email,
                build_email_subject(event),
                build_email_body(event),
            )
        except Exception as e:
            logger.error(f"Legacy alert to {alert_email} failed: {e}")
            return False

    async def _send_email(self, config: EmailChannelConfig, event: TransitionEvent) -> bool:
        return await self.email_sender.send_email(
            config.email,
            build_email_subject(event),
            build_email_body(event),
        )

    async def _request(
        self,
        method: str,
        url: str,
        payload: dict,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        """Send a JSON request; raises on transport errors and 4xx/5xx replies."""
        async with httpx.AsyncClient(
            timeout=settings.notification_timeout_seconds,
            transport=self.transport,
        ) as client:
            response = await client.request(method, url, json=payload, headers=headers or None)
        response.raise_for_status()
        return response


# Global instance
alerter_service = AlerterService()
