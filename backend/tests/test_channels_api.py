"""Notification channel API tests."""
import json
from unittest.mock import AsyncMock, patch


SLACK_CONFIG = json.dumps({"webhookUrl": "https://hooks.slack.test/T000/B000"})


class TestChannelCrud:
    async def test_create_and_list(self, client):
        resp = await client.post(
            "/api/channels",
            json={"name": "ops", "type": "slack", "config": SLACK_CONFIG},
        )
        assert resp.status_code == 201
        assert resp.json()["enabled"] is True

        resp = await client.get("/api/channels")
        assert [c["name"] for c in resp.json()] == ["ops"]

    async def test_rejects_missing_required_field(self, client):
        resp = await client.post(
            "/api/channels",
            json={"name": "pd", "type": "pagerduty", "config": "{}"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == 'PagerDuty channel requires "routingKey" field in config'

    async def test_rejects_invalid_json(self, client):
        resp = await client.post(
            "/api/channels",
            json={"name": "hook", "type": "webhook", "config": "{url:"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Configuration must be valid JSON"

    async def test_rejects_unknown_type(self, client):
        resp = await client.post(
            "/api/channels",
            json={"name": "sms", "type": "sms", "config": "{}"},
        )
        assert resp.status_code == 422

    async def test_update_validates_merged_type_and_config(self, client, make_channel):
        channel = await make_channel()

        resp = await client.put(f"/api/channels/{channel.id}", json={"type": "email"})
        assert resp.status_code == 400

        resp = await client.put(
            f"/api/channels/{channel.id}",
            json={"type": "email", "config": '{"email": "ops@example.com"}'},
        )
        assert resp.status_code == 200
        assert resp.json()["type"] == "email"

    async def test_toggle_enabled(self, client, make_channel):
        channel = await make_channel()
        resp = await client.put(f"/api/channels/{channel.id}", json={"enabled": False})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False
        assert resp.json()["config"] == channel.config

    async def test_delete(self, client, make_channel):
        channel = await make_channel()
        assert (await client.delete(f"/api/channels/{channel.id}")).status_code == 204
        assert (await client.get(f"/api/channels/{channel.id}")).status_code == 404


class TestChannelTest:
    async def test_sends_synthetic_recovery(self, client, make_channel):
        channel = await make_channel(enabled=False)
        send = AsyncMock(return_value=True)

        with patch("pinger.routers.channels.alerter_service.send_to_channel", send):
            resp = await client.post(f"/api/channels/{channel.id}/test")

        assert resp.status_code == 200
        assert resp.json() == {"delivered": True, "detail": None}
        sent_channel, event = send.await_args.args
        assert sent_channel.enabled is True
        assert event.status == "UP"

    async def test_reports_failure(self, client, make_channel):
        channel = await make_channel()

        with patch(
            "pinger.routers.channels.alerter_service.send_to_channel",
            AsyncMock(return_value=False),
        ):
            resp = await client.post(f"/api/channels/{channel.id}/test")

        assert resp.json()["delivered"] is False
        assert resp.json()["detail"]

    async def test_reports_bad_config(self, client, make_channel):
        channel = await make_channel(config="{}")
        resp = await client.post(f"/api/channels/{channel.id}/test")
        assert resp.json() == {
            "delivered": False,
            "detail": 'Slack channel requires "webhookUrl" field in config',
        }
