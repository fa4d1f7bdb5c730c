"""
Tests for the outbound webhook dispatcher
"""

import json

import httpx
import pytest

from call_relay.db.models import OutboundWebhookDB
from call_relay.services.outbound_webhooks import OutboundWebhookDispatcher, build_payload


async def register(repository, webhook_id, url, events="call.ended", is_active=True, tenant_id="tenant_a"):
    await repository.create_outbound_webhook(OutboundWebhookDB(
        id=webhook_id, tenant_id=tenant_id, name=webhook_id,
        destination_url=url, events=events, is_active=is_active,
    ))


@pytest.fixture
def dispatcher(repository, http_client):
    return OutboundWebhookDispatcher(repository, http_client, timeout=2.0)


class TestPayload:

    def test_started_payload(self):
        payload = build_payload("call.started", "vapi-1", customer_phone="+15551234567")

        assert payload["status"] == "ringing"
        assert payload["assistant_name"] == "AI Assistant"
        assert "summary" not in payload

    def test_ended_payload_defaults(self):
        payload = build_payload("call.ended", "call_1")

        assert payload["duration_seconds"] == 0
        assert payload["ended_reason"] == "unknown"
        assert payload["structured_data"] == {}
        assert payload["conversation"] == []


class TestDispatch:

    @pytest.mark.asyncio
    async def test_only_active_subscribed_hooks_called(self, dispatcher, repository, transport):
        await register(repository, "obwh_ended", "https://a.example.com/hook")
        await register(repository, "obwh_started", "https://b.example.com/hook", events="call.started")
        await register(repository, "obwh_off", "https://c.example.com/hook", is_active=False)
        await register(repository, "obwh_other", "https://d.example.com/hook", tenant_id="tenant_b")
        transport.add("POST", "https://a.example.com", httpx.Response(200, text="ok"))

        logs = await dispatcher.dispatch("tenant_a", "call.ended", "call_1", {"event": "call.ended"})

        assert [log.outbound_webhook_id for log in logs] == ["obwh_ended"]
        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.headers["User-Agent"] == "Call-Relay/1.0"
        assert json.loads(request.content) == {"event": "call.ended"}

    @pytest.mark.asyncio
    async def test_each_destination_logged_independently(self, dispatcher, repository, transport):
        await register(repository, "obwh_ok", "https://ok.example.com/hook")
        await register(repository, "obwh_fail", "https://fail.example.com/hook")
        await register(repository, "obwh_down", "https://down.example.com/hook")
        transport.add("POST", "https://ok.example.com", httpx.Response(202, text="accepted"))
        transport.add("POST", "https://fail.example.com", httpx.Response(500, text="x" * 5000))

        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)
        transport.add("POST", "https://down.example.com", unreachable)

        logs = {log.outbound_webhook_id: log for log in
                await dispatcher.dispatch("tenant_a", "call.ended", "call_1", {})}

        assert logs["obwh_ok"].status == "success"
        assert logs["obwh_ok"].http_status == 202
        assert logs["obwh_fail"].status == "failed"
        assert len(logs["obwh_fail"].response_body) == 1000
        assert logs["obwh_down"].status == "failed"
        assert logs["obwh_down"].http_status == 0
        assert "connection refused" in logs["obwh_down"].error_message

        for webhook_id in logs:
            assert len(await repository.list_outbound_webhook_logs(webhook_id)) == 1

    @pytest.mark.asyncio
    async def test_no_subscribers_sends_nothing(self, dispatcher, transport):
        assert await dispatcher.dispatch("tenant_a", "call.started", "vapi-1", {}) == []
        assert transport.requests == []
