"""
End-to-end tests for POST /webhook/{id} and the call state machine
"""

import json

import httpx
import pytest

from call_relay.db.models import OutboundWebhookDB
from call_relay.services.caller_lookup import CallerInfo


def status_update(status, call_id="vapi-call-1", number="+15551234567"):
    return {
        "message": {
            "type": "status-update",
            "status": status,
            "call": {"id": call_id, "customer": {"number": number}},
            "assistant": {"name": "Front Desk"},
        }
    }


def register_hook(test_client, repository, events):
    test_client.portal.call(repository.create_outbound_webhook, OutboundWebhookDB(
        id="obwh_1", tenant_id="tenant_a", name="Zapier",
        destination_url="https://hooks.example.com/catch", events=events,
    ))


class TestWebhookAccess:

    def test_unknown_webhook_404(self, test_client):
        response = test_client.post("/webhook/wh_missing", json=status_update("ringing"))

        assert response.status_code == 404
        assert response.json()["message"] == "Webhook not found or inactive"

    def test_inactive_webhook_404(self, test_client):
        assert test_client.post("/webhook/wh_off", json=status_update("ringing")).status_code == 404

    def test_secret_required(self, test_client):
        assert test_client.post("/webhook/wh_secret", json=status_update("queued")).status_code == 401
        wrong = test_client.post("/webhook/wh_secret", json=status_update("queued"),
                                 headers={"X-Vapi-Secret": "nope"})
        assert wrong.status_code == 401
        ok = test_client.post("/webhook/wh_secret", json=status_update("queued"),
                              headers={"X-Vapi-Secret": "s3cret"})
        assert ok.status_code == 200

    def test_malformed_json_logged_as_400(self, test_client, app_context):
        response = test_client.post("/webhook/wh_open", content=b"{not json",
                                     headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_PAYLOAD"
        logs = test_client.portal.call(app_context.repository.list_webhook_logs, "wh_open")
        assert logs[0]["status"] == "error"
        assert logs[0]["http_status"] == 400

    def test_schema_violation_is_400(self, test_client):
        response = test_client.post("/webhook/wh_open", json={"message": {"call": "not-an-object"}})

        assert response.status_code == 400


class TestStatusUpdates:

    def test_ringing_tracks_call_and_fires_call_started(self, test_client, app_context, transport, drain,
                                                        mock_caller_lookup):
        repo = app_context.repository
        register_hook(test_client, repo, "call.started")
        transport.add("POST", "https://hooks.example.com", httpx.Response(200))

        response = test_client.post("/webhook/wh_open", json=status_update("ringing"))
        drain()

        assert response.json() == {"success": True, "message": "Call status updated"}
        active = test_client.portal.call(repo.list_active_calls, "tenant_a")
        assert [a.provider_call_id for a in active] == ["vapi-call-1"]
        assert active[0].status == "ringing"

        sent = transport.sent("POST", "https://hooks.example.com")
        assert len(sent) == 1
        body = json.loads(sent[0].content)
        assert body["event"] == "call.started"
        assert body["call_id"] == "vapi-call-1"
        assert body["customer_phone"] == "+15551234567"
        assert body["assistant_name"] == "Front Desk"

    def test_in_progress_updates_without_call_started(self, test_client, app_context, transport, drain):
        repo = app_context.repository
        register_hook(test_client, repo, "call.started")

        test_client.post("/webhook/wh_open", json=status_update("ringing"))
        test_client.post("/webhook/wh_open", json=status_update("in-progress"))
        drain()

        active = test_client.portal.call(repo.list_active_calls, "tenant_a")
        assert active[0].status == "in-progress"
        assert len(transport.sent("POST", "https://hooks.example.com")) == 1

    def test_ended_removes_active_call(self, test_client, app_context):
        repo = app_context.repository
        test_client.post("/webhook/wh_open", json=status_update("ringing"))

        response = test_client.post("/webhook/wh_open", json=status_update("ended"))

        assert response.json()["success"] is True
        assert test_client.portal.call(repo.list_active_calls, "tenant_a") == []

    def test_queued_is_acknowledged_only(self, test_client, app_context):
        response = test_client.post("/webhook/wh_open", json=status_update("queued"))

        assert response.status_code == 200
        assert test_client.portal.call(app_context.repository.list_active_calls, "tenant_a") == []

    def test_caller_lookup_enriches_active_call(self, test_client, app_context, mock_caller_lookup):
        from call_relay.db.models import TenantSettingsDB
        repo = app_context.repository
        test_client.portal.call(repo.upsert_tenant_settings, TenantSettingsDB(
            tenant_id="tenant_a", twilio_account_sid="AC123", twilio_auth_token="tok",
        ))
        mock_caller_lookup.lookup.return_value = CallerInfo(caller_name="JANE DOE", line_type="mobile")

        test_client.post("/webhook/wh_open", json=status_update("ringing"))

        active = test_client.portal.call(repo.list_active_calls, "tenant_a")[0]
        assert active.caller_name == "JANE DOE"
        assert active.line_type == "mobile"
        mock_caller_lookup.lookup.assert_awaited_with("+15551234567", "AC123", "tok")


class TestEndOfCallReport:

    def test_creates_call_and_fans_out(self, test_client, app_context, transport, drain, fake_redis,
                                       end_of_call_payload):
        repo = app_context.repository
        register_hook(test_client, repo, "call.ended")
        transport.add("POST", "https://hooks.example.com", httpx.Response(200, text="ok"))
        test_client.get("/api/v1/calls", headers={"X-API-Key": "key-a"})
        page_key = "recordings:tenant:tenant_a:page:1:limit:20"
        assert page_key in fake_redis.store

        response = test_client.post("/webhook/wh_open", json=end_of_call_payload)
        drain()

        assert response.status_code == 200
        data = response.json()
        assert data["received"] is True
        call_id = data["call_id"]

        call = test_client.portal.call(repo.get_call, "tenant_a", call_id)
        assert call.customer_number == "+15551234567"
        assert call.phone_number == "+15559876543"
        assert call.duration_seconds == 93
        assert call.summary == "Caller booked a cleaning."
        assert call.recording_url == "https://recordings.example.com/1.wav"
        assert call.structured_data["appointmentDate"] == "2025-01-15"
        assert call.raw_payload["message"]["call"]["id"] == "vapi-call-1"

        # One sync log per CRM; none are connected
        for provider, name in (("salesforce", "Salesforce"), ("hubspot", "HubSpot"), ("dynamics", "Dynamics")):
            logs = test_client.portal.call(repo.list_sync_logs, provider, "tenant_a")
            assert len(logs) == 1
            assert logs[0].status == "skipped"
            assert logs[0].error_message == f"{name} not connected"

        sent = transport.sent("POST", "https://hooks.example.com")
        assert len(sent) == 1
        body = json.loads(sent[0].content)
        assert body["event"] == "call.ended"
        assert body["call_id"] == call_id
        assert body["duration_seconds"] == 93
        assert body["conversation"] == [
            {"role": "assistant", "message": "Hi, how can I help?"},
            {"role": "user", "message": "I want to book a cleaning."},
        ]

        webhook_logs = test_client.portal.call(repo.list_webhook_logs, "wh_open")
        assert webhook_logs[0]["status"] == "success"

        delivery_logs = test_client.portal.call(repo.list_outbound_webhook_logs, "obwh_1")
        assert len(delivery_logs) == 1
        assert delivery_logs[0].status == "success"
        assert delivery_logs[0].call_id == call_id
        assert delivery_logs[0].http_status == 200

        assert page_key not in fake_redis.store

    def test_replay_returns_existing_call(self, test_client, app_context, drain, end_of_call_payload):
        repo = app_context.repository

        first = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()
        drain()
        second = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()
        drain()

        assert first["call_id"] == second["call_id"]
        assert test_client.portal.call(repo.count_calls, "tenant_a") == 1
        assert len(test_client.portal.call(repo.list_sync_logs, "hubspot", "tenant_a")) == 1

    def test_missing_caller_number_is_ignored(self, test_client, app_context, end_of_call_payload):
        del end_of_call_payload["message"]["customer"]

        response = test_client.post("/webhook/wh_open", json=end_of_call_payload)

        assert response.json() == {"received": True, "ignored": True}
        assert test_client.portal.call(app_context.repository.count_calls, "tenant_a") == 0

    def test_caller_number_from_call_object(self, test_client, app_context, end_of_call_payload):
        message = end_of_call_payload["message"]
        del message["customer"]
        message["call"]["customer"] = {"number": "+15557654321"}

        call_id = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()["call_id"]

        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", call_id)
        assert call.customer_number == "+15557654321"

    def test_type_defaults_to_end_of_call_report(self, test_client, end_of_call_payload):
        del end_of_call_payload["message"]["type"]

        assert "call_id" in test_client.post("/webhook/wh_open", json=end_of_call_payload).json()

    def test_duration_from_timestamps(self, test_client, app_context, end_of_call_payload):
        message = end_of_call_payload["message"]
        del message["durationSeconds"]
        message["startedAt"] = "2025-01-15T14:00:00Z"
        message["endedAt"] = "2025-01-15T14:02:30Z"

        call_id = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()["call_id"]

        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", call_id)
        assert call.duration_seconds == 150

    def test_new_call_invalidates_tenant_cache(self, test_client, app_context, fake_redis, end_of_call_payload):
        headers = {"X-API-Key": "key-a"}
        assert test_client.get("/api/v1/calls", headers=headers).json()["total"] == 0

        test_client.post("/webhook/wh_open", json=end_of_call_payload)

        assert test_client.get("/api/v1/calls", headers=headers).json()["total"] == 1

    def test_storage_failure_returns_500(self, test_client, app_context, end_of_call_payload, monkeypatch):
        async def broken(call):
            raise RuntimeError("disk full")
        monkeypatch.setattr(app_context.repository, "create_call", broken)

        response = test_client.post("/webhook/wh_open", json=end_of_call_payload)

        assert response.status_code == 500
        assert response.json()["error"] == "STORAGE_ERROR"
        logs = test_client.portal.call(app_context.repository.list_webhook_logs, "wh_open")
        assert logs[0]["status"] == "error"
        assert logs[0]["http_status"] == 500


class TestNullSections:

    @pytest.mark.parametrize("path", [
        ("analysis",),
        ("analysis", "structuredData"),
        ("analysis", "structuredOutputs"),
        ("artifact",),
        ("artifact", "messages"),
        ("call",),
    ])
    def test_null_section_is_treated_as_empty(self, test_client, app_context, end_of_call_payload, path):
        target = end_of_call_payload["message"]
        for key in path[:-1]:
            target = target[key]
        target[path[-1]] = None

        response = test_client.post("/webhook/wh_open", json=end_of_call_payload)

        assert response.status_code == 200
        call_id = response.json()["call_id"]
        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", call_id)
        assert call.customer_number == "+15551234567"

    def test_null_call_drops_provider_id(self, test_client, app_context, end_of_call_payload):
        end_of_call_payload["message"]["call"] = None

        call_id = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()["call_id"]

        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", call_id)
        assert call.provider_call_id is None


class TestMixedTimestamps:

    def test_naive_end_time_is_read_as_utc(self, test_client, app_context, end_of_call_payload):
        message = end_of_call_payload["message"]
        del message["durationSeconds"]
        message["startedAt"] = "2025-01-15T14:00:00Z"
        message["endedAt"] = "2025-01-15T14:02:30"

        response = test_client.post("/webhook/wh_open", json=end_of_call_payload)

        assert response.status_code == 200
        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", response.json()["call_id"])
        assert call.duration_seconds == 150

    def test_offset_timestamps(self, test_client, app_context, end_of_call_payload):
        message = end_of_call_payload["message"]
        del message["durationSeconds"]
        message["startedAt"] = "2025-01-15T14:00:00Z"
        message["endedAt"] = "2025-01-15T15:01:00+01:00"

        call_id = test_client.post("/webhook/wh_open", json=end_of_call_payload).json()["call_id"]

        call = test_client.portal.call(app_context.repository.get_call, "tenant_a", call_id)
        assert call.duration_seconds == 60
