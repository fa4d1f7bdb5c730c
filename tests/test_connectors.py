"""
Tests for the Salesforce, HubSpot and Dynamics connectors
"""

import json
from urllib.parse import unquote

import httpx
import pytest
from unittest.mock import MagicMock

from call_relay.core.exceptions import CRMServiceError
from call_relay.services.crm import DynamicsConnector, HubSpotConnector, SalesforceConnector
from call_relay.services.crm.base import RecordRef
from call_relay.services.crm.dynamics import entity_id_from_response
from call_relay.services.crm.salesforce import escape_sosl

HS_SEARCH = "https://api.hubapi.com/crm/v3/objects/contacts/search"
SF_BASE = "https://acme.my.salesforce.com/services/data/v59.0"
DYN_BASE = "https://acme.crm.dynamics.com/api/data/v9.2"


def connector(cls, http_client):
    return cls(MagicMock(), http_client, timeout=5.0)


class TestHubSpotConnector:

    @pytest.mark.asyncio
    async def test_query_search_post_filters_by_suffix(self, http_client, transport, token_factory):
        transport.add("POST", HS_SEARCH, httpx.Response(200, json={"results": [
            {"id": "101", "properties": {"phone": "+1 555 123 0000"}},
            {"id": "102", "properties": {"mobilephone": "(555) 123-4567"}},
        ]}))
        hubspot = connector(HubSpotConnector, http_client)

        record = await hubspot.search_by_phone(token_factory("hubspot"), "+15551234567")

        assert record == RecordRef(id="102", object_type="contact", phone="(555) 123-4567")
        body = json.loads(transport.requests[0].content)
        assert body["query"] == "555123"
        assert body["limit"] == 100
        assert transport.requests[0].headers["Authorization"] == "Bearer hubspot-access"

    @pytest.mark.asyncio
    async def test_falls_back_to_contains_token(self, http_client, transport, token_factory):
        responses = iter([
            httpx.Response(200, json={"results": []}),
            httpx.Response(200, json={"results": [{"id": "7", "properties": {"phone": "5551234567"}}]}),
        ])
        transport.add("POST", HS_SEARCH, lambda request: next(responses))
        hubspot = connector(HubSpotConnector, http_client)

        record = await hubspot.search_by_phone(token_factory("hubspot"), "+15551234567")

        assert record.id == "7"
        fallback = json.loads(transport.requests[1].content)
        assert fallback["filterGroups"][0]["filters"][0] == {
            "propertyName": "phone", "operator": "CONTAINS_TOKEN", "value": "5551234567",
        }

    @pytest.mark.asyncio
    async def test_no_match_returns_none(self, http_client, transport, token_factory):
        transport.add("POST", HS_SEARCH, httpx.Response(200, json={"results": [
            {"id": "1", "properties": {"phone": "+15550000000"}},
        ]}))
        hubspot = connector(HubSpotConnector, http_client)

        assert await hubspot.search_by_phone(token_factory("hubspot"), "+15551234567") is None

    @pytest.mark.asyncio
    async def test_note_engagement(self, http_client, transport, token_factory, make_call):
        transport.add("POST", "https://api.hubapi.com/engagements/v1/engagements",
                      httpx.Response(200, json={"engagement": {"id": 555}}))
        hubspot = connector(HubSpotConnector, http_client)
        call = make_call(structured_data={"appointmentDate": "2025-01-15"},
                         recording_url="https://rec.example.com/1.wav")

        engagement_id = await hubspot.create_activity(
            token_factory("hubspot"), RecordRef(id="42", object_type="contact"), call
        )

        assert engagement_id == "555"
        body = json.loads(transport.requests[0].content)
        assert body["engagement"]["type"] == "NOTE"
        assert body["associations"]["contactIds"] == [42]
        assert "- **Appointment Date:** 2025-01-15" in body["metadata"]["body"]
        assert "[Listen to Recording](https://rec.example.com/1.wav)" in body["metadata"]["body"]

    @pytest.mark.asyncio
    async def test_api_error_raises_crm_error(self, http_client, transport, token_factory):
        transport.add("POST", HS_SEARCH, httpx.Response(500, text="boom"))
        hubspot = connector(HubSpotConnector, http_client)

        with pytest.raises(CRMServiceError):
            await hubspot.search_by_phone(token_factory("hubspot"), "+15551234567")


class TestSalesforceConnector:

    def test_escape_sosl(self):
        assert escape_sosl("+1 (555) 123-4567") == "\\+1 \\(555\\) 123\\-4567"

    @pytest.mark.asyncio
    async def test_lead_preferred_over_contact(self, http_client, transport, token_factory):
        transport.add("GET", f"{SF_BASE}/search", httpx.Response(200, json={"searchRecords": [
            {"attributes": {"type": "Contact"}, "Id": "003C", "Phone": "5551234567"},
            {"attributes": {"type": "Lead"}, "Id": "00QL", "MobilePhone": "+1 555-123-4567"},
        ]}))
        salesforce = connector(SalesforceConnector, http_client)

        record = await salesforce.search_by_phone(token_factory("salesforce"), "+15551234567")

        assert record.id == "00QL"
        assert record.object_type == "Lead"
        assert "FIND {\\+15551234567} IN PHONE FIELDS" in unquote(str(transport.requests[0].url))

    @pytest.mark.asyncio
    async def test_tries_each_candidate_format(self, http_client, transport, token_factory):
        transport.add("GET", f"{SF_BASE}/search", httpx.Response(200, json={"searchRecords": []}))
        salesforce = connector(SalesforceConnector, http_client)

        assert await salesforce.search_by_phone(token_factory("salesforce"), "+15551234567") is None
        assert len(transport.requests) == 6

    @pytest.mark.asyncio
    async def test_event_for_booked_appointment(self, http_client, transport, token_factory, make_call):
        transport.add("POST", f"{SF_BASE}/sobjects/Event", httpx.Response(201, json={"id": "00U1"}))
        salesforce = connector(SalesforceConnector, http_client)
        call = make_call(appointment_date="2025-01-15", appointment_time="2:00 PM", appointment_type="Cleaning")

        event_id = await salesforce.create_appointment(
            token_factory("salesforce"), RecordRef(id="00QL", object_type="Lead"), call
        )

        assert event_id == "00U1"
        body = json.loads(transport.requests[0].content)
        assert body["StartDateTime"] == "2025-01-15T14:00:00"
        assert body["EndDateTime"] == "2025-01-15T15:00:00"
        assert body["ReminderDateTime"] == "2025-01-15T13:00:00"
        assert body["Subject"] == "Cleaning - Scheduled via Voice AI"

    @pytest.mark.asyncio
    async def test_no_appointment_without_date(self, http_client, transport, token_factory, make_call):
        salesforce = connector(SalesforceConnector, http_client)

        result = await salesforce.create_appointment(
            token_factory("salesforce"), RecordRef(id="1", object_type="Lead"), make_call()
        )

        assert result is None
        assert transport.requests == []


class TestDynamicsConnector:

    def test_entity_id_from_header(self):
        header = f"{DYN_BASE}/phonecalls(00000000-0000-0000-0000-000000000001)"
        assert entity_id_from_response(header) == "00000000-0000-0000-0000-000000000001"
        assert entity_id_from_response(None) == ""

    @pytest.mark.asyncio
    async def test_leads_searched_before_contacts(self, http_client, transport, token_factory):
        transport.add("GET", f"{DYN_BASE}/leads", httpx.Response(200, json={"value": []}))
        transport.add("GET", f"{DYN_BASE}/contacts", httpx.Response(200, json={"value": [
            {"contactid": "c-1", "mobilephone": "555-123-4567"},
        ]}))
        dynamics = connector(DynamicsConnector, http_client)

        record = await dynamics.search_by_phone(token_factory("dynamics"), "+15551234567")

        assert record.id == "c-1"
        assert record.object_type == "contact"
        lead_requests = transport.sent("GET", f"{DYN_BASE}/leads")
        assert len(lead_requests) == 6
        assert "contains(telephone1,'+15551234567')" in lead_requests[0].url.params["$filter"]
        assert lead_requests[0].headers["OData-Version"] == "4.0"

    @pytest.mark.asyncio
    async def test_create_prospect_splits_name(self, http_client, transport, token_factory, make_call):
        transport.add("POST", f"{DYN_BASE}/leads", httpx.Response(201, json={"leadid": "lead-9"}))
        dynamics = connector(DynamicsConnector, http_client)

        record = await dynamics.create_prospect(token_factory("dynamics"), make_call(customer_name="Mary Ann Smith"))

        assert record == RecordRef(id="lead-9", object_type="lead", phone="+15551234567", created=True)
        body = json.loads(transport.requests[0].content)
        assert body["firstname"] == "Mary Ann"
        assert body["lastname"] == "Smith"
        assert body["subject"] == "Voice AI Call - +15551234567"
        assert body["leadsourcecode"] == 3
        assert transport.requests[0].headers["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_create_prospect_without_name_uses_phone(self, http_client, transport, token_factory, make_call):
        transport.add("POST", f"{DYN_BASE}/leads", httpx.Response(
            204, headers={"OData-EntityId": f"{DYN_BASE}/leads(lead-10)"}
        ))
        dynamics = connector(DynamicsConnector, http_client)

        record = await dynamics.create_prospect(token_factory("dynamics"), make_call())

        assert record.id == "lead-10"
        assert json.loads(transport.requests[0].content)["lastname"] == "+15551234567"

    @pytest.mark.asyncio
    async def test_phonecall_is_completed(self, http_client, transport, token_factory, make_call):
        transport.add("POST", f"{DYN_BASE}/phonecalls", httpx.Response(
            204, headers={"OData-EntityId": f"{DYN_BASE}/phonecalls(pc-1)"}
        ))
        dynamics = connector(DynamicsConnector, http_client)

        activity_id = await dynamics.create_activity(
            token_factory("dynamics"), RecordRef(id="lead-9", object_type="lead"), make_call()
        )

        assert activity_id == "pc-1"
        body = json.loads(transport.requests[0].content)
        assert body["statecode"] == 1
        assert body["statuscode"] == 4
        assert body["regardingobjectid_lead_phonecall@odata.bind"] == "/leads(lead-9)"
        assert body["actualdurationminutes"] == 2
