"""Webhook verification and event correlation"""

from datetime import datetime, timezone

import pytest

from linkhub.connections.models import Connection
from linkhub.connections.webhooks import WebhookCorrelator
from linkhub.utils.exceptions import StorageError, ValidationError, WebhookVerificationFailed

SEEN_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def correlator(services, adapters):
    return WebhookCorrelator(services.connections, adapters, clock=lambda: SEEN_AT)


@pytest.fixture
def connected(services, user):
    services.connections.replace(
        "u1",
        Connection(provider="facebook", status="connected", page_id="p1", page_access_token="page-token-1"),
    )
    services.connections.replace(
        "u1",
        Connection(provider="whatsapp", status="connected", phone_number_id="phone-1", user_access_token="long"),
    )


def _messenger_entry(page_id, psid):
    return {
        "id": page_id,
        "time": 1700000000,
        "messaging": [{"sender": {"id": psid}, "recipient": {"id": page_id}, "message": {"text": "hi"}}],
    }


class TestVerify:
    def test_echoes_challenge(self, correlator):
        assert correlator.verify("facebook", "subscribe", "fb-verify-token", "1234") == "1234"

    def test_wrong_token(self, correlator):
        with pytest.raises(WebhookVerificationFailed):
            correlator.verify("facebook", "subscribe", "wa-verify-token", "1234")

    def test_wrong_mode(self, correlator):
        with pytest.raises(WebhookVerificationFailed):
            correlator.verify("whatsapp", "unsubscribe", "wa-verify-token", "1234")

    def test_unknown_provider(self, correlator):
        with pytest.raises(ValidationError):
            correlator.verify("linkedin", "subscribe", "x", "1234")


class TestIngest:
    def test_updates_matching_connection(self, correlator, services, connected):
        result = correlator.ingest("facebook", {"object": "page", "entry": [_messenger_entry("p1", "psid-7")]})

        assert (result.matched, result.unmatched, result.malformed) == (1, 0, 0)
        conn = services.connections.get("u1", "facebook")
        assert conn.last_counterpart_id == "psid-7"
        assert conn.last_event_at == SEEN_AT
        assert services.connections.get("u1", "whatsapp").last_counterpart_id is None

    def test_unknown_resource_is_ignored(self, correlator, services, connected):
        result = correlator.ingest("facebook", {"object": "page", "entry": [_messenger_entry("p-unknown", "psid-7")]})

        assert result.unmatched == 1
        assert services.connections.get("u1", "facebook").last_counterpart_id is None

    def test_malformed_entry_does_not_abort_batch(self, correlator, services, connected):
        body = {
            "object": "page",
            "entry": [
                "not-an-object",
                {"id": "p1", "messaging": [{"message": {"text": "no sender"}}]},
                _messenger_entry("p1", "psid-8"),
            ],
        }
        result = correlator.ingest("facebook", body)

        assert result.malformed == 2
        assert result.matched == 1
        assert services.connections.get("u1", "facebook").last_counterpart_id == "psid-8"

    def test_list_wrapped_payload(self, correlator, services, connected):
        body = [
            {
                "object": "whatsapp_business_account",
                "entry": [
                    {
                        "id": "waba-1",
                        "changes": [
                            {
                                "field": "messages",
                                "value": {
                                    "metadata": {"phone_number_id": "phone-1"},
                                    "messages": [{"from": "15551234567", "type": "text"}],
                                },
                            }
                        ],
                    }
                ],
            }
        ]
        result = correlator.ingest("whatsapp", body)

        assert result.matched == 1
        assert services.connections.get("u1", "whatsapp").last_counterpart_id == "15551234567"

    def test_same_resource_id_on_other_provider_does_not_match(self, correlator, services, connected):
        body = {"object": "page", "entry": [_messenger_entry("phone-1", "psid-9")]}
        result = correlator.ingest("facebook", body)

        assert result.unmatched == 1
        assert services.connections.get("u1", "whatsapp").last_counterpart_id is None

    @pytest.mark.parametrize(
        "body",
        ["nope", [], [1, 2], 42, {"object": "page", "entry": {"id": "p1"}}],
    )
    def test_unexpected_shape_is_counted_not_raised(self, correlator, body):
        result = correlator.ingest("facebook", body)
        assert (result.matched, result.malformed) == (0, 1)

    def test_store_failure_does_not_abort_batch(self, correlator, services, connected, monkeypatch):
        record = services.connections.record_counterpart
        calls = []

        def flaky_record(provider, resource_field, resource_id, counterpart_id, seen_at):
            calls.append(counterpart_id)
            if counterpart_id == "psid-1":
                raise StorageError("Failed to load users")
            if counterpart_id == "psid-2":
                raise TimeoutError("Could not acquire lock lock:users")
            return record(provider, resource_field, resource_id, counterpart_id, seen_at)

        monkeypatch.setattr(services.connections, "record_counterpart", flaky_record)
        body = {
            "object": "page",
            "entry": [
                _messenger_entry("p1", "psid-1"),
                _messenger_entry("p1", "psid-2"),
                _messenger_entry("p1", "psid-3"),
            ],
        }

        result = correlator.ingest("facebook", body)

        assert calls == ["psid-1", "psid-2", "psid-3"]
        assert (result.matched, result.failed) == (1, 2)
        assert services.connections.get("u1", "facebook").last_counterpart_id == "psid-3"

    def test_empty_batch(self, correlator):
        result = correlator.ingest("facebook", {"object": "page"})
        assert (result.matched, result.unmatched, result.malformed) == (0, 0, 0)
