"""HTTP surface: users, connections, webhooks"""

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from linkhub_web.app import create_app


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as test_client:
        yield test_client


@pytest.fixture
def signed_in(client):
    response = client.post(
        "/api/users",
        json={"uid": "u1", "name": "User One", "email": "u1@example.com"},
    )
    assert response.status_code == 201
    return client


def _begin(client, provider="facebook", uid="u1"):
    response = client.post(f"/api/connections/{provider}/auth-url", json={"uid": uid})
    assert response.status_code == 200
    url = response.json()["url"]
    return parse_qs(urlparse(url).query)["state"][0]


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


class TestUserRoutes:
    def test_sign_in_is_idempotent(self, signed_in):
        again = signed_in.post(
            "/api/users",
            json={"uid": "u1", "name": "User One", "email": "u1@example.com"},
        )
        assert again.status_code == 200
        assert again.json()["message"] == "User already exists"
        assert again.json()["user"]["uid"] == "u1"

    def test_invalid_email(self, client):
        response = client.post("/api/users", json={"uid": "u1", "name": "x", "email": "not-an-email"})
        assert response.status_code == 422

    def test_get_and_update(self, signed_in):
        response = signed_in.patch("/api/users/u1", json={"updates": {"name": "Renamed"}})
        assert response.status_code == 200
        assert signed_in.get("/api/users/u1").json()["name"] == "Renamed"

    def test_update_connections_forbidden(self, signed_in):
        response = signed_in.patch("/api/users/u1", json={"updates": {"connections": []}})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.parametrize("updates", [{"name": None}, {"settings": "dark"}])
    def test_update_with_bad_values(self, signed_in, updates):
        response = signed_in.patch("/api/users/u1", json={"updates": updates})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_unknown_user(self, client):
        assert client.get("/api/users/ghost").status_code == 404


class TestConnectionRoutes:
    def test_callback_flow(self, signed_in):
        state = _begin(signed_in)

        response = signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": state})

        assert response.status_code == 200
        assert response.json() == {"pageId": "p1", "pageName": "Shop", "provider": "facebook", "status": "connected"}
        listed = signed_in.get("/api/connections/users/u1").json()
        assert listed[0]["status"] == "connected"
        assert "pageAccessToken" not in listed[0]

    def test_callback_with_foreign_state(self, signed_in, services):
        forged = services.lifecycle.codec.issue("u1", "facebook")
        _begin(signed_in)

        response = signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": forged})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"

    def test_callback_rejects_replayed_session_cookie(self, signed_in):
        state = _begin(signed_in)
        cookie_with_state = signed_in.cookies.get("linkhub_session")

        first = signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": state})
        assert first.status_code == 200

        signed_in.cookies.clear()
        replay = signed_in.get(
            "/api/connections/facebook/callback",
            params={"code": "c1", "state": state},
            headers={"Cookie": f"linkhub_session={cookie_with_state}"},
        )
        assert replay.status_code == 400
        assert replay.json()["error"] == "InvalidState"

    def test_callback_with_denied_consent(self, signed_in):
        response = signed_in.get(
            "/api/connections/facebook/callback",
            params={"error": "access_denied", "error_description": "Permissions error"},
        )
        assert response.status_code == 400
        assert "Permissions error" in response.json()["message"]

    def test_exchange_code_with_session_uid(self, signed_in):
        _begin(signed_in, provider="whatsapp")

        response = signed_in.post(
            "/api/connections/whatsapp/exchange-code",
            json={"authorizationCode": "c1", "uid": "u1"},
        )

        assert response.status_code == 200
        assert response.json()["phoneNumberId"] == "phone-1"

    def test_exchange_code_uid_must_match_session(self, signed_in):
        response = signed_in.post(
            "/api/connections/whatsapp/exchange-code",
            json={"code": "c1", "uid": "someone-else"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"

    def test_exchange_code_without_session(self, client, user):
        response = client.post("/api/connections/facebook/exchange-code", json={"code": "c1", "uid": "u1"})
        assert response.status_code == 400

    def test_auth_url_unknown_user(self, client):
        response = client.post("/api/connections/facebook/auth-url", json={"uid": "ghost"})
        assert response.status_code == 404

    def test_auth_url_unsupported_provider(self, signed_in):
        response = signed_in.post("/api/connections/linkedin/auth-url", json={"uid": "u1"})
        assert response.status_code == 400

    def test_notify_and_disconnect(self, signed_in, graph):
        state = _begin(signed_in)
        signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": state})

        response = signed_in.post(
            "/api/connections/facebook/notify",
            json={"uid": "u1", "psid": "123", "message": "Your order shipped"},
        )
        assert response.json() == {"success": True}
        _, endpoint, _, body = graph.calls[-1]
        assert endpoint == "me/messages"
        assert body["recipient"] == {"id": "123"}

        assert signed_in.post("/api/connections/facebook/disconnect", json={"uid": "u1"}).status_code == 200
        assert signed_in.post("/api/connections/facebook/disconnect", json={"uid": "u1"}).status_code == 200
        assert signed_in.get("/api/connections/users/u1").json() == []

        response = signed_in.post(
            "/api/connections/facebook/notify",
            json={"uid": "u1", "psid": "123", "message": "again"},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NotConnected"

    def test_notify_requires_target(self, signed_in):
        response = signed_in.post("/api/connections/facebook/notify", json={"uid": "u1", "message": "hi"})
        assert response.status_code == 400

    def test_upstream_token_error_is_bad_gateway(self, signed_in, graph):
        from linkhub.utils.exceptions import UpstreamAuthError

        graph.when(
            "GET",
            "oauth/access_token",
            UpstreamAuthError("Error validating access token (code=190)", error_code=190, http_status=400),
        )
        state = _begin(signed_in)

        response = signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": state})

        assert response.status_code == 502
        assert response.json()["code"] == 190


class TestWebhookRoutes:
    def test_verify(self, client):
        response = client.get(
            "/api/connections/facebook/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "fb-verify-token", "hub.challenge": "1234"},
        )
        assert response.status_code == 200
        assert response.text == "1234"

    def test_verify_rejects_wrong_token(self, client):
        response = client.get(
            "/api/connections/facebook/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1234"},
        )
        assert response.status_code == 403

    def test_events(self, signed_in):
        state = _begin(signed_in)
        signed_in.get("/api/connections/facebook/callback", params={"code": "c1", "state": state})

        response = signed_in.post(
            "/api/connections/facebook/webhook",
            json={
                "object": "page",
                "entry": [
                    {"id": "p1", "messaging": [{"sender": {"id": "psid-5"}, "recipient": {"id": "p1"}}]},
                    {"id": "p1", "messaging": [{"recipient": {"id": "p1"}}]},
                ],
            },
        )

        assert response.status_code == 200
        assert signed_in.get("/api/connections/users/u1").json()[0]["lastCounterpartId"] == "psid-5"

    @pytest.mark.parametrize("body", [[], "text", {"object": "page", "entry": {"id": "p1"}}])
    def test_unexpected_shape_is_acknowledged(self, client, body):
        response = client.post("/api/connections/facebook/webhook", json=body)
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_events_acknowledged_when_store_unreadable(self, client, user, settings):
        (settings.data_dir / "users.json").write_text("{not json", encoding="utf-8")

        response = client.post(
            "/api/connections/facebook/webhook",
            json={
                "object": "page",
                "entry": [{"id": "p1", "messaging": [{"sender": {"id": "psid-5"}, "recipient": {"id": "p1"}}]}],
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_invalid_json(self, client):
        response = client.post(
            "/api/connections/facebook/webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_unsupported_provider(self, client):
        response = client.post("/api/connections/linkedin/webhook", json={"object": "page", "entry": []})
        assert response.status_code == 400
