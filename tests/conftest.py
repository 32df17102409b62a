"""Shared fixtures: isolated data dir, generated secrets, adapters over a fake Graph API."""

from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

import pytest
from cryptography.fernet import Fernet

from linkhub.connections.session import SessionStore
from linkhub.core.config import FACEBOOK_SCOPES, WHATSAPP_SCOPES, ProviderAppConfig, Settings
from linkhub.providers.facebook import FacebookAdapter
from linkhub.providers.whatsapp import WhatsAppAdapter
from linkhub.services import build_services


FB_CONFIG = ProviderAppConfig(
    app_id="fb-app-id",
    app_secret="fb-app-secret",
    redirect_uri="https://app.example.com/api/connections/facebook/callback",
    verify_token="fb-verify-token",
    scopes=list(FACEBOOK_SCOPES),
)

WA_CONFIG = ProviderAppConfig(
    app_id="fb-app-id",
    app_secret="fb-app-secret",
    redirect_uri="https://app.example.com/api/connections/whatsapp/callback",
    verify_token="wa-verify-token",
    scopes=list(WHATSAPP_SCOPES),
)

Reply = Union[Dict[str, Any], Exception, Callable[[Dict[str, Any], Any], Any]]


class FakeGraph:
    """Stands in for GraphClient: programmed replies per (method, endpoint), records calls."""

    dialog_url = "https://www.facebook.com/v22.0/dialog/oauth"

    def __init__(self):
        self.replies: Dict[Tuple[str, str], Reply] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any], Any]] = []

    def when(self, method: str, endpoint: str, reply: Reply) -> None:
        self.replies[(method, endpoint)] = reply

    def _reply(self, method: str, endpoint: str, params: Dict[str, Any], body: Any) -> Dict[str, Any]:
        self.calls.append((method, endpoint, params, body))
        reply = self.replies[(method, endpoint)]
        if callable(reply) and not isinstance(reply, Exception):
            reply = reply(params, body)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, endpoint, error_cls, **params):
        return self._reply("GET", endpoint, params, None)

    def post(self, endpoint, error_cls, body, **params):
        return self._reply("POST", endpoint, params, body)

    def endpoints(self) -> List[str]:
        return [f"{method} {endpoint}" for method, endpoint, _, _ in self.calls]


def token_replies(params: Dict[str, Any], body: Any) -> Dict[str, Any]:
    if params.get("grant_type") == "fb_exchange_token":
        return {"access_token": "long-user-token", "token_type": "bearer", "expires_in": 5183944}
    return {"access_token": "short-user-token", "token_type": "bearer"}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="test",
        data_dir=tmp_path,
        encryption_key=Fernet.generate_key().decode("utf-8"),
        state_secret="test-state-secret",
        session_secret="test-session-secret",
        state_max_age_seconds=900,
        graph_version="v22.0",
        http_timeout=(5, 10),
        providers={"facebook": FB_CONFIG, "whatsapp": WA_CONFIG},
        log_level="WARNING",
        log_format="console",
    )


@pytest.fixture
def graph() -> FakeGraph:
    fake = FakeGraph()
    fake.when("GET", "oauth/access_token", token_replies)
    fake.when(
        "GET",
        "me/accounts",
        {"data": [{"id": "p1", "name": "Shop", "access_token": "page-token-1"}]},
    )
    fake.when(
        "GET",
        "me",
        {
            "id": "fb-user",
            "name": "Owner",
            "whatsapp_business_accounts": {
                "data": [
                    {
                        "id": "waba-1",
                        "name": "Shop WABA",
                        "phone_numbers": {
                            "data": [
                                {"id": "phone-1", "display_phone_number": "+1 555 0100", "verified_name": "Shop"},
                                {"id": "phone-2", "display_phone_number": "+1 555 0101", "verified_name": "Shop 2"},
                            ]
                        },
                    }
                ]
            },
        },
    )
    fake.when("POST", "me/messages", {"recipient_id": "123", "message_id": "m_1"})
    fake.when("POST", "phone-1/messages", {"messages": [{"id": "wamid.1"}]})
    return fake


@pytest.fixture
def adapters(graph: FakeGraph) -> Dict[str, Any]:
    return {
        "facebook": FacebookAdapter(FB_CONFIG, graph),
        "whatsapp": WhatsAppAdapter(WA_CONFIG, graph),
    }


@pytest.fixture
def services(settings: Settings, adapters):
    return build_services(settings, adapters)


@pytest.fixture
def user(services):
    created, _ = services.users.upsert_on_insert(
        "u1@example.com", {"uid": "u1", "name": "User One", "image": "https://img.example.com/u1.png"}
    )
    return created


@pytest.fixture
def session() -> SessionStore:
    return SessionStore({})
