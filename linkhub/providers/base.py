"""
Provider adapter interface.

One adapter per provider encapsulates the provider's OAuth dialog, token
endpoints, resource discovery, send API and webhook payload shape. The
lifecycle manager only talks to this interface.

Both modeled providers (Facebook Pages, WhatsApp Cloud) authorize through the
same Meta OAuth dialog, so the token steps are implemented here once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, TypeVar
from urllib.parse import urlencode

from linkhub.connections.models import (
    Connection,
    LongLivedToken,
    NotificationPayload,
    ProviderResource,
    ShortLivedToken,
    WebhookEvent,
)
from linkhub.core.config import ProviderAppConfig
from linkhub.providers.graph import GraphClient
from linkhub.utils.exceptions import NoResourceFound, UpstreamAuthError

T = TypeVar("T")


def select_first(items: Sequence[T], message: str) -> T:
    """
    Resource selection policy: bind the first eligible resource the provider lists.

    Users with several Pages / numbers get the first one; there is no picker.
    """
    if not items:
        raise NoResourceFound(message)
    return items[0]


class ProviderAdapter(ABC):
    name: str = ""
    # Connection field (camelCase) holding the provider id webhooks are keyed by
    resource_field: str = ""

    def __init__(self, config: ProviderAppConfig, graph: GraphClient):
        self.config = config
        self.graph = graph

    @property
    def verify_token(self) -> Optional[str]:
        return self.config.verify_token

    # -- OAuth ---------------------------------------------------------------

    def build_authorization_url(self, state: str, scopes: Optional[List[str]] = None) -> str:
        params = {
            "client_id": self.config.app_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "state": state,
            "scope": ",".join(scopes if scopes is not None else self.config.scopes),
        }
        return f"{self.graph.dialog_url}?{urlencode(params)}"

    def exchange_code(self, code: str) -> ShortLivedToken:
        data = self.graph.get(
            "oauth/access_token",
            UpstreamAuthError,
            client_id=self.config.app_id,
            client_secret=self.config.app_secret,
            redirect_uri=self.config.redirect_uri,
            code=code,
        )
        token = data.get("access_token")
        if not token:
            raise UpstreamAuthError("Meta did not return an access_token.")
        return ShortLivedToken(access_token=token)

    def upgrade_token(self, short_lived: ShortLivedToken, now: Optional[datetime] = None) -> LongLivedToken:
        """Trade the short-lived token for a long-lived one; expiry is counted from now."""
        data = self.graph.get(
            "oauth/access_token",
            UpstreamAuthError,
            grant_type="fb_exchange_token",
            client_id=self.config.app_id,
            client_secret=self.config.app_secret,
            fb_exchange_token=short_lived.access_token,
        )
        token = data.get("access_token")
        if not token:
            raise UpstreamAuthError("Meta did not return a long-lived access_token.")
        expires_at = None
        expires_in = data.get("expires_in")
        if isinstance(expires_in, (int, float)) or (isinstance(expires_in, str) and expires_in.isdigit()):
            expires_at = (now or datetime.now(timezone.utc)) + timedelta(seconds=int(expires_in))
        return LongLivedToken(access_token=token, expires_at=expires_at)

    # -- provider specific -----------------------------------------------------

    @abstractmethod
    def discover_resource(self, long_lived: LongLivedToken) -> ProviderResource:
        """Find the Page / phone number this connection binds to."""

    @abstractmethod
    def validate_payload(self, payload: NotificationPayload) -> None:
        """Raise ValidationError if the payload cannot be sent through this provider."""

    @abstractmethod
    def send_message(
        self,
        connection: Connection,
        target: str,
        payload: NotificationPayload,
    ) -> Dict[str, Any]:
        """Send a message to target using the connection's stored credential."""

    @abstractmethod
    def parse_entry(self, entry: Dict[str, Any]) -> List[WebhookEvent]:
        """Reduce one webhook batch entry to correlation events; ValueError if malformed."""
