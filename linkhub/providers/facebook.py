"""
Facebook Page / Messenger adapter.

Binds the first Page the user manages and sends Messenger notifications
with the Page access token.
"""

from __future__ import annotations

from typing import Any, Dict, List

from linkhub.connections.models import (
    Connection,
    LongLivedToken,
    NotificationPayload,
    ProviderResource,
    WebhookEvent,
)
from linkhub.providers.base import ProviderAdapter, select_first
from linkhub.utils.exceptions import (
    NoResourceFound,
    UpstreamAuthError,
    UpstreamSendError,
    ValidationError,
)


class FacebookAdapter(ProviderAdapter):
    name = "facebook"
    resource_field = "pageId"

    def discover_resource(self, long_lived: LongLivedToken) -> ProviderResource:
        data = self.graph.get(
            "me/accounts",
            UpstreamAuthError,
            access_token=long_lived.access_token,
            fields="id,name,access_token",
        )
        pages = data.get("data") or []
        page = select_first(pages, "No Facebook Pages found for this user. Connect a Page first.")
        if not page.get("id") or not page.get("access_token"):
            raise NoResourceFound("Meta did not return a usable Page. Check the granted permissions.")
        return ProviderResource(
            resource_id=page["id"],
            public_ids={"pageId": page["id"], "pageName": page.get("name") or ""},
            access_token=page["access_token"],
        )

    def validate_payload(self, payload: NotificationPayload) -> None:
        if not payload.text:
            raise ValidationError("message is required for Facebook notifications")

    def send_message(
        self,
        connection: Connection,
        target: str,
        payload: NotificationPayload,
    ) -> Dict[str, Any]:
        if not connection.page_access_token:
            raise UpstreamSendError("Facebook connection has no Page access token. Reconnect.")
        return self.graph.post(
            "me/messages",
            UpstreamSendError,
            {
                "recipient": {"id": target},  # page-scoped id
                "message": {"text": payload.text},
                "messaging_type": "MESSAGE_TAG",
                "tag": "ACCOUNT_UPDATE",
            },
            access_token=connection.page_access_token,
        )

    def parse_entry(self, entry: Dict[str, Any]) -> List[WebhookEvent]:
        if not isinstance(entry, dict):
            raise ValueError("entry is not an object")
        page_id = entry.get("id")
        events: List[WebhookEvent] = []
        for ev in entry.get("messaging") or []:
            if not isinstance(ev, dict):
                raise ValueError("messaging event is not an object")
            sender = (ev.get("sender") or {}).get("id")
            recipient = (ev.get("recipient") or {}).get("id") or page_id
            if not sender or not recipient:
                raise ValueError("messaging event without sender/recipient id")
            # Echoes of our own sends come back with the Page as sender
            if sender == recipient:
                continue
            events.append(WebhookEvent(resource_id=str(recipient), counterpart_id=str(sender)))
        return events
