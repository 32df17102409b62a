"""
WhatsApp Business Cloud adapter.

Binds the first phone number of the first WhatsApp Business Account (WABA)
visible to the user token, and sends template or text messages from it.
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
from linkhub.utils.exceptions import UpstreamAuthError, UpstreamSendError, ValidationError

WABA_FIELDS = (
    "id,name,whatsapp_business_accounts"
    "{name,id,phone_numbers{display_phone_number,id,verified_name}}"
)


class WhatsAppAdapter(ProviderAdapter):
    name = "whatsapp"
    resource_field = "phoneNumberId"

    def discover_resource(self, long_lived: LongLivedToken) -> ProviderResource:
        profile = self.graph.get(
            "me",
            UpstreamAuthError,
            access_token=long_lived.access_token,
            fields=WABA_FIELDS,
        )
        accounts = (profile.get("whatsapp_business_accounts") or {}).get("data") or []
        waba = select_first(accounts, "No WhatsApp Business Account found for this user.")
        numbers = (waba.get("phone_numbers") or {}).get("data") or []
        phone = select_first(numbers, "No phone number found in the WhatsApp Business Account.")
        return ProviderResource(
            resource_id=phone["id"],
            public_ids={
                "wabaId": waba["id"],
                "phoneNumberId": phone["id"],
                "displayPhoneNumber": phone.get("display_phone_number") or "",
            },
        )

    def validate_payload(self, payload: NotificationPayload) -> None:
        if not payload.template_name and not payload.text:
            raise ValidationError("templateName or message is required for WhatsApp notifications")

    def send_message(
        self,
        connection: Connection,
        target: str,
        payload: NotificationPayload,
    ) -> Dict[str, Any]:
        if not connection.user_access_token or not connection.phone_number_id:
            raise UpstreamSendError("WhatsApp connection is incomplete. Reconnect.")
        body: Dict[str, Any] = {"messaging_product": "whatsapp", "to": target}
        if payload.template_name:
            body["type"] = "template"
            body["template"] = {
                "name": payload.template_name,
                "language": {"code": payload.language_code},
                "components": payload.components,
            }
        else:
            body["type"] = "text"
            body["text"] = {"body": payload.text}
        return self.graph.post(
            f"{connection.phone_number_id}/messages",
            UpstreamSendError,
            body,
            access_token=connection.user_access_token,
        )

    def parse_entry(self, entry: Dict[str, Any]) -> List[WebhookEvent]:
        if not isinstance(entry, dict):
            raise ValueError("entry is not an object")
        events: List[WebhookEvent] = []
        for change in entry.get("changes") or []:
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                raise ValueError("change without value")
            messages = value.get("messages") or []
            if not messages:
                # statuses / template updates carry no inbound counterpart
                continue
            phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
            if not phone_number_id:
                raise ValueError("message change without metadata.phone_number_id")
            for msg in messages:
                wa_id = msg.get("from") if isinstance(msg, dict) else None
                if not wa_id:
                    raise ValueError("message without sender wa_id")
                events.append(WebhookEvent(resource_id=str(phone_number_id), counterpart_id=str(wa_id)))
        return events
