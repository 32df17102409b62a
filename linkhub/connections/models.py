"""
Connection models.

A Connection is one provider link for one user. Connections are embedded in
the user document (see linkhub.users.models) and persisted with camelCase
keys; credential fields hold ciphertext at rest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    FACEBOOK = "facebook"
    WHATSAPP = "whatsapp"


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    CONNECTED = "connected"


# Persisted keys encrypted by the credential vault
ENCRYPTED_FIELDS = ("userAccessToken", "pageAccessToken")


class Connection(BaseModel):
    """One provider link. Credential fields are plaintext in memory."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    provider: Provider
    status: ConnectionStatus = ConnectionStatus.PENDING

    # Facebook
    page_id: Optional[str] = Field(default=None, alias="pageId")
    page_name: Optional[str] = Field(default=None, alias="pageName")
    # WhatsApp
    waba_id: Optional[str] = Field(default=None, alias="wabaId")
    phone_number_id: Optional[str] = Field(default=None, alias="phoneNumberId")
    display_phone_number: Optional[str] = Field(default=None, alias="displayPhoneNumber")

    user_access_token: Optional[str] = Field(default=None, alias="userAccessToken")
    page_access_token: Optional[str] = Field(default=None, alias="pageAccessToken")
    token_expires_at: Optional[datetime] = Field(default=None, alias="tokenExpiresAt")

    auth_url: Optional[str] = Field(default=None, alias="authUrl")
    connected_at: Optional[datetime] = Field(default=None, alias="connectedAt")

    # Volatile, written by inbound webhooks
    last_counterpart_id: Optional[str] = Field(default=None, alias="lastCounterpartId")
    last_event_at: Optional[datetime] = Field(default=None, alias="lastEventAt")

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED.value

    def to_document(self) -> Dict[str, Any]:
        """Persisted (camelCase) representation, credentials still plaintext."""
        return self.model_dump(mode="json", by_alias=True)

    def public_view(self) -> Dict[str, Any]:
        """Representation safe to return to API callers (no credentials)."""
        data = self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude={"user_access_token", "page_access_token"},
        )
        return data


@dataclass(frozen=True)
class ShortLivedToken:
    access_token: str


@dataclass(frozen=True)
class LongLivedToken:
    access_token: str
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProviderResource:
    """
    Provider-side resource a connection binds to (Facebook Page, WhatsApp number).

    public_ids are camelCase Connection fields returned to the caller;
    access_token is a resource-scoped credential (Page token) when the
    provider issues one.
    """

    resource_id: str
    public_ids: Dict[str, str]
    access_token: Optional[str] = None


@dataclass
class NotificationPayload:
    """Message to send through a connection."""

    text: Optional[str] = None
    template_name: Optional[str] = None
    language_code: str = "en_US"
    components: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class WebhookEvent:
    """One inbound event reduced to its correlation keys."""

    resource_id: str
    counterpart_id: str
