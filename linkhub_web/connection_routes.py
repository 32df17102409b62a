"""
Connection routes.

Endpoints (per provider: facebook, whatsapp):
- POST /api/connections/{provider}/auth-url
- POST /api/connections/{provider}/exchange-code
- GET  /api/connections/{provider}/callback
- POST /api/connections/{provider}/notify
- POST /api/connections/{provider}/disconnect
- GET  /api/connections/users/{uid}

Handlers are plain functions so FastAPI runs them in its thread pool while
the adapters wait on the Graph API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from linkhub.connections.models import NotificationPayload
from linkhub.connections.session import SessionStore
from linkhub.services import LinkhubServices
from linkhub.utils.exceptions import InvalidState, ValidationError

from .deps import get_services, get_session


router = APIRouter(prefix="/api/connections", tags=["connections"])


class AuthUrlRequest(BaseModel):
    uid: Optional[str] = None


class ExchangeCodeRequest(BaseModel):
    code: Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "authorizationCode"))
    state: Optional[str] = None
    uid: Optional[str] = None


class NotifyRequest(BaseModel):
    uid: Optional[str] = None
    target: Optional[str] = Field(default=None, validation_alias=AliasChoices("target", "psid", "to"))
    message: Optional[str] = None
    template_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("templateName", "template_name"))
    language_code: str = Field(default="en_US", validation_alias=AliasChoices("languageCode", "language_code"))
    components: List[Dict[str, Any]] = Field(default_factory=list)


class UidRequest(BaseModel):
    uid: Optional[str] = None


def _complete(
    services: LinkhubServices,
    session: SessionStore,
    provider: str,
    code: Optional[str],
    state: Optional[str],
    uid: Optional[str] = None,
) -> Dict[str, Any]:
    session_uid = session.user_id
    if not state and uid and session_uid and uid != session_uid:
        raise InvalidState("uid does not match the authenticated session.")
    return services.lifecycle.complete_authorization(
        provider,
        code,
        session,
        state=state,
        session_user_id=session_uid,
    )


@router.post("/{provider}/auth-url")
def auth_url(
    provider: str,
    body: AuthUrlRequest,
    services: LinkhubServices = Depends(get_services),
    session: SessionStore = Depends(get_session),
) -> Dict[str, str]:
    """Return the provider dialog URL the client must open."""
    url = services.lifecycle.begin_authorization(body.uid, provider, session)
    return {"url": url}


@router.post("/{provider}/exchange-code")
def exchange_code(
    provider: str,
    body: ExchangeCodeRequest,
    services: LinkhubServices = Depends(get_services),
    session: SessionStore = Depends(get_session),
) -> Dict[str, Any]:
    """
    Exchange the authorization code for stored credentials.

    Body: { code, state } from the provider redirect, or { code, uid } when the
    provider flow did not echo state and the session is already signed in.
    """
    return _complete(services, session, provider, body.code, body.state, body.uid)


@router.get("/{provider}/callback")
def callback(
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    services: LinkhubServices = Depends(get_services),
    session: SessionStore = Depends(get_session),
) -> Dict[str, Any]:
    """Provider redirect target (same semantics as exchange-code)."""
    if error:
        raise ValidationError(f"Authorization was not granted: {error_description or error}")
    return _complete(services, session, provider, code, state)


@router.post("/{provider}/notify")
def notify(
    provider: str,
    body: NotifyRequest,
    services: LinkhubServices = Depends(get_services),
) -> Dict[str, bool]:
    """Send a notification through the user's connected account."""
    if not body.target:
        raise ValidationError("target is required")
    payload = NotificationPayload(
        text=body.message,
        template_name=body.template_name,
        language_code=body.language_code,
        components=body.components,
    )
    services.lifecycle.send_notification(body.uid, provider, body.target, payload)
    return {"success": True}


@router.post("/{provider}/disconnect")
def disconnect(
    provider: str,
    body: UidRequest,
    services: LinkhubServices = Depends(get_services),
) -> Dict[str, bool]:
    """Remove stored credentials; succeeds even when nothing was connected."""
    services.lifecycle.disconnect(body.uid, provider)
    return {"success": True}


@router.get("/users/{uid}")
def list_connections(
    uid: str,
    services: LinkhubServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """List a user's connections without credentials."""
    return services.lifecycle.list_connections(uid)
