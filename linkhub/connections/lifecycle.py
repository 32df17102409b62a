"""
Connection lifecycle manager.

Per (user, provider) state machine:

    NONE --begin--> PENDING --complete--> CONNECTED --disconnect--> NONE
                       |                                             ^
                       +----------------- disconnect ----------------+

begin_authorization from any state restarts the flow (the stored Connection
is replaced by a fresh pending one). complete_authorization runs the code
exchange, long-lived upgrade and resource discovery strictly in order and
only then writes the connected Connection in a single document update, so
a failed step leaves whatever was stored before untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from linkhub.connections.audit import ConnectionAuditLog
from linkhub.connections.models import (
    Connection,
    ConnectionStatus,
    NotificationPayload,
)
from linkhub.connections.notifications import NotificationDispatcher
from linkhub.connections.session import SessionStore
from linkhub.connections.state import StateTokenCodec
from linkhub.connections.store import ConnectionStore
from linkhub.providers.base import ProviderAdapter
from linkhub.users.store import UserStore
from linkhub.utils.exceptions import (
    LinkhubError,
    NotConnected,
    NotFound,
    ValidationError,
)
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionLifecycleManager:
    def __init__(
        self,
        users: UserStore,
        connections: ConnectionStore,
        codec: StateTokenCodec,
        adapters: Mapping[str, ProviderAdapter],
        dispatcher: Optional[NotificationDispatcher] = None,
        audit: Optional[ConnectionAuditLog] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.users = users
        self.connections = connections
        self.codec = codec
        self.adapters = dict(adapters)
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.audit = audit
        self.clock = clock

    def adapter(self, provider: str) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ValidationError(f"Unsupported provider '{provider}'")
        return adapter

    def _require_user(self, uid: Optional[str]) -> str:
        if not uid:
            raise ValidationError("uid is required")
        if not self.users.exists(uid):
            raise NotFound("User not found")
        return uid

    def _record(self, uid: Optional[str], provider: str, action: str, result: str, **kw: Any) -> None:
        if self.audit is not None:
            self.audit.record(uid, provider, action, result, **kw)

    # -- transitions -----------------------------------------------------------

    def begin_authorization(self, user_id: str, provider: str, session: SessionStore) -> str:
        """Issue a state, store a pending Connection and return the provider dialog URL."""
        adapter = self.adapter(provider)
        uid = self._require_user(user_id)

        state = self.codec.issue(uid, provider)
        url = adapter.build_authorization_url(state)
        session.set_state(provider, state)

        pending = Connection(provider=provider, status=ConnectionStatus.PENDING, auth_url=url)
        self.connections.replace(uid, pending)

        logger.info("Authorization started", uid=uid, provider=provider)
        self._record(uid, provider, "begin", "ok")
        return url

    def _resolve_owner(
        self,
        provider: str,
        session: SessionStore,
        state: Optional[str],
        session_user_id: Optional[str],
    ) -> str:
        if state:
            uid = self.codec.consume(state, session.get_state(provider), provider)
            session.clear_state(provider)
            return uid
        # Provider flow did not echo state; only an identity bound to the session is trusted
        if session_user_id:
            session.clear_state(provider)
            return session_user_id
        raise ValidationError("code and state (or an authenticated session) are required")

    def complete_authorization(
        self,
        provider: str,
        code: Optional[str],
        session: SessionStore,
        state: Optional[str] = None,
        session_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Exchange the code and bind the discovered resource.

        Returns the resource's public identifiers and the connection status,
        never the tokens.
        """
        adapter = self.adapter(provider)
        if not code:
            raise ValidationError("code is required")

        uid: Optional[str] = None
        try:
            uid = self._resolve_owner(provider, session, state, session_user_id)
            self._require_user(uid)

            short_lived = adapter.exchange_code(code)
            long_lived = adapter.upgrade_token(short_lived, now=self.clock())
            resource = adapter.discover_resource(long_lived)

            connection = Connection(
                provider=provider,
                status=ConnectionStatus.CONNECTED,
                user_access_token=long_lived.access_token,
                page_access_token=resource.access_token,
                token_expires_at=long_lived.expires_at,
                connected_at=self.clock(),
                **resource.public_ids,
            )
            self.connections.replace(uid, connection)
        except LinkhubError as e:
            logger.warning(
                "Authorization failed",
                uid=uid,
                provider=provider,
                error_type=e.__class__.__name__,
                error=e.message,
            )
            self._record(uid, provider, "complete", "error", error=e.message)
            raise

        logger.info("Connection completed", uid=uid, provider=provider, resource_id=resource.resource_id)
        self._record(uid, provider, "complete", "ok", extra={"resource_id": resource.resource_id})
        return {**resource.public_ids, "provider": provider, "status": ConnectionStatus.CONNECTED.value}

    def disconnect(self, user_id: str, provider: str) -> bool:
        """Remove the provider's Connection; disconnecting an absent one is a no-op."""
        self.adapter(provider)
        uid = self._require_user(user_id)
        removed = self.connections.remove(uid, provider)
        logger.info("Disconnected", uid=uid, provider=provider, removed=removed)
        self._record(uid, provider, "disconnect", "ok" if removed else "noop")
        return removed

    def send_notification(
        self,
        user_id: str,
        provider: str,
        target: str,
        payload: NotificationPayload,
    ) -> Dict[str, Any]:
        adapter = self.adapter(provider)
        uid = self._require_user(user_id)
        connection = self.connections.get(uid, provider)
        if connection is None or not connection.is_connected:
            raise NotConnected(provider)
        try:
            return self.dispatcher.dispatch(adapter, connection, target, payload)
        except LinkhubError as e:
            logger.warning("Notification failed", uid=uid, provider=provider, error=e.message)
            self._record(uid, provider, "notify", "error", error=e.message)
            raise

    def list_connections(self, user_id: str) -> List[Dict[str, Any]]:
        uid = self._require_user(user_id)
        return [c.public_view() for c in self.connections.list(uid)]
