"""
Connection store: CRUD over the connections list embedded in a user document.

At most one Connection per (user, provider); writes replace by provider.
Credential fields are encrypted on the way in and decrypted on the way out,
so nothing above this module handles ciphertext.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from linkhub.connections.crypto import CredentialVault
from linkhub.connections.models import Connection
from linkhub.users.store import UserStore
from linkhub.utils.exceptions import NotFound


class ConnectionStore:
    def __init__(self, users: UserStore, vault: CredentialVault):
        self.users = users
        self.vault = vault

    def _decode(self, doc: Dict[str, Any]) -> Connection:
        return Connection.model_validate(self.vault.decrypt_fields(doc))

    def _encode(self, connection: Connection) -> Dict[str, Any]:
        return self.vault.encrypt_fields(connection.to_document())

    def list(self, uid: str) -> List[Connection]:
        docs = self.users.get_connection_documents(uid)
        if docs is None:
            raise NotFound("User not found")
        return [self._decode(d) for d in docs]

    def get(self, uid: str, provider: str) -> Optional[Connection]:
        docs = self.users.get_connection_documents(uid)
        if docs is None:
            raise NotFound("User not found")
        for doc in docs:
            if doc.get("provider") == provider:
                return self._decode(doc)
        return None

    def replace(self, uid: str, connection: Connection) -> Connection:
        """Replace the user's connection for connection.provider, or append if none exists."""
        encoded = self._encode(connection)
        provider = encoded["provider"]

        def mutate(conns: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            for i, existing in enumerate(conns):
                if existing.get("provider") == provider:
                    conns[i] = encoded
                    return conns
            conns.append(encoded)
            return conns

        self.users.update_connections(uid, mutate)
        return connection

    def remove(self, uid: str, provider: str) -> bool:
        """Remove the connection for provider; returns False if there was none."""
        removed: List[bool] = []

        def mutate(conns: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            kept = [c for c in conns if c.get("provider") != provider]
            removed.append(len(kept) != len(conns))
            return kept

        self.users.update_connections(uid, mutate)
        return removed[0]

    def record_counterpart(
        self,
        provider: str,
        resource_field: str,
        resource_id: str,
        counterpart_id: str,
        seen_at: datetime,
    ) -> int:
        """Targeted update of the volatile correlation fields keyed by (provider, resource id)."""

        def matches(doc: Dict[str, Any]) -> bool:
            return doc.get("provider") == provider and doc.get(resource_field) == resource_id

        return self.users.update_where(
            matches,
            {"lastCounterpartId": counterpart_id, "lastEventAt": seen_at.isoformat()},
        )
