"""
OAuth state/CSRF protection.

We sign the state payload using itsdangerous (HMAC) so:
- State can't be forged/tampered
- State can expire (max_age)
- State is bound to the session copy recorded when the dialog URL was issued
- State is single use server-side (ConsumedStateLedger), independent of the
  client-held session cookie
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from linkhub.core.locks import acquire_lock
from linkhub.core.storage import atomic_write_json, read_json
from linkhub.utils.exceptions import ConfigError, InvalidState, StorageError


class ConsumedStateLedger:
    """
    Server-side record of consumed state nonces (data/oauth_states.json).

    Entries are kept until the state could no longer pass the max-age check,
    then pruned on the next claim.
    """

    def __init__(self, data_dir: Path, ttl_seconds: int = 15 * 60):
        self.path = Path(data_dir) / "oauth_states.json"
        self.locks_dir = Path(data_dir) / "locks"
        self.ttl_seconds = ttl_seconds

    def claim(self, nonce: str) -> bool:
        """Mark nonce as consumed; False if it already was."""
        with acquire_lock(self.locks_dir, "lock:oauth_states"):
            now = time.time()
            consumed = read_json(self.path, {})
            if not isinstance(consumed, dict):
                raise StorageError(f"Unexpected content in {self.path}")
            consumed = {n: exp for n, exp in consumed.items() if isinstance(exp, (int, float)) and exp > now}
            if nonce in consumed:
                return False
            consumed[nonce] = now + max(self.ttl_seconds, 0)
            atomic_write_json(self.path, consumed)
            return True


class StateTokenCodec:
    def __init__(
        self,
        secret: str,
        max_age_seconds: int = 15 * 60,
        ledger: Optional[ConsumedStateLedger] = None,
    ):
        if not secret:
            raise ConfigError("STATE_SECRET must be set for OAuth CSRF protection.")
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt="linkhub-oauth-state")
        self.max_age_seconds = max_age_seconds
        self.ledger = ledger

    def issue(self, user_id: str, provider: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {
            "uid": user_id,
            "provider": provider or "",
            "nonce": secrets.token_urlsafe(16),
        }
        return self._serializer.dumps(payload)

    def consume(
        self,
        state: Optional[str],
        session_state: Optional[str],
        provider: Optional[str] = None,
    ) -> str:
        """Validate a returned state against the session copy and return its user id."""
        if not session_state:
            raise InvalidState("No OAuth flow in progress for this session.")
        if not state or not secrets.compare_digest(state, session_state):
            raise InvalidState()
        try:
            data = self._serializer.loads(state, max_age=self.max_age_seconds)
        except SignatureExpired:
            raise InvalidState("OAuth state expired. Please try connecting again.")
        except BadSignature:
            raise InvalidState()
        if not isinstance(data, dict) or not data.get("uid"):
            raise InvalidState("Invalid OAuth state payload.")
        if provider and data.get("provider") and data["provider"] != provider:
            raise InvalidState("OAuth state was issued for a different provider.")
        if self.ledger is not None and not self.ledger.claim(str(data.get("nonce") or state)):
            raise InvalidState("OAuth state was already used. Please try connecting again.")
        return str(data["uid"])
