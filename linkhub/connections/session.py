"""
Session store seen by the lifecycle manager.

Holds the outstanding OAuth state for one authorization round trip and the
uid bound at sign-in. In the web app this wraps Starlette's request.session
(signed cookie); tests use a plain dict.
"""

from __future__ import annotations

from typing import MutableMapping, Optional


SESSION_UID_KEY = "uid"


class SessionStore:
    def __init__(self, data: Optional[MutableMapping] = None):
        self._data = data if data is not None else {}

    @staticmethod
    def state_key(provider: str) -> str:
        return f"{provider}_oauth_state"

    def get_state(self, provider: str) -> Optional[str]:
        return self._data.get(self.state_key(provider))

    def set_state(self, provider: str, state: str) -> None:
        self._data[self.state_key(provider)] = state

    def clear_state(self, provider: str) -> None:
        self._data.pop(self.state_key(provider), None)

    @property
    def user_id(self) -> Optional[str]:
        return self._data.get(SESSION_UID_KEY)

    def bind_user(self, uid: str) -> None:
        self._data[SESSION_UID_KEY] = uid
