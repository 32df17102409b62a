"""
Credential vault for provider tokens at rest.

Uses Fernet (symmetric AES + HMAC) via the cryptography library. The key is
a server-held secret (ENCRYPTION_SECRET): urlsafe base64 of 32 random bytes.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Iterable

from cryptography.fernet import Fernet, InvalidToken

from linkhub.connections.models import ENCRYPTED_FIELDS
from linkhub.utils.exceptions import ConfigError, CredentialError


def generate_key() -> str:
    return Fernet.generate_key().decode("utf-8")


class CredentialVault:
    """Encrypts designated credential fields before write, decrypts on read."""

    def __init__(self, key: str, fields: Iterable[str] = ENCRYPTED_FIELDS):
        if not key:
            raise ConfigError("ENCRYPTION_SECRET must be set to a Fernet key for credential encryption.")
        try:
            raw = base64.urlsafe_b64decode(key.encode("utf-8"))
        except (binascii.Error, ValueError):
            raw = b""
        if len(raw) != 32:
            raise ConfigError(
                "ENCRYPTION_SECRET must be a urlsafe base64-encoded 32-byte key "
                "(run scripts/generate_secret.py)."
            )
        self._fernet = Fernet(key.encode("utf-8"))
        self.fields = tuple(fields)

    def encrypt(self, plain: str) -> str:
        """Encrypt a token string for persistent storage."""
        return self._fernet.encrypt(plain.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a previously encrypted token."""
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            raise CredentialError("Stored credential could not be decrypted")

    def encrypt_fields(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(doc)
        for name in self.fields:
            if out.get(name):
                out[name] = self.encrypt(out[name])
        return out

    def decrypt_fields(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(doc)
        for name in self.fields:
            if out.get(name):
                out[name] = self.decrypt(out[name])
        return out
