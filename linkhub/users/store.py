"""
User storage with JSON-based persistence.

Each user is one document in data/users.json; its connections are an
embedded ordered list. Every write is a read-modify-write of the whole file
under a cross-process lock, landed with an atomic temp-file replace, so a
reader sees either the previous or the next version of a user document,
never a mix.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from linkhub.core.locks import acquire_lock
from linkhub.core.storage import atomic_write_json, read_json
from linkhub.users.models import PROFILE_FIELDS, User, UserSettings
from linkhub.utils.exceptions import NotFound, StorageError, ValidationError
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)

Document = Dict[str, Any]
ConnectionsMutator = Callable[[List[Document]], List[Document]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _describe_errors(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "profile"
        parts.append(f"{field}: {err.get('msg')}")
    return "Invalid profile update: " + "; ".join(parts)


class UserStore:
    """JSON document store for users and their embedded connections."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.users_path = self.data_dir / "users.json"
        self.locks_dir = self.data_dir / "locks"

    # -- raw document access -------------------------------------------------

    def _load(self) -> List[Document]:
        raw = read_json(self.users_path, {"users": []})
        if not isinstance(raw, dict):
            raise StorageError(f"Unexpected content in {self.users_path}")
        return raw.get("users", [])

    def _save(self, docs: List[Document]) -> None:
        atomic_write_json(self.users_path, {"users": docs})

    def _mutate(self, fn: Callable[[List[Document]], Any]) -> Any:
        with acquire_lock(self.locks_dir, "lock:users"):
            docs = self._load()
            result = fn(docs)
            self._save(docs)
            return result

    @staticmethod
    def _find(docs: List[Document], uid: str) -> Optional[Document]:
        for doc in docs:
            if doc.get("uid") == uid:
                return doc
        return None

    @staticmethod
    def _to_user(doc: Document) -> User:
        data = {k: v for k, v in doc.items() if k != "connections"}
        return User.model_validate(data)

    # -- users ---------------------------------------------------------------

    def find_by_uid(self, uid: str) -> Optional[User]:
        doc = self._find(self._load(), uid)
        return self._to_user(doc) if doc else None

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for doc in self._load():
            if (doc.get("email") or "").lower() == email:
                return self._to_user(doc)
        return None

    def exists(self, uid: str) -> bool:
        return self._find(self._load(), uid) is not None

    def upsert_on_insert(self, email: str, defaults: Dict[str, Any]) -> Tuple[User, bool]:
        """
        Return the user with this email, creating it from defaults if absent.

        Existing users are returned untouched (defaults only apply on insert).
        """
        email = email.strip().lower()

        def apply(docs: List[Document]) -> Tuple[User, bool]:
            for doc in docs:
                if (doc.get("email") or "").lower() == email:
                    return self._to_user(doc), False
            uid = defaults.get("uid")
            if uid and self._find(docs, uid):
                raise ValidationError(f"uid '{uid}' already belongs to another user")
            user = User(**{**defaults, "email": email})
            doc = user.model_dump(mode="json", by_alias=True)
            doc["connections"] = []
            docs.append(doc)
            return user, True

        user, created = self._mutate(apply)
        if created:
            logger.info("User created", uid=user.uid)
        return user, created

    def update_profile(self, uid: str, updates: Dict[str, Any]) -> User:
        invalid = [k for k in updates if k not in PROFILE_FIELDS]
        if invalid:
            raise ValidationError(f"Invalid update fields: {', '.join(sorted(invalid))}")
        if "settings" in updates and not isinstance(updates["settings"], dict):
            raise ValidationError("settings must be an object")

        def apply(docs: List[Document]) -> User:
            doc = self._find(docs, uid)
            if doc is None:
                raise NotFound("User not found")
            merged = {k: v for k, v in doc.items() if k != "connections"}
            merged.update(updates)
            merged["updatedAt"] = _now_iso()
            try:
                if "settings" in updates:
                    current = doc.get("settings") or {}
                    merged["settings"] = UserSettings(**{**current, **updates["settings"]})
                user = User.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(_describe_errors(e))
            doc.update(user.model_dump(mode="json", by_alias=True))
            return user

        return self._mutate(apply)

    def delete_user(self, uid: str) -> bool:
        """Delete a user together with its embedded connections."""

        def apply(docs: List[Document]) -> bool:
            before = len(docs)
            docs[:] = [d for d in docs if d.get("uid") != uid]
            return len(docs) != before

        return self._mutate(apply)

    # -- embedded connections -------------------------------------------------

    def get_connection_documents(self, uid: str) -> Optional[List[Document]]:
        """Raw (persisted) connection documents, or None if the user does not exist."""
        doc = self._find(self._load(), uid)
        if doc is None:
            return None
        return list(doc.get("connections") or [])

    def update_connections(self, uid: str, mutate: ConnectionsMutator) -> List[Document]:
        """Replace a user's connections list with mutate(current) in one document write."""

        def apply(docs: List[Document]) -> List[Document]:
            doc = self._find(docs, uid)
            if doc is None:
                raise NotFound("User not found")
            doc["connections"] = mutate(list(doc.get("connections") or []))
            doc["updatedAt"] = _now_iso()
            return doc["connections"]

        return self._mutate(apply)

    def update_where(
        self,
        predicate: Callable[[Document], bool],
        fields: Dict[str, Any],
    ) -> int:
        """Set fields on every embedded connection matching predicate; returns match count."""

        def apply(docs: List[Document]) -> int:
            matched = 0
            for doc in docs:
                for conn in doc.get("connections") or []:
                    if predicate(conn):
                        conn.update(fields)
                        matched += 1
            return matched

        return self._mutate(apply)
