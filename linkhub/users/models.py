"""
User models.

Users are keyed by a stable external `uid` and own an ordered list of
embedded connections. Persistence is a JSON document per user under
data/users.json (see linkhub.users.store).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserSettings(BaseModel):
    language: str = "en"
    notifications: bool = True
    theme: Literal["light", "dark"] = "light"


class User(BaseModel):
    """User record without its connections (those go through ConnectionStore)."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    name: str
    email: EmailStr
    image: Optional[str] = None
    settings: UserSettings = Field(default_factory=UserSettings)
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    def to_public(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# Fields a profile edit may touch; connections change only through the lifecycle
PROFILE_FIELDS = ("name", "image", "settings")
