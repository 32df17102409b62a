"""
User routes (thin plumbing around UserStore).

- POST  /api/users        fetch-or-create by email, binds uid to the session
- GET   /api/users/{uid}
- PATCH /api/users/{uid}  profile edit (name, image, settings)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

from linkhub.connections.session import SessionStore
from linkhub.services import LinkhubServices
from linkhub.utils.exceptions import NotFound

from .deps import get_services, get_session


router = APIRouter(prefix="/api/users", tags=["users"])


class SignInRequest(BaseModel):
    uid: str
    name: str
    email: EmailStr
    image: Optional[str] = None


class UpdateUserRequest(BaseModel):
    updates: Dict[str, Any]


@router.post("")
def fetch_or_create_user(
    body: SignInRequest,
    services: LinkhubServices = Depends(get_services),
    session: SessionStore = Depends(get_session),
) -> JSONResponse:
    user, created = services.users.upsert_on_insert(
        body.email,
        {"uid": body.uid, "name": body.name, "image": body.image},
    )
    session.bind_user(user.uid)
    return JSONResponse(
        status_code=201 if created else 200,
        content={
            "message": "User created" if created else "User already exists",
            "user": user.to_public(),
        },
    )


@router.get("/{uid}")
def get_user(uid: str, services: LinkhubServices = Depends(get_services)) -> Dict[str, Any]:
    user = services.users.find_by_uid(uid)
    if user is None:
        raise NotFound("User not found")
    return user.to_public()


@router.patch("/{uid}")
def update_user(
    uid: str,
    body: UpdateUserRequest,
    services: LinkhubServices = Depends(get_services),
) -> Dict[str, Any]:
    user = services.users.update_profile(uid, body.updates)
    return {"message": "User updated", "user": user.to_public()}
