"""
FastAPI dependencies shared by the routers.

Services are built once per process in create_app() and stored on
app.state; the session wraps Starlette's signed-cookie request.session.
"""

from __future__ import annotations

from fastapi import Request

from linkhub.connections.session import SessionStore
from linkhub.services import LinkhubServices


def get_services(request: Request) -> LinkhubServices:
    return request.app.state.services


def get_session(request: Request) -> SessionStore:
    return SessionStore(request.session)
