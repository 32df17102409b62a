"""
Webhook router. Meta calls these unauthenticated:

- GET  /api/connections/{provider}/webhook  verification (hub.challenge echo)
- POST /api/connections/{provider}/webhook  event batches

Events are correlated by provider resource id only; the response is always
200 for a parseable payload so Meta does not retry or disable the hook.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from linkhub.services import LinkhubServices
from linkhub.utils.exceptions import ValidationError
from linkhub.utils.logger import get_logger

from .deps import get_services


logger = get_logger(__name__)

router = APIRouter(prefix="/api/connections", tags=["webhooks"])


@router.get("/{provider}/webhook", response_class=PlainTextResponse)
def webhook_verify(
    provider: str,
    mode: str = Query(default="", alias="hub.mode"),
    verify_token: str = Query(default="", alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
    services: LinkhubServices = Depends(get_services),
) -> PlainTextResponse:
    """Return hub.challenge if hub.verify_token matches the provider's verify token."""
    echoed = services.webhooks.verify(provider, mode, verify_token, challenge)
    return PlainTextResponse(content=echoed, status_code=200)


@router.post("/{provider}/webhook")
async def webhook_events(
    provider: str,
    request: Request,
    services: LinkhubServices = Depends(get_services),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Webhook body is not JSON", provider=provider)
        return JSONResponse(status_code=400, content={"error": "invalid_json"})
    try:
        await run_in_threadpool(services.webhooks.ingest, provider, body)
    except ValidationError as e:
        # only an unsupported provider is rejected; payload problems are counted by ingest
        logger.warning("Webhook for unsupported provider", provider=provider, error=e.message)
        return JSONResponse(status_code=400, content=e.to_dict())
    return JSONResponse(status_code=200, content={"success": True})
