"""
Webhook correlator. Routes inbound provider events by provider resource id
(Page id / phone-number id) to the stored Connection; the provider never
tells us the application user id.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from linkhub.connections.store import ConnectionStore
from linkhub.providers.base import ProviderAdapter
from linkhub.utils.exceptions import LinkhubError, ValidationError, WebhookVerificationFailed
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IngestResult:
    matched: int = 0
    unmatched: int = 0
    malformed: int = 0
    failed: int = 0


def _normalize_payload(body: Any) -> Optional[Dict[str, Any]]:
    """Meta may send { object, entry } or [ { object, entry } ]; None for any other shape."""
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0]
    if isinstance(body, dict):
        return body
    return None


class WebhookCorrelator:
    def __init__(
        self,
        connections: ConnectionStore,
        adapters: Mapping[str, ProviderAdapter],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.connections = connections
        self.adapters = dict(adapters)
        self.clock = clock

    def _adapter(self, provider: str) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ValidationError(f"Unsupported provider '{provider}'")
        return adapter

    def verify(self, provider: str, mode: str, verify_token: str, challenge: str) -> str:
        """Echo the challenge when mode=subscribe and the verify token matches."""
        adapter = self._adapter(provider)
        expected = adapter.verify_token or ""
        token_ok = bool(expected) and secrets.compare_digest(
            (verify_token or "").encode("utf-8"), expected.encode("utf-8")
        )
        if mode == "subscribe" and token_ok:
            logger.info("Webhook verification successful", provider=provider)
            return challenge
        logger.warning("Webhook verification failed", provider=provider, mode=mode)
        raise WebhookVerificationFailed()

    def ingest(self, provider: str, body: Any) -> IngestResult:
        """
        Update correlation fields for every event in the batch.

        Neither a malformed entry nor a failed store update aborts the rest
        of the batch, and an unexpected payload shape is counted as malformed
        instead of being rejected.
        """
        adapter = self._adapter(provider)
        result = IngestResult()

        payload = _normalize_payload(body)
        entries = (payload.get("entry") or []) if payload is not None else None
        if not isinstance(entries, list):
            result.malformed += 1
            logger.warning(
                "Webhook payload has unexpected shape",
                provider=provider,
                payload_type=type(body).__name__,
            )
            return result

        for index, entry in enumerate(entries):
            try:
                events = adapter.parse_entry(entry)
            except (ValueError, TypeError, AttributeError) as e:
                result.malformed += 1
                logger.warning("Malformed webhook entry", provider=provider, index=index, error=str(e))
                continue
            for event in events:
                try:
                    matched = self.connections.record_counterpart(
                        provider,
                        adapter.resource_field,
                        event.resource_id,
                        event.counterpart_id,
                        self.clock(),
                    )
                except (LinkhubError, OSError) as e:  # lock TimeoutError is an OSError
                    result.failed += 1
                    logger.error(
                        "Webhook event could not be recorded",
                        provider=provider,
                        index=index,
                        resource_id=event.resource_id,
                        error=str(e),
                    )
                    continue
                if matched:
                    result.matched += 1
                else:
                    result.unmatched += 1
                    logger.debug("Webhook event matched no connection", provider=provider, resource_id=event.resource_id)

        logger.info(
            "Webhook batch processed",
            provider=provider,
            entries=len(entries),
            matched=result.matched,
            unmatched=result.unmatched,
            malformed=result.malformed,
            failed=result.failed,
        )
        return result
