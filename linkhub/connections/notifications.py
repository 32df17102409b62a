"""Notification dispatch through a connected provider account"""

from typing import Any, Dict

from linkhub.connections.models import Connection, NotificationPayload
from linkhub.providers.base import ProviderAdapter
from linkhub.utils.exceptions import ValidationError
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationDispatcher:
    """Sends a message with a connection's stored credential via its provider adapter"""

    def dispatch(
        self,
        adapter: ProviderAdapter,
        connection: Connection,
        target: str,
        payload: NotificationPayload,
    ) -> Dict[str, Any]:
        if not target:
            raise ValidationError("target is required")
        adapter.validate_payload(payload)
        result = adapter.send_message(connection, target, payload)
        logger.info(
            "Notification sent",
            provider=adapter.name,
            template=payload.template_name,
        )
        return result
