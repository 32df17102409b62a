"""
Provider adapters (Facebook, WhatsApp).

build_adapters() registers one adapter per provider configured in Settings;
a provider without app credentials is simply not available.
"""

from typing import Dict, Optional

from linkhub.core.config import Settings
from linkhub.providers.base import ProviderAdapter
from linkhub.providers.facebook import FacebookAdapter
from linkhub.providers.graph import GraphClient
from linkhub.providers.whatsapp import WhatsAppAdapter
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)

ADAPTER_CLASSES = {
    FacebookAdapter.name: FacebookAdapter,
    WhatsAppAdapter.name: WhatsAppAdapter,
}


def build_adapters(settings: Settings, graph: Optional[GraphClient] = None) -> Dict[str, ProviderAdapter]:
    graph = graph or GraphClient(version=settings.graph_version, timeout=settings.http_timeout)
    adapters: Dict[str, ProviderAdapter] = {}
    for name, cls in ADAPTER_CLASSES.items():
        cfg = settings.providers.get(name)
        if cfg is None:
            logger.warning("Provider not configured; skipping", provider=name)
            continue
        adapters[name] = cls(cfg, graph)
    return adapters


__all__ = [
    "ProviderAdapter",
    "FacebookAdapter",
    "WhatsAppAdapter",
    "GraphClient",
    "build_adapters",
]
