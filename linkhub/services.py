"""
Service wiring.

build_services() assembles the stores, vault, codec, adapters, lifecycle
manager and webhook correlator from Settings. The web layer builds one
instance per process; tests pass their own adapters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from linkhub.connections.audit import ConnectionAuditLog
from linkhub.connections.crypto import CredentialVault
from linkhub.connections.lifecycle import ConnectionLifecycleManager
from linkhub.connections.state import ConsumedStateLedger, StateTokenCodec
from linkhub.connections.store import ConnectionStore
from linkhub.connections.webhooks import WebhookCorrelator
from linkhub.core.config import Settings
from linkhub.providers import build_adapters
from linkhub.providers.base import ProviderAdapter
from linkhub.users.store import UserStore


@dataclass
class LinkhubServices:
    settings: Settings
    users: UserStore
    connections: ConnectionStore
    lifecycle: ConnectionLifecycleManager
    webhooks: WebhookCorrelator


def build_services(
    settings: Settings,
    adapters: Optional[Mapping[str, ProviderAdapter]] = None,
) -> LinkhubServices:
    vault = CredentialVault(settings.encryption_key)
    codec = StateTokenCodec(
        settings.state_secret,
        settings.state_max_age_seconds,
        ledger=ConsumedStateLedger(settings.data_dir, settings.state_max_age_seconds),
    )
    users = UserStore(settings.data_dir)
    connections = ConnectionStore(users, vault)
    if adapters is None:
        adapters = build_adapters(settings)
    lifecycle = ConnectionLifecycleManager(
        users=users,
        connections=connections,
        codec=codec,
        adapters=adapters,
        audit=ConnectionAuditLog(settings.data_dir),
    )
    webhooks = WebhookCorrelator(connections, adapters)
    return LinkhubServices(
        settings=settings,
        users=users,
        connections=connections,
        lifecycle=lifecycle,
        webhooks=webhooks,
    )
