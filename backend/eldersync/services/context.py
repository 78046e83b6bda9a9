"""
Application context - every collaborator the handlers need, built once at
startup and closed at shutdown.
"""

import logging
from dataclasses import dataclass

from ..config import Settings
from ..storage import (
    AlertLog,
    HistoryLog,
    KeyValueStore,
    LocalKeyValueStore,
    PatientStore,
    SupabaseKeyValueStore,
    UserStorage,
)
from ..utils.auth import IdentityProvider, LocalIdentityProvider, SupabaseIdentityProvider
from .device_registry import DeviceRegistry
from .ingest import IngestService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Collaborators shared by all request handlers."""
    settings: Settings
    store: KeyValueStore
    identity: IdentityProvider
    patients: PatientStore
    history: HistoryLog
    alerts: AlertLog
    devices: DeviceRegistry
    ingest: IngestService

    async def close(self) -> None:
        await self.identity.close()
        await self.store.close()


def create_store(settings: Settings) -> KeyValueStore:
    """Build the key-value backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "local":
        return LocalKeyValueStore(settings.local_storage_path)
    if settings.storage_backend == "supabase":
        return SupabaseKeyValueStore(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            table=settings.kv_table,
            timeout=settings.http_timeout,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


def create_identity_provider(settings: Settings, store: KeyValueStore) -> IdentityProvider:
    """Build the identity provider named by ``settings.auth_backend``."""
    if settings.auth_backend == "local":
        return LocalIdentityProvider(
            UserStorage(store),
            secret_key=settings.secret_key,
            algorithm=settings.algorithm,
            access_token_expire_minutes=settings.access_token_expire_minutes,
        )
    if settings.auth_backend == "supabase":
        return SupabaseIdentityProvider(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            anon_key=settings.supabase_anon_key,
            timeout=settings.http_timeout,
        )
    raise ValueError(f"Unsupported auth backend: {settings.auth_backend}")


def build_context(settings: Settings) -> AppContext:
    """Wire the stores and services for one application instance."""
    store = create_store(settings)
    identity = create_identity_provider(settings, store)
    patients = PatientStore(store)
    history = HistoryLog(store, page_size=settings.history_page_size)
    alerts = AlertLog(store)
    devices = DeviceRegistry(store, patients)
    ingest = IngestService(
        registry=devices,
        patients=patients,
        history=history,
        alerts=alerts,
        timezone_name=settings.timezone,
    )

    logger.info(
        "Application context ready",
        extra={"extra_fields": {
            "storage_backend": settings.storage_backend,
            "auth_backend": settings.auth_backend,
        }},
    )
    return AppContext(
        settings=settings,
        store=store,
        identity=identity,
        patients=patients,
        history=history,
        alerts=alerts,
        devices=devices,
        ingest=ingest,
    )
