# vibe_api/container.py
# Explicit wiring of clients, repositories and services
# Built once at startup from Settings; tests hand create_app their own container

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from vibe_api.clients.dns_client import DnsClient
from vibe_api.clients.payment_client import PaymentClient
from vibe_api.clients.sandbox_client import SandboxClient
from vibe_api.clients.telemetry_client import TelemetryClient
from vibe_api.config import Settings
from vibe_api.db.kv import close_kv_client, create_kv_client
from vibe_api.db.mongo import close_mongo_client, create_mongo_client, get_database
from vibe_api.jobs.queue import JobQueue
from vibe_api.repositories.chat_session_repository import ChatSessionRepository
from vibe_api.repositories.domain_repository import DomainRepository
from vibe_api.repositories.gallery_repository import GalleryRepository
from vibe_api.repositories.session_files_repository import SessionFilesRepository
from vibe_api.repositories.terminal_registry import TerminalRegistry
from vibe_api.services.auth_service import AuthService
from vibe_api.services.chat_session_service import ChatSessionService
from vibe_api.services.credits_service import CreditsService
from vibe_api.services.domain_service import DomainService
from vibe_api.services.file_collection_service import FileCollectionService
from vibe_api.services.gallery_service import GalleryService
from vibe_api.services.sandbox_service import SandboxService
from vibe_api.services.terminal_service import TerminalService
from vibe_api.utils.cache import CustomerIdCache
from vibe_api.utils.logger import log_info


@dataclass
class AppServices:
    auth: AuthService
    chat_sessions: ChatSessionService
    terminals: TerminalService
    sandboxes: SandboxService
    files: FileCollectionService
    domains: DomainService
    credits: CreditsService
    gallery: GalleryService
    jobs: Any = None
    # (name, ping) pairs used by the health probes; redis first
    health_checks: list[tuple[str, Callable[[], Awaitable[Any]]]] = field(default_factory=list)
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)


def build_services(settings: Settings) -> AppServices:
    kv = create_kv_client(settings.REDIS_URL)
    billing_kv = kv if settings.billing_redis_url == settings.REDIS_URL else create_kv_client(settings.billing_redis_url)
    mongo = create_mongo_client(settings.MONGODB_URI)
    database = get_database(mongo, settings.MONGODB_DB_NAME)

    sandbox_client = SandboxClient(settings)
    payments = PaymentClient(settings)
    telemetry = TelemetryClient(settings.TELEMETRY_URL)
    jobs = JobQueue(settings.REDIS_URL)

    registry: Optional[TerminalRegistry] = TerminalRegistry(kv) if settings.TERMINAL_REGISTRY_ENABLED else None
    chat_sessions = ChatSessionService(ChatSessionRepository(kv), snapshot_queue=jobs)
    files = FileCollectionService(sandbox_client, SessionFilesRepository(database))

    async def close_all() -> None:
        await jobs.close()
        await payments.close()
        await telemetry.close()
        if billing_kv is not kv:
            await close_kv_client(billing_kv)
        await close_kv_client(kv)
        close_mongo_client(mongo)

    services = AppServices(
        auth=AuthService(settings.AUTH_SECRET, settings.SESSION_COOKIE_NAME),
        chat_sessions=chat_sessions,
        terminals=TerminalService(sandbox_client, registry),
        sandboxes=SandboxService(sandbox_client, sessions=chat_sessions, files=files),
        files=files,
        domains=DomainService(
            DnsClient(settings.DNS_TIMEOUT_SECONDS),
            DomainRepository(billing_kv),
            settings.EXPECTED_DOMAIN_IP,
        ),
        credits=CreditsService(
            payments,
            CustomerIdCache(billing_kv),
            telemetry,
            recheck_delay_seconds=settings.CUSTOMER_RECHECK_DELAY_SECONDS,
        ),
        gallery=GalleryService(GalleryRepository(database)),
        jobs=jobs,
        health_checks=[
            ("redis", kv.ping),
            ("mongodb", lambda: mongo.admin.command("ping")),
        ],
        closers=[close_all],
    )
    log_info("Application services built", registry_enabled=settings.TERMINAL_REGISTRY_ENABLED)
    return services


async def close_services(services: AppServices) -> None:
    for close in services.closers:
        await close()
