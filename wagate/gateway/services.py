"""
Gateway service container.

Everything shared across requests (HTTP session, repository, stores, mirror,
composer, processor) is built once in the application lifespan and handed to
routes through FastAPI dependencies. Nothing here is a module global.
"""

from dataclasses import dataclass, field

import aiohttp

from wagate.core.config.settings import Settings, settings
from wagate.core.logging.logger import get_logger
from wagate.database.repository import SQLGatewayRepository
from wagate.database.session_manager import DatabaseSessionManager
from wagate.domain.interfaces import (
    IConversationCache,
    ICreditLedger,
    IDedupStore,
    IGatewayRepository,
    IObjectStorage,
)
from wagate.domain.models import Tenant
from wagate.messaging.whatsapp.client.whatsapp_client import WhatsAppClient
from wagate.persistence.memory import (
    InMemoryConversationCache,
    InMemoryDedupStore,
    InMemoryGatewayRepository,
)
from wagate.persistence.redis import RedisClient, RedisConversationCache, RedisDedupStore
from wagate.persistence.storage import LocalObjectStorage

from .composer import OutboundComposer
from .inbound import InboundWebhookProcessor
from .media_mirror import MediaMirror
from .notifier import DownstreamNotifier
from .signature import SignatureVerifier

MEMORY_DATABASE_URL = "memory://"

logger = get_logger(__name__)


@dataclass
class GatewayServices:
    """Wired gateway components for one process."""

    settings: Settings
    http_session: aiohttp.ClientSession
    repository: IGatewayRepository
    credit_ledger: ICreditLedger
    storage: IObjectStorage
    dedup_store: IDedupStore
    conversation_cache: IConversationCache
    database: DatabaseSessionManager | None = None
    uses_redis: bool = False

    media_mirror: MediaMirror = field(init=False)
    notifier: DownstreamNotifier = field(init=False)
    signature_verifier: SignatureVerifier = field(init=False)
    composer: OutboundComposer = field(init=False)
    inbound: InboundWebhookProcessor = field(init=False)

    def __post_init__(self):
        cfg = self.settings
        self.media_mirror = MediaMirror(
            self.storage,
            batch_limit=cfg.media_batch_limit,
            timeout_seconds=cfg.media_timeout_seconds,
        )
        self.notifier = DownstreamNotifier(
            self.http_session,
            timeout_seconds=cfg.notification_timeout_seconds,
            signing_secret=cfg.notification_signing_secret,
        )
        self.signature_verifier = SignatureVerifier(
            cfg.whatsapp_app_secret,
            strict=cfg.webhook_signature_strict,
            environment=cfg.environment,
        )
        self.composer = OutboundComposer(
            repository=self.repository,
            credit_ledger=self.credit_ledger,
            media_mirror=self.media_mirror,
            client_factory=self.client_for,
            conversation_cache=self.conversation_cache,
            credit_cost=cfg.template_credit_cost,
        )
        self.inbound = InboundWebhookProcessor(
            repository=self.repository,
            media_mirror=self.media_mirror,
            dedup_store=self.dedup_store,
            client_factory=self.client_for,
            notifier=self.notifier,
            conversation_cache=self.conversation_cache,
            dedup_ttl_seconds=cfg.dedup_ttl_seconds,
        )

    def client_for(self, tenant: Tenant) -> WhatsAppClient:
        """WhatsApp client bound to a tenant's credentials and the shared session."""
        return WhatsAppClient(
            session=self.http_session,
            access_token=tenant.provider_access_token,
            phone_number_id=tenant.provider_sender_id,
            api_version=self.settings.api_version,
            base_url=self.settings.base_url,
            timeout_seconds=self.settings.provider_timeout_seconds,
        )

    async def health(self) -> dict[str, str]:
        checks = {"database": "memory", "redis": "disabled"}
        if self.database is not None:
            healthy = await self.database.health_check()
            checks["database"] = "healthy" if healthy else "unhealthy"
        if self.uses_redis:
            try:
                await RedisClient.ping()
                checks["redis"] = "healthy"
            except Exception as e:
                logger.warning(f"Redis health check failed: {e}")
                checks["redis"] = "unhealthy"
        return checks

    async def aclose(self) -> None:
        """Drain notifications and release backends. The HTTP session is the caller's."""
        await self.inbound.drain()
        await self.notifier.drain()
        if self.uses_redis:
            await RedisClient.close()
        if self.database is not None:
            await self.database.cleanup()


async def build_services(
    http_session: aiohttp.ClientSession,
    app_settings: Settings | None = None,
) -> GatewayServices:
    """
    Build backends from settings.

    DATABASE_URL=memory:// selects the in-memory repository; REDIS_URL enables
    redis dedup and cache invalidation.
    """
    cfg = app_settings or settings

    database = None
    if cfg.database_url == MEMORY_DATABASE_URL:
        repository = InMemoryGatewayRepository()
        logger.warning("Using in-memory repository, data is lost on restart")
    else:
        database = DatabaseSessionManager(cfg.database_url)
        await database.initialize()
        await database.create_schema()
        repository = SQLGatewayRepository(database)

    if cfg.has_redis:
        RedisClient.setup_single_url(cfg.redis_url, max_connections=cfg.redis_max_connections)
        dedup_store = RedisDedupStore(RedisClient.get("dedup"))
        conversation_cache = RedisConversationCache(RedisClient.get("cache"))
    else:
        dedup_store = InMemoryDedupStore()
        conversation_cache = InMemoryConversationCache()

    storage = LocalObjectStorage(cfg.media_storage_dir, cfg.media_public_base_url)

    logger.info(
        f"Gateway services ready (database={'sql' if database else 'memory'}, "
        f"redis={'on' if cfg.has_redis else 'off'}, media={cfg.media_storage_dir})"
    )
    return GatewayServices(
        settings=cfg,
        http_session=http_session,
        repository=repository,
        credit_ledger=repository,
        storage=storage,
        dedup_store=dedup_store,
        conversation_cache=conversation_cache,
        database=database,
        uses_redis=cfg.has_redis,
    )
