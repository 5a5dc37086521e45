# collab_core/main.py
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from collab_core.config import AppConfig
from collab_core.gateways.group_chat_gateway import GroupChatGateway
from collab_core.gateways.project_gateway import ProjectGateway
from collab_core.gateways.request_dm_gateway import RequestDMGateway
from collab_core.gateways.request_gateway import RequestGateway
from collab_core.infrastructure.change_feed import ChangeFeedListener
from collab_core.infrastructure.document_store import SQLDocumentStore
from collab_core.infrastructure.event_dispatcher import EventDispatcher
from collab_core.infrastructure.event_handlers import EventHandlers
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.interactors.group_chat_interactor import GroupChatInteractor
from collab_core.interactors.project_interactor import ProjectInteractor
from collab_core.interactors.reconciler import Reconciler
from collab_core.interactors.request_dm_interactor import RequestDMInteractor
from collab_core.interactors.request_interactor import RequestInteractor
from collab_core.interactors.unread_tracker import UnreadTracker


class Application:
    def __init__(self, config: AppConfig, engine: AsyncEngine | None = None):
        self.config = config
        self.logger = self.setup_logger()
        if engine is None:
            engine = create_async_engine(config.DATABASE_URL, echo=False)
        self.redis_client = RedisClient(
            config.REDIS_HOST,
            config.REDIS_PORT,
            self.logger,
            lock_timeout=config.LOCK_TIMEOUT_SECONDS,
            lock_blocking_timeout=config.LOCK_BLOCKING_TIMEOUT_SECONDS,
        )
        self.event_dispatcher = EventDispatcher(self.logger)
        self.event_handlers = EventHandlers(self.redis_client, config.CHANGE_CHANNEL_PREFIX)
        self.store = SQLDocumentStore(engine, self.event_dispatcher, self.logger)

        # Register event handlers
        self.event_dispatcher.register(
            "DocumentChanged", self.event_handlers.publish_document_changed
        )
        self.event_dispatcher.register(
            "RequestStatusChanged", self.event_handlers.publish_request_status_changed
        )
        self.event_dispatcher.register(
            "UnreadCountUpdated", self.event_handlers.publish_unread_count_updated
        )

        self.change_feed = ChangeFeedListener(
            self.redis_client,
            self.store.live_queries,
            self.store.origin,
            self.logger,
            channel_prefix=config.CHANGE_CHANNEL_PREFIX,
        )

        project_gateway = ProjectGateway(self.store)
        request_gateway = RequestGateway(self.store)
        self.group_chats = GroupChatInteractor(
            GroupChatGateway(self.store),
            self.redis_client,
            self.logger,
            message_window=config.MESSAGE_WINDOW,
            fetch_limit=config.MESSAGE_FETCH_LIMIT,
        )
        self.request_dms = RequestDMInteractor(
            RequestDMGateway(self.store),
            request_gateway,
            self.redis_client,
            self.logger,
            message_window=config.MESSAGE_WINDOW,
            fetch_limit=config.MESSAGE_FETCH_LIMIT,
        )
        self.requests = RequestInteractor(
            request_gateway,
            self.group_chats,
            self.request_dms,
            project_gateway,
            self.redis_client,
            self.event_dispatcher,
            self.logger,
        )
        self.projects = ProjectInteractor(project_gateway, self.group_chats, self.logger)
        self.reconciler = Reconciler(
            self.requests, self.logger, interval=config.RECONCILE_INTERVAL_SECONDS
        )

    def setup_logger(self):
        logger = logging.getLogger("CollabCore")
        logger.setLevel(self.config.LOG_LEVEL)

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def unread_tracker(self) -> UnreadTracker:
        """A fresh tracker for one client view."""
        return UnreadTracker(self.group_chats, self.event_dispatcher, self.logger)

    async def start(self, background: bool = True) -> None:
        await self.store.create_schema()
        if self.redis_client.client is None:
            await self.redis_client.connect()
        if background:
            await self.change_feed.start()
            await self.reconciler.start()
        self.logger.info(f"{self.config.PROJECT_NAME} {self.config.PROJECT_VERSION} started")

    async def stop(self) -> None:
        await self.reconciler.stop()
        await self.change_feed.stop()
        self.store.live_queries.cancel_all()
        await self.store.dispose()
        await self.redis_client.disconnect()
        self.logger.info(f"{self.config.PROJECT_NAME} stopped")

    async def __aenter__(self) -> "Application":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


def create(config: AppConfig | None = None) -> Application:
    application = Application(config or AppConfig())
    application.logger.info("Application created and configured")
    return application
