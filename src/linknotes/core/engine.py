"""Wiring of the bookmark engine.

One ``BookmarkEngine`` is built per process and handed to every caller;
nothing reaches for module-level singletons.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import ConfigManager
from ..models.config import AppConfig, EnvSettings
from .bookmark_manager import BookmarkManager
from .bookmark_store import BookmarkStore
from .import_pipeline import ImportPipeline
from .metadata_fetcher import MetadataFetcher
from .notifications import LoggingNotifier, NotificationSink
from .remote_sync import RemoteSyncClient
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class BookmarkEngine:
    config: AppConfig
    store: BookmarkStore
    client: RemoteSyncClient
    orchestrator: SyncOrchestrator
    fetcher: MetadataFetcher
    pipeline: ImportPipeline
    manager: BookmarkManager
    env_settings: Optional[EnvSettings] = None

    @classmethod
    def build(
        cls,
        config_manager: ConfigManager,
        config: Optional[AppConfig] = None,
        env_settings: Optional[EnvSettings] = None,
        notifier: Optional[NotificationSink] = None,
        remote_transport: Optional[httpx.AsyncBaseTransport] = None,
        fetch_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BookmarkEngine":
        """Construct every component from configuration.

        Raises:
            ConfigError: If configuration or persisted state is invalid
        """
        config = config or config_manager.load_app_config()

        store = BookmarkStore(config_manager.resolve_store_path(config))
        client = RemoteSyncClient(
            state=config_manager.load_sync_state(),
            state_saver=config_manager.save_sync_state,
            base_url=config.github_api_base,
            filename=config.gist_filename,
            timeout=config.remote_timeout_seconds,
            transport=remote_transport,
        )
        orchestrator = SyncOrchestrator(
            store=store,
            client=client,
            settings=config_manager.load_sync_settings(),
            settings_saver=config_manager.save_sync_settings,
            notifier=notifier or LoggingNotifier(),
            debounce_delay=config.sync_debounce_seconds,
        )
        fetcher = MetadataFetcher(
            timeout=config.fetch_timeout_seconds,
            max_response_size=config.max_response_size,
            user_agent=config.user_agent,
            transport=fetch_transport,
        )
        pipeline = ImportPipeline(
            store=store,
            fetcher=fetcher,
            orchestrator=orchestrator,
            batch_size=config.import_batch_size,
            batch_pause=config.import_batch_pause_seconds,
        )

        return cls(
            config=config,
            store=store,
            client=client,
            orchestrator=orchestrator,
            fetcher=fetcher,
            pipeline=pipeline,
            manager=BookmarkManager(store, orchestrator),
            env_settings=env_settings,
        )

    async def start(self, verify_remote: bool = True) -> None:
        """Load the store and validate stored credentials.

        Raises:
            StorageError: If the persisted store is unreadable
        """
        await self.store.load()

        if verify_remote:
            fallback = self.env_settings.github_token if self.env_settings else None
            await self.client.initialize(fallback_token=fallback)

        logger.info(
            f"Engine started with {self.store.count()} bookmarks "
            f"(remote {'connected' if self.client.is_authenticated else 'not connected'})"
        )

    async def shutdown(self) -> None:
        """Stop imports and push any pending change before exit."""
        if self.pipeline.is_running:
            self.pipeline.cancel()
        await self.orchestrator.flush()
        logger.info("Engine stopped")
