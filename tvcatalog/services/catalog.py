"""
Catalog service.
Loads entities, runs the join and serves the resulting views through the cache.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Mapping, Optional

import aiosqlite

from tvcatalog.config import Settings
from tvcatalog.errors import AbortedFetch, SourceUnavailable, UnsupportedViewType
from tvcatalog.models.channel import SearchHit
from tvcatalog.models.views import CatalogStats, GroupedView, ViewOptions, ViewType
from tvcatalog.services.cache import SqliteStore, ViewCache, generate_key
from tvcatalog.services.enrichment import LogoRanker
from tvcatalog.services.grouping import CatalogResult, GroupingEngine
from tvcatalog.services.indexer import ENTITY_NAMES, build_indexes
from tvcatalog.services.loaders import (
    EntityLoader,
    HttpEntityLoader,
    JsonDirectoryEntityLoader,
)
from tvcatalog.services.m3u_parser import PlaylistParser
from tvcatalog.services.search import search_channels

logger = logging.getLogger(__name__)

CACHE_MODELS = {
    ViewType.COUNTRY.value: GroupedView,
    ViewType.CATEGORY.value: GroupedView,
    ViewType.STATS.value: CatalogStats,
    "playlist": GroupedView,
}


class FetchToken:
    """Cancellation signal scoped to one logical fetch."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self):
        await self._event.wait()


def build_loader(settings: Settings) -> EntityLoader:
    """Entity loader selected by ``settings.data_source``."""
    if settings.data_source == "http":
        return HttpEntityLoader(
            settings.api_base,
            fallback_bases=settings.api_fallback_bases,
            timeout=settings.request_timeout_seconds,
        )
    if settings.data_source == "static":
        return JsonDirectoryEntityLoader(settings.static_data_dir)
    raise ValueError(f"Unknown data source: {settings.data_source}")


class CatalogService:
    """Serves country and category views, computing them at most once per key at a time."""

    def __init__(
        self,
        loader: EntityLoader,
        cache: ViewCache,
        engine: GroupingEngine,
        parser: PlaylistParser,
        max_categories: int = 200,
        max_channels_per_category: int = 500,
        unlimited: bool = True,
        cancel_superseded: bool = True,
        playlist_fetcher: Optional[HttpEntityLoader] = None,
    ):
        self.loader = loader
        self.cache = cache
        self.engine = engine
        self.parser = parser
        self.max_categories = max_categories
        self.max_channels_per_category = max_channels_per_category
        self.unlimited = unlimited
        self.cancel_superseded = cancel_superseded
        self.playlist_fetcher = playlist_fetcher
        self.computations = 0
        self._inflight: dict[str, asyncio.Future] = {}
        self._tokens: dict[str, FetchToken] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        loader: Optional[EntityLoader] = None,
        clock: Callable[[], float] = time.time,
    ) -> "CatalogService":
        cache = ViewCache(
            SqliteStore(settings.database_path),
            ttl_seconds=settings.cache_ttl_seconds,
            namespace=settings.cache_namespace,
            known_keys=[view_type.value for view_type in ViewType],
            models=CACHE_MODELS,
            clock=clock,
        )
        ranker = LogoRanker(settings.fallback_logo_url, settings.problematic_logo_domains)
        parser = PlaylistParser(
            uncategorized_label=settings.uncategorized_label,
            fallback_logo_url=settings.fallback_logo_url,
            unknown_channel_name=settings.unknown_channel_name,
            max_channels_per_category=settings.max_channels_per_category,
            max_categories=settings.max_categories,
            unlimited=settings.unlimited_loading,
        )
        return cls(
            loader=loader or build_loader(settings),
            cache=cache,
            engine=GroupingEngine(ranker, settings.uncategorized_label),
            parser=parser,
            max_categories=settings.max_categories,
            max_channels_per_category=settings.max_channels_per_category,
            unlimited=settings.unlimited_loading,
            cancel_superseded=settings.cancel_superseded_fetches,
            playlist_fetcher=HttpEntityLoader(
                settings.api_base, timeout=settings.request_timeout_seconds
            ),
        )

    async def initialize(self) -> int:
        """Prepare the persisted tier and hydrate the cache from it."""
        try:
            await self.cache.store.initialize()
        except (aiosqlite.Error, OSError) as e:
            logger.warning(f"Persisted cache unavailable, using memory only: {e}")
            return 0
        return await self.cache.restore()

    def compute(self, collections: Mapping[str, Any]) -> CatalogResult:
        """Run the full join over already loaded collections."""
        self.computations += 1
        return self.engine.build(build_indexes(collections))

    async def get_view(self, view_type: Any, options: Optional[ViewOptions] = None) -> Optional[GroupedView]:
        """
        Country or category view.

        Returns None when the fetch behind this request was superseded.

        Raises:
            UnsupportedViewType: for anything but country or category
            SourceUnavailable: if the entity loader fails
        """
        view_type = ViewType.parse(view_type)
        if view_type is ViewType.STATS:
            raise UnsupportedViewType(view_type.value)
        options = options or ViewOptions()
        view = await self._resolve(view_type, options)
        if view is None:
            return None
        return self._apply_limits(view, options)

    async def get_stats(self, options: Optional[ViewOptions] = None) -> Optional[CatalogStats]:
        return await self._resolve(ViewType.STATS, options or ViewOptions())

    def _apply_limits(self, view: GroupedView, options: ViewOptions) -> GroupedView:
        unlimited = self.unlimited if options.unlimited is None else options.unlimited
        if unlimited:
            return view
        return view.limited(self.max_categories, self.max_channels_per_category)

    async def _resolve(self, view_type: ViewType, options: ViewOptions):
        key = view_type.value
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        # Stats come out of every computation, so they ride along without superseding.
        supersedes = view_type is not ViewType.STATS
        while True:
            task = self._live_task(key, any_key=not supersedes)
            if task is None:
                task = self._start(key, options, supersede=supersedes)
            else:
                logger.debug(f"Joining in-flight computation for {key}")
            result = await asyncio.shield(task)
            if result is not None:
                return result.view(view_type)
            if supersedes:
                return None

    def _live_task(self, key: str, any_key: bool = False) -> Optional[asyncio.Future]:
        """In-flight computation this request can join, skipping superseded ones."""
        candidates = list(self._inflight) if any_key else [key, ViewType.STATS.value]
        for candidate in [key] + [c for c in candidates if c != key]:
            token = self._tokens.get(candidate)
            if candidate in self._inflight and token is not None and not token.cancelled:
                return self._inflight[candidate]
        return None

    def _start(self, key: str, options: ViewOptions, supersede: bool = True) -> asyncio.Future:
        if supersede and self.cancel_superseded:
            stale = [
                other for other in self._tokens
                if other not in (key, ViewType.STATS.value)
            ]
            for other in stale:
                logger.info(f"Superseding in-flight fetch for {other}")
                self._tokens.pop(other).cancel()
                self._inflight.pop(other, None)

        token = FetchToken()
        task = asyncio.ensure_future(self._compute_and_store(key, token, options))
        self._tokens[key] = token
        self._inflight[key] = task
        task.add_done_callback(lambda done: self._finish(key, done))
        return task

    def _finish(self, key: str, task: asyncio.Future):
        if self._inflight.get(key) is task:
            del self._inflight[key]
            self._tokens.pop(key, None)

    async def _fetch_entities(self, token: FetchToken) -> dict[str, list]:
        fetch = asyncio.ensure_future(self.loader.load_entities(ENTITY_NAMES))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not fetch.done():
                fetch.cancel()
        if fetch not in done:
            raise AbortedFetch("Fetch superseded by a newer request")
        return fetch.result()

    async def _compute_and_store(
        self, key: str, token: FetchToken, options: ViewOptions
    ) -> Optional[CatalogResult]:
        try:
            collections = await self._fetch_entities(token)
        except AbortedFetch:
            logger.info(f"Fetch for {key} abandoned")
            return None

        result = self.compute(collections)
        requested = ViewType(key)
        for view_type in [requested] + [v for v in ViewType if v is not requested]:
            await self.cache.set(view_type.value, result.view(view_type), options.ttl_seconds)
        return result

    def parse_playlist(self, text: str, options: Optional[ViewOptions] = None) -> GroupedView:
        """Parse playlist text into a category view."""
        options = options or ViewOptions()
        return self.parser.parse(text, unlimited=options.unlimited)

    async def load_playlist(self, url: str, options: Optional[ViewOptions] = None) -> GroupedView:
        """
        Fetch, parse and cache a remote playlist.

        Raises:
            SourceUnavailable: if the playlist cannot be fetched
        """
        options = options or ViewOptions()
        key = generate_key("playlist", {"url": url, "unlimited": options.unlimited})
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        if self.playlist_fetcher is None:
            raise SourceUnavailable("playlist", "no playlist fetcher configured")
        text = await self.playlist_fetcher.fetch_text(url)
        view = self.parse_playlist(text, options)
        await self.cache.set(key, view, options.ttl_seconds)
        logger.info(f"Playlist {url} parsed: {len(view.groups)} categories")
        return view

    async def search(
        self,
        query: str,
        view_type: Any = ViewType.CATEGORY,
        options: Optional[ViewOptions] = None,
    ) -> list[SearchHit]:
        view_type = ViewType.parse(view_type)
        if not query.strip():
            return []
        view = await self.get_view(view_type, options)
        if view is None:
            return []
        return search_channels(view, query)

    async def clear_cache(self):
        await self.cache.clear()
