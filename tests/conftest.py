"""
Pytest configuration and fixtures for catalog tests.
"""
import asyncio
import copy

import pytest

from tvcatalog.config import Settings
from tvcatalog.services.catalog import CatalogService
from tvcatalog.services.indexer import ENTITY_NAMES
from tvcatalog.services.loaders import EntityLoader

SAMPLE_COLLECTIONS = {
    "channels": [
        {"id": "France24.fr", "name": "France 24", "country": "FR",
         "categories": ["news"], "website": "https://www.france24.com"},
        {"id": "Arte.fr", "name": "Arte", "country": "FR", "categories": ["culture", "movies"]},
        {"id": "BBCNews.uk", "name": "BBC News", "country": "UK", "categories": []},
        {"id": "Silent.fr", "name": "Silent TV", "country": "FR", "categories": ["news"]},
        {"id": "Ghost.zz", "name": "Ghost TV", "country": "ZZ", "categories": ["news"],
         "is_nsfw": True},
    ],
    "countries": [
        {"code": "UK", "name": "United Kingdom"},
        {"code": "FR", "name": "France"},
        {"code": "DE", "name": "Germany"},
    ],
    "categories": [
        {"id": "news", "name": "News"},
        {"id": "movies", "name": "Movies"},
        {"id": "culture", "name": "Culture"},
    ],
    "streams": [
        {"channel": "France24.fr", "url": "http://example.com/f24.m3u8", "title": "France 24", "height": 720},
        {"channel": "France24.fr", "url": "http://example.com/f24-hd.m3u8", "title": "France 24 HD", "height": "1080"},
        {"channel": "Arte.fr", "url": "http://example.com/arte.m3u8", "title": "Arte (FHD)", "height": None},
        {"channel": "BBCNews.uk", "url": "http://example.com/bbc.m3u8", "title": "BBC News", "height": 2160},
        {"channel": "Ghost.zz", "url": "http://example.com/ghost.m3u8", "title": "Ghost"},
        {"channel": None, "url": "http://example.com/orphan.m3u8", "title": "Orphan Stream"},
        {"channel": None, "url": "http://example.com/nameless.m3u8", "title": ""},
    ],
    "logos": [
        {"channel": "France24.fr", "url": "https://example.com/f24.svg"},
        {"channel": "France24.fr", "url": "https://example.com/f24.png", "feed": "SD",
         "width": 150, "height": 150},
        {"channel": "Arte.fr", "url": "https://example.com/arte.gif"},
        {"channel": "Arte.fr", "url": "https://example.com/arte.jpg", "width": 300, "height": 300},
    ],
    "feeds": [
        {"channel": "France24.fr", "id": "SD", "is_main": True},
        {"channel": "France24.fr", "id": "HD", "is_main": False},
    ],
}


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class CountingLoader(EntityLoader):
    """In-memory loader that counts calls and yields to the event loop."""

    def __init__(self, collections, delay: float = 0.01):
        self.collections = collections
        self.delay = delay
        self.calls = 0

    async def load_entities(self, names=ENTITY_NAMES):
        self.calls += 1
        await asyncio.sleep(self.delay)
        return {name: list(self.collections.get(name, [])) for name in names}


@pytest.fixture
def collections():
    """Raw entity collections covering every join edge case."""
    return copy.deepcopy(SAMPLE_COLLECTIONS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "cache.db"),
        fallback_logo_url="fallback.png",
        cache_ttl_seconds=60,
    )


@pytest.fixture
def counting_loader(collections):
    return CountingLoader(collections)


@pytest.fixture
def make_service(settings, clock):
    """Factory building a CatalogService around a given loader."""
    def _make(loader, **overrides):
        return CatalogService.from_settings(
            settings.model_copy(update=overrides), loader=loader, clock=clock
        )
    return _make


@pytest.fixture
def sample_m3u_content():
    """Sample M3U content for testing."""
    return """#EXTM3U
#EXTINF:-1 tvg-id="CNN.us" tvg-logo="https://example.com/cnn.png" group-title="News",CNN International
http://example.com/cnn.m3u8
#EXTINF:-1 group-title="News",BBC World
#EXTVLCOPT:http-user-agent=Mozilla
http://example.com/bbc.m3u8
#EXTINF:-1 tvg-country="FR" tvg-language="French" group-title="Culture",Arte, la chaine
http://example.com/arte.m3u8
#EXTINF:-1,| Channel Without Group |

http://example.com/no-group.m3u8
"""
