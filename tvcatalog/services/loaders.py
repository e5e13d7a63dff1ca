"""
Entity loaders.
Supply the raw entity collections from memory, JSON files or the iptv-org API.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import httpx

from tvcatalog.errors import SourceUnavailable
from tvcatalog.services.indexer import ENTITY_NAMES

logger = logging.getLogger(__name__)


def _check_names(names: Iterable[str]) -> set[str]:
    names = set(names)
    unknown = names - ENTITY_NAMES
    if unknown:
        raise SourceUnavailable(", ".join(sorted(unknown)), "unknown entity")
    return names


def _as_records(entity: str, data: Any) -> list:
    if not isinstance(data, list):
        raise SourceUnavailable(entity, f"expected a JSON array, got {type(data).__name__}")
    return data


class EntityLoader:
    """Base class for entity sources."""

    async def load_entities(self, names: Iterable[str] = ENTITY_NAMES) -> dict[str, list]:
        """
        Load the requested entity collections.

        Raises:
            SourceUnavailable: if any requested collection cannot be produced
        """
        raise NotImplementedError


class InMemoryEntityLoader(EntityLoader):
    """Serves collections held in memory (fixtures, generated data)."""

    def __init__(self, collections: Mapping[str, list]):
        self.collections = dict(collections)

    async def load_entities(self, names: Iterable[str] = ENTITY_NAMES) -> dict[str, list]:
        result = {}
        for name in _check_names(names):
            if name not in self.collections:
                raise SourceUnavailable(name, "not provided")
            result[name] = list(self.collections[name])
        return result


class JsonDirectoryEntityLoader(EntityLoader):
    """Reads <entity>.json files from a directory."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def _read(self, name: str) -> list:
        path = self.data_dir / f"{name}.json"
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise SourceUnavailable(name, f"{path} not found") from None
        except (OSError, ValueError) as e:
            raise SourceUnavailable(name, str(e)) from e
        return _as_records(name, data)

    async def load_entities(self, names: Iterable[str] = ENTITY_NAMES) -> dict[str, list]:
        result = {}
        for name in sorted(_check_names(names)):
            result[name] = await asyncio.to_thread(self._read, name)
            logger.info(f"Loaded {len(result[name])} {name} from {self.data_dir}")
        return result


class HttpEntityLoader(EntityLoader):
    """Fetches <entity>.json from the iptv-org API, trying mirrors in order."""

    def __init__(
        self,
        base_url: str,
        fallback_bases: Iterable[str] = (),
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_urls = [base_url.rstrip("/")] + [b.rstrip("/") for b in fallback_bases]
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def fetch_endpoint(self, client: httpx.AsyncClient, name: str) -> list:
        """Fetch one collection, falling back to the next mirror on failure."""
        last_error = "no source configured"
        for base in self.base_urls:
            url = f"{base}/{name}.json"
            logger.info(f"Fetching data from {url}")
            try:
                response = await client.get(url)
                response.raise_for_status()
                data = _as_records(name, response.json())
                logger.info(f"Fetched {len(data)} items from {url}")
                return data
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"Failed to fetch {url}: {last_error}")
            except (ValueError, SourceUnavailable) as e:
                last_error = str(e)
                logger.warning(f"Invalid payload from {url}: {last_error}")
        raise SourceUnavailable(name, last_error)

    async def load_entities(self, names: Iterable[str] = ENTITY_NAMES) -> dict[str, list]:
        ordered = sorted(_check_names(names))
        async with self._client() as client:
            results = await asyncio.gather(*(self.fetch_endpoint(client, n) for n in ordered))
        return dict(zip(ordered, results))

    async def fetch_text(self, url: str) -> str:
        """Fetch a text document such as a playlist."""
        logger.info(f"Fetching playlist from {url}")
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise SourceUnavailable("playlist", str(e) or type(e).__name__) from e
