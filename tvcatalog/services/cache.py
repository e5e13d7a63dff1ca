"""
Two-tier view cache.
In-memory entries backed by a SQLite key-value table, with absolute expiry.
"""
import aiosqlite
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, ValidationError

from tvcatalog.errors import PersistenceWriteFailure
from tvcatalog.models.views import CacheEntry

logger = logging.getLogger(__name__)


def generate_key(prefix: str, params: dict) -> str:
    """Generate cache key from prefix and parameters."""
    param_str = json.dumps(params, sort_keys=True)
    hash_val = hashlib.md5(param_str.encode()).hexdigest()[:8]
    return f"{prefix}:{hash_val}"


class SqliteStore:
    """Persisted key-value tier on top of aiosqlite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._ensure_directory()

    def _ensure_directory(self):
        """Create data directory if it doesn't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self):
        """Create the cache table if it doesn't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS view_cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    inserted_at REAL NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)
            await db.commit()

    async def read_persisted(self, key: str) -> Optional[CacheEntry]:
        """
        Read a persisted entry.

        Raises:
            aiosqlite.Error: if the database cannot be read
            ValueError: if the stored row is corrupt
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT value, inserted_at, expires_at FROM view_cache WHERE key = ?",
                (key,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return CacheEntry(value=json.loads(row[0]), inserted_at=row[1], expires_at=row[2])

    async def write_persisted(self, key: str, entry: CacheEntry):
        """Store an entry, raising PersistenceWriteFailure on any error."""
        try:
            payload = json.dumps(entry.value)
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """INSERT OR REPLACE INTO view_cache (key, value, inserted_at, expires_at)
                       VALUES (?, ?, ?, ?)""",
                    (key, payload, entry.inserted_at, entry.expires_at)
                )
                await db.commit()
        except (aiosqlite.Error, OSError, TypeError, ValueError) as e:
            raise PersistenceWriteFailure(key, str(e)) from e

    async def delete_persisted(self, key: str):
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM view_cache WHERE key = ?", (key,))
            await db.commit()

    async def keys(self, prefix: str = "") -> list[str]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT key FROM view_cache WHERE key LIKE ? ORDER BY key",
                (f"{prefix}%",)
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]


class ViewCache:
    """
    Cache of computed views keyed by view type.

    Reads are served from memory only; the persisted tier is written on every
    ``set`` (best effort) and read back once by ``restore`` at startup.
    """

    def __init__(
        self,
        store: SqliteStore,
        ttl_seconds: int,
        namespace: str = "tvcatalog:",
        known_keys: Iterable[str] = (),
        models: Optional[dict[str, type[BaseModel]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self.known_keys = list(known_keys)
        # Keyed by the part of the cache key before the first ':'
        self.models = dict(models or {})
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _persisted_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def _model_for(self, key: str) -> Optional[type[BaseModel]]:
        return self.models.get(key.split(":", 1)[0])

    async def _persisted_keys(self) -> list[str]:
        try:
            return [k[len(self.namespace):] for k in await self.store.keys(self.namespace)]
        except (aiosqlite.Error, OSError) as e:
            logger.warning(f"Could not list persisted cache entries: {e}")
            return []

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self.clock())

    async def get(self, key: str) -> Optional[Any]:
        """Fresh value for key, or None. Expired entries are purged from both tiers."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self.clock()):
            logger.debug(f"Cache hit: {key}")
            return entry.value
        logger.info(f"Cache entry expired: {key}")
        await self.delete(key)
        return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> CacheEntry:
        """Store value in memory and mirror it to the persisted tier."""
        now = self.clock()
        entry = CacheEntry(
            value=value,
            inserted_at=now,
            expires_at=now + (ttl_seconds or self.ttl_seconds),
        )
        self._entries[key] = entry
        await self._mirror(key, entry)
        return entry

    async def _mirror(self, key: str, entry: CacheEntry) -> bool:
        value = entry.value
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        try:
            await self.store.write_persisted(
                self._persisted_key(key),
                CacheEntry(value=value, inserted_at=entry.inserted_at, expires_at=entry.expires_at),
            )
        except PersistenceWriteFailure as e:
            logger.warning(f"{e}; serving {key} from memory only")
            return False
        return True

    async def delete(self, key: str):
        self._entries.pop(key, None)
        try:
            await self.store.delete_persisted(self._persisted_key(key))
        except (aiosqlite.Error, OSError) as e:
            logger.warning(f"Could not delete persisted entry {key}: {e}")

    async def restore(self, keys: Optional[Iterable[str]] = None) -> int:
        """
        Hydrate the memory tier from persisted entries that are still fresh.

        Expired or unreadable entries are deleted. Never raises.

        Returns:
            Number of entries restored
        """
        if keys is None:
            keys = dict.fromkeys(self.known_keys + await self._persisted_keys())
        restored = 0
        now = self.clock()
        for key in keys:
            persisted_key = self._persisted_key(key)
            try:
                entry = await self.store.read_persisted(persisted_key)
            except (aiosqlite.Error, OSError, ValueError) as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")
                await self.delete(key)
                continue
            if entry is None:
                continue
            if not entry.is_fresh(now):
                await self.delete(key)
                continue

            model = self._model_for(key)
            value = entry.value
            if model is not None:
                try:
                    value = model.model_validate(value)
                except ValidationError as e:
                    logger.warning(f"Discarding corrupt cache entry {key}: {e.error_count()} errors")
                    await self.delete(key)
                    continue

            self._entries[key] = entry.model_copy(update={"value": value})
            restored += 1

        if restored:
            logger.info(f"Restored {restored} cache entries")
        return restored

    async def clear(self):
        """Drop every in-memory entry and every persisted entry in this namespace."""
        keys = set(self._entries) | set(self.known_keys) | set(await self._persisted_keys())
        self._entries.clear()
        for key in keys:
            await self.delete(key)
        logger.info("Cache cleared")
