"""
Snapshot cache.

A key/value store with get/set where a missing key raises CacheMiss,
and a SnapshotCell that owns writing the published snapshot to it.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Mapping, Protocol
from urllib.parse import urlparse

import redis
from filelock import FileLock

from lumens.supply import SupplySnapshot

logger = logging.getLogger(__name__)

# Cache keys
KEY_SNAPSHOT = "lumensV2"
KEY_SNAPSHOT_V1 = "lumensV1"
KEY_TOTAL_SUPPLY = "totalSupply"
KEY_CIRCULATING_SUPPLY = "circulatingSupply"
KEY_TOTAL_SUPPLY_SUM = "totalSupplySum"


class CacheMiss(KeyError):
    """Nothing stored under the key yet."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No cached value for {self.key!r}"


class Cache(Protocol):
    def get(self, key: str) -> str: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """Write every key or none of them."""
        ...


class MemoryCache:
    """In-process cache."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str:
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                raise CacheMiss(key) from None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        values = dict(values)
        with self._lock:
            self._data.update(values)


class FileCache:
    """One JSON file per key, all guarded by a single directory lock."""

    LOCK_NAME = ".cache.lock"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _lock(self) -> FileLock:
        return FileLock(self.directory / self.LOCK_NAME)

    def get(self, key: str) -> str:
        if not self.directory.exists():
            raise CacheMiss(key)
        path = self._path(key)
        with self._lock():
            if not path.exists():
                raise CacheMiss(key)
            with open(path) as f:
                return f.read()

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def _stage(self, key: str, value: str) -> str:
        """Write value to a temp file next to its target."""
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f"{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(value)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return tmp_name

    def set_many(self, values: Mapping[str, str]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with self._lock():
            staged: dict[str, str] = {}
            try:
                for key, value in values.items():
                    staged[key] = self._stage(key, value)
            except BaseException:
                for tmp_name in staged.values():
                    Path(tmp_name).unlink(missing_ok=True)
                raise
            # Renames only from here on
            for key, tmp_name in staged.items():
                os.replace(tmp_name, self._path(key))


class RedisCache:
    """Redis-backed cache."""

    def __init__(self, url: str, client: redis.Redis | None = None):
        self.client = client or redis.Redis.from_url(url, decode_responses=True)

    def get(self, key: str) -> str:
        value = self.client.get(key)
        if value is None:
            raise CacheMiss(key)
        return value

    def set(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def set_many(self, values: Mapping[str, str]) -> None:
        # MSET is atomic on the server
        self.client.mset(dict(values))


def open_cache(url: str | None) -> Cache:
    """
    Open the cache described by a URL.

    redis://host:port/db  -> RedisCache
    file:///some/dir      -> FileCache
    empty                 -> MemoryCache
    """
    if not url:
        return MemoryCache()
    parsed = urlparse(url)
    if parsed.scheme in ("redis", "rediss", "unix"):
        return RedisCache(url)
    if parsed.scheme == "file":
        return FileCache(parsed.netloc + parsed.path)
    raise ValueError(f"Unsupported cache URL: {url}")


class SnapshotCell:
    """
    Single-writer holder of the published snapshot.

    The refresher publishes; HTTP handlers read. A publish replaces the
    full snapshot and its scalar projections in one set_many call, so a
    failed publish leaves every key as it was.
    """

    def __init__(self, cache: Cache | None = None):
        self.cache = cache if cache is not None else MemoryCache()
        self._lock = threading.Lock()

    def publish(self, snapshot: SupplySnapshot) -> None:
        full = snapshot.to_dict()
        values = {
            KEY_SNAPSHOT: json.dumps(full),
            KEY_SNAPSHOT_V1: json.dumps(snapshot.to_v1_dict()),
            KEY_TOTAL_SUPPLY: json.dumps(full["totalSupply"]),
            KEY_CIRCULATING_SUPPLY: json.dumps(full["circulatingSupply"]),
            KEY_TOTAL_SUPPLY_SUM: json.dumps(full["totalSupplySum"]),
        }
        with self._lock:
            self.cache.set_many(values)
        logger.info(f"Published snapshot (total={full['totalSupply']}, circulating={full['circulatingSupply']})")

    def read(self, key: str) -> str:
        """Raw JSON stored under key. Raises CacheMiss."""
        return self.cache.get(key)

    def snapshot(self) -> SupplySnapshot:
        """Latest published snapshot. Raises CacheMiss."""
        return SupplySnapshot.from_dict(json.loads(self.read(KEY_SNAPSHOT)))
