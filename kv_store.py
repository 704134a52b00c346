"""Key-value store behind the local (no remote database) storage backend.

Stands in for per-browser persistent storage: a flat namespace of string keys
holding JSON values. Three implementations share one Protocol:

    InMemoryStore   process-local dict, used in tests and as "memory://"
    JsonFileStore   one JSON file on disk, the persistent default
    RedisStore      redis-py client, when LOCAL_STORE_URL is redis://...

Usage:
    from kv_store import open_store
    store = open_store(app.config["LOCAL_STORE_URL"])
    store.set("school2026_user_s1", {"id": "s1", ...})
    store.get("school2026_user_s1")
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from errors import BackendRejected, BackendUnavailable

logger = logging.getLogger(__name__)

# ── Protocol ───────────────────────────────────────────────

class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


def _decode(raw: str | bytes | None, key: str = "") -> Any | None:
    """Parse a stored JSON value; an unparseable value is an error, not a miss."""
    if raw is None:
        return None
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
        logger.error("Unparseable local value under %s: %.40r", key, raw)
        raise BackendRejected(f"Local value for {key} is corrupt: {e}", "read") from e


# ── In-Memory Implementation ──────────────────────────────

class InMemoryStore:
    """Values are kept as JSON text so callers never share mutable state."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return _decode(raw, key)

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


# ── JSON File Implementation ──────────────────────────────

class JsonFileStore:
    """Whole namespace in one JSON object on disk.

    Every call takes an flock on a sibling lock file and rewrites the data
    file through os.replace, so a crashed write never leaves half a file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self._thread_lock = threading.Lock()

    @contextmanager
    def _locked(self):
        with self._thread_lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fh = open(self._lock_path, "w")
            except OSError as e:
                raise BackendUnavailable(f"Local store lock failed: {e}", "lock") from e
            try:
                fcntl.flock(fh, fcntl.LOCK_EX)
                yield
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)
                fh.close()

    def _read(self) -> dict[str, Any]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise BackendUnavailable(f"Local store read failed: {e}", "read") from e
        try:
            text = raw.decode("utf-8")
            data = json.loads(text) if text.strip() else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            # The file stays untouched until repaired or moved aside.
            logger.error("Local store %s is corrupt: %s", self.path, e)
            raise BackendRejected(f"Local store {self.path.name} is corrupt", "read") from e
        if not isinstance(data, dict):
            logger.error("Local store %s does not hold a JSON object", self.path)
            raise BackendRejected(f"Local store {self.path.name} is corrupt", "read")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            raise BackendUnavailable(f"Local store write failed: {e}", "write") from e

    def get(self, key: str) -> Any | None:
        with self._locked():
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._locked():
            data = self._read()
            data[key] = json.loads(json.dumps(value))
            self._write(data)

    def delete(self, key: str) -> None:
        with self._locked():
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)


# ── Redis Implementation ──────────────────────────────────

class RedisStore:
    """Wraps redis.Redis; connection problems surface as BackendUnavailable."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _call(self, op: str, *args):
        try:
            return getattr(self._redis, op)(*args)
        except Exception as e:
            logger.warning("Redis %s error (%s): %s", op.upper(), args[:1], e)
            raise BackendUnavailable(f"Redis {op} failed: {e}", op) from e

    def get(self, key: str) -> Any | None:
        return _decode(self._call("get", key), key)

    def set(self, key: str, value: Any) -> None:
        self._call("set", key, json.dumps(value, ensure_ascii=False))

    def delete(self, key: str) -> None:
        self._call("delete", key)


# ── Factory ───────────────────────────────────────────────

def open_store(url: str) -> KeyValueStore:
    """Build the store named by LOCAL_STORE_URL.

    "memory://" → InMemoryStore, "redis://..." → RedisStore, anything else is
    treated as a file path for JsonFileStore.
    """
    url = (url or "").strip()
    if not url or url == "memory://":
        logger.info("Local store: in-memory")
        return InMemoryStore()
    if url.startswith(("redis://", "rediss://", "unix://")):
        import redis
        client = redis.Redis.from_url(url, decode_responses=False)
        logger.info("Local store: Redis (%s)", url)
        return RedisStore(client)
    logger.info("Local store: JSON file (%s)", url)
    return JsonFileStore(url)
