"""Key-value job store.

Supports three modes:
- Redis when REDIS_URL is set (production, shared with the Celery broker)
- a single JSON file when PLANNER_STORE_PATH is set (local development)
- in-process memory otherwise (tests, single-process runs)

Values are JSON-compatible dicts. Each key is written only by the worker
that owns the job, so last-write-wins is sufficient; writes within one
process are serialized by a lock.
"""

from __future__ import annotations

import abc
import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import redis

from core.config import PlannerSettings, load_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "plans/"


def job_key(job_id: str) -> str:
    return f"{KEY_PREFIX}{job_id}"


class JobStore(abc.ABC):
    """get / set / remove over JSON-compatible values."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abc.abstractmethod
    def remove(self, key: str) -> bool:
        ...


class MemoryJobStore(JobStore):
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class FileJobStore(JobStore):
    """All keys in one JSON file, rewritten atomically on every change."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> bool:
        with self._lock:
            data = self._read()
            if key not in data:
                return False
            del data[key]
            self._write(data)
            return True


class RedisJobStore(JobStore):
    def __init__(self, url: str, client: Optional[redis.Redis] = None):
        self.url = url
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(self.url, decode_responses=True)
            logger.info("Redis job store initialized")
        return self._client

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self.client.set(key, json.dumps(value))

    def remove(self, key: str) -> bool:
        return bool(self.client.delete(key))


_store: Optional[JobStore] = None
_store_lock = threading.Lock()


def create_store(redis_url: str = "", store_path: str = "") -> JobStore:
    if redis_url:
        return RedisJobStore(redis_url)
    if store_path:
        logger.info("Using file job store at %s", store_path)
        return FileJobStore(store_path)
    logger.info("No REDIS_URL or PLANNER_STORE_PATH, using in-memory job store")
    return MemoryJobStore()


def get_store(settings: Optional[PlannerSettings] = None) -> JobStore:
    """Process-wide store chosen from ``settings`` (the environment when omitted)."""
    global _store
    with _store_lock:
        if _store is None:
            settings = settings or load_settings()
            _store = create_store(settings.redis_url, settings.store_path)
        return _store


def set_store(store: Optional[JobStore]) -> None:
    """Replace the process-wide store (``None`` re-reads the environment)."""
    global _store
    with _store_lock:
        _store = store
