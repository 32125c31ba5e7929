"""
Key/value record store used by the certificate monitor.

The monitor only relies on the async Storage interface; MemoryStorage backs
tests and ad-hoc runs, JsonFileStorage persists records for the CLI.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class StorageEntry:
    """One key/value pair returned by a prefix scan."""
    id: str
    value: Dict[str, Any]


class Storage(ABC):
    """Abstract key/value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the value stored under ``key``, or None."""

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is a no-op."""

    @abstractmethod
    async def list_by_prefix(self, prefix: str) -> List[StorageEntry]:
        """All entries whose key starts with ``prefix``, in insertion order."""


class MemoryStorage(Storage):
    """In-process store backed by an insertion-ordered dict."""

    def __init__(self, data: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = dict(data or {})

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_by_prefix(self, prefix: str) -> List[StorageEntry]:
        return [
            StorageEntry(id=key, value=copy.deepcopy(value))
            for key, value in self._data.items()
            if key.startswith(prefix)
        ]


class JsonFileStorage(Storage):
    """
    Store persisted as a single JSON object on disk.

    The whole document is loaded on first access and rewritten atomically
    (temp file + rename) after every change. File I/O runs in the default
    executor. Every operation holds a lock owned by the running event loop,
    so one store can be reused across ``asyncio.run`` calls.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._data: Optional[Dict[str, Dict[str, Any]]] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._loop_lock():
            data = await self._load()
            value = data.get(key)
            return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        async with self._loop_lock():
            data = await self._load()
            data[key] = copy.deepcopy(value)
            await self._save(data)

    async def remove(self, key: str) -> None:
        async with self._loop_lock():
            data = await self._load()
            if key in data:
                del data[key]
                await self._save(data)

    async def list_by_prefix(self, prefix: str) -> List[StorageEntry]:
        async with self._loop_lock():
            data = await self._load()
            return [
                StorageEntry(id=key, value=copy.deepcopy(value))
                for key, value in data.items()
                if key.startswith(prefix)
            ]

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _load(self) -> Dict[str, Dict[str, Any]]:
        # Caller holds the lock
        if self._data is None:
            loop = asyncio.get_running_loop()
            self._data = await loop.run_in_executor(None, self._read_sync)
        return self._data

    async def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_sync, copy.deepcopy(data))

    def _read_sync(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise StorageError(f"Failed to read store '{self.path}': {e}") from e

        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageError(
                f"Invalid JSON in store '{self.path}' at line {e.lineno}, column {e.colno}: {e.msg}"
            ) from e
        if not isinstance(data, dict):
            raise StorageError(f"Store '{self.path}' must contain a JSON object")
        return data

    def _write_sync(self, data: Dict[str, Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, default=str)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to write store '{self.path}': {e}")
            raise StorageError(f"Failed to write store '{self.path}': {e}") from e
