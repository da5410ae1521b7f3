"""Key/value storage areas with cross-context change notifications.

A storage area mirrors browser web storage: string keys and values, and a
change event delivered to every *other* context that shares the same data.
``MemoryStorage`` lives for the process (session scope); ``FileStorage``
persists to a JSON file (durable scope).
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from genius.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """A change made to a storage area by another context."""

    key: str
    old_value: str | None
    new_value: str | None


StorageListener = Callable[[StorageEvent], None]
Unsubscribe = Callable[[], None]


class StorageArea(Protocol):
    """Protocol for a web-storage-like key/value area."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        """Listen for changes made through other contexts.

        Returns:
            Callable that removes the listener
        """
        ...


class _SharedArea:
    """Data and listener registry shared by every context of one area."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data: dict[str, str] = data if data is not None else {}
        self.listeners: dict[int, list[StorageListener]] = {}
        self.lock = threading.RLock()

    def broadcast(self, source_id: int, event: StorageEvent) -> None:
        with self.lock:
            targets = [
                listener
                for context_id, listeners in self.listeners.items()
                if context_id != source_id
                for listener in list(listeners)
            ]
        for listener in targets:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Storage listener failed for key {event.key!r}: {e}")


class _StorageContext:
    """Base for a context on a shared area. Subclasses decide persistence."""

    def __init__(self, area: _SharedArea):
        self._area = area

    def _load(self) -> dict[str, str]:
        return self._area.data

    def _store(self, data: dict[str, str]) -> None:
        self._area.data = data

    def get_item(self, key: str) -> str | None:
        with self._area.lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._area.lock:
            data = dict(self._load())
            old_value = data.get(key)
            if old_value == value:
                return
            data[key] = value
            self._store(data)
        self._area.broadcast(id(self), StorageEvent(key, old_value, value))

    def remove_item(self, key: str) -> None:
        with self._area.lock:
            data = dict(self._load())
            if key not in data:
                return
            old_value = data.pop(key)
            self._store(data)
        self._area.broadcast(id(self), StorageEvent(key, old_value, None))

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        with self._area.lock:
            self._area.listeners.setdefault(id(self), []).append(listener)

        def unsubscribe() -> None:
            with self._area.lock:
                listeners = self._area.listeners.get(id(self), [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._area.listeners.pop(id(self), None)

        return unsubscribe


class MemoryStorage(_StorageContext):
    """In-memory storage area, scoped to the running process.

    Each instance is one context. ``open_context()`` returns another context
    on the same data, the way a second browser tab sees the same storage.
    """

    def __init__(self, area: _SharedArea | None = None):
        super().__init__(area or _SharedArea())

    def open_context(self) -> MemoryStorage:
        return MemoryStorage(self._area)


class FileStorage(_StorageContext):
    """Durable storage area backed by a JSON file.

    Contexts opened on the same path in one process share listeners, so a
    write from one is observed by the others.
    """

    _areas: dict[Path, _SharedArea] = {}
    _areas_lock = threading.Lock()

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path).expanduser().resolve()
        with FileStorage._areas_lock:
            area = FileStorage._areas.setdefault(self.path, _SharedArea())
        super().__init__(area)

    def open_context(self) -> FileStorage:
        return FileStorage(self.path)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Discarding storage file {self.path}: not an object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _store(self, data: dict[str, str]) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {self.path}: {e}") from e
