# app/core/stores.py
import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class UrlStore(Protocol):
    """
    Navigable URL state (the query string part only).

    - read() returns the current query string without the leading '?'.
    - push() navigates to a new query string without a full reload.
    """

    def read(self) -> str: ...

    def push(self, query: str) -> None: ...


class KeyValueStore(Protocol):
    """
    Durable client-side key-value storage holding raw strings.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryUrlStore:
    """
    UrlStore kept in memory, recording every pushed query in `history`.
    """

    def __init__(self, query: str = ""):
        self._query = query.lstrip("?")
        self.history: list[str] = []

    def read(self) -> str:
        return self._query

    def push(self, query: str) -> None:
        self._query = query.lstrip("?")
        self.history.append(self._query)


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    KeyValueStore backed by a single JSON object on disk.

    A missing or unreadable file is treated as an empty store; the
    next write replaces it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Cannot read key-value file %s: %s", self.path, e)
            return {}

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Corrupt key-value file %s, starting empty", self.path)
            return {}

        if not isinstance(data, dict):
            logger.warning("Key-value file %s is not an object, starting empty", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


def load_json_list(store: KeyValueStore, key: str) -> list:
    """
    Read a JSON array stored under `key`.

    Missing key, invalid JSON or a non-array payload all degrade to [].
    """
    raw = store.get(key)
    if raw is None:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Corrupt JSON under key %r, using empty list", key)
        return []
    if not isinstance(value, list):
        logger.warning("Expected JSON array under key %r, got %s", key, type(value).__name__)
        return []
    return value


def save_json_list(store: KeyValueStore, key: str, items: list) -> None:
    store.set(key, json.dumps(items))
