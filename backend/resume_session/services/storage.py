"""
Session key-value storage.

Browser-style string slots (get/set/remove per named key) behind a narrow
interface so the draft and job-context stores can run against an in-memory map
in tests or a JSON file per session in a long-lived process.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from resume_session.config import SESSION_STORAGE_DIR
from resume_session.utils.exceptions import MalformedLocalStateError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface for session storage. Values are strings, like localStorage."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> Iterable[str]:
        raise NotImplementedError

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryStore(KeyValueStore):
    """Dict-backed store; the default for tests and short-lived sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        # Transient flags may expire on a timer thread
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """
    One JSON object per session on disk.

    The whole file is rewritten on every change (write to temp, then replace),
    so a crash never leaves a half-written session. A corrupt file reads as an
    empty session.
    """

    def __init__(self, storage_dir: Union[str, Path], session_id: str):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.storage_dir / f"{session_id}.json"
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Session file unreadable, treating as empty", extra={'path': str(self.path), 'error': str(e)})
            return {}
        if not isinstance(data, dict):
            logger.warning("Session file is not an object, treating as empty", extra={'path': str(self.path)})
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        tmp_path = self.path.with_suffix('.json.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._write(data)

    def remove_many(self, keys: Iterable[str]) -> None:
        # Single rewrite so a multi-key clear lands as one unit
        with self._lock:
            data = self._load()
            for key in keys:
                data.pop(key, None)
            self._write(data)

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._load().keys())


# ========================================
# JSON helpers
# ========================================

def read_json(store: KeyValueStore, key: str) -> Any:
    """
    Read and decode a JSON slot.

    Returns None when the key is missing.

    Raises:
        MalformedLocalStateError: The stored value is not valid JSON.
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedLocalStateError(key, details={'reason': str(e)}) from e


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value))


# ========================================
# One-shot flags
# ========================================

def set_transient_flag(store: KeyValueStore, key: str, ttl_seconds: float):
    """
    Set a 'true' flag that removes itself after ttl_seconds.

    Uses the running event loop when there is one, otherwise a daemon timer.
    Returns the scheduled handle (both kinds support cancel()).
    """
    store.set(key, 'true')
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(ttl_seconds, store.remove, args=(key,))
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(ttl_seconds, store.remove, key)


def flag_is_set(store: KeyValueStore, key: str) -> bool:
    return store.get(key) == 'true'


def open_session_store(session_id: str, storage_dir: Union[str, Path, None] = None) -> JsonFileStore:
    """File store for one session under RESUME_SESSION_DIR (or storage_dir)."""
    return JsonFileStore(storage_dir or SESSION_STORAGE_DIR, session_id)
