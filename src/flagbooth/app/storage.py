from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

KEY_VISITOR = "ctf_visitor"
KEY_PROGRESS = "ctf_progress"
KEY_QUEUE = "ctf_retry_queue"
KEY_CONFIG = "ctf_config"
KEY_KNOCKOUT = "ctf_knockout"

_locks_guard = threading.Lock()
_locks: Dict[Path, threading.RLock] = {}


def _lock_for(path: Path) -> threading.RLock:
    """One lock per store file, shared by every LocalStore that points at it."""
    key = path.resolve()
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.RLock()
        return lock


class LocalStore:
    """
    Small JSON key/value file that survives restarts and offline periods.

    Reads never fail: a missing or corrupt file reads as empty. Writes that fail
    (read-only disk, full disk) are logged and dropped.

    Worker threads share the file, so every read-modify-write goes through
    `update`, which holds the file's lock for the whole cycle.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def _load(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any], key: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.warning("Could not write %s to %s: %s", key, self.path, e)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._load().get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self.update(key, lambda _old: value)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        """
        Replace `key` with `fn(current value)` atomically; returns the new value.

        `fn` gets None for a missing key and runs with the lock held, so it must not
        block on the network.
        """
        with self._lock:
            data = self._load()
            value = fn(data.get(key))
            data[key] = value
            self._write(data, key)
            return value
