# spentiva/client/storage.py
"""Persistent client state in a single JSON file: auth token, theme, cached
user data, last sync time and ``cache_*`` entries with an optional TTL."""
import json
import logging
import os
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

AUTH_TOKEN = "authToken"
THEME = "theme"
USER_DATA = "userData"
LAST_SYNC = "lastSync"
CACHE_PREFIX = "cache_"


class ClientStorage:
    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()

    # raw file access

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Error reading client storage %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
            tmp = f"{self.path}.tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            logger.exception("Error writing client storage %s", self.path)

    # generic get/set/remove

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._save(data)

    def clear(self) -> None:
        with self._lock:
            self._save({})

    # auth token

    def get_auth_token(self) -> Optional[str]:
        return self.get(AUTH_TOKEN)

    def set_auth_token(self, token: str) -> None:
        self.set(AUTH_TOKEN, token)

    def remove_auth_token(self) -> None:
        self.remove(AUTH_TOKEN)

    # theme

    def get_theme(self) -> str:
        return self.get(THEME) or "light"

    def set_theme(self, theme: str) -> None:
        if theme not in ("light", "dark"):
            raise ValueError(f"unknown theme: {theme}")
        self.set(THEME, theme)

    # user data

    def get_user_data(self) -> Optional[Dict[str, Any]]:
        return self.get(USER_DATA)

    def set_user_data(self, data: Dict[str, Any]) -> None:
        self.set(USER_DATA, data)

    def remove_user_data(self) -> None:
        self.remove(USER_DATA)

    # last sync

    def get_last_sync(self) -> Optional[datetime]:
        value = self.get(LAST_SYNC)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed lastSync value %r", value)
            return None

    def set_last_sync(self, when: Optional[datetime] = None) -> None:
        self.set(LAST_SYNC, (when or datetime.utcnow()).isoformat())

    # offline cache

    def cache_data(self, key: str, data: Any, ttl_seconds: Optional[float] = None) -> None:
        self.set(f"{CACHE_PREFIX}{key}", {"data": data, "timestamp": self._clock(), "ttl": ttl_seconds})

    def get_cached_data(self, key: str) -> Any:
        entry = self.get(f"{CACHE_PREFIX}{key}")
        if not isinstance(entry, dict):
            return None
        ttl = entry.get("ttl")
        if ttl and self._clock() - entry.get("timestamp", 0) > ttl:
            self.remove(f"{CACHE_PREFIX}{key}")
            return None
        return entry.get("data")

    def clear_cache(self) -> None:
        with self._lock:
            data = self._load()
            kept = {k: v for k, v in data.items() if not k.startswith(CACHE_PREFIX)}
            if len(kept) != len(data):
                self._save(kept)
