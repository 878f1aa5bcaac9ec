"""Cache implementations injected into market data providers."""

import json
import re
import threading
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .base import DataCache

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r'[^A-Za-z0-9_.-]')


class MemoryCache(DataCache):
    """Process-local cache; lives as long as the provider that owns it."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value


class JsonFileCache(DataCache):
    """On-disk cache storing one JSON document per key.

    Entries are never expired here; delete the directory to refresh.
    """

    def __init__(self, cache_dir: str):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                with open(path, 'r') as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                logger.warning("Ignoring corrupt cache entry %s: %s", path, e)
                return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix('.json.tmp')
        with self._lock:
            with open(tmp_path, 'w') as f:
                json.dump(value, f)
            tmp_path.replace(path)
