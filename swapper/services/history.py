"""
Swap history: most-recent-first list of at most 5 entries, stored as one
JSON value under a fixed key of an injected key-value surface.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..config import get_settings
from ..domain.models import SwapHistoryEntry

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """
    All keys live in one JSON document (<DATA_ROOT>/storage.json).
    The document is rewritten wholesale on each set().
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else Path(get_settings().DATA_ROOT) / "storage.json"

    def _ensure_dirs(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load_doc(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            doc = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("unreadable storage file %s: %s", self.path, e)
            return {}
        return doc if isinstance(doc, dict) else {}

    def get(self, key: str) -> Optional[str]:
        return self._load_doc().get(key)

    def set(self, key: str, value: str) -> None:
        self._ensure_dirs()
        doc = self._load_doc()
        doc[key] = value
        self.path.write_text(json.dumps(doc, indent=2))


class HistoryStore:
    def __init__(self, kv: KeyValueStore, key: Optional[str] = None, limit: int = HISTORY_LIMIT):
        self.kv = kv
        self.key = key or get_settings().HISTORY_KEY
        self.limit = limit
        self._entries: List[SwapHistoryEntry] = []

    @property
    def entries(self) -> List[SwapHistoryEntry]:
        return list(self._entries)

    def load(self) -> List[SwapHistoryEntry]:
        """Read persisted history; anything malformed loads as empty."""
        raw = self.kv.get(self.key)
        entries: List[SwapHistoryEntry] = []
        if raw:
            try:
                data = json.loads(raw)
                if not isinstance(data, list):
                    raise ValueError("history is not a list")
                entries = [SwapHistoryEntry.model_validate(item) for item in data]
            except (ValueError, ValidationError) as e:
                logger.warning("discarding malformed swap history under %r: %s", self.key, e)
                entries = []
        self._entries = entries[: self.limit]
        return self.entries

    def _persist(self) -> None:
        payload = [e.model_dump(mode="json") for e in self._entries]
        self.kv.set(self.key, json.dumps(payload))

    def record(self, entry: SwapHistoryEntry) -> List[SwapHistoryEntry]:
        self._entries = [entry] + self._entries
        self._entries = self._entries[: self.limit]
        self._persist()
        return self.entries

    def clear(self) -> None:
        self._entries = []
        self._persist()

    def get(self, index: int) -> SwapHistoryEntry:
        """IndexError when `index` is outside the stored list."""
        if index < 0:
            raise IndexError(index)
        return self._entries[index]
