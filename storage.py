from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Dict, Iterator, MutableMapping, Optional

import structlog

logger = structlog.get_logger()

# Stores are plain string -> string maps, one per lifetime scope:
# session (gone when the browser tab / process ends) and persistent (survives restarts).
KeyValueStore = MutableMapping[str, str]

# Streamlit runs every browser session as a thread of one process.
_WRITE_LOCK = threading.Lock()


class MemoryStore(dict):
    """Session-scoped store."""


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


class JsonFileStore(MutableMapping[str, str]):
    """
    Persistent store backed by a single JSON object on disk.

    Reads go to the file every time, and a write merges its one key into the current
    file contents before replacing the whole file. Several stores (one per browser tab)
    can share a path without undoing each other's keys.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._data: Dict[str, str] = {}
        self.reload()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("persistent_store_unreadable", path=str(self.path))
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _flush(self) -> None:
        atomic_write_text(self.path, json.dumps(self._data, indent=2, sort_keys=True))

    def reload(self) -> Dict[str, str]:
        self._data = self._load()
        return self._data

    def __getitem__(self, key: str) -> str:
        return self.reload()[key]

    def __setitem__(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"store values must be str (got {type(value).__name__})")
        with _WRITE_LOCK:
            self.reload()[key] = value
            self._flush()

    def __delitem__(self, key: str) -> None:
        with _WRITE_LOCK:
            del self.reload()[key]
            self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self.reload()))

    def __len__(self) -> int:
        return len(self.reload())


def default_data_dir() -> Path:
    raw = str(os.getenv("SER_DATA_DIR", "")).strip()
    return Path(raw) if raw else Path.cwd() / ".ser_data"


def open_persistent_store(data_dir: Optional[Path] = None) -> JsonFileStore:
    return JsonFileStore((data_dir or default_data_dir()) / "persistent_store.json")
