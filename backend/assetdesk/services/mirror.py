"""
Local mirror: a best-effort copy of server-held lists kept in durable storage.

The mirror is consulted when the remote API is unavailable or does not know an
id, and written after every successful remote read or mutation (or instead of
the remote when it is down). There is no conflict resolution: the next
successful full read from the server replaces the mirrored list.
"""
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from assetdesk.config import settings
from assetdesk.database import utcnow

logger = logging.getLogger(__name__)

APPROVALS = "approvals"
APPROVAL_EVENTS = "approval_events"
USERS = "app_users"

Row = Dict[str, Any]


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Process-local store, used in tests and when no mirror directory is wanted."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """One JSON document per key under a directory. Writes replace the file atomically."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or settings.mirror_dir)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise


class LocalMirror:
    """Per-entity lists of JSON rows keyed by ``id``."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else JsonFileStore()

    def load(self, kind: str) -> List[Row]:
        try:
            raw = self.store.get(kind)
            rows = json.loads(raw) if raw else []
        except (OSError, ValueError) as e:
            logger.warning(f"Local mirror '{kind}' unreadable, treating as empty: {e}")
            return []
        return rows if isinstance(rows, list) else []

    def _save(self, kind: str, rows: List[Row]) -> None:
        try:
            self.store.set(kind, json.dumps(rows, default=str))
        except (OSError, TypeError) as e:
            logger.warning(f"Could not write local mirror '{kind}': {e}")

    def replace(self, kind: str, rows: Iterable[Row]) -> None:
        """Overwrite a list after a full successful fetch and stamp the sync time."""
        self._save(kind, list(rows))
        try:
            self.store.set(f"{kind}.meta", json.dumps({"synced_at": utcnow().isoformat()}))
        except OSError as e:
            logger.warning(f"Could not write local mirror metadata for '{kind}': {e}")

    def last_synced(self, kind: str) -> Optional[datetime]:
        try:
            raw = self.store.get(f"{kind}.meta")
            return datetime.fromisoformat(json.loads(raw)["synced_at"]) if raw else None
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def find(self, kind: str, row_id: str) -> Optional[Row]:
        for row in self.load(kind):
            if row.get("id") == row_id:
                return row
        return None

    def upsert(self, kind: str, row: Row) -> None:
        """Replace the row with the same id in place, or put a new one first."""
        self.upsert_many(kind, [row])

    def upsert_many(self, kind: str, new_rows: Iterable[Row]) -> None:
        rows = self.load(kind)
        index = {row.get("id"): i for i, row in enumerate(rows)}
        fresh: List[Row] = []
        for row in new_rows:
            i = index.get(row.get("id"))
            if i is None:
                fresh.append(row)
            else:
                rows[i] = row
        self._save(kind, fresh + rows)

    def filter(self, kind: str, predicate: Callable[[Row], bool]) -> List[Row]:
        return [row for row in self.load(kind) if predicate(row)]
