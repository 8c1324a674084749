"""Record stores keyed by ``id``.

Both collections (clients and users) are plain lists of JSON objects. A store
exposes ``get``, ``list`` and ``put``; ``put`` replaces the record with the
same id in place or appends it, then writes the whole collection back.
There is no locking: concurrent writers race and the last one wins.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from cockpit.core.errors import StoreError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordStore(Protocol):
    def get(self, record_id: str) -> Optional[Record]: ...

    def list(self) -> List[Record]: ...

    def put(self, record: Record) -> Record: ...


def upsert(records: List[Record], record: Record) -> List[Record]:
    """Return a new list with ``record`` replacing its id match, or appended."""
    out = list(records)
    for index, existing in enumerate(out):
        if existing.get("id") == record.get("id"):
            out[index] = record
            return out
    out.append(record)
    return out


def atomic_write(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` so readers see either old or new content."""
    tmp_path: Optional[Path] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp",
            encoding="utf-8",
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        logger.error("write failed path=%s: %s", path, exc)
        raise StoreError() from exc


class JsonFileStore:
    """A JSON array on disk, read fully and rewritten fully on every put."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> List[Record]:
        if not self.path.exists():
            logger.info("store file missing, treating as empty path=%s", self.path)
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("could not read store path=%s: %s", self.path, exc)
            raise StoreError() from exc
        if not isinstance(data, list):
            logger.error("store is not a JSON array path=%s", self.path)
            raise StoreError()
        return [item for item in data if isinstance(item, dict)]

    def list(self) -> List[Record]:
        return self._read()

    def get(self, record_id: str) -> Optional[Record]:
        for record in self._read():
            if record.get("id") == record_id:
                return record
        return None

    def put(self, record: Record) -> Record:
        records = upsert(self._read(), record)
        atomic_write(self.path, json.dumps(records, indent=2, ensure_ascii=False))
        logger.info("saved id=%s path=%s total=%d", record.get("id"), self.path, len(records))
        return record


class UserStore:
    """User lookups on top of any record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def list(self) -> List[Record]:
        return self.store.list()

    def get(self, user_id: str) -> Optional[Record]:
        return self.store.get(user_id)

    def find_by_username(self, username: str) -> Optional[Record]:
        wanted = (username or "").strip().lower()
        if not wanted:
            return None
        for user in self.store.list():
            if str(user.get("username", "")).lower() == wanted:
                return user
        return None

    def put(self, user: Record) -> Record:
        return self.store.put(user)


__all__ = ["JsonFileStore", "Record", "RecordStore", "UserStore", "atomic_write", "upsert"]
