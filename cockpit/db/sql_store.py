from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from cockpit.core.errors import StoreError
from cockpit.db.base import Base
from cockpit.db.session import make_session_factory
from cockpit.models.document import Document

logger = logging.getLogger(__name__)


class SqlDocumentStore:
    """Record store over the ``documents`` table, one collection per instance.

    Records keep their insertion order through ``position``. Each ``put`` runs
    in its own transaction, so a failed write leaves the collection as it was.
    """

    def __init__(self, engine: Engine, collection: str, create_tables: bool = True):
        self.engine = engine
        self.collection = collection
        self.SessionLocal = make_session_factory(engine)
        if create_tables:
            Base.metadata.create_all(engine)

    def list(self) -> List[Dict[str, Any]]:
        with self.SessionLocal() as db:
            rows = db.scalars(
                select(Document)
                .where(Document.collection == self.collection)
                .order_by(Document.position, Document.id)
            ).all()
            return [json.loads(r.body) for r in rows]

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self.SessionLocal() as db:
            row = db.get(Document, (self.collection, record_id))
            return json.loads(row.body) if row else None

    def put(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record_id = str(record.get("id", ""))
        body = json.dumps(record, ensure_ascii=False)
        try:
            with self.SessionLocal.begin() as db:
                row = db.get(Document, (self.collection, record_id))
                if row:
                    row.body = body
                    row.updated_at = datetime.now(tz=timezone.utc).isoformat()
                else:
                    last = db.scalar(
                        select(func.max(Document.position)).where(Document.collection == self.collection)
                    )
                    db.add(Document(collection=self.collection, id=record_id,
                                    position=(last if last is not None else -1) + 1, body=body))
        except SQLAlchemyError as exc:
            logger.error("write failed collection=%s id=%s: %s", self.collection, record_id, exc)
            raise StoreError() from exc
        logger.info("saved id=%s collection=%s", record_id, self.collection)
        return record

    def is_empty(self) -> bool:
        with self.SessionLocal() as db:
            count = db.scalar(
                select(func.count()).select_from(Document).where(Document.collection == self.collection)
            )
            return not count

    def seed(self, records: List[Dict[str, Any]]) -> int:
        """Import ``records`` in order; used once to move a JSON file into the table."""
        for record in records:
            self.put(record)
        return len(records)


__all__ = ["SqlDocumentStore"]
