"""Document store over the ``documents`` table.

Documents are plain JSON objects grouped in named collections and addressed
by string id. Writes are upserts; every call runs in its own session and
commits on its own, so a sequence of calls is not atomic.

Filtering, ordering and limits are applied in Python to the documents of a
single collection: only equality filters are supported.
"""
import logging
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from schoolhub.db import DocumentBase, SessionLocal

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the underlying database call fails."""


def _matches(data: dict, where: Optional[dict]) -> bool:
    if not where:
        return True
    return all(data.get(field) == value for field, value in where.items())


def _sort_key(value):
    # Documents missing the field sort after the others.
    return (value is None, "" if value is None else value)


class DocumentStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session = session_factory

    def _run(self, op: str, collection: str, fn):
        try:
            with self._session() as s:
                return fn(s)
        except SQLAlchemyError as exc:
            logger.error("Store %s on %s failed: %s", op, collection, exc)
            raise StoreError(f"{op} on {collection} failed") from exc

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        def fn(s):
            row = s.get(DocumentBase, (collection, doc_id))
            return dict(row.data) if row else None

        return self._run("get", collection, fn)

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """Create or overwrite the whole document."""
        def fn(s):
            row = s.get(DocumentBase, (collection, doc_id))
            if row:
                row.data = dict(data)
            else:
                s.add(DocumentBase(collection=collection, doc_id=doc_id, data=dict(data)))
            s.commit()

        self._run("set", collection, fn)

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        """Merge ``fields`` into an existing document. Returns False if it does not exist."""
        def fn(s):
            row = s.get(DocumentBase, (collection, doc_id))
            if not row:
                return False
            row.data = {**row.data, **fields}
            s.commit()
            return True

        return self._run("update", collection, fn)

    def delete(self, collection: str, doc_id: str) -> bool:
        def fn(s):
            deleted = (
                s.query(DocumentBase)
                .filter(and_(DocumentBase.collection == collection, DocumentBase.doc_id == doc_id))
                .delete()
            )
            s.commit()
            return deleted > 0

        return self._run("delete", collection, fn)

    def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        def fn(s):
            rows = (
                s.query(DocumentBase)
                .filter(DocumentBase.collection == collection)
                .order_by(DocumentBase.doc_id.asc())
                .all()
            )
            return [dict(row.data) for row in rows if _matches(row.data, where)]

        docs = self._run("query", collection, fn)
        if order_by:
            docs.sort(key=lambda d: _sort_key(d.get(order_by)), reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def count(self, collection: str, where: Optional[dict] = None) -> int:
        return len(self.query(collection, where))

    def delete_where(self, collection: str, where: Optional[dict] = None) -> int:
        """Delete every matching document of a collection, returning how many went."""
        def fn(s):
            rows = s.query(DocumentBase).filter(DocumentBase.collection == collection).all()
            doomed = [row for row in rows if _matches(row.data, where)]
            for row in doomed:
                s.delete(row)
            s.commit()
            return len(doomed)

        return self._run("delete", collection, fn)

    def clear(self) -> None:
        def fn(s):
            s.query(DocumentBase).delete()
            s.commit()

        self._run("clear", "*", fn)


store = DocumentStore()
