import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.models import Document

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Placeholder replaced with the store's clock when a document is written.
SERVER_TIMESTAMP = _ServerTimestamp()


def split_path(path: str) -> Tuple[str, str]:
    """``users/u1/orders/o9`` -> (``users/u1/orders``, ``o9``)."""
    segments = [s for s in path.strip("/").split("/") if s]
    if len(segments) < 2 or len(segments) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(segments[:-1]), segments[-1]


def _resolve_timestamps(value: Any, now: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v, now) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class DocumentStore:
    """get / set / add / query over JSON documents kept in the ``documents`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fetch(self, collection: str, doc_id: str) -> Optional[Document]:
        result = await self.db.execute(
            select(Document).where(
                and_(Document.collection == collection, Document.doc_id == doc_id)
            )
        )
        return result.scalar_one_or_none()

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        collection, doc_id = split_path(path)
        document = await self._fetch(collection, doc_id)
        return copy.deepcopy(document.data) if document else None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        data = _resolve_timestamps(data, datetime.now(timezone.utc).isoformat())
        try:
            document = await self._fetch(collection, doc_id)
            if document is None:
                self.db.add(Document(collection=collection, doc_id=doc_id, data=data))
            else:
                document.data = _deep_merge(document.data, data) if merge else data
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.debug(f"Document written: {path} (merge={merge})")

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Append a document with a generated id and return the id."""
        doc_id = uuid.uuid4().hex[:20]
        data = _resolve_timestamps(data, datetime.now(timezone.utc).isoformat())
        try:
            self.db.add(Document(collection=collection.strip("/"), doc_id=doc_id, data=data))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.debug(f"Document added: {collection}/{doc_id}")
        return doc_id

    async def query(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Tuple[str, Dict[str, Any]]]:
        result = await self.db.execute(
            select(Document)
            .where(Document.collection == collection.strip("/"))
            .order_by(Document.id)
        )
        rows = [(d.doc_id, copy.deepcopy(d.data)) for d in result.scalars().all()]

        if order_by:
            # Documents missing the field sort last either way.
            present = [r for r in rows if r[1].get(order_by) is not None]
            missing = [r for r in rows if r[1].get(order_by) is None]
            present.sort(key=lambda r: r[1][order_by], reverse=descending)
            rows = present + missing

        return rows
