from __future__ import annotations

import base64
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Optional
from uuid import uuid4

from pydantic_core import to_jsonable_python
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arena.errors import ConflictError, InvalidRequest, NotFound, StoreError
from arena.models.document import Document
from arena.utils import as_aware, utcnow

_LOGGER = logging.getLogger(__name__)

USERS = "users"
CHALLENGES = "challenges"
TEAMS = "teams"
APPLICATIONS = "applications"

# Managed by the store itself, never taken from a caller's payload.
_RESERVED_FIELDS = frozenset({"id", "version", "created_at", "updated_at"})
_TIMESTAMP_COLUMNS = {"created_at": Document.created_at, "updated_at": Document.updated_at}


@dataclass(slots=True)
class StoredDocument:
    id: str
    data: dict[str, Any]
    version: int
    created_at: datetime
    updated_at: datetime

    def as_record(self) -> dict[str, Any]:
        """Flatten into the shape the entity schemas validate."""
        return {
            **self.data,
            "id": self.id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(slots=True)
class Page:
    items: list[StoredDocument] = field(default_factory=list)
    next_cursor: Optional[str] = None


def _payload(data: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in to_jsonable_python(dict(data)).items()
        if key not in _RESERVED_FIELDS
    }


def _to_stored(row: Document) -> StoredDocument:
    return StoredDocument(
        id=row.id,
        data=dict(row.data or {}),
        version=row.version,
        created_at=as_aware(row.created_at),
        updated_at=as_aware(row.updated_at),
    )


def _json_field(name: str):
    path = tuple(name.split("."))
    return Document.data[path] if len(path) > 1 else Document.data[path[0]]


def _equals(name: str, value: Any):
    column = _json_field(name)
    if value is None:
        return column.as_string().is_(None)
    if isinstance(value, bool):
        return column.as_boolean() == value
    if isinstance(value, int):
        return column.as_integer() == value
    if isinstance(value, float):
        return column.as_float() == value
    return column.as_string() == str(value)


def _order_expression(order_by: str):
    if order_by in _TIMESTAMP_COLUMNS:
        return _TIMESTAMP_COLUMNS[order_by]
    return _json_field(order_by).as_float()


def _order_value(doc: StoredDocument, order_by: str) -> Any:
    if order_by in _TIMESTAMP_COLUMNS:
        return getattr(doc, order_by).isoformat()
    value: Any = doc.data
    for part in order_by.split("."):
        value = value.get(part) if isinstance(value, dict) else None
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _encode_cursor(doc: StoredDocument, order_by: str) -> str:
    raw = json.dumps({"v": _order_value(doc, order_by), "id": doc.id})
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def _decode_cursor(cursor: str, order_by: str) -> tuple[Any, str]:
    try:
        raw = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        value, last_id = raw["v"], str(raw["id"])
        if value is not None and order_by in _TIMESTAMP_COLUMNS:
            value = datetime.fromisoformat(value)
        elif value is not None:
            value = float(value)
    except (ValueError, TypeError, KeyError) as exc:
        raise InvalidRequest("Invalid cursor") from exc
    return value, last_id


def _after(order, value: Any, last_id: str, descending: bool):
    """Rows that sort strictly after (value, last_id); ties break on id ascending."""
    if value is None:
        return and_(order.is_(None), Document.id > last_id)
    beyond = order < value if descending else order > value
    return or_(beyond, and_(order == value, Document.id > last_id))


class DocumentStore:
    """Collection-scoped CRUD over JSON documents.

    Writes are single-document; there are no multi-document transactions.
    ``update`` can be made conditional on the version the caller read.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str, collection: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            _LOGGER.error("Document store %s failed on %s", action, collection, exc_info=True)
            raise StoreError(f"Store {action} failed for {collection}") from exc

    async def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        *,
        doc_id: Optional[str] = None,
    ) -> str:
        doc_id = doc_id or uuid4().hex
        now = utcnow()
        async with self._session("create", collection) as session:
            session.add(
                Document(
                    collection=collection,
                    id=doc_id,
                    data=_payload(data),
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.commit()
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or fully replace the document stored under ``doc_id``."""
        now = utcnow()
        async with self._session("set", collection) as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                session.add(
                    Document(
                        collection=collection,
                        id=doc_id,
                        data=_payload(data),
                        version=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row.data = _payload(data)
                row.version = row.version + 1
                row.updated_at = now
            await session.commit()

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        async with self._session("read", collection) as session:
            row = await session.get(Document, (collection, doc_id))
            return _to_stored(row) if row is not None else None

    async def update(
        self,
        collection: str,
        doc_id: str,
        patch: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        """Merge ``patch`` into the top-level fields and return the new version."""
        async with self._session("update", collection) as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                raise NotFound(f"{collection}/{doc_id} not found")
            if expected_version is not None and row.version != expected_version:
                raise ConflictError(
                    f"{collection}/{doc_id} changed (expected v{expected_version}, found v{row.version})"
                )

            merged = {**(row.data or {}), **_payload(patch)}
            new_version = row.version + 1
            result = await session.execute(
                update(Document)
                .where(
                    Document.collection == collection,
                    Document.id == doc_id,
                    Document.version == row.version,
                )
                .values(data=merged, version=new_version, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                raise ConflictError(f"{collection}/{doc_id} changed during update")
            await session.commit()
        return new_version

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._session("delete", collection) as session:
            await session.execute(
                delete(Document).where(Document.collection == collection, Document.id == doc_id)
            )
            await session.commit()

    async def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Page:
        """Equality-filtered, ordered listing that continues after the cursor's document."""
        stmt = select(Document).where(Document.collection == collection)
        for name, value in (filters or {}).items():
            stmt = stmt.where(_equals(name, value))

        order = _order_expression(order_by)
        if cursor:
            last_value, last_id = _decode_cursor(cursor, order_by)
            stmt = stmt.where(_after(order, last_value, last_id, descending))

        stmt = stmt.order_by(order.desc() if descending else order.asc(), Document.id.asc())
        if limit:
            stmt = stmt.limit(limit)

        async with self._session("query", collection) as session:
            rows = (await session.execute(stmt)).scalars().all()

        items = [_to_stored(row) for row in rows]
        next_cursor = None
        if limit and len(items) == limit:
            next_cursor = _encode_cursor(items[-1], order_by)
        return Page(items=items, next_cursor=next_cursor)


__all__ = [
    "APPLICATIONS",
    "CHALLENGES",
    "DocumentStore",
    "Page",
    "StoredDocument",
    "TEAMS",
    "USERS",
]
