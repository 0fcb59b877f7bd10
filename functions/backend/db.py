"""
Document store abstraction for Firestore, SQL databases and an in-memory test implementation.

Every collection holds whole JSON-like documents keyed by id. Writes through
`set_document` overwrite unconditionally: the last writer wins.
"""

from __future__ import annotations

import copy
import time
import uuid
from typing import Dict, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class DbClient(Protocol):
    """Interface for document access."""

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def update_document(self, collection: str, doc_id: str, fields: dict) -> None:
        ...

    def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    def add_document(self, collection: str, data: dict) -> str:
        ...

    def list_documents(
        self, collection: str, limit: int | None = None
    ) -> list[tuple[str, dict]]:
        ...


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def _collection(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self._collection(collection).get(doc_id)
        # Copies keep callers from aliasing stored state.
        return copy.deepcopy(data) if data is not None else None

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        self._collection(collection)[doc_id] = copy.deepcopy(data)

    def update_document(self, collection: str, doc_id: str, fields: dict) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(fields))

    def delete_document(self, collection: str, doc_id: str) -> None:
        self._collection(collection).pop(doc_id, None)

    def add_document(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set_document(collection, doc_id, data)
        return doc_id

    def list_documents(
        self, collection: str, limit: int | None = None
    ) -> list[tuple[str, dict]]:
        items = [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
        ]
        return items[:limit] if limit is not None else items

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


class FirestoreDbClient:
    """
    Firestore-backed implementation using the firebase_admin SDK.
    """

    def __init__(self, app=None):
        from firebase_admin import firestore

        self.client = firestore.client(app)

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        self.client.collection(collection).document(doc_id).set(data)

    def update_document(self, collection: str, doc_id: str, fields: dict) -> None:
        try:
            self.client.collection(collection).document(doc_id).update(fields)
        except google_exceptions.NotFound as e:
            raise DocumentNotFoundError(collection, doc_id) from e

    def delete_document(self, collection: str, doc_id: str) -> None:
        self.client.collection(collection).document(doc_id).delete()

    def add_document(self, collection: str, data: dict) -> str:
        _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def list_documents(
        self, collection: str, limit: int | None = None
    ) -> list[tuple[str, dict]]:
        query = self.client.collection(collection)
        if limit is not None:
            query = query.limit(limit)
        return [(snapshot.id, snapshot.to_dict() or {}) for snapshot in query.stream()]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return dict(row.data) if row else None

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                row.data = data
                row.updated_at = time.time()
            else:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=data,
                        updated_at=time.time(),
                    )
                )
            session.commit()

    def update_document(self, collection: str, doc_id: str, fields: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                raise DocumentNotFoundError(collection, doc_id)
            # Reassign so SQLAlchemy sees the JSON column change.
            row.data = {**row.data, **fields}
            row.updated_at = time.time()
            session.commit()

    def delete_document(self, collection: str, doc_id: str) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                session.delete(row)
                session.commit()

    def add_document(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set_document(collection, doc_id, data)
        return doc_id

    def list_documents(
        self, collection: str, limit: int | None = None
    ) -> list[tuple[str, dict]]:
        with self.Session() as session:
            stmt = (
                select(DocumentRow)
                .where(DocumentRow.collection == collection)
                .order_by(DocumentRow.updated_at.asc(), DocumentRow.doc_id.asc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).scalars().all()
            return [(row.doc_id, dict(row.data)) for row in rows]


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)
