"""
Boundary to persistent storage, with an implementation over SQLAlchemy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NamedTuple

from sqlalchemy import (
    Boolean,
    Column,
    Connection,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.pool import StaticPool

from .entity.model import AttributeRow, BaseRow, BranchRow, NoteRow

__all__ = [
    "BaseStore",
    "SqlStore",
    "LoadedRows",
]

metadata = MetaData()

notes_table = Table(
    "notes",
    metadata,
    Column("noteId", String, primary_key=True),
    Column("title", Text, nullable=False, default="note"),
    Column("type", String, nullable=False, default="text"),
    Column("mime", String, nullable=False, default="text/html"),
    Column("isProtected", Boolean, nullable=False, default=False),
    Column("blobId", String),
    Column("isDeleted", Boolean, nullable=False, default=False),
    Column("deleteId", String),
    Column("dateCreated", String),
    Column("dateModified", String),
    Column("utcDateCreated", String),
    Column("utcDateModified", String),
)

branches_table = Table(
    "branches",
    metadata,
    Column("branchId", String, primary_key=True),
    Column("noteId", String, nullable=False),
    Column("parentNoteId", String, nullable=False),
    Column("notePosition", Integer, nullable=False, default=0),
    Column("prefix", String),
    Column("isExpanded", Boolean, nullable=False, default=False),
    Column("isDeleted", Boolean, nullable=False, default=False),
    Column("deleteId", String),
    Column("utcDateModified", String),
    Index("IDX_branches_noteId_parentNoteId", "noteId", "parentNoteId"),
    Index("IDX_branches_parentNoteId", "parentNoteId"),
)

attributes_table = Table(
    "attributes",
    metadata,
    Column("attributeId", String, primary_key=True),
    Column("noteId", String, nullable=False),
    Column("type", String, nullable=False),
    Column("name", Text, nullable=False),
    Column("value", Text, nullable=False, default=""),
    Column("position", Integer, nullable=False, default=0),
    Column("isInheritable", Boolean, nullable=False, default=False),
    Column("isDeleted", Boolean, nullable=False, default=False),
    Column("deleteId", String),
    Column("utcDateModified", String),
    Index("IDX_attributes_noteId", "noteId"),
    Index("IDX_attributes_name_value", "name", "value"),
)

blobs_table = Table(
    "blobs",
    metadata,
    Column("blobId", String, primary_key=True),
    Column("content", LargeBinary),
    Column("utcDateModified", String),
)

TABLES: dict[str, Table] = {
    "notes": notes_table,
    "branches": branches_table,
    "attributes": attributes_table,
}

PRIMARY_KEYS: dict[str, str] = {
    "notes": "noteId",
    "branches": "branchId",
    "attributes": "attributeId",
}


class LoadedRows(NamedTuple):
    """
    Full row sets of non-deleted entities, as needed for bulk load.
    """

    notes: list[NoteRow]
    branches: list[BranchRow]
    attributes: list[AttributeRow]


class BaseStore(ABC):
    """
    Persistent storage of notes, branches, attributes and content blobs.
    """

    @abstractmethod
    def load_rows(self) -> LoadedRows:
        ...

    @abstractmethod
    def upsert(self, entity_name: str, row: BaseRow):
        """
        Insert or replace row keyed by its entity id.
        """
        ...

    @abstractmethod
    def mark_deleted(
        self,
        entity_name: str,
        entity_id: str,
        *,
        delete_id: str,
        utc_date_modified: str,
    ):
        ...

    @abstractmethod
    def get_blob(self, blob_id: str) -> bytes | None:
        ...

    @abstractmethod
    def save_blob(self, blob_id: str, content: bytes, utc_date_modified: str):
        """
        Store content if no blob with this id exists yet.
        """
        ...

    @abstractmethod
    def transaction(self) -> Any:
        """
        Context manager within which all writes commit atomically. Nested
        use joins the outer transaction.
        """
        ...

    def close(self):
        ...


class SqlStore(BaseStore):
    """
    Store backed by an SQLite database through SQLAlchemy Core.
    """

    _conn: Connection | None = None

    def __init__(self, url: str = "sqlite://", *, echo: bool = False):
        """
        :param url: Database URL; the default is a private in-memory database
        :param echo: Log emitted SQL
        """
        kwargs: dict[str, Any] = {}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # keep a single connection so the in-memory database persists
            kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }

        self.url = url
        self._engine = create_engine(url, echo=echo, **kwargs)
        metadata.create_all(self._engine)

    def __str__(self):
        return f"SqlStore({self.url})"

    def load_rows(self) -> LoadedRows:
        def load(conn: Connection) -> LoadedRows:
            def rows(table: Table, order_by: str | None = None) -> list[dict]:
                stmt = select(table).where(table.c.isDeleted.is_(False))
                if order_by:
                    stmt = stmt.order_by(table.c[order_by])
                return [dict(r._mapping) for r in conn.execute(stmt)]

            return LoadedRows(
                notes=[NoteRow.model_validate(r) for r in rows(notes_table)],
                branches=[
                    BranchRow.model_validate(r)
                    for r in rows(branches_table, "notePosition")
                ],
                attributes=[
                    AttributeRow.model_validate(r)
                    for r in rows(attributes_table, "position")
                ],
            )

        return self._run(load)

    def upsert(self, entity_name: str, row: BaseRow):
        table = TABLES[entity_name]
        values = row.to_storage() | {"isDeleted": False, "deleteId": None}

        stmt = sqlite_insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[PRIMARY_KEYS[entity_name]], set_=values
        )

        self._run(lambda conn: conn.execute(stmt))

    def mark_deleted(
        self,
        entity_name: str,
        entity_id: str,
        *,
        delete_id: str,
        utc_date_modified: str,
    ):
        table = TABLES[entity_name]
        stmt = (
            update(table)
            .where(table.c[PRIMARY_KEYS[entity_name]] == entity_id)
            .values(
                isDeleted=True,
                deleteId=delete_id,
                utcDateModified=utc_date_modified,
            )
        )

        self._run(lambda conn: conn.execute(stmt))

    def get_blob(self, blob_id: str) -> bytes | None:
        stmt = select(blobs_table.c.content).where(
            blobs_table.c.blobId == blob_id
        )
        return self._run(lambda conn: conn.execute(stmt).scalar_one_or_none())

    def save_blob(self, blob_id: str, content: bytes, utc_date_modified: str):
        stmt = (
            sqlite_insert(blobs_table)
            .values(
                blobId=blob_id,
                content=content,
                utcDateModified=utc_date_modified,
            )
            .on_conflict_do_nothing(index_elements=["blobId"])
        )

        self._run(lambda conn: conn.execute(stmt))

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._conn is not None:
            # join outer transaction
            yield
            return

        with self._engine.begin() as conn:
            self._conn = conn
            try:
                yield
            finally:
                self._conn = None

    def close(self):
        self._engine.dispose()

    def _run[T](self, func: Callable[[Connection], T]) -> T:
        """
        Run func using the current transaction's connection, or a new
        transaction if none is open.
        """
        if self._conn is not None:
            return func(self._conn)

        with self._engine.begin() as conn:
            return func(conn)
