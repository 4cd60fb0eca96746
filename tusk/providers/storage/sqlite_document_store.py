"""SQLite-backed document store.

Persists uploaded files (raw bytes, JSON metadata, owner) to a local SQLite
database at ``data/documents.db``.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from tusk.interfaces.document_store import IDocumentStore
from tusk.models.document import SIZE_KEY, UPLOAD_DATE_KEY, Document, DocumentInfo
from tusk.utils.errors import DocumentNotFoundError, PersistenceError
from tusk.utils.formatting import format_file_size

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")
_PROVIDER_NAME = "sqlite_documents"

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    filename    TEXT NOT NULL,
    content     BLOB NOT NULL,
    metadata    TEXT,
    owner_id    TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_owner_filename ON documents(owner_id, filename);",
]

_INSERT_SQL = """\
INSERT INTO documents (id, filename, content, metadata, owner_id)
VALUES (?, ?, ?, ?, ?);
"""

_SELECT_BY_ID_SQL = """\
SELECT id, filename, content, metadata, owner_id
FROM documents
WHERE id = ? AND owner_id = ?;
"""

_SELECT_BY_FILENAME_SQL = """\
SELECT id, filename, content, metadata, owner_id
FROM documents
WHERE filename = ? AND owner_id = ?
ORDER BY rowid DESC
LIMIT 1;
"""

_LIST_SQL = """\
SELECT id, filename, metadata, length(content) AS content_length
FROM documents
WHERE owner_id = ?
ORDER BY rowid;
"""

_SIZE_SCAN_SQL = "SELECT id, filename, metadata, length(content) AS content_length FROM documents;"

_UPDATE_METADATA_SQL = "UPDATE documents SET metadata = ? WHERE id = ?;"

_DELETE_SQL = "DELETE FROM documents WHERE id = ? AND owner_id = ?;"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _decode_metadata(raw: str | None) -> dict[str, str] | None:
    if raw is None:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError as exc:
        raise PersistenceError(
            message=f"unreadable document metadata: {exc}",
            provider_name=_PROVIDER_NAME,
        ) from exc
    if not isinstance(decoded, dict):
        return None
    return {str(k): str(v) for k, v in decoded.items()}


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"could not initialise document store: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_db_initialized", path=str(self._db_path))

    async def insert_document(self, document: Document) -> str:
        """Persist *document* and return its new id.

        ``uploadDate`` and ``size`` are filled in when the caller did not
        supply them; ``size`` always reflects ``len(document.content)``.
        """
        document_id = uuid.uuid4().hex
        metadata = dict(document.metadata)
        metadata.setdefault(UPLOAD_DATE_KEY, _utc_timestamp())
        metadata[SIZE_KEY] = str(len(document.content))

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        document_id,
                        document.filename,
                        document.content,
                        json.dumps(metadata),
                        document.owner_id,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"inserting {document.filename!r} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_inserted",
            document_id=document_id,
            filename=document.filename,
            size=len(document.content),
        )
        return document_id

    async def get_document(self, document_id: str, owner_id: str) -> Document:
        row = await self._fetch_one(_SELECT_BY_ID_SQL, (document_id, owner_id))
        if row is None:
            raise DocumentNotFoundError(provider_name=self.get_provider_name())
        return self._row_to_document(row)

    async def find_by_filename(self, filename: str, owner_id: str) -> Document:
        row = await self._fetch_one(_SELECT_BY_FILENAME_SQL, (filename, owner_id))
        if row is None:
            raise DocumentNotFoundError(provider_name=self.get_provider_name())
        return self._row_to_document(row)

    async def list_documents(self, owner_id: str) -> list[DocumentInfo]:
        """Return the owner's documents in upload order."""
        rows = await self._fetch_all(_LIST_SQL, (owner_id,))
        infos: list[DocumentInfo] = []
        for row in rows:
            try:
                metadata = _decode_metadata(row["metadata"]) or {}
            except PersistenceError:
                logger.warning("document_metadata_unreadable", document_id=row["id"])
                metadata = {}
            raw_size = metadata.get(SIZE_KEY, "")
            size = int(raw_size) if raw_size.isdigit() else row["content_length"]
            infos.append(
                DocumentInfo(
                    document_id=row["id"],
                    filename=row["filename"],
                    size=size,
                    formatted_size=format_file_size(size),
                    upload_date=metadata.get(UPLOAD_DATE_KEY),
                )
            )
        return infos

    async def get_file_size(self, filename: str, owner_id: str) -> int:
        """Return the recorded ``size`` of *filename*.

        Raises
        ------
        DocumentNotFoundError
            If no such document exists for the owner.
        PersistenceError
            If the size metadata is missing or not an integer.
        """
        document = await self.find_by_filename(filename, owner_id)
        raw = document.metadata.get(SIZE_KEY)
        if raw is None:
            raise PersistenceError(
                message="file size metadata not found",
                provider_name=self.get_provider_name(),
            )
        try:
            return int(raw)
        except ValueError as exc:
            raise PersistenceError(
                message="invalid file size format in metadata",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_document(self, document_id: str, owner_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_DELETE_SQL, (document_id, owner_id))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"deleting document {document_id} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_deleted", document_id=document_id, deleted=deleted)
        return deleted

    async def get_filenames(self, document_ids: list[str]) -> dict[str, str]:
        """Resolve filenames for a set of ids in one query."""
        unique_ids = sorted(set(document_ids))
        if not unique_ids:
            return {}
        placeholders = ", ".join("?" for _ in unique_ids)
        rows = await self._fetch_all(
            f"SELECT id, filename FROM documents WHERE id IN ({placeholders});",
            tuple(unique_ids),
        )
        return {row["id"]: row["filename"] for row in rows}

    async def migrate_missing_sizes(self) -> int:
        """Backfill ``size`` metadata for documents that lack it.

        Rows with no metadata at all get a fresh map.  A row that cannot be
        updated is logged and skipped so one bad document doesn't block the
        rest.

        Returns
        -------
        int
            Number of documents updated.
        """
        rows = await self._fetch_all(_SIZE_SCAN_SQL, ())
        updated = 0
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for row in rows:
                    try:
                        metadata = _decode_metadata(row["metadata"])
                    except PersistenceError:
                        logger.warning("document_metadata_unreadable", document_id=row["id"])
                        metadata = None
                    if metadata is not None and SIZE_KEY in metadata:
                        continue
                    metadata = metadata or {}
                    metadata[SIZE_KEY] = str(row["content_length"])
                    try:
                        await db.execute(_UPDATE_METADATA_SQL, (json.dumps(metadata), row["id"]))
                    except aiosqlite.Error as exc:
                        logger.warning(
                            "document_size_migration_failed",
                            document_id=row["id"],
                            filename=row["filename"],
                            error=str(exc),
                        )
                        continue
                    updated += 1
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"size migration failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("document_size_migration_complete", scanned=len(rows), updated=updated)
        return updated

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return _PROVIDER_NAME

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> aiosqlite.Row | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"document query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"document query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            document_id=row["id"],
            filename=row["filename"],
            content=bytes(row["content"]),
            metadata=_decode_metadata(row["metadata"]) or {},
            owner_id=row["owner_id"],
        )
