"""SQLite blob storage adapter."""

import asyncio
import sqlite3
import time

import aiosqlite

from shiplog.adapters.storage.in_memory import StoredBlob
from shiplog.core.errors import StorageError

_BLOBS_SCHEMA = """
CREATE TABLE IF NOT EXISTS blobs (
    bucket TEXT NOT NULL,
    key TEXT NOT NULL,
    body BLOB NOT NULL,
    content_type TEXT NOT NULL,
    created_at REAL NOT NULL,
    PRIMARY KEY (bucket, key)
);
CREATE INDEX IF NOT EXISTS idx_blobs_bucket_created ON blobs(bucket, created_at);
"""

_UPSERT_BLOB = """
INSERT OR REPLACE INTO blobs (bucket, key, body, content_type, created_at)
VALUES (?, ?, ?, ?, ?)
"""

_SELECT_BLOB = """
SELECT bucket, key, body, content_type FROM blobs WHERE bucket = ? AND key = ?
"""

_SELECT_KEYS = """
SELECT key FROM blobs WHERE bucket = ? AND key LIKE ? ESCAPE '\\'
ORDER BY created_at ASC, key ASC
"""

_COUNT_BLOBS = """
SELECT COUNT(*) FROM blobs
"""


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"


class SQLiteBlobStorage:
    """SQLite implementation of BlobStoragePort.

    Stores each object as one row using aiosqlite for non-blocking async
    operations. Uses WAL mode for file databases. Intended for single-node
    deployments that want durable batches without an object store.

    For :memory: databases, a persistent connection is maintained since
    in-memory databases are connection-scoped in SQLite.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._db_path == ":memory:":
                self._persistent_conn = await aiosqlite.connect(":memory:")
                await self._persistent_conn.executescript(_BLOBS_SCHEMA)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(_BLOBS_SCHEMA)
            self._initialized = True

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a database connection."""
        await self._ensure_initialized()
        if self._db_path == ":memory:":
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            return self._persistent_conn
        return await aiosqlite.connect(self._db_path)

    async def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Store body under bucket/key, replacing any existing object.

        Raises:
            StorageError: If the row could not be written.
        """
        try:
            db = await self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(bucket, key, str(e)) from e
        try:
            await db.execute(
                _UPSERT_BLOB, (bucket, key, bytes(body), content_type, time.time())
            )
            await db.commit()
        except sqlite3.Error as e:
            raise StorageError(bucket, key, str(e)) from e
        finally:
            if self._db_path != ":memory:":
                await db.close()

    async def get(self, bucket: str, key: str) -> StoredBlob | None:
        """Return the object at bucket/key, or None."""
        db = await self._get_connection()
        try:
            async with db.execute(_SELECT_BLOB, (bucket, key)) as cursor:
                row = await cursor.fetchone()
        finally:
            if self._db_path != ":memory:":
                await db.close()
        if row is None:
            return None
        return StoredBlob(bucket=row[0], key=row[1], body=bytes(row[2]), content_type=row[3])

    async def list_keys(self, bucket: str, prefix: str = "") -> list[str]:
        """Return keys in bucket starting with prefix, oldest first."""
        db = await self._get_connection()
        try:
            async with db.execute(_SELECT_KEYS, (bucket, _like_prefix(prefix))) as cursor:
                return [row[0] async for row in cursor]
        finally:
            if self._db_path != ":memory:":
                await db.close()

    async def count(self) -> int:
        """Return total number of stored objects."""
        db = await self._get_connection()
        try:
            async with db.execute(_COUNT_BLOBS) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
        finally:
            if self._db_path != ":memory:":
                await db.close()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False
