from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Literal

import aiosqlite

from lithsync.errors import PersistenceError

logger = logging.getLogger(__name__)

LookupStatus = Literal["found", "absent", "corrupt"]


@dataclass(frozen=True)
class Lookup:
    """Result of a keyed read; ``corrupt`` covers unparseable and mistyped values."""

    status: LookupStatus
    value: Any = None

    @property
    def found(self) -> bool:
        return self.status == "found"


ABSENT = Lookup("absent")


class KeyValueStore:
    """String-keyed JSON storage on the device, one SQLite file per install."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        db = await aiosqlite.connect(self.path.as_posix())
        db.row_factory = aiosqlite.Row
        try:
            yield db
        finally:
            await db.close()

    async def init(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with self.connect() as db:
            await db.executescript(
                """
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at DATETIME NOT NULL DEFAULT (datetime('now'))
                );
                """
            )
            await db.commit()

    async def load(self, key: str, expected: type | tuple[type, ...] | None = None) -> Lookup:
        """Read ``key`` and tell absent, found and corrupt apart.

        Raises PersistenceError when the storage itself cannot be read.
        """
        try:
            async with self.connect() as db:
                cur = await db.execute("SELECT value FROM kv_store WHERE key=?", (key,))
                row = await cur.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to read {key}: {e}", key=key) from e
        if row is None:
            return ABSENT
        try:
            value = json.loads(row["value"])
        except ValueError:
            return Lookup("corrupt")
        if expected is not None and not isinstance(value, expected):
            return Lookup("corrupt")
        return Lookup("found", value)

    async def get(self, key: str, expected: type | tuple[type, ...] | None = None) -> Any:
        """Return the stored value, or None when absent, corrupt or unreadable."""
        try:
            result = await self.load(key, expected)
        except PersistenceError as e:
            logger.error("Failed to retrieve data for key %s: %s", key, e)
            return None
        if result.status == "corrupt":
            logger.warning("Ignoring corrupt value stored under %s", key)
        return result.value

    async def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for {key} is not JSON serializable: {e}", key=key) from e
        try:
            async with self.connect() as db:
                await db.execute(
                    "INSERT INTO kv_store(key, value, updated_at) VALUES(?, ?, datetime('now')) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                    (key, payload),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to store data for key {key}: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        await self.delete_many([key])

    async def delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        try:
            async with self.connect() as db:
                cur = await db.executemany("DELETE FROM kv_store WHERE key=?", [(k,) for k in keys])
                await db.commit()
                return max(cur.rowcount, 0)
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to clear {len(keys)} keys: {e}") from e

    async def keys(self, prefix: str | None = None) -> list[str]:
        try:
            async with self.connect() as db:
                if prefix:
                    cur = await db.execute(
                        "SELECT key FROM kv_store WHERE substr(key, 1, ?)=? ORDER BY key",
                        (len(prefix), prefix),
                    )
                else:
                    cur = await db.execute("SELECT key FROM kv_store ORDER BY key")
                rows = await cur.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to list keys: {e}") from e
        return [str(r[0]) for r in rows]
