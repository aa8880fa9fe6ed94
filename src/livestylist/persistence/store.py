"""
Stylist Store — SQLite-backed users, session records and session memories.

Three tables:
- users: one row per device (profile + daily quota counter)
- sessions: one record per started session, completed when it ends
- memories: post-session summaries, read back for continuity

Usage:
    store = StylistStore(Path("livestylist.db"))
    await store.start()

    await store.create_user(device_id, name="Ada", favorite_color="green")
    check = await store.increment_session_count(device_id, limit=1)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from livestylist.errors import ConflictError, NotFoundError
from livestylist.session.models import (
    QuotaCheck,
    SessionMemory,
    SessionRecordStatus,
    UserProfile,
)

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "device_id, name, favorite_color, stylist_name, language, "
    "sessions_used_today, last_session_date, created_at"
)

_UPDATABLE_USER_FIELDS = ("name", "favorite_color", "stylist_name", "language")


def today_utc() -> str:
    """Calendar day used for quota resets (UTC, YYYY-MM-DD)."""
    return datetime.now(timezone.utc).date().isoformat()


class StylistStore:
    """
    SQLite persistence for everything that outlives a live session.

    Single connection via aiosqlite. Read-modify-write sequences (quota
    counter) are serialized with an asyncio lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def start(self) -> None:
        """Open the database and create tables."""
        self._db = await aiosqlite.connect(str(self.db_path))
        await self._db.execute("PRAGMA journal_mode=WAL")

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                device_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                favorite_color TEXT NOT NULL,
                stylist_name TEXT,
                language TEXT,
                sessions_used_today INTEGER NOT NULL DEFAULT 0,
                last_session_date TEXT NOT NULL DEFAULT '',
                created_at REAL NOT NULL
            )
        """)

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                device_id TEXT NOT NULL,
                subscription_tier TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time REAL NOT NULL,
                end_time REAL,
                duration_seconds INTEGER
            )
        """)

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                session_id TEXT PRIMARY KEY,
                device_id TEXT NOT NULL,
                summary TEXT NOT NULL,
                tips TEXT NOT NULL DEFAULT '[]',
                duration_seconds INTEGER,
                occasion TEXT,
                created_at REAL NOT NULL
            )
        """)

        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_memories_device
            ON memories(device_id, created_at)
        """)

        await self._db.commit()
        logger.info("StylistStore started (db=%s)", self.db_path)

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def ping(self) -> bool:
        """Cheap connectivity check for readiness probes."""
        if self._db is None:
            return False
        async with self._db.execute("SELECT 1") as cursor:
            return (await cursor.fetchone()) is not None

    # ─── Users ────────────────────────────────────────────────────

    async def create_user(
        self,
        device_id: str,
        name: str,
        favorite_color: str,
        stylist_name: str | None = None,
        language: str | None = None,
    ) -> UserProfile:
        assert self._db is not None, "StylistStore not started"

        user = UserProfile(
            device_id=device_id,
            name=name,
            favorite_color=favorite_color,
            stylist_name=stylist_name,
            language=language,
            sessions_used_today=0,
            last_session_date=today_utc(),
            created_at=time.time(),
        )
        try:
            await self._db.execute(
                f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    user.device_id,
                    user.name,
                    user.favorite_color,
                    user.stylist_name,
                    user.language,
                    user.sessions_used_today,
                    user.last_session_date,
                    user.created_at,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ConflictError("User already registered") from e
        await self._db.commit()

        logger.info("User created", extra={"device_id": device_id})
        return user

    async def get_user(self, device_id: str) -> UserProfile | None:
        assert self._db is not None, "StylistStore not started"

        async with self._db.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE device_id = ?",
            (device_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_user(row)

    async def update_user(self, device_id: str, updates: dict[str, Any]) -> UserProfile:
        """Update profile fields. Unknown keys and None values are ignored."""
        assert self._db is not None, "StylistStore not started"

        fields = {
            k: v for k, v in updates.items() if k in _UPDATABLE_USER_FIELDS and v is not None
        }
        if await self.get_user(device_id) is None:
            raise NotFoundError("User not found")

        if fields:
            assignments = ", ".join(f"{k} = ?" for k in fields)
            await self._db.execute(
                f"UPDATE users SET {assignments} WHERE device_id = ?",
                (*fields.values(), device_id),
            )
            await self._db.commit()

        user = await self.get_user(device_id)
        assert user is not None
        return user

    async def increment_session_count(
        self, device_id: str, limit: int, today: str | None = None
    ) -> QuotaCheck:
        """Consume one session from today's quota.

        The counter resets lazily: if the stored last_session_date is not
        today, the stored count is treated as zero.
        """
        assert self._db is not None, "StylistStore not started"
        today = today or today_utc()

        async with self._write_lock:
            async with self._db.execute(
                "SELECT sessions_used_today, last_session_date FROM users WHERE device_id = ?",
                (device_id,),
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                raise NotFoundError("User not found")

            sessions_used = row[0] if row[1] == today else 0
            if sessions_used >= limit:
                return QuotaCheck(
                    allowed=False, sessions_used_today=sessions_used, remaining=0
                )

            new_count = sessions_used + 1
            await self._db.execute(
                "UPDATE users SET sessions_used_today = ?, last_session_date = ? WHERE device_id = ?",
                (new_count, today, device_id),
            )
            await self._db.commit()

        return QuotaCheck(
            allowed=True, sessions_used_today=new_count, remaining=limit - new_count
        )

    # ─── Session records ──────────────────────────────────────────

    async def create_session_record(
        self, session_id: str, device_id: str, tier: str
    ) -> None:
        assert self._db is not None, "StylistStore not started"

        await self._db.execute(
            """
            INSERT OR REPLACE INTO sessions
                (session_id, device_id, subscription_tier, status, start_time)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, device_id, tier, SessionRecordStatus.ACTIVE.value, time.time()),
        )
        await self._db.commit()

    async def complete_session_record(
        self, session_id: str, duration_seconds: int, status: str
    ) -> None:
        assert self._db is not None, "StylistStore not started"

        cursor = await self._db.execute(
            "UPDATE sessions SET end_time = ?, duration_seconds = ?, status = ? WHERE session_id = ?",
            (time.time(), duration_seconds, status, session_id),
        )
        await self._db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Session record {session_id} not found")

    async def get_session_record(self, session_id: str) -> dict[str, Any] | None:
        assert self._db is not None, "StylistStore not started"

        async with self._db.execute(
            "SELECT session_id, device_id, subscription_tier, status, start_time, end_time, duration_seconds "
            "FROM sessions WHERE session_id = ?",
            (session_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return {
            "session_id": row[0],
            "device_id": row[1],
            "subscription_tier": row[2],
            "status": row[3],
            "start_time": row[4],
            "end_time": row[5],
            "duration_seconds": row[6],
        }

    # ─── Session memories ─────────────────────────────────────────

    async def save_session_memory(self, device_id: str, memory: SessionMemory) -> None:
        assert self._db is not None, "StylistStore not started"

        await self._db.execute(
            """
            INSERT OR REPLACE INTO memories
                (session_id, device_id, summary, tips, duration_seconds, occasion, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                memory.session_id,
                device_id,
                memory.summary,
                json.dumps(list(memory.tips)),
                memory.duration_seconds,
                memory.occasion,
                memory.created_at,
            ),
        )
        await self._db.commit()
        logger.info(
            "Session memory saved",
            extra={"session_id": memory.session_id, "device_id": device_id},
        )

    async def get_recent_memories(
        self, device_id: str, limit: int = 3
    ) -> list[SessionMemory]:
        """Most recent memories first."""
        assert self._db is not None, "StylistStore not started"

        memories = []
        async with self._db.execute(
            "SELECT session_id, summary, tips, duration_seconds, occasion, created_at "
            "FROM memories WHERE device_id = ? ORDER BY created_at DESC LIMIT ?",
            (device_id, limit),
        ) as cursor:
            async for row in cursor:
                memories.append(
                    SessionMemory(
                        session_id=row[0],
                        summary=row[1],
                        tips=json.loads(row[2]) if row[2] else [],
                        duration_seconds=row[3],
                        occasion=row[4],
                        created_at=row[5],
                    )
                )
        return memories


def _row_to_user(row: Any) -> UserProfile:
    return UserProfile(
        device_id=row[0],
        name=row[1],
        favorite_color=row[2],
        stylist_name=row[3],
        language=row[4],
        sessions_used_today=row[5],
        last_session_date=row[6],
        created_at=row[7],
    )
