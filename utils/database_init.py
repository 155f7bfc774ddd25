import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS DRAFT (
        id TEXT PRIMARY KEY,
        brand TEXT,
        category TEXT,
        title TEXT,
        material TEXT,
        condition TEXT,
        condition_score TEXT,
        flaws TEXT,
        description TEXT,
        sell_probability INTEGER,
        quick_sell_price INTEGER,
        max_profit_price INTEGER,
        image_refs TEXT,
        created_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS SETTING (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
)

# Columns added after the first release; older databases get them on startup.
_DRAFT_LATE_COLUMNS = {
    "condition_score": "TEXT",
    "flaws": "TEXT",
    "image_refs": "TEXT",
}


def _resolve_storage_dir(db_dir: Optional[Path | str]) -> Path:
    raw = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")
    if raw is None or not raw.strip():
        raise RuntimeError(
            "DATABASE_DIR must name a writable directory for the listing "
            "database and saved photos."
        )

    path = Path(raw).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"DATABASE_DIR={raw!r} is a file ({path}); expected a directory.")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Cannot create storage directory {path}") from exc
    return path


class AsyncDatabaseInitializer:
    """
    Own the SQLite file behind the draft store and the credential setting.

    Layout under the storage directory (constructor argument, else the
    DATABASE_DIR environment variable):

      - app.db   DRAFT and SETTING tables, WAL journal so readers never see a
                 half-written draft
      - images/  photo files referenced by drafts

    The schema is created lazily and only once per instance; existing rows
    are always kept.
    """

    def __init__(self, db_dir: Optional[Path | str] = None) -> None:
        self.db_dir = _resolve_storage_dir(db_dir)
        self.db_path = self.db_dir / "app.db"
        self.image_dir = self.db_dir / "images"

        self._ready = False
        self._lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """Create missing tables and columns. Later calls return immediately."""
        if self._ready:
            return

        async with self._lock:
            if self._ready:
                return
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                for statement in _SCHEMA:
                    await db.execute(statement)
                await self._add_late_columns(db)
                await db.commit()

            self.image_dir.mkdir(parents=True, exist_ok=True)
            self._ready = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection to an initialised database, closing it afterwards."""
        await self.ensure_database()
        async with aiosqlite.connect(self.db_path) as conn:
            yield conn

    @staticmethod
    async def _add_late_columns(db: aiosqlite.Connection) -> None:
        cur = await db.execute("PRAGMA table_info(DRAFT)")
        existing = {row[1] for row in await cur.fetchall()}
        for name, col_type in _DRAFT_LATE_COLUMNS.items():
            if name not in existing:
                await db.execute(f"ALTER TABLE DRAFT ADD COLUMN {name} {col_type}")
