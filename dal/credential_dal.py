"""Local storage for the inference credential (the user's OpenAI API key)."""

from __future__ import annotations

from typing import Optional

from utils.database_init import AsyncDatabaseInitializer


class CredentialDAL:
    """Get, set and clear the single credential held in the SETTING table."""

    _KEY = "openai_api_key"

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get(self) -> Optional[str]:
        """Return the stored credential, or None if none is configured."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT value FROM SETTING WHERE key = ?", (self._KEY,))
            row = await cur.fetchone()
        value = row[0] if row else None
        return value or None

    async def set(self, credential: str) -> None:
        """Store a credential, replacing any previous one.

        Raises:
            ValueError: If the credential is empty after trimming.
        """
        cleaned = (credential or "").strip()
        if not cleaned:
            raise ValueError("Please enter a valid API key")
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO SETTING (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (self._KEY, cleaned),
            )
            await conn.commit()

    async def clear(self) -> None:
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM SETTING WHERE key = ?", (self._KEY,))
            await conn.commit()
