"""Async Data Access Layer for the DRAFT table.

Provides DraftDAL with the only operations the draft store allows:
list, get by id, put, and delete by id. Drafts are never updated in place.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence

from models.listing_models import ListingDraft
from utils.database_init import AsyncDatabaseInitializer


class DraftDAL:
    """Data access layer for persisted ListingDraft records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "brand",
        "category",
        "title",
        "material",
        "condition",
        "condition_score",
        "flaws",
        "description",
        "sell_probability",
        "quick_sell_price",
        "max_profit_price",
        "image_refs",
        "created_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_draft(self, draft: ListingDraft) -> bool:
        """Insert a draft. Returns False if a draft with the same id already exists.

        Args:
            draft: Fully populated ListingDraft.

        Returns:
            True when a new row was written.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT OR IGNORE INTO DRAFT ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS})",
                (
                    draft.id,
                    draft.brand,
                    draft.category,
                    draft.title,
                    draft.material,
                    draft.condition,
                    draft.condition_score,
                    draft.flaws,
                    draft.description,
                    draft.sell_probability,
                    draft.quick_sell_price,
                    draft.max_profit_price,
                    json.dumps(list(draft.image_refs)),
                    draft.created_at,
                ),
            )
            await conn.commit()
            return cur.rowcount > 0

    async def get_draft(self, draft_id: str) -> Optional[ListingDraft]:
        """Return the draft for `draft_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM DRAFT WHERE id = ?",
                (draft_id,),
            )
            row = await cur.fetchone()
            return self._row_to_draft(row) if row else None

    async def list_drafts(self, limit: int = 500, offset: int = 0) -> List[ListingDraft]:
        """List drafts, newest first.

        Args:
            limit: Maximum number of rows to return.
            offset: Rows to skip.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM DRAFT ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_draft(r) for r in rows]

    async def delete_draft(self, draft_id: str) -> bool:
        """Delete a draft by id. Returns True if a row was deleted; unknown ids are a no-op."""
        async with self._db.connection() as conn:
            cur = await conn.execute("DELETE FROM DRAFT WHERE id = ?", (draft_id,))
            await conn.commit()
            return cur.rowcount > 0

    @staticmethod
    def _row_to_draft(row: Sequence[Any]) -> ListingDraft:
        """Convert a DB row into a ListingDraft, defaulting missing values."""
        defaults = ListingDraft(id=row[0], image_refs=[])
        return ListingDraft(
            id=row[0],
            brand=row[1] or defaults.brand,
            category=row[2] or defaults.category,
            title=row[3] or defaults.title,
            material=row[4] or defaults.material,
            condition=row[5] or defaults.condition,
            condition_score=row[6] or row[5] or defaults.condition_score,
            flaws=row[7] or defaults.flaws,
            description=row[8] or defaults.description,
            sell_probability=row[9] if row[9] is not None else defaults.sell_probability,
            quick_sell_price=row[10] if row[10] is not None else defaults.quick_sell_price,
            max_profit_price=row[11] if row[11] is not None else defaults.max_profit_price,
            image_refs=DraftDAL._load_refs(row[12]),
            created_at=row[13] if row[13] is not None else defaults.created_at,
        )

    @staticmethod
    def _load_refs(raw: Optional[str]) -> List[str]:
        if not raw:
            return []
        try:
            refs = json.loads(raw)
        except json.JSONDecodeError:
            logging.warning("Ignoring unreadable image_refs value in DRAFT table")
            return []
        return [str(ref) for ref in refs] if isinstance(refs, list) else []
