import logging
from typing import Any, Dict, List

from fastapi import HTTPException, Request

from dal.draft_dal import DraftDAL


async def list_drafts(request: Request) -> List[Dict[str, Any]]:
    """Return every saved draft, newest first."""
    drafts: DraftDAL = request.app.state.drafts
    return [draft.to_dict() for draft in await drafts.list_drafts()]


async def get_draft(request: Request, draft_id: str) -> Dict[str, Any]:
    """Controller to fetch a single draft.

    Raises:
        HTTPException(404) if no draft has this id.
    """
    drafts: DraftDAL = request.app.state.drafts
    draft = await drafts.get_draft(draft_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft.to_dict()


async def delete_draft(request: Request, draft_id: str) -> Dict[str, Any]:
    """Delete a draft. Deleting an unknown id is not an error."""
    drafts: DraftDAL = request.app.state.drafts
    deleted = await drafts.delete_draft(draft_id)
    if deleted:
        logging.info("Deleted draft %s", draft_id)
    return {"id": draft_id, "deleted": deleted}
