from fastapi import APIRouter, HTTPException, Request

from controllers.draft_controller import delete_draft, get_draft, list_drafts

router = APIRouter(prefix="/drafts")


@router.get("")
async def list_drafts_route(request: Request):
	"""Return all saved listing drafts, newest first."""
	try:
		return await list_drafts(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{draft_id}")
async def get_draft_route(request: Request, draft_id: str):
	try:
		return await get_draft(request, draft_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{draft_id}")
async def delete_draft_route(request: Request, draft_id: str):
	try:
		return await delete_draft(request, draft_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
