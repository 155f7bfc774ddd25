"""FastAPI routes for the capture and analysis session."""

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.session_controller import (
	abort_analysis,
	analyze_session,
	get_session,
	remove_image,
	reset_session,
	select_image,
	set_selection,
	upload_image,
)

router = APIRouter(prefix="/session")


class SelectionPayload(BaseModel):
	use_enhanced: bool


class SelectPayload(BaseModel):
	index: int


@router.get("")
async def get_session_route(request: Request):
	return await get_session(request)


@router.post("/images")
async def upload_image_route(request: Request, file: UploadFile = File(...)):
	try:
		return await upload_image(request, file)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/images/{image_id}")
async def remove_image_route(request: Request, image_id: str):
	return await remove_image(request, image_id)


@router.put("/images/{image_id}/selection")
async def set_selection_route(request: Request, image_id: str, payload: SelectionPayload):
	return await set_selection(request, image_id, payload.use_enhanced)


@router.put("/selected")
async def select_image_route(request: Request, payload: SelectPayload):
	return await select_image(request, payload.index)


@router.post("/analyze")
async def analyze_route(request: Request):
	try:
		return await analyze_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/abort")
async def abort_route(request: Request):
	return await abort_analysis(request)


@router.post("/reset")
async def reset_route(request: Request):
	return await reset_session(request)
