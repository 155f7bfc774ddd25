from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.analysis_controller import analyze_once, analyze_stream, enhance_image

router = APIRouter(prefix="/api")


class EnhancePayload(BaseModel):
	imageBase64: Optional[str] = None


class AnalyzePayload(BaseModel):
	images: Optional[List[str]] = None
	imageBase64: Optional[str] = None
	apiKey: Optional[str] = None

	def image_list(self) -> List[str]:
		if self.images:
			return self.images
		return [self.imageBase64] if self.imageBase64 else []


@router.post("/enhance")
async def enhance_route(request: Request, payload: EnhancePayload):
	"""Return enhanced and normalised versions of one base64 image."""
	try:
		return await enhance_image(request, payload.imageBase64)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analyze-stream")
async def analyze_stream_route(request: Request, payload: AnalyzePayload):
	"""Stream the listing analysis as server-sent events."""
	try:
		return await analyze_stream(request, payload.image_list(), payload.apiKey)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analyze")
async def analyze_route(request: Request, payload: AnalyzePayload):
	"""Analyze in one request and return the listing as JSON."""
	try:
		return await analyze_once(request, payload.image_list(), payload.apiKey)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
