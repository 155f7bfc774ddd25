"""Session lifecycle helpers for the capture and analysis flow."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request, UploadFile

from controllers.error_status import status_for
from models.pipeline_errors import PipelineError
from services.pipeline.orchestrator import ListingOrchestrator
from utils.media_validation import read_image_bytes


def _orchestrator(request: Request) -> ListingOrchestrator:
	return request.app.state.orchestrator


def _http_error(exc: PipelineError) -> HTTPException:
	return HTTPException(status_code=status_for(exc), detail=exc.message)


async def get_session(request: Request) -> Dict[str, Any]:
	"""Return the current session snapshot."""
	return _orchestrator(request).machine.snapshot()


async def upload_image(request: Request, file: UploadFile) -> Dict[str, Any]:
	"""Add an uploaded photo to the session and start enhancing it."""
	orchestrator = _orchestrator(request)
	image_files = request.app.state.image_files
	image_bytes = await read_image_bytes(file)
	try:
		orchestrator.machine.ensure_can_add()
	except PipelineError as exc:
		raise _http_error(exc) from exc

	saved_path = None
	if image_bytes:
		saved_path = await image_files.save(image_bytes, prefix="original")
	display_ref = saved_path or file.filename or "upload"

	try:
		image = await orchestrator.add_image(image_bytes, display_ref)
	except PipelineError as exc:
		# another upload may have filled the session while this file was written
		if saved_path:
			await image_files.discard(saved_path)
		raise _http_error(exc) from exc
	return image.to_summary(orchestrator.machine.use_enhanced(image.id))


async def remove_image(request: Request, image_id: str) -> Dict[str, Any]:
	orchestrator = _orchestrator(request)
	orchestrator.remove_image(image_id)
	return orchestrator.machine.snapshot()


async def set_selection(request: Request, image_id: str, use_enhanced: bool) -> Dict[str, Any]:
	"""Choose the enhanced or original version of one photo."""
	orchestrator = _orchestrator(request)
	try:
		orchestrator.toggle_selection(image_id, use_enhanced)
	except PipelineError as exc:
		raise _http_error(exc) from exc
	return {"image_id": image_id, "use_enhanced": use_enhanced}


async def select_image(request: Request, index: int) -> Dict[str, Any]:
	orchestrator = _orchestrator(request)
	try:
		orchestrator.select(index)
	except IndexError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	return {"selected_index": index}


async def analyze_session(request: Request) -> Dict[str, Any]:
	"""Run the pipeline for the session and return the persisted draft."""
	try:
		draft = await _orchestrator(request).run_analysis()
	except PipelineError as exc:
		raise _http_error(exc) from exc
	return draft.to_dict()


async def abort_analysis(request: Request) -> Dict[str, Any]:
	return {"aborted": _orchestrator(request).abort_analysis()}


async def reset_session(request: Request) -> Dict[str, Any]:
	orchestrator = _orchestrator(request)
	await orchestrator.reset()
	return orchestrator.machine.snapshot()
