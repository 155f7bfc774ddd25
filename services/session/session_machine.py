"""State machine for the single in-progress listing session."""

from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import uuid4

from models.listing_models import (
	EnhancedImage,
	EnhancementState,
	ImageItem,
	ListingDraft,
	ListingSession,
	SessionStage,
)
from models.pipeline_errors import (
	AnalysisInProgress,
	CapacityExceeded,
	EnhancementPending,
	InvalidTransition,
	MissingCredential,
	NoImages,
	SelectionUnavailable,
)

MAX_IMAGES = 5


class SessionMachine:
	"""Drive one session through capture, review, analysis and result.

	All session mutation goes through these methods. The machine performs no
	I/O; the orchestrator schedules enhancement and inference around it.
	"""

	def __init__(self) -> None:
		self.state = ListingSession()

	@property
	def stage(self) -> SessionStage:
		return self.state.stage

	@property
	def images(self):
		return self.state.images

	def find(self, image_id: str) -> Optional[ImageItem]:
		for image in self.state.images:
			if image.id == image_id:
				return image
		return None

	def use_enhanced(self, image_id: str) -> bool:
		return self.state.use_enhanced_by_image.get(image_id, False)

	def ensure_can_add(self) -> None:
		"""Raise if another photo cannot be added right now."""
		if self.state.stage not in (SessionStage.CAPTURE, SessionStage.REVIEWING):
			raise InvalidTransition(f"Cannot add photos while {self.state.stage.value}.")
		if len(self.state.images) >= MAX_IMAGES:
			raise CapacityExceeded(f"Maximum {MAX_IMAGES} photos allowed.")

	def add_image(self, image_bytes: Optional[bytes], display_ref: str) -> ImageItem:
		"""Append a captured photo. Enhancement is scheduled by the caller."""
		self.ensure_can_add()

		image = ImageItem(id=uuid4().hex, original_bytes=image_bytes or None, original_display_ref=display_ref)
		self.state.images.append(image)
		self.state.use_enhanced_by_image[image.id] = True
		if image.original_bytes is None:
			self._mark_failed(image)

		if self.state.stage is SessionStage.CAPTURE:
			self.state.stage = SessionStage.REVIEWING
			self.state.selected_index = 0
		return image

	def enhancement_completed(
		self,
		image_id: str,
		enhanced: Optional[EnhancedImage],
		enhanced_display_ref: Optional[str] = None,
	) -> None:
		"""Apply one enhancement completion. Unknown or settled ids are ignored."""
		image = self.find(image_id)
		if image is None or image.enhancement_state is not EnhancementState.PENDING:
			return
		if enhanced is None or not enhanced.enhanced_bytes or not enhanced_display_ref:
			self._mark_failed(image)
			return
		image.enhanced_bytes = enhanced.enhanced_bytes
		image.enhanced_display_ref = enhanced_display_ref
		image.normalized_bytes = enhanced.normalized_original
		image.enhancement_state = EnhancementState.SUCCEEDED

	def remove_image(self, image_id: str) -> None:
		if self.state.stage is not SessionStage.REVIEWING:
			return
		image = self.find(image_id)
		if image is None:
			return
		self.state.images.remove(image)
		self.state.use_enhanced_by_image.pop(image_id, None)
		self.state.selected_index = min(self.state.selected_index, max(0, len(self.state.images) - 1))
		if not self.state.images:
			self.state.stage = SessionStage.CAPTURE

	def select(self, index: int) -> None:
		"""Change the previewed image. Has no effect on analysis."""
		if not 0 <= index < len(self.state.images):
			raise IndexError(f"No photo at position {index}")
		self.state.selected_index = index

	def toggle_selection(self, image_id: str, use_enhanced: bool) -> None:
		image = self.find(image_id)
		if image is None or image.enhancement_state is not EnhancementState.SUCCEEDED:
			raise SelectionUnavailable()
		self.state.use_enhanced_by_image[image_id] = use_enhanced

	def begin_analysis(self, credential_configured: bool) -> None:
		if self.state.stage is SessionStage.ANALYZING:
			raise AnalysisInProgress()
		if self.state.stage is SessionStage.RESULTED:
			raise InvalidTransition("Reset the session to start a new analysis.")

		error = None
		if any(image.enhancement_state is EnhancementState.PENDING for image in self.state.images):
			error = EnhancementPending()
		elif not self.state.images:
			error = NoImages()
		elif not credential_configured:
			error = MissingCredential()
		if error is not None:
			self.state.last_error = error.message
			raise error

		self.state.stage = SessionStage.ANALYZING
		self.state.stream_buffer = ""
		self.state.last_error = None

	def append_stream_chunk(self, text: str) -> None:
		if self.state.stage is not SessionStage.ANALYZING:
			raise InvalidTransition("No analysis is in progress.")
		self.state.stream_buffer += text

	def complete_analysis(self, draft: ListingDraft) -> None:
		if self.state.stage is not SessionStage.ANALYZING:
			raise InvalidTransition("No analysis is in progress.")
		self.state.stage = SessionStage.RESULTED
		self.state.stream_buffer = ""
		self.state.result = draft

	def fail_analysis(self, message: str) -> None:
		self.state.stage = SessionStage.REVIEWING
		self.state.stream_buffer = ""
		self.state.last_error = message

	def reset(self) -> None:
		self.state = ListingSession()

	def snapshot(self) -> Dict[str, Any]:
		"""Serializable view of the session for the presentation layer."""
		state = self.state
		return {
			"stage": state.stage.value,
			"images": [image.to_summary(self.use_enhanced(image.id)) for image in state.images],
			"selected_index": state.selected_index,
			"any_enhancing": any(i.enhancement_state is EnhancementState.PENDING for i in state.images),
			"stream_buffer": state.stream_buffer,
			"last_error": state.last_error,
			"result": state.result.to_dict() if state.result else None,
		}

	def _mark_failed(self, image: ImageItem) -> None:
		image.enhancement_state = EnhancementState.FAILED
		self.state.use_enhanced_by_image[image.id] = False
