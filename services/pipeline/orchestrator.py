"""Pipeline driver: capture, enhance, analyze, price and persist a listing."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence, Set
from uuid import uuid4

from models.listing_models import EnhancedImage, EnhancementState, ImageItem, ListingDraft, ListingSession
from models.pipeline_errors import AnalysisFailed, NoImages, PipelineError, TransportFailure
from models.stream_events import StreamEvent
from services.inference.media_inputs import to_image_data_url
from services.inference.prompts import NO_FLAWS
from services.inference.response_parser import parse_listing
from services.pricing.pricing_estimator import PricingEstimator
from services.session.session_machine import SessionMachine


class CredentialProvider(Protocol):
	async def get(self) -> Optional[str]: ...


class Enhancer(Protocol):
	async def enhance(self, raw: bytes) -> EnhancedImage: ...


class InferenceGateway(Protocol):
	def stream_analysis(self, images: Sequence[bytes], credential: Optional[str]) -> AsyncIterator[StreamEvent]: ...


class DraftStore(Protocol):
	async def create_draft(self, draft: ListingDraft) -> bool: ...


def apply_listing_defaults(result: Mapping[str, Any]) -> Dict[str, str]:
	"""Map a structured model result onto draft fields, filling every gap."""

	def text(key: str, default: str) -> str:
		value = result.get(key)
		if value is None or value == "":
			return default
		return value if isinstance(value, str) else str(value)

	condition = text("condition", "")
	return {
		"brand": text("brand", "Unknown"),
		"category": text("category", "Clothing"),
		"title": text("title", "Untitled"),
		"material": text("material", "Unknown"),
		"condition": condition or "Good",
		"condition_score": text("conditionScore", condition or "Good"),
		"flaws": text("flaws", NO_FLAWS),
		"description": text("description", ""),
	}


class ListingOrchestrator:
	"""Own the single session and drive it through the pipeline.

	Enhancement runs as one task per image. Tasks never touch the session;
	they post ``(image_id, result, display_ref)`` messages to an inbox that a
	single consumer task applies, so the session has exactly one writer.
	"""

	def __init__(
		self,
		gateway: InferenceGateway,
		enhancer: Enhancer,
		drafts: DraftStore,
		credentials: CredentialProvider,
		pricing: Optional[PricingEstimator] = None,
		image_files=None,
		analysis_timeout: float = 90,
		enhance_timeout: float = 30,
	) -> None:
		self.gateway = gateway
		self.enhancer = enhancer
		self.drafts = drafts
		self.credentials = credentials
		self.pricing = pricing or PricingEstimator()
		self.image_files = image_files
		self.analysis_timeout = analysis_timeout
		self.enhance_timeout = enhance_timeout
		self.machine = SessionMachine()

		self._inbox: asyncio.Queue = asyncio.Queue()
		self._consumer: Optional[asyncio.Task] = None
		self._enhancements: Set[asyncio.Task] = set()
		self._abort = asyncio.Event()
		self._stream_task: Optional[asyncio.Task] = None

	@property
	def session(self) -> ListingSession:
		return self.machine.state

	async def add_image(self, image_bytes: Optional[bytes], display_ref: str) -> ImageItem:
		"""Add a photo to the session and start enhancing it without waiting."""
		image = self.machine.add_image(image_bytes, display_ref)
		if image.enhancement_state is EnhancementState.PENDING:
			self._ensure_consumer()
			task = asyncio.create_task(self._enhance(image.id, image.original_bytes))
			self._enhancements.add(task)
			task.add_done_callback(self._enhancements.discard)
		return image

	def remove_image(self, image_id: str) -> None:
		self.machine.remove_image(image_id)

	def toggle_selection(self, image_id: str, use_enhanced: bool) -> None:
		self.machine.toggle_selection(image_id, use_enhanced)

	def select(self, index: int) -> None:
		self.machine.select(index)

	async def wait_for_enhancements(self) -> None:
		"""Wait until every outstanding enhancement result has been applied."""
		while self._enhancements:
			await asyncio.gather(*list(self._enhancements), return_exceptions=True)
		if self._consumer is not None and not self._consumer.done():
			await self._inbox.join()

	async def run_analysis(self) -> ListingDraft:
		"""Analyze the session's photos and persist the resulting draft.

		Returns:
			The persisted ListingDraft.

		Raises:
			PipelineError: Precondition failures leave the stage unchanged; every
				other failure returns the session to reviewing with last_error set.
		"""
		credential = await self.credentials.get()
		self.machine.begin_analysis(credential_configured=bool(credential))
		state = self.machine.state
		self._abort.clear()
		start_time = time.time()

		try:
			submitted = self._collect_submission()
			logging.info("Starting analysis of %d image(s)", len(submitted))
			events = self.gateway.stream_analysis([image.submission_bytes for image in submitted], credential)
			self._stream_task = asyncio.create_task(self._consume_stream(events))
			try:
				async with asyncio.timeout(self.analysis_timeout):
					result = await self._stream_task
			except asyncio.CancelledError:
				if not self._abort.is_set() or asyncio.current_task().cancelling():
					raise
				raise TransportFailure("Analysis aborted") from None
			finally:
				self._stream_task = None
			draft = self._build_draft(result, submitted)
			await self.drafts.create_draft(draft)
		except PipelineError as exc:
			self._fail(state, exc.message)
			raise
		except TimeoutError as exc:
			error = TransportFailure("The analysis service timed out.")
			self._fail(state, error.message)
			raise error from exc
		except asyncio.CancelledError:
			self._fail(state, "Analysis cancelled.")
			raise
		except Exception as exc:
			logging.exception("Unexpected error while building listing draft")
			message = str(exc) or AnalysisFailed.default_message
			self._fail(state, message)
			raise AnalysisFailed(message) from exc

		if self.machine.state is state:
			self.machine.complete_analysis(draft)
		logging.info("Draft %s persisted in %.3fs", draft.id, time.time() - start_time)
		return draft

	def abort_analysis(self) -> bool:
		"""Abort the in-flight stream. The analysis ends as a TransportFailure."""
		if self._stream_task is None or self._stream_task.done():
			return False
		self._abort.set()
		self._stream_task.cancel()
		return True

	async def reset(self) -> None:
		self.abort_analysis()
		for task in list(self._enhancements):
			task.cancel()
		self.machine.reset()

	async def aclose(self) -> None:
		await self.reset()
		if self._enhancements:
			await asyncio.gather(*list(self._enhancements), return_exceptions=True)
		if self._consumer is not None:
			self._consumer.cancel()
			await asyncio.gather(self._consumer, return_exceptions=True)
			self._consumer = None

	def _collect_submission(self) -> List[ImageItem]:
		submitted = [image for image in self.machine.images if image.submission_bytes]
		if not submitted:
			raise NoImages("No valid images to analyze.")
		return submitted

	async def _consume_stream(self, events: AsyncIterator[StreamEvent]) -> Dict[str, Any]:
		chunks: List[str] = []
		try:
			async for event in events:
				if event.type == "delta":
					chunks.append(event.delta)
					self.machine.append_stream_chunk(event.delta)
				elif event.type == "failure":
					raise event.error or TransportFailure()
				else:
					return event.result if event.result is not None else parse_listing("".join(chunks))
		finally:
			aclose = getattr(events, "aclose", None)
			if aclose is not None:
				await aclose()
		# No terminal event: the accumulated deltas are the response.
		return parse_listing("".join(chunks))

	def _build_draft(self, result: Mapping[str, Any], submitted: List[ImageItem]) -> ListingDraft:
		fields = apply_listing_defaults(result)
		price = self.pricing.estimate(fields["brand"], fields["condition"])

		submitted_ids = {image.id for image in submitted}
		ordered = submitted + [image for image in self.machine.images if image.id not in submitted_ids]
		image_refs = [image.display_ref(self.machine.use_enhanced(image.id)) for image in ordered]

		return ListingDraft(
			id=uuid4().hex,
			image_refs=image_refs,
			sell_probability=price.sell_probability,
			quick_sell_price=price.quick_sell_price,
			max_profit_price=price.max_profit_price,
			**fields,
		)

	def _fail(self, state: ListingSession, message: str) -> None:
		# A reset during analysis replaces the session; leave the new one alone.
		if self.machine.state is state:
			self.machine.fail_analysis(message)

	def _ensure_consumer(self) -> None:
		if self._consumer is None or self._consumer.done():
			self._consumer = asyncio.create_task(self._apply_completions())

	async def _apply_completions(self) -> None:
		while True:
			image_id, enhanced, display_ref = await self._inbox.get()
			try:
				self.machine.enhancement_completed(image_id, enhanced, display_ref)
			finally:
				self._inbox.task_done()

	async def _enhance(self, image_id: str, raw: bytes) -> None:
		enhanced: Optional[EnhancedImage] = None
		display_ref: Optional[str] = None
		try:
			async with asyncio.timeout(self.enhance_timeout):
				enhanced = await self.enhancer.enhance(raw)
			display_ref = await self._enhanced_display_ref(enhanced.enhanced_bytes)
		except Exception as exc:
			logging.warning("Enhancement failed for image %s: %s", image_id, exc)
			enhanced, display_ref = None, None
		await self._inbox.put((image_id, enhanced, display_ref))

	async def _enhanced_display_ref(self, enhanced_bytes: bytes) -> str:
		if self.image_files is not None:
			return await self.image_files.save(enhanced_bytes, prefix="enhanced")
		return to_image_data_url(enhanced_bytes)
