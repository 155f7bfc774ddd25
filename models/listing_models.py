"""Domain models for listing capture sessions and persisted drafts."""

from __future__ import annotations

import enum
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


class EnhancementState(str, enum.Enum):
	"""Progress of the asynchronous enhancement for one image."""

	PENDING = "pending"
	SUCCEEDED = "succeeded"
	FAILED = "failed"


class SessionStage(str, enum.Enum):
	"""Pipeline stage of the active session."""

	CAPTURE = "capture"
	REVIEWING = "reviewing"
	ANALYZING = "analyzing"
	RESULTED = "resulted"


@dataclass
class EnhancedImage:
	"""Output of the enhancement transform for a single image."""

	enhanced_bytes: bytes
	normalized_original: Optional[bytes] = None


@dataclass
class ImageItem:
	"""One captured photo within a session."""

	id: str
	original_bytes: Optional[bytes]
	original_display_ref: str
	enhanced_bytes: Optional[bytes] = None
	enhanced_display_ref: Optional[str] = None
	normalized_bytes: Optional[bytes] = None
	enhancement_state: EnhancementState = EnhancementState.PENDING

	@property
	def submission_bytes(self) -> Optional[bytes]:
		"""Unedited bytes sent for analysis (JPEG-normalised when available)."""
		return self.normalized_bytes or self.original_bytes

	def display_ref(self, use_enhanced: bool) -> str:
		"""Return the enhanced ref only when enhancement actually succeeded."""
		if use_enhanced and self.enhancement_state is EnhancementState.SUCCEEDED and self.enhanced_display_ref:
			return self.enhanced_display_ref
		return self.original_display_ref

	def to_summary(self, use_enhanced: bool) -> Dict[str, Any]:
		return {
			"id": self.id,
			"original_display_ref": self.original_display_ref,
			"enhanced_display_ref": self.enhanced_display_ref,
			"enhancement_state": self.enhancement_state.value,
			"use_enhanced": use_enhanced,
		}


@dataclass
class PriceEstimate:
	"""Pricing heuristic output."""

	quick_sell_price: int
	max_profit_price: int
	sell_probability: int


@dataclass(frozen=True)
class ListingDraft:
	"""Persisted listing record. Never mutated after it is written."""

	id: str
	image_refs: List[str]
	brand: str = "Unknown"
	category: str = "Clothing"
	title: str = "Untitled"
	material: str = "Unknown"
	condition: str = "Good"
	condition_score: str = "Good"
	flaws: str = "No visible flaws detected"
	description: str = ""
	sell_probability: int = 50
	quick_sell_price: int = 5
	max_profit_price: int = 10
	created_at: int = field(default_factory=lambda: int(time.time() * 1000))

	@property
	def suggested_price(self) -> int:
		return self.max_profit_price

	@property
	def primary_image_ref(self) -> Optional[str]:
		return self.image_refs[0] if self.image_refs else None

	def to_dict(self) -> Dict[str, Any]:
		data = asdict(self)
		data["suggested_price"] = self.suggested_price
		data["primary_image_ref"] = self.primary_image_ref
		return data


@dataclass
class ListingSession:
	"""The single in-progress capture and analysis attempt."""

	images: List[ImageItem] = field(default_factory=list)
	selected_index: int = 0
	use_enhanced_by_image: Dict[str, bool] = field(default_factory=dict)
	stage: SessionStage = SessionStage.CAPTURE
	stream_buffer: str = ""
	last_error: Optional[str] = None
	result: Optional[ListingDraft] = None
