"""Tagged events produced by a streaming analysis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from models.pipeline_errors import InferenceError

StreamEventType = Literal["delta", "result", "failure"]


@dataclass(frozen=True)
class StreamEvent:
    """One event of a finite, single-pass analysis stream.

    A stream carries any number of ``delta`` events followed by exactly one
    terminal event, either ``result`` or ``failure``.
    """

    type: StreamEventType
    delta: str = ""
    result: Optional[Dict[str, Any]] = None
    error: Optional[InferenceError] = None

    @property
    def terminal(self) -> bool:
        return self.type != "delta"

    @classmethod
    def text(cls, delta: str) -> "StreamEvent":
        return cls(type="delta", delta=delta)

    @classmethod
    def completed(cls, result: Dict[str, Any]) -> "StreamEvent":
        return cls(type="result", result=result)

    @classmethod
    def failed(cls, error: InferenceError) -> "StreamEvent":
        return cls(type="failure", error=error)
