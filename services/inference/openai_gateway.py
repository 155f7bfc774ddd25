"""Vision inference gateway built on the OpenAI Responses API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from models.pipeline_errors import (
    EmptyRequest,
    InferenceError,
    InvalidCredential,
    TransportFailure,
)
from models.stream_events import StreamEvent
from services.inference.media_inputs import build_inputs
from services.inference.prompts import (
    build_stream_system_prompt,
    build_system_prompt,
    build_user_prompt,
)
from services.inference.response_parser import extract_text, extract_usage, parse_listing

TEXT_DELTA_EVENT = "response.output_text.delta"
FAILURE_EVENTS = ("response.failed", "error")


def map_openai_error(exc: BaseException) -> InferenceError:
    """Translate an OpenAI SDK or transport exception into the pipeline taxonomy."""
    if isinstance(exc, InferenceError):
        return exc
    if isinstance(exc, openai.AuthenticationError):
        return InvalidCredential()
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 401:
            return InvalidCredential()
        return TransportFailure(exc.message or TransportFailure.default_message)
    if isinstance(exc, openai.APIConnectionError):
        return TransportFailure()
    if isinstance(exc, asyncio.TimeoutError):
        return TransportFailure("The analysis service timed out.")
    return TransportFailure(str(exc) or TransportFailure.default_message)


class OpenAIInferenceGateway:
    """Send item photos to a vision model and return a structured listing.

    Clients are created per credential through ``client_factory`` and reused
    until ``aclose`` is called.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_output_tokens: int = 800,
        client_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client_factory = client_factory or (lambda api_key: AsyncOpenAI(api_key=api_key))
        self._clients: Dict[str, Any] = {}

    async def stream_analysis(self, images: Sequence[bytes], credential: Optional[str]) -> AsyncIterator[StreamEvent]:
        """Yield text deltas followed by exactly one terminal result or failure event."""
        try:
            self._validate(images, credential)
        except EmptyRequest as exc:
            yield StreamEvent.failed(exc)
            return

        start_time = time.time()
        chunks: List[str] = []
        inputs = build_inputs(build_stream_system_prompt(), build_user_prompt(len(images)), images)
        try:
            stream = await self._client(credential).responses.create(
                model=self.model,
                input=inputs,
                max_output_tokens=self.max_output_tokens,
                stream=True,
            )
            # Closing the stream releases the HTTP response on abort or timeout too.
            async with stream:
                async for event in stream:
                    event_type = getattr(event, "type", None)
                    if event_type == TEXT_DELTA_EVENT:
                        delta = getattr(event, "delta", "") or ""
                        if delta:
                            chunks.append(delta)
                            yield StreamEvent.text(delta)
                    elif event_type in FAILURE_EVENTS:
                        raise TransportFailure(self._event_message(event))
        except Exception as exc:
            error = map_openai_error(exc)
            logging.error("Streaming analysis failed: %s", error.message)
            yield StreamEvent.failed(error)
            return

        full_text = "".join(chunks)
        logging.info(
            "Streaming analysis finished: %d chars in %.3fs", len(full_text), time.time() - start_time
        )
        try:
            yield StreamEvent.completed(parse_listing(full_text))
        except InferenceError as exc:
            yield StreamEvent.failed(exc)

    async def analyze(self, images: Sequence[bytes], credential: Optional[str]) -> Dict[str, Any]:
        """Non-streaming analysis. Raises an `InferenceError` on failure."""
        self._validate(images, credential)
        start_time = time.time()
        inputs = build_inputs(build_system_prompt(), build_user_prompt(len(images)), images)
        try:
            response = await self._client(credential).responses.create(
                model=self.model,
                input=inputs,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            error = map_openai_error(exc)
            logging.error("Error during OpenAI Responses API call: %s", error.message)
            raise error from exc

        usage = extract_usage(response)
        logging.info(
            "Analysis latency: %.3fs (input_tokens=%s, output_tokens=%s)",
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return parse_listing(extract_text(response))

    async def aclose(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                logging.warning("Failed to close OpenAI client: %s", exc)

    def _client(self, credential: str) -> Any:
        client = self._clients.get(credential)
        if client is None:
            client = self._client_factory(credential)
            self._clients[credential] = client
        return client

    @staticmethod
    def _validate(images: Sequence[bytes], credential: Optional[str]) -> None:
        if not images or not all(images) or not credential:
            raise EmptyRequest()

    @staticmethod
    def _event_message(event: Any) -> str:
        message = getattr(event, "message", None)
        if not message:
            error = getattr(getattr(event, "response", None), "error", None)
            message = getattr(error, "message", None)
        return message or "Analysis failed"
