"""Server-sent event encoding and decoding for streamed analyses.

Each wire event is one ``data: {json}`` line carrying ``delta``, ``result``,
``error`` and ``done`` keys. Decoding turns those payloads back into
`StreamEvent` objects, reconstructing the result from the accumulated deltas
when the terminal payload carries no explicit result.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Union

from models.pipeline_errors import (
    InferenceError,
    InvalidCredential,
    MalformedResponse,
    TransportFailure,
)
from models.stream_events import StreamEvent
from services.inference.response_parser import parse_listing

DATA_PREFIX = "data:"


def encode_sse(payload: Dict[str, Any]) -> str:
    """Serialize one payload as a server-sent event line."""
    return f"data: {json.dumps(payload)}\n\n"


def error_from_message(message: str) -> InferenceError:
    """Rebuild a typed error from the message carried on the wire."""
    if message == InvalidCredential.default_message:
        return InvalidCredential(message)
    if message == MalformedResponse.default_message:
        return MalformedResponse(message)
    return TransportFailure(message)


async def iter_sse_payloads(lines: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[Dict[str, Any]]:
    """Yield the JSON payload of every ``data:`` line, skipping anything unparsable."""
    async for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            continue
        body = line[len(DATA_PREFIX):].strip()
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            logging.debug("Skipping unparsable stream line: %s", body[:120])
            continue
        if isinstance(payload, dict):
            yield payload


async def reconcile_stream(payloads: AsyncIterable[Dict[str, Any]]) -> AsyncIterator[StreamEvent]:
    """Convert wire payloads into deltas plus exactly one terminal event.

    An ``error`` is fatal whether or not ``done`` is set. A terminal payload
    without ``result``, or a stream that ends without a terminal payload, is
    resolved by parsing the concatenated deltas.
    """
    chunks: List[str] = []
    async for payload in payloads:
        error = payload.get("error")
        if error:
            yield StreamEvent.failed(error_from_message(str(error)))
            return

        delta = payload.get("delta")
        if delta:
            chunks.append(str(delta))
            yield StreamEvent.text(str(delta))

        if payload.get("done"):
            result = payload.get("result")
            if isinstance(result, dict):
                yield StreamEvent.completed(result)
                return
            break

    try:
        yield StreamEvent.completed(parse_listing("".join(chunks)))
    except MalformedResponse as exc:
        yield StreamEvent.failed(exc)


def event_to_payload(event: StreamEvent) -> Dict[str, Any]:
    """Wire payload for a gateway event."""
    if event.type == "delta":
        return {"delta": event.delta, "done": False}
    if event.type == "result":
        return {"result": event.result, "done": True}
    return {"error": event.error.message if event.error else "Analysis failed", "done": True}
