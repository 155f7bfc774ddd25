"""Client for a remote analysis server exposing the /api endpoints.

Lets the orchestrator run against a separately deployed analysis backend
instead of calling the vision model directly. It provides both the gateway
interface (``stream_analysis`` / ``analyze``) and the enhancer interface
(``enhance``).
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import aiohttp

from models.listing_models import EnhancedImage
from models.pipeline_errors import (
    EmptyRequest,
    InferenceError,
    InvalidCredential,
    MalformedResponse,
    TransportFailure,
)
from models.stream_events import StreamEvent
from services.inference.sse_stream import error_from_message, iter_sse_payloads, reconcile_stream


class RemoteAnalysisClient:
    """Talk to ``/api/analyze-stream``, ``/api/analyze`` and ``/api/enhance`` over HTTP."""

    def __init__(
        self,
        base_url: str,
        analysis_timeout: float = 90,
        enhance_timeout: float = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.analysis_timeout = analysis_timeout
        self.enhance_timeout = enhance_timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def stream_analysis(self, images: Sequence[bytes], credential: Optional[str]) -> AsyncIterator[StreamEvent]:
        if not images or not all(images) or not credential:
            yield StreamEvent.failed(EmptyRequest())
            return

        payload = {"images": [self._encode(image) for image in images], "apiKey": credential}
        try:
            async with self._http().post(
                f"{self.base_url}/api/analyze-stream",
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.analysis_timeout),
            ) as resp:
                if resp.status != 200:
                    yield StreamEvent.failed(await self._status_error(resp))
                    return
                async for event in reconcile_stream(iter_sse_payloads(resp.content)):
                    yield event
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logging.error("Remote streaming analysis failed: %s", exc)
            yield StreamEvent.failed(TransportFailure())

    async def analyze(self, images: Sequence[bytes], credential: Optional[str]) -> Dict[str, Any]:
        if not images or not all(images) or not credential:
            raise EmptyRequest()

        payload = {"images": [self._encode(image) for image in images], "apiKey": credential}
        try:
            async with self._http().post(
                f"{self.base_url}/api/analyze",
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.analysis_timeout),
            ) as resp:
                if resp.status != 200:
                    raise await self._status_error(resp)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logging.error("Remote analysis failed: %s", exc)
            raise TransportFailure() from exc
        except ValueError as exc:
            raise MalformedResponse() from exc

        if not isinstance(data, dict):
            raise MalformedResponse()
        return data

    async def enhance(self, raw: bytes) -> EnhancedImage:
        """Enhance one image remotely. Failures are raised as `InferenceError`."""
        try:
            async with self._http().post(
                f"{self.base_url}/api/enhance",
                json={"imageBase64": self._encode(raw)},
                timeout=aiohttp.ClientTimeout(total=self.enhance_timeout),
            ) as resp:
                if resp.status != 200:
                    raise await self._status_error(resp)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportFailure("Image enhancement failed") from exc

        enhanced_b64 = data.get("enhancedBase64") if isinstance(data, dict) else None
        if not enhanced_b64:
            raise TransportFailure("No enhanced data")
        try:
            converted = data.get("convertedOriginal")
            return EnhancedImage(
                enhanced_bytes=base64.b64decode(enhanced_b64),
                normalized_original=base64.b64decode(converted) if converted else None,
            )
        except (binascii.Error, ValueError) as exc:
            raise TransportFailure("Image enhancement failed") from exc

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    @staticmethod
    def _encode(image: bytes) -> str:
        return base64.b64encode(image).decode("utf-8")

    @staticmethod
    async def _status_error(resp: aiohttp.ClientResponse) -> InferenceError:
        if resp.status == 401:
            return InvalidCredential()
        if resp.status == 400:
            return EmptyRequest()
        message = ""
        try:
            body = await resp.json(content_type=None)
            if isinstance(body, dict):
                message = str(body.get("error") or body.get("detail") or "")
        except (aiohttp.ClientError, ValueError):
            message = ""
        return error_from_message(message) if message else TransportFailure(f"Analysis failed ({resp.status})")
