from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Any, AsyncIterator, Dict, List, Optional
import base64
import logging

from controllers.error_status import status_for
from models.pipeline_errors import EmptyRequest, InferenceError, TransportFailure
from models.stream_events import StreamEvent
from services.enhancement.image_enhancer import ImageEnhancer
from services.inference.sse_stream import encode_sse, event_to_payload
from services.pricing.pricing_estimator import PricingEstimator
from utils.media_validation import decode_base64_image


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def _error_response(error: InferenceError) -> JSONResponse:
    return JSONResponse(status_code=status_for(error), content={"error": error.message})


def _decode_images(images_b64: Optional[List[str]], api_key: Optional[str]) -> List[bytes]:
    if not images_b64 or not api_key:
        raise HTTPException(status_code=400, detail=EmptyRequest.default_message)
    return [decode_base64_image(image) for image in images_b64]


def with_pricing(result: Dict[str, Any], pricing: PricingEstimator) -> Dict[str, Any]:
    """Merge pricing into a structured result using the wire field names."""
    estimate = pricing.estimate(result.get("brand") or "", result.get("condition") or "")
    return {
        **result,
        "quickSellPrice": estimate.quick_sell_price,
        "maxProfitPrice": estimate.max_profit_price,
        "sellProbability": estimate.sell_probability,
        "suggestedPrice": estimate.max_profit_price,
    }


async def enhance_image(request: Request, image_b64: Optional[str]) -> Dict[str, str]:
    """Enhance one base64 image and return the enhanced and normalised originals.

    Args:
        request: FastAPI Request (to access app.state.image_enhancer).
        image_b64: Base64-encoded image, optionally as a data URL.

    Returns:
        A dict with `enhancedBase64` and `convertedOriginal`.

    Raises:
        HTTPException(400) when the image is missing or not base64,
        HTTPException(500) when the transform fails.
    """
    if not image_b64:
        raise HTTPException(status_code=400, detail="Image is required")
    raw = decode_base64_image(image_b64)

    enhancer: ImageEnhancer = request.app.state.image_enhancer
    try:
        result = await enhancer.enhance(raw)
    except Exception as exc:
        logging.error("Enhance error: %s", exc)
        raise HTTPException(status_code=500, detail="Image enhancement failed") from exc

    return {
        "enhancedBase64": _b64(result.enhanced_bytes),
        "convertedOriginal": _b64(result.normalized_original or raw),
    }


async def analyze_stream(request: Request, images_b64: Optional[List[str]], api_key: Optional[str]):
    """Stream an analysis as server-sent events.

    A failure before any content is produced is returned as a plain JSON
    error with a meaningful status; later failures become a terminal
    ``error`` event.
    """
    images = _decode_images(images_b64, api_key)
    gateway = request.app.state.gateway
    pricing: PricingEstimator = request.app.state.pricing

    events = gateway.stream_analysis(images, api_key)
    first = await anext(events, None)
    if first is None:
        return _error_response(TransportFailure("Analysis stream ended without a result."))
    if first.type == "failure":
        await events.aclose()
        return _error_response(first.error or TransportFailure())

    async def body() -> AsyncIterator[str]:
        try:
            event: Optional[StreamEvent] = first
            while event is not None:
                payload = event_to_payload(event)
                if event.type == "result" and event.result is not None:
                    payload["result"] = with_pricing(event.result, pricing)
                yield encode_sse(payload)
                if event.terminal:
                    break
                event = await anext(events, None)
        finally:
            await events.aclose()

    return StreamingResponse(
        body(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def analyze_once(request: Request, images_b64: Optional[List[str]], api_key: Optional[str]):
    """Non-streaming analysis returning the listing with pricing as JSON."""
    images = _decode_images(images_b64, api_key)
    gateway = request.app.state.gateway
    pricing: PricingEstimator = request.app.state.pricing

    try:
        result = await gateway.analyze(images, api_key)
    except InferenceError as exc:
        return _error_response(exc)
    return with_pricing(result, pricing)
