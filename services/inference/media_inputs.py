"""Utilities to build multimodal input payloads for the Responses API."""

import base64
from typing import Any, Dict, List, Sequence


def detect_media_type(image_bytes: bytes) -> str:
    """Guess the image media type from its leading signature bytes."""
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes.startswith(b"GIF8"):
        return "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def to_image_data_url(image_bytes: bytes) -> str:
    """Convert raw image bytes into a data URL suitable for vision input."""
    if not image_bytes:
        raise ValueError("Image bytes are required.")
    b64_str = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{detect_media_type(image_bytes)};base64,{b64_str}"


def build_user_content(images: Sequence[bytes], user_prompt: str) -> List[Dict[str, Any]]:
    """Compose the user message content: every image in order, then the instruction."""
    content: List[Dict[str, Any]] = [
        {"type": "input_image", "image_url": to_image_data_url(image)} for image in images
    ]
    content.append({"type": "input_text", "text": user_prompt})
    return content


def build_inputs(system_prompt: str, user_prompt: str, images: Sequence[bytes]) -> List[Dict[str, Any]]:
    """Build the Responses API input array with the images in one user message."""
    return [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": system_prompt}],
        },
        {"type": "message", "role": "user", "content": build_user_content(images, user_prompt)},
    ]
