"""
Tool Result Images
------------------
Keeps image payloads inside what model providers accept.

Rules:
- Images within both limits pass through byte-for-byte
- Oversized images are downscaled (aspect kept), PNG first, then JPEG at
  falling quality, shrinking further until the payload fits
- A payload that cannot be decoded is replaced by a text note
- "Read image file [...]" headers follow the payload's new type
"""

from dataclasses import replace
from typing import Dict, Tuple
import base64
import binascii
import io
import logging

from PIL import Image

from core.errors import ToolValidationError
from .registry import ImageContent, TextContent, ToolResult

logger = logging.getLogger("toolgate.tools.images")

MAX_IMAGE_DIMENSION_PX = 2000
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MIN_IMAGE_DIMENSION_PX = 32
JPEG_QUALITY_STEPS = (85, 75, 65, 50, 35)
SHRINK_FACTOR = 0.75

READ_IMAGE_HEADER = "Read image file [{mime_type}]"


def rewrite_read_image_header(text: str, declared: str, actual: str) -> str:
    """Rewrite an exact read-image header from one MIME type to another."""
    if text == READ_IMAGE_HEADER.format(mime_type=declared):
        return READ_IMAGE_HEADER.format(mime_type=actual)
    return text


def _encode(image: Image.Image, image_format: str, **params) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=image_format, **params)
    return buffer.getvalue()


def resize_image_to_limits(
    raw: bytes,
    mime_type: str,
    max_dimension: int = MAX_IMAGE_DIMENSION_PX,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> Tuple[bytes, str]:
    """
    Return (data, mime_type) fitting both limits.

    The input bytes are returned unchanged when they already fit.
    Raises ToolValidationError if no size down to the minimum fits.
    """
    with Image.open(io.BytesIO(raw)) as image:
        if len(raw) <= max_bytes and max(image.size) <= max_dimension:
            return raw, mime_type

        side = min(max(image.size), max_dimension)
        while side >= MIN_IMAGE_DIMENSION_PX:
            candidate = image.copy()
            candidate.thumbnail((side, side))
            if mime_type == "image/png":
                data = _encode(candidate, "PNG", optimize=True)
                if len(data) <= max_bytes:
                    return data, "image/png"
            if candidate.mode not in ("RGB", "L"):
                candidate = candidate.convert("RGB")
            for quality in JPEG_QUALITY_STEPS:
                data = _encode(candidate, "JPEG", quality=quality, optimize=True)
                if len(data) <= max_bytes:
                    return data, "image/jpeg"
            side = int(side * SHRINK_FACTOR)

    raise ToolValidationError(
        f"Image could not be reduced below {max_bytes} bytes",
        details={"mime_type": mime_type, "max_bytes": max_bytes},
    )


def sanitize_tool_result_images(
    result: ToolResult,
    label: str,
    max_dimension: int = MAX_IMAGE_DIMENSION_PX,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> ToolResult:
    """Downscale every oversized image block of a tool result."""
    if not result.images():
        return result

    content = []
    mime_changes: Dict[str, str] = {}
    changed = False
    for block in result.content:
        if not isinstance(block, ImageContent) or not isinstance(block.data, str):
            content.append(block)
            continue
        try:
            raw = base64.b64decode(block.data, validate=False)
            data, mime_type = resize_image_to_limits(raw, block.mime_type, max_dimension, max_bytes)
        except (binascii.Error, ValueError, OSError) as e:
            # PIL raises UnidentifiedImageError (an OSError) for undecodable payloads
            logger.warning(f"[{label}] omitted unreadable image: {e}", extra={"mime_type": block.mime_type})
            content.append(TextContent(text=f"[{label}] omitted image payload: {e}"))
            changed = True
            continue
        if data is raw:
            content.append(block)
            continue
        logger.info(
            f"[{label}] resized image: {len(raw)} -> {len(data)} bytes ({mime_type})",
            extra={"mime_type": mime_type},
        )
        content.append(replace(block, data=base64.b64encode(data).decode("ascii"), mime_type=mime_type))
        if mime_type != block.mime_type:
            mime_changes[block.mime_type] = mime_type
        changed = True

    if not changed:
        return result

    for declared, actual in mime_changes.items():
        content = [
            replace(block, text=rewrite_read_image_header(block.text, declared, actual))
            if isinstance(block, TextContent) else block
            for block in content
        ]
    return replace(result, content=content)
