"""
MIME Sniffing
-------------
Magic-byte detection of a payload's real media type.

Only the head of the payload is inspected; callers pass a bounded prefix.
Returns None when nothing matches.
"""

from typing import Optional
import base64
import binascii

# Sniff at most this many base64 characters (192 decoded bytes)
MAX_SNIFF_BASE64_CHARS = 256
MIN_SNIFF_BASE64_CHARS = 8

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
    (b"\x7fELF", "application/x-elf"),
)

_FTYP_BRANDS = {
    b"avif": "image/avif",
    b"avis": "image/avif",
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"mif1": "image/heif",
    b"msf1": "image/heif",
    b"isom": "video/mp4",
    b"mp41": "video/mp4",
    b"mp42": "video/mp4",
    b"qt  ": "video/quicktime",
}


def detect_mime(buffer: bytes) -> Optional[str]:
    """Detect a media type from the first bytes of a file."""
    if not buffer:
        return None

    if buffer[:4] == b"RIFF" and buffer[8:12] == b"WEBP":
        return "image/webp"
    if buffer[4:8] == b"ftyp":
        brand = _FTYP_BRANDS.get(buffer[8:12])
        if brand:
            return brand

    for signature, mime_type in _SIGNATURES:
        if buffer.startswith(signature):
            return mime_type

    head = buffer.lstrip()[:256].lower()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
        return "image/svg+xml"
    if head.startswith(b"<?xml"):
        return "application/xml"
    if head.startswith(b"<!doctype html") or head.startswith(b"<html"):
        return "text/html"
    return None


def sniff_mime_from_base64(data: str) -> Optional[str]:
    """
    Decode a bounded base64 prefix and sniff it.

    The prefix is trimmed to a multiple of 4 so it decodes on its own.
    """
    trimmed = data.strip()
    if not trimmed:
        return None
    take = min(MAX_SNIFF_BASE64_CHARS, len(trimmed))
    slice_len = take - (take % 4)
    if slice_len < MIN_SNIFF_BASE64_CHARS:
        return None
    try:
        head = base64.b64decode(trimmed[:slice_len], validate=False)
    except (binascii.Error, ValueError):
        return None
    return detect_mime(head)
