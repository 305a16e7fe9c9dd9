"""Image handle helpers.

Images travel through the app as data URIs
(``data:image/png;base64,<payload>``). The Gemini API wants the bare base64
payload plus a media type, so these helpers strip, detect and re-wrap the
prefix, and turn uploaded bytes into a handle.
"""

from __future__ import annotations

import base64
import binascii
import io
import re

import structlog
from PIL import Image

logger = structlog.get_logger()

DEFAULT_MEDIA_TYPE = "image/jpeg"

_DATA_URI_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg|webp);base64,")

# Pillow format name -> media type
_FORMAT_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
}


class InvalidImageError(ValueError):
    """Uploaded bytes are not a decodable image in a supported format."""


def strip_data_uri_prefix(image: str) -> str:
    """Return the base64 payload of a data URI.

    Input without a known image prefix is returned unchanged.
    """
    return _DATA_URI_PREFIX.sub("", image, count=1)


def media_type_of(image: str, default: str = DEFAULT_MEDIA_TYPE) -> str:
    """Media type declared by the data-URI prefix, or ``default``."""
    match = _DATA_URI_PREFIX.match(image)
    if match is None:
        return default
    subtype = match.group(1)
    return "image/jpeg" if subtype == "jpg" else f"image/{subtype}"


def to_data_uri(payload: str | bytes, media_type: str) -> str:
    """Wrap a base64 payload (or raw bytes) with a data-URI prefix."""
    if isinstance(payload, bytes):
        payload = base64.b64encode(payload).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def decode_payload(image: str) -> bytes:
    """Decode the base64 payload of an image handle to raw bytes."""
    try:
        return base64.b64decode(strip_data_uri_prefix(image), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image payload is not valid base64") from exc


def encode_upload(data: bytes) -> str:
    """Turn uploaded file bytes into a data-URI image handle.

    The bytes are fully decoded with Pillow first so truncated or non-image
    files are rejected before anything is sent upstream.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("upload_image_open_failed", error=str(exc), size_bytes=len(data))
        raise InvalidImageError("Could not open image. Please upload a JPEG, PNG or WebP.") from exc

    media_type = _FORMAT_MEDIA_TYPES.get(img.format or "")
    if media_type is None:
        raise InvalidImageError(f"Unsupported image format: {img.format}")
    return to_data_uri(data, media_type)


def decode_data_uri(image: str) -> Image.Image:
    """Open an image handle as a PIL Image."""
    raw = decode_payload(image)
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (OSError, SyntaxError, ValueError) as exc:
        raise InvalidImageError("Image payload could not be decoded") from exc
    return img


def image_to_bytes(image: Image.Image, fmt: str = "PNG") -> bytes:
    """Convert PIL Image to bytes."""
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()
