"""
Image decoding for uploaded content.

Turns raw bytes plus a declared MIME type into a loaded PIL image, or raises
DecodeError. Container parsing itself is left entirely to Pillow.
"""

from __future__ import annotations

import io

from ..config import PIL_FORMATS
from ..errors import DecodeError
from .dependencies import Image, UnidentifiedImageError, HAS_HEIF_SUPPORT, _logger


def decode_image(data: bytes, mime_type: str) -> Image.Image:
    """
    Decode raw content bytes into a PIL image.

    Args:
        data: Raw content bytes
        mime_type: Declared MIME type of the content

    Returns:
        Fully loaded PIL image (first frame for animations)

    Raises:
        DecodeError: Unknown or undecodable MIME type, corrupt or truncated
            bytes, a format that disagrees with the declared type, or a
            zero-area image
    """
    mime_type = mime_type.lower()
    formats = PIL_FORMATS.get(mime_type)
    if formats is None:
        raise DecodeError(f"Cannot decode content of type {mime_type}")
    if not data:
        raise DecodeError("Content is empty")
    if 'HEIF' in formats and mime_type != 'image/avif' and not HAS_HEIF_SUPPORT:
        raise DecodeError("HEIC/HEIF support not installed (pip install pillow-heif)")

    try:
        img = Image.open(io.BytesIO(data))
        # Force load to detect truncated/corrupt images early
        img.load()
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image too large: {e}") from e
    except UnidentifiedImageError as e:
        raise DecodeError(f"Not a valid image: {e}") from e
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Corrupt or truncated image: {e}") from e

    if img.format not in formats:
        raise DecodeError(f"Content is {img.format or 'unknown'} but was declared as {mime_type}")

    if img.width == 0 or img.height == 0:
        raise DecodeError(f"Degenerate image dimensions {img.width}x{img.height}")

    _logger.debug(f"Decoded {img.format} {img.width}x{img.height} mode={img.mode}")
    return img


__all__ = ['decode_image']
