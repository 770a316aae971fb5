"""
Perceptual signature extraction.

A signature is a difference hash taken in both directions: the image is
reduced to 8-bit luminance, resampled to a small canonical grid, and every
pair of adjacent cells contributes one bit saying whether brightness falls
across it. Horizontal and vertical passes are stacked into one bit grid.

Gradients survive resizing, recompression and uniform brightness or contrast
changes, while cropping and rotation move them and change the signature.
"""

from __future__ import annotations

from typing import Union

from ..config import HASH_SIZE
from ..errors import DecodeError
from .dependencies import Image, imagehash, np, _logger


# Modes that Pillow converts straight to luminance
_DIRECT_MODES = {'1', 'L', 'RGB', 'CMYK', 'YCbCr'}

# Modes carrying an alpha channel that must be flattened first
_ALPHA_MODES = {'LA', 'La', 'RGBA', 'RGBa', 'PA'}

ImageInput = Union[Image.Image, np.ndarray]


def _array_to_uint8(arr: np.ndarray) -> np.ndarray:
    """Rescale an arbitrary numeric pixel array to 0-255 uint8."""
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == np.bool_:
        return arr.astype(np.uint8) * 255
    if np.issubdtype(arr.dtype, np.floating):
        data = np.nan_to_num(arr.astype(np.float64))
        if data.max(initial=0.0) <= 1.0:
            data = data * 255.0
        return np.clip(data, 0, 255).astype(np.uint8)
    if np.issubdtype(arr.dtype, np.integer):
        info = np.iinfo(arr.dtype)
        data = arr.astype(np.float64)
        if data.max(initial=0) > 255:
            data = data * (255.0 / info.max)
        return np.clip(data, 0, 255).astype(np.uint8)
    raise DecodeError(f"Unsupported pixel data type {arr.dtype}")


def _array_to_image(arr: np.ndarray) -> Image.Image:
    """Wrap a decoded pixel grid (H x W or H x W x C) as a PIL image."""
    if arr.size == 0:
        raise DecodeError(f"Degenerate pixel grid of shape {arr.shape}")
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]
    # Pillow infers L, RGB or RGBA from the uint8 array shape
    if arr.ndim == 2 or (arr.ndim == 3 and arr.shape[2] in (3, 4)):
        return Image.fromarray(_array_to_uint8(arr))
    raise DecodeError(f"Unsupported pixel grid shape {arr.shape}")


def _flatten_alpha(img: Image.Image) -> Image.Image:
    """Composite a translucent image onto opaque white."""
    rgba = img.convert('RGBA')
    background = Image.new('RGBA', rgba.size, (255, 255, 255, 255))
    return Image.alpha_composite(background, rgba)


def _wide_grayscale_to_l(img: Image.Image) -> Image.Image:
    """Rescale 16/32-bit integer and float grayscale modes to 8-bit."""
    data = np.asarray(img, dtype=np.float64)
    if img.mode == 'F':
        if data.max(initial=0.0) <= 1.0:
            data = data * 255.0
    elif data.max(initial=0) <= 65535 and data.min(initial=0) >= 0:
        data = data / 257.0
    else:
        low, high = data.min(), data.max()
        data = (data - low) * (255.0 / (high - low)) if high > low else np.zeros_like(data)
    return Image.fromarray(np.clip(data, 0, 255).astype(np.uint8))


def to_luminance(image: ImageInput) -> Image.Image:
    """
    Normalize any decoded image to 8-bit luminance.

    Args:
        image: PIL image or numpy pixel grid

    Returns:
        PIL image in mode 'L'

    Raises:
        DecodeError: If the image has zero area or an unusable pixel layout
    """
    if isinstance(image, np.ndarray):
        image = _array_to_image(image)

    if image.width == 0 or image.height == 0:
        raise DecodeError(f"Degenerate image dimensions {image.width}x{image.height}")

    # Animations are signed by their first frame
    if getattr(image, 'is_animated', False) and image.tell() != 0:
        image.seek(0)

    mode = image.mode
    if mode == 'P':
        image = image.convert('RGBA') if 'transparency' in image.info else image.convert('RGB')
        mode = image.mode

    if mode in _ALPHA_MODES:
        image = _flatten_alpha(image)
    elif mode == 'F' or mode.startswith('I'):
        return _wide_grayscale_to_l(image)
    elif mode not in _DIRECT_MODES:
        image = image.convert('RGB')

    return image.convert('L')


class SignatureExtractor:
    """
    Computes fixed-length perceptual fingerprints.

    The fingerprint is an imagehash.ImageHash over a (2 * hash_size) x
    hash_size boolean grid: the horizontal dHash stacked on the vertical one.

    Usage:
        extractor = SignatureExtractor()
        fingerprint = extractor.extract(image)
        raw = fingerprint_to_bytes(fingerprint)
    """

    def __init__(self, hash_size: int = HASH_SIZE):
        if hash_size < 2:
            raise ValueError("hash_size must be at least 2")
        self.hash_size = hash_size

    @property
    def signature_bits(self) -> int:
        """Number of bits in every fingerprint this extractor produces."""
        return 2 * self.hash_size * self.hash_size

    def extract(self, image: ImageInput) -> imagehash.ImageHash:
        """
        Compute the fingerprint of a decoded image.

        Raises:
            DecodeError: If the image is degenerate
        """
        gray = to_luminance(image)
        horizontal = imagehash.dhash(gray, hash_size=self.hash_size)
        vertical = imagehash.dhash_vertical(gray, hash_size=self.hash_size)
        fingerprint = imagehash.ImageHash(np.vstack([horizontal.hash, vertical.hash]))
        _logger.debug(f"Extracted {self.signature_bits}-bit signature from {gray.width}x{gray.height} image")
        return fingerprint


_default_extractor = SignatureExtractor()


def compute_signature(image: ImageInput) -> imagehash.ImageHash:
    """Compute a fingerprint with the default signature geometry."""
    return _default_extractor.extract(image)


def fingerprint_to_bytes(fingerprint: imagehash.ImageHash) -> bytes:
    """Pack fingerprint bits MSB-first into a byte string."""
    return np.packbits(fingerprint.hash.flatten()).tobytes()


def fingerprint_from_bytes(data: bytes, hash_size: int = HASH_SIZE) -> imagehash.ImageHash:
    """
    Restore a fingerprint packed by fingerprint_to_bytes.

    Raises:
        ValueError: If the byte string does not hold exactly one fingerprint
    """
    num_bits = 2 * hash_size * hash_size
    expected = (num_bits + 7) // 8
    if len(data) != expected:
        raise ValueError(f"Signature must be {expected} bytes, got {len(data)}")
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))[:num_bits].astype(bool)
    return imagehash.ImageHash(bits.reshape(2 * hash_size, hash_size))


__all__ = [
    'SignatureExtractor',
    'compute_signature',
    'to_luminance',
    'fingerprint_to_bytes',
    'fingerprint_from_bytes',
]
