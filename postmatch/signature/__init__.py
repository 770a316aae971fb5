"""
Signature package for postmatch.

Turns uploaded content into comparable perceptual fingerprints and scores
fingerprints against each other.

Public API:
- decode_image: Decode raw bytes with a declared MIME type
- calculate_checksum: SHA-256 of raw content bytes
- SignatureExtractor / compute_signature: Perceptual fingerprint of an image
- fingerprint_to_bytes / fingerprint_from_bytes: Persisted byte form
- distance: Normalized Hamming distance
- rank: Threshold filtering and ordering of candidates
- validate_threshold: Range check for the similarity threshold
- has_heif_support: Check if HEIC/HEIF support is available
"""

from __future__ import annotations

from .decoding import decode_image
from .hashing import calculate_checksum, calculate_file_checksum
from .extraction import (
    SignatureExtractor,
    compute_signature,
    to_luminance,
    fingerprint_to_bytes,
    fingerprint_from_bytes,
)
from .matching import distance, rank, validate_threshold

from .dependencies import HAS_HEIF_SUPPORT


def has_heif_support() -> bool:
    """Check if HEIC/HEIF support is available."""
    return HAS_HEIF_SUPPORT


__all__ = [
    # Decoding and checksums
    'decode_image',
    'calculate_checksum',
    'calculate_file_checksum',
    # Extraction
    'SignatureExtractor',
    'compute_signature',
    'to_luminance',
    'fingerprint_to_bytes',
    'fingerprint_from_bytes',
    # Matching
    'distance',
    'rank',
    'validate_threshold',
    # Feature detection
    'has_heif_support',
]
