"""
Dependency initialization for the signature package.

Handles PIL, imagehash, numpy and HEIC/HEIF support imports with proper
error handling and configuration.
"""

from __future__ import annotations

import warnings
import logging

from ..config import MAX_IMAGE_PIXELS

# Module-level logger
_logger = logging.getLogger(__name__)

# Check for required dependencies
try:
    from PIL import Image, UnidentifiedImageError
    import imagehash
    import numpy as np
except ImportError:
    raise ImportError(
        "Required packages not found!\n"
        "Install with: pip install Pillow imagehash numpy"
    )

# Register HEIC/HEIF support via pillow-heif
# This must be done before opening any HEIC files
HAS_HEIF_SUPPORT = False
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HAS_HEIF_SUPPORT = True
    _logger.debug("HEIC/HEIF support enabled via pillow-heif")
except ImportError:
    _logger.warning(
        "pillow-heif not installed - HEIC/HEIF uploads will fail to decode. "
        "Install with: pip install pillow-heif"
    )

# Uploads larger than this are rejected as decompression bombs
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS

# Oversized images raise DecompressionBombError above 2x the limit;
# the warning band in between is not interesting for uploads
warnings.filterwarnings("ignore", category=Image.DecompressionBombWarning)


__all__ = [
    'Image',
    'UnidentifiedImageError',
    'imagehash',
    'np',
    'HAS_HEIF_SUPPORT',
    '_logger',
]
