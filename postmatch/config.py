"""
Configuration constants for postmatch.

This module contains all fixed settings including:
- Supported MIME types and the post type each one maps to
- Signature geometry (grid size, bit count)
- LSH word parameters
"""

import os

# MIME type -> (file extension, post type name)
# Post type names match models.PostType members
MIME_TYPES = {
    'image/bmp': ('bmp', 'image'),
    'image/jpeg': ('jpg', 'image'),
    'image/png': ('png', 'image'),
    'image/webp': ('webp', 'image'),
    'image/heif': ('heif', 'image'),
    'image/heic': ('heic', 'image'),
    'image/avif': ('avif', 'image'),
    'image/gif': ('gif', 'animation'),
    'video/mp4': ('mp4', 'video'),
    'video/webm': ('webm', 'video'),
    'video/quicktime': ('mov', 'video'),
    'application/x-shockwave-flash': ('swf', 'flash'),
}

# Alternate spellings accepted when mapping an extension back to a MIME type
EXTENSION_ALIASES = {
    'jpeg': 'jpg',
    'jpe': 'jpg',
}

# Pillow format names accepted for each decodable MIME type
PIL_FORMATS = {
    'image/bmp': {'BMP'},
    'image/jpeg': {'JPEG', 'MPO'},
    'image/png': {'PNG'},
    'image/webp': {'WEBP'},
    'image/heif': {'HEIF'},
    'image/heic': {'HEIF'},
    'image/avif': {'AVIF', 'HEIF'},
    'image/gif': {'GIF'},
}

# Signature geometry
# A dHash over a (HASH_SIZE+1) x HASH_SIZE grid yields HASH_SIZE^2 bits;
# horizontal and vertical passes are stacked
HASH_SIZE = 16
SIGNATURE_BITS = 2 * HASH_SIZE * HASH_SIZE  # 512
SIGNATURE_BYTES = SIGNATURE_BITS // 8       # 64

# LSH words (bit-sampling buckets)
# 32 words x 16 bits: ~99.8% recall at distance 0.1, every value fits int32
NUM_WORDS = 32
BITS_PER_WORD = 16
LSH_SEED = 42

# Similarity threshold in (0, 1]; a candidate matches when
# distance < 1 - threshold
DEFAULT_SIMILARITY_THRESHOLD = 0.9

# Candidate ranking
DEFAULT_RANK_WORKERS = 1
PARALLEL_RANK_MIN_BATCH = 2000  # Below this, ranking stays on the caller's thread
RANK_CHUNK_SIZE = 500

# Decoder limit (decompression bomb protection)
MAX_IMAGE_PIXELS = 200_000_000

# SQLite database location
DATABASE_FILE = os.path.join(os.path.expanduser('~'), '.postmatch', 'posts.db')
