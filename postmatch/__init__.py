"""
postmatch
=========
Visual near-duplicate detection for an imageboard post repository.

Features:
- Exact match by content checksum
- Perceptual signatures (horizontal + vertical difference hash)
- LSH words with a SQLite posting list for sub-linear candidate lookup
- Threshold ranking by normalized Hamming distance
- Atomic post + signature ingestion, deletion and merging
- CLI and Flask API

Author: Zach
"""

__version__ = "0.4.1"
__author__ = "Zedidence"

from .models import Post, PostType, ContentSignature, SimilarPost, ReverseSearchResult, IngestResult
from .config import NUM_WORDS, SIGNATURE_BITS, DEFAULT_SIMILARITY_THRESHOLD
from .errors import (
    PostMatchError,
    DecodeError,
    UnsupportedContentType,
    DuplicateSignatureViolation,
    StorageError,
    InvalidThresholdConfig,
    SearchCancelled,
    PostNotFound,
)
from .signature import (
    SignatureExtractor,
    compute_signature,
    decode_image,
    calculate_checksum,
    distance,
    rank,
)
from .lsh import IndexGenerator, generate_words
from .database import PostStore, get_store
from .pipeline import DuplicateDetectionPipeline

__all__ = [
    "Post",
    "PostType",
    "ContentSignature",
    "SimilarPost",
    "ReverseSearchResult",
    "IngestResult",
    "NUM_WORDS",
    "SIGNATURE_BITS",
    "DEFAULT_SIMILARITY_THRESHOLD",
    "PostMatchError",
    "DecodeError",
    "UnsupportedContentType",
    "DuplicateSignatureViolation",
    "StorageError",
    "InvalidThresholdConfig",
    "SearchCancelled",
    "PostNotFound",
    "SignatureExtractor",
    "compute_signature",
    "decode_image",
    "calculate_checksum",
    "distance",
    "rank",
    "IndexGenerator",
    "generate_words",
    "PostStore",
    "get_store",
    "DuplicateDetectionPipeline",
]
