"""
Shared utilities for database operations.

Provides:
- Encoding of signature words to and from their stored JSON form
- Row conversion helpers to eliminate code duplication
"""

from __future__ import annotations

import json
import sqlite3
from typing import Iterable, Optional

from ..config import NUM_WORDS, SIGNATURE_BYTES
from ..models import Post, ContentSignature
from ..signature import fingerprint_to_bytes, fingerprint_from_bytes


# SQLite variable limit constant - used for batch operations
# SQLite has a limit of 999 variables, we use 500 for safety
CHUNK_SIZE = 500


def encode_words(words: Iterable[Optional[int]]) -> str:
    """
    Serialize words for the post_signature.words column.

    Absent words are stored as JSON null, never as a sentinel integer.
    """
    return json.dumps([None if w is None else int(w) for w in words])


def decode_words(raw: str) -> tuple[Optional[int], ...]:
    """Inverse of encode_words."""
    return tuple(json.loads(raw))


def present_words(words: Iterable[Optional[int]]) -> list[int]:
    """Distinct non-null words, in first-seen order."""
    return list(dict.fromkeys(int(w) for w in words if w is not None))


def encode_signature(fingerprint, words) -> tuple[bytes, str]:
    """
    Validate and serialize a fingerprint + words pair for storage.

    Raises:
        ValueError: If either part has the wrong length
    """
    words = tuple(words)
    if len(words) != NUM_WORDS:
        raise ValueError(f"Expected {NUM_WORDS} words, got {len(words)}")
    raw = fingerprint_to_bytes(fingerprint)
    if len(raw) != SIGNATURE_BYTES:
        raise ValueError(f"Expected a {SIGNATURE_BYTES}-byte signature, got {len(raw)} bytes")
    return raw, encode_words(words)


def row_to_post(row: sqlite3.Row) -> Post:
    """
    Convert database row to Post object.

    Args:
        row: sqlite3.Row from the post table

    Returns:
        Post object
    """
    return Post(
        id=row['id'],
        checksum=row['checksum'],
        mime_type=row['mime_type'],
        width=row['width'] or 0,
        height=row['height'] or 0,
        file_size=row['file_size'] or 0,
        source=row['source'],
        created_at=row['created_at'] or 0.0,
    )


def row_to_signature(row: sqlite3.Row) -> ContentSignature:
    """
    Convert database row to ContentSignature object.

    Args:
        row: sqlite3.Row from the post_signature table

    Returns:
        ContentSignature object
    """
    return ContentSignature(
        post_id=row['post_id'],
        fingerprint=fingerprint_from_bytes(bytes(row['signature'])),
        words=decode_words(row['words']),
    )


__all__ = [
    'CHUNK_SIZE',
    'encode_words',
    'decode_words',
    'present_words',
    'encode_signature',
    'row_to_post',
    'row_to_signature',
]
