"""
SQLite database backend for postmatch.

Stores posts and their visual signatures, and answers the bucket-overlap
queries that drive near-duplicate search:
- post: one row per uploaded content item, unique by checksum
- post_signature: fingerprint + words, one row per signed post
- post_signature_word: posting list from word to post id

Public API:
- PostStore: Main store class
- SignatureOperations: The signature store on its own
- get_store(): Get global store instance
- reset_store(): Reset global instance (testing)
"""

from __future__ import annotations

import threading
from typing import Optional

from .core import PostStore
from .signatures import SignatureOperations


# Global store instance (singleton pattern)
_store_instance: Optional[PostStore] = None
_store_lock = threading.Lock()


def get_store(db_path: Optional[str] = None) -> PostStore:
    """
    Get or create the global store instance (thread-safe).

    Args:
        db_path: Database file used when the instance is first created.
            Defaults to the configured database file.

    Returns:
        Singleton PostStore instance

    Example:
        store = get_store()
        post = store.get_post(post_id)
    """
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            # Double-check after acquiring lock
            if _store_instance is None:
                if db_path is None:
                    from ..user_config import get_user_config
                    db_path = get_user_config().database_file
                _store_instance = PostStore(db_path)
    return _store_instance


def reset_store():
    """
    Reset the global store instance (mainly for testing).

    Example:
        reset_store()  # Clear singleton for next test
    """
    global _store_instance
    with _store_lock:
        _store_instance = None


__all__ = [
    'PostStore',
    'SignatureOperations',
    'get_store',
    'reset_store',
]
