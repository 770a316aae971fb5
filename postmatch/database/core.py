"""
PostStore facade class for coordinating database operations.

Provides a unified interface to all post and signature operations using the
facade pattern, plus the multi-table transactions (create, merge) that span
both.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from typing import Iterable, Optional

from ..config import DATABASE_FILE
from ..errors import PostNotFound
from ..models import Post, ContentSignature
from .connection import ConnectionManager, use_connection
from .schema import initialize_schema, SCHEMA_VERSION
from .posts import PostOperations
from .signatures import SignatureOperations
from .maintenance import MaintenanceOperations


logger = logging.getLogger(__name__)


class PostStore:
    """
    SQLite-backed store for posts and their visual signatures.

    Thread-safe for concurrent read/write operations.
    Uses facade pattern to delegate to specialized components.

    Usage:
        store = PostStore(db_path)

        post = store.create_post(post, fingerprint, words)
        candidates = store.find_candidates(words)
    """

    # Schema version - increment when changing table structure
    SCHEMA_VERSION = SCHEMA_VERSION

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file. Uses default if None.
        """
        self.db_path = db_path or DATABASE_FILE

        # Initialize components
        self._conn_mgr = ConnectionManager(self.db_path)
        self._posts = PostOperations(self._conn_mgr)
        self._signatures = SignatureOperations(self._conn_mgr)
        self._maintenance = MaintenanceOperations(self._conn_mgr)

        # Initialize database schema
        with self._conn_mgr.connection(exclusive=True) as conn:
            initialize_schema(conn)

    def transaction(self, exclusive: bool = False):
        """Open one transaction that store methods can join via `conn=`."""
        return self._conn_mgr.connection(exclusive=exclusive)

    # Multi-table operations
    def create_post(
        self,
        post: Post,
        fingerprint=None,
        words: Optional[Iterable] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Post:
        """
        Insert a post together with its signature, atomically.

        Args:
            post: Post to insert (its id is ignored)
            fingerprint: Signature fingerprint; required exactly when the
                post type supports signatures
            words: LSH words matching the fingerprint
            conn: Enclosing transaction, if any

        Returns:
            Copy of the post carrying its new id

        Raises:
            ValueError: If the signature presence does not match the post type
        """
        needs_signature = post.post_type.supports_signature
        if needs_signature and (fingerprint is None or words is None):
            raise ValueError(f"{post.mime_type} posts require a signature")
        if not needs_signature and fingerprint is not None:
            raise ValueError(f"{post.mime_type} posts cannot carry a signature")

        with use_connection(self._conn_mgr, conn, exclusive=True) as c:
            post_id = self._posts.insert(post, conn=c)
            if needs_signature:
                self._signatures.insert(post_id, fingerprint, words, conn=c)

        logger.info(f"Created post {post_id} ({post.mime_type}, {post.resolution})")
        return replace(post, id=post_id)

    def delete_post(self, post_id: int) -> None:
        """
        Delete a post and, by cascade, its signature.

        Raises:
            PostNotFound: If no such post exists
        """
        if not self._posts.delete(post_id):
            raise PostNotFound(f"Post {post_id} does not exist")
        logger.info(f"Deleted post {post_id}")

    def merge_posts(self, remove_id: int, merge_to_id: int, replace_content: bool = False) -> Post:
        """
        Fold one post into another.

        The removed post is deleted. With replace_content the surviving post
        first takes over the removed post's content metadata and signature.
        Everything happens in one transaction.

        Args:
            remove_id: Post that disappears
            merge_to_id: Post that survives
            replace_content: Whether the survivor adopts the removed content

        Returns:
            The surviving post as committed

        Raises:
            PostNotFound: If either post does not exist
            ValueError: If both ids are the same
        """
        if remove_id == merge_to_id:
            raise ValueError("Cannot merge a post into itself")

        with self._conn_mgr.connection(exclusive=True) as conn:
            remove_post = self._posts.get(remove_id, conn=conn)
            if remove_post is None:
                raise PostNotFound(f"Post {remove_id} does not exist")
            if self._posts.get(merge_to_id, conn=conn) is None:
                raise PostNotFound(f"Post {merge_to_id} does not exist")

            # Swap before deletion: the removed post's signature cascades away
            if replace_content:
                self._signatures.move_or_swap(remove_id, merge_to_id, conn=conn)

            self._posts.delete(remove_id, conn=conn)

            # After deletion: checksum is UNIQUE
            if replace_content:
                self._posts.update_content(merge_to_id, remove_post, conn=conn)

            merged = self._posts.get(merge_to_id, conn=conn)

        logger.info(
            f"Merged post {remove_id} into {merge_to_id}"
            + (" (content replaced)" if replace_content else "")
        )
        return merged

    # Delegate to PostOperations
    def get_post(self, post_id: int) -> Optional[Post]:
        """Get a post by id."""
        return self._posts.get(post_id)

    def get_posts(self, post_ids: list[int]) -> dict[int, Post]:
        """Get several posts by id."""
        return self._posts.get_batch(post_ids)

    def find_post_by_checksum(self, checksum: str) -> Optional[Post]:
        """Exact-match lookup by content checksum."""
        return self._posts.find_by_checksum(checksum)

    # Delegate to SignatureOperations
    def insert_signature(self, post_id: int, fingerprint, words, conn=None) -> None:
        self._signatures.insert(post_id, fingerprint, words, conn=conn)

    def find_signature(self, post_id: int) -> Optional[ContentSignature]:
        return self._signatures.find_by_content(post_id)

    def find_candidates(self, words: Iterable) -> list[ContentSignature]:
        """Signatures sharing at least one word with the query."""
        return self._signatures.find_candidates(words)

    def update_signature(self, post_id: int, fingerprint, words) -> bool:
        return self._signatures.update(post_id, fingerprint, words)

    def delete_signature(self, post_id: int) -> bool:
        return self._signatures.delete(post_id)

    def swap_signatures(self, post_id_a: int, post_id_b: int) -> None:
        self._signatures.swap(post_id_a, post_id_b)

    # Delegate to MaintenanceOperations
    def get_stats(self) -> dict:
        """Get database statistics."""
        return self._maintenance.get_stats()

    def clear(self):
        """Delete all posts and signatures."""
        self._maintenance.clear()

    def vacuum(self):
        """Compact the database file."""
        self._maintenance.vacuum()

    @property
    def signatures(self) -> SignatureOperations:
        """The signature store itself."""
        return self._signatures


__all__ = ['PostStore']
