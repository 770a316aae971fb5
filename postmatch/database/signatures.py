"""
Signature storage operations.

Provides SignatureOperations: CRUD over post_signature plus the
bucket-overlap candidate query backed by the post_signature_word posting
list. Every method accepts an optional open connection so callers can
compose it into a larger transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from ..errors import DuplicateSignatureViolation, PostNotFound
from ..models import ContentSignature
from .connection import ConnectionManager, use_connection
from .utils import (
    CHUNK_SIZE,
    encode_signature,
    decode_words,
    present_words,
    row_to_signature,
)


logger = logging.getLogger(__name__)


class SignatureOperations:
    """
    Handles CRUD operations for post signatures.

    Invariants kept here:
    - at most one signature row per post id
    - posting rows mirror exactly the non-null words of their signature
    """

    def __init__(self, connection_manager: ConnectionManager):
        """
        Initialize signature operations.

        Args:
            connection_manager: ConnectionManager instance for database access
        """
        self.conn_mgr = connection_manager

    @staticmethod
    def _write_row(conn: sqlite3.Connection, post_id: int, raw: bytes, encoded_words: str) -> None:
        """Insert a signature row and its postings. Integrity errors propagate."""
        conn.execute("""
            INSERT INTO post_signature (post_id, signature, words)
            VALUES (?, ?, ?)
        """, (post_id, raw, encoded_words))
        conn.executemany("""
            INSERT INTO post_signature_word (word, post_id) VALUES (?, ?)
        """, [(word, post_id) for word in present_words(decode_words(encoded_words))])

    def insert(self, post_id: int, fingerprint, words: Iterable, conn: Optional[sqlite3.Connection] = None) -> None:
        """
        Store the signature of a post.

        Args:
            post_id: Owning post
            fingerprint: imagehash.ImageHash
            words: LSH words from IndexGenerator
            conn: Enclosing transaction, if any

        Raises:
            DuplicateSignatureViolation: If the post already has a signature
            PostNotFound: If the post does not exist
            ValueError: If fingerprint or words have the wrong length
        """
        raw, encoded = encode_signature(fingerprint, words)
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            try:
                self._write_row(c, post_id, raw, encoded)
            except sqlite3.IntegrityError as e:
                exists = c.execute(
                    "SELECT 1 FROM post_signature WHERE post_id = ?", (post_id,)
                ).fetchone()
                if exists:
                    raise DuplicateSignatureViolation(
                        f"Post {post_id} already has a signature"
                    ) from e
                raise PostNotFound(f"Post {post_id} does not exist") from e
        logger.debug(f"Stored signature for post {post_id}")

    def find_by_content(self, post_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[ContentSignature]:
        """
        Look up the signature of one post.

        Returns:
            ContentSignature, or None if the post has no signature
        """
        with use_connection(self.conn_mgr, conn) as c:
            row = c.execute("""
                SELECT post_id, signature, words FROM post_signature WHERE post_id = ?
            """, (post_id,)).fetchone()
        return row_to_signature(row) if row else None

    def find_candidates(self, words: Iterable, conn: Optional[sqlite3.Connection] = None) -> list[ContentSignature]:
        """
        Find every signature sharing at least one word with the query.

        None entries in the query never match anything.

        Args:
            words: Query words
            conn: Enclosing transaction, if any

        Returns:
            Matching signatures, each once, ordered by post id
        """
        query_words = present_words(words)
        if not query_words:
            return []

        found: dict[int, ContentSignature] = {}
        with use_connection(self.conn_mgr, conn) as c:
            # Process in chunks to avoid SQLite variable limit
            for i in range(0, len(query_words), CHUNK_SIZE):
                chunk = query_words[i:i + CHUNK_SIZE]
                placeholders = ','.join('?' * len(chunk))
                rows = c.execute(f"""
                    SELECT post_id, signature, words FROM post_signature
                    WHERE post_id IN (
                        SELECT post_id FROM post_signature_word
                        WHERE word IN ({placeholders})
                    )
                """, chunk).fetchall()
                for row in rows:
                    if row['post_id'] not in found:
                        found[row['post_id']] = row_to_signature(row)

        logger.debug(f"Bucket lookup over {len(query_words)} words returned {len(found)} candidates")
        return [found[post_id] for post_id in sorted(found)]

    def delete(self, post_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """
        Remove the signature of a post (postings cascade).

        Returns:
            True if a row was removed
        """
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            result = c.execute("DELETE FROM post_signature WHERE post_id = ?", (post_id,))
            return result.rowcount > 0

    def update(self, post_id: int, fingerprint, words: Iterable, conn: Optional[sqlite3.Connection] = None) -> bool:
        """
        Replace the signature of a post wholesale.

        Returns:
            True if the post had a signature to replace
        """
        raw, encoded = encode_signature(fingerprint, words)
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            result = c.execute("DELETE FROM post_signature WHERE post_id = ?", (post_id,))
            if result.rowcount == 0:
                return False
            self._write_row(c, post_id, raw, encoded)
        return True

    def swap(self, post_id_a: int, post_id_b: int, conn: Optional[sqlite3.Connection] = None) -> None:
        """
        Exchange the signatures stored under two posts.

        Both rows are deleted and reinserted under the other id inside one
        transaction, so no reader sees a half-swapped pair and the one-row-
        per-post constraint holds at every statement.

        Raises:
            ValueError: If only one of the posts has a signature; moving it
                would leave a signature on a post whose type has none
        """
        self._exchange(post_id_a, post_id_b, conn, allow_move=False)

    def move_or_swap(self, source_id: int, target_id: int, conn: Optional[sqlite3.Connection] = None) -> None:
        """
        Swap signatures, or move the only one to the other post.

        Only for merges with content replacement: the source post is deleted
        in the same transaction and the target takes over its content type.
        """
        self._exchange(source_id, target_id, conn, allow_move=True)

    def _exchange(self, post_id_a: int, post_id_b: int, conn: Optional[sqlite3.Connection], allow_move: bool) -> None:
        if post_id_a == post_id_b:
            return

        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            rows = {}
            for post_id in (post_id_a, post_id_b):
                rows[post_id] = c.execute("""
                    SELECT signature, words FROM post_signature WHERE post_id = ?
                """, (post_id,)).fetchone()

            if not allow_move and (rows[post_id_a] is None) != (rows[post_id_b] is None):
                missing = post_id_a if rows[post_id_a] is None else post_id_b
                raise ValueError(f"Post {missing} has no signature to swap")

            c.execute(
                "DELETE FROM post_signature WHERE post_id IN (?, ?)",
                (post_id_a, post_id_b),
            )

            for source, target in ((post_id_a, post_id_b), (post_id_b, post_id_a)):
                row = rows[source]
                if row is not None:
                    self._write_row(c, target, bytes(row['signature']), row['words'])

        logger.debug(f"Swapped signatures of posts {post_id_a} and {post_id_b}")

    def count(self, conn: Optional[sqlite3.Connection] = None) -> int:
        """Number of stored signatures."""
        with use_connection(self.conn_mgr, conn) as c:
            return c.execute("SELECT COUNT(*) AS cnt FROM post_signature").fetchone()['cnt']


__all__ = ['SignatureOperations']
