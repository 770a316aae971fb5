"""
Post row operations.

Provides PostOperations for the content items that own signatures.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from ..errors import StorageError
from ..models import Post
from .connection import ConnectionManager, use_connection
from .utils import CHUNK_SIZE, row_to_post


logger = logging.getLogger(__name__)


class PostOperations:
    """Handles CRUD operations for post rows."""

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def insert(self, post: Post, conn: Optional[sqlite3.Connection] = None) -> int:
        """
        Insert a post row.

        Returns:
            The new post id

        Raises:
            StorageError: If a post with the same checksum was committed
                concurrently; retrying the run finds it as an exact match
        """
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            try:
                cursor = c.execute("""
                    INSERT INTO post (
                        checksum, mime_type, width, height, file_size, source, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    post.checksum, post.mime_type, post.width, post.height,
                    post.file_size, post.source, post.created_at,
                ))
            except sqlite3.IntegrityError as e:
                raise StorageError(f"Checksum conflict for {post.checksum}: {e}") from e
            return cursor.lastrowid

    def get(self, post_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Post]:
        with use_connection(self.conn_mgr, conn) as c:
            row = c.execute("SELECT * FROM post WHERE id = ?", (post_id,)).fetchone()
        return row_to_post(row) if row else None

    def get_batch(self, post_ids: list[int], conn: Optional[sqlite3.Connection] = None) -> dict[int, Post]:
        """
        Get several posts efficiently.

        Returns:
            Dict mapping post id to Post; missing ids are absent
        """
        results: dict[int, Post] = {}
        ids = list(dict.fromkeys(post_ids))
        with use_connection(self.conn_mgr, conn) as c:
            for i in range(0, len(ids), CHUNK_SIZE):
                chunk = ids[i:i + CHUNK_SIZE]
                placeholders = ','.join('?' * len(chunk))
                rows = c.execute(
                    f"SELECT * FROM post WHERE id IN ({placeholders})", chunk
                ).fetchall()
                for row in rows:
                    results[row['id']] = row_to_post(row)
        return results

    def find_by_checksum(self, checksum: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Post]:
        with use_connection(self.conn_mgr, conn) as c:
            row = c.execute("SELECT * FROM post WHERE checksum = ?", (checksum,)).fetchone()
        return row_to_post(row) if row else None

    def delete(self, post_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """
        Delete a post row. Its signature and postings cascade.

        Returns:
            True if a row was removed
        """
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            result = c.execute("DELETE FROM post WHERE id = ?", (post_id,))
            return result.rowcount > 0

    def update_content(self, post_id: int, content: Post, conn: Optional[sqlite3.Connection] = None) -> bool:
        """
        Overwrite the content metadata of a post with another post's.

        Copies checksum, MIME type, dimensions, size and source; id and
        creation time stay.
        """
        with use_connection(self.conn_mgr, conn, exclusive=True) as c:
            result = c.execute("""
                UPDATE post SET
                    checksum = ?, mime_type = ?, width = ?, height = ?,
                    file_size = ?, source = ?
                WHERE id = ?
            """, (
                content.checksum, content.mime_type, content.width, content.height,
                content.file_size, content.source, post_id,
            ))
            return result.rowcount > 0

    def count(self, conn: Optional[sqlite3.Connection] = None) -> int:
        with use_connection(self.conn_mgr, conn) as c:
            return c.execute("SELECT COUNT(*) AS cnt FROM post").fetchone()['cnt']


__all__ = ['PostOperations']
