"""
Maintenance operations for the post database.

Provides statistics, clearing, and vacuum operations.
"""

from __future__ import annotations

import os
import sqlite3
import logging

from .connection import ConnectionManager


logger = logging.getLogger(__name__)


class MaintenanceOperations:
    """
    Handles maintenance operations for the post database.

    Provides statistics reporting, clearing, and database compaction.
    """

    def __init__(self, connection_manager: ConnectionManager):
        """
        Initialize maintenance operations.

        Args:
            connection_manager: ConnectionManager instance for database access
        """
        self.conn_mgr = connection_manager

    def get_stats(self) -> dict:
        """
        Get database statistics.

        Returns:
            Dictionary with database statistics:
                - total_posts: Number of posts
                - signed_posts: Number of posts with a signature
                - posting_rows: Rows in the word posting list
                - avg_words_per_signature: Non-null words per signature
                - db_size_bytes: Database size in bytes
                - db_size_mb: Database size in MB
                - db_path: Path to database file
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            posts = conn.execute("SELECT COUNT(*) AS cnt FROM post").fetchone()['cnt']
            signed = conn.execute("SELECT COUNT(*) AS cnt FROM post_signature").fetchone()['cnt']
            postings = conn.execute("SELECT COUNT(*) AS cnt FROM post_signature_word").fetchone()['cnt']

        # Size on disk
        db_size = os.path.getsize(self.conn_mgr.db_path) if os.path.exists(self.conn_mgr.db_path) else 0

        return {
            'total_posts': posts,
            'signed_posts': signed,
            'posting_rows': postings,
            'avg_words_per_signature': round(postings / signed, 2) if signed else 0.0,
            'db_size_bytes': db_size,
            'db_size_mb': round(db_size / (1024 * 1024), 2),
            'db_path': self.conn_mgr.db_path,
        }

    def clear(self):
        """Delete all posts; signatures and postings cascade."""
        with self.conn_mgr.connection(exclusive=True) as conn:
            conn.execute("DELETE FROM post")
        # VACUUM outside transaction
        self.vacuum()

    def vacuum(self):
        """Compact the database file."""
        try:
            # VACUUM must run outside a transaction
            conn = sqlite3.connect(self.conn_mgr.db_path, timeout=30.0)
            try:
                conn.execute("VACUUM")
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Failed to vacuum database: {e}")


__all__ = ['MaintenanceOperations']
