"""
Database schema initialization and migrations.

Provides schema versioning and table creation for the post database.
"""

from __future__ import annotations

import sqlite3


# Schema version - increment when changing table structure
SCHEMA_VERSION = 1


def initialize_schema(conn: sqlite3.Connection) -> None:
    """
    Initialize database schema with versioning support.

    Creates tables and indexes if they don't exist. Drops and recreates
    tables if schema version has changed.

    Args:
        conn: Active database connection

    Tables created:
        - meta: Schema version tracking
        - post: Uploaded content items
        - post_signature: One fingerprint + words row per signed post
        - post_signature_word: Posting list (word -> post id)
    """
    # Create meta table for schema versioning
    conn.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """)

    # Check current schema version
    result = conn.execute(
        "SELECT value FROM meta WHERE key = 'schema_version'"
    ).fetchone()

    current_version = int(result['value']) if result else 0

    # Drop and recreate tables if schema changed (children first)
    if current_version < SCHEMA_VERSION:
        conn.execute("DROP TABLE IF EXISTS post_signature_word")
        conn.execute("DROP TABLE IF EXISTS post_signature")
        conn.execute("DROP TABLE IF EXISTS post")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS post (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            checksum TEXT UNIQUE NOT NULL,
            mime_type TEXT NOT NULL,
            width INTEGER NOT NULL DEFAULT 0,
            height INTEGER NOT NULL DEFAULT 0,
            file_size INTEGER NOT NULL DEFAULT 0,
            source TEXT,
            created_at REAL DEFAULT (strftime('%s', 'now'))
        )
    """)

    # signature: fingerprint bits packed MSB-first
    # words: JSON array of nullable integers, fixed length
    conn.execute("""
        CREATE TABLE IF NOT EXISTS post_signature (
            post_id INTEGER PRIMARY KEY
                REFERENCES post(id) ON DELETE CASCADE,
            signature BLOB NOT NULL,
            words TEXT NOT NULL
        )
    """)

    # Emulated array-overlap index: one row per non-null word
    conn.execute("""
        CREATE TABLE IF NOT EXISTS post_signature_word (
            word INTEGER NOT NULL,
            post_id INTEGER NOT NULL
                REFERENCES post_signature(post_id) ON DELETE CASCADE,
            PRIMARY KEY (word, post_id)
        ) WITHOUT ROWID
    """)

    # Cascade deletes look rows up by post_id
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_post_signature_word_post_id
        ON post_signature_word(post_id)
    """)

    # Update schema version
    conn.execute("""
        INSERT OR REPLACE INTO meta (key, value)
        VALUES ('schema_version', ?)
    """, (str(SCHEMA_VERSION),))


__all__ = ['SCHEMA_VERSION', 'initialize_schema']
