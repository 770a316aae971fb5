"""
Checksum calculation for raw content bytes.

The checksum drives the exact-match short-circuit: two uploads with the same
digest are the same content.
"""

from __future__ import annotations

import hashlib
from pathlib import Path


def calculate_checksum(data: bytes, algorithm: str = 'sha256') -> str:
    """
    Calculate cryptographic hash of in-memory content.

    Args:
        data: Raw content bytes
        algorithm: Hash algorithm to use (default: sha256)

    Returns:
        Hex digest of the content hash
    """
    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def calculate_file_checksum(filepath: str | Path, algorithm: str = 'sha256') -> str:
    """
    Calculate cryptographic hash of a file without loading it whole.

    Produces the same digest as calculate_checksum over the file's bytes.
    """
    hasher = hashlib.new(algorithm)
    with open(filepath, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            hasher.update(chunk)
    return hasher.hexdigest()


__all__ = ['calculate_checksum', 'calculate_file_checksum']
