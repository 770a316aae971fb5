"""
Exception types for postmatch.

Every failure the subsystem raises derives from PostMatchError so callers can
catch the whole family at their boundary (CLI exit code, HTTP status).
"""

from __future__ import annotations


class PostMatchError(Exception):
    """Base class for all postmatch errors."""


class DecodeError(PostMatchError, ValueError):
    """Content bytes are corrupt, unsupported, or decode to a degenerate image."""


class UnsupportedContentType(PostMatchError):
    """
    The content type has no visual signature.

    Not a failure: the pipeline catches this and skips the signature phase.
    """


class DuplicateSignatureViolation(PostMatchError):
    """A second signature row was inserted for the same post id."""


class StorageError(PostMatchError):
    """Transient persistence failure. The whole pipeline run is safe to retry."""


class InvalidThresholdConfig(PostMatchError, ValueError):
    """Configured similarity threshold lies outside (0, 1]."""


class SearchCancelled(PostMatchError):
    """The caller abandoned a candidate ranking batch."""


class PostNotFound(PostMatchError, KeyError):
    """No post exists with the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ''


__all__ = [
    'PostMatchError',
    'DecodeError',
    'UnsupportedContentType',
    'DuplicateSignatureViolation',
    'StorageError',
    'InvalidThresholdConfig',
    'SearchCancelled',
    'PostNotFound',
]
