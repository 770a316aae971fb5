"""
Data models for postmatch.

Contains dataclasses for posts, their visual signatures, and the results
of duplicate detection runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import time

from .config import MIME_TYPES, EXTENSION_ALIASES


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable form."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


class PostType(Enum):
    """Kind of content a post holds, derived from its MIME type."""
    IMAGE = 'image'
    ANIMATION = 'animation'
    VIDEO = 'video'
    FLASH = 'flash'
    YOUTUBE = 'youtube'

    @property
    def supports_signature(self) -> bool:
        """Whether posts of this type carry a visual signature."""
        return self in (PostType.IMAGE, PostType.ANIMATION)

    @classmethod
    def from_mime_type(cls, mime_type: str) -> 'PostType':
        """
        Classify a MIME type.

        Raises:
            ValueError: If the MIME type is not supported
        """
        entry = MIME_TYPES.get(mime_type.lower())
        if entry is None:
            raise ValueError(f"Unsupported MIME type: {mime_type}")
        return cls(entry[1])


def mime_type_from_extension(extension: str) -> str:
    """
    Map a file extension (with or without the dot) to its MIME type.

    Raises:
        ValueError: If no supported MIME type uses this extension
    """
    ext = extension.lower().lstrip('.')
    ext = EXTENSION_ALIASES.get(ext, ext)
    for mime_type, (known_ext, _) in MIME_TYPES.items():
        if known_ext == ext:
            return mime_type
    raise ValueError(f"Unsupported file extension: {extension}")


@dataclass
class Post:
    """
    An uploaded content item.

    Attributes:
        id: Database id (None until inserted)
        checksum: SHA-256 hex digest of the raw content bytes
        mime_type: Declared MIME type of the content
        width: Width in pixels (0 when unknown)
        height: Height in pixels (0 when unknown)
        file_size: Size of the raw content in bytes
        source: Optional free-form source URL or note
        created_at: Unix timestamp of creation
    """
    checksum: str
    mime_type: str
    id: Optional[int] = None
    width: int = 0
    height: int = 0
    file_size: int = 0
    source: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    @property
    def post_type(self) -> PostType:
        return PostType.from_mime_type(self.mime_type)

    @property
    def resolution(self) -> str:
        """Return resolution as 'WxH' string."""
        return f"{self.width}x{self.height}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'checksum': self.checksum,
            'mime_type': self.mime_type,
            'type': self.post_type.value,
            'width': self.width,
            'height': self.height,
            'file_size': self.file_size,
            'source': self.source,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Post':
        """Create Post from dictionary."""
        return cls(
            id=data.get('id'),
            checksum=data['checksum'],
            mime_type=data['mime_type'],
            width=data.get('width', 0),
            height=data.get('height', 0),
            file_size=data.get('file_size', 0),
            source=data.get('source'),
            created_at=data.get('created_at', time.time()),
        )


@dataclass
class ContentSignature:
    """
    Visual signature of one post.

    Attributes:
        post_id: Owning post (one signature per post)
        fingerprint: imagehash.ImageHash over the fixed-shape bit grid
        words: LSH bucket keys; None marks a degenerate slice
    """
    post_id: int
    fingerprint: Any
    words: tuple[Optional[int], ...]

    def to_dict(self) -> dict:
        return {
            'post_id': self.post_id,
            'fingerprint': str(self.fingerprint),
            'words': list(self.words),
        }


@dataclass
class SimilarPost:
    """A candidate that passed the similarity threshold."""
    post_id: int
    distance: float
    post: Optional[Post] = None

    def to_dict(self) -> dict:
        return {
            'distance': self.distance,
            'post': self.post.to_dict() if self.post else {'id': self.post_id},
        }


@dataclass
class ReverseSearchResult:
    """
    Outcome of a query-only pipeline run.

    Attributes:
        exact_post: Post with byte-identical content, if any
        similar_posts: Near-duplicates ranked by ascending distance
            (always empty when exact_post is set)
    """
    exact_post: Optional[Post] = None
    similar_posts: list = field(default_factory=list)

    @property
    def has_matches(self) -> bool:
        return self.exact_post is not None or bool(self.similar_posts)

    def to_dict(self) -> dict:
        return {
            'exact_post': self.exact_post.to_dict() if self.exact_post else None,
            'similar_posts': [s.to_dict() for s in self.similar_posts],
        }


@dataclass
class IngestResult(ReverseSearchResult):
    """
    Outcome of an ingestion run.

    `post` is the newly created post, or None when the content was an
    exact duplicate and nothing was persisted.
    """
    post: Optional[Post] = None

    @property
    def created(self) -> bool:
        return self.post is not None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['post'] = self.post.to_dict() if self.post else None
        return data
