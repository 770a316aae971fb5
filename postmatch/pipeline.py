"""
Duplicate detection pipeline.

One pass per request, for both uploads and reverse searches:

1. Checksum the raw bytes
2. Exact match by checksum short-circuits everything else
3. Signature + words, only for post types that carry signatures
4. Bucket lookup in the store
5. Rank candidates against the similarity threshold
6. Ingestion only: insert the post row and its signature in one transaction

Nothing is written before step 6, so any failure leaves the store untouched
and the whole run can be retried.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .errors import UnsupportedContentType, DecodeError, InvalidThresholdConfig
from .lsh import IndexGenerator
from .models import Post, PostType, ReverseSearchResult, IngestResult, SimilarPost
from .signature import (
    SignatureExtractor,
    calculate_checksum,
    decode_image,
    rank,
    validate_threshold,
)
from .user_config import get_user_config


logger = logging.getLogger(__name__)


def require_signature_support(post_type: PostType) -> None:
    """
    Raises:
        UnsupportedContentType: If posts of this type carry no signature
    """
    if not post_type.supports_signature:
        raise UnsupportedContentType(f"{post_type.value} posts have no visual signature")


class DuplicateDetectionPipeline:
    """
    Orchestrates exact and near-duplicate detection against a PostStore.

    Holds no per-request state, so one instance serves concurrent requests.

    Usage:
        pipeline = DuplicateDetectionPipeline(store, similarity_threshold=0.9)

        result = pipeline.reverse_search(data, 'image/png')
        result = pipeline.ingest(data, 'image/png', source='https://...')
    """

    def __init__(
        self,
        store,
        similarity_threshold: Optional[float] = None,
        extractor: Optional[SignatureExtractor] = None,
        index_generator: Optional[IndexGenerator] = None,
        decoder: Callable = decode_image,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            store: PostStore to search and write
            similarity_threshold: Fixed threshold in (0, 1]. None reads the
                user configuration on every request.
            extractor: Signature extractor (default geometry if None)
            index_generator: LSH word generator (default parameters if None)
            decoder: decode(data, mime_type) -> image
            max_workers: Ranking threads; None reads the user configuration

        Raises:
            InvalidThresholdConfig: If a fixed threshold is out of range
        """
        self.store = store
        self.similarity_threshold = (
            validate_threshold(similarity_threshold)
            if similarity_threshold is not None else None
        )
        self.extractor = extractor or SignatureExtractor()
        self.index_generator = index_generator or IndexGenerator(
            signature_bits=self.extractor.signature_bits
        )
        self.decoder = decoder
        self.max_workers = max_workers

    def _threshold(self) -> float:
        if self.similarity_threshold is not None:
            return self.similarity_threshold
        config = get_user_config()
        try:
            return config.similarity_threshold
        except InvalidThresholdConfig as e:
            # Config edited after startup; keep serving with the value load() accepted
            if config.loaded_threshold is None:
                raise
            logger.warning(f"{e}; keeping similarity threshold {config.loaded_threshold}")
            return config.loaded_threshold

    def _workers(self) -> int:
        if self.max_workers is not None:
            return self.max_workers
        return get_user_config().rank_workers

    def _signature_phase(self, content: bytes, mime_type: str, post_type: PostType):
        """
        Decode and sign the content.

        Returns:
            (image, fingerprint, words), or (None, None, None) when the post
            type carries no signature
        """
        try:
            require_signature_support(post_type)
        except UnsupportedContentType as e:
            logger.debug(f"Skipping signature phase: {e}")
            return None, None, None

        image = self.decoder(content, mime_type)
        fingerprint = self.extractor.extract(image)
        words = self.index_generator.generate(fingerprint)
        return image, fingerprint, words

    def _similar_posts(
        self,
        fingerprint,
        words,
        cancel_check: Optional[Callable[[], bool]],
    ) -> list[SimilarPost]:
        candidates = self.store.find_candidates(words)
        ranked = rank(
            fingerprint,
            candidates,
            self._threshold(),
            cancel_check=cancel_check,
            max_workers=self._workers(),
        )
        if ranked:
            posts = self.store.get_posts([m.post_id for m in ranked])
            # A post deleted since the lookup drops out
            ranked = [
                SimilarPost(post_id=m.post_id, distance=m.distance, post=posts[m.post_id])
                for m in ranked if m.post_id in posts
            ]
        return ranked

    @staticmethod
    def _classify(mime_type: str) -> PostType:
        try:
            return PostType.from_mime_type(mime_type)
        except ValueError as e:
            raise DecodeError(str(e)) from e

    def reverse_search(
        self,
        content: bytes,
        mime_type: str,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> ReverseSearchResult:
        """
        Find existing posts matching the content, without storing it.

        Args:
            content: Raw content bytes
            mime_type: Declared MIME type
            cancel_check: Polled while ranking; True abandons the search

        Returns:
            ReverseSearchResult

        Raises:
            DecodeError: If the content cannot be decoded or signed
            StorageError: On transient persistence failure (safe to retry)
            SearchCancelled: If cancel_check fired
        """
        post_type = self._classify(mime_type)
        checksum = calculate_checksum(content)

        exact = self.store.find_post_by_checksum(checksum)
        if exact is not None:
            logger.debug(f"Reverse search: exact match post {exact.id}")
            return ReverseSearchResult(exact_post=exact)

        _, fingerprint, words = self._signature_phase(content, mime_type, post_type)
        if fingerprint is None:
            return ReverseSearchResult()

        similar = self._similar_posts(fingerprint, words, cancel_check)
        logger.debug(f"Reverse search: {len(similar)} similar posts")
        return ReverseSearchResult(similar_posts=similar)

    def ingest(
        self,
        content: bytes,
        mime_type: str,
        source: Optional[str] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> IngestResult:
        """
        Store new content as a post, reporting near-duplicates found on the way.

        Byte-identical content is not stored again: the existing post comes
        back as exact_post and result.post is None.

        Args:
            content: Raw content bytes
            mime_type: Declared MIME type
            source: Optional source recorded on the post
            cancel_check: Polled while ranking; True abandons the upload

        Returns:
            IngestResult

        Raises:
            DecodeError: If the content cannot be decoded or signed
            StorageError: On transient persistence failure (safe to retry)
            SearchCancelled: If cancel_check fired
        """
        post_type = self._classify(mime_type)
        checksum = calculate_checksum(content)

        exact = self.store.find_post_by_checksum(checksum)
        if exact is not None:
            logger.info(f"Upload is identical to post {exact.id}; not stored")
            return IngestResult(exact_post=exact)

        image, fingerprint, words = self._signature_phase(content, mime_type, post_type)
        similar = (
            self._similar_posts(fingerprint, words, cancel_check)
            if fingerprint is not None else []
        )

        post = Post(
            checksum=checksum,
            mime_type=mime_type.lower(),
            width=image.width if image is not None else 0,
            height=image.height if image is not None else 0,
            file_size=len(content),
            source=source,
        )
        created = self.store.create_post(post, fingerprint, words)
        return IngestResult(post=created, similar_posts=similar)


__all__ = ['DuplicateDetectionPipeline', 'require_signature_support']
