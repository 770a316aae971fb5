"""
Similarity scoring and ranking of candidate signatures.

Everything here is pure: the threshold is passed in explicitly, nothing reads
configuration or touches storage, so candidate batches can be scored on a
thread pool without coordination.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from ..config import PARALLEL_RANK_MIN_BATCH, RANK_CHUNK_SIZE
from ..errors import InvalidThresholdConfig, SearchCancelled
from ..models import ContentSignature, SimilarPost
from .dependencies import np


logger = logging.getLogger(__name__)


def validate_threshold(value) -> float:
    """
    Check that a similarity threshold lies in (0, 1].

    Returns:
        The threshold as a float

    Raises:
        InvalidThresholdConfig: If the value is not a number in range
    """
    if isinstance(value, bool):
        raise InvalidThresholdConfig(f"Similarity threshold must be a number, got {value!r}")
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        raise InvalidThresholdConfig(f"Similarity threshold must be a number, got {value!r}") from None
    if not 0.0 < threshold <= 1.0:
        raise InvalidThresholdConfig(f"Similarity threshold must be in (0, 1], got {threshold}")
    return threshold


def _bits(fingerprint) -> np.ndarray:
    # Accepts an ImageHash or anything array-like
    return np.asarray(getattr(fingerprint, 'hash', fingerprint), dtype=bool).ravel()


def distance(a, b) -> float:
    """
    Normalized Hamming distance between two fingerprints.

    Returns:
        k / N for fingerprints of N bits differing in k positions

    Raises:
        ValueError: If the fingerprints differ in length or are empty
    """
    bits_a = _bits(a)
    bits_b = _bits(b)
    if bits_a.size != bits_b.size:
        raise ValueError(f"Fingerprint length mismatch: {bits_a.size} != {bits_b.size}")
    if bits_a.size == 0:
        raise ValueError("Cannot compare empty fingerprints")
    return np.count_nonzero(bits_a != bits_b) / bits_a.size


def _score_chunk(
    query_bits: np.ndarray,
    chunk: list[ContentSignature],
    distance_threshold: float,
) -> list[SimilarPost]:
    matches = []
    for candidate in chunk:
        d = distance(query_bits, candidate.fingerprint)
        if d < distance_threshold:
            matches.append(SimilarPost(post_id=candidate.post_id, distance=d))
    return matches


def _check_cancel(cancel_check: Optional[Callable[[], bool]]) -> None:
    if cancel_check is not None and cancel_check():
        raise SearchCancelled("Candidate ranking abandoned by caller")


def rank(
    query,
    candidates: Iterable[ContentSignature],
    similarity_threshold: float,
    cancel_check: Optional[Callable[[], bool]] = None,
    max_workers: int = 1,
) -> list[SimilarPost]:
    """
    Filter and order candidates by distance to the query fingerprint.

    A candidate survives when its distance is strictly below
    1 - similarity_threshold. Survivors are sorted by ascending distance,
    ties broken by ascending post id.

    Args:
        query: Query fingerprint
        candidates: Signatures returned by the bucket lookup
        similarity_threshold: Value in (0, 1]
        cancel_check: Polled between chunks; returning True abandons the batch
        max_workers: Thread pool size for large batches (1 = no pool)

    Returns:
        Ranked list of SimilarPost

    Raises:
        InvalidThresholdConfig: If the threshold is out of range
        SearchCancelled: If cancel_check fired
    """
    distance_threshold = 1.0 - validate_threshold(similarity_threshold)
    query_bits = _bits(query)
    candidates = list(candidates)
    chunks = [
        candidates[i:i + RANK_CHUNK_SIZE]
        for i in range(0, len(candidates), RANK_CHUNK_SIZE)
    ]

    matches: list[SimilarPost] = []
    if max_workers > 1 and len(candidates) >= PARALLEL_RANK_MIN_BATCH:
        logger.debug(f"Ranking {len(candidates):,} candidates on {max_workers} workers")
        executor = ThreadPoolExecutor(max_workers=max_workers)
        try:
            futures = [
                executor.submit(_score_chunk, query_bits, chunk, distance_threshold)
                for chunk in chunks
            ]
            for future in futures:
                _check_cancel(cancel_check)
                matches.extend(future.result())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
    else:
        for chunk in chunks:
            _check_cancel(cancel_check)
            matches.extend(_score_chunk(query_bits, chunk, distance_threshold))

    matches.sort(key=lambda m: (m.distance, m.post_id))
    logger.debug(f"{len(matches)} of {len(candidates)} candidates within distance {distance_threshold:.3f}")
    return matches


__all__ = ['validate_threshold', 'distance', 'rank']
