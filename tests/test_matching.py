"""
Unit tests for distance, threshold validation and candidate ranking.
"""

import numpy as np
import pytest

from postmatch.errors import InvalidThresholdConfig, SearchCancelled
from postmatch.models import ContentSignature
from postmatch.signature import distance, rank, validate_threshold

from conftest import flip_bits, random_fingerprint


def _candidate(post_id, fingerprint):
    return ContentSignature(post_id=post_id, fingerprint=fingerprint, words=())


class TestValidateThreshold:

    @pytest.mark.parametrize("value", [0.5, 1.0, 1, "0.75", 1e-9])
    def test_valid(self, value):
        assert validate_threshold(value) == float(value)

    @pytest.mark.parametrize("value", [0, 0.0, -0.1, 1.01, 2, "abc", None, True])
    def test_invalid(self, value):
        with pytest.raises(InvalidThresholdConfig):
            validate_threshold(value)


class TestDistance:

    def test_identical(self):
        fingerprint = random_fingerprint(0)
        assert distance(fingerprint, fingerprint) == 0.0

    def test_counts_differing_bits(self):
        fingerprint = random_fingerprint(0)
        assert distance(fingerprint, flip_bits(fingerprint, 64)) == 64 / 512

    def test_complement(self):
        fingerprint = random_fingerprint(1)
        assert distance(fingerprint, flip_bits(fingerprint, 512)) == 1.0

    def test_symmetric(self):
        a, b = random_fingerprint(1), random_fingerprint(2)
        assert distance(a, b) == distance(b, a)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            distance(np.zeros(16, dtype=bool), np.zeros(32, dtype=bool))

    def test_empty(self):
        with pytest.raises(ValueError):
            distance(np.zeros(0, dtype=bool), np.zeros(0, dtype=bool))


class TestRank:
    """Test rank()."""

    def test_filters_and_orders(self):
        query = random_fingerprint(10)
        candidates = [
            _candidate(1, flip_bits(query, 40)),
            _candidate(2, flip_bits(query, 5)),
            _candidate(3, random_fingerprint(11)),
            _candidate(4, flip_bits(query, 20)),
        ]
        ranked = rank(query, candidates, 0.9)
        assert [m.post_id for m in ranked] == [2, 4, 1]
        assert ranked[0].distance == 5 / 512

    def test_strict_comparison(self):
        """A candidate exactly at the boundary is rejected."""
        query = random_fingerprint(12)
        # threshold 0.75 -> distance must be < 0.25 = 128 / 512
        at_boundary = _candidate(1, flip_bits(query, 128))
        inside = _candidate(2, flip_bits(query, 127))
        ranked = rank(query, [at_boundary, inside], 0.75)
        assert [m.post_id for m in ranked] == [2]

    def test_threshold_one_rejects_everything(self):
        query = random_fingerprint(13)
        assert rank(query, [_candidate(1, query)], 1.0) == []

    def test_ties_broken_by_post_id(self):
        query = random_fingerprint(14)
        near = flip_bits(query, 10)
        ranked = rank(query, [_candidate(9, near), _candidate(3, near), _candidate(5, near)], 0.9)
        assert [m.post_id for m in ranked] == [3, 5, 9]

    def test_empty_candidates(self):
        assert rank(random_fingerprint(0), [], 0.9) == []

    def test_invalid_threshold(self):
        with pytest.raises(InvalidThresholdConfig):
            rank(random_fingerprint(0), [], 1.5)

    def test_cancelled(self):
        query = random_fingerprint(15)
        with pytest.raises(SearchCancelled):
            rank(query, [_candidate(1, query)], 0.9, cancel_check=lambda: True)

    def test_parallel_matches_sequential(self):
        """Large batches on a thread pool rank exactly like the serial path."""
        query = random_fingerprint(20)
        candidates = []
        for post_id in range(1, 2501):
            if post_id % 50 == 0:
                candidates.append(_candidate(post_id, flip_bits(query, post_id % 40, seed=post_id)))
            else:
                candidates.append(_candidate(post_id, random_fingerprint(1000 + post_id)))

        serial = rank(query, candidates, 0.9, max_workers=1)
        parallel = rank(query, candidates, 0.9, max_workers=4)
        assert serial
        assert [(m.post_id, m.distance) for m in parallel] == [(m.post_id, m.distance) for m in serial]

    def test_parallel_cancelled(self):
        query = random_fingerprint(21)
        candidates = [_candidate(i, query) for i in range(1, 2001)]
        with pytest.raises(SearchCancelled):
            rank(query, candidates, 0.9, cancel_check=lambda: True, max_workers=2)
