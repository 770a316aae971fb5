"""
Unit tests for the SQLite post and signature store.
"""

import os
import sqlite3

import pytest

from postmatch.database import PostStore, get_store, reset_store
from postmatch.errors import (
    DuplicateSignatureViolation,
    PostNotFound,
    StorageError,
)
from postmatch.models import Post
from postmatch.signature import calculate_checksum

from conftest import flip_bits, random_fingerprint


def _image_post(name: str, **kwargs) -> Post:
    return Post(checksum=calculate_checksum(name.encode()), mime_type='image/png',
                width=100, height=100, file_size=len(name), **kwargs)


def _video_post(name: str) -> Post:
    return Post(checksum=calculate_checksum(name.encode()), mime_type='video/mp4', file_size=10)


@pytest.fixture
def signed(store, generator):
    """Factory storing an image post with a random fingerprint."""
    def create(name, seed, fingerprint=None):
        fingerprint = fingerprint if fingerprint is not None else random_fingerprint(seed)
        post = store.create_post(_image_post(name), fingerprint, generator.generate(fingerprint))
        return post, fingerprint
    return create


class TestSchema:

    def test_initialization(self, temp_db):
        PostStore(temp_db)
        assert os.path.exists(temp_db)

    def test_creates_parent_directory(self, temp_dir):
        db_path = temp_dir / "nested" / "dir" / "posts.db"
        PostStore(str(db_path))
        assert db_path.exists()

    def test_reopen_keeps_data(self, temp_db, signed):
        post, _ = signed("a", 1)
        assert PostStore(temp_db).get_post(post.id) == post

    def test_wal_mode(self, temp_db, store):
        conn = sqlite3.connect(temp_db)
        try:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        finally:
            conn.close()
        assert mode == 'wal'


class TestPosts:
    """Post rows."""

    def test_create_and_get(self, store, signed):
        post, _ = signed("a", 1)
        assert post.id is not None
        fetched = store.get_post(post.id)
        assert fetched.checksum == post.checksum
        assert fetched.resolution == "100x100"

    def test_get_nonexistent(self, store):
        assert store.get_post(999) is None

    def test_find_by_checksum(self, store, signed):
        post, _ = signed("a", 1)
        assert store.find_post_by_checksum(post.checksum).id == post.id
        assert store.find_post_by_checksum("0" * 64) is None

    def test_get_posts(self, store, signed):
        a, _ = signed("a", 1)
        b, _ = signed("b", 2)
        posts = store.get_posts([b.id, a.id, 999, a.id])
        assert set(posts) == {a.id, b.id}

    def test_duplicate_checksum(self, store, signed, generator):
        signed("a", 1)
        fingerprint = random_fingerprint(2)
        with pytest.raises(StorageError):
            store.create_post(_image_post("a"), fingerprint, generator.generate(fingerprint))
        assert store.get_stats()['total_posts'] == 1

    def test_video_without_signature(self, store):
        post = store.create_post(_video_post("clip"))
        assert store.get_post(post.id).mime_type == 'video/mp4'
        assert store.find_signature(post.id) is None

    def test_image_requires_signature(self, store):
        with pytest.raises(ValueError):
            store.create_post(_image_post("a"))

    def test_video_rejects_signature(self, store, generator):
        fingerprint = random_fingerprint(1)
        with pytest.raises(ValueError):
            store.create_post(_video_post("clip"), fingerprint, generator.generate(fingerprint))

    def test_bad_signature_leaves_no_post(self, store):
        with pytest.raises(ValueError):
            store.create_post(_image_post("a"), random_fingerprint(1), (None,) * 5)
        assert store.get_stats()['total_posts'] == 0

    def test_delete_post(self, store, signed):
        post, _ = signed("a", 1)
        store.delete_post(post.id)
        assert store.get_post(post.id) is None

    def test_delete_nonexistent(self, store):
        with pytest.raises(PostNotFound):
            store.delete_post(999)


class TestSignatures:
    """Signature rows and the posting list."""

    def test_stored_signature(self, store, signed, generator):
        post, fingerprint = signed("a", 1)
        signature = store.find_signature(post.id)
        assert signature.post_id == post.id
        assert signature.fingerprint == fingerprint
        assert signature.words == generator.generate(fingerprint)

    def test_duplicate_signature(self, store, signed, generator):
        post, fingerprint = signed("a", 1)
        with pytest.raises(DuplicateSignatureViolation):
            store.insert_signature(post.id, fingerprint, generator.generate(fingerprint))

    def test_signature_for_missing_post(self, store, generator):
        fingerprint = random_fingerprint(1)
        with pytest.raises(PostNotFound):
            store.insert_signature(999, fingerprint, generator.generate(fingerprint))
        assert store.signatures.count() == 0

    def test_candidates_share_a_word(self, store, signed, generator):
        a, fingerprint = signed("a", 1)
        b, _ = signed("b", 2, fingerprint=flip_bits(fingerprint, 8))
        signed("c", 3)

        query = generator.generate(flip_bits(fingerprint, 4, seed=9))
        candidate_ids = [c.post_id for c in store.find_candidates(query)]
        assert a.id in candidate_ids
        assert b.id in candidate_ids
        assert candidate_ids == sorted(set(candidate_ids))

    def test_candidates_complete(self, store, signed, generator):
        """Every stored signature sharing a word comes back."""
        stored = [signed(f"p{i}", i) for i in range(20)]
        for post, fingerprint in stored:
            words = generator.generate(fingerprint)
            assert post.id in [c.post_id for c in store.find_candidates(words)]

    def test_candidates_ignore_none(self, store, signed):
        signed("a", 1)
        assert store.find_candidates((None,) * 32) == []

    def test_candidates_match_by_slot(self, store, signed, generator):
        """A word in one slot never matches the same bits in another slot."""
        post, fingerprint = signed("a", 1)
        words = generator.generate(fingerprint)
        word = next(w for w in words if w is not None)
        slot = word >> 16
        moved = (((slot + 1) % 32) << 16) | (word & 0xFFFF)
        if moved not in words:
            assert store.find_candidates([moved]) == []

    def test_update_signature(self, store, signed, generator):
        post, old = signed("a", 1)
        new = random_fingerprint(2)
        assert store.update_signature(post.id, new, generator.generate(new))
        assert store.find_signature(post.id).fingerprint == new
        for candidate in store.find_candidates(generator.generate(old)):
            assert candidate.fingerprint == new

    def test_update_missing_signature(self, store, generator):
        post = store.create_post(_video_post("clip"))
        fingerprint = random_fingerprint(1)
        assert not store.update_signature(post.id, fingerprint, generator.generate(fingerprint))

    def test_delete_signature(self, store, signed, generator):
        post, fingerprint = signed("a", 1)
        assert store.delete_signature(post.id)
        assert not store.delete_signature(post.id)
        assert store.find_candidates(generator.generate(fingerprint)) == []
        assert store.get_stats()['posting_rows'] == 0

    def test_cascade_on_post_delete(self, store, signed, generator):
        a, fa = signed("a", 1)
        b, fb = signed("b", 2)
        store.delete_post(a.id)

        assert store.find_signature(a.id) is None
        assert a.id not in [c.post_id for c in store.find_candidates(generator.generate(fa))]
        stats = store.get_stats()
        assert stats['signed_posts'] == 1
        assert stats['posting_rows'] == len({w for w in generator.generate(fb) if w is not None})


class TestSwap:

    def test_swap(self, store, signed, generator):
        a, fa = signed("a", 1)
        b, fb = signed("b", 2)
        store.swap_signatures(a.id, b.id)

        assert store.find_signature(a.id).fingerprint == fb
        assert store.find_signature(b.id).fingerprint == fa
        found = {c.post_id: c.fingerprint for c in store.find_candidates(generator.generate(fa))}
        assert found[b.id] == fa
        assert a.id not in found or found[a.id] == fb

    def test_swap_one_sided_rejected(self, store, signed, generator):
        """A signature never moves onto a post whose type has none."""
        a, fa = signed("a", 1)
        video = store.create_post(_video_post("clip"))
        with pytest.raises(ValueError):
            store.swap_signatures(a.id, video.id)
        with pytest.raises(ValueError):
            store.swap_signatures(video.id, a.id)

        assert store.find_signature(a.id).fingerprint == fa
        assert store.find_signature(video.id) is None
        assert [c.post_id for c in store.find_candidates(generator.generate(fa))] == [a.id]

    def test_move_or_swap_moves_single_signature(self, store, signed):
        a, fa = signed("a", 1)
        video = store.create_post(_video_post("clip"))
        store.signatures.move_or_swap(a.id, video.id)

        assert store.find_signature(a.id) is None
        assert store.find_signature(video.id).fingerprint == fa

    def test_swap_neither_signed(self, store):
        first = store.create_post(_video_post("one"))
        second = store.create_post(_video_post("two"))
        store.swap_signatures(first.id, second.id)
        assert store.find_signature(first.id) is None
        assert store.find_signature(second.id) is None

    def test_swap_same_post(self, store, signed):
        a, fa = signed("a", 1)
        store.swap_signatures(a.id, a.id)
        assert store.find_signature(a.id).fingerprint == fa

    def test_swap_inside_failed_transaction(self, store, signed):
        a, fa = signed("a", 1)
        b, fb = signed("b", 2)
        with pytest.raises(RuntimeError):
            with store.transaction(exclusive=True) as conn:
                store.signatures.swap(a.id, b.id, conn=conn)
                raise RuntimeError("abort")
        assert store.find_signature(a.id).fingerprint == fa
        assert store.find_signature(b.id).fingerprint == fb


class TestMerge:

    def test_merge_keep_content(self, store, signed):
        a, fa = signed("a", 1)
        b, fb = signed("b", 2)
        merged = store.merge_posts(a.id, b.id)

        assert merged.id == b.id
        assert merged.checksum == b.checksum
        assert store.get_post(a.id) is None
        assert store.find_signature(a.id) is None
        assert store.find_signature(b.id).fingerprint == fb

    def test_merge_replace_content(self, store, signed):
        a, fa = signed("a", 1)
        b, fb = signed("b", 2)
        merged = store.merge_posts(a.id, b.id, replace_content=True)

        assert merged.id == b.id
        assert merged.checksum == a.checksum
        assert merged.created_at == b.created_at
        assert store.get_post(a.id) is None
        assert store.find_signature(b.id).fingerprint == fa
        assert store.find_post_by_checksum(a.checksum).id == b.id
        assert store.get_stats()['signed_posts'] == 1

    def test_merge_image_into_video(self, store, signed):
        a, fa = signed("a", 1)
        video = store.create_post(_video_post("clip"))
        merged = store.merge_posts(a.id, video.id, replace_content=True)

        assert merged.mime_type == 'image/png'
        assert store.find_signature(video.id).fingerprint == fa

    def test_merge_video_into_image(self, store, signed):
        a, _ = signed("a", 1)
        video = store.create_post(_video_post("clip"))
        merged = store.merge_posts(video.id, a.id, replace_content=True)

        assert merged.mime_type == video.mime_type
        assert store.find_signature(a.id) is None
        assert store.get_stats()['signed_posts'] == 0

    def test_merge_missing(self, store, signed):
        a, _ = signed("a", 1)
        with pytest.raises(PostNotFound):
            store.merge_posts(a.id, 999)
        with pytest.raises(PostNotFound):
            store.merge_posts(999, a.id)
        assert store.get_post(a.id) is not None

    def test_merge_into_self(self, store, signed):
        a, _ = signed("a", 1)
        with pytest.raises(ValueError):
            store.merge_posts(a.id, a.id)


class TestTransactions:

    def test_create_rolls_back_with_enclosing_transaction(self, store, generator):
        fingerprint = random_fingerprint(1)
        with pytest.raises(RuntimeError):
            with store.transaction(exclusive=True) as conn:
                store.create_post(_image_post("a"), fingerprint, generator.generate(fingerprint), conn=conn)
                raise RuntimeError("abort")
        assert store.get_stats()['total_posts'] == 0
        assert store.find_candidates(generator.generate(fingerprint)) == []


class TestMaintenance:

    def test_get_stats(self, store, signed, temp_db):
        signed("a", 1)
        store.create_post(_video_post("clip"))
        stats = store.get_stats()
        assert stats['total_posts'] == 2
        assert stats['signed_posts'] == 1
        assert 0 < stats['posting_rows'] <= 32
        assert stats['avg_words_per_signature'] == stats['posting_rows']
        assert stats['db_path'] == temp_db

    def test_clear(self, store, signed):
        signed("a", 1)
        signed("b", 2)
        store.clear()
        stats = store.get_stats()
        assert stats['total_posts'] == 0
        assert stats['signed_posts'] == 0
        assert stats['posting_rows'] == 0

    def test_vacuum(self, store, signed):
        signed("a", 1)
        store.vacuum()
        assert store.get_stats()['total_posts'] == 1


class TestGlobalStore:

    def test_singleton(self, temp_db):
        first = get_store(temp_db)
        assert get_store() is first
        reset_store()
        assert get_store(temp_db) is not first

    def test_default_path_from_config(self, temp_dir, monkeypatch):
        db_path = temp_dir / "env.db"
        monkeypatch.setenv('POSTMATCH_DB', str(db_path))
        assert get_store().db_path == str(db_path)
