"""
Pytest configuration and shared fixtures for test suite.
"""

import io
import shutil
import tempfile
from pathlib import Path

import imagehash
import numpy as np
import pytest
from PIL import Image

from postmatch.database import PostStore, reset_store
from postmatch.lsh import IndexGenerator
from postmatch.user_config import get_user_config


def make_texture(seed: int, size=(128, 128)) -> Image.Image:
    """
    Render a smooth, structured RGB image.

    Sums of a few low-frequency sinusoids at random angles give gradients
    that survive resizing and JPEG recompression, which flat fills do not.
    """
    rng = np.random.default_rng(seed)
    width, height = size
    y, x = np.mgrid[0:height, 0:width] / float(max(width, height))
    field = np.zeros((height, width))
    for _ in range(4):
        fx, fy = rng.uniform(1.0, 4.0, 2) * rng.choice([-1.0, 1.0], 2)
        phase = rng.uniform(0, 2 * np.pi)
        field += np.sin(2 * np.pi * (fx * x + fy * y) + phase)
    gray = (field - field.min()) / (field.max() - field.min()) * 255.0
    rgb = np.stack([gray, gray * 0.9 + 10, 255.0 - gray * 0.5], axis=-1)
    return Image.fromarray(np.clip(rgb, 0, 255).astype(np.uint8))


def encode(img: Image.Image, fmt: str = 'PNG', **kwargs) -> bytes:
    """Serialize an image to bytes."""
    buf = io.BytesIO()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()


def random_fingerprint(seed: int) -> imagehash.ImageHash:
    """A random 512-bit fingerprint."""
    rng = np.random.default_rng(seed)
    return imagehash.ImageHash(rng.random((32, 16)) < 0.5)


def flip_bits(fingerprint: imagehash.ImageHash, count: int, seed: int = 0) -> imagehash.ImageHash:
    """Copy of a fingerprint with `count` distinct bits inverted."""
    rng = np.random.default_rng(seed)
    bits = fingerprint.hash.flatten().copy()
    positions = rng.choice(bits.size, size=count, replace=False)
    bits[positions] = ~bits[positions]
    return imagehash.ImageHash(bits.reshape(fingerprint.hash.shape))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_config(temp_dir, monkeypatch):
    """Point user configuration at an empty directory for every test."""
    monkeypatch.setenv('POSTMATCH_CONFIG_DIR', str(temp_dir / 'config'))
    for var in ('POSTMATCH_SIMILARITY_THRESHOLD', 'POSTMATCH_RANK_WORKERS', 'POSTMATCH_DB'):
        monkeypatch.delenv(var, raising=False)
    get_user_config().reload()
    reset_store()
    yield get_user_config()
    get_user_config().reload()
    reset_store()


@pytest.fixture
def temp_db(temp_dir):
    """Path for a temporary database file."""
    return str(temp_dir / "posts.db")


@pytest.fixture
def store(temp_db):
    """Fresh PostStore on a temporary database."""
    return PostStore(temp_db)


@pytest.fixture
def generator():
    """LSH word generator with default parameters."""
    return IndexGenerator()


@pytest.fixture
def texture():
    """A 128x128 textured image."""
    return make_texture(1)


@pytest.fixture
def other_texture():
    """A textured image unrelated to `texture`."""
    return make_texture(2)


@pytest.fixture
def png_bytes(texture):
    return encode(texture, 'PNG')


@pytest.fixture
def jpeg_bytes(texture):
    """The same picture as png_bytes, recompressed as JPEG."""
    return encode(texture, 'JPEG', quality=90)


@pytest.fixture
def other_png_bytes(other_texture):
    return encode(other_texture, 'PNG')


@pytest.fixture
def sample_files(temp_dir, png_bytes, jpeg_bytes, other_png_bytes):
    """
    Write sample uploads to disk.

    Returns:
        dict with paths to:
        - original.png (textured image)
        - recompressed.jpg (same picture, JPEG)
        - unrelated.png (different picture)
        - corrupted.png (not an image)
        - clip.mp4 (video, never signed)
    """
    files = {
        'original': (temp_dir / 'original.png', png_bytes),
        'recompressed': (temp_dir / 'recompressed.jpg', jpeg_bytes),
        'unrelated': (temp_dir / 'unrelated.png', other_png_bytes),
        'corrupted': (temp_dir / 'corrupted.png', b'not an image'),
        'video': (temp_dir / 'clip.mp4', b'\x00\x00\x00\x18ftypmp42 not really'),
    }
    for path, data in files.values():
        path.write_bytes(data)
    return {name: str(path) for name, (path, _) in files.items()}
