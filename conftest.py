"""Pytest configuration shared by the matcher tests"""
import io

import numpy as np
import pytest
from PIL import Image

from slidematch.samples import make_sample_pair


def _encode_png(array: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    image = Image.fromarray(np.ascontiguousarray(array, dtype=np.uint8))
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def to_png():
    """Encode an (H, W[, 3|4]) uint8 array as PNG bytes"""
    return _encode_png


@pytest.fixture(scope="session")
def sample_pair():
    return make_sample_pair(seed=0)


@pytest.fixture
def sample_files(tmp_path, sample_pair):
    """Write the sample pair to disk; returns (piece, opaque piece, background)"""
    piece_path = tmp_path / "cut.png"
    opaque_path = tmp_path / "cut_opaque.png"
    background_path = tmp_path / "bg.png"
    piece_path.write_bytes(sample_pair.piece_png)
    opaque_path.write_bytes(sample_pair.opaque_piece_png)
    background_path.write_bytes(sample_pair.background_png)
    return piece_path, opaque_path, background_path


@pytest.fixture
def edge_pattern():
    """A reproducible 10x10 binary edge pattern holding both 0 and 255"""
    rng = np.random.default_rng(7)
    pattern = (rng.random((10, 10)) < 0.35).astype(np.uint8) * 255
    pattern[0, 0] = 255
    pattern[9, 9] = 0
    return pattern
