from io import BytesIO

import pytest
from PIL import Image

from naming import CounterRegistry


def image_bytes(width=400, height=300, fmt="PNG", mode="RGB"):
    """Encode a solid-color test image."""
    buf = BytesIO()
    Image.new(mode, (width, height), "red" if mode == "RGB" else 0).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def counters():
    return CounterRegistry()


@pytest.fixture
def photo_bytes():
    return image_bytes()
