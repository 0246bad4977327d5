import io

import pytest
from hypothesis import given, settings, strategies as st
from PIL import Image

from photolog.exceptions import DecodeError
from photolog.services.transcoder import MediaTranscoder
from tests.conftest import make_image_bytes


def _open(data):
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_large_image_capped(transcoder):
    result = transcoder.transcode(make_image_bytes(3000, 1500))
    display = _open(result.display_bytes)
    assert display.format == "JPEG"
    assert display.size == (2000, 1000)
    assert result.dimensions == "3000x1500"


def test_small_image_not_enlarged(transcoder):
    result = transcoder.transcode(make_image_bytes(400, 300))
    assert _open(result.display_bytes).size == (400, 300)
    assert result.dimensions == "400x300"


def test_thumbnail_is_square(transcoder):
    result = transcoder.transcode(make_image_bytes(400, 300))
    thumb = _open(result.thumbnail_bytes)
    assert thumb.format == "JPEG"
    assert thumb.size == (200, 200)


def test_tiny_image_thumbnail_upscaled(transcoder):
    result = transcoder.transcode(make_image_bytes(50, 20))
    assert _open(result.thumbnail_bytes).size == (200, 200)
    assert _open(result.display_bytes).size == (50, 20)


@pytest.mark.parametrize("fmt,mode", [("PNG", "RGBA"), ("PNG", "LA"), ("PNG", "L"), ("GIF", "RGB")])
def test_non_rgb_sources_become_jpeg(transcoder, fmt, mode):
    raw = make_image_bytes(120, 80, fmt=fmt, mode=mode)
    result = transcoder.transcode(raw)
    display = _open(result.display_bytes)
    assert display.mode == "RGB"
    assert display.size == (120, 80)


def test_transparency_flattened_on_white(transcoder):
    image = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    display = _open(transcoder.transcode(buf.getvalue()).display_bytes)
    r, g, b = display.getpixel((5, 5))
    assert min(r, g, b) > 240


def test_custom_limits():
    transcoder = MediaTranscoder(display_max_side=100, thumbnail_size=32)
    result = transcoder.transcode(make_image_bytes(400, 300))
    assert _open(result.display_bytes).size == (100, 75)
    assert _open(result.thumbnail_bytes).size == (32, 32)


@pytest.mark.parametrize("raw", [b"", b"not an image at all", make_image_bytes(100, 100)[:60]])
def test_undecodable_input(transcoder, raw):
    with pytest.raises(DecodeError):
        transcoder.transcode(raw)


@settings(max_examples=15, deadline=None)
@given(st.integers(min_value=1, max_value=2600), st.integers(min_value=1, max_value=2600))
def test_transcode_bounds(width, height):
    """Display fits the cap without enlarging; thumbnail is always exact"""
    result = MediaTranscoder().transcode(make_image_bytes(width, height))
    display = _open(result.display_bytes)
    assert max(display.size) <= 2000
    assert display.size[0] <= width and display.size[1] <= height
    if max(width, height) <= 2000:
        assert display.size == (width, height)
    assert _open(result.thumbnail_bytes).size == (200, 200)
    assert result.dimensions == f"{width}x{height}"
