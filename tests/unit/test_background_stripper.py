"""Unit tests for near-white background keying."""

import io

import numpy as np
import pytest
from PIL import Image

from services.background_stripper import strip_white_background, strip_white_background_async


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data)).convert("RGBA")


def test_white_pixels_become_transparent(white_png):
    result = _open(strip_white_background(white_png))

    assert (np.array(result)[:, :, 3] == 0).all()


def test_black_pixels_keep_their_alpha(black_png):
    result = _open(strip_white_background(black_png))

    assert (np.array(result) == [0, 0, 0, 255]).all()


def test_near_white_within_threshold_is_keyed(png_factory):
    data = png_factory((246, 250, 245))

    result = _open(strip_white_background(data, threshold=245))

    assert result.getpixel((0, 0))[3] == 0


def test_pixel_below_threshold_in_one_channel_is_kept(png_factory):
    data = png_factory((255, 255, 200))

    result = _open(strip_white_background(data, threshold=245))

    assert result.getpixel((0, 0)) == (255, 255, 200, 255)


def test_existing_alpha_is_preserved_for_coloured_pixels(png_factory):
    data = png_factory((10, 20, 30, 128), mode="RGBA")

    result = _open(strip_white_background(data))

    assert result.getpixel((0, 0)) == (10, 20, 30, 128)


def test_subject_survives_and_border_is_removed(sticker_png):
    result = _open(strip_white_background(sticker_png))

    assert result.getpixel((0, 0))[3] == 0
    assert result.getpixel((4, 4)) == (200, 20, 20, 255)


def test_output_is_png():
    jpeg = io.BytesIO()
    Image.new("RGB", (4, 4), (0, 0, 0)).save(jpeg, format="JPEG")

    result = strip_white_background(jpeg.getvalue())

    assert result.startswith(b"\x89PNG")


def test_undecodable_input_is_returned_unchanged():
    garbage = b"definitely not an image"

    assert strip_white_background(garbage) is garbage


@pytest.mark.unit
@pytest.mark.asyncio
async def test_async_variant_matches_sync(white_png):
    result = await strip_white_background_async(white_png)

    assert result == strip_white_background(white_png)
