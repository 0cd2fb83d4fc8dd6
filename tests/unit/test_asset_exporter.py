"""Unit tests for asset export conversions."""

import io

import pytest
from PIL import Image

from models.asset import AssetContent, AssetKind, GeneratedAsset
from services.asset_exporter import export_asset
from services.background_stripper import strip_white_background


def _asset(data: bytes, kind: AssetKind = AssetKind.STICKER, mime_type: str = "image/png") -> GeneratedAsset:
    return GeneratedAsset(
        id="abc123xyz",
        content=AssetContent(data=data, mime_type=mime_type),
        kind=kind,
        source_prompt="red balloon",
        is_motion=kind.is_motion,
    )


def test_png_export_keeps_transparency(sticker_png):
    asset = _asset(strip_white_background(sticker_png))

    exported = export_asset(asset, "png")

    img = Image.open(io.BytesIO(exported.data))
    assert img.format == "PNG"
    assert img.convert("RGBA").getpixel((0, 0))[3] == 0
    assert exported.filename == "forge-sticker-abc123xyz.png"
    assert exported.media_type == "image/png"


def test_jpeg_export_flattens_onto_white(sticker_png):
    asset = _asset(strip_white_background(sticker_png), kind=AssetKind.PNG_ELEMENT)

    exported = export_asset(asset, "jpeg")

    img = Image.open(io.BytesIO(exported.data))
    assert img.format == "JPEG"
    assert img.mode == "RGB"
    corner = img.getpixel((0, 0))
    assert all(channel > 240 for channel in corner)
    assert exported.filename == "forge-png-element-abc123xyz.jpeg"
    assert exported.media_type == "image/jpeg"


def test_jpg_alias(black_png):
    exported = export_asset(_asset(black_png), "JPG")

    assert exported.filename.endswith(".jpeg")


def test_webp_export(black_png):
    exported = export_asset(_asset(black_png, kind=AssetKind.SHAPE_3D), "webp")

    assert Image.open(io.BytesIO(exported.data)).format == "WEBP"
    assert exported.filename == "forge-3d-shape-abc123xyz.webp"


def test_motion_exports_original_mp4_regardless_of_format():
    asset = _asset(b"mp4-bytes", kind=AssetKind.GIF, mime_type="video/mp4")

    exported = export_asset(asset, "png")

    assert exported.data == b"mp4-bytes"
    assert exported.filename == "forge-abc123xyz.mp4"
    assert exported.media_type == "video/mp4"


def test_unknown_format_is_rejected(black_png):
    with pytest.raises(ValueError, match="Unsupported format"):
        export_asset(_asset(black_png), "tiff")


def test_unreadable_image_is_rejected():
    with pytest.raises(ValueError, match="not a readable image"):
        export_asset(_asset(b"garbage"), "png")
