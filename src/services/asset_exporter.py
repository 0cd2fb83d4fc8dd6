"""Convert generated assets to downloadable files."""

import io
import logging
from dataclasses import dataclass

from PIL import Image

from models.asset import GeneratedAsset

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}
LOSSY_QUALITY = 90


@dataclass(frozen=True)
class ExportedFile:
    data: bytes
    filename: str
    media_type: str


def export_asset(asset: GeneratedAsset, fmt: str = "png") -> ExportedFile:
    """Render ``asset`` in the requested format.

    JPEG has no alpha channel, so transparent assets are flattened onto white.
    Motion assets are always returned as their original MP4 bytes.

    Args:
        asset: Generated asset
        fmt: One of ``png``, ``jpeg``, ``webp`` (``jpg`` accepted)

    Returns:
        ExportedFile with bytes, download filename and media type

    Raises:
        ValueError: For unknown formats or undecodable image content
    """
    if asset.is_motion:
        return ExportedFile(
            data=asset.content.data,
            filename=f"forge-{asset.id}.mp4",
            media_type=asset.content.mime_type or "video/mp4",
        )

    fmt = fmt.lower()
    if fmt == "jpg":
        fmt = "jpeg"
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported format '{fmt}'. Supported: {', '.join(EXPORT_FORMATS)}")

    try:
        with Image.open(io.BytesIO(asset.content.data)) as img:
            rgba = img.convert("RGBA")
    except OSError as e:
        raise ValueError(f"Asset {asset.id} is not a readable image: {e}")

    buffer = io.BytesIO()
    if fmt == "jpeg":
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        background.save(buffer, format="JPEG", quality=LOSSY_QUALITY)
    elif fmt == "webp":
        rgba.save(buffer, format="WEBP", quality=LOSSY_QUALITY)
    else:
        rgba.save(buffer, format="PNG")

    filename = f"forge-{asset.kind.slug}-{asset.id}.{fmt}"
    logger.debug(f"Exported {asset.id} as {fmt} ({buffer.tell()} bytes)")
    return ExportedFile(data=buffer.getvalue(), filename=filename, media_type=EXPORT_FORMATS[fmt])
