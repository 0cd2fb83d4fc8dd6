"""Near-white background keying for isolated-object assets.

This is a plain threshold filter, not segmentation. It only works when the
generator honoured the isolation clause and drew the subject on pure white.
"""

import asyncio
import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Catches near-white compression artifacts around the subject
DEFAULT_THRESHOLD = 245


def strip_white_background(image_bytes: bytes, threshold: int = DEFAULT_THRESHOLD) -> bytes:
    """Make every near-white pixel fully transparent.

    A pixel whose red, green and blue channels are all >= ``threshold`` gets
    alpha 0. Every other pixel is left alone. The result is re-encoded as PNG.

    Args:
        image_bytes: Encoded image (any format Pillow can read)
        threshold: Channel value (0-255) from which a pixel counts as white

    Returns:
        PNG bytes, or ``image_bytes`` unchanged if decoding fails
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            rgba = np.array(img.convert("RGBA"))
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Background removal skipped, could not decode image: {e}")
        return image_bytes

    rgb = rgba[:, :, :3]
    white = np.all(rgb >= threshold, axis=2)
    rgba[white, 3] = 0

    buffer = io.BytesIO()
    Image.fromarray(rgba).save(buffer, format="PNG")
    logger.debug(f"Keyed out {int(white.sum())}/{white.size} pixels")
    return buffer.getvalue()


async def strip_white_background_async(
    image_bytes: bytes, threshold: int = DEFAULT_THRESHOLD
) -> bytes:
    """Run :func:`strip_white_background` off the event loop."""
    return await asyncio.to_thread(strip_white_background, image_bytes, threshold)
