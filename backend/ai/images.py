"""
Idea images are sent to Gemini as one normalized JPEG: upright, opaque,
no larger than MAX_EDGE on either side.
"""

import io
import logging
from typing import NamedTuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

MAX_EDGE = 1024
JPEG_QUALITY = 85
MODEL_IMAGE_MIME = "image/jpeg"


class ModelImage(NamedTuple):
    data: bytes
    mime_type: str


def _flatten(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel
    if img.mode == "P":
        img = img.convert("RGBA")
    if img.mode in ("RGBA", "LA"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.getchannel("A"))
        return background
    return img if img.mode == "RGB" else img.convert("RGB")


def prepare_idea_image(image_bytes: bytes, max_edge: int = MAX_EDGE) -> ModelImage:
    """
    Normalize an uploaded idea image for the model.

    Phone photos are rotated by their EXIF orientation before resizing.
    Bytes Pillow cannot decode are passed through and left to the model.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = _flatten(ImageOps.exif_transpose(img))
        if max(img.size) > max_edge:
            img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)

        output = io.BytesIO()
        img.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"[AI] image could not be normalized ({e}), sending the upload as-is")
        return ModelImage(image_bytes, MODEL_IMAGE_MIME)

    data = output.getvalue()
    logger.info(f"[AI] image normalized to {img.size[0]}x{img.size[1]} JPEG, {len(data) / 1024:.1f}KB")
    return ModelImage(data, MODEL_IMAGE_MIME)
