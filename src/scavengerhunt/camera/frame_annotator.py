"""
Snapshot Annotation Utility

Draws the "You found the X!" caption on found-item snapshots and encodes
them for the end-of-game photo grid.
"""

import logging
from io import BytesIO

import numpy as np
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

# Cached font instance
_cached_font: "ImageFont.FreeTypeFont | ImageFont.ImageFont | None" = None

CAPTION_BACKGROUND = (0, 0, 0)
CAPTION_COLOR = (255, 255, 255)


def _get_font(size: int = 18) -> "ImageFont.FreeTypeFont | ImageFont.ImageFont":
    """Get font for caption rendering, with caching and fallback."""
    global _cached_font
    if _cached_font is not None:
        return _cached_font

    try:
        _cached_font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size
        )
    except (OSError, IOError):
        logger.debug("DejaVuSans-Bold not found, using PIL default font")
        _cached_font = ImageFont.load_default()

    return _cached_font


def found_caption(display_label: str) -> str:
    """Caption shown under a found-item photo."""
    return f"You found the {display_label}!"


def annotate_snapshot(frame: np.ndarray, caption: str) -> np.ndarray:
    """
    Draw a caption banner along the bottom of a snapshot.

    Args:
        frame: RGB numpy array (H, W, 3)
        caption: Text to draw

    Returns:
        Annotated frame as numpy array (same shape as input)
    """
    if not caption:
        return frame.copy()

    img = Image.fromarray(frame)
    draw = ImageDraw.Draw(img)
    font = _get_font()

    h = frame.shape[0]
    left, top, right, bottom = draw.textbbox((0, 0), caption, font=font)
    text_h = bottom - top
    banner_top = max(h - text_h - 12, 0)

    draw.rectangle([0, banner_top, frame.shape[1], h], fill=CAPTION_BACKGROUND)
    draw.text((6, banner_top + 6 - top), caption, fill=CAPTION_COLOR, font=font)

    return np.array(img)


def snapshot_to_jpeg(frame: np.ndarray, caption: str = "", quality: int = 85) -> bytes:
    """
    Annotate a snapshot and encode as JPEG bytes.

    Args:
        frame: RGB numpy array (H, W, 3)
        caption: Optional caption banner
        quality: JPEG quality (1-100)

    Returns:
        JPEG-encoded bytes
    """
    annotated = annotate_snapshot(frame, caption)
    img = Image.fromarray(annotated)
    buf = BytesIO()
    img.save(buf, "JPEG", quality=quality)
    return buf.getvalue()
