"""
Mask utilities - raster decoding/encoding and mask operations.

Masks are stored as PNG images (base64 or data: URLs) whose alpha channel
marks the foreground.
"""

import base64
import binascii
import io
from functools import lru_cache
from typing import Optional, Sequence

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from annotix import config
from annotix.errors import MalformedRaster

DATA_URL_PREFIX = "data:image/png;base64,"


def _raster_bytes(raster: str) -> bytes:
    """Strip an optional data: URL header and decode the base64 payload."""
    if raster.startswith("data:"):
        _, _, raster = raster.partition(",")
    try:
        return base64.b64decode(raster, validate=False)
    except (binascii.Error, ValueError) as e:
        raise MalformedRaster(f"Mask is not valid base64: {e}") from e


@lru_cache(maxsize=32)
def _decode_cached(raster: str, threshold: int) -> np.ndarray:
    try:
        img = Image.open(io.BytesIO(_raster_bytes(raster)))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise MalformedRaster(f"Mask is not a readable image: {e}") from e

    if "A" in img.getbands() or img.mode == "P":
        alpha = np.asarray(img.convert("RGBA"))[:, :, 3]
    else:
        # No alpha channel: treat luminance as coverage
        alpha = np.asarray(img.convert("L"))

    mask = alpha > threshold
    mask.setflags(write=False)
    return mask


def decode_mask(
    raster: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    threshold: int = None,
) -> np.ndarray:
    """
    Decode an embedded mask raster to a boolean foreground array.

    Args:
        raster: PNG as base64 or data: URL
        width: Expected width (checked if given)
        height: Expected height (checked if given)
        threshold: Alpha threshold; foreground is alpha > threshold

    Returns:
        Read-only boolean array of shape (H, W)

    Raises:
        MalformedRaster: If the raster cannot be decoded or its size does not
            match the expected dimensions
    """
    if threshold is None:
        threshold = config.MASK_ALPHA_THRESHOLD

    mask = _decode_cached(raster, threshold)

    h, w = mask.shape
    if (width is not None and width != w) or (height is not None and height != h):
        raise MalformedRaster(f"Mask is {w}x{h} but the image is {width}x{height}")

    return mask


def encode_mask(mask: np.ndarray, color: tuple[int, int, int] = (255, 255, 255)) -> str:
    """
    Encode a binary mask as a PNG data URL with foreground in the alpha channel.

    Args:
        mask: Binary mask (H, W)
        color: RGB fill for foreground pixels

    Returns:
        data:image/png;base64,... string
    """
    if mask.ndim != 2:
        raise ValueError(f"Mask must be 2D, got shape {mask.shape}")

    h, w = mask.shape
    rgba = np.zeros((h, w, 4), dtype=np.uint8)
    fg = mask.astype(bool)
    rgba[fg, 0] = color[0]
    rgba[fg, 1] = color[1]
    rgba[fg, 2] = color[2]
    rgba[fg, 3] = 255

    buffer = io.BytesIO()
    Image.fromarray(rgba, mode="RGBA").save(buffer, format="PNG")
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def mask_to_bbox(mask: np.ndarray) -> list[float]:
    """
    Get bounding box from binary mask.

    Args:
        mask: Binary mask of shape (H, W)

    Returns:
        Bounding box [x1, y1, x2, y2] in pixel coordinates
    """
    rows = np.any(mask, axis=1)
    cols = np.any(mask, axis=0)

    if not rows.any():
        return [0, 0, 0, 0]

    y1, y2 = np.where(rows)[0][[0, -1]]
    x1, x2 = np.where(cols)[0][[0, -1]]

    return [float(x1), float(y1), float(x2 + 1), float(y2 + 1)]


def mask_area(mask: np.ndarray) -> int:
    """Get the area (number of pixels) of a mask."""
    return int(np.sum(mask > 0))


def polygon_to_mask(points: Sequence[Sequence[float]], width: int, height: int) -> np.ndarray:
    """
    Rasterize a polygon to a binary mask.

    Args:
        points: Polygon vertices in pixel coordinates
        width: Mask width
        height: Mask height

    Returns:
        uint8 mask of shape (H, W) with values 0/1
    """
    mask = np.zeros((height, width), dtype=np.uint8)
    if len(points) < 3:
        return mask

    pts = np.round(np.asarray(points, dtype=np.float64)).astype(np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(mask, [pts], 1)
    return mask


def paint_stroke(
    mask: np.ndarray,
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    brush_size: float,
    erase: bool = False,
) -> None:
    """
    Paint (or erase) a round brush stroke from (x0, y0) to (x1, y1) in place.

    Args:
        mask: uint8 mask (H, W)
        brush_size: Brush diameter in pixels
        erase: Clear instead of set
    """
    value = 0 if erase else 1
    radius = max(1, int(round(brush_size / 2)))
    p0 = (int(round(x0)), int(round(y0)))
    p1 = (int(round(x1)), int(round(y1)))

    cv2.circle(mask, p0, radius, value, thickness=-1)
    if p0 != p1:
        cv2.line(mask, p0, p1, value, thickness=radius * 2)
        cv2.circle(mask, p1, radius, value, thickness=-1)


def encode_png(image: np.ndarray) -> bytes:
    """Encode a single-channel or BGR array as PNG bytes."""
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return buffer.tobytes()
