"""
Boundary tracing for binary masks (Moore-neighbor).
"""

import logging
from typing import Optional

import numpy as np

from annotix import config
from annotix.errors import MalformedRaster

logger = logging.getLogger(__name__)

# 8-connected neighbor offsets (dx, dy), clockwise starting north
DIRECTIONS = [
    (0, -1), (1, -1), (1, 0), (1, 1),
    (0, 1), (-1, 1), (-1, 0), (-1, -1),
]


def first_foreground(mask: np.ndarray) -> Optional[tuple[int, int]]:
    """First foreground pixel in row-major order as (x, y), or None."""
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return None
    y = int(rows[0])
    x = int(np.flatnonzero(mask[y])[0])
    return x, y


def trace_contour(
    mask: np.ndarray,
    max_points: int = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> list[tuple[int, int]]:
    """
    Trace the outer boundary of the first foreground region of a mask.

    Starts at the first foreground pixel in row-major order and walks the
    boundary, turning back two directions after each step, until it returns
    to the start pixel.

    Args:
        mask: Binary mask (H, W); any non-zero value is foreground
        max_points: Safety cap on the contour length
        width: Declared raster width, checked against the mask shape
        height: Declared raster height, checked against the mask shape

    Returns:
        Ordered list of (x, y) pixel positions; empty if the mask has no
        foreground. A contour that hits the cap is returned truncated.

    Raises:
        MalformedRaster: If the mask is not 2D or does not match the
            declared dimensions
    """
    if max_points is None:
        max_points = config.CONTOUR_MAX_POINTS

    if mask.ndim != 2:
        raise MalformedRaster(f"Mask must be 2D, got shape {mask.shape}")

    h, w = mask.shape
    if (width is not None and width != w) or (height is not None and height != h):
        raise MalformedRaster(
            f"Mask is {w}x{h} but the image is declared as {width}x{height}"
        )

    fg = mask.astype(bool, copy=False)
    start = first_foreground(fg)
    if start is None:
        return []

    start_x, start_y = start
    x, y = start_x, start_y
    direction = 0
    contour = []

    while True:
        contour.append((x, y))

        found = False
        for i in range(8):
            check = (direction + i) % 8
            nx = x + DIRECTIONS[check][0]
            ny = y + DIRECTIONS[check][1]

            if 0 <= nx < w and 0 <= ny < h and fg[ny, nx]:
                x, y = nx, ny
                direction = (check + 6) % 8
                found = True
                break

        if not found:
            # isolated pixel
            break

        if len(contour) >= max_points:
            logger.warning(
                f"Contour reached the {max_points} point cap, keeping the truncated boundary"
            )
            break

        if x == start_x and y == start_y:
            break

    return contour
