"""
PNG mask export (U-Net style).

Every image gets a single-channel PNG in masks/ whose pixel value encodes the
class: min(255, class_id * 10), background 0. Later annotations paint over
earlier ones.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from annotix.bundle import Bundle
from annotix.masks import decode_mask, encode_png, polygon_to_mask
from annotix.models import ImageRecord, Project

logger = logging.getLogger(__name__)


def class_value(class_id: int) -> int:
    """Gray level of a class in the combined mask."""
    return min(255, max(0, class_id * 10))


def combined_mask(image: ImageRecord) -> tuple[np.ndarray, int]:
    """
    Paint all mask (and closed polygon) annotations of an image into one
    class-index mask.

    Returns:
        (uint8 array of shape (H, W), number of annotations painted)

    Raises:
        MalformedRaster: If a mask cannot be decoded or has the wrong size
    """
    combined = np.zeros((image.height, image.width), dtype=np.uint8)
    count = 0

    for ann in image.annotations:
        if ann.type == "mask":
            fg = decode_mask(ann.data.raster, image.width, image.height)
        elif ann.type == "polygon" and ann.data.closed and len(ann.data.points) >= 3:
            fg = polygon_to_mask(ann.data.points, image.width, image.height).astype(bool)
        else:
            continue

        combined[fg] = class_value(ann.class_id)
        count += 1

    return combined, count


def classes_mapping(project: Project) -> str:
    return "\n".join(
        f"{cls.id}: {cls.name} (color: {cls.color})" for cls in project.classes
    )


def write_masks_png(
    bundle: Bundle,
    project: Project,
    images: Sequence[ImageRecord],
    masks: Sequence[Optional[tuple[np.ndarray, int]]],
) -> list[int]:
    """
    Write images/, masks/ and classes.txt.

    Args:
        masks: Per-image result of combined_mask, or None where conversion
            failed (an empty mask is written instead)
    """
    counts = []
    for image, result in zip(images, masks):
        bundle.write_image(f"images/{image.filename}", image)

        if result is None:
            mask = np.zeros((image.height, image.width), dtype=np.uint8)
            count = 0
        else:
            mask, count = result

        bundle.write_bytes(f"masks/{image.stem}.png", encode_png(mask))
        counts.append(count)

    bundle.write_text("classes.txt", classes_mapping(project))
    return counts
