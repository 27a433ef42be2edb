"""
Polygon utilities for converting masks to YOLO-seg / COCO polygons.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from annotix import config
from annotix.contours import trace_contour

logger = logging.getLogger(__name__)

Point = tuple[float, float]


def sq_segment_distance(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    """Squared distance from p to the segment a-b."""
    x, y = a[0], a[1]
    dx = b[0] - x
    dy = b[1] - y

    if dx != 0 or dy != 0:
        t = ((p[0] - x) * dx + (p[1] - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = b[0], b[1]
        elif t > 0:
            x += dx * t
            y += dy * t

    dx = p[0] - x
    dy = p[1] - y
    return dx * dx + dy * dy


def simplify_polygon(
    points: Sequence[Sequence[float]],
    tolerance: float = None,
) -> list[Point]:
    """
    Simplify a polyline using the Douglas-Peucker algorithm.

    For each chord first-last, the point farthest from it is kept when its
    squared distance exceeds tolerance², and both halves are processed the
    same way; otherwise the chord collapses to its endpoints. Runs on an
    explicit stack so long contours cannot exhaust the recursion limit.

    Args:
        points: Ordered (x, y) points, e.g. a traced contour
        tolerance: Approximation accuracy in pixels

    Returns:
        Simplified list of (x, y) points. Inputs of 4 points or fewer are
        returned unchanged.
    """
    if tolerance is None:
        tolerance = config.SIMPLIFY_TOLERANCE_PX

    pts = [(float(p[0]), float(p[1])) for p in points]
    if len(pts) <= 4:
        return pts

    sq_tolerance = tolerance * tolerance
    keep = [False] * len(pts)
    keep[0] = keep[-1] = True

    stack = [(0, len(pts) - 1)]
    while stack:
        first, last = stack.pop()
        max_sq_dist = sq_tolerance
        index = -1

        for i in range(first + 1, last):
            sq_dist = sq_segment_distance(pts[i], pts[first], pts[last])
            if sq_dist > max_sq_dist:
                max_sq_dist = sq_dist
                index = i

        if index > -1:
            keep[index] = True
            stack.append((first, index))
            stack.append((index, last))

    return [p for p, k in zip(pts, keep) if k]


def normalize_polygon(
    polygon: Sequence[Sequence[float]],
    width: int,
    height: int
) -> list[Point]:
    """
    Normalize polygon coordinates to [0, 1] range.

    Args:
        polygon: List of (x, y) pixel coordinates
        width: Image width
        height: Image height

    Returns:
        List of (x, y) normalized coordinates
    """
    return [(p[0] / width, p[1] / height) for p in polygon]


def polygon_to_flat_list(polygon: Sequence[Sequence[float]]) -> list[float]:
    """
    Flatten polygon to list of coordinates [x1, y1, x2, y2, ...].
    """
    result = []
    for p in polygon:
        result.extend([p[0], p[1]])
    return result


def flat_list_to_polygon(flat: Sequence[float]) -> list[Point]:
    """Inverse of polygon_to_flat_list."""
    if len(flat) % 2 != 0:
        raise ValueError(f"Odd number of coordinates: {len(flat)}")
    return [(flat[i], flat[i + 1]) for i in range(0, len(flat), 2)]


def polygon_area(polygon: Sequence[Sequence[float]]) -> float:
    """
    Calculate the area of a polygon using the shoelace formula.

    Args:
        polygon: List of (x, y) coordinates

    Returns:
        Area (in whatever units the coordinates are in)
    """
    n = len(polygon)
    if n < 3:
        return 0.0

    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += polygon[i][0] * polygon[j][1]
        area -= polygon[j][0] * polygon[i][1]

    return abs(area) / 2.0


def polygon_bbox(polygon: Sequence[Sequence[float]]) -> list[float]:
    """Enclosing box of a polygon as [x, y, width, height]."""
    if not polygon:
        return [0.0, 0.0, 0.0, 0.0]
    xs = [p[0] for p in polygon]
    ys = [p[1] for p in polygon]
    return [min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys)]


def closed_polygons(annotations) -> list[tuple[int, list[Point]]]:
    """(class_id, points) of every closed polygon annotation with at least 3 points."""
    result = []
    for ann in annotations:
        if ann.type != "polygon" or not ann.data.closed:
            continue
        if len(ann.data.points) < config.MIN_POLYGON_POINTS:
            continue
        result.append((ann.class_id, [(p[0], p[1]) for p in ann.data.points]))
    return result


def mask_to_polygon(
    mask: np.ndarray,
    tolerance: float = None,
    min_points: int = config.MIN_POLYGON_POINTS,
    max_points: int = None,
) -> list[Point]:
    """
    Convert binary mask to polygon (pixel coordinates).

    Traces the boundary of the first region and simplifies it.

    Args:
        mask: Binary mask (H, W)
        tolerance: Simplification tolerance in pixels
        min_points: Minimum number of points for a usable polygon
        max_points: Contour length cap passed to the tracer

    Returns:
        List of (x, y) pixel coordinates; empty when the mask has no
        foreground or the region is too small to form a polygon
    """
    contour = trace_contour(mask, max_points=max_points)
    if not contour:
        return []

    polygon = simplify_polygon(contour, tolerance)

    if len(polygon) < min_points:
        logger.debug(f"Mask region collapsed to {len(polygon)} points, skipping")
        return []

    return polygon


def mask_to_yolo_polygon(
    mask: np.ndarray,
    width: int,
    height: int,
    tolerance: float = None,
) -> Optional[list[float]]:
    """
    Convert binary mask to YOLO-seg format polygon.

    Args:
        mask: Binary mask (H, W)
        width: Image width (for normalization)
        height: Image height (for normalization)
        tolerance: Simplification tolerance in pixels

    Returns:
        Flat list [x1, y1, x2, y2, ...] with normalized coordinates [0,1]
        or None if no valid polygon
    """
    polygon = mask_to_polygon(mask, tolerance)

    if not polygon:
        return None

    normalized = normalize_polygon(polygon, width, height)

    # Clamp to [0, 1] range (in case of rounding issues)
    clamped = [
        (max(0.0, min(1.0, x)), max(0.0, min(1.0, y)))
        for x, y in normalized
    ]

    return polygon_to_flat_list(clamped)


def validate_yolo_polygon(polygon: list[float]) -> tuple[bool, str]:
    """
    Validate a YOLO-seg format polygon.

    Args:
        polygon: Flat list [x1, y1, x2, y2, ...]

    Returns:
        (is_valid, error_message)
    """
    if polygon is None:
        return False, "Polygon is None"

    if len(polygon) < 6:  # At least 3 points
        return False, f"Too few coordinates: {len(polygon)} (need at least 6)"

    if len(polygon) % 2 != 0:
        return False, f"Odd number of coordinates: {len(polygon)}"

    # Check all values are in [0, 1]
    for i, val in enumerate(polygon):
        if not isinstance(val, (int, float)):
            return False, f"Non-numeric value at index {i}: {val}"
        if val < 0 or val > 1:
            return False, f"Value out of range [0,1] at index {i}: {val}"

    return True, "OK"
