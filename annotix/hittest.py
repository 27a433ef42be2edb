"""
Hit-testing of annotations: body containment and handle proximity.

All coordinates are image pixels. Handle thresholds are given in screen
pixels and divided by the zoom, so handles keep a constant on-screen size.
"""

import math
from typing import Optional, Sequence

from annotix import config
from annotix.models import Annotation, BBoxData, ObbData
from annotix.transform import to_local, from_local

RESIZE_HANDLES = ("nw", "ne", "se", "sw", "n", "s", "e", "w")


def point_in_polygon(x: float, y: float, points: Sequence[Sequence[float]]) -> bool:
    """
    Even-odd ray casting.

    A point exactly on an edge follows the strict `x <` crossing rule: edges
    at the minimum x / minimum y of a shape count as inside, edges at the
    maximum x / maximum y as outside.
    """
    inside = False
    n = len(points)
    j = n - 1
    for i in range(n):
        xi, yi = points[i][0], points[i][1]
        xj, yj = points[j][0], points[j][1]

        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i

    return inside


def point_in_bbox(x: float, y: float, box: BBoxData) -> bool:
    return box.x <= x <= box.x + box.width and box.y <= y <= box.y + box.height


def point_in_obb(x: float, y: float, box: ObbData) -> bool:
    local_x, local_y = to_local(x, y, box.cx, box.cy, box.angle)
    return abs(local_x) <= box.width / 2 and abs(local_y) <= box.height / 2


def contains(annotation: Annotation, x: float, y: float) -> bool:
    """Body hit for any annotation type that has an area."""
    if annotation.type == "bbox":
        return point_in_bbox(x, y, annotation.data)
    if annotation.type == "obb":
        return point_in_obb(x, y, annotation.data)
    if annotation.type == "polygon":
        return annotation.data.closed and point_in_polygon(x, y, annotation.data.points)
    if annotation.type == "keypoints":
        bbox = annotation.data.bbox
        return bbox is not None and point_in_bbox(x, y, bbox)
    return False


def find_topmost(
    annotations: Sequence[Annotation],
    x: float,
    y: float,
    types: Optional[Sequence[str]] = None,
) -> Optional[int]:
    """
    Index of the topmost annotation whose body contains (x, y).

    Iterates from last to first so the most recently drawn shape wins.
    """
    for i in range(len(annotations) - 1, -1, -1):
        ann = annotations[i]
        if types is not None and ann.type not in types:
            continue
        if contains(ann, x, y):
            return i
    return None


# ==================== Handles ====================

def bbox_handle_positions(box: BBoxData) -> dict[str, tuple[float, float]]:
    x, y, w, h = box.x, box.y, box.width, box.height
    return {
        "nw": (x, y),
        "ne": (x + w, y),
        "se": (x + w, y + h),
        "sw": (x, y + h),
        "n": (x + w / 2, y),
        "s": (x + w / 2, y + h),
        "e": (x + w, y + h / 2),
        "w": (x, y + h / 2),
    }


def obb_local_handle_positions(box: ObbData) -> dict[str, tuple[float, float]]:
    hw = box.width / 2
    hh = box.height / 2
    return {
        "nw": (-hw, -hh),
        "ne": (hw, -hh),
        "se": (hw, hh),
        "sw": (-hw, hh),
        "n": (0.0, -hh),
        "s": (0.0, hh),
        "e": (hw, 0.0),
        "w": (-hw, 0.0),
    }


def bbox_resize_handle(box: BBoxData, x: float, y: float, zoom: float = 1.0) -> Optional[str]:
    """Name of the resize handle under (x, y), if any."""
    threshold = config.HANDLE_SIZE_PX * 2 / zoom
    for name, (hx, hy) in bbox_handle_positions(box).items():
        if abs(x - hx) <= threshold and abs(y - hy) <= threshold:
            return name
    return None


def obb_resize_handle(box: ObbData, x: float, y: float, zoom: float = 1.0) -> Optional[str]:
    """Name of the resize handle under (x, y), tested in the box's local frame."""
    local_x, local_y = to_local(x, y, box.cx, box.cy, box.angle)
    threshold = config.HANDLE_SIZE_PX * 2 / zoom
    for name, (hx, hy) in obb_local_handle_positions(box).items():
        if abs(local_x - hx) <= threshold and abs(local_y - hy) <= threshold:
            return name
    return None


def rotation_handle_position(box: ObbData, zoom: float = 1.0) -> tuple[float, float]:
    """Image position of the rotation grip, above the box in its own frame."""
    distance = max(box.width, box.height) / 2 + config.ROTATION_HANDLE_OFFSET_PX / zoom
    return from_local(0.0, -distance, box.cx, box.cy, box.angle)


def hits_rotation_handle(box: ObbData, x: float, y: float, zoom: float = 1.0) -> bool:
    hx, hy = rotation_handle_position(box, zoom)
    # threshold is fixed in screen pixels
    threshold = config.ROTATION_HANDLE_THRESHOLD_PX / zoom
    return abs(x - hx) <= threshold and abs(y - hy) <= threshold


def nearest_vertex(
    points: Sequence[Sequence[float]],
    x: float,
    y: float,
    zoom: float = 1.0,
    threshold_px: float = config.VERTEX_THRESHOLD_PX,
) -> Optional[int]:
    """Index of the first vertex within the threshold of (x, y)."""
    threshold = threshold_px / zoom
    for i, p in enumerate(points):
        if math.hypot(x - p[0], y - p[1]) <= threshold:
            return i
    return None


def find_vertex(
    annotations: Sequence[Annotation],
    x: float,
    y: float,
    zoom: float = 1.0,
    selected: Optional[int] = None,
) -> tuple[Optional[int], Optional[int]]:
    """
    Locate a polygon vertex under (x, y).

    The selected polygon is checked first, then the others topmost first.

    Returns:
        (annotation index, vertex index) or (None, None)
    """
    order = []
    if selected is not None and annotations[selected].type == "polygon":
        order.append(selected)
    order.extend(
        i for i in range(len(annotations) - 1, -1, -1)
        if i != selected and annotations[i].type == "polygon"
    )

    for i in order:
        vertex = nearest_vertex(annotations[i].data.points, x, y, zoom)
        if vertex is not None:
            return i, vertex
    return None, None


def segment_distance(px: float, py: float, ax: float, ay: float, bx: float, by: float) -> float:
    """Euclidean distance from a point to the segment a-b."""
    dx = bx - ax
    dy = by - ay
    if dx == 0 and dy == 0:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def find_edge(
    points: Sequence[Sequence[float]],
    x: float,
    y: float,
    zoom: float = 1.0,
    closed: bool = True,
) -> Optional[int]:
    """
    Index i of the edge (i, i+1) closest to (x, y) within the threshold.

    A new vertex for that edge is inserted at position i + 1.
    """
    threshold = config.EDGE_INSERT_THRESHOLD_PX / zoom
    n = len(points)
    edge_count = n if closed else n - 1

    best = None
    best_dist = threshold
    for i in range(edge_count):
        a = points[i]
        b = points[(i + 1) % n]
        dist = segment_distance(x, y, a[0], a[1], b[0], b[1])
        if dist <= best_dist:
            best = i
            best_dist = dist
    return best


def find_keypoint(
    annotations: Sequence[Annotation],
    x: float,
    y: float,
    zoom: float = 1.0,
) -> tuple[Optional[int], Optional[int]]:
    """Topmost visible keypoint under (x, y) as (annotation index, keypoint index)."""
    threshold = config.VERTEX_THRESHOLD_PX / zoom
    for i in range(len(annotations) - 1, -1, -1):
        ann = annotations[i]
        if ann.type != "keypoints":
            continue
        for k, kp in enumerate(ann.data.keypoints):
            if kp.is_visible and math.hypot(x - kp.x, y - kp.y) <= threshold:
                return i, k
    return None, None


def find_landmark(
    annotations: Sequence[Annotation],
    x: float,
    y: float,
    zoom: float = 1.0,
) -> Optional[int]:
    """Topmost landmark within reach of (x, y)."""
    threshold = config.LANDMARK_THRESHOLD_PX / zoom
    for i in range(len(annotations) - 1, -1, -1):
        ann = annotations[i]
        if ann.type == "landmark" and math.hypot(x - ann.data.x, y - ann.data.y) <= threshold:
            return i
    return None
