"""
YOLO format export.

Exports annotations to the Ultralytics YOLO family of formats:
- images/*.jpg (or images/{train,val}/ with a split)
- labels/*.txt, one per image, empty when the image has no annotations
- data.yaml
- classes.txt

Label lines by variant:
- detection: class xc yc w h
- obb: class x1 y1 x2 y2 x3 y3 x4 y4
- segmentation: class x1 y1 x2 y2 ...
- pose: class xc yc w h x1 y1 v1 x2 y2 v2 ...
All coordinates are normalized to [0, 1] and written with 6 decimals.
"""

import logging
import random
from pathlib import Path
from typing import Optional, Sequence

from annotix.bundle import Bundle
from annotix.models import BBoxData, ImageRecord, Project, COCO_17_SKELETON
from annotix.polygons import Point, normalize_polygon, polygon_to_flat_list
from annotix.transform import obb_corners

logger = logging.getLogger(__name__)

YOLO_VARIANTS = ("detection", "landmarks", "obb", "segmentation", "pose")


def _fmt(values: Sequence[float]) -> str:
    return " ".join(f"{v:.6f}" for v in values)


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


def normalize_bbox(box: BBoxData, width: int, height: int) -> tuple[float, float, float, float]:
    """
    Convert a pixel box to YOLO center format.

    Returns:
        (x_center, y_center, width, height), normalized by the image size
    """
    return (
        (box.x + box.width / 2) / width,
        (box.y + box.height / 2) / height,
        box.width / width,
        box.height / height,
    )


def denormalize_bbox(
    x_center: float, y_center: float, w: float, h: float, width: int, height: int
) -> BBoxData:
    """Inverse of normalize_bbox."""
    box_w = w * width
    box_h = h * height
    return BBoxData(
        x=x_center * width - box_w / 2,
        y=y_center * height - box_h / 2,
        width=box_w,
        height=box_h,
    )


# ==================== Label lines ====================

def detection_labels(image: ImageRecord) -> list[str]:
    lines = []
    for ann in image.annotations:
        if ann.type != "bbox":
            continue
        values = normalize_bbox(ann.data, image.width, image.height)
        lines.append(f"{ann.class_id} {_fmt(values)}")
    return lines


def landmark_labels(image: ImageRecord) -> list[str]:
    """Landmarks as 1-pixel boxes so they load as a detection dataset."""
    lines = []
    for ann in image.annotations:
        if ann.type != "landmark":
            continue
        values = (
            ann.data.x / image.width,
            ann.data.y / image.height,
            1 / image.width,
            1 / image.height,
        )
        lines.append(f"{ann.class_id} {_fmt(values)}")
    return lines


def obb_labels(image: ImageRecord) -> list[str]:
    lines = []
    for ann in image.annotations:
        if ann.type != "obb":
            continue
        box = ann.data
        coords = []
        for x, y in obb_corners(box.cx, box.cy, box.width, box.height, box.angle):
            coords.extend([_clamp01(x / image.width), _clamp01(y / image.height)])
        lines.append(f"{ann.class_id} {_fmt(coords)}")
    return lines


def segmentation_labels(
    image: ImageRecord,
    polygons: Sequence[tuple[int, Sequence[Point]]],
) -> list[str]:
    """
    Label lines for pixel-space polygons.

    Args:
        image: Image the polygons belong to (for normalization)
        polygons: (class_id, points) pairs, points in image pixels
    """
    lines = []
    for class_id, points in polygons:
        if len(points) < 3:
            continue
        normalized = normalize_polygon(points, image.width, image.height)
        clamped = [(_clamp01(x), _clamp01(y)) for x, y in normalized]
        lines.append(f"{class_id} {_fmt(polygon_to_flat_list(clamped))}")
    return lines


def pose_labels(image: ImageRecord) -> list[str]:
    """
    Keypoint instances: bbox from the visible keypoints, then x y v triples.

    Instances without any visible keypoint are skipped; unlabeled keypoints
    are written as `0 0 0`.
    """
    lines = []
    for ann in image.annotations:
        if ann.type != "keypoints" or not ann.data.keypoints:
            continue

        visible = ann.data.visible_keypoints()
        if not visible:
            continue

        xs = [kp.x for kp in visible]
        ys = [kp.y for kp in visible]
        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)
        bbox = (
            (min_x + max_x) / 2 / image.width,
            (min_y + max_y) / 2 / image.height,
            (max_x - min_x) / image.width,
            (max_y - min_y) / image.height,
        )

        triples = []
        for kp in ann.data.keypoints:
            if not kp.is_labeled:
                triples.append("0 0 0")
            else:
                triples.append(f"{kp.x / image.width:.6f} {kp.y / image.height:.6f} {kp.visibility}")

        lines.append(f"{ann.class_id} {_fmt(bbox)} {' '.join(triples)}")
    return lines


def label_lines(
    variant: str,
    image: ImageRecord,
    polygons: Optional[Sequence[tuple[int, Sequence[Point]]]] = None,
) -> list[str]:
    """Label lines of one image for a YOLO variant."""
    if variant == "detection":
        return detection_labels(image)
    if variant == "landmarks":
        return landmark_labels(image)
    if variant == "obb":
        return obb_labels(image)
    if variant == "segmentation":
        return segmentation_labels(image, polygons or [])
    if variant == "pose":
        return pose_labels(image)
    raise ValueError(f"Unknown YOLO variant: {variant}")


# ==================== Manifests ====================

def _quote(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


def data_yaml(project: Project, variant: str, subsets: Optional[Sequence[str]] = None) -> str:
    """
    Dataset manifest for Ultralytics.

    Class indices are the project's class ids, so `nc` covers the highest id.
    """
    names = {cls.id: cls.name for cls in project.classes}
    nc = max(names) + 1 if names else 0

    if subsets:
        # Point at subsets that were actually written
        train = "images/train" if "train" in subsets else f"images/{subsets[0]}"
        val = "images/val" if "val" in subsets else train
    else:
        train = val = "images"

    lines = [
        f"# YOLO {variant} dataset configuration",
        f"# Generated by Annotix - {project.name}",
        "",
        "path: .",
        f"train: {train}",
        f"val: {val}",
        "",
        "# Classes",
        f"nc: {nc}",
        "names:",
    ]
    for class_id in sorted(names):
        lines.append(f"  {class_id}: {_quote(names[class_id])}")

    if variant == "pose":
        skeleton = project.class_list().first_skeleton() or COCO_17_SKELETON
        keypoints = skeleton["keypoints"]
        lines.extend([
            "",
            "# Keypoints (x, y, visibility)",
            f"kpt_shape: [{len(keypoints)}, 3]",
            "keypoint_names:",
        ])
        for idx, name in enumerate(keypoints):
            lines.append(f"  {idx}: {_quote(name)}")
        lines.append("skeleton:")
        for a, b in skeleton["connections"]:
            lines.append(f"  - [{a}, {b}]")

    return "\n".join(lines) + "\n"


def classes_txt(project: Project) -> str:
    return "\n".join(cls.name for cls in project.classes)


def assign_subsets(
    count: int,
    split: Optional[dict[str, float]] = None,
    seed: int = 42,
) -> list[Optional[str]]:
    """
    Assign images to train/val subsets.

    Args:
        count: Number of images
        split: Subset ratios, e.g. {"train": 0.8, "val": 0.2}; None for no split
        seed: Random seed for reproducible splits

    Returns:
        Subset name per image index (None everywhere without a split)
    """
    if not split:
        return [None] * count

    rng = random.Random(seed)
    indices = list(range(count))
    rng.shuffle(indices)

    subsets: list[Optional[str]] = [None] * count
    names = list(split.keys())
    cumulative = 0
    for i, name in enumerate(names):
        start = cumulative
        cumulative += int(count * split[name])
        # Last split gets remaining images
        end = count if i == len(names) - 1 else cumulative
        for idx in indices[start:end]:
            subsets[idx] = name

    return subsets


def write_yolo(
    bundle: Bundle,
    project: Project,
    images: Sequence[ImageRecord],
    variant: str,
    polygons: Optional[Sequence[Sequence[tuple[int, Sequence[Point]]]]] = None,
    subsets: Optional[Sequence[Optional[str]]] = None,
) -> list[int]:
    """
    Write a YOLO bundle.

    Args:
        bundle: Destination
        project: Project (classes and skeleton)
        images: Image snapshots
        variant: One of YOLO_VARIANTS
        polygons: Per-image (class_id, points) lists for the segmentation variant
        subsets: Per-image subset name from assign_subsets, or None

    Returns:
        Number of label lines written per image
    """
    if subsets is None:
        subsets = [None] * len(images)
    used = sorted({s for s in subsets if s})

    bundle.write_text("data.yaml", data_yaml(project, variant, used))
    bundle.write_text("classes.txt", classes_txt(project))

    counts = []
    for idx, image in enumerate(images):
        prefix = f"{subsets[idx]}/" if subsets[idx] else ""
        bundle.write_image(f"images/{prefix}{image.filename}", image)

        image_polygons = polygons[idx] if polygons is not None else None
        lines = label_lines(variant, image, image_polygons)

        # Every image gets a label file, even an empty one
        content = "\n".join(lines) + "\n" if lines else ""
        bundle.write_text(f"labels/{prefix}{image.stem}.txt", content)
        counts.append(len(lines))

        logger.debug(f"{image.filename}: {len(lines)} {variant} labels")

    return counts


# ==================== Verification ====================

def verify_yolo_export(out_dir: str) -> tuple[bool, list[str]]:
    """
    Verify a YOLO export directory is valid.

    Checks the manifest, that every image has a label file, and every label
    line: integer class, token count matching a YOLO variant, coordinates in
    [0, 1] (pose visibility flags in {0, 1, 2}).

    Args:
        out_dir: Path to the export directory

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    out_path = Path(out_dir)

    data_yaml_path = out_path / "data.yaml"
    if not data_yaml_path.exists():
        errors.append("data.yaml not found")
        return False, errors

    labels_dir = out_path / "labels"
    if not labels_dir.is_dir():
        errors.append("Missing directory: labels")
        return False, errors

    with open(data_yaml_path, "r", encoding="utf-8") as f:
        is_pose = any(line.startswith("kpt_shape:") for line in f)

    images_dir = out_path / "images"
    if images_dir.is_dir():
        for img_file in images_dir.rglob("*"):
            if not img_file.is_file():
                continue
            rel = img_file.relative_to(images_dir).with_suffix(".txt")
            if not (labels_dir / rel).exists():
                errors.append(f"Missing label file for image: {img_file.name}")

    for lbl_file in sorted(labels_dir.rglob("*.txt")):
        with open(lbl_file, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                tokens = line.split()
                where = f"{lbl_file.name}:{line_num}"

                if is_pose:
                    if len(tokens) < 8 or (len(tokens) - 5) % 3 != 0:
                        errors.append(f"{where}: Bad pose token count ({len(tokens)})")
                        continue
                elif len(tokens) != 5 and (len(tokens) < 7 or len(tokens) % 2 == 0):
                    errors.append(
                        f"{where}: Token count {len(tokens)} is neither a box (5) "
                        f"nor a polygon (odd, at least 7)"
                    )
                    continue

                try:
                    class_idx = int(tokens[0])
                    if class_idx < 0:
                        errors.append(f"{where}: Invalid class index {class_idx}")
                except ValueError:
                    errors.append(f"{where}: Class index not an integer: {tokens[0]}")
                    continue

                for i, tok in enumerate(tokens[1:], 1):
                    try:
                        val = float(tok)
                    except ValueError:
                        errors.append(f"{where}: Invalid float: {tok}")
                        continue

                    is_visibility = is_pose and i > 4 and (i - 5) % 3 == 2
                    if is_visibility:
                        if val not in (0, 1, 2):
                            errors.append(f"{where}: Visibility {i} not in {{0,1,2}}: {val}")
                    elif val < 0 or val > 1:
                        errors.append(f"{where}: Coordinate {i} out of range [0,1]: {val}")

    return len(errors) == 0, errors
