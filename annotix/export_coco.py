"""
COCO JSON export.

Builds a single `annotations.json` (info, licenses, images, annotations,
categories) for detection, polygon, mask and keypoint projects. Image ids are
1-based positions in the export, annotation ids count up from 1.
"""

import json
import logging
from datetime import datetime
from typing import Optional, Sequence

from annotix.bundle import Bundle
from annotix.models import ImageRecord, Project
from annotix.polygons import Point, polygon_area, polygon_bbox, polygon_to_flat_list

logger = logging.getLogger(__name__)

COCO_VARIANTS = ("detection", "segmentation", "keypoints")


def coco_info(project: Project, variant: str) -> dict:
    return {
        "description": f"{project.name} - COCO {variant} dataset",
        "version": "1.0",
        "year": datetime.now().year,
        "contributor": "Annotix",
        "date_created": datetime.now().isoformat(),
    }


def coco_categories(project: Project, with_keypoints: bool = False) -> list[dict]:
    categories = []
    for cls in project.classes:
        category = {"id": cls.id, "name": cls.name, "supercategory": "object"}
        if with_keypoints:
            skeleton = project.class_list().skeleton_of(cls.id)
            category["keypoints"] = list(skeleton["keypoints"])
            category["skeleton"] = [list(c) for c in skeleton["connections"]]
        categories.append(category)
    return categories


def bbox_annotations(image: ImageRecord) -> list[dict]:
    records = []
    for ann in image.annotations:
        if ann.type != "bbox":
            continue
        box = ann.data
        records.append({
            "category_id": ann.class_id,
            "bbox": [box.x, box.y, box.width, box.height],
            "area": box.width * box.height,
            "iscrowd": 0,
        })
    return records


def polygon_annotations(polygons: Sequence[tuple[int, Sequence[Point]]]) -> list[dict]:
    """Segmentation records from (class_id, pixel points) pairs."""
    records = []
    for class_id, points in polygons:
        if len(points) < 3:
            continue
        records.append({
            "category_id": class_id,
            "segmentation": [polygon_to_flat_list(points)],
            "area": polygon_area(points),
            "bbox": polygon_bbox(points),
            "iscrowd": 0,
        })
    return records


def keypoint_annotations(image: ImageRecord) -> list[dict]:
    """
    Keypoint records; the bbox spans the visible keypoints.

    Unlabeled keypoints are written as 0, 0, 0 and do not count towards
    num_keypoints.
    """
    records = []
    for ann in image.annotations:
        if ann.type != "keypoints" or not ann.data.keypoints:
            continue

        visible = ann.data.visible_keypoints()
        if not visible:
            continue

        xs = [kp.x for kp in visible]
        ys = [kp.y for kp in visible]
        min_x, min_y = min(xs), min(ys)
        w = max(xs) - min_x
        h = max(ys) - min_y

        flat = []
        for kp in ann.data.keypoints:
            if kp.is_labeled:
                flat.extend([kp.x, kp.y, kp.visibility])
            else:
                flat.extend([0, 0, 0])

        records.append({
            "category_id": ann.class_id,
            "keypoints": flat,
            "num_keypoints": len(visible),
            "bbox": [min_x, min_y, w, h],
            "area": w * h,
            "iscrowd": 0,
        })
    return records


def build_coco(
    project: Project,
    images: Sequence[ImageRecord],
    variant: str,
    polygons: Optional[Sequence[Sequence[tuple[int, Sequence[Point]]]]] = None,
) -> tuple[dict, list[int]]:
    """
    Build the COCO document.

    Args:
        project: Project (classes, skeletons)
        images: Image snapshots
        variant: One of COCO_VARIANTS
        polygons: Per-image (class_id, points) lists for the segmentation variant

    Returns:
        (coco dict, number of annotations per image)
    """
    if variant not in COCO_VARIANTS:
        raise ValueError(f"Unknown COCO variant: {variant}")

    coco = {
        "info": coco_info(project, variant),
        "licenses": [{"id": 1, "name": "Unknown", "url": ""}],
        "images": [],
        "annotations": [],
        "categories": coco_categories(project, with_keypoints=variant == "keypoints"),
    }

    counts = []
    annotation_id = 1
    for idx, image in enumerate(images):
        image_id = idx + 1
        coco["images"].append({
            "id": image_id,
            "file_name": image.filename,
            "width": image.width,
            "height": image.height,
            "license": 1,
            "date_captured": "",
        })

        if variant == "detection":
            records = bbox_annotations(image)
        elif variant == "segmentation":
            records = polygon_annotations(polygons[idx] if polygons is not None else [])
        else:
            records = keypoint_annotations(image)

        for record in records:
            coco["annotations"].append({"id": annotation_id, "image_id": image_id, **record})
            annotation_id += 1
        counts.append(len(records))

    logger.info(
        f"COCO {variant}: {len(coco['images'])} images, {len(coco['annotations'])} annotations"
    )
    return coco, counts


def write_coco(
    bundle: Bundle,
    project: Project,
    images: Sequence[ImageRecord],
    variant: str,
    polygons: Optional[Sequence[Sequence[tuple[int, Sequence[Point]]]]] = None,
) -> list[int]:
    """Write annotations.json and images/ into the bundle."""
    coco, counts = build_coco(project, images, variant, polygons)
    bundle.write_text("annotations.json", json.dumps(coco, indent=2))
    for image in images:
        bundle.write_image(f"images/{image.filename}", image)
    return counts
