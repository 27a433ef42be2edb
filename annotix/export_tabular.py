"""
Tabular exports: CSV rows per annotation and a full JSON dump of the project.
"""

import csv
import io
import json
from typing import Sequence

from annotix.bundle import Bundle
from annotix.models import Annotation, ImageRecord, Project

GENERIC_CSV_HEADER = ["filename", "annotation_type", "class_id", "class_name", "data"]
LANDMARKS_CSV_HEADER = ["image", "landmark_id", "class_id", "class_name", "x", "y", "name"]


def annotation_data_str(ann: Annotation) -> str:
    """Compact one-cell rendering of an annotation's geometry."""
    data = ann.data
    if ann.type == "bbox":
        return f"x:{data.x},y:{data.y},w:{data.width},h:{data.height}"
    if ann.type == "obb":
        return f"cx:{data.cx},cy:{data.cy},w:{data.width},h:{data.height},angle:{data.angle}"
    if ann.type == "mask":
        return "[mask_data]"
    return json.dumps(data.to_dict(), separators=(",", ":"))


def generic_csv(project: Project, images: Sequence[ImageRecord]) -> tuple[str, list[int]]:
    """One row per annotation: filename, type, class id and name, geometry."""
    classes = project.class_list()
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(GENERIC_CSV_HEADER)

    counts = []
    for image in images:
        for ann in image.annotations:
            writer.writerow([
                image.filename,
                ann.type,
                ann.class_id,
                classes.name_of(ann.class_id),
                annotation_data_str(ann),
            ])
        counts.append(len(image.annotations))

    return buffer.getvalue(), counts


def landmarks_csv(project: Project, images: Sequence[ImageRecord]) -> tuple[str, list[int]]:
    """One row per landmark with its position and name."""
    classes = project.class_list()
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LANDMARKS_CSV_HEADER)

    counts = []
    for image in images:
        count = 0
        for ann in image.annotations:
            if ann.type != "landmark":
                continue
            writer.writerow([
                image.filename,
                ann.data.id,
                ann.class_id,
                classes.name_of(ann.class_id),
                ann.data.x,
                ann.data.y,
                ann.data.name,
            ])
            count += 1
        counts.append(count)

    return buffer.getvalue(), counts


def project_json(project: Project, images: Sequence[ImageRecord]) -> dict:
    """
    Project dump readable by `load_project_json`; image paths point into the
    bundle's images/ directory.
    """
    return {
        "project": project.to_dict(),
        "images": [
            {
                "id": image.id,
                "filename": image.filename,
                "width": image.width,
                "height": image.height,
                "path": f"images/{image.filename}",
                "annotations": [ann.to_dict() for ann in image.annotations],
            }
            for image in images
        ],
    }


def write_csv(bundle: Bundle, project: Project, images: Sequence[ImageRecord]) -> list[int]:
    if project.type == "landmarks":
        content, counts = landmarks_csv(project, images)
    else:
        content, counts = generic_csv(project, images)

    bundle.write_text("annotations.csv", content)
    for image in images:
        bundle.write_image(f"images/{image.filename}", image)
    return counts


def write_json(bundle: Bundle, project: Project, images: Sequence[ImageRecord]) -> list[int]:
    bundle.write_text("annotations.json", json.dumps(project_json(project, images), indent=2))
    for image in images:
        bundle.write_image(f"images/{image.filename}", image)
    return [len(image.annotations) for image in images]
