"""
Dataset export orchestration.

Routes an export request to the matching encoder, checks the format against
the project type before anything is written, converts mask rasters in a
worker pool and writes the bundle (zip archive or directory).
"""

import concurrent.futures
import io
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Sequence, Union

from annotix import config
from annotix.bundle import open_bundle
from annotix.errors import AnnotixError, FormatMismatch
from annotix.export_coco import write_coco
from annotix.export_masks import combined_mask, write_masks_png
from annotix.export_tabular import write_csv, write_json
from annotix.export_voc import write_voc
from annotix.export_yolo import assign_subsets, write_yolo
from annotix.masks import decode_mask
from annotix.models import ImageRecord, Project, PROJECT_TYPES
from annotix.polygons import Point, closed_polygons, mask_to_polygon

logger = logging.getLogger(__name__)

_ANY_PROJECT = {t: t for t in PROJECT_TYPES}

# format -> project type -> encoder variant
FORMATS = {
    "yolo": {"bbox": "detection", "detection": "detection", "landmarks": "landmarks"},
    "yolo_obb": {"obb": "obb"},
    "yolo_seg": {"polygon": "segmentation", "mask": "segmentation", "segmentation": "segmentation"},
    "yolo_pose": {"keypoints": "pose"},
    "coco": {
        "bbox": "detection",
        "detection": "detection",
        "polygon": "segmentation",
        "mask": "segmentation",
        "segmentation": "segmentation",
        "keypoints": "keypoints",
    },
    "voc": {"bbox": "detection", "detection": "detection"},
    "masks_png": {"mask": "masks", "segmentation": "masks"},
    "csv": _ANY_PROJECT,
    "json": _ANY_PROJECT,
}

FORMAT_ALIASES = {
    "yoloSeg": "yolo_seg",
    "yoloPose": "yolo_pose",
    "yoloObb": "yolo_obb",
    "masksPng": "masks_png",
    "pascal_voc": "voc",
}

YOLO_FORMATS = ("yolo", "yolo_obb", "yolo_seg", "yolo_pose")
MASK_PROJECT_TYPES = ("mask", "segmentation")


@dataclass
class ExportReport:
    """Report of export operation."""
    format: str
    project_type: str
    total_images: int
    train_images: int
    val_images: int
    total_annotations: int
    exported_annotations: int
    skipped_annotations: int  # Annotations the format cannot represent or that failed to convert
    empty_images: int  # Images written with an empty label artifact
    per_image: dict[str, int]
    labels: list[str]
    output: str
    files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def canonical_format(fmt: str) -> str:
    return FORMAT_ALIASES.get(fmt, fmt)


def available_formats(project_type: str) -> list[str]:
    """Formats that can export a project of the given type."""
    return [fmt for fmt, types in FORMATS.items() if project_type in types]


def resolve_format(fmt: str, project_type: str) -> str:
    """
    Encoder variant for a format and project type.

    Raises:
        FormatMismatch: If the format is unknown or does not support the
            project type
    """
    fmt = canonical_format(fmt)
    types = FORMATS.get(fmt)
    if types is None:
        raise FormatMismatch(fmt, project_type, f"Unknown export format: {fmt}")
    variant = types.get(project_type)
    if variant is None:
        raise FormatMismatch(fmt, project_type)
    return variant


# ==================== Mask conversion ====================

def image_polygons(image: ImageRecord) -> list[tuple[int, list[Point]]]:
    """
    Pixel polygons of an image: masks traced and simplified, plus closed
    polygon annotations.

    Raises:
        MalformedRaster: If any mask of the image cannot be decoded
    """
    polygons = []
    for ann in image.annotations:
        if ann.type != "mask":
            continue
        mask = decode_mask(ann.data.raster, image.width, image.height)
        polygon = mask_to_polygon(mask)
        if polygon:
            polygons.append((ann.class_id, polygon))
        else:
            logger.debug(f"{image.name}: mask without usable contour skipped")

    polygons.extend(closed_polygons(image.annotations))
    return polygons


def _convert_all(images, fn, workers, warnings):
    """
    Run a per-image conversion in a thread pool.

    A failing image yields None and a report warning; the others continue.
    """
    results = [None] * len(images)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(fn, image): idx for idx, image in enumerate(images)}
        for future in concurrent.futures.as_completed(futures):
            idx = futures[future]
            try:
                results[idx] = future.result()
            except AnnotixError as e:
                message = f"{images[idx].name}: {e}"
                logger.warning(f"Mask conversion failed for {message}")
                warnings.append(message)
    return results


# ==================== Export ====================

def export_dataset(
    fmt: str,
    project: Project,
    images: Sequence[ImageRecord],
    out: Union[str, Path, io.BytesIO],
    split: Optional[dict[str, float]] = None,
    seed: int = 42,
    workers: Optional[int] = None,
) -> ExportReport:
    """
    Export images and their annotations in a dataset format.

    Args:
        fmt: Format key (see FORMATS)
        project: Project the images belong to
        images: Image records; their annotation lists are snapshotted first
        out: Directory, path ending in .zip, or an in-memory buffer for a zip
        split: Train/val ratios for YOLO formats, e.g. {"train": 0.8, "val": 0.2}
        seed: Random seed for reproducible splits
        workers: Worker threads for mask conversion

    Returns:
        ExportReport with statistics

    Raises:
        FormatMismatch: Before anything is written, if the format does not
            apply to the project type
        ValueError: If there are no images
    """
    fmt = canonical_format(fmt)
    variant = resolve_format(fmt, project.type)

    if not images:
        raise ValueError("No images to export")

    snapshots = [image.snapshot() for image in images]
    workers = workers or config.EXPORT_WORKERS
    warnings = []

    if not project.classes:
        warnings.append("No classes defined in project")

    subsets = None
    if split:
        if fmt in YOLO_FORMATS:
            subsets = assign_subsets(len(snapshots), split, seed)
        else:
            warnings.append(f"Train/val split is not supported by '{fmt}', exporting a single set")

    polygons = None
    masks = None
    if variant == "segmentation":
        if project.type in MASK_PROJECT_TYPES:
            polygons = _convert_all(snapshots, image_polygons, workers, warnings)
            polygons = [p if p is not None else [] for p in polygons]
        else:
            polygons = [closed_polygons(image.annotations) for image in snapshots]
    elif variant == "masks":
        masks = _convert_all(snapshots, combined_mask, workers, warnings)

    with open_bundle(out) as bundle:
        if fmt in YOLO_FORMATS:
            counts = write_yolo(bundle, project, snapshots, variant, polygons, subsets)
        elif fmt == "coco":
            counts = write_coco(bundle, project, snapshots, variant, polygons)
        elif fmt == "voc":
            counts = write_voc(bundle, project, snapshots)
        elif fmt == "masks_png":
            counts = write_masks_png(bundle, project, snapshots, masks)
        elif fmt == "csv":
            counts = write_csv(bundle, project, snapshots)
        else:
            counts = write_json(bundle, project, snapshots)

        files = list(bundle.names)
        for name in bundle.missing_images:
            warnings.append(f"Image data not available: {name}")

    total_annotations = sum(len(image.annotations) for image in snapshots)
    exported = sum(counts)
    skipped = total_annotations - exported

    if skipped > 0:
        pct = skipped / max(1, total_annotations) * 100
        warnings.append(
            f"{skipped} annotations ({pct:.0f}%) could not be represented in '{fmt}' and were skipped"
        )

    subsets = subsets or [None] * len(snapshots)
    report = ExportReport(
        format=fmt,
        project_type=project.type,
        total_images=len(snapshots),
        train_images=sum(1 for s in subsets if s == "train"),
        val_images=sum(1 for s in subsets if s == "val"),
        total_annotations=total_annotations,
        exported_annotations=exported,
        skipped_annotations=skipped,
        empty_images=sum(1 for c in counts if c == 0),
        per_image={image.filename: count for image, count in zip(snapshots, counts)},
        labels=[cls.name for cls in project.classes],
        output="<memory>" if isinstance(out, io.BytesIO) else str(out),
        files=files,
        warnings=warnings,
    )

    logger.info(
        f"Exported {report.total_images} images as {fmt} "
        f"({report.exported_annotations}/{report.total_annotations} annotations)"
    )
    return report
