"""
Export API endpoints
"""

import io
import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from annotix.errors import AnnotixError, FormatMismatch
from annotix.exporter import (
    FORMATS, MASK_PROJECT_TYPES, YOLO_FORMATS, available_formats, canonical_format,
    export_dataset, image_polygons, resolve_format,
)
from annotix.export_yolo import label_lines
from annotix.models import ImageRecord, Project
from annotix.polygons import closed_polygons
from annotix.validate import validate_images
from backend.config import MAX_EXPORT_IMAGES, MAX_VALIDATION_ITEMS

logger = logging.getLogger(__name__)

router = APIRouter()


class ProjectPayload(BaseModel):
    project: dict
    images: list[dict]


class ExportRequest(ProjectPayload):
    train_split: Optional[float] = None
    seed: int = 42


class LabelsRequest(ProjectPayload):
    format: str = "yolo"


class FormatsResponse(BaseModel):
    formats: dict[str, list[str]]


class LabelsResponse(BaseModel):
    format: str
    labels: dict[str, str]
    warnings: list[str]


class ValidationWarningResponse(BaseModel):
    image: Optional[str]
    annotation_index: int
    severity: str
    code: str
    message: str


class ValidateResponse(BaseModel):
    total_images: int
    total_annotations: int
    error_count: int
    warning_count: int
    is_valid: bool
    errors: list[ValidationWarningResponse]
    warnings: list[ValidationWarningResponse]


def _parse(payload: ProjectPayload) -> tuple[Project, list[ImageRecord]]:
    """Build engine records from a request body; bad records are a 400."""
    if len(payload.images) > MAX_EXPORT_IMAGES:
        raise HTTPException(
            status_code=400,
            detail=f"Too many images ({len(payload.images)}), limit is {MAX_EXPORT_IMAGES}",
        )
    try:
        project = Project.from_dict(payload.project)
        images = [ImageRecord.from_dict(record, idx) for idx, record in enumerate(payload.images)]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid project data: {e}")
    return project, images


def _warning_response(w) -> ValidationWarningResponse:
    return ValidationWarningResponse(
        image=w.image,
        annotation_index=w.index,
        severity=w.severity,
        code=w.code,
        message=w.message,
    )


@router.get("/formats", response_model=FormatsResponse)
async def list_formats(project_type: Optional[str] = None):
    """Export formats, per project type or for one project type."""
    if project_type:
        return FormatsResponse(formats={project_type: available_formats(project_type)})
    return FormatsResponse(formats={fmt: sorted(types) for fmt, types in FORMATS.items()})


@router.post("/validate", response_model=ValidateResponse)
async def validate(request: ProjectPayload):
    """Validate all annotations of the posted images."""
    project, images = _parse(request)
    report = validate_images(images, project.class_list())

    return ValidateResponse(
        total_images=report.total_images,
        total_annotations=report.total_annotations,
        error_count=report.error_count,
        warning_count=report.warning_count,
        is_valid=report.is_valid,
        errors=[_warning_response(w) for w in report.errors[:MAX_VALIDATION_ITEMS]],
        warnings=[_warning_response(w) for w in report.warnings[:MAX_VALIDATION_ITEMS]],
    )


@router.post("/yolo/labels", response_model=LabelsResponse)
async def yolo_labels(request: LabelsRequest):
    """YOLO label text per image, without images or archive."""
    project, images = _parse(request)
    fmt = canonical_format(request.format)
    if fmt not in YOLO_FORMATS:
        raise HTTPException(status_code=400, detail=f"Not a YOLO format: {request.format}")

    try:
        variant = resolve_format(fmt, project.type)
    except FormatMismatch as e:
        raise HTTPException(status_code=400, detail=str(e))

    labels = {}
    warnings = []
    for image in images:
        polygons = None
        if variant == "segmentation":
            if project.type in MASK_PROJECT_TYPES:
                try:
                    polygons = image_polygons(image)
                except AnnotixError as e:
                    warnings.append(f"{image.name}: {e}")
                    polygons = []
            else:
                polygons = closed_polygons(image.annotations)

        lines = label_lines(variant, image, polygons)
        labels[f"{image.stem}.txt"] = "\n".join(lines) + "\n" if lines else ""

    return LabelsResponse(format=fmt, labels=labels, warnings=warnings)


@router.post("/{fmt}")
async def export(fmt: str, request: ExportRequest):
    """Export the posted project as a zip archive."""
    project, images = _parse(request)

    split = None
    if request.train_split is not None:
        if not 0.0 < request.train_split <= 1.0:
            raise HTTPException(status_code=400, detail="train_split must be in (0, 1]")
        split = {"train": request.train_split, "val": 1.0 - request.train_split}

    buffer = io.BytesIO()
    try:
        report = export_dataset(fmt, project, images, buffer, split=split, seed=request.seed)
    except FormatMismatch as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Export failed: {e}")

    for warning in report.warnings:
        logger.warning(f"Export {report.format}: {warning}")

    summary = {
        "total_images": report.total_images,
        "total_annotations": report.total_annotations,
        "exported_annotations": report.exported_annotations,
        "skipped_annotations": report.skipped_annotations,
        "warnings": len(report.warnings),
    }
    stem = "".join(c if c.isascii() and (c.isalnum() or c in "-_") else "_" for c in project.name)
    filename = f"{stem or 'export'}_{report.format}.zip"
    return Response(
        content=buffer.getvalue(),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Export-Report": json.dumps(summary),
        },
    )
