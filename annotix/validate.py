"""
QA Validation Engine for annotations.

Validates annotations for common issues before export:
- Bounding box / oriented box validity and bounds
- Polygon point count and closure
- Minimum area threshold
- Empty or undecodable masks
- References to classes that do not exist
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from annotix import config
from annotix.errors import MalformedRaster
from annotix.masks import decode_mask, mask_area
from annotix.models import Annotation, ClassList, ImageRecord
from annotix.polygons import polygon_area


@dataclass
class ValidationWarning:
    """A validation warning."""
    index: int  # Position of the annotation in its image's list
    severity: str  # 'error', 'warning', 'info'
    code: str
    message: str
    image: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "image": self.image,
        }


def validate_annotation(
    annotation: Annotation,
    image_width: int,
    image_height: int,
    classes: Optional[ClassList] = None,
    index: int = 0,
    min_area_ratio: float = 0.0001,  # 0.01% of image area
    max_polygon_points: int = 10000,
) -> list[ValidationWarning]:
    """
    Validate a single annotation.

    Args:
        annotation: The annotation to validate
        image_width: Width of the image
        image_height: Height of the image
        classes: Project classes, to detect dangling class ids
        index: Position of the annotation in its list (reported back)
        min_area_ratio: Minimum annotation area as ratio of image area
        max_polygon_points: Maximum number of polygon points

    Returns:
        List of validation warnings
    """
    warnings = []
    image_area = image_width * image_height

    def warn(severity, code, message):
        warnings.append(ValidationWarning(index=index, severity=severity, code=code, message=message))

    if classes is not None and annotation.class_id not in classes:
        warn('warning', 'UNKNOWN_CLASS',
             f'Class {annotation.class_id} does not exist, exported as class_{annotation.class_id}')

    data = annotation.data

    if annotation.type == "bbox":
        x1, y1 = data.x, data.y
        x2, y2 = data.x + data.width, data.y + data.height

        if data.width <= 0 or data.height <= 0:
            warn('error', 'INVALID_BBOX',
                 f'Invalid bounding box: ({x1}, {y1}, {x2}, {y2}) - width or height is zero/negative')

        if x1 < 0 or y1 < 0 or x2 > image_width or y2 > image_height:
            warn('warning', 'BBOX_OUT_OF_BOUNDS', 'Bounding box extends outside image bounds')

        bbox_area = data.width * data.height
        if image_area and bbox_area / image_area < min_area_ratio:
            warn('warning', 'BBOX_TOO_SMALL',
                 f'Bounding box area ({bbox_area:.0f}px) is very small '
                 f'({bbox_area / image_area * 100:.4f}% of image)')

    elif annotation.type == "obb":
        if data.width < config.OBB_MIN_SIZE or data.height < config.OBB_MIN_SIZE:
            warn('error', 'OBB_TOO_SMALL',
                 f'Oriented box {data.width:.1f}x{data.height:.1f} is below the '
                 f'{config.OBB_MIN_SIZE:.0f}px minimum')
        if not (0 <= data.cx <= image_width and 0 <= data.cy <= image_height):
            warn('warning', 'OBB_OUT_OF_BOUNDS', 'Oriented box center lies outside the image')

    elif annotation.type == "polygon":
        num_points = len(data.points)

        if num_points < config.MIN_POLYGON_POINTS:
            warn('error', 'POLYGON_TOO_FEW_POINTS',
                 f'Polygon has only {num_points} points (minimum 3 required)')

        if num_points > max_polygon_points:
            warn('warning', 'POLYGON_TOO_MANY_POINTS',
                 f'Polygon has {num_points} points (max recommended: {max_polygon_points})')

        if not data.closed:
            warn('warning', 'POLYGON_OPEN', 'Polygon is not closed and will not be exported')

        for i, (x, y) in enumerate(data.points):
            if not (0 <= x <= image_width and 0 <= y <= image_height):
                warn('warning', 'POLYGON_POINT_OUT_OF_RANGE',
                     f'Polygon point {i} ({x:.1f}, {y:.1f}) is outside the image')
                break  # Only report first out-of-range point

        area = polygon_area(data.points)
        if num_points >= 3 and image_area and area / image_area < min_area_ratio:
            warn('warning', 'POLYGON_TOO_SMALL',
                 f'Polygon area ({area / image_area * 100:.4f}% of image) is very small')

    elif annotation.type == "mask":
        try:
            mask = decode_mask(data.raster, image_width, image_height)
        except MalformedRaster as e:
            warn('error', 'MALFORMED_MASK', str(e))
        else:
            if mask_area(mask) == 0:
                warn('warning', 'EMPTY_MASK', 'Mask has no foreground pixels')

    elif annotation.type == "keypoints":
        if not data.visible_keypoints():
            warn('info', 'NO_VISIBLE_KEYPOINTS', 'Keypoint instance has no visible keypoints')

    elif annotation.type == "landmark":
        if not (0 <= data.x <= image_width and 0 <= data.y <= image_height):
            warn('warning', 'LANDMARK_OUT_OF_BOUNDS', 'Landmark lies outside the image')

    return warnings


def validate_annotations(
    annotations: Sequence[Annotation],
    image_width: int,
    image_height: int,
    classes: Optional[ClassList] = None,
) -> list[ValidationWarning]:
    """Validate multiple annotations."""
    all_warnings = []
    for idx, ann in enumerate(annotations):
        all_warnings.extend(validate_annotation(ann, image_width, image_height, classes, index=idx))
    return all_warnings


@dataclass
class ValidationReport:
    """Validation report for a set of images."""
    total_annotations: int
    total_images: int
    errors: list[ValidationWarning]
    warnings: list[ValidationWarning]
    info: list[ValidationWarning]

    @property
    def is_valid(self) -> bool:
        """Valid if there are no errors."""
        return len(self.errors) == 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> str:
        """Get a summary string."""
        return (
            f"Validation Report:\n"
            f"  Images: {self.total_images}\n"
            f"  Annotations: {self.total_annotations}\n"
            f"  Errors: {self.error_count}\n"
            f"  Warnings: {self.warning_count}\n"
            f"  Valid: {'Yes' if self.is_valid else 'No'}"
        )


def validate_images(images: Sequence[ImageRecord], classes: Optional[ClassList] = None) -> ValidationReport:
    """
    Validate all annotations of a set of images.

    Args:
        images: Image records
        classes: Project classes

    Returns:
        ValidationReport with all issues found
    """
    all_warnings = []
    total_annotations = 0

    for image in images:
        total_annotations += len(image.annotations)
        for warning in validate_annotations(image.annotations, image.width, image.height, classes):
            warning.image = image.name
            all_warnings.append(warning)

    return ValidationReport(
        total_annotations=total_annotations,
        total_images=len(images),
        errors=[w for w in all_warnings if w.severity == 'error'],
        warnings=[w for w in all_warnings if w.severity == 'warning'],
        info=[w for w in all_warnings if w.severity == 'info'],
    )
