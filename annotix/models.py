"""
Core data models for Annotix.

Dataclasses for annotations and their per-type geometry, plus the read-only
class/image/project records handed in by the persistence layer.
"""

import base64
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any, Union

from annotix import config
from annotix.errors import InvalidGeometry
from annotix.transform import normalize_angle

logger = logging.getLogger(__name__)


# ==================== Geometry variants ====================

@dataclass
class BBoxData:
    """Axis-aligned box: top-left corner + extent, image pixels."""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict) -> "BBoxData":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass
class ObbData:
    """Oriented box: center, extent and rotation in degrees."""
    cx: float
    cy: float
    width: float
    height: float
    angle: float = 0.0

    def to_dict(self) -> dict:
        return {
            "cx": self.cx,
            "cy": self.cy,
            "width": self.width,
            "height": self.height,
            "angle": self.angle,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ObbData":
        return cls(
            cx=float(data["cx"]),
            cy=float(data["cy"]),
            width=float(data["width"]),
            height=float(data["height"]),
            angle=float(data.get("angle", 0.0)),
        )


@dataclass
class PolygonData:
    """Polygon vertices as [x, y] pairs."""
    points: list[list[float]] = field(default_factory=list)
    closed: bool = False

    def to_dict(self) -> dict:
        return {"points": [list(p) for p in self.points], "closed": self.closed}

    @classmethod
    def from_dict(cls, data: dict) -> "PolygonData":
        return cls(
            points=[[float(p[0]), float(p[1])] for p in data.get("points", [])],
            closed=bool(data.get("closed", False)),
        )


@dataclass
class MaskData:
    """Embedded raster: PNG as base64 or a data: URL."""
    raster: str

    def to_dict(self) -> dict:
        return {"raster": self.raster}

    @classmethod
    def from_dict(cls, data: Union[dict, str]) -> "MaskData":
        # The browser store keeps the data URL directly as annotation data
        if isinstance(data, str):
            return cls(raster=data)
        return cls(raster=data["raster"])


@dataclass
class PointData:
    x: float
    y: float = 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> "PointData":
        return cls(x=float(data["x"]), y=float(data.get("y", 0.0)))


@dataclass
class RangeData:
    start: float
    end: float

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: dict) -> "RangeData":
        return cls(start=float(data["start"]), end=float(data["end"]))


@dataclass
class Keypoint:
    """One skeleton joint. visibility: 0 = not labeled, 1 = occluded, 2 = visible."""
    x: Optional[float] = None
    y: Optional[float] = None
    visibility: int = 0

    @property
    def is_labeled(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def is_visible(self) -> bool:
        return self.is_labeled and self.visibility > 0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "visibility": self.visibility}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Keypoint":
        if not data:
            return cls()
        x = data.get("x")
        y = data.get("y")
        return cls(
            x=float(x) if x is not None else None,
            y=float(y) if y is not None else None,
            visibility=int(data.get("visibility", 0) or 0),
        )


@dataclass
class KeypointsData:
    """A keypoint instance; bbox is derived from the labeled points."""
    keypoints: list[Keypoint] = field(default_factory=list)
    bbox: Optional[BBoxData] = None

    def update_bbox(self) -> None:
        labeled = [kp for kp in self.keypoints if kp.is_labeled]
        if not labeled:
            self.bbox = None
            return

        xs = [kp.x for kp in labeled]
        ys = [kp.y for kp in labeled]
        self.bbox = BBoxData(
            x=min(xs),
            y=min(ys),
            width=max(xs) - min(xs),
            height=max(ys) - min(ys),
        )

    def visible_keypoints(self) -> list[Keypoint]:
        return [kp for kp in self.keypoints if kp.is_visible]

    def to_dict(self) -> dict:
        return {
            "keypoints": [kp.to_dict() for kp in self.keypoints],
            "bbox": self.bbox.to_dict() if self.bbox else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "KeypointsData":
        instance = cls(keypoints=[Keypoint.from_dict(kp) for kp in data.get("keypoints", [])])
        instance.update_bbox()
        return instance


@dataclass
class LandmarkData:
    x: float
    y: float
    name: str = ""
    id: str = ""

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "name": self.name, "id": self.id}

    @classmethod
    def from_dict(cls, data: dict) -> "LandmarkData":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            name=data.get("name", ""),
            id=str(data.get("id", "")),
        )


DATA_TYPES = {
    "bbox": BBoxData,
    "obb": ObbData,
    "polygon": PolygonData,
    "mask": MaskData,
    "point": PointData,
    "range": RangeData,
    "keypoints": KeypointsData,
    "landmark": LandmarkData,
}

ANNOTATION_TYPES = tuple(DATA_TYPES)


# ==================== Annotation ====================

@dataclass
class Annotation:
    """
    An annotation on an image.

    Has no identity beyond its position in the owning image's list; list
    order is z-order (last = topmost).
    """
    type: str
    class_id: int
    data: Any

    def to_dict(self) -> dict:
        return {"type": self.type, "class": self.class_id, "data": self.data.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "Annotation":
        """Parse an annotation record, validating its geometry."""
        class_id = data.get("class", data.get("classId", data.get("class_id", 0)))
        return create(data["type"], int(class_id), data.get("data", {}))


def create(type: str, class_id: int, data: Any) -> Annotation:
    """
    Create an annotation, enforcing per-type invariants.

    Args:
        type: One of ANNOTATION_TYPES
        class_id: Foreign key into the project's class list
        data: Geometry as the matching dataclass or a plain dict

    Returns:
        The new Annotation

    Raises:
        InvalidGeometry: If the type is unknown or the geometry is invalid
    """
    data_cls = DATA_TYPES.get(type)
    if data_cls is None:
        raise InvalidGeometry(f"Unknown annotation type: {type}")

    if not isinstance(data, data_cls):
        try:
            data = data_cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidGeometry(f"Malformed {type} data: {e}") from e

    _check_invariants(type, data)
    return Annotation(type=type, class_id=class_id, data=data)


def _check_invariants(type: str, data: Any) -> None:
    if type == "bbox":
        if data.width <= 0 or data.height <= 0:
            raise InvalidGeometry(
                f"Bounding box needs a positive extent, got {data.width}x{data.height}"
            )
    elif type == "obb":
        if data.width < config.OBB_MIN_SIZE or data.height < config.OBB_MIN_SIZE:
            raise InvalidGeometry(
                f"Oriented box must be at least {config.OBB_MIN_SIZE:.0f}px per side, "
                f"got {data.width}x{data.height}"
            )
        data.angle = normalize_angle(data.angle)
    elif type == "polygon":
        if data.closed and len(data.points) < config.MIN_POLYGON_POINTS:
            raise InvalidGeometry(
                f"Need at least {config.MIN_POLYGON_POINTS} points to create a polygon"
            )
    elif type == "mask":
        if not data.raster:
            raise InvalidGeometry("Mask has no raster data")
    elif type == "range":
        if data.start > data.end:
            data.start, data.end = data.end, data.start
    elif type == "keypoints":
        for kp in data.keypoints:
            if kp.visibility not in (0, 1, 2):
                raise InvalidGeometry(f"Invalid keypoint visibility: {kp.visibility}")


def mutate(annotation: Annotation, patch: dict) -> Annotation:
    """
    Apply a patch to an annotation in place.

    Never rejects range violations: sizes are clamped to the editable
    minimum and angles are wrapped into [0, 360).

    Raises:
        KeyError: If the patch names a field the geometry does not have
    """
    data = annotation.data
    for key, value in patch.items():
        if not hasattr(data, key):
            raise KeyError(f"{annotation.type} has no field '{key}'")
        setattr(data, key, value)

    clamp(annotation)
    return annotation


def clamp(annotation: Annotation) -> None:
    """Re-establish the range invariants of an annotation after an edit."""
    data = annotation.data
    if annotation.type == "bbox":
        data.width = max(data.width, config.BBOX_MIN_SIZE)
        data.height = max(data.height, config.BBOX_MIN_SIZE)
    elif annotation.type == "obb":
        data.width = max(data.width, config.OBB_MIN_SIZE)
        data.height = max(data.height, config.OBB_MIN_SIZE)
        data.angle = normalize_angle(data.angle)
    elif annotation.type == "polygon":
        if data.closed and len(data.points) < config.MIN_POLYGON_POINTS:
            data.closed = False
    elif annotation.type == "keypoints":
        data.update_bbox()
    elif annotation.type == "range":
        if data.start > data.end:
            data.start, data.end = data.end, data.start


def annotations_from_list(records: list[dict]) -> list[Annotation]:
    """Parse a stored annotation list."""
    return [Annotation.from_dict(r) for r in records or []]


def annotations_to_list(annotations: list[Annotation]) -> list[dict]:
    """Serialize an annotation list."""
    return [a.to_dict() for a in annotations]


# ==================== Classes ====================

@dataclass
class ClassInfo:
    """A label class. Owned by the project, read-only here."""
    id: int
    name: str
    color: str = config.DEFAULT_CLASS_COLOR
    skeleton: Optional[dict] = None  # {"keypoints": [...], "connections": [[i, j], ...]}

    def to_dict(self) -> dict:
        result = {"id": self.id, "name": self.name, "color": self.color}
        if self.skeleton:
            result["skeleton"] = self.skeleton
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ClassInfo":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", f"class_{data['id']}")),
            color=data.get("color", config.DEFAULT_CLASS_COLOR),
            skeleton=data.get("skeleton"),
        )


class ClassList:
    """
    Lookup over a project's classes.

    Unknown ids resolve to a synthetic class so that rendering and export
    never fail on a dangling reference.
    """

    def __init__(self, classes: list[ClassInfo]):
        self.classes = list(classes)
        self._by_id = {c.id: c for c in self.classes}
        self._reported: set[int] = set()

    def __len__(self) -> int:
        return len(self.classes)

    def __iter__(self):
        return iter(self.classes)

    def __contains__(self, class_id: int) -> bool:
        return class_id in self._by_id

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.classes]

    def resolve(self, class_id: int) -> ClassInfo:
        """Get the class for an id, or a fallback if it does not exist."""
        cls = self._by_id.get(class_id)
        if cls is not None:
            return cls

        if class_id not in self._reported:
            self._reported.add(class_id)
            logger.warning(f"Annotation references unknown class {class_id}, using fallback")
        return ClassInfo(id=class_id, name=f"class_{class_id}", color=config.DEFAULT_CLASS_COLOR)

    def name_of(self, class_id: int) -> str:
        return self.resolve(class_id).name

    def color_of(self, class_id: int) -> str:
        return self.resolve(class_id).color

    def skeleton_of(self, class_id: int) -> dict:
        """Skeleton of a class, defaulting to COCO-17."""
        cls = self._by_id.get(class_id)
        if cls is not None and cls.skeleton:
            return cls.skeleton
        return COCO_17_SKELETON

    def first_skeleton(self) -> Optional[dict]:
        for cls in self.classes:
            if cls.skeleton:
                return cls.skeleton
        return None


COCO_17_SKELETON = {
    "keypoints": [
        "nose",
        "left_eye", "right_eye",
        "left_ear", "right_ear",
        "left_shoulder", "right_shoulder",
        "left_elbow", "right_elbow",
        "left_wrist", "right_wrist",
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle",
    ],
    "connections": [
        [0, 1], [0, 2], [1, 3], [2, 4],
        [5, 6], [5, 7], [7, 9], [6, 8], [8, 10],
        [5, 11], [6, 12], [11, 12],
        [11, 13], [13, 15], [12, 14], [14, 16],
    ],
}


# ==================== Images & projects ====================

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/webp": ".webp",
}

@dataclass
class ImageRecord:
    """An image handed to the engine by the persistence layer."""
    id: int
    name: str
    width: int
    height: int
    annotations: list[Annotation] = field(default_factory=list)
    path: Optional[str] = None  # Source file, copied into export bundles
    data: Optional[bytes] = None  # In-memory image bytes, used when there is no path
    mime_type: Optional[str] = None
    has_unsaved_changes: bool = False

    @property
    def filename(self) -> str:
        """File name inside export bundles, with an extension."""
        if Path(self.name).suffix:
            return self.name
        return self.name + MIME_EXTENSIONS.get(self.mime_type, ".jpg")

    @property
    def stem(self) -> str:
        return Path(self.filename).stem

    def snapshot(self) -> "ImageRecord":
        """Copy with an independent annotation list, for export and saving."""
        clone = copy.copy(self)
        clone.annotations = copy.deepcopy(self.annotations)
        return clone

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "annotations": annotations_to_list(self.annotations),
            "path": self.path,
            "mime_type": self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: dict, index: int = 0) -> "ImageRecord":
        """Parse an image record; `data` may carry the image bytes as base64."""
        content = data.get("data")
        if isinstance(content, str):
            if content.startswith("data:"):
                content = content.partition(",")[2]
            content = base64.b64decode(content)

        return cls(
            id=int(data.get("id", index + 1)),
            name=data.get("name") or data.get("filename") or f"image_{index + 1:04d}",
            width=int(data["width"]),
            height=int(data["height"]),
            annotations=annotations_from_list(data.get("annotations", [])),
            path=data.get("path"),
            data=content,
            mime_type=data.get("mime_type") or data.get("mimeType"),
        )


PROJECT_TYPES = (
    "bbox", "detection", "obb", "polygon", "mask", "segmentation",
    "keypoints", "landmarks", "classification", "timeseries",
)


@dataclass
class Project:
    """Represents an annotation project."""
    name: str
    type: str
    classes: list[ClassInfo] = field(default_factory=list)

    def class_list(self) -> ClassList:
        return ClassList(self.classes)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "classes": [c.to_dict() for c in self.classes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        project_type = data.get("type", "bbox")
        if project_type not in PROJECT_TYPES:
            raise ValueError(f"Unknown project type: {project_type}")
        return cls(
            name=data.get("name", "project"),
            type=project_type,
            classes=[ClassInfo.from_dict(c) for c in data.get("classes", [])],
        )


def load_project_json(path: Union[str, Path]) -> tuple[Project, list[ImageRecord]]:
    """
    Load a project dump (the layout written by the JSON exporter).

    Relative image paths are resolved against the dump's directory.

    Args:
        path: Path to the JSON file

    Returns:
        (project, images)
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    project = Project.from_dict(payload["project"])
    images = []
    for idx, record in enumerate(payload.get("images", [])):
        image = ImageRecord.from_dict(record, idx)
        if image.path and not Path(image.path).is_absolute():
            image.path = str(path.parent / image.path)
        images.append(image)

    logger.info(f"Loaded project '{project.name}' ({project.type}) with {len(images)} images")
    return project, images
