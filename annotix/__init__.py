"""
Annotix - Annotation geometry, interaction and dataset export
"""

from annotix.models import Project, ClassInfo, ClassList, ImageRecord, Annotation, create, mutate
from annotix.transform import Viewport
from annotix.contours import trace_contour
from annotix.polygons import simplify_polygon, mask_to_polygon, mask_to_yolo_polygon, validate_yolo_polygon
from annotix.masks import decode_mask, encode_mask, mask_to_bbox, mask_area
from annotix.exporter import ExportReport, export_dataset, available_formats

__version__ = "0.1.0"

__all__ = [
    "Project", "ClassInfo", "ClassList", "ImageRecord", "Annotation", "create", "mutate",
    "Viewport",
    "trace_contour",
    "simplify_polygon", "mask_to_polygon", "mask_to_yolo_polygon", "validate_yolo_polygon",
    "decode_mask", "encode_mask", "mask_to_bbox", "mask_area",
    "ExportReport", "export_dataset", "available_formats",
]
