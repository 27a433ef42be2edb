"""
Shared fixtures: projects, images with in-memory pixels, mask rasters.
"""

import io

import numpy as np
import pytest
from PIL import Image

from annotix.masks import encode_mask
from annotix.models import ClassInfo, ImageRecord, Project


def png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="gray").save(buffer, format="PNG")
    return buffer.getvalue()


def square_raster(width: int, height: int, x0: int, y0: int, x1: int, y1: int) -> str:
    """Mask raster with foreground on rows y0:y1, columns x0:x1."""
    mask = np.zeros((height, width), dtype=np.uint8)
    mask[y0:y1, x0:x1] = 1
    return encode_mask(mask)


@pytest.fixture
def classes():
    return [
        ClassInfo(id=0, name="cat", color="#ff0000"),
        ClassInfo(id=1, name="dog", color="#00ff00"),
        ClassInfo(id=2, name="bird", color="#0000ff"),
    ]


@pytest.fixture
def make_project(classes):
    """Factory for a project of a given type using the three test classes."""
    def _make(project_type: str = "bbox", name: str = "test") -> Project:
        return Project(name=name, type=project_type, classes=list(classes))
    return _make


@pytest.fixture
def make_image():
    """Factory for an image record that carries its PNG bytes."""
    def _make(name="img_001.png", width=640, height=480, annotations=None, image_id=1, with_data=True):
        return ImageRecord(
            id=image_id,
            name=name,
            width=width,
            height=height,
            annotations=list(annotations or []),
            data=png_bytes(width, height) if with_data else None,
            mime_type="image/png",
        )
    return _make
