"""
Coordinate transforms.

Maps pointer positions between the viewport (pan, zoom, device pixel ratio,
optional view rotation) and image pixel space, and provides the rotated local
frame used by oriented boxes. All annotation geometry lives in image space.
"""

import math
from dataclasses import dataclass
from typing import Optional

from annotix import config


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into [0, 360)."""
    angle = math.fmod(angle, 360.0)
    if angle < 0:
        angle += 360.0
    # fmod of a tiny negative value can round up to exactly 360
    if angle >= 360.0:
        angle = 0.0
    # -0.0 becomes 0.0
    return angle + 0.0


def to_local(x: float, y: float, cx: float, cy: float, angle: float) -> tuple[float, float]:
    """
    Express an image point in the frame of a box rotated by `angle` degrees
    around (cx, cy).

    Shared by hit-testing, resizing and rendering of oriented boxes.
    """
    theta = -math.radians(angle)
    dx = x - cx
    dy = y - cy
    local_x = dx * math.cos(theta) - dy * math.sin(theta)
    local_y = dx * math.sin(theta) + dy * math.cos(theta)
    return local_x, local_y


def from_local(local_x: float, local_y: float, cx: float, cy: float, angle: float) -> tuple[float, float]:
    """Inverse of `to_local`."""
    theta = math.radians(angle)
    x = cx + local_x * math.cos(theta) - local_y * math.sin(theta)
    y = cy + local_x * math.sin(theta) + local_y * math.cos(theta)
    return x, y


def obb_corners(
    cx: float, cy: float, width: float, height: float, angle: float
) -> list[tuple[float, float]]:
    """Corners of an oriented box in image space, ordered nw, ne, se, sw."""
    hw = width / 2
    hh = height / 2
    local = [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
    return [from_local(lx, ly, cx, cy, angle) for lx, ly in local]


def pointer_angle(cx: float, cy: float, x: float, y: float) -> float:
    """Angle in degrees of the vector from (cx, cy) to (x, y)."""
    return math.degrees(math.atan2(y - cy, x - cx))


@dataclass
class Viewport:
    """
    Pan/zoom state of the drawing surface.

    Attributes:
        zoom: Scale factor from image pixels to viewport (CSS) pixels
        pan_x: Viewport x of the image origin
        pan_y: Viewport y of the image origin
        device_pixel_ratio: Backing-store pixels per viewport pixel
        image_rotation: View rotation in degrees around the image center
        image_width: Width of the active image (needed for view rotation)
        image_height: Height of the active image
    """
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    device_pixel_ratio: float = 1.0
    image_rotation: float = 0.0
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    min_zoom: float = config.MIN_ZOOM
    max_zoom: float = config.MAX_ZOOM

    def viewport_to_image(self, x: float, y: float) -> tuple[float, float]:
        """Convert a viewport position to image pixel coordinates."""
        img_x = (x - self.pan_x) / self.zoom
        img_y = (y - self.pan_y) / self.zoom

        if self.image_rotation and self.image_width and self.image_height:
            center_x = self.image_width / 2
            center_y = self.image_height / 2
            img_x, img_y = to_local(img_x, img_y, center_x, center_y, self.image_rotation)
            img_x += center_x
            img_y += center_y

        return img_x, img_y

    def image_to_viewport(self, x: float, y: float) -> tuple[float, float]:
        """Convert image pixel coordinates to a viewport position."""
        if self.image_rotation and self.image_width and self.image_height:
            center_x = self.image_width / 2
            center_y = self.image_height / 2
            x, y = from_local(x - center_x, y - center_y, center_x, center_y, self.image_rotation)

        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def device_to_image(self, x: float, y: float) -> tuple[float, float]:
        """Convert a backing-store (device pixel) position to image space."""
        return self.viewport_to_image(x / self.device_pixel_ratio, y / self.device_pixel_ratio)

    def backing_size(self, css_width: float, css_height: float) -> tuple[int, int]:
        """Backing-store size for a surface of the given CSS size."""
        return (
            int(round(css_width * self.device_pixel_ratio)),
            int(round(css_height * self.device_pixel_ratio)),
        )

    def screen_to_image_distance(self, pixels: float) -> float:
        """Length in image units of a constant on-screen distance."""
        return pixels / self.zoom

    def zoom_at(self, x: float, y: float, factor: float) -> None:
        """Scale by `factor` keeping the image point under (x, y) fixed."""
        before_x, before_y = self.viewport_to_image(x, y)
        self.zoom = max(self.min_zoom, min(self.max_zoom, self.zoom * factor))
        after_x, after_y = self.viewport_to_image(x, y)

        self.pan_x += (after_x - before_x) * self.zoom
        self.pan_y += (after_y - before_y) * self.zoom

    def zoom_in(self) -> None:
        self.zoom = min(self.max_zoom, self.zoom * config.ZOOM_STEP)

    def zoom_out(self) -> None:
        self.zoom = max(self.min_zoom, self.zoom / config.ZOOM_STEP)

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def fit(self, image_width: int, image_height: int, canvas_width: float, canvas_height: float) -> None:
        """Center the image and scale it to fill 90% of the surface."""
        self.image_width = image_width
        self.image_height = image_height

        scale_x = canvas_width / image_width
        scale_y = canvas_height / image_height
        self.zoom = min(scale_x, scale_y) * config.FIT_MARGIN

        self.pan_x = (canvas_width - image_width * self.zoom) / 2
        self.pan_y = (canvas_height - image_height * self.zoom) / 2
