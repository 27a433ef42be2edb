"""
Interaction state shared by all tool controllers.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from annotix.models import Annotation

TOOLS = ("select", "bbox", "obb", "polygon", "keypoint", "landmark", "mask")

POINTER_GESTURES = ("press", "move", "release", "double_click", "context_click")
COMMANDS = (
    "close", "cancel", "delete", "rotate_by", "toggle_visibility",
    "next_keypoint", "new_instance", "finish", "toggle_erase", "brush_size",
)

# Interaction modes
IDLE = "idle"
DRAWING = "drawing"
SELECTED = "selected"
DRAGGING = "dragging"
RESIZING = "resizing"
ROTATING = "rotating"
VERTEX_DRAG = "vertex_drag"
KEYPOINT_DRAG = "keypoint_drag"
PAINTING = "painting"


@dataclass
class Gesture:
    """
    A pointer gesture or command.

    Pointer gestures carry image-space coordinates. `value` is the argument
    of commands that take one (degrees for rotate_by, pixels for brush_size).
    """
    kind: str
    x: float = 0.0
    y: float = 0.0
    value: Optional[float] = None
    shift: bool = False


@dataclass
class InteractionState:
    """Everything a tool controller needs between two gestures."""
    tool: str = "select"
    mode: str = IDLE
    class_id: Optional[int] = None
    zoom: float = 1.0

    selected: Optional[int] = None  # index into the session's annotation list

    # Gesture bookkeeping
    anchor: Optional[tuple[float, float]] = None
    pointer: Optional[tuple[float, float]] = None
    handle: Optional[str] = None
    vertex: Optional[int] = None
    original: Any = None  # geometry copy taken at gesture start
    grab_offset: tuple[float, float] = (0.0, 0.0)
    start_angle: float = 0.0

    # Polygon being drawn
    draft: list[list[float]] = field(default_factory=list)

    # Keypoints
    keypoint: Optional[int] = None  # selected keypoint of the selected instance
    keypoint_index: int = 0  # next keypoint to place

    # Mask brush
    mask: Optional[np.ndarray] = None
    brush_size: float = 20.0
    erase: bool = False

    def reset_gesture(self) -> None:
        self.anchor = None
        self.pointer = None
        self.handle = None
        self.vertex = None
        self.original = None
        self.grab_offset = (0.0, 0.0)
        self.start_angle = 0.0

    def deselect(self) -> None:
        self.selected = None
        self.keypoint = None
        self.mode = IDLE


@dataclass
class TransitionResult:
    """Outcome of one gesture: whether the list changed, and messages for the user."""
    state: InteractionState
    changed: bool = False
    committed: Optional[Annotation] = None
    warnings: list[str] = field(default_factory=list)
