"""
Editing session: the live handle on one image's annotation list.
"""

import copy
import logging
from typing import Optional

from annotix.canvas import dispatch
from annotix.canvas.state import TOOLS, Gesture, InteractionState, TransitionResult
from annotix.models import Annotation, ClassList, ImageRecord
from annotix.transform import Viewport

logger = logging.getLogger(__name__)


class EditingSession:
    """
    Owns the active image's annotation list while it is being edited.

    Tool controllers mutate the list through the session, which flags unsaved
    changes. Nothing is persisted here: callers take a `snapshot()` and hand
    it to the storage layer, then call `mark_saved()`.
    """

    def __init__(
        self,
        image: ImageRecord,
        classes: ClassList,
        viewport: Optional[Viewport] = None,
    ):
        self.image = image
        self.classes = classes
        self.viewport = viewport or Viewport(image_width=image.width, image_height=image.height)
        self.state = InteractionState()
        if len(classes):
            self.state.class_id = classes.classes[0].id

    @property
    def annotations(self) -> list[Annotation]:
        return self.image.annotations

    @property
    def unsaved_changes(self) -> bool:
        return self.image.has_unsaved_changes

    def mark_changed(self) -> None:
        self.image.has_unsaved_changes = True

    def mark_saved(self) -> None:
        self.image.has_unsaved_changes = False

    def add(self, annotation: Annotation) -> int:
        """Append on top of the z-order; returns the new index."""
        self.annotations.append(annotation)
        self.mark_changed()
        return len(self.annotations) - 1

    def remove(self, index: int) -> Annotation:
        annotation = self.annotations.pop(index)
        self.mark_changed()
        return annotation

    def selected_annotation(self) -> Optional[Annotation]:
        idx = self.state.selected
        if idx is None or idx >= len(self.annotations):
            return None
        return self.annotations[idx]

    def snapshot(self) -> list[Annotation]:
        """Independent deep copy of the annotation list."""
        return copy.deepcopy(self.annotations)

    # ==================== Tools & input ====================

    def set_tool(self, tool: str) -> TransitionResult:
        """Switch tools, finishing or discarding whatever was in progress."""
        if tool not in TOOLS:
            raise ValueError(f"Unknown tool: {tool}")

        result = TransitionResult(state=self.state)
        if self.state.mask is not None:
            result = dispatch.handle(self, self.state, Gesture("finish"))
        if self.state.draft:
            logger.debug(f"Discarding unfinished polygon with {len(self.state.draft)} points")
            self.state.draft = []

        self.state.tool = tool
        self.state.mode = "selected" if self.state.selected is not None else "idle"
        self.state.reset_gesture()
        return result

    def set_class(self, class_id: int) -> None:
        self.state.class_id = class_id

    def handle(self, gesture: Gesture) -> TransitionResult:
        """Feed one gesture (image coordinates) to the active tool."""
        self.state.zoom = self.viewport.zoom
        return dispatch.handle(self, self.state, gesture)

    def pointer(self, kind: str, vx: float, vy: float, shift: bool = False) -> TransitionResult:
        """Feed a pointer gesture given in viewport coordinates."""
        x, y = self.viewport.viewport_to_image(vx, vy)
        return self.handle(Gesture(kind, x, y, shift=shift))

    def command(self, kind: str, value: Optional[float] = None, shift: bool = False) -> TransitionResult:
        return self.handle(Gesture(kind, value=value, shift=shift))
