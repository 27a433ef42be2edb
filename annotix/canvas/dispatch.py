"""
Gesture dispatch.

Each tool is a set of transition functions `fn(session, state, gesture) ->
TransitionResult`, looked up by `(tool, gesture kind)`. Commands that do not
depend on the tool fall back to COMMON.
"""

import logging

from annotix.canvas import bbox, keypoints, landmarks, mask, obb, polygon, select
from annotix.canvas.state import (
    COMMANDS, POINTER_GESTURES, Gesture, InteractionState, TransitionResult,
)

logger = logging.getLogger(__name__)

DRAW_TOOLS = ("bbox", "obb", "polygon", "keypoint", "landmark", "mask")

NO_CLASS_WARNING = "Add at least one class before annotating"


def delete_selected(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if session.selected_annotation() is None:
        return TransitionResult(state=state)

    session.remove(state.selected)
    state.deselect()
    state.reset_gesture()
    return TransitionResult(state=state, changed=True)


def deselect(session, state: InteractionState, g: Gesture) -> TransitionResult:
    state.deselect()
    state.reset_gesture()
    return TransitionResult(state=state)


TRANSITIONS = {
    ("select", "press"): select.press,
    ("select", "move"): select.move,
    ("select", "release"): select.release,
    ("select", "double_click"): select.double_click,
    ("select", "context_click"): select.context_click,

    ("bbox", "press"): bbox.press,
    ("bbox", "move"): bbox.move,
    ("bbox", "release"): bbox.release,

    ("obb", "press"): obb.press,
    ("obb", "move"): obb.move,
    ("obb", "release"): obb.release,

    ("polygon", "press"): polygon.press,
    ("polygon", "move"): polygon.move,
    ("polygon", "double_click"): polygon.close,
    ("polygon", "close"): polygon.close,
    ("polygon", "cancel"): polygon.cancel,

    ("keypoint", "press"): keypoints.press,

    ("landmark", "press"): landmarks.press,

    ("mask", "press"): mask.press,
    ("mask", "move"): mask.move,
    ("mask", "release"): mask.release,
    ("mask", "finish"): mask.finish,
    ("mask", "close"): mask.finish,
    ("mask", "new_instance"): mask.finish,
    ("mask", "cancel"): mask.cancel,
    ("mask", "toggle_erase"): mask.toggle_erase,
    ("mask", "brush_size"): mask.brush_size,
}

COMMON = {
    "delete": delete_selected,
    "cancel": deselect,
    "rotate_by": obb.rotate_by,
    "toggle_visibility": keypoints.toggle_visibility,
    "next_keypoint": keypoints.next_keypoint,
    "new_instance": keypoints.new_instance,
    "finish": mask.finish,
}


def handle(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """
    Route a gesture to the active tool.

    Raises:
        ValueError: If the gesture kind is unknown
    """
    if g.kind not in POINTER_GESTURES and g.kind not in COMMANDS:
        raise ValueError(f"Unknown gesture: {g.kind}")

    if state.tool in DRAW_TOOLS and g.kind in ("press", "new_instance"):
        if not len(session.classes):
            return TransitionResult(state=state, warnings=[NO_CLASS_WARNING])
        if state.class_id is None:
            state.class_id = session.classes.classes[0].id

    fn = TRANSITIONS.get((state.tool, g.kind)) or COMMON.get(g.kind)
    if fn is None:
        return TransitionResult(state=state)

    result = fn(session, state, g)
    for warning in result.warnings:
        logger.debug(f"{state.tool}/{g.kind}: {warning}")
    return result
