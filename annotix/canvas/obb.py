"""
Oriented box tool.

Boxes are drawn axis-aligned (angle 0) and then resized in their own frame
or rotated with the grip above the box.
"""

from annotix import config
from annotix.canvas.state import DRAWING, IDLE, InteractionState, Gesture, TransitionResult
from annotix.models import ObbData, clamp, create
from annotix.transform import normalize_angle, pointer_angle, to_local

ROTATE_STEP = 15.0


def draft_box(anchor: tuple[float, float], pointer: tuple[float, float]) -> ObbData:
    x0, y0 = anchor
    x, y = pointer
    return ObbData(
        cx=(x0 + x) / 2,
        cy=(y0 + y) / 2,
        width=abs(x - x0) * 2,
        height=abs(y - y0) * 2,
        angle=0.0,
    )


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    state.mode = DRAWING
    state.anchor = (g.x, g.y)
    state.pointer = (g.x, g.y)
    return TransitionResult(state=state)


def move(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode == DRAWING:
        state.pointer = (g.x, g.y)
    return TransitionResult(state=state)


def release(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode != DRAWING:
        return TransitionResult(state=state)

    box = draft_box(state.anchor, (g.x, g.y))
    state.mode = IDLE
    state.reset_gesture()

    if box.width <= config.OBB_MIN_SIZE or box.height <= config.OBB_MIN_SIZE:
        return TransitionResult(state=state)

    annotation = create("obb", state.class_id, box)
    session.add(annotation)
    return TransitionResult(state=state, changed=True, committed=annotation)


def resize(original: ObbData, handle: str, x: float, y: float) -> tuple[float, float]:
    """
    (width, height) after dragging `handle` to (x, y). The center stays put;
    corners change both extents, edge handles only one.
    """
    local_x, local_y = to_local(x, y, original.cx, original.cy, original.angle)
    width, height = original.width, original.height

    if handle in ("nw", "ne", "se", "sw"):
        width = abs(local_x) * 2
        height = abs(local_y) * 2
    elif handle in ("n", "s"):
        height = abs(local_y) * 2
    elif handle in ("e", "w"):
        width = abs(local_x) * 2

    return width, height


def rotate(box: ObbData, original_angle: float, start_angle: float, x: float, y: float) -> float:
    """
    Angle after dragging the rotation grip to (x, y).

    Args:
        box: Box being rotated (its center is the pivot)
        original_angle: Box angle when the gesture started
        start_angle: Pointer angle around the center when the gesture started
    """
    return normalize_angle(original_angle + pointer_angle(box.cx, box.cy, x, y) - start_angle)


def rotate_by(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Rotate the selected OBB by g.value degrees (default +15, -15 with shift)."""
    annotation = session.selected_annotation()
    if annotation is None or annotation.type != "obb":
        return TransitionResult(state=state)

    delta = g.value if g.value is not None else (-ROTATE_STEP if g.shift else ROTATE_STEP)
    annotation.data.angle += delta
    clamp(annotation)
    session.mark_changed()
    return TransitionResult(state=state, changed=True)
