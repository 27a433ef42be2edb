"""
Axis-aligned box tool: drag from corner to corner, resize by handle.
"""

from annotix import config
from annotix.canvas.state import DRAWING, IDLE, InteractionState, Gesture, TransitionResult
from annotix.models import BBoxData, create


def draft_box(anchor: tuple[float, float], pointer: tuple[float, float]) -> BBoxData:
    """Rectangle spanned by anchor and pointer, with positive extent."""
    x0, y0 = anchor
    x1, y1 = pointer
    return BBoxData(x=min(x0, x1), y=min(y0, y1), width=abs(x1 - x0), height=abs(y1 - y0))


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

    # Too small: discard silently
    if box.width <= config.BBOX_MIN_DRAW_SIZE or box.height <= config.BBOX_MIN_DRAW_SIZE:
        return TransitionResult(state=state)

    annotation = create("bbox", state.class_id, box)
    session.add(annotation)
    return TransitionResult(state=state, changed=True, committed=annotation)


def resize(original: BBoxData, handle: str, x: float, y: float) -> BBoxData:
    """
    Box after dragging `handle` to (x, y).

    Edges not attached to the handle stay where they were in `original`.
    The minimum size is applied afterwards by the caller.
    """
    left, top = original.x, original.y
    right = original.x + original.width
    bottom = original.y + original.height

    if "w" in handle:
        left = x
    if "e" in handle:
        right = x
    if "n" in handle:
        top = y
    if "s" in handle:
        bottom = y

    return BBoxData(x=left, y=top, width=right - left, height=bottom - top)
