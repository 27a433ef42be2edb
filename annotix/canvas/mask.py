"""
Mask brush tool.

Strokes are painted into a full-image raster held in the interaction state;
`finish` (or starting a new instance) encodes it as a mask annotation.
"""

import logging

import numpy as np

from annotix import config
from annotix.canvas.state import DRAWING, IDLE, PAINTING, InteractionState, Gesture, TransitionResult
from annotix.errors import MalformedRaster
from annotix.masks import decode_mask, encode_mask, paint_stroke
from annotix.models import Annotation, MaskData, create

logger = logging.getLogger(__name__)

MIN_BRUSH_SIZE = 5.0
MAX_BRUSH_SIZE = 100.0
BRUSH_STEP = 5.0


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    color = color.lstrip("#")
    if len(color) == 3:
        color = "".join(c * 2 for c in color)
    try:
        return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)
    except ValueError:
        return hex_to_rgb(config.DEFAULT_CLASS_COLOR)


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mask is None:
        state.mask = np.zeros((session.image.height, session.image.width), dtype=np.uint8)

    paint_stroke(state.mask, g.x, g.y, g.x, g.y, state.brush_size, erase=state.erase)
    state.mode = PAINTING
    state.pointer = (g.x, g.y)
    return TransitionResult(state=state)


def move(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode == PAINTING:
        x0, y0 = state.pointer
        paint_stroke(state.mask, x0, y0, g.x, g.y, state.brush_size, erase=state.erase)
        state.pointer = (g.x, g.y)
    return TransitionResult(state=state)


def release(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode == PAINTING:
        state.mode = DRAWING
        state.pointer = None
    return TransitionResult(state=state)


def finish(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Commit the painted raster; an empty one is discarded silently."""
    mask = state.mask
    state.mask = None
    state.mode = IDLE
    state.reset_gesture()

    if mask is None or not mask.any():
        return TransitionResult(state=state)

    color = hex_to_rgb(session.classes.color_of(state.class_id))
    annotation = create("mask", state.class_id, MaskData(raster=encode_mask(mask, color)))
    session.add(annotation)
    return TransitionResult(state=state, changed=True, committed=annotation)


def cancel(session, state: InteractionState, g: Gesture) -> TransitionResult:
    state.mask = None
    state.mode = IDLE
    state.reset_gesture()
    return TransitionResult(state=state)


def toggle_erase(session, state: InteractionState, g: Gesture) -> TransitionResult:
    state.erase = not state.erase
    return TransitionResult(state=state)


def brush_size(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Set the brush size to g.value, or step it (down with shift)."""
    if g.value is not None:
        size = g.value
    else:
        size = state.brush_size - BRUSH_STEP if g.shift else state.brush_size + BRUSH_STEP
    state.brush_size = max(MIN_BRUSH_SIZE, min(MAX_BRUSH_SIZE, size))
    return TransitionResult(state=state)


def contains(annotation: Annotation, x: float, y: float, width: int, height: int) -> bool:
    """Whether (x, y) falls on a foreground pixel of a mask annotation."""
    col, row = int(x), int(y)
    if not (0 <= col < width and 0 <= row < height):
        return False
    try:
        fg = decode_mask(annotation.data.raster, width, height)
    except MalformedRaster as e:
        logger.warning(f"Unreadable mask treated as not hit: {e}")
        return False
    return bool(fg[row, col])


def edit(session, state: InteractionState, index: int) -> TransitionResult:
    """
    Take an existing mask back into the brush: its raster becomes the
    working raster and the annotation leaves the list until finished again.
    """
    annotation = session.annotations[index]
    try:
        raster = decode_mask(annotation.data.raster, session.image.width, session.image.height)
    except MalformedRaster as e:
        logger.warning(f"Mask {index} cannot be edited: {e}")
        return TransitionResult(state=state, warnings=[f"Mask cannot be edited: {e}"])

    session.remove(index)
    state.deselect()
    state.mask = raster.astype(np.uint8)
    state.class_id = annotation.class_id
    state.tool = "mask"
    state.mode = DRAWING
    logger.debug(f"Mask {index} loaded for editing")
    return TransitionResult(state=state, changed=True)
