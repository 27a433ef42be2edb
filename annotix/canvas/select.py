"""
Select tool: pick, drag, resize and rotate existing annotations, and edit
polygon vertices and keypoints.

Press priority: rotation grip > resize handle > polygon vertex > keypoint >
landmark > body (topmost first).
"""

import copy
from typing import Optional

from annotix.canvas import bbox, mask, obb, polygon
from annotix.canvas.state import (
    DRAGGING, IDLE, KEYPOINT_DRAG, RESIZING, ROTATING, SELECTED, VERTEX_DRAG,
    InteractionState, Gesture, TransitionResult,
)
from annotix.hittest import (
    bbox_resize_handle, contains, find_keypoint, find_landmark, find_vertex,
    hits_rotation_handle, obb_resize_handle,
)
from annotix.models import clamp
from annotix.transform import pointer_angle

GESTURE_MODES = (DRAGGING, RESIZING, ROTATING, VERTEX_DRAG, KEYPOINT_DRAG)


def body_at(session, x: float, y: float) -> Optional[int]:
    """Topmost annotation whose body (or mask pixel) is under (x, y)."""
    annotations = session.annotations
    for i in range(len(annotations) - 1, -1, -1):
        ann = annotations[i]
        if ann.type == "mask":
            if mask.contains(ann, x, y, session.image.width, session.image.height):
                return i
        elif contains(ann, x, y):
            return i
    return None


def _origin(annotation) -> tuple[float, float]:
    data = annotation.data
    if annotation.type == "bbox":
        return data.x, data.y
    if annotation.type == "obb":
        return data.cx, data.cy
    if annotation.type == "polygon":
        return tuple(data.points[0])
    if annotation.type == "keypoints":
        return data.bbox.x, data.bbox.y
    if annotation.type == "landmark":
        return data.x, data.y
    return 0.0, 0.0


def _start_drag(state: InteractionState, annotation, x: float, y: float) -> None:
    ox, oy = _origin(annotation)
    state.mode = DRAGGING
    state.grab_offset = (x - ox, y - oy)
    state.original = copy.deepcopy(annotation.data)


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    x, y = g.x, g.y
    state.reset_gesture()
    selected = session.selected_annotation()

    if selected is not None and selected.type == "obb":
        if hits_rotation_handle(selected.data, x, y, state.zoom):
            state.mode = ROTATING
            state.original = copy.deepcopy(selected.data)
            state.start_angle = pointer_angle(selected.data.cx, selected.data.cy, x, y)
            return TransitionResult(state=state)

        handle = obb_resize_handle(selected.data, x, y, state.zoom)
        if handle:
            state.mode = RESIZING
            state.handle = handle
            state.original = copy.deepcopy(selected.data)
            return TransitionResult(state=state)

    if selected is not None and selected.type == "bbox":
        handle = bbox_resize_handle(selected.data, x, y, state.zoom)
        if handle:
            state.mode = RESIZING
            state.handle = handle
            state.original = copy.deepcopy(selected.data)
            return TransitionResult(state=state)

    index, vertex = find_vertex(session.annotations, x, y, state.zoom, state.selected)
    if index is not None:
        state.selected = index
        state.keypoint = None
        state.vertex = vertex
        state.mode = VERTEX_DRAG
        return TransitionResult(state=state)

    index, keypoint = find_keypoint(session.annotations, x, y, state.zoom)
    if index is not None:
        state.selected = index
        state.keypoint = keypoint
        state.mode = KEYPOINT_DRAG
        return TransitionResult(state=state)

    index = find_landmark(session.annotations, x, y, state.zoom)
    if index is None:
        index = body_at(session, x, y)

    if index is None:
        state.deselect()
        return TransitionResult(state=state)

    state.selected = index
    state.keypoint = None
    annotation = session.annotations[index]
    if annotation.type == "mask":
        state.mode = SELECTED
    else:
        _start_drag(state, annotation, x, y)
    return TransitionResult(state=state)


def _drag(annotation, original, grab_offset, x: float, y: float) -> None:
    nx = x - grab_offset[0]
    ny = y - grab_offset[1]
    data = annotation.data

    if annotation.type == "bbox":
        data.x, data.y = nx, ny
    elif annotation.type == "obb":
        data.cx, data.cy = nx, ny
    elif annotation.type == "landmark":
        data.x, data.y = nx, ny
    elif annotation.type == "polygon":
        dx = nx - original.points[0][0]
        dy = ny - original.points[0][1]
        data.points = [[p[0] + dx, p[1] + dy] for p in original.points]
    elif annotation.type == "keypoints":
        dx = nx - original.bbox.x
        dy = ny - original.bbox.y
        for kp, orig in zip(data.keypoints, original.keypoints):
            if orig.is_labeled:
                kp.x = orig.x + dx
                kp.y = orig.y + dy
        data.update_bbox()


def move(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode not in GESTURE_MODES:
        return TransitionResult(state=state)

    annotation = session.selected_annotation()
    if annotation is None:
        state.deselect()
        return TransitionResult(state=state)

    data = annotation.data
    if state.mode == ROTATING:
        data.angle = obb.rotate(data, state.original.angle, state.start_angle, g.x, g.y)
    elif state.mode == RESIZING:
        if annotation.type == "bbox":
            resized = bbox.resize(state.original, state.handle, g.x, g.y)
            data.x, data.y, data.width, data.height = resized.x, resized.y, resized.width, resized.height
        else:
            data.width, data.height = obb.resize(state.original, state.handle, g.x, g.y)
    elif state.mode == VERTEX_DRAG:
        data.points[state.vertex] = [g.x, g.y]
    elif state.mode == KEYPOINT_DRAG:
        kp = data.keypoints[state.keypoint]
        kp.x, kp.y = g.x, g.y
    else:
        _drag(annotation, state.original, state.grab_offset, g.x, g.y)

    clamp(annotation)
    session.mark_changed()
    return TransitionResult(state=state, changed=True)


def release(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode in GESTURE_MODES:
        state.mode = SELECTED if state.selected is not None else IDLE
        state.reset_gesture()
    return TransitionResult(state=state)


def double_click(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Insert a vertex on the selected polygon's edge, or reopen a mask in the brush."""
    selected = session.selected_annotation()
    if selected is not None and selected.type == "polygon":
        result = polygon.insert_vertex(session, state, state.selected, g.x, g.y)
        if result.changed:
            return result

    index = body_at(session, g.x, g.y)
    if index is not None and session.annotations[index].type == "mask":
        return mask.edit(session, state, index)
    return TransitionResult(state=state)


def context_click(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Delete the polygon vertex under the pointer."""
    index, vertex = find_vertex(session.annotations, g.x, g.y, state.zoom, state.selected)
    if index is None:
        return TransitionResult(state=state)
    state.selected = index
    return polygon.delete_vertex(session, state, index, vertex)
