"""
Keypoint tool: place the skeleton's joints one after another on an instance.
"""

from annotix.canvas.state import SELECTED, InteractionState, Gesture, TransitionResult
from annotix.models import Keypoint, KeypointsData, create

# 2 (visible) -> 1 (occluded) -> 0 (not labeled) -> 2
NEXT_VISIBILITY = {2: 1, 1: 0, 0: 2}


def _selected_instance(session):
    annotation = session.selected_annotation()
    if annotation is None or annotation.type != "keypoints":
        return None
    return annotation


def new_instance(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Start an empty instance of the current class's skeleton and select it."""
    skeleton = session.classes.skeleton_of(state.class_id)
    data = KeypointsData(keypoints=[Keypoint() for _ in skeleton["keypoints"]])
    annotation = create("keypoints", state.class_id, data)

    state.selected = session.add(annotation)
    state.keypoint = None
    state.keypoint_index = 0
    state.mode = SELECTED
    return TransitionResult(state=state, changed=True, committed=annotation)


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Place the current keypoint as visible and advance to the next one."""
    result = TransitionResult(state=state)
    annotation = _selected_instance(session)
    if annotation is None:
        result = new_instance(session, state, g)
        annotation = result.committed

    keypoints = annotation.data.keypoints
    if not keypoints:
        return result

    index = state.keypoint_index % len(keypoints)
    keypoints[index] = Keypoint(x=g.x, y=g.y, visibility=2)
    annotation.data.update_bbox()
    session.mark_changed()

    state.keypoint_index = (index + 1) % len(keypoints)
    return TransitionResult(state=state, changed=True, committed=result.committed)


def next_keypoint(session, state: InteractionState, g: Gesture) -> TransitionResult:
    annotation = _selected_instance(session)
    if annotation is not None and annotation.data.keypoints:
        state.keypoint_index = (state.keypoint_index + 1) % len(annotation.data.keypoints)
    return TransitionResult(state=state)


def toggle_visibility(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Cycle the selected keypoint's visibility."""
    annotation = _selected_instance(session)
    if annotation is None or state.keypoint is None:
        return TransitionResult(state=state)

    kp = annotation.data.keypoints[state.keypoint]
    kp.visibility = NEXT_VISIBILITY[kp.visibility]
    session.mark_changed()
    return TransitionResult(state=state, changed=True)
