"""
Landmark tool: each press places a named point.
"""

import uuid

from annotix.canvas.state import SELECTED, InteractionState, Gesture, TransitionResult
from annotix.models import LandmarkData, create


def next_name(annotations, class_id: int) -> str:
    """`Point N`, numbered per class."""
    count = sum(1 for a in annotations if a.type == "landmark" and a.class_id == class_id)
    return f"Point {count + 1}"


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    data = LandmarkData(
        x=g.x,
        y=g.y,
        name=next_name(session.annotations, state.class_id),
        id=f"landmark_{uuid.uuid4().hex[:12]}",
    )
    annotation = create("landmark", state.class_id, data)
    state.selected = session.add(annotation)
    state.mode = SELECTED
    return TransitionResult(state=state, changed=True, committed=annotation)
