"""
Polygon tool: click to add vertices, close on the first vertex, double-click
or Enter. Vertex deletion and insertion on existing polygons.
"""

import logging
import math

from annotix import config
from annotix.canvas.state import DRAWING, IDLE, InteractionState, Gesture, TransitionResult
from annotix.errors import InvalidGeometry
from annotix.hittest import find_edge
from annotix.models import PolygonData, create

logger = logging.getLogger(__name__)


def press(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode == DRAWING and state.draft:
        first = state.draft[0]
        if math.hypot(g.x - first[0], g.y - first[1]) < config.SNAP_DISTANCE_PX / state.zoom:
            return close(session, state, g)

        state.draft.append([g.x, g.y])
        return TransitionResult(state=state)

    state.mode = DRAWING
    state.draft = [[g.x, g.y]]
    return TransitionResult(state=state)


def move(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.mode == DRAWING:
        state.pointer = (g.x, g.y)
    return TransitionResult(state=state)


def snaps_to_start(state: InteractionState) -> bool:
    """Whether the pointer is close enough to the first vertex to close."""
    if state.mode != DRAWING or not state.draft or state.pointer is None:
        return False
    first = state.draft[0]
    x, y = state.pointer
    return math.hypot(x - first[0], y - first[1]) < config.SNAP_DISTANCE_PX / state.zoom


def close(session, state: InteractionState, g: Gesture) -> TransitionResult:
    """Commit the polygon being drawn; refused below 3 points."""
    if state.mode != DRAWING:
        return TransitionResult(state=state)

    try:
        annotation = create(
            "polygon",
            state.class_id,
            PolygonData(points=[list(p) for p in state.draft], closed=True),
        )
    except InvalidGeometry as e:
        return TransitionResult(state=state, warnings=[str(e)])

    session.add(annotation)
    state.draft = []
    state.mode = IDLE
    state.reset_gesture()
    return TransitionResult(state=state, changed=True, committed=annotation)


def cancel(session, state: InteractionState, g: Gesture) -> TransitionResult:
    if state.draft:
        logger.debug(f"Polygon with {len(state.draft)} points discarded")
    state.draft = []
    state.mode = IDLE
    state.reset_gesture()
    return TransitionResult(state=state)


def delete_vertex(session, state: InteractionState, index: int, vertex: int) -> TransitionResult:
    points = session.annotations[index].data.points
    if len(points) <= config.MIN_POLYGON_POINTS:
        return TransitionResult(
            state=state,
            warnings=[f"A polygon needs at least {config.MIN_POLYGON_POINTS} points"],
        )

    points.pop(vertex)
    session.mark_changed()
    return TransitionResult(state=state, changed=True)


def insert_vertex(session, state: InteractionState, index: int, x: float, y: float) -> TransitionResult:
    """Insert a vertex at (x, y) on the edge of polygon `index` under the pointer."""
    data = session.annotations[index].data
    edge = find_edge(data.points, x, y, state.zoom, closed=data.closed)
    if edge is None:
        return TransitionResult(state=state)

    data.points.insert(edge + 1, [x, y])
    session.mark_changed()
    return TransitionResult(state=state, changed=True)
