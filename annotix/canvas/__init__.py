"""
Canvas interaction - per-tool state machines driven by pointer gestures
"""

from annotix.canvas.state import Gesture, InteractionState, TransitionResult
from annotix.canvas.session import EditingSession

__all__ = [
    "Gesture", "InteractionState", "TransitionResult",
    "EditingSession",
]
