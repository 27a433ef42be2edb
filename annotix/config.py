"""
Engine configuration

Empirical constants of the geometry engine and export pipeline. Each one can
be overridden through the environment.
"""

import os

# Contour tracing / simplification
CONTOUR_MAX_POINTS = int(os.getenv("ANNOTIX_CONTOUR_MAX_POINTS", "10000"))
SIMPLIFY_TOLERANCE_PX = float(os.getenv("ANNOTIX_SIMPLIFY_TOLERANCE", "2.0"))
MASK_ALPHA_THRESHOLD = int(os.getenv("ANNOTIX_MASK_ALPHA_THRESHOLD", "128"))

# Minimum editable sizes (image pixels)
BBOX_MIN_DRAW_SIZE = 5.0
BBOX_MIN_SIZE = 5.0
OBB_MIN_SIZE = 10.0
MIN_POLYGON_POINTS = 3

# Handle geometry (screen pixels, divided by zoom at use sites)
HANDLE_SIZE_PX = 6.0
ROTATION_HANDLE_OFFSET_PX = 30.0
ROTATION_HANDLE_THRESHOLD_PX = 12.0
VERTEX_THRESHOLD_PX = 8.0
LANDMARK_THRESHOLD_PX = 10.0
SNAP_DISTANCE_PX = float(os.getenv("ANNOTIX_SNAP_DISTANCE", "10"))
EDGE_INSERT_THRESHOLD_PX = 6.0

# Viewport
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2
FIT_MARGIN = 0.9

# Export
EXPORT_WORKERS = int(os.getenv("ANNOTIX_EXPORT_WORKERS", "4"))
DEFAULT_CLASS_COLOR = "#ff0000"
