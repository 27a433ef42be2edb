"""
Tests for hit-testing.
"""

import pytest

from annotix.hittest import (
    bbox_resize_handle, contains, find_edge, find_keypoint, find_landmark,
    find_topmost, find_vertex, hits_rotation_handle, obb_resize_handle,
    point_in_obb, point_in_polygon, rotation_handle_position, segment_distance,
)
from annotix.models import BBoxData, ObbData, create


SQUARE = [[0, 0], [10, 0], [10, 10], [0, 10]]
BIG_SQUARE = [[0, 0], [100, 0], [100, 100], [0, 100]]


class TestPointInPolygon:
    """Tests for even-odd containment."""

    def test_inside_and_outside(self):
        """Test clear cases."""
        assert point_in_polygon(5, 5, SQUARE)
        assert not point_in_polygon(15, 5, SQUARE)
        assert not point_in_polygon(-1, 5, SQUARE)

    def test_edge_rule(self):
        """Test strict crossing: minimum edges inside, maximum edges outside."""
        assert point_in_polygon(0, 5, SQUARE)
        assert not point_in_polygon(10, 5, SQUARE)
        assert point_in_polygon(5, 0, SQUARE)
        assert not point_in_polygon(5, 10, SQUARE)

    def test_concave(self):
        """Test the notch of a U shape is outside."""
        u_shape = [[0, 0], [3, 0], [3, 8], [7, 8], [7, 0], [10, 0], [10, 10], [0, 10]]
        assert not point_in_polygon(5, 4, u_shape)
        assert point_in_polygon(1, 4, u_shape)
        assert point_in_polygon(5, 9, u_shape)


class TestContains:
    """Tests for body hits per annotation type."""

    def test_bbox_edges_inclusive(self):
        """Test boxes contain their border."""
        ann = create("bbox", 0, {"x": 10, "y": 10, "width": 20, "height": 20})
        assert contains(ann, 10, 10)
        assert contains(ann, 30, 30)
        assert not contains(ann, 31, 20)

    def test_rotated_obb(self):
        """Test containment in the box's own frame."""
        box = ObbData(cx=50, cy=50, width=60, height=10, angle=90)
        assert point_in_obb(50, 75, box)
        assert not point_in_obb(75, 50, box)

    @pytest.mark.parametrize("angle", [0, 30, 45, 90, 137.5, 200, 270, 359])
    def test_obb_center_in_far_points_out(self, angle):
        """Test the center is always inside and points beyond max(w, h) never are."""
        ann = create("obb", 0, {"cx": 100, "cy": 100, "width": 60, "height": 20, "angle": angle})
        assert contains(ann, 100, 100)
        for x, y in [(161, 100), (39, 100), (100, 161), (100, 39), (161, 161), (39, 39)]:
            assert not contains(ann, x, y)

    def test_open_polygon_has_no_body(self):
        """Test open polygons are never hit."""
        ann = create("polygon", 0, {"points": SQUARE, "closed": False})
        assert not contains(ann, 5, 5)

    def test_topmost_wins(self):
        """Test the last drawn shape is hit first."""
        annotations = [
            create("bbox", 0, {"x": 0, "y": 0, "width": 50, "height": 50}),
            create("bbox", 1, {"x": 20, "y": 20, "width": 50, "height": 50}),
            create("landmark", 0, {"x": 30, "y": 30}),
        ]
        assert find_topmost(annotations, 30, 30) == 1
        assert find_topmost(annotations, 10, 10) == 0
        assert find_topmost(annotations, 90, 90) is None
        assert find_topmost(annotations, 30, 30, types=("bbox",)) == 1


class TestHandles:
    """Tests for resize and rotation handles."""

    def test_bbox_corner_handle(self):
        """Test handle lookup near a corner."""
        box = BBoxData(x=100, y=100, width=50, height=40)
        assert bbox_resize_handle(box, 101, 99) == "nw"
        assert bbox_resize_handle(box, 150, 140) == "se"
        assert bbox_resize_handle(box, 125, 140) == "s"
        assert bbox_resize_handle(box, 125, 120) is None

    def test_handle_threshold_scales_with_zoom(self):
        """Test handles keep their on-screen size."""
        box = BBoxData(x=100, y=100, width=50, height=40)
        assert bbox_resize_handle(box, 110, 100, zoom=1.0) == "nw"
        assert bbox_resize_handle(box, 110, 100, zoom=4.0) is None

    def test_obb_handle_in_local_frame(self):
        """Test a rotated box's east handle sits below its center."""
        box = ObbData(cx=100, cy=100, width=60, height=40, angle=90)
        assert obb_resize_handle(box, 100, 130) == "e"
        assert obb_resize_handle(box, 140, 100) is None

    def test_rotation_handle(self):
        """Test the grip sits above the box, offset in screen pixels."""
        box = ObbData(cx=100, cy=100, width=40, height=20, angle=0)
        hx, hy = rotation_handle_position(box)
        assert (hx, hy) == pytest.approx((100, 50))
        assert hits_rotation_handle(box, 105, 55)
        assert not hits_rotation_handle(box, 100, 80)
        assert rotation_handle_position(box, zoom=2.0) == pytest.approx((100, 65))


class TestVerticesAndEdges:
    """Tests for polygon vertex and edge lookup."""

    def test_selected_polygon_first(self):
        """Test the selected polygon's vertices take precedence."""
        annotations = [
            create("polygon", 0, {"points": BIG_SQUARE, "closed": True}),
            create("polygon", 1, {"points": BIG_SQUARE, "closed": True}),
        ]
        assert find_vertex(annotations, 100, 0, selected=0) == (0, 1)
        assert find_vertex(annotations, 100, 0) == (1, 1)
        assert find_vertex(annotations, 50, 50) == (None, None)

    def test_segment_distance(self):
        """Test distances to a segment and beyond its ends."""
        assert segment_distance(5, 3, 0, 0, 10, 0) == pytest.approx(3)
        assert segment_distance(13, 4, 0, 0, 10, 0) == pytest.approx(5)

    def test_find_edge(self):
        """Test the closing edge is considered for closed polygons only."""
        assert find_edge(BIG_SQUARE, 50, 1) == 0
        assert find_edge(BIG_SQUARE, 1, 50) == 3
        assert find_edge(BIG_SQUARE, 1, 50, closed=False) is None
        assert find_edge(BIG_SQUARE, 50, 50) is None


class TestPoints:
    """Tests for keypoint and landmark lookup."""

    def test_find_keypoint_ignores_invisible(self):
        """Test only visible keypoints are grabbed."""
        ann = create("keypoints", 0, {"keypoints": [
            {"x": 10, "y": 10, "visibility": 0},
            {"x": 10, "y": 10, "visibility": 2},
        ]})
        assert find_keypoint([ann], 12, 11) == (0, 1)
        assert find_keypoint([ann], 40, 40) == (None, None)

    def test_find_landmark(self):
        """Test the landmark reach."""
        annotations = [create("landmark", 0, {"x": 50, "y": 50})]
        assert find_landmark(annotations, 58, 50) == 0
        assert find_landmark(annotations, 61, 50) is None
