"""
Tests for the canvas tools driven through an editing session.
"""

import pytest

from annotix.canvas import EditingSession, Gesture
from annotix.canvas import mask as mask_tool
from annotix.canvas.dispatch import NO_CLASS_WARNING
from annotix.canvas.state import DRAGGING, DRAWING, IDLE, RESIZING, ROTATING, SELECTED
from annotix.masks import decode_mask
from annotix.models import ClassInfo, ClassList, ImageRecord, create
from annotix.transform import Viewport

from tests.conftest import square_raster


@pytest.fixture
def image():
    return ImageRecord(id=1, name="canvas.png", width=200, height=200)


@pytest.fixture
def session(image, classes):
    return EditingSession(image, ClassList(classes))


def drag(session, x0, y0, x1, y1):
    session.handle(Gesture("press", x0, y0))
    session.handle(Gesture("move", x1, y1))
    return session.handle(Gesture("release", x1, y1))


def select_at(session, x, y):
    session.handle(Gesture("press", x, y))
    session.handle(Gesture("release", x, y))


class TestSession:
    """Tests for the session bookkeeping."""

    def test_defaults(self, session):
        """Test the first class and the select tool are active."""
        assert session.state.tool == "select"
        assert session.state.class_id == 0
        assert not session.unsaved_changes

    def test_unknown_tool(self, session):
        """Test tool validation."""
        with pytest.raises(ValueError):
            session.set_tool("lasso")

    def test_unknown_gesture(self, session):
        """Test gesture validation."""
        with pytest.raises(ValueError):
            session.handle(Gesture("wiggle"))

    def test_snapshot_is_independent(self, session):
        """Test snapshots do not follow later edits."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 20, "height": 20}))
        snapshot = session.snapshot()
        session.annotations[0].data.x = 99

        assert snapshot[0].data.x == 10

    def test_mark_saved(self, session):
        """Test the unsaved flag."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 20, "height": 20}))
        assert session.unsaved_changes
        session.mark_saved()
        assert not session.unsaved_changes

    def test_no_classes_refuses_drawing(self, image):
        """Test drawing tools need a class."""
        session = EditingSession(image, ClassList([]))
        session.set_tool("bbox")

        result = drag(session, 10, 10, 80, 80)
        press = session.handle(Gesture("press", 10, 10))

        assert press.warnings == [NO_CLASS_WARNING]
        assert not result.changed
        assert session.annotations == []

    def test_viewport_pointer(self, image, classes):
        """Test pointer gestures in viewport coordinates are mapped to the image."""
        session = EditingSession(image, ClassList(classes), Viewport(zoom=2.0))
        session.set_tool("bbox")

        session.pointer("press", 20, 20)
        session.pointer("move", 100, 80)
        result = session.pointer("release", 100, 80)

        box = result.committed.data
        assert (box.x, box.y, box.width, box.height) == (10, 10, 40, 30)


class TestBBoxTool:
    """Tests for drawing axis-aligned boxes."""

    def test_draw(self, session):
        """Test a drag commits a box with the active class."""
        session.set_tool("bbox")
        session.set_class(2)

        result = drag(session, 10, 10, 50, 40)

        assert result.changed
        ann = session.annotations[0]
        assert ann.type == "bbox"
        assert ann.class_id == 2
        assert (ann.data.x, ann.data.y, ann.data.width, ann.data.height) == (10, 10, 40, 30)
        assert session.unsaved_changes
        assert session.state.mode == IDLE

    def test_draw_backwards(self, session):
        """Test dragging up-left gives a positive extent."""
        session.set_tool("bbox")
        drag(session, 50, 40, 10, 10)

        box = session.annotations[0].data
        assert (box.x, box.y, box.width, box.height) == (10, 10, 40, 30)

    def test_too_small_is_discarded(self, session):
        """Test boxes not larger than 5px on both sides are dropped."""
        session.set_tool("bbox")

        assert not drag(session, 10, 10, 15, 80).changed
        assert not drag(session, 10, 10, 14, 80).changed
        assert session.annotations == []

    def test_move(self, session):
        """Test dragging a box by its body."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 40, "height": 30}))

        session.handle(Gesture("press", 30, 25))
        assert session.state.mode == DRAGGING
        session.handle(Gesture("move", 40, 35))
        session.handle(Gesture("release", 40, 35))

        box = session.annotations[0].data
        assert (box.x, box.y) == (20, 20)
        assert session.state.mode == SELECTED
        assert session.state.selected == 0

    def test_resize_and_clamp(self, session):
        """Test the se handle and the minimum size."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 40, "height": 30}))
        select_at(session, 30, 25)

        session.handle(Gesture("press", 50, 40))
        assert session.state.mode == RESIZING
        assert session.state.handle == "se"

        session.handle(Gesture("move", 90, 60))
        box = session.annotations[0].data
        assert (box.width, box.height) == (80, 50)

        session.handle(Gesture("move", 12, 12))
        assert (box.x, box.y, box.width, box.height) == (10, 10, 5, 5)

    def test_click_outside_deselects(self, session):
        """Test pressing on empty canvas clears the selection."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 40, "height": 30}))
        select_at(session, 30, 25)
        select_at(session, 150, 150)

        assert session.state.selected is None
        assert session.state.mode == IDLE

    def test_topmost_is_selected(self, session):
        """Test overlapping shapes select the last drawn."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 50, "height": 50}))
        session.add(create("bbox", 1, {"x": 30, "y": 30, "width": 50, "height": 50}))

        select_at(session, 40, 40)

        assert session.state.selected == 1

    def test_delete(self, session):
        """Test deleting the selection."""
        session.add(create("bbox", 0, {"x": 10, "y": 10, "width": 40, "height": 30}))
        select_at(session, 30, 25)

        result = session.command("delete")

        assert result.changed
        assert session.annotations == []
        assert session.state.selected is None


class TestObbTool:
    """Tests for oriented boxes."""

    def test_draw_from_center(self, session):
        """Test the drag spans half the box from its center."""
        session.set_tool("obb")

        result = drag(session, 100, 100, 120, 110)

        box = result.committed.data
        assert (box.cx, box.cy, box.width, box.height, box.angle) == (110, 105, 40, 20, 0)

    def test_too_small_is_discarded(self, session):
        """Test the 10px floor on drawing."""
        session.set_tool("obb")
        assert not drag(session, 100, 100, 104, 130).changed
        assert session.annotations == []

    def test_rotate_with_grip(self, session):
        """Test the angle follows the pointer relative to where the drag started."""
        session.add(create("obb", 0, {"cx": 100, "cy": 100, "width": 40, "height": 20}))
        select_at(session, 100, 100)

        session.handle(Gesture("press", 100, 50))
        assert session.state.mode == ROTATING

        session.handle(Gesture("move", 150, 100))
        assert session.annotations[0].data.angle == pytest.approx(90)

        session.handle(Gesture("move", 100, 150))
        assert session.annotations[0].data.angle == pytest.approx(180)

    def test_rotate_by_command(self, session):
        """Test keyboard rotation steps."""
        session.add(create("obb", 0, {"cx": 100, "cy": 100, "width": 40, "height": 20}))
        select_at(session, 100, 100)

        session.command("rotate_by")
        assert session.annotations[0].data.angle == pytest.approx(15)
        session.command("rotate_by", shift=True)
        assert session.annotations[0].data.angle == pytest.approx(0)
        session.command("rotate_by", value=-30)
        assert session.annotations[0].data.angle == pytest.approx(330)

    def test_corner_resize(self, session):
        """Test corners change both extents around the fixed center."""
        session.add(create("obb", 0, {"cx": 100, "cy": 100, "width": 40, "height": 20}))
        select_at(session, 100, 100)

        session.handle(Gesture("press", 120, 90))
        assert session.state.handle == "ne"
        session.handle(Gesture("move", 130, 80))

        box = session.annotations[0].data
        assert (box.cx, box.cy) == (100, 100)
        assert (box.width, box.height) == pytest.approx((60, 40))

    def test_edge_resize(self, session):
        """Test edge handles change one extent only."""
        session.add(create("obb", 0, {"cx": 100, "cy": 100, "width": 40, "height": 20}))
        select_at(session, 100, 100)

        session.handle(Gesture("press", 100, 90))
        assert session.state.handle == "n"
        session.handle(Gesture("move", 130, 70))

        box = session.annotations[0].data
        assert (box.width, box.height) == pytest.approx((40, 60))


class TestPolygonTool:
    """Tests for drawing and editing polygons."""

    def test_close_by_snapping(self, session):
        """Test clicking next to the first vertex closes the polygon."""
        session.set_tool("polygon")
        for x, y in [(10, 10), (100, 10), (100, 100)]:
            session.handle(Gesture("press", x, y))

        result = session.handle(Gesture("press", 12, 11))

        assert result.changed
        ann = session.annotations[0]
        assert ann.data.closed
        assert ann.data.points == [[10, 10], [100, 10], [100, 100]]
        assert session.state.draft == []
        assert session.state.mode == IDLE

    def test_snap_distance_scales_with_zoom(self, image, classes):
        """Test the snap radius is constant on screen."""
        session = EditingSession(image, ClassList(classes), Viewport(zoom=4.0))
        session.set_tool("polygon")
        for x, y in [(10, 10), (100, 10), (100, 100), (14, 10)]:
            session.handle(Gesture("press", x, y))

        assert session.annotations == []
        assert len(session.state.draft) == 4

    def test_close_needs_three_points(self, session):
        """Test closing early is refused and keeps drawing."""
        session.set_tool("polygon")
        session.handle(Gesture("press", 10, 10))
        session.handle(Gesture("press", 100, 10))

        result = session.command("close")

        assert result.warnings
        assert "at least 3 points" in result.warnings[0]
        assert session.annotations == []
        assert session.state.mode == DRAWING
        assert len(session.state.draft) == 2

    def test_double_click_closes(self, session):
        """Test double-click finishes the polygon."""
        session.set_tool("polygon")
        for x, y in [(10, 10), (100, 10), (100, 100)]:
            session.handle(Gesture("press", x, y))

        assert session.handle(Gesture("double_click", 100, 100)).changed
        assert len(session.annotations) == 1

    def test_cancel(self, session):
        """Test cancel drops the draft."""
        session.set_tool("polygon")
        session.handle(Gesture("press", 10, 10))
        session.handle(Gesture("press", 100, 10))
        session.command("cancel")

        assert session.state.draft == []
        assert session.annotations == []

    def test_switching_tools_discards_draft(self, session):
        """Test an unfinished polygon does not survive a tool change."""
        session.set_tool("polygon")
        session.handle(Gesture("press", 10, 10))
        session.set_tool("bbox")

        assert session.state.draft == []

    def test_vertex_drag(self, session):
        """Test moving a single vertex."""
        session.add(create("polygon", 0, {"points": [[10, 10], [100, 10], [100, 100]], "closed": True}))

        session.handle(Gesture("press", 100, 10))
        session.handle(Gesture("move", 120, 20))
        session.handle(Gesture("release", 120, 20))

        assert session.annotations[0].data.points[1] == [120, 20]
        assert session.state.selected == 0

    def test_insert_vertex(self, session):
        """Test double-click on an edge of the selected polygon."""
        session.add(create("polygon", 0, {"points": [[10, 10], [100, 10], [100, 100]], "closed": True}))
        select_at(session, 100, 10)

        result = session.handle(Gesture("double_click", 55, 11))

        assert result.changed
        assert session.annotations[0].data.points == [[10, 10], [55, 11], [100, 10], [100, 100]]

    def test_delete_vertex(self, session):
        """Test context-click removes a vertex but keeps at least 3."""
        session.add(create("polygon", 0, {
            "points": [[10, 10], [100, 10], [100, 100], [10, 100]], "closed": True,
        }))

        assert session.handle(Gesture("context_click", 10, 100)).changed
        assert len(session.annotations[0].data.points) == 3

        result = session.handle(Gesture("context_click", 10, 10))
        assert not result.changed
        assert result.warnings == ["A polygon needs at least 3 points"]
        assert len(session.annotations[0].data.points) == 3

    def test_move_polygon(self, session):
        """Test dragging a closed polygon by its body."""
        session.add(create("polygon", 0, {"points": [[10, 10], [100, 10], [100, 100]], "closed": True}))

        drag(session, 80, 30, 90, 50)

        assert session.annotations[0].data.points == [[20, 30], [110, 30], [110, 120]]


class TestKeypointTool:
    """Tests for placing and editing keypoints."""

    @pytest.fixture
    def session(self, image):
        skeleton = {"keypoints": ["head", "tail"], "connections": [[0, 1]]}
        return EditingSession(image, ClassList([ClassInfo(id=0, name="fish", skeleton=skeleton)]))

    def test_place_in_order(self, session):
        """Test presses fill the skeleton one joint after another."""
        session.set_tool("keypoint")

        first = session.handle(Gesture("press", 10, 10))
        session.handle(Gesture("press", 20, 20))

        assert first.committed is not None
        assert len(session.annotations) == 1
        data = session.annotations[0].data
        assert [(kp.x, kp.y, kp.visibility) for kp in data.keypoints] == [(10, 10, 2), (20, 20, 2)]
        assert (data.bbox.x, data.bbox.y, data.bbox.width, data.bbox.height) == (10, 10, 10, 10)
        assert session.state.keypoint_index == 0

    def test_new_instance(self, session):
        """Test starting a second instance."""
        session.set_tool("keypoint")
        session.handle(Gesture("press", 10, 10))
        session.command("new_instance")
        session.handle(Gesture("press", 50, 50))

        assert len(session.annotations) == 2
        assert session.annotations[1].data.keypoints[0].x == 50
        assert not session.annotations[1].data.keypoints[1].is_labeled

    def test_next_keypoint(self, session):
        """Test skipping a joint."""
        session.set_tool("keypoint")
        session.command("new_instance")
        session.command("next_keypoint")
        session.handle(Gesture("press", 30, 40))

        keypoints = session.annotations[0].data.keypoints
        assert not keypoints[0].is_labeled
        assert (keypoints[1].x, keypoints[1].y) == (30, 40)

    def test_toggle_visibility_cycle(self, session):
        """Test visible -> occluded -> not labeled -> visible."""
        session.set_tool("keypoint")
        session.handle(Gesture("press", 10, 10))
        session.handle(Gesture("press", 60, 60))
        session.set_tool("select")
        select_at(session, 10, 10)
        assert session.state.keypoint == 0

        kp = session.annotations[0].data.keypoints[0]
        seen = []
        for _ in range(3):
            session.command("toggle_visibility")
            seen.append(kp.visibility)

        assert seen == [1, 0, 2]

    def test_drag_keypoint(self, session):
        """Test moving one keypoint updates the instance box."""
        session.set_tool("keypoint")
        session.handle(Gesture("press", 10, 10))
        session.handle(Gesture("press", 20, 20))
        session.set_tool("select")

        drag(session, 20, 20, 30, 35)

        data = session.annotations[0].data
        assert (data.keypoints[1].x, data.keypoints[1].y) == (30, 35)
        assert (data.bbox.width, data.bbox.height) == (20, 25)


class TestLandmarkTool:
    """Tests for named landmarks."""

    def test_names_per_class(self, session):
        """Test landmarks are numbered per class."""
        session.set_tool("landmark")
        session.handle(Gesture("press", 5, 5))
        session.handle(Gesture("press", 50, 50))
        session.set_class(1)
        session.handle(Gesture("press", 100, 100))

        names = [a.data.name for a in session.annotations]
        assert names == ["Point 1", "Point 2", "Point 1"]
        ids = {a.data.id for a in session.annotations}
        assert len(ids) == 3
        assert all(i.startswith("landmark_") for i in ids)

    def test_drag_landmark(self, session):
        """Test moving a landmark with the select tool."""
        session.set_tool("landmark")
        session.handle(Gesture("press", 50, 50))
        session.set_tool("select")

        drag(session, 52, 50, 72, 60)

        assert (session.annotations[0].data.x, session.annotations[0].data.y) == (70, 60)


class TestMaskTool:
    """Tests for the brush."""

    def test_paint_and_finish(self, session):
        """Test strokes become a mask annotation on finish."""
        session.set_tool("mask")
        drag(session, 50, 50, 80, 50)

        result = session.command("finish")

        assert result.changed
        ann = session.annotations[0]
        assert ann.type == "mask"
        mask = decode_mask(ann.data.raster, 200, 200)
        assert mask[50, 50] and mask[50, 80]
        assert not mask[150, 150]

    def test_empty_mask_is_discarded(self, session):
        """Test finishing without paint adds nothing."""
        session.set_tool("mask")
        assert not session.command("finish").changed
        assert session.annotations == []

    def test_erase(self, session):
        """Test erase mode clears painted pixels."""
        session.set_tool("mask")
        drag(session, 50, 50, 80, 50)
        session.command("toggle_erase")
        drag(session, 50, 50, 80, 50)

        assert not session.command("finish").changed
        assert session.annotations == []

    def test_switching_tools_finishes(self, session):
        """Test a pending mask is committed on tool change."""
        session.set_tool("mask")
        drag(session, 50, 50, 60, 60)
        session.set_tool("select")

        assert [a.type for a in session.annotations] == ["mask"]
        assert session.state.mask is None

    def test_brush_size(self, session):
        """Test brush steps and limits."""
        session.set_tool("mask")
        session.command("brush_size")
        assert session.state.brush_size == 25
        session.command("brush_size", shift=True)
        assert session.state.brush_size == 20
        session.command("brush_size", value=500)
        assert session.state.brush_size == 100
        session.command("brush_size", value=1)
        assert session.state.brush_size == 5

    def test_select_and_reopen(self, session):
        """Test masks are selected by pixel and reopened by double-click."""
        session.set_tool("mask")
        drag(session, 50, 50, 80, 50)
        session.set_tool("select")

        select_at(session, 50, 50)
        assert session.state.selected == 0
        assert session.state.mode == SELECTED

        select_at(session, 150, 150)
        result = session.handle(Gesture("double_click", 60, 50))

        assert result.changed
        assert session.annotations == []
        assert session.state.tool == "mask"
        assert session.state.mask[50, 60] == 1

        session.command("finish")
        assert len(session.annotations) == 1

    def test_unreadable_mask_is_never_hit(self, session):
        """Test a mask whose raster does not match the image does not break selection."""
        session.annotations.append(create("mask", 0, {"raster": square_raster(20, 20, 0, 0, 20, 20)}))
        session.annotations.append(create("bbox", 1, {"x": 100, "y": 100, "width": 40, "height": 40}))
        session.set_tool("select")

        select_at(session, 5, 5)
        assert session.state.selected is None

        select_at(session, 120, 120)
        assert session.state.selected == 1

        result = session.handle(Gesture("double_click", 5, 5))
        assert not result.changed
        assert len(session.annotations) == 2

    def test_unreadable_mask_cannot_be_reopened(self, session):
        """Test reopening a mismatched mask leaves it in place with a warning."""
        session.annotations.append(create("mask", 2, {"raster": square_raster(20, 20, 0, 0, 20, 20)}))

        result = mask_tool.edit(session, session.state, 0)

        assert not result.changed
        assert result.warnings
        assert len(session.annotations) == 1
        assert session.state.mask is None
