"""
Tests for annotation models, invariants and project loading.
"""

import base64
import json

import pytest

from annotix.errors import InvalidGeometry
from annotix.models import (
    COCO_17_SKELETON, Annotation, BBoxData, ClassInfo, ClassList, ImageRecord,
    Keypoint, KeypointsData, ObbData, Project, annotations_from_list,
    annotations_to_list, create, load_project_json, mutate,
)


class TestCreate:
    """Tests for annotation creation invariants."""

    def test_bbox_from_dict(self):
        """Test creating a box from a plain dict."""
        ann = create("bbox", 1, {"x": 10, "y": 20, "width": 30, "height": 40})
        assert ann.type == "bbox"
        assert ann.class_id == 1
        assert ann.data == BBoxData(10.0, 20.0, 30.0, 40.0)

    def test_bbox_needs_positive_extent(self):
        """Test zero-width boxes are rejected."""
        with pytest.raises(InvalidGeometry):
            create("bbox", 0, {"x": 0, "y": 0, "width": 0, "height": 10})

    def test_obb_minimum_size(self):
        """Test the oriented box size floor."""
        with pytest.raises(InvalidGeometry):
            create("obb", 0, {"cx": 50, "cy": 50, "width": 9, "height": 40})

    def test_obb_angle_normalized(self):
        """Test that the angle is wrapped on creation."""
        ann = create("obb", 0, ObbData(cx=50, cy=50, width=20, height=20, angle=-90))
        assert ann.data.angle == 270

    def test_closed_polygon_needs_three_points(self):
        """Test the polygon closing rule."""
        with pytest.raises(InvalidGeometry, match="at least 3 points"):
            create("polygon", 0, {"points": [[0, 0], [1, 1]], "closed": True})

    def test_open_polygon_may_be_short(self):
        """Test that an unclosed draft may have fewer points."""
        ann = create("polygon", 0, {"points": [[0, 0]], "closed": False})
        assert ann.data.points == [[0.0, 0.0]]

    def test_unknown_type(self):
        """Test unknown annotation types."""
        with pytest.raises(InvalidGeometry):
            create("ellipse", 0, {})

    def test_malformed_data(self):
        """Test missing fields are reported as invalid geometry."""
        with pytest.raises(InvalidGeometry):
            create("bbox", 0, {"x": 1})

    def test_keypoint_visibility_values(self):
        """Test visibility flags outside {0, 1, 2}."""
        with pytest.raises(InvalidGeometry):
            create("keypoints", 0, {"keypoints": [{"x": 1, "y": 1, "visibility": 3}]})

    def test_range_is_ordered(self):
        """Test that ranges are stored start <= end."""
        ann = create("range", 0, {"start": 5, "end": 2})
        assert (ann.data.start, ann.data.end) == (2, 5)

    def test_mask_accepts_bare_data_url(self):
        """Test the browser layout where mask data is the URL itself."""
        ann = create("mask", 0, "data:image/png;base64,AAAA")
        assert ann.data.raster == "data:image/png;base64,AAAA"


class TestMutate:
    """Tests for in-place edits."""

    def test_clamps_bbox(self):
        """Test that shrinking a box stops at the minimum size."""
        ann = create("bbox", 0, {"x": 0, "y": 0, "width": 50, "height": 50})
        mutate(ann, {"width": 1, "height": -3})
        assert ann.data.width == 5
        assert ann.data.height == 5

    def test_clamps_obb(self):
        """Test oriented box size floor and angle wrap."""
        ann = create("obb", 0, {"cx": 50, "cy": 50, "width": 40, "height": 40})
        mutate(ann, {"width": 2, "angle": 370})
        assert ann.data.width == 10
        assert ann.data.angle == pytest.approx(10)

    def test_short_polygon_reopens(self):
        """Test a closed polygon patched below 3 points is no longer closed."""
        ann = create("polygon", 0, {"points": [[0, 0], [10, 0], [10, 10]], "closed": True})
        mutate(ann, {"points": [[0, 0], [1, 1]]})
        assert ann.data.closed is False
        assert ann.data.points == [[0, 0], [1, 1]]

    def test_unknown_field(self):
        """Test patches naming a field the geometry does not have."""
        ann = create("bbox", 0, {"x": 0, "y": 0, "width": 50, "height": 50})
        with pytest.raises(KeyError):
            mutate(ann, {"radius": 3})


class TestKeypoints:
    """Tests for keypoint instances."""

    def test_bbox_from_labeled_points(self):
        """Test the derived bbox ignores unlabeled keypoints."""
        data = KeypointsData(keypoints=[
            Keypoint(10, 20, 2),
            Keypoint(),
            Keypoint(30, 60, 1),
        ])
        data.update_bbox()
        assert data.bbox == BBoxData(10, 20, 20, 40)

    def test_no_labeled_points(self):
        """Test an empty instance has no bbox."""
        data = KeypointsData(keypoints=[Keypoint(), Keypoint()])
        data.update_bbox()
        assert data.bbox is None

    def test_visible_keypoints(self):
        """Test visibility filtering."""
        data = KeypointsData(keypoints=[Keypoint(1, 1, 2), Keypoint(2, 2, 0), Keypoint()])
        assert data.visible_keypoints() == [Keypoint(1, 1, 2)]


class TestSerialization:
    """Tests for annotation list round trips."""

    def test_annotation_list(self):
        """Test serializing and parsing a mixed list."""
        records = [
            {"type": "bbox", "class": 0, "data": {"x": 1, "y": 2, "width": 3, "height": 4}},
            {"type": "landmark", "class": 2, "data": {"x": 5, "y": 6, "name": "Point 1", "id": "landmark_abc"}},
            {"type": "polygon", "class": 1, "data": {"points": [[0, 0], [4, 0], [4, 4]], "closed": True}},
        ]
        annotations = annotations_from_list(records)

        assert [a.type for a in annotations] == ["bbox", "landmark", "polygon"]
        assert annotations_to_list(annotations)[1]["data"]["name"] == "Point 1"

    def test_class_id_aliases(self):
        """Test the alternative class id keys."""
        ann = Annotation.from_dict({"type": "point", "classId": 4, "data": {"x": 1}})
        assert ann.class_id == 4


class TestClassList:
    """Tests for class lookups."""

    def test_resolve_known(self, classes):
        """Test lookups of existing classes."""
        cl = ClassList(classes)
        assert cl.name_of(1) == "dog"
        assert cl.color_of(2) == "#0000ff"
        assert 1 in cl
        assert len(cl) == 3

    def test_fallback_for_unknown(self, classes):
        """Test dangling class ids resolve to a synthetic class."""
        cl = ClassList(classes)
        assert cl.name_of(9) == "class_9"
        assert cl.color_of(9) == "#ff0000"
        assert 9 not in cl

    def test_skeleton_defaults_to_coco(self, classes):
        """Test the default skeleton."""
        cl = ClassList(classes)
        assert cl.skeleton_of(0) is COCO_17_SKELETON
        assert len(cl.skeleton_of(0)["keypoints"]) == 17
        assert cl.first_skeleton() is None

    def test_custom_skeleton(self):
        """Test a class with its own skeleton."""
        skeleton = {"keypoints": ["head", "tail"], "connections": [[0, 1]]}
        cl = ClassList([ClassInfo(id=0, name="fish", skeleton=skeleton)])
        assert cl.skeleton_of(0) == skeleton
        assert cl.first_skeleton() == skeleton


class TestImageRecord:
    """Tests for image records."""

    def test_filename_keeps_extension(self):
        """Test names that already have an extension."""
        image = ImageRecord(id=1, name="photo.png", width=10, height=10)
        assert image.filename == "photo.png"
        assert image.stem == "photo"

    def test_filename_from_mime_type(self):
        """Test names without extension."""
        image = ImageRecord(id=1, name="frame_7", width=10, height=10, mime_type="image/png")
        assert image.filename == "frame_7.png"
        image.mime_type = None
        assert image.filename == "frame_7.jpg"

    def test_snapshot_is_independent(self):
        """Test that editing a snapshot leaves the original untouched."""
        image = ImageRecord(id=1, name="a.jpg", width=100, height=100, annotations=[
            create("bbox", 0, {"x": 1, "y": 1, "width": 10, "height": 10}),
        ])
        snap = image.snapshot()
        snap.annotations[0].data.x = 50
        snap.annotations.append(create("point", 0, {"x": 1}))

        assert image.annotations[0].data.x == 1
        assert len(image.annotations) == 1

    def test_from_dict_decodes_data_url(self):
        """Test inline image bytes."""
        payload = base64.b64encode(b"\x89PNG fake").decode()
        image = ImageRecord.from_dict({
            "name": "x.png", "width": 4, "height": 3, "data": f"data:image/png;base64,{payload}",
        })
        assert image.data == b"\x89PNG fake"
        assert image.id == 1


class TestProject:
    """Tests for projects and project dumps."""

    def test_unknown_project_type(self):
        """Test project type validation."""
        with pytest.raises(ValueError):
            Project.from_dict({"name": "p", "type": "video"})

    def test_load_project_json(self, tmp_path):
        """Test loading a dump and resolving relative image paths."""
        dump = {
            "project": {"name": "birds", "type": "bbox", "classes": [{"id": 0, "name": "bird"}]},
            "images": [{
                "id": 3,
                "name": "a.jpg",
                "width": 100,
                "height": 50,
                "path": "images/a.jpg",
                "annotations": [
                    {"type": "bbox", "class": 0, "data": {"x": 1, "y": 1, "width": 10, "height": 10}},
                ],
            }],
        }
        path = tmp_path / "project.json"
        path.write_text(json.dumps(dump))

        project, images = load_project_json(path)

        assert project.name == "birds"
        assert project.classes[0].name == "bird"
        assert images[0].id == 3
        assert images[0].path == str(tmp_path / "images" / "a.jpg")
        assert images[0].annotations[0].data.width == 10
