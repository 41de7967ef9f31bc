"""
Tests for line fitting and intersections
"""

import cv2
import numpy as np
import pytest

from document_detection.lines import (
    Line,
    find_hough_lines,
    find_intersections,
    find_scan_lines,
    fit_quad_to_edges,
    intersect,
    quad_from_points,
)

from conftest import rotated_rectangle


def outline_mask(width, height, corners, thickness=2):
    mask = np.zeros((height, width), dtype=np.uint8)
    cv2.polylines(mask, [np.round(corners).astype(np.int32)], True, 255, thickness)
    return mask > 0


class TestLine:
    """Tests for line representation and intersection"""

    def test_from_normal_normalizes(self):
        """Test normal is scaled to unit length"""
        line = Line.from_normal(0.0, 2.0, 10.0)
        assert (line.a, line.b, line.c) == (0.0, 1.0, 5.0)

    def test_zero_normal(self):
        """Test zero normal is rejected"""
        with pytest.raises(ValueError):
            Line.from_normal(0.0, 0.0, 1.0)

    def test_intersect(self):
        """Test intersection of a vertical and a horizontal line"""
        vertical = Line(1.0, 0.0, 10.0)
        horizontal = Line(0.0, 1.0, 20.0)
        assert intersect(vertical, horizontal) == pytest.approx((10.0, 20.0))

    def test_parallel_lines(self):
        """Test parallel lines have no intersection"""
        assert intersect(Line(0.0, 1.0, 5.0), Line(0.0, 1.0, 9.0)) is None

    def test_from_polar(self):
        """Test Hough form conversion"""
        line = Line.from_polar(30.0, np.pi / 2)
        assert line.distance(123.0, 30.0) == pytest.approx(0.0, abs=1e-9)


class TestScanLines:
    """Tests for dense row / column line fitting"""

    def test_cross(self):
        """Test one full row and one full column"""
        mask = np.zeros((60, 80), dtype=bool)
        mask[30, :] = True
        mask[:, 40] = True
        lines = find_scan_lines(mask)
        assert len(lines) == 2
        horizontal, vertical = lines
        assert horizontal.distance(5.0, 30.0) == pytest.approx(0.0, abs=1e-6)
        assert vertical.distance(40.0, 55.0) == pytest.approx(0.0, abs=1e-6)

    def test_adjacent_rows_form_one_line(self):
        """Test neighbouring dense rows are fitted together"""
        mask = np.zeros((60, 80), dtype=bool)
        mask[20:22, :] = True
        lines = find_scan_lines(mask)
        assert len(lines) == 1
        assert lines[0].distance(10.0, 20.5) == pytest.approx(0.0, abs=1e-6)

    def test_sparse_rows_do_not_qualify(self):
        """Test rows below the density are ignored"""
        mask = np.zeros((60, 80), dtype=bool)
        mask[10, :15] = True
        assert find_scan_lines(mask, density=0.25) == []

    def test_rectangle_outline_corners(self):
        """Test corners of an axis-aligned outline"""
        corners = np.array([[20, 30], [180, 30], [180, 130], [20, 130]], dtype=np.float32)
        mask = np.zeros((160, 200), dtype=bool)
        mask[30, 20:181] = mask[130, 20:181] = True
        mask[30:131, 20] = mask[30:131, 180] = True
        points = find_intersections(find_scan_lines(mask), 200, 160)
        quad = quad_from_points(points)
        assert quad is not None
        assert np.allclose(quad, corners, atol=1.0)


class TestHoughLines:
    """Tests for outer border lines of rotated documents"""

    def test_rotated_outline(self):
        """Test border lines of a document rotated by 15 degrees"""
        corners = rotated_rectangle((320, 240), (360, 240), 15)
        lines = find_hough_lines(outline_mask(640, 480, corners))
        assert len(lines) == 4

        points = [intersect(a, b) for a in lines[:2] for b in lines[2:]]
        quad = quad_from_points(np.array(points, dtype=np.float32))
        assert quad is not None
        assert np.abs(quad - corners).max() < 4.0

    def test_diagonal_stroke_is_ignored(self):
        """Test a 45 degree stroke past the top border is not taken as a side"""
        corners = rotated_rectangle((320, 240), (360, 240), 15)
        mask = outline_mask(640, 480, corners).astype(np.uint8) * 255
        cv2.line(mask, (340, 320), (425, 405), 255, 1)
        lines = find_hough_lines(mask > 0)
        assert len(lines) == 4

        for line in lines:
            angle = np.degrees(np.arctan2(line.b, line.a)) % 90
            assert min(abs(angle - 15), abs(angle - 15 - 90), abs(angle - 15 + 90)) < 5

        points = [intersect(a, b) for a in lines[:2] for b in lines[2:]]
        quad = quad_from_points(np.array(points, dtype=np.float32))
        assert quad is not None
        assert np.abs(quad - corners).max() < 4.0

    def test_single_orientation_gives_nothing(self):
        """Test parallel lines only"""
        mask = np.zeros((200, 200), dtype=bool)
        mask[50, 10:190] = True
        mask[150, 10:190] = True
        assert find_hough_lines(mask) == []

    def test_empty_mask(self):
        """Test mask without edges"""
        assert find_hough_lines(np.zeros((100, 100), dtype=bool)) == []


class TestFitQuadToEdges:
    """Tests for snapping a coarse quad onto edge pixels"""

    @pytest.fixture
    def outline(self):
        """One-pixel outline of the rectangle (50, 40)-(250, 190)."""
        mask = np.zeros((240, 300), dtype=np.uint8)
        cv2.rectangle(mask, (50, 40), (250, 190), 255, 1)
        return mask > 0

    def test_snaps_onto_outline(self, outline):
        """Test a skewed coarse quad lands on the outline"""
        coarse = np.array([[45, 36], [255, 44], [253, 194], [47, 186]], dtype=np.float32)
        fitted = fit_quad_to_edges(outline, coarse, band=10.0)
        expected = np.array([[50, 40], [250, 40], [250, 190], [50, 190]], dtype=np.float32)
        assert fitted is not None
        assert np.allclose(fitted, expected, atol=0.5)

    def test_side_without_support(self, outline):
        """Test a side far from any edge gives None"""
        coarse = np.array([[50, 40], [250, 40], [250, 230], [50, 230]], dtype=np.float32)
        assert fit_quad_to_edges(outline, coarse, band=10.0) is None

    def test_empty_mask(self):
        """Test mask without edges"""
        coarse = np.array([[10, 10], [90, 10], [90, 90], [10, 90]], dtype=np.float32)
        assert fit_quad_to_edges(np.zeros((100, 100), dtype=bool), coarse, band=5.0) is None


class TestIntersections:
    """Tests for in-bounds intersections and extremal quads"""

    def test_out_of_bounds_points_are_dropped(self):
        """Test intersections outside the frame are dropped"""
        lines = [Line(1.0, 0.0, 250.0), Line(0.0, 1.0, 50.0)]
        assert len(find_intersections(lines, 200, 100)) == 0

    def test_near_parallel_pairs_are_skipped(self):
        """Test pairs under 10 degrees apart count as parallel"""
        lines = [Line.from_polar(50.0, np.pi / 2), Line.from_polar(52.0, np.pi / 2 + 0.05)]
        assert len(find_intersections(lines, 1000, 1000)) == 0

    def test_quad_from_points_extremes(self):
        """Test extremal points form the quad"""
        points = np.array([[10, 10], [50, 50], [90, 12], [88, 95], [12, 90]], dtype=np.float32)
        quad = quad_from_points(points)
        assert quad.tolist() == [[10, 10], [90, 12], [88, 95], [12, 90]]

    def test_quad_from_too_few_points(self):
        """Test fewer than four points"""
        assert quad_from_points(np.zeros((3, 2), dtype=np.float32)) is None
