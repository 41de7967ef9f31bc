"""
Tests for corner ordering and quadrilateral geometry
"""

import numpy as np
import pytest

from document_detection.geometry import (
    aspect_ratio,
    clamp_to_image,
    corner_angles,
    default_quadrilateral,
    order_corners,
    parallelism,
    polygon_area,
    quad_metrics,
    refine_aspect_ratio,
    refine_corners_subpixel,
    scale_quad,
)


SQUARE = np.array([[0, 0], [100, 0], [100, 100], [0, 100]], dtype=np.float32)


class TestOrderCorners:
    """Tests for canonical TL, TR, BR, BL ordering"""

    @pytest.mark.parametrize("permutation", [
        [0, 1, 2, 3], [2, 0, 3, 1], [3, 2, 1, 0], [1, 3, 0, 2],
    ])
    def test_any_input_order(self, permutation):
        """Test any input order gives TL, TR, BR, BL"""
        assert np.array_equal(order_corners(SQUARE[permutation]), SQUARE)

    def test_idempotent(self):
        """Test ordering twice changes nothing"""
        rng = np.random.default_rng(1)
        for _ in range(50):
            points = rng.uniform(0, 500, size=(4, 2)).astype(np.float32)
            once = order_corners(points)
            assert np.array_equal(order_corners(once), once)

    def test_perspective_quad(self):
        """Test perspective quad ordering"""
        quad = np.array([[420, 610], [80, 90], [30, 580], [390, 60]], dtype=np.float32)
        ordered = order_corners(quad)
        assert ordered.tolist() == [[80, 90], [390, 60], [420, 610], [30, 580]]

    def test_diamond_stays_simple(self):
        """Test 45 degree diamond stays a simple polygon"""
        diamond = np.array([[0, 50], [50, 100], [100, 50], [50, 0]], dtype=np.float32)
        ordered = order_corners(diamond)
        assert ordered.tolist() == [[50, 0], [100, 50], [50, 100], [0, 50]]
        assert polygon_area(ordered) == pytest.approx(5000.0)

    def test_wrong_point_count(self):
        """Test three points"""
        with pytest.raises(ValueError):
            order_corners(np.zeros((3, 2)))


class TestMeasurements:
    """Tests for area, angles, aspect and parallelism"""

    def test_polygon_area(self):
        """Test shoelace area"""
        assert polygon_area(SQUARE) == pytest.approx(10000.0)
        assert polygon_area(SQUARE[:2]) == 0.0

    def test_aspect_ratio(self):
        """Test width over height"""
        rect = np.array([[0, 0], [200, 0], [200, 100], [0, 100]], dtype=np.float32)
        assert aspect_ratio(rect) == pytest.approx(2.0)

    def test_right_angles(self):
        """Test corner angles of a square"""
        assert corner_angles(SQUARE) == pytest.approx([90.0] * 4)

    def test_parallelism(self):
        """Test parallelism of square and trapezoid"""
        assert parallelism(SQUARE) == pytest.approx(1.0)
        trapezoid = np.array([[40, 0], [60, 0], [100, 100], [0, 100]], dtype=np.float32)
        assert parallelism(trapezoid) < 1.0

    def test_scale_and_clamp(self):
        """Test scaling and clamping"""
        scaled = scale_quad(SQUARE, 2.0, 0.5)
        assert scaled[2].tolist() == [200.0, 50.0]
        clamped = clamp_to_image(scaled, 150, 40)
        assert clamped[:, 0].max() == 150 and clamped[:, 1].max() == 40

    def test_quad_metrics(self):
        """Test quad metrics of a square"""
        metrics = quad_metrics(SQUARE, (200, 200, 3))
        assert metrics['cover_ratio'] == pytest.approx(0.25)
        assert metrics['rectangularity'] == pytest.approx(1.0)
        assert metrics['perspective_angle'] == pytest.approx(0.0)
        assert metrics['aspect_ratio'] == pytest.approx(1.0)
        assert -90 <= metrics['angle'] <= 90


class TestDefaultQuadrilateral:
    """Tests for the fallback rectangle"""

    def test_margin_from_shorter_side(self):
        """Test margin from the shorter side"""
        quad = default_quadrilateral(1000, 800, margin_ratio=0.1)
        assert quad.tolist() == [[80, 80], [920, 80], [920, 720], [80, 720]]

    def test_card_shape_for_landscape_frame(self):
        """Test card-shaped fallback in a landscape frame"""
        quad = default_quadrilateral(1000, 600, aspect_hint=1.586)
        assert aspect_ratio(quad) == pytest.approx(1.586, rel=1e-3)
        assert quad[3, 1] - quad[0, 1] == pytest.approx(420.0)
        assert quad.mean(axis=0).tolist() == pytest.approx([500.0, 300.0])

    def test_card_shape_for_portrait_frame(self):
        """Test card-shaped fallback in a portrait frame"""
        quad = default_quadrilateral(600, 1000, aspect_hint=1.586)
        assert quad[1, 0] - quad[0, 0] == pytest.approx(480.0)
        assert aspect_ratio(quad) == pytest.approx(1.586, rel=1e-3)

    @pytest.mark.parametrize("brightness,ratio", [(230, 0.02), (150, 0.05), (20, 0.08)])
    def test_brightness_adaptive_margin(self, brightness, ratio):
        """Test margin by border brightness"""
        gray = np.full((800, 1000), brightness, dtype=np.uint8)
        quad = default_quadrilateral(1000, 800, gray=gray)
        assert quad[0].tolist() == pytest.approx([1000 * ratio, 800 * ratio])

    def test_panoramic_frame_shrinks_margin(self):
        """Test panoramic frames shrink the margin"""
        gray = np.full((400, 1000), 20, dtype=np.uint8)
        quad = default_quadrilateral(1000, 400, gray=gray)
        assert quad[0, 0] == pytest.approx(1000 * 0.08 * 0.8)


class TestRefinement:
    """Tests for aspect snapping and sub-pixel refinement"""

    def test_snaps_square_to_card(self):
        """Test square snaps to the card aspect"""
        refined = refine_aspect_ratio(SQUARE, 1.586)
        assert aspect_ratio(refined) == pytest.approx(1.586, rel=1e-3)
        assert refined.mean(axis=0).tolist() == pytest.approx([50.0, 50.0])

    def test_close_enough_is_kept(self):
        """Test quad within tolerance is kept"""
        rect = np.array([[0, 0], [158, 0], [158, 100], [0, 100]], dtype=np.float32)
        assert np.array_equal(refine_aspect_ratio(rect, 1.586), rect)

    def test_upright_card_is_kept(self):
        """Test upright card within tolerance is kept"""
        rect = np.array([[0, 0], [100, 0], [100, 158], [0, 158]], dtype=np.float32)
        assert np.array_equal(refine_aspect_ratio(rect, 1.586), rect)

    def test_squat_portrait_stays_portrait(self):
        """Test squat portrait quad keeps its width and stays portrait"""
        rect = np.array([[0, 0], [100, 0], [100, 120], [0, 120]], dtype=np.float32)
        refined = refine_aspect_ratio(rect, 1.586)
        assert aspect_ratio(refined) == pytest.approx(1 / 1.586, rel=1e-3)
        assert refined[1, 0] - refined[0, 0] == pytest.approx(100.0)
        assert refined.mean(axis=0).tolist() == pytest.approx([50.0, 60.0])

    def test_elongated_portrait_keeps_long_side(self):
        """Test elongated portrait quad keeps its height"""
        rect = np.array([[0, 0], [100, 0], [100, 250], [0, 250]], dtype=np.float32)
        refined = refine_aspect_ratio(rect, 1.586)
        assert refined[3, 1] - refined[0, 1] == pytest.approx(250.0)
        assert aspect_ratio(refined) == pytest.approx(1 / 1.586, rel=1e-3)

    def test_subpixel_keeps_corners_near(self):
        """Test sub-pixel refinement stays near"""
        image = np.zeros((200, 200), dtype=np.uint8)
        image[50:150, 50:150] = 255
        rough = np.array([[51, 51], [148, 51], [148, 148], [51, 148]], dtype=np.float32)
        refined = refine_corners_subpixel(image, rough)
        assert np.all(np.abs(refined - rough) < 10)

    def test_subpixel_skips_border_corners(self):
        """Test corners on the border are kept"""
        image = np.zeros((50, 50), dtype=np.uint8)
        corners = np.array([[0, 0], [49, 0], [49, 49], [0, 49]], dtype=np.float32)
        assert np.array_equal(refine_corners_subpixel(image, corners), corners)
