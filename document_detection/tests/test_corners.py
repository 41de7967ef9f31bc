"""
Tests for corner response and corner-based quads
"""

import numpy as np
import pytest

from document_detection.corners import corner_response, detect_corners, quad_from_corners


@pytest.fixture
def square_image():
    image = np.zeros((200, 200), dtype=np.uint8)
    image[50:151, 50:151] = 255
    return image


class TestCornerResponse:
    """Tests for R = det(M) / trace(M)"""

    def test_flat_image(self):
        """Test flat image has no response"""
        assert not corner_response(np.full((30, 30), 90, dtype=np.uint8)).any()

    def test_straight_edge_has_no_response(self):
        """Test straight edge is not a corner"""
        image = np.zeros((40, 40), dtype=np.uint8)
        image[:, 20:] = 255
        response = corner_response(image)
        assert np.allclose(response[5:-5, 5:-5], 0.0)

    def test_corner_peaks(self, square_image):
        """Test response peaks at square corners"""
        response = corner_response(square_image)
        assert response[50, 50] > 0
        assert response[100, 100] == 0
        assert response[100, 50] == 0


class TestDetectCorners:
    """Tests for grid sampling, thresholding and suppression"""

    def test_no_corners_in_flat_image(self):
        """Test flat image has no corners"""
        assert detect_corners(np.zeros((50, 50), dtype=np.uint8)).shape == (0, 2)

    def test_square_corners(self, square_image):
        """Test corners of a bright square"""
        points = detect_corners(square_image)
        assert len(points) == 4
        quad = quad_from_corners(points)
        expected = np.array([[50, 50], [150, 50], [150, 150], [50, 150]], dtype=np.float32)
        assert np.abs(quad - expected).max() <= 3.0

    def test_max_corners(self):
        """Test corner count limit"""
        rng = np.random.default_rng(2)
        image = rng.integers(0, 256, size=(120, 120), dtype=np.uint8)
        assert len(detect_corners(image, max_corners=10)) <= 10


class TestQuadFromCorners:
    """Tests for quartile selection by polar angle"""

    def test_needs_four_points(self):
        """Test fewer than four corners"""
        assert quad_from_corners(np.zeros((3, 2), dtype=np.float32)) is None

    def test_picks_quartiles(self):
        """Test one corner per polar-angle quartile"""
        angles = np.radians(np.arange(0, 360, 45))
        points = np.column_stack([100 + 50 * np.cos(angles), 100 + 50 * np.sin(angles)]).astype(np.float32)
        quad = quad_from_corners(points)
        assert quad.shape == (4, 2)
        # every other point of the octagon
        picked = {tuple(np.round(p).astype(int)) for p in quad}
        assert len(picked) == 4
        xs = sorted(p[0] for p in picked)
        assert xs[0] < 100 < xs[-1]
