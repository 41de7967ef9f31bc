"""
Perspective rectification of a detected document
"""

import cv2
import numpy as np
from itertools import combinations
from typing import Tuple

from .errors import DegenerateQuadrilateral
from .geometry import edge_lengths, order_corners
from .image import as_image


# Triangle height below this fraction of its longest side counts as collinear
COLLINEAR_TOLERANCE = 1e-3


def _validated_quad(quad: np.ndarray) -> np.ndarray:
    points = np.asarray(quad, dtype=np.float32)
    if points.size != 8:
        raise DegenerateQuadrilateral(f"Expected 4 corners, got array of shape {points.shape}")
    points = points.reshape(4, 2)
    if not np.all(np.isfinite(points)):
        raise DegenerateQuadrilateral("Corner coordinates must be finite")

    for a, b, c in combinations(points.astype(np.float64), 3):
        longest = max(np.linalg.norm(b - a), np.linalg.norm(c - b), np.linalg.norm(a - c))
        if longest < 1e-9:
            raise DegenerateQuadrilateral("Corners coincide")
        twice_area = abs((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))
        if twice_area / longest < COLLINEAR_TOLERANCE * longest:
            raise DegenerateQuadrilateral(f"Corners {a.tolist()}, {b.tolist()}, {c.tolist()} are collinear")

    return order_corners(points)


def target_dimensions(quad: np.ndarray) -> Tuple[int, int]:
    """
    Output size of the rectified document.

    Width is the longer of the top and bottom edges, height the longer of
    the left and right edges, both rounded and at least 1.
    """
    top, right, bottom, left = edge_lengths(order_corners(quad))
    width = max(1, int(round(max(top, bottom))))
    height = max(1, int(round(max(left, right))))
    return width, height


def perspective_matrix(quad: np.ndarray, width: int, height: int) -> np.ndarray:
    """Homography mapping TL, TR, BR, BL to (0,0), (W,0), (W,H), (0,H)."""
    src = order_corners(quad)
    dst = np.array([
        [0, 0],
        [width, 0],
        [width, height],
        [0, height]
    ], dtype=np.float32)
    return cv2.getPerspectiveTransform(src, dst)


def rectify(image: np.ndarray, quad: np.ndarray, interpolation: int = cv2.INTER_LINEAR) -> np.ndarray:
    """
    Warp the quadrilateral region of an image to a fronto-parallel rectangle.

    Args:
        image: Grayscale or colour image
        quad: Four corners in any order
        interpolation: cv2.INTER_LINEAR (default) or cv2.INTER_NEAREST

    Returns:
        New image of target_dimensions(quad)

    Raises:
        DegenerateQuadrilateral: Collinear or non-finite corners, or a target narrower than 2 px
    """
    image = as_image(image)
    ordered = _validated_quad(quad)

    width, height = target_dimensions(ordered)
    if width < 2 or height < 2:
        raise DegenerateQuadrilateral(f"Target size {width}x{height} is too small")

    matrix = perspective_matrix(ordered, width, height)
    return cv2.warpPerspective(image, matrix, (width, height), flags=interpolation)
