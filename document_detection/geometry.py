"""
Quadrilateral geometry: canonical ordering, measurements and default shapes
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Tuple


def _as_quad(corners: np.ndarray) -> np.ndarray:
    quad = np.asarray(corners, dtype=np.float32).reshape(-1, 2)
    if quad.shape != (4, 2):
        raise ValueError(f"Quadrilateral needs exactly 4 points, got shape {quad.shape}")
    return quad


def order_corners(corners: np.ndarray) -> np.ndarray:
    """
    Order corners in canonical order: top-left, top-right, bottom-right, bottom-left.

    Top-left minimizes x+y (ties: smaller y-x); the other corners follow
    clockwise around the centroid, so for a convex quad top-right minimizes
    y-x, bottom-right maximizes x+y and bottom-left maximizes y-x. Only point
    values are compared, never input positions, which makes the ordering
    idempotent.

    Args:
        corners: Array with 4 corners [[x1,y1], [x2,y2], [x3,y3], [x4,y4]]

    Returns:
        Ordered corners, float32 array of shape (4, 2)
    """
    quad = _as_quad(corners)
    points = [tuple(map(float, p)) for p in quad]
    cx = sum(p[0] for p in points) / 4.0
    cy = sum(p[1] for p in points) / 4.0

    top_left = min(points, key=lambda p: (p[0] + p[1], p[1] - p[0]))
    points.remove(top_left)
    start = np.arctan2(top_left[1] - cy, top_left[0] - cx)

    def clockwise(p):
        # y grows downwards, so increasing atan2 is clockwise on screen
        angle = (np.arctan2(p[1] - cy, p[0] - cx) - start) % (2 * np.pi)
        return (angle, p[0], p[1])

    top_right, bottom_right, bottom_left = sorted(points, key=clockwise)

    return np.array([top_left, top_right, bottom_right, bottom_left], dtype=np.float32)


def polygon_area(points: np.ndarray) -> float:
    """Shoelace area of a polygon given in traversal order."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def edge_lengths(corners: np.ndarray) -> Tuple[float, float, float, float]:
    """Lengths of the top, right, bottom and left edges of an ordered quad."""
    tl, tr, br, bl = _as_quad(corners).astype(np.float64)
    return (
        float(np.linalg.norm(tr - tl)),
        float(np.linalg.norm(br - tr)),
        float(np.linalg.norm(br - bl)),
        float(np.linalg.norm(bl - tl)),
    )


def aspect_ratio(corners: np.ndarray) -> float:
    """Mean width over mean height of an ordered quad (0 when flat)."""
    top, right, bottom, left = edge_lengths(corners)
    height = (left + right) / 2.0
    return (top + bottom) / 2.0 / height if height > 0 else 0.0


def corner_angles(corners: np.ndarray) -> List[float]:
    """Interior angles in degrees at each vertex of an ordered quad."""
    quad = _as_quad(corners).astype(np.float64)
    angles = []
    for i in range(4):
        v1 = quad[i - 1] - quad[i]
        v2 = quad[(i + 1) % 4] - quad[i]
        norm = np.linalg.norm(v1) * np.linalg.norm(v2)
        if norm <= 0:
            angles.append(0.0)
            continue
        cos_angle = np.clip(np.dot(v1, v2) / norm, -1.0, 1.0)
        angles.append(float(np.degrees(np.arccos(cos_angle))))
    return angles


def parallelism(corners: np.ndarray) -> float:
    """Mean |cosine| between opposite edge vectors, 1.0 for a parallelogram."""
    tl, tr, br, bl = _as_quad(corners).astype(np.float64)

    def similarity(v1, v2):
        norm = np.linalg.norm(v1) * np.linalg.norm(v2)
        return abs(float(np.dot(v1, v2)) / norm) if norm > 0 else 0.0

    return (similarity(tr - tl, br - bl) + similarity(br - tr, bl - tl)) / 2.0


def min_corner_distance(corners: np.ndarray) -> float:
    quad = _as_quad(corners).astype(np.float64)
    return min(
        float(np.linalg.norm(quad[i] - quad[j]))
        for i in range(4) for j in range(i + 1, 4)
    )


def scale_quad(corners: np.ndarray, scale_x: float, scale_y: Optional[float] = None) -> np.ndarray:
    """Multiply x and y coordinates (maps between working and original scale)."""
    scale_y = scale_x if scale_y is None else scale_y
    quad = _as_quad(corners).copy()
    quad[:, 0] *= scale_x
    quad[:, 1] *= scale_y
    return quad


def clamp_to_image(corners: np.ndarray, width: int, height: int) -> np.ndarray:
    """Clamp points into [0, width] x [0, height]."""
    quad = _as_quad(corners).copy()
    quad[:, 0] = np.clip(quad[:, 0], 0, width)
    quad[:, 1] = np.clip(quad[:, 1], 0, height)
    return quad


def rectangle(center_x: float, center_y: float, width: float, height: float) -> np.ndarray:
    """Axis-aligned rectangle in canonical order."""
    half_w = width / 2.0
    half_h = height / 2.0
    return np.array([
        [center_x - half_w, center_y - half_h],
        [center_x + half_w, center_y - half_h],
        [center_x + half_w, center_y + half_h],
        [center_x - half_w, center_y + half_h],
    ], dtype=np.float32)


def border_brightness_margin(gray: np.ndarray) -> float:
    """
    Inset ratio from the mean brightness of the image border band.

    A bright border suggests the document reaches the frame edge.
    """
    h, w = gray.shape[:2]
    band = max(1, min(w, h) // 20)
    border = np.concatenate([
        gray[:band, :].ravel(),
        gray[h - band:, :].ravel(),
        gray[band:h - band, :band].ravel(),
        gray[band:h - band, w - band:].ravel(),
    ])
    mean = float(border.mean()) if border.size else 0.0

    if mean > 200:
        return 0.02
    if mean > 100:
        return 0.05
    return 0.08


def default_quadrilateral(
    width: int,
    height: int,
    margin_ratio: float = 0.1,
    aspect_hint: Optional[float] = None,
    gray: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Editable fallback rectangle offered when nothing is detected.

    Args:
        width: Image width
        height: Image height
        margin_ratio: Inset as a fraction of the shorter side
        aspect_hint: When set, a centered rectangle of that aspect ratio
            (70% of the height, or 80% of the width for narrow frames)
        gray: When given, the inset is derived from border brightness and
            adjusted for panoramic / portrait frames

    Returns:
        Canonically ordered (4, 2) float32 array
    """
    if aspect_hint:
        if width / float(height) > aspect_hint:
            card_h = height * 0.7
            card_w = card_h * aspect_hint
        else:
            card_w = width * 0.8
            card_h = card_w / aspect_hint
        return rectangle(width / 2.0, height / 2.0, card_w, card_h)

    if gray is not None:
        ratio = border_brightness_margin(gray)
        frame_ratio = width / float(height)
        if frame_ratio > 2.0:
            ratio *= 0.8
        elif frame_ratio < 0.7:
            ratio *= 1.2
        margin_x = width * ratio
        margin_y = height * ratio
    else:
        margin_x = margin_y = min(width, height) * margin_ratio

    return np.array([
        [margin_x, margin_y],
        [width - margin_x, margin_y],
        [width - margin_x, height - margin_y],
        [margin_x, height - margin_y],
    ], dtype=np.float32)


def refine_aspect_ratio(corners: np.ndarray, target: float, tolerance: float = 0.1) -> np.ndarray:
    """
    Snap a quad to the target aspect ratio when it deviates by more than `tolerance`.

    The ratio is compared orientation-free (long side over short side), so
    portrait quads stay portrait. The replacement is an axis-aligned
    rectangle around the centroid keeping the current long side (too
    elongated) or short side (too squat).
    """
    quad = order_corners(corners)
    current = aspect_ratio(quad)
    if current <= 0:
        return quad

    target = max(target, 1.0 / target)
    portrait = current < 1.0
    elongation = max(current, 1.0 / current)
    if abs(elongation - target) <= tolerance:
        return quad

    top, right, bottom, left = edge_lengths(quad)
    width = (top + bottom) / 2.0
    height = (left + right) / 2.0
    long_side, short_side = (height, width) if portrait else (width, height)
    if elongation > target:
        short_side = long_side / target
    else:
        long_side = short_side * target

    new_w, new_h = (short_side, long_side) if portrait else (long_side, short_side)
    center = quad.mean(axis=0)
    return rectangle(float(center[0]), float(center[1]), new_w, new_h)


def refine_corners_subpixel(gray: np.ndarray, corners: np.ndarray, max_shift: float = 10.0) -> np.ndarray:
    """
    Refine corner positions using sub-pixel accuracy.

    Corners too close to the border are kept; a refinement that moves a
    corner farther than `max_shift` is rejected.
    """
    h, w = gray.shape[:2]
    refined = _as_quad(corners).copy()

    win_size = (5, 5)
    zero_zone = (-1, -1)
    criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 40, 0.001)

    for i in range(4):
        x, y = refined[i]
        if not (win_size[0] + 1 <= x < w - win_size[0] - 1 and win_size[1] + 1 <= y < h - win_size[1] - 1):
            continue
        point = refined[i:i + 1].reshape(-1, 1, 2).copy()
        try:
            cv2.cornerSubPix(gray, point, win_size, zero_zone, criteria)
        except cv2.error:
            continue
        candidate = point.reshape(2)
        if np.linalg.norm(candidate - refined[i]) < max_shift:
            refined[i] = candidate

    return refined


def quad_metrics(corners: np.ndarray, image_shape: Tuple[int, ...]) -> Dict[str, float]:
    """
    Calculate quality metrics for a quadrilateral.

    Args:
        corners: Quad corners (any order)
        image_shape: Shape of the image (height, width[, channels])

    Returns:
        Dictionary with metrics:
            - cover_ratio: Quad area over image area
            - rectangularity: Quad area over its minimum-area bounding rectangle (1 = rectangle)
            - angle: Rotation of the minimum-area rectangle (-90 to 90 degrees)
            - perspective_angle: Distortion from unequal opposite edges (0 = none)
            - aspect_ratio: Mean width over mean height
    """
    quad = order_corners(corners)
    image_area = float(image_shape[0] * image_shape[1])
    area = polygon_area(quad)

    rect = cv2.minAreaRect(quad)
    rect_area = rect[1][0] * rect[1][1]
    rectangularity = area / rect_area if rect_area > 0 else 0.0

    angle = rect[2]
    if rect[1][0] < rect[1][1]:
        angle = 90 + angle
    if angle > 90:
        angle -= 180

    top, right, bottom, left = edge_lengths(quad)
    horizontal = abs(top - bottom) / max(top, bottom) if max(top, bottom) > 0 else 0.0
    vertical = abs(left - right) / max(left, right) if max(left, right) > 0 else 0.0
    perspective_angle = float(np.degrees(np.arctan((horizontal + vertical) / 2.0)))

    return {
        'cover_ratio': area / image_area if image_area > 0 else 0.0,
        'rectangularity': float(rectangularity),
        'angle': float(angle),
        'perspective_angle': perspective_angle,
        'aspect_ratio': aspect_ratio(quad),
    }
