"""
Quadrilateral candidate generators.

Every strategy takes the working grayscale image, its edge mask and the
detection config, and returns (quad, strategy_name) pairs in working
coordinates. Candidates are unscored; the detector scores them.
"""

import cv2
import numpy as np
from loguru import logger
from typing import Callable, Dict, List, Tuple

from .config import DetectionConfig, Strategy
from .contours import approximate_polygon, select_four_corners, trace_contours
from .corners import detect_corners, quad_from_corners
from .errors import StrategyInternalError
from .geometry import order_corners, scale_quad
from .lines import (
    find_hough_lines,
    find_intersections,
    find_scan_lines,
    fit_quad_to_edges,
    intersect,
    quad_from_points,
)

Candidate = Tuple[np.ndarray, str]


def _check_inputs(name: str, gray: np.ndarray, edges: np.ndarray):
    if gray.ndim != 2:
        raise StrategyInternalError(name, f"expected a 2D intensity image, got shape {gray.shape}")
    if edges.shape != gray.shape:
        raise StrategyInternalError(name, f"edge mask {edges.shape} does not match image {gray.shape}")


def contour_strategy(gray: np.ndarray, edges: np.ndarray, config: DetectionConfig) -> List[Candidate]:
    """
    Traced edge chains simplified to quadrilaterals.

    Chains are traced on a mask reduced until an outline of the whole frame
    stays under the chain length cap; each chain is smoothed with its convex
    hull before Douglas-Peucker. Four vertices give a "contour" candidate,
    more are reduced to their extremal points ("contour-extremal"). Corners
    found on a reduced mask are snapped back onto the full-resolution edges.
    """
    _check_inputs("contour", gray, edges)
    h, w = edges.shape

    factor = min(1.0, config.max_contour_length / (4.0 * (w + h)))
    traced = edges
    if factor < 1.0:
        size = (max(3, int(round(w * factor))), max(3, int(round(h * factor))))
        mask = (np.asarray(edges) != 0).astype(np.uint8) * 255
        # any edge pixel inside a cell marks the cell
        traced = cv2.resize(mask, size, interpolation=cv2.INTER_AREA) > 0

    th, tw = traced.shape
    scale_x = w / float(tw)
    scale_y = h / float(th)
    band = max(3.0, 2.5 * max(scale_x, scale_y))
    min_area = config.min_area_ratio * tw * th

    contours = trace_contours(
        traced,
        connectivity=config.contour_connectivity,
        max_length=config.max_contour_length,
        min_length=config.min_contour_length,
    )
    logger.debug(f"contour: {len(contours)} chains on a {tw}x{th} mask")

    candidates = []
    for contour in contours:
        hull = cv2.convexHull(contour.reshape(-1, 1, 2)).reshape(-1, 2)
        if len(hull) < 4 or cv2.contourArea(hull) < min_area:
            continue

        polygon = approximate_polygon(hull, config.epsilon_ratio, closed=True)
        if len(polygon) == 4:
            quad, name = order_corners(polygon), "contour"
        elif len(polygon) > 4:
            quad, name = select_four_corners(polygon), "contour-extremal"
        else:
            continue

        if factor < 1.0:
            quad = _snap_to_edges(edges, scale_quad(quad, scale_x, scale_y), band)
        candidates.append((quad, name))

    return candidates


def _snap_to_edges(edges: np.ndarray, quad: np.ndarray, band: float) -> np.ndarray:
    """Refit a coarse quad on the full-resolution edges, keeping it when the fit wanders off."""
    fitted = fit_quad_to_edges(edges, quad, band)
    if fitted is None or np.abs(fitted - quad).max() > 2 * band:
        return quad
    return fitted


def line_strategy(gray: np.ndarray, edges: np.ndarray, config: DetectionConfig) -> List[Candidate]:
    """
    Quadrilaterals from line intersections.

    Dense scan lines handle axis-aligned documents ("line"); the outer
    Hough lines of two orientation groups handle rotated ones ("line-hough").
    """
    _check_inputs("line", gray, edges)
    h, w = edges.shape
    candidates = []

    scan_lines = find_scan_lines(edges, density=config.line_density)
    if len(scan_lines) >= 4:
        quad = quad_from_points(find_intersections(scan_lines, w, h))
        if quad is not None:
            candidates.append((quad, "line"))

    hough_lines = find_hough_lines(edges)
    if len(hough_lines) == 4:
        points = []
        for first in hough_lines[:2]:
            for second in hough_lines[2:]:
                point = intersect(first, second)
                if point is not None and 0 <= point[0] <= w and 0 <= point[1] <= h:
                    points.append(point)
        if len(points) == 4:
            quad = quad_from_points(np.array(points, dtype=np.float32))
            if quad is not None:
                candidates.append((quad, "line-hough"))

    return candidates


def corner_strategy(gray: np.ndarray, edges: np.ndarray, config: DetectionConfig) -> List[Candidate]:
    """Four corner-response peaks spread around their centroid."""
    _check_inputs("corner", gray, edges)
    points = detect_corners(
        gray,
        stride=config.corner_stride,
        window=config.corner_window,
        relative_threshold=config.corner_relative_threshold,
    )
    quad = quad_from_corners(points)
    return [(quad, "corner")] if quad is not None else []


STRATEGIES: Dict[Strategy, Callable[[np.ndarray, np.ndarray, DetectionConfig], List[Candidate]]] = {
    Strategy.CONTOUR: contour_strategy,
    Strategy.LINE: line_strategy,
    Strategy.CORNER: corner_strategy,
}
