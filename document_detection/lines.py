"""
Line fitting on edge masks and corner candidates from line intersections
"""

import cv2
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .geometry import order_corners


@dataclass(frozen=True)
class Line:
    """Line a*x + b*y = c with (a, b) a unit normal."""
    a: float
    b: float
    c: float

    @classmethod
    def from_normal(cls, a: float, b: float, c: float) -> "Line":
        norm = float(np.hypot(a, b))
        if norm < 1e-12:
            raise ValueError("Line normal must be non-zero")
        return cls(a / norm, b / norm, c / norm)

    @classmethod
    def from_polar(cls, rho: float, theta: float) -> "Line":
        """Hough form x*cos(theta) + y*sin(theta) = rho."""
        return cls(float(np.cos(theta)), float(np.sin(theta)), float(rho))

    def distance(self, x: float, y: float) -> float:
        return abs(self.a * x + self.b * y - self.c)


def _group_indices(indices: np.ndarray, max_gap: int) -> List[np.ndarray]:
    """Split sorted indices into runs whose neighbours are at most max_gap apart."""
    if len(indices) == 0:
        return []
    breaks = np.flatnonzero(np.diff(indices) > max_gap) + 1
    return np.split(indices, breaks)


def _fit(primary: np.ndarray, secondary: np.ndarray) -> Tuple[float, float]:
    """Least-squares secondary = slope * primary + intercept."""
    if np.ptp(primary) < 1:
        return 0.0, float(np.mean(secondary))
    slope, intercept = np.polyfit(primary.astype(np.float64), secondary.astype(np.float64), 1)
    return float(slope), float(intercept)


def find_scan_lines(mask: np.ndarray, density: float = 0.25, max_gap: int = 2) -> List[Line]:
    """
    Fit near-horizontal and near-vertical lines on dense scan lines.

    A row (column) qualifies when more than `density` of its pixels are
    edges. Adjacent qualifying rows (columns) form a group, and one line is
    fitted through all edge pixels of the group.

    Returns:
        Horizontal lines followed by vertical lines
    """
    mask = np.asarray(mask) != 0
    lines = []

    rows = np.flatnonzero(mask.mean(axis=1) > density)
    for group in _group_indices(rows, max_gap):
        ys, xs = np.nonzero(mask[group[0]:group[-1] + 1, :])
        ys = ys + group[0]
        slope, intercept = _fit(xs, ys)
        # y = slope * x + intercept
        lines.append(Line.from_normal(slope, -1.0, -intercept))

    cols = np.flatnonzero(mask.mean(axis=0) > density)
    for group in _group_indices(cols, max_gap):
        ys, xs = np.nonzero(mask[:, group[0]:group[-1] + 1])
        xs = xs + group[0]
        slope, intercept = _fit(ys, xs)
        # x = slope * y + intercept
        lines.append(Line.from_normal(1.0, -slope, intercept))

    return lines


def _cluster_orientations(thetas: np.ndarray) -> Optional[np.ndarray]:
    """
    Split line orientations into two groups.

    Orientations are embedded as (cos 2θ, sin 2θ) so θ and θ+π coincide and
    perpendicular lines land on opposite sides. k-means starts from the
    split against the strongest line, which keeps it deterministic.
    """
    vectors = np.column_stack((np.cos(2 * thetas), np.sin(2 * thetas))).astype(np.float32)
    labels = (vectors @ vectors[0] < 0).astype(np.int32).reshape(-1, 1)
    if labels.min() == labels.max():
        return None

    criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 50, 0.01)
    try:
        _, labels, _ = cv2.kmeans(vectors, 2, labels, criteria, 1, cv2.KMEANS_USE_INITIAL_LABELS)
    except cv2.error:
        return None
    return labels.ravel()


def _mean_direction(thetas: np.ndarray) -> float:
    """Mean of undirected line angles (θ and θ+π are the same line)."""
    return float(0.5 * np.arctan2(np.mean(np.sin(2 * thetas)), np.mean(np.cos(2 * thetas))))


def _aligned(cluster: np.ndarray, max_deviation: float) -> np.ndarray:
    """
    Keep the (rho, theta) rows within `max_deviation` degrees of the strongest row.

    HoughLines returns lines by votes, so row 0 is the strongest. Diagonals
    crossing text sit between both groups and are dropped here.
    """
    if len(cluster) == 0:
        return cluster
    limit = np.sin(np.radians(max_deviation))
    deviation = np.abs(np.sin(cluster[:, 1] - cluster[0, 1]))
    return cluster[deviation <= limit]


def find_hough_lines(
    mask: np.ndarray,
    threshold: Optional[int] = None,
    max_lines: int = 200,
    min_separation: float = 0.1,
    max_deviation: float = 15.0
) -> List[Line]:
    """
    Detect the four outer border lines of a (possibly rotated) document.

    Hough lines are clustered into two orientation groups. Lines more than
    `max_deviation` degrees off the direction of their group's strongest
    line are dropped, then the outermost pair of every group is kept.

    Args:
        mask: Binary edge mask
        threshold: Accumulator threshold, default 15% of the shorter side
        max_lines: Strongest lines considered
        min_separation: Minimum distance between a pair, as a fraction of the shorter side
        max_deviation: Angular tolerance around a group's direction, in degrees

    Returns:
        [first_a, last_a, first_b, last_b], or an empty list
    """
    edges = (np.asarray(mask) != 0).astype(np.uint8) * 255
    h, w = edges.shape
    min_dim = min(h, w)
    if threshold is None:
        threshold = max(20, int(min_dim * 0.15))

    lines = cv2.HoughLines(edges, 1, np.pi / 180, threshold)
    if lines is None or len(lines) < 4:
        return []

    polar = lines[:max_lines, 0, :].astype(np.float64)
    labels = _cluster_orientations(polar[:, 1])
    if labels is None:
        return []

    selected = []
    directions = []
    for label in (0, 1):
        cluster = _aligned(polar[labels == label], max_deviation)
        if len(cluster) < 2:
            return []

        mean_angle = _mean_direction(cluster[:, 1])
        directions.append(mean_angle)

        # Flip normals to a common direction before comparing offsets
        sign = np.where(np.cos(cluster[:, 1] - mean_angle) < 0, -1.0, 1.0)
        offsets = cluster[:, 0] * sign
        gap = min_dim * min_separation
        if offsets.max() - offsets.min() < gap:
            return []

        # HoughLines sorts by votes: the first line near each extreme offset
        # is the strongest one on that side
        first = int(np.flatnonzero(offsets <= offsets.min() + gap / 2)[0])
        last = int(np.flatnonzero(offsets >= offsets.max() - gap / 2)[0])

        for idx in (first, last):
            rho, theta = cluster[idx]
            selected.append(Line.from_polar(rho, theta))

    between = abs(np.sin(directions[0] - directions[1]))
    if between < np.sin(np.radians(30)):
        return []

    return selected


def intersect(line1: Line, line2: Line, eps: float = 1e-6) -> Optional[Tuple[float, float]]:
    """Intersection via the 2x2 determinant, None for (near-)parallel lines."""
    det = line1.a * line2.b - line2.a * line1.b
    if abs(det) < eps:
        return None
    x = (line1.c * line2.b - line2.c * line1.b) / det
    y = (line1.a * line2.c - line2.a * line1.c) / det
    return x, y


def find_intersections(
    lines: List[Line],
    width: int,
    height: int,
    min_angle: float = 10.0
) -> np.ndarray:
    """
    Pairwise intersections inside [0, width] x [0, height].

    Pairs meeting at less than `min_angle` degrees count as parallel.

    Returns:
        Array of shape (N, 2)
    """
    eps = float(np.sin(np.radians(min_angle)))
    points = []
    for i in range(len(lines)):
        for j in range(i + 1, len(lines)):
            point = intersect(lines[i], lines[j], eps)
            if point is None:
                continue
            x, y = point
            if 0 <= x <= width and 0 <= y <= height:
                points.append(point)
    return np.array(points, dtype=np.float32).reshape(-1, 2)


def quad_from_points(points: np.ndarray) -> Optional[np.ndarray]:
    """
    Combine the extremal points (min/max of x+y and y-x) into a quad.

    Returns:
        Canonically ordered quad, or None when the extremes are not four distinct points
    """
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    if len(points) < 4:
        return None

    sums = points[:, 0] + points[:, 1]
    diffs = points[:, 1] - points[:, 0]
    indices = {
        int(np.argmin(sums)),
        int(np.argmin(diffs)),
        int(np.argmax(sums)),
        int(np.argmax(diffs)),
    }
    if len(indices) != 4:
        return None

    quad = points[sorted(indices)]
    if len(np.unique(quad, axis=0)) != 4:
        return None
    return order_corners(quad)


def fit_quad_to_edges(
    mask: np.ndarray,
    quad: np.ndarray,
    band: float,
    inner: float = 0.15,
    min_points: int = 10
) -> Optional[np.ndarray]:
    """
    Snap an approximate quadrilateral onto the edge pixels of its sides.

    Edge pixels within `band` of a side, and away from its ends by `inner`
    of its length, get a robust line fit (cv2.fitLine, Huber). Adjacent
    fitted sides are intersected into the new corners.

    Args:
        mask: Binary edge mask
        quad: Approximate corners TL, TR, BR, BL
        band: Distance from a side within which edge pixels belong to it
        inner: Fraction of a side excluded at both ends
        min_points: Edge pixels a side needs for a fit

    Returns:
        Canonically ordered quad, or None when a side has too little support
    """
    quad = order_corners(quad).astype(np.float64)
    ys, xs = np.nonzero(np.asarray(mask))
    if len(xs) < 4 * min_points:
        return None
    points = np.column_stack((xs, ys)).astype(np.float64)

    sides = []
    for i in range(4):
        start = quad[i]
        direction = quad[(i + 1) % 4] - start
        length = float(np.hypot(direction[0], direction[1]))
        if length < 1e-6:
            return None
        direction = direction / length

        offsets = points - start
        along = (offsets @ direction) / length
        across = np.abs(offsets[:, 0] * direction[1] - offsets[:, 1] * direction[0])
        support = points[(across <= band) & (along >= inner) & (along <= 1.0 - inner)]
        if len(support) < min_points:
            return None

        vx, vy, x0, y0 = cv2.fitLine(support.astype(np.float32), cv2.DIST_HUBER, 0, 0.01, 0.01).ravel()
        sides.append(Line.from_normal(-vy, vx, -vy * x0 + vx * y0))

    corners = []
    # side i runs from corner i to corner i + 1
    for i in range(4):
        point = intersect(sides[i - 1], sides[i])
        if point is None:
            return None
        corners.append(point)

    return order_corners(np.array(corners, dtype=np.float32))
