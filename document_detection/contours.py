"""
Contour tracing on binary masks and polygon approximation
"""

import numpy as np
from typing import List

from .geometry import order_corners


_NEIGHBOURS_4 = ((1, 0), (-1, 0), (0, 1), (0, -1))
_NEIGHBOURS_8 = tuple((dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if dx or dy)


def trace_contours(
    mask: np.ndarray,
    connectivity: int = 8,
    max_length: int = 1000,
    min_length: int = 20
) -> List[np.ndarray]:
    """
    Extract pixel chains from a binary mask.

    Foreground pixels are scanned in raster order. Each unvisited one seeds
    an explicit-stack walk over its neighbours; visited pixels are appended
    to the current chain until the stack empties or the chain reaches
    `max_length`. Pixels left on the stack of a capped walk stay unvisited
    and seed later chains.

    Args:
        mask: 2D boolean (or 0/non-zero) mask
        connectivity: 4 or 8
        max_length: Hard cap of points per chain
        min_length: Shorter chains are discarded as noise

    Returns:
        List of float32 arrays of shape (N, 2) holding (x, y) in visit order
    """
    if connectivity not in (4, 8):
        raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")

    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise ValueError(f"mask must be 2D, got shape {mask.shape}")

    h, w = mask.shape
    foreground = (mask != 0).ravel().tolist()
    visited = bytearray(h * w)
    neighbours = _NEIGHBOURS_8 if connectivity == 8 else _NEIGHBOURS_4

    contours = []
    for seed in np.flatnonzero(mask).tolist():
        if visited[seed]:
            continue

        chain = []
        stack = [seed]
        while stack and len(chain) < max_length:
            idx = stack.pop()
            if visited[idx]:
                continue
            visited[idx] = 1

            y, x = divmod(idx, w)
            chain.append((x, y))

            for dx, dy in neighbours:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < w and 0 <= ny < h:
                    nidx = ny * w + nx
                    if foreground[nidx] and not visited[nidx]:
                        stack.append(nidx)

        if len(chain) >= min_length:
            contours.append(np.array(chain, dtype=np.float32))

    return contours


def contour_perimeter(contour: np.ndarray, closed: bool = True) -> float:
    """Sum of segment lengths, including the closing segment when `closed`."""
    points = np.asarray(contour, dtype=np.float64)
    if len(points) < 2:
        return 0.0
    segments = np.diff(points, axis=0)
    length = float(np.sum(np.hypot(segments[:, 0], segments[:, 1])))
    if closed:
        length += float(np.hypot(*(points[0] - points[-1])))
    return length


def _segment_distances(points: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """Perpendicular distance of points to the chord start-end."""
    chord = end - start
    length = np.hypot(chord[0], chord[1])
    offsets = points - start
    if length < 1e-9:
        return np.hypot(offsets[:, 0], offsets[:, 1])
    return np.abs(chord[0] * offsets[:, 1] - chord[1] * offsets[:, 0]) / length


def _douglas_peucker(points: np.ndarray, epsilon: float) -> np.ndarray:
    """Indices kept by Douglas-Peucker on an open chain (explicit work stack)."""
    n = len(points)
    keep = np.zeros(n, dtype=bool)
    keep[0] = True
    keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        distances = _segment_distances(points[first + 1:last], points[first], points[last])
        offset = int(np.argmax(distances))
        if distances[offset] > epsilon:
            split = first + 1 + offset
            keep[split] = True
            stack.append((split, last))
            stack.append((first, split))

    return np.flatnonzero(keep)


def _drop_collinear(polygon: np.ndarray, epsilon: float) -> np.ndarray:
    """Remove vertices of a closed polygon lying within epsilon of their neighbours' chord."""
    points = list(polygon)
    changed = True
    while changed and len(points) > 3:
        changed = False
        for i in range(len(points)):
            prev_pt = points[i - 1]
            next_pt = points[(i + 1) % len(points)]
            distance = _segment_distances(points[i][None, :], prev_pt, next_pt)[0]
            if distance <= epsilon:
                del points[i]
                changed = True
                break
    return np.array(points, dtype=np.float32)


def approximate_polygon(contour: np.ndarray, epsilon_ratio: float = 0.02, closed: bool = False) -> np.ndarray:
    """
    Simplify a point chain with Douglas-Peucker.

    The tolerance is `epsilon_ratio * perimeter(contour)`. A closed ring is
    split at the point farthest from its start, both halves are simplified,
    and vertices left on a straight run (the start included) are dropped.

    Args:
        contour: Array of shape (N, 2)
        epsilon_ratio: Tolerance as a fraction of the perimeter
        closed: Treat the chain as a ring (last point connects to the first)

    Returns:
        Simplified polygon, float32 array of shape (M, 2)
    """
    points = np.asarray(contour, dtype=np.float64)
    if len(points) <= 2:
        return points.astype(np.float32)

    epsilon = epsilon_ratio * contour_perimeter(points, closed=closed)

    if not closed:
        return points[_douglas_peucker(points, epsilon)].astype(np.float32)

    ring = np.vstack([points, points[:1]])
    offsets = ring - ring[0]
    split = int(np.argmax(np.hypot(offsets[:, 0], offsets[:, 1])))
    if split == 0:
        return points[:1].astype(np.float32)

    head = _douglas_peucker(ring[:split + 1], epsilon)
    tail = _douglas_peucker(ring[split:], epsilon) + split
    # tail ends on the repeated start point
    polygon = ring[np.concatenate([head, tail[1:-1]])]

    return _drop_collinear(polygon, epsilon)


def select_four_corners(points: np.ndarray) -> np.ndarray:
    """
    Reduce a polygon with four or more vertices to four corners.

    Takes the min-x, max-x, min-y and max-y points and fills any
    remaining slots with the points farthest from the centroid.

    Returns:
        Canonically ordered (4, 2) float32 array
    """
    points = np.asarray(points, dtype=np.float32)
    if len(points) < 4:
        raise ValueError(f"Need at least 4 points, got {len(points)}")

    chosen = []
    for idx in (
        int(np.argmin(points[:, 0])),
        int(np.argmax(points[:, 0])),
        int(np.argmin(points[:, 1])),
        int(np.argmax(points[:, 1])),
    ):
        if idx not in chosen:
            chosen.append(idx)

    if len(chosen) < 4:
        center = points.mean(axis=0)
        distances = np.hypot(points[:, 0] - center[0], points[:, 1] - center[1])
        for idx in np.argsort(-distances, kind="stable").tolist():
            if idx not in chosen:
                chosen.append(idx)
            if len(chosen) == 4:
                break

    return order_corners(points[chosen])
