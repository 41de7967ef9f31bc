"""
Corner detection from the second-moment matrix of image gradients
"""

import cv2
import numpy as np
from typing import Optional

from .geometry import order_corners


def corner_response(gray: np.ndarray, window: int = 1) -> np.ndarray:
    """
    Corner response R = det(M) / trace(M) for every pixel.

    M sums Ix^2, Iy^2 and Ix*Iy over a (2*window+1)^2 neighbourhood, with
    Ix, Iy central differences. Flat areas and straight edges give R = 0.

    Args:
        gray: 2D intensity image
        window: Radius of the summation window

    Returns:
        float32 response map of the image's shape
    """
    image = np.asarray(gray, dtype=np.float32)
    ix = np.zeros_like(image)
    iy = np.zeros_like(image)
    ix[:, 1:-1] = (image[:, 2:] - image[:, :-2]) / 2.0
    iy[1:-1, :] = (image[2:, :] - image[:-2, :]) / 2.0

    ksize = (2 * window + 1, 2 * window + 1)
    sxx = cv2.boxFilter(ix * ix, cv2.CV_32F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
    syy = cv2.boxFilter(iy * iy, cv2.CV_32F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
    sxy = cv2.boxFilter(ix * iy, cv2.CV_32F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)

    det = sxx * syy - sxy * sxy
    trace = sxx + syy
    response = np.zeros_like(image)
    np.divide(det, trace, out=response, where=trace > 1e-6)
    return np.maximum(response, 0.0)


def detect_corners(
    gray: np.ndarray,
    stride: int = 3,
    window: int = 1,
    relative_threshold: float = 0.1,
    min_response: float = 100.0,
    min_distance: Optional[float] = None,
    max_corners: int = 50
) -> np.ndarray:
    """
    Sample the corner response on a grid and keep the strong, separated peaks.

    Args:
        gray: 2D intensity image
        stride: Grid step of the sampling
        window: Radius of the second-moment window
        relative_threshold: Keep points above this fraction of the maximum response
        min_response: Absolute response floor
        min_distance: Non-maximum suppression radius, default 2% of the shorter side
        max_corners: Upper bound of returned points

    Returns:
        float32 array (N, 2) of (x, y), strongest first
    """
    response = corner_response(gray, window)
    h, w = response.shape
    margin = window + 1

    sampled = response[margin:h - margin:stride, margin:w - margin:stride]
    if sampled.size == 0:
        return np.empty((0, 2), dtype=np.float32)

    threshold = max(min_response, relative_threshold * float(sampled.max()))
    rows, cols = np.nonzero(sampled > threshold)
    if len(rows) == 0:
        return np.empty((0, 2), dtype=np.float32)

    values = sampled[rows, cols]
    xs = margin + cols * stride
    ys = margin + rows * stride

    if min_distance is None:
        min_distance = max(3.0, 0.02 * min(h, w))

    kept = []
    for idx in np.argsort(-values, kind="stable").tolist():
        x, y = xs[idx], ys[idx]
        if all((x - kx) ** 2 + (y - ky) ** 2 >= min_distance ** 2 for kx, ky in kept):
            kept.append((x, y))
            if len(kept) >= max_corners:
                break

    return np.array(kept, dtype=np.float32).reshape(-1, 2)


def quad_from_corners(points: np.ndarray) -> Optional[np.ndarray]:
    """
    Pick four corners spread around the centroid.

    Points are sorted by polar angle around their centroid and the ones at
    the quartile positions are taken.

    Returns:
        Canonically ordered quad, or None with fewer than 4 points
    """
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    n = len(points)
    if n < 4:
        return None

    center = points.mean(axis=0)
    angles = np.arctan2(points[:, 1] - center[1], points[:, 0] - center[0])
    order = np.argsort(angles, kind="stable")
    step = n // 4
    quad = points[order[[0, step, 2 * step, 3 * step]]]

    if len(np.unique(quad, axis=0)) != 4:
        return None
    return order_corners(quad)
