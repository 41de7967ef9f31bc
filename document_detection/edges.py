"""
Sobel edge extraction with fixed or adaptive thresholding
"""

import cv2
import numpy as np
from dataclasses import dataclass
from typing import Optional

from .image import as_image, to_grayscale


@dataclass(frozen=True)
class ThresholdPolicy:
    """
    Binarization cutoff for the gradient magnitude.

    With `fixed` set, a pixel is an edge iff magnitude > fixed. Otherwise the
    cutoff is max(floor, localMean(radius) - offset), which follows uneven
    lighting while the floor keeps flat low-contrast regions from turning
    into all-edge masks.
    """
    fixed: Optional[int] = None
    radius: int = 5
    offset: int = 20
    floor: int = 30

    @classmethod
    def adaptive(cls, radius: int = 5, offset: int = 20, floor: int = 30) -> "ThresholdPolicy":
        return cls(fixed=None, radius=radius, offset=offset, floor=floor)

    @classmethod
    def fixed_at(cls, threshold: int) -> "ThresholdPolicy":
        return cls(fixed=int(threshold))

    @property
    def is_adaptive(self) -> bool:
        return self.fixed is None


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """
    Gradient magnitude sqrt(Gx^2 + Gy^2) of the 3x3 Sobel operator.

    Border pixels have no full neighbourhood and get magnitude 0.
    """
    gray = gray.astype(np.float32)
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)

    magnitude[0, :] = 0
    magnitude[-1, :] = 0
    magnitude[:, 0] = 0
    magnitude[:, -1] = 0
    return magnitude


def local_mean(gray: np.ndarray, radius: int = 5) -> np.ndarray:
    """
    Mean over a (2r+1)^2 window clipped at the image boundary.

    Window sums come from an integral image, so the cost does not
    depend on the radius.
    """
    h, w = gray.shape
    integral = cv2.integral(gray, sdepth=cv2.CV_64F)

    ys = np.arange(h)
    xs = np.arange(w)
    y0 = np.clip(ys - radius, 0, h)
    y1 = np.clip(ys + radius + 1, 0, h)
    x0 = np.clip(xs - radius, 0, w)
    x1 = np.clip(xs + radius + 1, 0, w)

    sums = (
        integral[np.ix_(y1, x1)]
        - integral[np.ix_(y0, x1)]
        - integral[np.ix_(y1, x0)]
        + integral[np.ix_(y0, x0)]
    )
    counts = np.outer(y1 - y0, x1 - x0)
    return (sums / counts).astype(np.float32)


def adaptive_threshold(gray: np.ndarray, radius: int = 5, offset: int = 20, floor: int = 30) -> np.ndarray:
    """Per-pixel cutoff max(floor, localMean - offset)."""
    return np.maximum(float(floor), local_mean(gray, radius) - float(offset))


def extract_edges(image: np.ndarray, policy: Optional[ThresholdPolicy] = None) -> np.ndarray:
    """
    Binary edge mask of an image.

    Args:
        image: Grayscale or colour image (colour is converted to luma)
        policy: Threshold policy, adaptive by default

    Returns:
        Boolean mask, True where magnitude > threshold
    """
    image = as_image(image)
    gray = to_grayscale(image) if image.ndim == 3 else image
    policy = policy or ThresholdPolicy.adaptive()

    magnitude = sobel_magnitude(gray)
    if policy.is_adaptive:
        threshold = adaptive_threshold(gray, policy.radius, policy.offset, policy.floor)
    else:
        threshold = float(policy.fixed)

    return magnitude > threshold
