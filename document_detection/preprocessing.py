"""
Image preprocessing for edge extraction.

Every filter is a pure function returning a new uint8 image. 3x3 filters
only write interior pixels: the 1-pixel border of the output is copied
unchanged from the source image.
"""

import cv2
import numpy as np
from enum import Enum

from .image import as_image, to_grayscale


GAUSSIAN_KERNEL = np.array([
    [1, 2, 1],
    [2, 4, 2],
    [1, 2, 1]
], dtype=np.float32) / 16.0

SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0]
], dtype=np.float32)

CONTRAST_OFFSET = -30.0


class PreprocessVariant(str, Enum):
    """Preprocessing applied before edge extraction"""
    ORIGINAL = "original"
    GRAYSCALE = "grayscale"
    CONTRAST = "contrast"
    DENOISE = "denoise"
    SHARPEN = "sharpen"
    ENHANCED = "enhanced"  # contrast -> denoise -> sharpen


def _to_uint8(values: np.ndarray) -> np.ndarray:
    values = np.nan_to_num(values, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _filter_interior(image: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Convolve with a 3x3 kernel; the border row/column keeps source values."""
    filtered = cv2.filter2D(image.astype(np.float32), cv2.CV_32F, kernel, borderType=cv2.BORDER_REPLICATE)
    result = image.copy()
    result[1:-1, 1:-1] = _to_uint8(filtered[1:-1, 1:-1])
    return result


def grayscale(image: np.ndarray) -> np.ndarray:
    """Luma conversion (0.299R + 0.587G + 0.114B)."""
    return to_grayscale(as_image(image))


def contrast_boost(image: np.ndarray, factor: float = 1.5, offset: float = CONTRAST_OFFSET) -> np.ndarray:
    """
    Linear contrast stretch v' = factor * v + offset, clamped to [0, 255].

    Alpha channel of RGBA input is left untouched.
    """
    image = as_image(image)
    result = image.copy()
    if image.ndim == 3 and image.shape[2] == 4:
        result[:, :, :3] = _to_uint8(image[:, :, :3].astype(np.float32) * factor + offset)
    else:
        result = _to_uint8(image.astype(np.float32) * factor + offset)
    return result


def denoise(image: np.ndarray) -> np.ndarray:
    """3x3 Gaussian blur with [1,2,1;2,4,2;1,2,1]/16 weights."""
    return _filter_interior(as_image(image), GAUSSIAN_KERNEL)


def sharpen(image: np.ndarray) -> np.ndarray:
    """Unsharp kernel [0,-1,0;-1,5,-1;0,-1,0]."""
    return _filter_interior(as_image(image), SHARPEN_KERNEL)


def preprocess(image: np.ndarray, variant: PreprocessVariant, contrast_factor: float = 1.5) -> np.ndarray:
    """
    Apply one preprocessing variant.

    Args:
        image: Grayscale or RGB(A) image
        variant: Variant to apply
        contrast_factor: Gain used by CONTRAST and ENHANCED

    Returns:
        New image with the same channel layout (GRAYSCALE returns a 2D array)
    """
    image = as_image(image)
    variant = PreprocessVariant(variant)

    if variant == PreprocessVariant.ORIGINAL:
        return image.copy()
    if variant == PreprocessVariant.GRAYSCALE:
        return to_grayscale(image)
    if variant == PreprocessVariant.CONTRAST:
        return contrast_boost(image, contrast_factor)
    if variant == PreprocessVariant.DENOISE:
        return denoise(image)
    if variant == PreprocessVariant.SHARPEN:
        return sharpen(image)

    # ENHANCED
    return sharpen(denoise(contrast_boost(image, contrast_factor)))
