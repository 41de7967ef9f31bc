"""
Pixel buffer helpers.

Images are plain numpy arrays: uint8 of shape (H, W) for grayscale
or (H, W, 3) / (H, W, 4) for RGB / RGBA. Nothing in the pipeline depends
on a platform bitmap type.
"""

import cv2
import numpy as np
from typing import Tuple, Union

from .errors import PreprocessingFailure


def as_image(image: np.ndarray) -> np.ndarray:
    """
    Validate an image array and return it as uint8.

    Args:
        image: Grayscale (H, W) or colour (H, W, 3|4) array

    Returns:
        The same pixels as a uint8 array (float input is clipped to 0-255)

    Raises:
        PreprocessingFailure: If the array is missing, empty or not an image
    """
    if image is None:
        raise PreprocessingFailure("Image is None")

    image = np.asarray(image)
    if image.size == 0:
        raise PreprocessingFailure("Image is empty")

    if image.ndim not in (2, 3):
        raise PreprocessingFailure(f"Unsupported image shape: {image.shape}")
    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        raise PreprocessingFailure(f"Unsupported channel count: {image.shape[2]}")
    if image.shape[0] < 3 or image.shape[1] < 3:
        raise PreprocessingFailure(f"Image too small: {image.shape[1]}x{image.shape[0]}")

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.dtype != np.uint8:
        if not np.all(np.isfinite(image)):
            raise PreprocessingFailure("Image contains non-finite values")
        image = np.clip(image, 0, 255).astype(np.uint8)

    return image


def from_buffer(
    data: Union[bytes, bytearray, memoryview, np.ndarray],
    width: int,
    height: int,
    channels: int = 4
) -> np.ndarray:
    """
    Wrap a raw interleaved pixel buffer (e.g. RGBA from a camera frame).

    Args:
        data: Raw bytes, row-major, `channels` samples per pixel
        width: Image width in pixels
        height: Image height in pixels
        channels: 1 (gray), 3 (RGB) or 4 (RGBA)

    Returns:
        Image array (copy of the buffer)

    Raises:
        PreprocessingFailure: On bad dimensions, a size mismatch or non-uint8 samples
    """
    if width <= 0 or height <= 0:
        raise PreprocessingFailure(f"Invalid dimensions: {width}x{height}")
    if channels not in (1, 3, 4):
        raise PreprocessingFailure(f"Unsupported channel count: {channels}")

    if isinstance(data, np.ndarray):
        if data.dtype != np.uint8:
            raise PreprocessingFailure(f"Pixel buffer must hold uint8 samples, got {data.dtype}")
        flat = data.reshape(-1)
    else:
        flat = np.frombuffer(data, dtype=np.uint8)
    expected = width * height * channels
    if flat.size != expected:
        raise PreprocessingFailure(
            f"Buffer size {flat.size} does not match {width}x{height}x{channels} = {expected}"
        )

    shape = (height, width) if channels == 1 else (height, width, channels)
    return as_image(flat.reshape(shape).copy())


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height)."""
    return image.shape[1], image.shape[0]


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert RGB(A) to luma 0.299R + 0.587G + 0.114B. Grayscale input is copied.
    """
    if image.ndim == 2:
        return image.copy()
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
