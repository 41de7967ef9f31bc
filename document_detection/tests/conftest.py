"""
Shared fixtures: synthetic document photos
"""

import cv2
import numpy as np
import pytest


def draw_document(width, height, corners, background=0, foreground=255, channels=3):
    """Filled quadrilateral on a uniform canvas."""
    shape = (height, width) if channels == 1 else (height, width, channels)
    image = np.full(shape, background, dtype=np.uint8)
    color = foreground if channels == 1 else (foreground,) * channels
    cv2.fillPoly(image, [np.round(np.asarray(corners)).astype(np.int32)], color)
    return image


def rotated_rectangle(center, size, angle):
    """Corners TL, TR, BR, BL of a rectangle rotated by `angle` degrees around `center`."""
    w, h = size
    base = np.array([[-w / 2, -h / 2], [w / 2, -h / 2], [w / 2, h / 2], [-w / 2, h / 2]])
    theta = np.radians(angle)
    rotation = np.array([[np.cos(theta), -np.sin(theta)], [np.sin(theta), np.cos(theta)]])
    return (base @ rotation.T + np.asarray(center)).astype(np.float32)


@pytest.fixture
def page_corners():
    return np.array([[150, 150], [850, 150], [850, 1250], [150, 1250]], dtype=np.float32)


@pytest.fixture
def page_image(page_corners):
    """1000x1400 black frame with a white page inset by 150 px."""
    image = np.zeros((1400, 1000, 3), dtype=np.uint8)
    cv2.rectangle(image, (150, 150), (850, 1250), (255, 255, 255), -1)
    return image


@pytest.fixture
def rotated_corners():
    return rotated_rectangle((320, 240), (360, 240), 15)


@pytest.fixture
def rotated_image(rotated_corners):
    """640x480 frame with a 360x240 document rotated by 15 degrees."""
    return draw_document(640, 480, rotated_corners)


@pytest.fixture
def textured_document():
    """360x240 document with a checkerboard so warps can be compared pixel-wise."""
    ys, xs = np.mgrid[0:240, 0:360]
    board = (((xs // 40) + (ys // 40)) % 2 * 150 + 60).astype(np.uint8)
    return cv2.cvtColor(board, cv2.COLOR_GRAY2RGB)
