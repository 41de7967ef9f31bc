"""
Visualization of detected documents
"""

import cv2
import numpy as np
from typing import Dict, Optional, Tuple

from .detector import DetectionResult

CORNER_LABELS = ("TL", "TR", "BR", "BL")


class QuadVisualizer:
    """
    Class for drawing a detected quadrilateral.

    Draws a frame with a transparent fill; the default rectangle is drawn
    in a separate color so it reads as "please adjust".
    """

    def __init__(
        self,
        border_color: Tuple[int, int, int] = (0, 100, 255),
        fallback_color: Tuple[int, int, int] = (255, 160, 0),
        border_thickness: int = 3,
        overlay_alpha: float = 0.25
    ):
        """
        Initialize the visualizer.

        Args:
            border_color: Frame color of a detection, in the image's channel order
            fallback_color: Frame color of the default rectangle
            border_thickness: Frame thickness in pixels
            overlay_alpha: Fill transparency (0.0 = transparent, 1.0 = opaque)
        """
        self.border_color = border_color
        self.fallback_color = fallback_color
        self.border_thickness = border_thickness
        self.overlay_alpha = overlay_alpha

    def visualize(self, image: np.ndarray, corners: np.ndarray, is_fallback: bool = False) -> np.ndarray:
        """
        Draw the quadrilateral on a copy of a 3-channel image.

        Args:
            image: Input image
            corners: (4, 2) corners TL, TR, BR, BL
            is_fallback: Use the fallback color

        Returns:
            New image with the frame, fill and corner labels
        """
        result = image.copy()
        color = self.fallback_color if is_fallback else self.border_color
        polygon = np.round(corners).astype(np.int32)

        if self.overlay_alpha > 0:
            overlay = result.copy()
            cv2.fillPoly(overlay, [polygon], color)
            result = cv2.addWeighted(overlay, self.overlay_alpha, result, 1 - self.overlay_alpha, 0)

        cv2.polylines(result, [polygon], True, color, self.border_thickness)

        font_scale = max(0.5, min(image.shape[:2]) / 800)
        for label, (x, y) in zip(CORNER_LABELS, polygon):
            cv2.circle(result, (int(x), int(y)), self.border_thickness + 3, color, -1)
            cv2.putText(
                result, label, (int(x) + 8, int(y) - 8),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, color, max(1, self.border_thickness - 1)
            )

        return result

    def visualize_with_metrics(
        self,
        image: np.ndarray,
        detection: DetectionResult,
        metrics: Optional[Dict[str, float]] = None
    ) -> np.ndarray:
        """
        Draw the detection together with a text panel of confidence and metrics.
        """
        result = self.visualize(image, detection.quadrilateral, detection.is_fallback)

        lines = [
            f"Strategy: {detection.strategy}",
            f"Confidence: {detection.confidence:.2f}",
        ]
        if metrics:
            lines += [
                f"Cover: {metrics['cover_ratio'] * 100:.1f}%",
                f"Rectangularity: {metrics['rectangularity'] * 100:.1f}%",
                f"Perspective: {metrics['perspective_angle']:.1f} deg",
            ]

        font_scale = max(0.5, min(image.shape[:2]) / 1000)
        line_height = int(30 * font_scale) + 6
        panel_height = line_height * len(lines) + 10
        cv2.rectangle(result, (0, 0), (int(320 * font_scale) + 20, panel_height), (0, 0, 0), -1)
        for i, text in enumerate(lines):
            cv2.putText(
                result, text, (10, line_height * (i + 1)),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, (255, 255, 255), 1
            )

        return result
