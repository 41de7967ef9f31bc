"""
Confidence scoring of quadrilateral candidates
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from .config import DetectionConfig
from .geometry import (
    aspect_ratio,
    corner_angles,
    min_corner_distance,
    order_corners,
    parallelism,
    polygon_area,
)


# Area ratio band that earns full credit in general mode
IDEAL_AREA_RANGE = (0.2, 0.85)
# Width/height ratios accepted as a plausible document
PLAUSIBLE_ASPECT_RANGE = (0.3, 4.0)
# Interior angles counted as "right enough"
VALID_ANGLE_RANGE = (45.0, 135.0)


@dataclass
class ScoreBreakdown:
    """Sub-scores of one candidate, each in [0, 1]."""
    area_ratio: float
    area: float = 0.0
    aspect: float = 0.0
    rectangularity: float = 0.0
    parallelism: float = 0.0
    total: float = 0.0
    rejected: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


class CandidateScorer:
    """
    Score quadrilateral candidates by how document-like they are.

    With an aspect hint (ID-card mode) the score is dominated by closeness
    to the expected aspect ratio; without one the area, the interior angles
    and the parallelism of opposite edges decide.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def score(self, quad: np.ndarray, width: int, height: int, aspect_hint: Optional[float] = None) -> float:
        """
        Confidence of a candidate in [0, 1].

        Args:
            quad: Four points in any order
            width: Width of the image the quad lives in
            height: Height of the image the quad lives in
            aspect_hint: Expected width/height ratio, defaults to the configured one

        Returns:
            0.0 for candidates outside the area bounds, otherwise the weighted sub-scores
        """
        return self.breakdown(quad, width, height, aspect_hint).total

    def breakdown(
        self,
        quad: np.ndarray,
        width: int,
        height: int,
        aspect_hint: Optional[float] = None
    ) -> ScoreBreakdown:
        config = self.config
        weights = config.weights
        if aspect_hint is None:
            aspect_hint = config.aspect_hint

        points = np.asarray(quad, dtype=np.float32).reshape(-1, 2)
        if points.shape != (4, 2) or not np.all(np.isfinite(points)):
            return ScoreBreakdown(area_ratio=0.0, rejected="malformed")

        ordered = order_corners(points)
        image_area = float(width) * float(height)
        area_ratio = polygon_area(ordered) / image_area if image_area > 0 else 0.0

        if area_ratio < config.min_area_ratio or area_ratio > config.max_area_ratio:
            return ScoreBreakdown(area_ratio=area_ratio, rejected="area")
        if min_corner_distance(ordered) < 0.03 * max(width, height):
            return ScoreBreakdown(area_ratio=area_ratio, rejected="collapsed")

        angles = corner_angles(ordered)
        valid_angles = sum(1 for a in angles if VALID_ANGLE_RANGE[0] <= a <= VALID_ANGLE_RANGE[1])
        parallel = parallelism(ordered)
        ratio = aspect_ratio(ordered)

        result = ScoreBreakdown(area_ratio=area_ratio, parallelism=parallel)

        if aspect_hint:
            # Portrait and landscape captures of the same card score alike
            observed = max(ratio, 1.0 / ratio) if ratio > 0 else 0.0
            expected = max(aspect_hint, 1.0 / aspect_hint)
            result.aspect = max(0.0, 1.0 - abs(observed - expected) / config.aspect_tolerance)
            result.area = 1.0
            result.rectangularity = 1.0 if valid_angles >= 3 else 0.0
            total = (
                weights.id_aspect * result.aspect
                + weights.id_area * result.area
                + weights.id_rectangularity * result.rectangularity
                + weights.id_parallelism * result.parallelism
            )
        else:
            low, high = IDEAL_AREA_RANGE
            result.area = 1.0 if low <= area_ratio <= high else 0.67
            result.rectangularity = valid_angles / 4.0 if valid_angles >= 3 else 0.0
            result.aspect = 1.0 if PLAUSIBLE_ASPECT_RANGE[0] <= ratio <= PLAUSIBLE_ASPECT_RANGE[1] else 0.0
            total = (
                weights.general_area * result.area
                + weights.general_angles * result.rectangularity
                + weights.general_parallelism * result.parallelism
                + weights.general_aspect * result.aspect
            )

        result.total = float(np.clip(total, 0.0, 1.0))
        return result
