"""
Detection configuration.

All thresholds and sizes used by the pipeline live here; there are no
module-level tunables. Presets reproduce the fast / balanced / precise /
ID-card detector flavours as plain configurations of one detector.
"""

from dataclasses import dataclass, field, replace as dataclass_replace
from enum import Enum
from typing import Optional, Tuple

from .preprocessing import PreprocessVariant


# ISO/IEC 7810 ID-1: 85.60 mm x 53.98 mm
ID1_ASPECT_RATIO = 85.6 / 53.98


class Strategy(str, Enum):
    """Quadrilateral candidate generators"""
    CONTOUR = "contour"
    LINE = "line"
    CORNER = "corner"


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights of the candidate sub-scores.

    The `id_*` weights apply when an aspect hint is configured,
    the `general_*` weights otherwise. Each group sums to 1.0.
    """
    id_aspect: float = 0.4
    id_area: float = 0.3
    id_rectangularity: float = 0.2
    id_parallelism: float = 0.1

    general_area: float = 0.35
    general_angles: float = 0.35
    general_parallelism: float = 0.2
    general_aspect: float = 0.1


@dataclass(frozen=True)
class DetectionConfig:
    """
    Parameters of one DocumentDetector run.

    Attributes:
        target_size: Longest-edge size the input is downscaled to
        min_size: Longest-edge size small inputs are upscaled to
        scales: Multipliers of target_size, one detection pass per entry
        variants: Preprocessing variants tried at every scale
        strategies: Enabled candidate generators
        aspect_hint: Expected width/height ratio (e.g. ID-1 card), None for general documents
        aspect_tolerance: Band over which the aspect sub-score falls to zero
        confidence_threshold: Minimum score of an accepted candidate
        margin_ratio: Inset of the default rectangle (fraction of the shorter side)
        adaptive_margin: Derive the default inset from border brightness
        contrast_factor: Gain of the contrast variant
        edge_threshold: Fixed Sobel threshold, None for the adaptive policy
        contour_connectivity: 4 or 8 neighbour tracing
        max_contour_length: Hard cap of points per traced contour
        min_contour_length: Shorter contours are dropped as noise
        epsilon_ratio: Douglas-Peucker tolerance as a fraction of the perimeter
        line_density: Fraction of edge pixels a scan line needs to qualify
        corner_stride: Sampling grid of the corner response
        corner_window: Radius of the second-moment window
        corner_relative_threshold: Corner response threshold relative to the maximum
        min_area_ratio: Candidates covering less of the frame score 0
        max_area_ratio: Candidates covering more of the frame score 0
        refine_aspect: Snap the winner to aspect_hint when it deviates
        refine_subpixel: Refine the winner's corners with cv2.cornerSubPix
        weights: Sub-score weights
    """
    target_size: int = 1000
    min_size: int = 600
    scales: Tuple[float, ...] = (1.0,)
    variants: Tuple[PreprocessVariant, ...] = (PreprocessVariant.DENOISE, PreprocessVariant.ORIGINAL)
    strategies: Tuple[Strategy, ...] = (Strategy.CONTOUR, Strategy.LINE, Strategy.CORNER)
    aspect_hint: Optional[float] = None
    aspect_tolerance: float = 0.3
    confidence_threshold: float = 0.5
    margin_ratio: float = 0.1
    adaptive_margin: bool = False
    contrast_factor: float = 1.5
    edge_threshold: Optional[int] = None
    contour_connectivity: int = 8
    max_contour_length: int = 1000
    min_contour_length: int = 20
    epsilon_ratio: float = 0.02
    line_density: float = 0.25
    corner_stride: int = 3
    corner_window: int = 1
    corner_relative_threshold: float = 0.1
    min_area_ratio: float = 0.1
    max_area_ratio: float = 0.9
    refine_aspect: bool = False
    refine_subpixel: bool = False
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    def __post_init__(self):
        if self.target_size < 16:
            raise ValueError(f"target_size too small: {self.target_size}")
        if self.min_size < 16 or self.min_size > self.target_size:
            raise ValueError(f"min_size must be in [16, target_size], got {self.min_size}")
        if not self.scales or any(s <= 0 for s in self.scales):
            raise ValueError(f"scales must be positive: {self.scales}")
        if not self.variants:
            raise ValueError("At least one preprocessing variant is required")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold out of [0, 1]: {self.confidence_threshold}")
        if not 0.0 <= self.margin_ratio < 0.5:
            raise ValueError(f"margin_ratio out of [0, 0.5): {self.margin_ratio}")
        if self.aspect_hint is not None and self.aspect_hint <= 0:
            raise ValueError(f"aspect_hint must be positive: {self.aspect_hint}")
        if self.aspect_tolerance <= 0:
            raise ValueError(f"aspect_tolerance must be positive: {self.aspect_tolerance}")
        if self.contour_connectivity not in (4, 8):
            raise ValueError(f"contour_connectivity must be 4 or 8: {self.contour_connectivity}")
        if self.max_contour_length < self.min_contour_length:
            raise ValueError("max_contour_length must be >= min_contour_length")
        if not 0.0 < self.min_area_ratio < self.max_area_ratio <= 1.0:
            raise ValueError(
                f"Invalid area bounds: [{self.min_area_ratio}, {self.max_area_ratio}]"
            )
        if not 0.0 < self.line_density < 1.0:
            raise ValueError(f"line_density out of (0, 1): {self.line_density}")
        if self.corner_stride < 1 or self.corner_window < 1:
            raise ValueError("corner_stride and corner_window must be >= 1")

    def replace(self, **changes) -> "DetectionConfig":
        """Return a copy with the given fields changed."""
        return dataclass_replace(self, **changes)

    @property
    def scale_targets(self) -> Tuple[int, ...]:
        """Longest-edge sizes of the detection passes, largest first."""
        targets = {max(16, int(round(self.target_size * s))) for s in self.scales}
        return tuple(sorted(targets, reverse=True))

    @classmethod
    def fast(cls) -> "DetectionConfig":
        """Single small pass, suited for per-frame preview."""
        return cls(
            target_size=800,
            min_size=400,
            variants=(PreprocessVariant.DENOISE,),
        )

    @classmethod
    def balanced(cls) -> "DetectionConfig":
        return cls(
            target_size=1200,
            variants=(PreprocessVariant.CONTRAST, PreprocessVariant.DENOISE, PreprocessVariant.ORIGINAL),
        )

    @classmethod
    def precise(cls) -> "DetectionConfig":
        """Three scales times four variants, lower acceptance threshold."""
        return cls(
            target_size=2000,
            scales=(1.0, 0.8, 0.6),
            variants=(
                PreprocessVariant.CONTRAST,
                PreprocessVariant.SHARPEN,
                PreprocessVariant.DENOISE,
                PreprocessVariant.ORIGINAL,
            ),
            confidence_threshold=0.4,
            aspect_tolerance=0.4,
            max_area_ratio=0.85,
        )

    @classmethod
    def id_card(cls, aspect_hint: float = ID1_ASPECT_RATIO) -> "DetectionConfig":
        """ID-1 card: aspect-driven scoring, card-shaped fallback, aspect refinement."""
        return cls(
            target_size=1200,
            variants=(PreprocessVariant.ENHANCED, PreprocessVariant.DENOISE),
            aspect_hint=aspect_hint,
            aspect_tolerance=0.3,
            confidence_threshold=0.6,
            min_area_ratio=0.15,
            max_area_ratio=0.85,
            refine_aspect=True,
        )
