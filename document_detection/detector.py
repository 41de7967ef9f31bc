"""
Document detector: multi-scale, multi-variant candidate search
"""

import cv2
import numpy as np
from dataclasses import dataclass
from loguru import logger
from typing import Callable, Iterator, List, Optional, Tuple

from .config import DetectionConfig, Strategy
from .edges import ThresholdPolicy, extract_edges
from .errors import NoCandidateFound
from .geometry import (
    clamp_to_image,
    default_quadrilateral,
    order_corners,
    refine_aspect_ratio,
    refine_corners_subpixel,
    scale_quad,
)
from .image import as_image, to_grayscale
from .preprocessing import PreprocessVariant, preprocess
from .scoring import CandidateScorer
from .strategies import STRATEGIES


@dataclass
class DetectionCandidate:
    """Scored quadrilateral in original image coordinates."""
    quadrilateral: np.ndarray
    confidence: float
    strategy: str


@dataclass
class DetectionResult:
    """
    Outcome of DocumentDetector.detect().

    Attributes:
        quadrilateral: (4, 2) float32 corners TL, TR, BR, BL in original image coordinates
        confidence: Score of the winning candidate, 0.0 for the default rectangle
        strategy: Strategy that produced the quad ("default" for the fallback)
        is_fallback: True when nothing passed the confidence threshold
        candidates_evaluated: Number of scored candidates
    """
    quadrilateral: np.ndarray
    confidence: float
    strategy: str
    is_fallback: bool
    candidates_evaluated: int

    @property
    def corners(self) -> List[Tuple[float, float]]:
        return [(float(x), float(y)) for x, y in self.quadrilateral]


@dataclass
class _Pass:
    target: int
    variant: PreprocessVariant
    gray: np.ndarray
    edges: np.ndarray
    scale_x: float
    scale_y: float


class DocumentDetector:
    """
    Class for document boundary detection.

    Every (scale, preprocessing variant) pass runs the enabled strategies;
    all candidates are scored and the best one above the confidence
    threshold wins. Without a winner an editable default rectangle is
    returned.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        """
        Initialize the detector.

        Args:
            config: Detection parameters, DetectionConfig() by default
        """
        self.config = config or DetectionConfig()
        self.scorer = CandidateScorer(self.config)

    def detect(
        self,
        image: np.ndarray,
        should_cancel: Optional[Callable[[], bool]] = None
    ) -> Optional[DetectionResult]:
        """
        Detect the document quadrilateral in an image.

        Args:
            image: Grayscale or RGB(A) image
            should_cancel: Polled before every strategy attempt; returning True stops the search

        Returns:
            DetectionResult, or None when cancelled before any candidate was accepted

        Raises:
            PreprocessingFailure: If the image is malformed
        """
        image = as_image(image)
        config = self.config

        best = None
        evaluated = 0
        cancelled = False

        for current in self._passes(image):
            for strategy in map(Strategy, config.strategies):
                if should_cancel is not None and should_cancel():
                    cancelled = True
                    break

                try:
                    scored = self._run_strategy(strategy, current)
                except Exception as e:
                    logger.warning(
                        f"Strategy {strategy.value} failed at {current.target}px/{current.variant.value}: {e}"
                    )
                    continue

                logger.debug(
                    f"{current.target}px/{current.variant.value}/{strategy.value}: "
                    f"{len(scored)} candidates"
                )
                # a strategy's candidates only count once all of them scored
                evaluated += len(scored)
                for candidate in scored:
                    if best is None or candidate.confidence > best.confidence:
                        best = candidate

            if cancelled:
                break

        try:
            winner = self._select(best)
        except NoCandidateFound as e:
            if cancelled:
                logger.info("Detection cancelled before a candidate was accepted")
                return None
            logger.info(f"{e}, using default rectangle")
            return self._fallback(image, evaluated)

        quad = self._finalize(image, winner.quadrilateral)
        logger.info(f"Detected document via {winner.strategy} (confidence {winner.confidence:.3f})")
        return DetectionResult(
            quadrilateral=quad,
            confidence=winner.confidence,
            strategy=winner.strategy,
            is_fallback=False,
            candidates_evaluated=evaluated,
        )

    def _run_strategy(self, strategy: Strategy, current: _Pass) -> List[DetectionCandidate]:
        """Generate and score one strategy's candidates, mapped to original coordinates."""
        gh, gw = current.gray.shape
        scored = []
        for quad, name in STRATEGIES[strategy](current.gray, current.edges, self.config):
            confidence = self.scorer.score(quad, gw, gh)
            mapped = scale_quad(quad, current.scale_x, current.scale_y)
            scored.append(DetectionCandidate(order_corners(mapped), confidence, name))
        return scored

    def _passes(self, image: np.ndarray) -> Iterator[_Pass]:
        """Lazily prepare the working image and edge mask of every pass."""
        height, width = image.shape[:2]
        policy = (
            ThresholdPolicy.fixed_at(self.config.edge_threshold)
            if self.config.edge_threshold is not None
            else ThresholdPolicy.adaptive()
        )

        for target in self.config.scale_targets:
            working = self._resize(image, target)
            wh, ww = working.shape[:2]
            for variant in self.config.variants:
                variant = PreprocessVariant(variant)
                processed = preprocess(working, variant, self.config.contrast_factor)
                gray = to_grayscale(processed) if processed.ndim == 3 else processed
                edges = extract_edges(gray, policy)
                logger.debug(f"{target}px/{variant.value}: {int(edges.sum())} edge pixels in {ww}x{wh}")
                yield _Pass(target, variant, gray, edges, width / float(ww), height / float(wh))

    def _resize(self, image: np.ndarray, target: int) -> np.ndarray:
        """Bring the longest side to `target` (down) or to min_size (up)."""
        height, width = image.shape[:2]
        longest = max(width, height)

        if longest > target:
            factor = target / float(longest)
            interpolation = cv2.INTER_AREA
        elif longest < self.config.min_size:
            factor = self.config.min_size / float(longest)
            interpolation = cv2.INTER_LINEAR
        else:
            return image

        size = (max(3, int(round(width * factor))), max(3, int(round(height * factor))))
        return cv2.resize(image, size, interpolation=interpolation)

    def _select(self, best: Optional[DetectionCandidate]) -> DetectionCandidate:
        if best is None or best.confidence <= self.config.confidence_threshold:
            raise NoCandidateFound(best.confidence if best is not None else 0.0)
        return best

    def _finalize(self, image: np.ndarray, quad: np.ndarray) -> np.ndarray:
        """Clamp, optionally refine, and order the winning quad."""
        height, width = image.shape[:2]
        config = self.config
        quad = clamp_to_image(quad, width, height)

        if config.refine_aspect and config.aspect_hint:
            quad = clamp_to_image(refine_aspect_ratio(quad, config.aspect_hint), width, height)

        if config.refine_subpixel:
            quad = refine_corners_subpixel(to_grayscale(image), quad)

        return order_corners(quad)

    def _fallback(self, image: np.ndarray, evaluated: int) -> DetectionResult:
        height, width = image.shape[:2]
        config = self.config
        gray = to_grayscale(image) if config.adaptive_margin else None
        quad = default_quadrilateral(
            width,
            height,
            margin_ratio=config.margin_ratio,
            aspect_hint=config.aspect_hint,
            gray=gray,
        )
        return DetectionResult(
            quadrilateral=order_corners(clamp_to_image(quad, width, height)),
            confidence=0.0,
            strategy="default",
            is_fallback=True,
            candidates_evaluated=evaluated,
        )


def detect_document(
    image: np.ndarray,
    config: Optional[DetectionConfig] = None,
    should_cancel: Optional[Callable[[], bool]] = None
) -> Optional[DetectionResult]:
    """Detect a document with a one-off DocumentDetector."""
    return DocumentDetector(config).detect(image, should_cancel=should_cancel)
