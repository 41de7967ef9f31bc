"""
Document Detection Module

Finds the four corners of a document (page, receipt, ID card) in a photo
and rectifies it to a fronto-parallel image.
"""

from .config import DetectionConfig, ScoringWeights, Strategy, ID1_ASPECT_RATIO
from .detector import DetectionCandidate, DetectionResult, DocumentDetector, detect_document
from .errors import (
    DegenerateQuadrilateral,
    DocumentDetectionError,
    NoCandidateFound,
    PreprocessingFailure,
    StrategyInternalError,
)
from .geometry import order_corners, quad_metrics
from .image import from_buffer
from .preprocessing import PreprocessVariant
from .rectify import rectify
from .scoring import CandidateScorer, ScoreBreakdown

__all__ = [
    'DetectionConfig',
    'ScoringWeights',
    'Strategy',
    'ID1_ASPECT_RATIO',
    'DetectionCandidate',
    'DetectionResult',
    'DocumentDetector',
    'detect_document',
    'DocumentDetectionError',
    'PreprocessingFailure',
    'NoCandidateFound',
    'DegenerateQuadrilateral',
    'StrategyInternalError',
    'order_corners',
    'quad_metrics',
    'from_buffer',
    'PreprocessVariant',
    'rectify',
    'CandidateScorer',
    'ScoreBreakdown',
]
