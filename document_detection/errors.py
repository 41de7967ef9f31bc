"""
Exceptions raised by the document detection pipeline
"""


class DocumentDetectionError(Exception):
    """Base class for all pipeline errors."""


class PreprocessingFailure(DocumentDetectionError, ValueError):
    """Input image is malformed, empty or has an unsupported pixel format."""


class NoCandidateFound(DocumentDetectionError):
    """
    Every strategy ran but no candidate scored above the confidence threshold.

    The detector resolves this into the default rectangle, callers of
    DocumentDetector.detect() never see it.
    """

    def __init__(self, best_confidence: float = 0.0):
        super().__init__(f"No candidate above threshold (best confidence {best_confidence:.3f})")
        self.best_confidence = best_confidence


class DegenerateQuadrilateral(DocumentDetectionError, ValueError):
    """Quadrilateral cannot be rectified (collinear corners or zero-sized target)."""


class StrategyInternalError(DocumentDetectionError):
    """A detection strategy hit malformed intermediate state."""

    def __init__(self, strategy: str, message: str):
        super().__init__(f"{strategy}: {message}")
        self.strategy = strategy
