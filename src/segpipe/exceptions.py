"""Custom exceptions for the segpipe package."""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""

    pass


class ConfigurationError(PipelineError):
    """Raised when the segmentation method is not configured for an update."""

    pass


class UpstreamFailure(PipelineError):
    """Raised when a feature generator fails to produce its feature."""

    def __init__(self, message: str, generator_index: Optional[int] = None):
        super().__init__(message)
        self.generator_index = generator_index


class SegmentationFailure(PipelineError):
    """Raised when the segmentation module fails to produce an output."""

    pass


class FeatureGenerationError(PipelineError):
    """Raised by a feature generator that cannot compute its feature."""

    pass
