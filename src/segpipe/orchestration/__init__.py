"""
Orchestration module for segpipe.

Provides the LesionSegmentationMethod, which coordinates feature generators
and a segmentation module into a single update cycle.
"""

from .lesion_segmentation_method import LesionSegmentationMethod, OrchestratorState

__all__ = ["LesionSegmentationMethod", "OrchestratorState"]
