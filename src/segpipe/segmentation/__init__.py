"""Segmentation module stage consuming the aggregated features."""

from .segmentation_module import SegmentationModule, CallableSegmentationModule

__all__ = ["SegmentationModule", "CallableSegmentationModule"]
