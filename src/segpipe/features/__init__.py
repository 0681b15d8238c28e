"""Feature generator stages feeding the segmentation module."""

from .feature_generator import FeatureGenerator, CallableFeatureGenerator

__all__ = ["FeatureGenerator", "CallableFeatureGenerator"]
