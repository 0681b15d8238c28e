"""Spatial region value types shared by all pipeline stages."""

from .spatial_region import SpatialRegion, SpatialRegionDecorator

__all__ = ["SpatialRegion", "SpatialRegionDecorator"]
