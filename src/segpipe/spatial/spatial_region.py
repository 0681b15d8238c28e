"""
Spatial regions exchanged between the stages of the segmentation pipeline.

A SpatialRegion is the value passed around by every collaborator: the region
of interest, the initial segmentation, each computed feature and the final
segmentation. Regions are immutable once built; the pixel array is copied
and flagged read-only so a consumer can never alter a producer's output.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class SpatialRegion:
    """Image-backed region with physical origin and spacing."""
    data: np.ndarray
    origin: Optional[Tuple[float, ...]] = None
    spacing: Optional[Tuple[float, ...]] = None
    name: Optional[str] = None

    def __post_init__(self):
        data = np.array(self.data, copy=True)
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

        ndim = data.ndim
        origin = (0.0,) * ndim if self.origin is None else tuple(float(v) for v in self.origin)
        spacing = (1.0,) * ndim if self.spacing is None else tuple(float(v) for v in self.spacing)

        if len(origin) != ndim or len(spacing) != ndim:
            raise ValueError(
                f"origin and spacing must have {ndim} components, "
                f"got {len(origin)} and {len(spacing)}"
            )
        if any(s <= 0 for s in spacing):
            raise ValueError(f"spacing must be positive, got {spacing}")

        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "spacing", spacing)

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.data.shape

    def transform_index_to_physical_point(self, index: Sequence[int]) -> np.ndarray:
        """Map a pixel index to physical coordinates."""
        index = np.asarray(index, dtype=np.float64)
        return np.asarray(self.origin) + index * np.asarray(self.spacing)

    def transform_physical_point_to_index(self, point: Sequence[float]) -> Tuple[int, ...]:
        """Map a physical point to the nearest pixel index."""
        point = np.asarray(point, dtype=np.float64)
        continuous = (point - np.asarray(self.origin)) / np.asarray(self.spacing)
        return tuple(int(v) for v in np.rint(continuous))

    def is_inside(self, point: Sequence[float]) -> bool:
        """
        Check whether a physical point falls on a non-zero pixel.

        Args:
            point: Physical coordinates, one per dimension

        Returns:
            True if the point maps into the array and the pixel is non-zero
        """
        index = self.transform_physical_point_to_index(point)
        if any(i < 0 or i >= n for i, n in zip(index, self.shape)):
            return False
        return bool(self.data[index])

    def bounding_box(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Physical bounding box of the non-zero pixels.

        Returns:
            (lower, upper) corner points, or None if the region is empty
        """
        nonzero = np.argwhere(self.data)
        if nonzero.size == 0:
            return None
        lower = self.transform_index_to_physical_point(nonzero.min(axis=0))
        upper = self.transform_index_to_physical_point(nonzero.max(axis=0))
        return lower, upper

    def has_same_content(self, other: "SpatialRegion") -> bool:
        """Compare geometry and pixel values with another region."""
        if not isinstance(other, SpatialRegion):
            return False
        return (
            self.origin == other.origin
            and self.spacing == other.spacing
            and self.data.shape == other.data.shape
            and bool(np.array_equal(self.data, other.data))
        )

    def __repr__(self):
        label = f" name={self.name!r}" if self.name else ""
        return (
            f"SpatialRegion(shape={self.shape}, dtype={self.data.dtype}, "
            f"origin={self.origin}, spacing={self.spacing}{label})"
        )


@dataclass(frozen=True)
class SpatialRegionDecorator:
    """Published output slot: a region plus validity metadata."""
    region: Optional[SpatialRegion] = None
    modified_time: int = 0
    update_count: int = field(default=0)

    @property
    def is_valid(self) -> bool:
        """True once the slot holds a region computed by at least one update."""
        return self.region is not None and self.update_count > 0
