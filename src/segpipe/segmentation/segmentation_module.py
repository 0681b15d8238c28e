"""
Segmentation modules: the single aggregation stage of the pipeline.

A SegmentationModule receives a region of interest, an optional initial
segmentation and the ordered list of features, and produces one output
region. Like feature generators, the base class only reruns the algorithm
when one of those inputs, or the module's own configuration, changed.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Tuple

from segpipe.exceptions import SegmentationFailure
from segpipe.pipeline.modified_time import ModifiedTimeMixin
from segpipe.spatial.spatial_region import SpatialRegion

logger = logging.getLogger(__name__)


class SegmentationModule(ModifiedTimeMixin, ABC):
    """
    Base class encapsulating a segmentation algorithm.

    Subclasses implement ``generate_data()``. They may set
    ``expected_number_of_features`` to have update() reject feature lists of
    the wrong length before the algorithm runs.
    """

    expected_number_of_features: Optional[int] = None

    def __init__(self):
        """Initialize the segmentation module."""
        self._init_modified_time()
        self._region_of_interest: Optional[SpatialRegion] = None
        self._initial_segmentation: Optional[SpatialRegion] = None
        self._features: Tuple[SpatialRegion, ...] = ()
        self._output: Optional[SpatialRegion] = None
        # Modified time the current result was computed against
        self._generated_mtime = 0
        self.generation_count = 0

    def set_region_of_interest(self, region: Optional[SpatialRegion]) -> None:
        if region is not self._region_of_interest:
            self._region_of_interest = region
            self.modified()

    def get_region_of_interest(self) -> Optional[SpatialRegion]:
        return self._region_of_interest

    def set_initial_segmentation(self, region: Optional[SpatialRegion]) -> None:
        if region is not self._initial_segmentation:
            self._initial_segmentation = region
            self.modified()

    def get_initial_segmentation(self) -> Optional[SpatialRegion]:
        return self._initial_segmentation

    def set_features(self, features: Sequence[SpatialRegion]) -> None:
        """
        Set the ordered feature list.

        The module is only marked stale if the list differs from the current
        one in length or in the identity of any entry.
        """
        features = tuple(features)
        unchanged = len(features) == len(self._features) and all(
            new is old for new, old in zip(features, self._features)
        )
        if not unchanged:
            self._features = features
            self.modified()

    def get_features(self) -> Tuple[SpatialRegion, ...]:
        return self._features

    def get_number_of_features(self) -> int:
        return len(self._features)

    def is_up_to_date(self) -> bool:
        return (
            self._output is not None
            and self._generated_mtime >= self.get_modified_time()
        )

    def update(self) -> bool:
        """
        Bring the output up to date.

        Returns:
            True if the algorithm ran, False if the output was already current

        Raises:
            SegmentationFailure: When the feature list is unsuitable or the
                algorithm fails
        """
        if self.is_up_to_date():
            logger.debug(f"{type(self).__name__}: output is up to date")
            return False

        expected = self.expected_number_of_features
        if expected is not None and len(self._features) != expected:
            raise SegmentationFailure(
                f"{type(self).__name__} expects {expected} features, "
                f"got {len(self._features)}"
            )

        logger.debug(
            f"{type(self).__name__}: segmenting with {len(self._features)} features"
        )
        generated_mtime = self.get_modified_time()
        try:
            output = self.generate_data()
        except Exception as e:
            if isinstance(e, SegmentationFailure):
                raise
            else:
                raise SegmentationFailure(
                    f"{type(self).__name__} failed to segment: {e}"
                ) from e

        if output is None:
            raise SegmentationFailure(f"{type(self).__name__} produced no output")

        self._output = output
        self._generated_mtime = generated_mtime
        self.generation_count += 1
        return True

    def get_output(self) -> Optional[SpatialRegion]:
        return self._output

    @abstractmethod
    def generate_data(self) -> SpatialRegion:
        """Run the segmentation over the current inputs."""


class CallableSegmentationModule(SegmentationModule):
    """
    Segmentation module wrapping a plain function
    ``f(region_of_interest, initial_segmentation, features) -> SpatialRegion``.
    """

    def __init__(
        self,
        function: Callable[..., SpatialRegion],
        expected_number_of_features: Optional[int] = None
    ):
        super().__init__()
        self._function = function
        self.expected_number_of_features = expected_number_of_features

    def generate_data(self) -> SpatialRegion:
        return self._function(
            self.get_region_of_interest(),
            self.get_initial_segmentation(),
            list(self.get_features()),
        )
