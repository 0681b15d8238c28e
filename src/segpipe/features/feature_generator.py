"""
Feature generators: pipeline stages that derive one feature region from a
region of interest.

Concrete algorithms subclass FeatureGenerator and implement generate_data().
The base class owns the staleness bookkeeping: update() only recomputes when
the region of interest or the generator's own configuration changed since
the last successful generation.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from segpipe.exceptions import FeatureGenerationError
from segpipe.pipeline.modified_time import ModifiedTimeMixin
from segpipe.spatial.spatial_region import SpatialRegion

logger = logging.getLogger(__name__)


class FeatureGenerator(ModifiedTimeMixin, ABC):
    """
    Base class for stages that compute a single feature region.

    Subclasses call ``self.modified()`` from any setter that changes their
    configuration, and implement ``generate_data()`` to compute the feature
    from ``self.get_region_of_interest()``.
    """

    def __init__(self):
        """Initialize the feature generator."""
        self._init_modified_time()
        self._region_of_interest: Optional[SpatialRegion] = None
        self._feature: Optional[SpatialRegion] = None
        # Modified time the current result was computed against
        self._generated_mtime = 0
        self._update_lock = threading.RLock()
        self.generation_count = 0

    def set_region_of_interest(self, region: Optional[SpatialRegion]) -> None:
        """Set the region the feature is computed over; a new object makes the feature stale."""
        if region is not self._region_of_interest:
            self._region_of_interest = region
            self.modified()

    def get_region_of_interest(self) -> Optional[SpatialRegion]:
        return self._region_of_interest

    def is_up_to_date(self) -> bool:
        """True if the current feature reflects the current ROI and configuration."""
        return (
            self._feature is not None
            and self._generated_mtime >= self.get_modified_time()
        )

    def update(self) -> bool:
        """
        Bring the feature up to date.

        Returns:
            True if the feature was recomputed, False if it was already current

        Raises:
            FeatureGenerationError: When the feature cannot be computed
        """
        with self._update_lock:
            if self.is_up_to_date():
                logger.debug(f"{type(self).__name__}: feature is up to date")
                return False

            logger.debug(f"{type(self).__name__}: generating feature")
            generated_mtime = self.get_modified_time()
            try:
                feature = self.generate_data()
            except Exception as e:
                if isinstance(e, FeatureGenerationError):
                    raise
                else:
                    raise FeatureGenerationError(
                        f"{type(self).__name__} failed to generate feature: {e}"
                    ) from e

            if feature is None:
                raise FeatureGenerationError(
                    f"{type(self).__name__} produced no feature"
                )

            self._feature = feature
            self._generated_mtime = generated_mtime
            if self.get_modified_time() != generated_mtime:
                logger.debug(
                    f"{type(self).__name__}: inputs changed while generating, feature is stale"
                )
            self.generation_count += 1
            return True

    def get_feature(self) -> Optional[SpatialRegion]:
        """Return the most recently generated feature."""
        return self._feature

    @abstractmethod
    def generate_data(self) -> SpatialRegion:
        """Compute the feature from the current region of interest."""

    def __repr__(self):
        return (
            f"{type(self).__name__}(mtime={self.get_modified_time()}, "
            f"up_to_date={self.is_up_to_date()})"
        )


class CallableFeatureGenerator(FeatureGenerator):
    """Feature generator wrapping a plain function ``f(region_of_interest) -> SpatialRegion``."""

    def __init__(
        self,
        function: Callable[[Optional[SpatialRegion]], SpatialRegion],
        name: Optional[str] = None
    ):
        super().__init__()
        self._function = function
        self.name = name or getattr(function, "__name__", "feature")

    def set_function(self, function: Callable[[Optional[SpatialRegion]], SpatialRegion]) -> None:
        if function is not self._function:
            self._function = function
            self.modified()

    def get_function(self) -> Callable[[Optional[SpatialRegion]], SpatialRegion]:
        return self._function

    def generate_data(self) -> SpatialRegion:
        return self._function(self.get_region_of_interest())

    def __repr__(self):
        return f"CallableFeatureGenerator(name={self.name!r}, up_to_date={self.is_up_to_date()})"
