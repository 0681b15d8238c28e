"""
LesionSegmentationMethod: coordinates feature generators and one segmentation
module into a single region-of-interest-constrained segmentation.

Each update cycle runs in two phases:
- Fan-out: every registered feature generator receives the region of
  interest and is brought up to date, sequentially or on a thread pool
- Fan-in: the ordered features, the region of interest and the initial
  segmentation are handed to the segmentation module, whose output becomes
  the published output of the method
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..exceptions import (
    ConfigurationError,
    SegmentationFailure,
    UpstreamFailure,
)
from ..features.feature_generator import FeatureGenerator
from ..logging_config import create_progress_logger
from ..pipeline.modified_time import ModifiedTimeMixin, TimeStamp
from ..segmentation.segmentation_module import SegmentationModule
from ..spatial.spatial_region import SpatialRegion, SpatialRegionDecorator
from ..types.types_IDL import (
    SegmentationMethodConfig,
    UpdateOutcome,
    create_default_config,
)

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    """Lifecycle states of a LesionSegmentationMethod."""
    UNCONFIGURED = "UNCONFIGURED"
    CONFIGURED = "CONFIGURED"
    UPDATING = "UPDATING"
    READY = "READY"
    FAILED = "FAILED"


class LesionSegmentationMethod(ModifiedTimeMixin):
    """
    Orchestrates feature generation and segmentation for one region of interest.

    The method holds shared references to its region of interest, initial
    segmentation, feature generators and segmentation module; it never owns
    them exclusively. Feature generators are kept in registration order, which
    is the order their features are handed to the segmentation module.

    Replacing any input while an update is running is a caller error and
    raises ConfigurationError.
    """

    def __init__(self, config: Optional[SegmentationMethodConfig] = None):
        """Initialize an empty, unconfigured segmentation method."""
        self._init_modified_time()
        self.config = config if config is not None else create_default_config()

        self._region_of_interest: Optional[SpatialRegion] = None
        self._initial_segmentation: Optional[SpatialRegion] = None
        self._feature_generators: List[FeatureGenerator] = []
        self._segmentation_module: Optional[SegmentationModule] = None

        self._output = SpatialRegionDecorator()
        self._state = OrchestratorState.UNCONFIGURED
        self._state_lock = threading.Lock()
        self._last_error: Optional[BaseException] = None
        self._last_outcome: Optional[UpdateOutcome] = None
        self._progress_observers: List[Callable[[float], None]] = []
        self._progress_logger = create_progress_logger()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_region_of_interest(self, region: Optional[SpatialRegion]) -> None:
        """Set the region that constrains feature generation and segmentation."""
        if region is self._region_of_interest:
            return
        self._check_not_updating("region of interest")
        self._region_of_interest = region
        self._configuration_changed()

    def get_region_of_interest(self) -> Optional[SpatialRegion]:
        return self._region_of_interest

    def set_initial_segmentation(self, region: Optional[SpatialRegion]) -> None:
        """Set the segmentation used to seed the segmentation module."""
        if region is self._initial_segmentation:
            return
        self._check_not_updating("initial segmentation")
        self._initial_segmentation = region
        self._configuration_changed()

    def get_initial_segmentation(self) -> Optional[SpatialRegion]:
        return self._initial_segmentation

    def add_feature_generator(self, generator: FeatureGenerator) -> None:
        """
        Append a generator that computes the next feature.

        The same generator may be added more than once; each registration
        occupies its own slot in the feature list.

        Raises:
            ConfigurationError: If generator is None
        """
        if generator is None:
            raise ConfigurationError("Feature generator cannot be None")
        self._check_not_updating("feature generator list")
        self._feature_generators.append(generator)
        logger.debug(
            f"Registered feature generator {len(self._feature_generators) - 1}: {generator!r}"
        )
        self._configuration_changed()

    def get_feature_generators(self) -> Tuple[FeatureGenerator, ...]:
        return tuple(self._feature_generators)

    def get_number_of_feature_generators(self) -> int:
        return len(self._feature_generators)

    def set_segmentation_module(self, module: Optional[SegmentationModule]) -> None:
        """Set the module that encapsulates the segmentation algorithm."""
        if module is self._segmentation_module:
            return
        self._check_not_updating("segmentation module")
        self._segmentation_module = module
        self._configuration_changed()

    def get_segmentation_module(self) -> Optional[SegmentationModule]:
        return self._segmentation_module

    def set_config(self, config: SegmentationMethodConfig) -> None:
        if config is None:
            raise ConfigurationError("Configuration cannot be None")
        self._check_not_updating("configuration")
        self.config = config
        self._configuration_changed()

    def add_progress_observer(self, observer: Callable[[float], None]) -> None:
        """
        Register a callable receiving the update progress as a fraction in [0, 1].

        Observer errors are logged and never fail the update.
        """
        self._progress_observers.append(observer)

    def _check_not_updating(self, what: str) -> None:
        if self._state == OrchestratorState.UPDATING:
            raise ConfigurationError(
                f"Cannot change the {what} while an update is in progress"
            )

    def _configuration_changed(self) -> None:
        self.modified()
        if self._segmentation_module is None:
            self._state = OrchestratorState.UNCONFIGURED
        else:
            self._state = OrchestratorState.CONFIGURED

    # ------------------------------------------------------------------
    # Output and status
    # ------------------------------------------------------------------

    def get_output(self) -> Optional[SpatialRegion]:
        """Return the segmentation produced by the last successful update."""
        return self._output.region

    def get_output_decorator(self) -> SpatialRegionDecorator:
        """Return the published output slot with its validity metadata."""
        return self._output

    def get_state(self) -> OrchestratorState:
        return self._state

    def get_last_error(self) -> Optional[BaseException]:
        return self._last_error

    def get_last_update_outcome(self) -> Optional[UpdateOutcome]:
        return self._last_outcome

    # ------------------------------------------------------------------
    # Update protocol
    # ------------------------------------------------------------------

    def update(self) -> SpatialRegion:
        """Bring the output up to date and return it."""
        self.generate_data()
        return self.get_output()

    def generate_data(self) -> None:
        """
        Run one update cycle.

        Brings every feature generator up to date, hands their features in
        registration order to the segmentation module and publishes the
        module's output. On failure the previously published output is kept.

        Raises:
            ConfigurationError: If no segmentation module is set, or an
                update is already in progress
            UpstreamFailure: If a feature generator fails
            SegmentationFailure: If the segmentation module fails
        """
        start = time.perf_counter()
        with self._state_lock:
            if self._state == OrchestratorState.UPDATING:
                raise ConfigurationError("An update is already in progress")
            if self._segmentation_module is None:
                error = ConfigurationError("No segmentation module has been set")
                logger.error(f"Update rejected: {error}")
                self._record_failure(error, [], False, start)
                raise error
            self._state = OrchestratorState.UPDATING

        region_of_interest = self._region_of_interest
        initial_segmentation = self._initial_segmentation
        generators = tuple(self._feature_generators)
        module = self._segmentation_module

        logger.info(f"Starting update with {len(generators)} feature generators")
        regenerated: List[int] = []
        module_invoked = False
        try:
            features = self._update_all_feature_generators(
                generators, region_of_interest, regenerated
            )
            module_invoked = self._run_segmentation_module(
                module, region_of_interest, initial_segmentation, features
            )
        except BaseException as e:
            logger.error(f"Update failed: {e!r}")
            self._record_failure(e, regenerated, module_invoked, start)
            raise

        output = module.get_output()
        if output is not self._output.region:
            stamp = TimeStamp()
            stamp.modified()
            self._output = SpatialRegionDecorator(
                region=output,
                modified_time=stamp.get_time(),
                update_count=self._output.update_count + 1,
            )

        self._last_error = None
        self._last_outcome = UpdateOutcome(
            status="SUCCESS",
            number_of_features=len(generators),
            regenerated_features=sorted(regenerated),
            module_invoked=module_invoked,
            elapsed_seconds=time.perf_counter() - start,
        )
        self._state = OrchestratorState.READY
        logger.info(
            f"Update completed: {len(regenerated)}/{len(generators)} features regenerated, "
            f"segmentation {'recomputed' if module_invoked else 'reused'}"
        )
        self._report_progress(1.0)

    def _record_failure(
        self,
        error: BaseException,
        regenerated: List[int],
        module_invoked: bool,
        start: float
    ) -> None:
        self._last_error = error
        self._last_outcome = UpdateOutcome(
            status="FAILURE",
            message=str(error),
            error_code=type(error).__name__,
            number_of_features=len(self._feature_generators),
            regenerated_features=sorted(regenerated),
            module_invoked=module_invoked,
            elapsed_seconds=time.perf_counter() - start,
        )
        self._state = OrchestratorState.FAILED

    def _update_all_feature_generators(
        self,
        generators: Sequence[FeatureGenerator],
        region_of_interest: Optional[SpatialRegion],
        regenerated: List[int]
    ) -> List[SpatialRegion]:
        """
        Bring all feature generators up to date.

        Returns:
            One feature per generator, in registration order
        """
        total_steps = len(generators) + 1

        if not self.config.parallel_feature_generation or len(generators) < 2:
            features = []
            for index, generator in enumerate(generators):
                self._push_region_of_interest(index, generator, region_of_interest)
                if self._update_feature_generator(index, generator):
                    regenerated.append(index)
                features.append(self._collect_feature(index, generator))
                self._report_progress((index + 1) / total_steps)
            return features

        # All regions are pushed before any generator starts updating
        for index, generator in enumerate(generators):
            self._push_region_of_interest(index, generator, region_of_interest)

        features: List[Optional[SpatialRegion]] = [None] * len(generators)
        max_workers = self.config.max_workers or len(generators)
        logger.debug(f"Updating {len(generators)} feature generators on {max_workers} workers")

        executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="feature-generator"
        )
        try:
            futures = {
                executor.submit(self._update_feature_generator, index, generator): index
                for index, generator in enumerate(generators)
            }
            pending = set(futures)
            completed = 0
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    index = futures[future]
                    error = future.exception()
                    if error is not None:
                        raise error
                    if future.result():
                        regenerated.append(index)
                    features[index] = self._collect_feature(index, generators[index])
                    completed += 1
                    self._report_progress(completed / total_steps)
        finally:
            # Running generators finish on their own; queued ones are dropped
            executor.shutdown(wait=False, cancel_futures=True)

        return features

    def _push_region_of_interest(
        self,
        index: int,
        generator: FeatureGenerator,
        region_of_interest: Optional[SpatialRegion]
    ) -> None:
        try:
            generator.set_region_of_interest(region_of_interest)
        except Exception as e:
            raise UpstreamFailure(
                f"Feature generator {index} rejected the region of interest: {e}",
                generator_index=index,
            ) from e

    def _update_feature_generator(self, index: int, generator: FeatureGenerator) -> bool:
        logger.debug(f"Updating feature generator {index}: {generator!r}")
        try:
            return generator.update()
        except Exception as e:
            raise UpstreamFailure(
                f"Feature generator {index} failed: {e}", generator_index=index
            ) from e

    def _collect_feature(self, index: int, generator: FeatureGenerator) -> SpatialRegion:
        feature = generator.get_feature()
        if feature is None:
            raise UpstreamFailure(
                f"Feature generator {index} has no feature after update",
                generator_index=index,
            )
        return feature

    def _run_segmentation_module(
        self,
        module: SegmentationModule,
        region_of_interest: Optional[SpatialRegion],
        initial_segmentation: Optional[SpatialRegion],
        features: Sequence[SpatialRegion]
    ) -> bool:
        """Feed the module its inputs and bring its output up to date."""
        try:
            module.set_region_of_interest(region_of_interest)
            module.set_initial_segmentation(initial_segmentation)
            module.set_features(features)
            invoked = module.update()
        except Exception as e:
            if isinstance(e, SegmentationFailure):
                raise
            else:
                raise SegmentationFailure(f"Segmentation module failed: {e}") from e

        if module.get_output() is None:
            raise SegmentationFailure("Segmentation module produced no output")
        return invoked

    def _report_progress(self, fraction: float) -> None:
        if self.config.log_progress:
            self._progress_logger(fraction)
        for observer in self._progress_observers:
            try:
                observer(fraction)
            except Exception as e:
                logger.warning(f"Progress observer {observer!r} failed at {fraction:.0%}: {e}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def describe(self) -> str:
        """Return a multi-line summary of the method's configuration and state."""
        lines = [
            f"{type(self).__name__}",
            f"  State: {self._state.value}",
            f"  Modified time: {self.get_modified_time()}",
            f"  Region of interest: {self._region_of_interest!r}",
            f"  Initial segmentation: {self._initial_segmentation!r}",
            f"  Feature generators: {len(self._feature_generators)}",
        ]
        for index, generator in enumerate(self._feature_generators):
            lines.append(f"    [{index}] {generator!r}")
        lines.append(f"  Segmentation module: {self._segmentation_module!r}")
        lines.append(
            f"  Parallel feature generation: {self.config.parallel_feature_generation}"
        )
        lines.append(f"  Output valid: {self._output.is_valid}")
        if self._last_error is not None:
            lines.append(f"  Last error: {type(self._last_error).__name__}: {self._last_error}")
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"{type(self).__name__}(state={self._state.value}, "
            f"features={len(self._feature_generators)}, "
            f"module={type(self._segmentation_module).__name__ if self._segmentation_module else None})"
        )
