"""Shared pytest fixtures and configuration for the test suite."""

import threading
import time

import numpy as np
import pytest

from segpipe.features.feature_generator import FeatureGenerator
from segpipe.segmentation.segmentation_module import SegmentationModule
from segpipe.spatial.spatial_region import SpatialRegion


class LabelFeatureGenerator(FeatureGenerator):
    """Produces a feature named after its label, optionally slowly or failing."""

    def __init__(self, label, delay=0.0, fail=False):
        super().__init__()
        self.label = label
        self.delay = delay
        self.fail = fail
        self.calls = 0
        self.finished_at = None
        self._calls_lock = threading.Lock()

    def set_label(self, label):
        self.label = label
        self.modified()

    def generate_data(self):
        with self._calls_lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"generator {self.label} exploded")
        self.finished_at = time.perf_counter()
        roi = self.get_region_of_interest()
        data = roi.data if roi is not None else np.zeros((2, 2), dtype=bool)
        return SpatialRegion(data, name=self.label)


class ConcatenatingModule(SegmentationModule):
    """Joins the names of the received features with commas."""

    def __init__(self):
        super().__init__()
        self.received = []

    def generate_data(self):
        labels = [feature.name for feature in self.get_features()]
        self.received.append(labels)
        roi = self.get_region_of_interest()
        data = roi.data if roi is not None else np.zeros((2, 2), dtype=bool)
        return SpatialRegion(data, name=",".join(labels))


@pytest.fixture
def roi():
    """An 8x8 region of interest with a filled 4x4 center."""
    data = np.zeros((8, 8), dtype=bool)
    data[2:6, 2:6] = True
    return SpatialRegion(data, origin=(10.0, 20.0), spacing=(0.5, 0.5), name="roi")


@pytest.fixture
def make_generator():
    """Factory for LabelFeatureGenerator test doubles."""
    return LabelFeatureGenerator


@pytest.fixture
def concat_module():
    """A fresh ConcatenatingModule."""
    return ConcatenatingModule()
