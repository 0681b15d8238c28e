"""
Python implementation of the configuration and outcome types used by the
segmentation method.

This module implements Pydantic models for type safety and validation of the
orchestrator configuration and of the records it keeps about update cycles.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class SegmentationMethodConfig(BaseModel):
    """Configuration for the LesionSegmentationMethod orchestrator."""

    parallel_feature_generation: bool = Field(
        False,
        description="If true, feature generators are brought up to date concurrently on a thread pool"
    )
    max_workers: Optional[int] = Field(
        None,
        ge=1,
        description="Upper bound on concurrent feature generator updates; defaults to one worker per generator"
    )
    log_progress: bool = Field(
        False,
        description="If true, update progress is reported on the segpipe.progress logger"
    )


class UpdateOutcome(BaseModel):
    """Outcome of a single update cycle of the segmentation method."""

    status: str = Field(
        description="Must be one of 'SUCCESS', 'FAILURE'"
    )
    message: Optional[str] = Field(
        None,
        description="Human-readable message about the outcome"
    )
    error_code: Optional[str] = Field(
        None,
        description="Name of the exception type that failed the update, if any"
    )
    number_of_features: int = Field(
        0,
        description="Number of registered feature generators at the time of the update"
    )
    regenerated_features: List[int] = Field(
        default_factory=list,
        description="Indices of the feature generators that recomputed their feature during the update"
    )
    module_invoked: bool = Field(
        False,
        description="If true, the segmentation module recomputed its output during the update"
    )
    elapsed_seconds: float = Field(
        0.0,
        description="Wall-clock duration of the update cycle"
    )


def create_default_config() -> SegmentationMethodConfig:
    """Create the default, sequential orchestrator configuration."""
    return SegmentationMethodConfig()
