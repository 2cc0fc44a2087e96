"""
Configuration models for the bcclust pipeline.

Uses Pydantic for schema validation. Only computation-affecting options
live here; plotting and reporting are configured by their own callers.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from bcclust.io.records import FEATURE_COLUMNS, METADATA_COLUMNS
from bcclust.utils.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# Features used for clustering unless the caller picks others.
# difCenters and the medians are left out: difCenters = Mean - Median.
DEFAULT_CLUSTER_COLUMNS: Tuple[str, ...] = (
    "MeanTransient",
    "SDTransient",
    "MeanHyper",
    "SDHyper",
    "Rise",
    "Slope",
    "TShift",
    "AUC",
)

SUPPORTED_METRICS = ("euclidean", "chebyshev", "maximum", "canberra", "minkowski", "cityblock", "manhattan")
SUPPORTED_LINKAGES = ("ward", "ward.D2", "single", "complete", "average", "weighted", "mcquitty", "centroid", "median")
SUPPORTED_INDICES = ("cindex", "silhouette", "davies_bouldin", "calinski_harabasz")


# =============================================================================
# Configuration Models
# =============================================================================

class TimeWindow(BaseModel):
    """Half-open stimulus-relative time window [start_ms, end_ms)."""

    start_ms: float
    end_ms: float

    @model_validator(mode="after")
    def check_order(self):
        if self.end_ms <= self.start_ms:
            raise ValueError(f"end_ms ({self.end_ms}) must be greater than start_ms ({self.start_ms})")
        return self

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class ConditioningConfig(BaseModel):
    """Noise filter and smoothing parameters."""

    # Normalized to Nyquist (scipy Wn convention)
    highpass_cutoff: float = Field(default=0.1, gt=0, lt=1)
    filter_order: int = Field(default=1, ge=1)
    zero_phase: bool = True
    smoothing_window: int = Field(default=10, ge=1)


class FeatureConfig(BaseModel):
    """Time windows and unit conventions for feature extraction."""

    frame_period_ms: float = Field(default=20.0, gt=0)
    transient_window: TimeWindow = TimeWindow(start_ms=2000, end_ms=2500)
    hyper_window: TimeWindow = TimeWindow(start_ms=3500, end_ms=4500)
    rise_window: TimeWindow = TimeWindow(start_ms=0, end_ms=750)
    auc_duration_ms: float = Field(default=500.0, gt=0)
    peak_time_unit: Literal["s", "ms"] = "s"
    min_window_fraction: float = Field(default=0.5, gt=0, le=1)

    @property
    def peak_time_scale(self) -> float:
        """Factor converting peakT/riseT to milliseconds."""
        return 1000.0 if self.peak_time_unit == "s" else 1.0


class StandardizeConfig(BaseModel):
    """Which columns are z-scored and which are held aside unchanged."""

    continuous_columns: List[str] = Field(
        default_factory=lambda: list(FEATURE_COLUMNS + METADATA_COLUMNS)
    )
    held_columns: List[str] = Field(default_factory=lambda: ["is_sac"])

    @model_validator(mode="after")
    def check_disjoint(self):
        overlap = set(self.continuous_columns) & set(self.held_columns)
        if overlap:
            raise ValueError(f"Columns both scaled and held aside: {sorted(overlap)}")
        return self


class PCAConfig(BaseModel):
    """PCA feature-selection parameters."""

    variance_threshold: float = Field(default=0.8, gt=0, le=1)
    scale: bool = False
    exclude: List[str] = Field(default_factory=lambda: ["difCenters"])


class ClusterConfig(BaseModel):
    """Distance, linkage, validity index and search range."""

    feature_columns: List[str] = Field(default_factory=lambda: list(DEFAULT_CLUSTER_COLUMNS))
    metric: str = "euclidean"
    minkowski_p: float = Field(default=2.0, gt=0)
    linkage: str = "ward"
    index: str = "cindex"
    k_min: int = 2
    k_max: int = 8
    tie_break: Literal["smallest", "largest"] = "smallest"
    collinearity_threshold: float = Field(default=0.999, gt=0, le=1)
    n_workers: int = Field(default=1, ge=1)

    @field_validator("metric")
    @classmethod
    def check_metric(cls, v):
        if v not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported metric '{v}', expected one of {SUPPORTED_METRICS}")
        return v

    @field_validator("linkage")
    @classmethod
    def check_linkage(cls, v):
        if v not in SUPPORTED_LINKAGES:
            raise ValueError(f"Unsupported linkage '{v}', expected one of {SUPPORTED_LINKAGES}")
        return v

    @field_validator("index")
    @classmethod
    def check_index(cls, v):
        if v not in SUPPORTED_INDICES:
            raise ValueError(f"Unsupported validity index '{v}', expected one of {SUPPORTED_INDICES}")
        return v

    @field_validator("feature_columns")
    @classmethod
    def check_columns(cls, v):
        if not v:
            raise ValueError("feature_columns cannot be empty")
        if len(set(v)) != len(v):
            raise ValueError(f"feature_columns contains duplicates: {v}")
        return v


class PipelineConfig(BaseModel):
    """Complete configuration for one pipeline run."""

    conditioning: ConditioningConfig = Field(default_factory=ConditioningConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    standardize: StandardizeConfig = Field(default_factory=StandardizeConfig)
    pca: PCAConfig = Field(default_factory=PCAConfig)
    clustering: ClusterConfig = Field(default_factory=ClusterConfig)
    n_workers: int = Field(default=4, ge=1)
    show_progress: bool = False


# =============================================================================
# Configuration Loading Functions
# =============================================================================

def load_json_config(path: Path) -> Dict[str, Any]:
    """
    Load a JSON configuration file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dictionary

    Raises:
        ConfigurationError: If file cannot be loaded or parsed
    """
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}")


def load_pipeline_config(path: Optional[Path] = None) -> PipelineConfig:
    """
    Load a pipeline configuration, falling back to defaults.

    Args:
        path: JSON file; None returns the default configuration

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigurationError: If the file is missing or does not validate
    """
    if path is None:
        return PipelineConfig()

    data = load_json_config(Path(path))

    try:
        config = PipelineConfig(**data)
    except Exception as e:
        raise ConfigurationError(f"Invalid pipeline config in {path}: {e}")

    logger.info(f"Loaded pipeline config from {path}")
    return config
