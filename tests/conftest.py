"""
Pytest configuration and shared fixtures for bcclust tests.

This module provides:
    - Synthetic trace populations
    - Standardized blob feature tables
    - Temporary directories for config files
"""

import pytest
import tempfile
from pathlib import Path

from bcclust.features.standardize import standardize
from bcclust.pipeline.config import ClusterConfig, PipelineConfig
from tests.fixtures.synthetic_traces import make_blob_features, make_population


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def pipeline_config():
    """Default pipeline configuration, run sequentially."""
    return PipelineConfig(n_workers=1)


@pytest.fixture
def population():
    """36 static traces from three response families."""
    return make_population(n_per_type=12)


@pytest.fixture
def blob_frame():
    """Four well-separated Gaussian blobs, 15 points each."""
    return make_blob_features(n_clusters=4, n_per_cluster=15)


@pytest.fixture
def blob_table(blob_frame):
    """Standardized blob features (f0, f1, f2)."""
    return standardize(blob_frame, continuous_columns=["f0", "f1", "f2"], held_columns=["is_sac"])


@pytest.fixture
def blob_cluster_config():
    """Cluster config over the blob feature columns."""
    return ClusterConfig(feature_columns=["f0", "f1", "f2"], k_min=2, k_max=8)
