"""Test fixtures for bcclust tests."""

from tests.fixtures.synthetic_traces import (
    FRAME_PERIOD_MS,
    generate_response,
    make_trace,
    make_population,
    make_blob_features,
)

__all__ = [
    "FRAME_PERIOD_MS",
    "generate_response",
    "make_trace",
    "make_population",
    "make_blob_features",
]
