"""
Smoke tests for the bcclust package.

Verify that all modules can be imported without errors.
"""

import pytest


class TestPackageImports:
    """Test that the main package and subpackages can be imported."""

    def test_import_bcclust(self):
        """Test main package import."""
        import bcclust
        assert bcclust.__version__ == "0.1.0"

    def test_import_bcclust_io(self):
        """Test io subpackage import."""
        from bcclust import io
        assert io.Trace is not None

    def test_import_bcclust_preprocess(self):
        """Test preprocess subpackage import."""
        from bcclust import preprocess
        assert preprocess.condition_traces is not None

    def test_import_bcclust_features(self):
        """Test features subpackage import."""
        from bcclust import features
        assert features is not None

    def test_import_bcclust_analysis(self):
        """Test analysis subpackage import."""
        from bcclust import analysis
        assert analysis is not None

    def test_import_bcclust_pipeline(self):
        """Test pipeline subpackage import."""
        from bcclust.pipeline.runner import run_pipeline
        assert callable(run_pipeline)


class TestUtilityImports:
    """Test that utility modules can be imported."""

    def test_import_logging(self):
        """Test logging utility import."""
        from bcclust.utils.logging import setup_logging, get_logger
        assert setup_logging is not None
        assert get_logger("bcclust.test").name == "bcclust.test"

    def test_import_exceptions(self):
        """Test exception hierarchy."""
        from bcclust.utils.exceptions import (
            BCClustError,
            DegenerateSlopeError,
            IncompleteWindowError,
            PeakZeroError,
            TraceError,
        )
        assert issubclass(TraceError, BCClustError)
        for exc in (PeakZeroError, IncompleteWindowError, DegenerateSlopeError):
            assert issubclass(exc, TraceError)

    def test_setup_logging(self):
        """Test logging configuration accepts both format styles."""
        from bcclust.utils.logging import setup_logging

        setup_logging(level="DEBUG", format_style="minimal")
        setup_logging(level="info")


class TestFailureSummary:
    """Test the excluded-trace log summary."""

    def test_groups_by_stage_and_error(self, caplog):
        """Test one warning per stage and error class, listing trace IDs."""
        import logging

        from bcclust.io.records import StimType, TraceFailure
        from bcclust.utils.logging import log_failure_summary

        failures = [
            TraceFailure(1, StimType.STATIC, "conditioning", "PeakZeroError", "peak 0"),
            TraceFailure(2, StimType.STATIC, "features", "IncompleteWindowError", "auc"),
            TraceFailure(3, StimType.STATIC, "features", "IncompleteWindowError", "auc"),
        ]
        logger = logging.getLogger("bcclust.test")

        with caplog.at_level(logging.INFO, logger="bcclust.test"):
            log_failure_summary(logger, failures)

        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert "IDs [2, 3]" in warnings[1]

    def test_unknown_format_style(self):
        """Test an unknown format style is rejected."""
        from bcclust.utils.logging import setup_logging

        with pytest.raises(ValueError):
            setup_logging(format_style="verbose")
