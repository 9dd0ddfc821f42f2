# tests/core/test_error_handling.py

import json

import pytest

from image_resizer.core.exceptions import (
    CacheReadError,
    GeometryError,
    ImageProcessingError,
    SourceFetchError,
    UnsupportedFormatError,
)
from image_resizer.core.error_handling import (
    UNSUPPORTED_FORMAT_STATUS,
    ErrorClassifier,
    is_unsupported_format,
    unsupported_format_body,
)
from image_resizer.core.observability import LogContext, MetricsCollector
from image_resizer.testing.fakes import FakeLogger


# --- Tests for is_unsupported_format ---

@pytest.mark.parametrize(
    "error, expected",
    [
        (UnsupportedFormatError("no decode delegate for this image format"), True),
        (ImageProcessingError("cannot identify image file <_io.BytesIO>"), True),
        (ImageProcessingError("No decode delegate for this image format `XYZ'"), True),
        (GeometryError("zero height"), False),
        (SourceFetchError("status 404", status_code=404), False),
        (RuntimeError("boom"), False),
    ],
)
def test_is_unsupported_format(error, expected):
    """Test which failures count as an unsupported source format."""
    assert is_unsupported_format(error) is expected


def test_corrupted_cache_entry_is_never_unsupported():
    """Test that a cache read failure is not reported as a client error."""
    error = CacheReadError("no decode delegate for this image format")
    assert is_unsupported_format(error) is False


def test_unsupported_format_body():
    """Test the exact 415 body."""
    assert unsupported_format_body() == {
        "error": {"status": 415, "message": "Unsupported file format"}
    }


# --- Tests for ErrorClassifier ---

@pytest.fixture
def classifier_parts():
    logger = FakeLogger()
    metrics = MetricsCollector()
    return ErrorClassifier(logger, metrics), logger, metrics


def test_classify_unsupported_format(classifier_parts):
    """Test that an undecodable source becomes a 415 JSON response."""
    classifier, logger, metrics = classifier_parts

    response = classifier.classify(UnsupportedFormatError("no decode delegate"))

    assert response is not None
    assert response.status_code == UNSUPPORTED_FORMAT_STATUS
    assert json.loads(response.body) == unsupported_format_body()
    assert response.media_type == "application/json"
    assert metrics.count("request_failed", success=False) == 1
    assert logger.get_logs("ERROR") == []


def test_classify_other_errors_are_reraised(classifier_parts):
    """Test that other failures are logged and left to the framework."""
    classifier, logger, metrics = classifier_parts
    context = LogContext(component="test").with_fingerprint("abc123")

    response = classifier.classify(SourceFetchError("status 500", status_code=500), context)

    assert response is None
    errors = logger.get_logs("ERROR")
    assert len(errors) == 1
    assert "SourceFetchError" in errors[0]["message"]
    assert errors[0]["fingerprint"] == "abc123"
    assert metrics.get_stats("request_failed").error_types == {"SourceFetchError": 1}


def test_classify_without_metrics():
    """Test that the classifier works without a metrics collector."""
    classifier = ErrorClassifier(FakeLogger())
    assert classifier.classify(RuntimeError("boom")) is None
