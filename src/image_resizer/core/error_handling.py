"""Classification of request failures into client responses or re-raises."""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from .exceptions import CacheError, UnsupportedFormatError
from .observability import LogContext, MetricsCollector
from .protocols import LoggerProtocol

UNSUPPORTED_FORMAT_STATUS = 415
UNSUPPORTED_FORMAT_MESSAGE = "Unsupported file format"

# Engine messages meaning the payload has no decoder.
_UNSUPPORTED_MARKERS = ("no decode delegate", "cannot identify image file")


def is_unsupported_format(error: BaseException) -> bool:
    """True when the failure means the engine cannot decode the source."""
    if isinstance(error, CacheError):
        return False
    if isinstance(error, UnsupportedFormatError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _UNSUPPORTED_MARKERS)


def unsupported_format_body() -> Dict[str, Any]:
    return {
        "error": {
            "status": UNSUPPORTED_FORMAT_STATUS,
            "message": UNSUPPORTED_FORMAT_MESSAGE,
        }
    }


class ErrorClassifier:
    """
    Maps request failures to HTTP outcomes.

    Only an unsupported source format is answered locally (415). Every other
    failure is left to the host framework's error handling.
    """

    def __init__(
        self,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._logger = logger
        self._metrics_collector = metrics_collector

    def classify(
        self, error: BaseException, context: Optional[LogContext] = None
    ) -> Optional[JSONResponse]:
        """Return the client response for the failure, or None to re-raise."""
        if self._metrics_collector:
            self._metrics_collector.record_event(
                "request_failed", success=False, error=type(error).__name__
            )

        if is_unsupported_format(error):
            self._logger.info(f"Unsupported source format: {error}", context)
            return JSONResponse(
                status_code=UNSUPPORTED_FORMAT_STATUS, content=unsupported_format_body()
            )

        self._logger.error(f"Request failed: {type(error).__name__}: {error}", context)
        return None
