"""Factory classes for creating configured service instances."""

from typing import Callable, Dict

from .engine import PillowEngine
from .exceptions import ConfigurationError
from .observability import StructuredLogger
from .protocols import ImageEngine, LoggerProtocol


class EngineFactory:
    """Factory for the image engine backends selectable by name."""

    _ENGINES: Dict[str, Callable[[], ImageEngine]] = {
        "pillow": PillowEngine,
    }

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._ENGINES)

    @classmethod
    def create_engine(cls, name: str) -> ImageEngine:
        """Create the engine registered under name."""
        try:
            return cls._ENGINES[name.lower()]()
        except KeyError:
            raise ConfigurationError(
                f"Unknown image engine '{name}', expected one of {cls.available()}"
            ) from None


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "image-resizer", debug: bool = False) -> LoggerProtocol:
        """Create a configured logger instance."""
        return StructuredLogger(name, level="DEBUG" if debug else None)

