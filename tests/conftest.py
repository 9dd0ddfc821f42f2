"""Shared fixtures for the image resizer tests."""

from pathlib import Path

import pytest

from image_resizer.core.engine import PillowEngine
from image_resizer.core.models import ResizerConfig
from image_resizer.core.observability import MetricsCollector
from image_resizer.testing.fakes import (
    FakeImageServer,
    FakeLogger,
    create_test_image,
    setup_test_image_dir,
)


@pytest.fixture
def fake_logger() -> FakeLogger:
    return FakeLogger()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def engine() -> PillowEngine:
    return PillowEngine()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    return setup_test_image_dir(tmp_path / "images")


@pytest.fixture
def image_server() -> FakeImageServer:
    """Remote host serving the same sample images as image_dir."""
    server = FakeImageServer()
    server.add_image("/photos/landscape.jpg", create_test_image(200, 100))
    server.add_image(
        "/photos/portrait.png", create_test_image(100, 200, "PNG"), content_type="image/png"
    )
    server.add_image("/photos/small.jpg", create_test_image(40, 30))
    server.add_image("/photos/corrupt.jpg", b"this is not an image")
    return server


@pytest.fixture
def proxy_config(cache_dir: Path, image_dir: Path) -> ResizerConfig:
    return ResizerConfig(cache_folder=str(cache_dir), image_dir=str(image_dir))


@pytest.fixture
def local_config(cache_dir: Path, image_dir: Path) -> ResizerConfig:
    return ResizerConfig(
        cache_folder=str(cache_dir), image_dir=str(image_dir), allow_proxy=False
    )
