"""Tests for fake implementations to ensure they work correctly."""

import asyncio

import httpx
import pytest

from image_resizer.testing.fakes import (
    FakeImageServer,
    FakeLogger,
    RemoteImage,
    create_test_image,
    open_test_image,
    setup_test_image_dir,
)
from image_resizer.core.observability import LogContext


def fetch(server: FakeImageServer, url: str) -> httpx.Response:
    async def scenario():
        async with httpx.AsyncClient(transport=server.transport) as client:
            return await client.get(url)

    return asyncio.run(scenario())


class TestFakeImageServer:
    """Tests for FakeImageServer to ensure it behaves correctly."""

    def test_serves_added_image(self):
        """Test successful image retrieval."""
        server = FakeImageServer()
        server.add_image("/a.png", b"png bytes", content_type="image/png")

        response = fetch(server, "http://example.com/a.png")

        assert response.status_code == 200
        assert response.content == b"png bytes"
        assert response.headers["content-type"] == "image/png"
        assert server.request_count == 1

    def test_unknown_path_is_404(self):
        """Test getting a nonexistent image."""
        server = FakeImageServer()

        response = fetch(server, "http://example.com/missing.png")

        assert response.status_code == 404

    def test_custom_status(self):
        """Test that a canned error status is returned."""
        server = FakeImageServer()
        server.add_image("/a.png", b"", status_code=503)

        assert fetch(server, "http://example.com/a.png").status_code == 503

    def test_failure_mode(self):
        """Test failure mode simulation."""
        server = FakeImageServer()
        server.add_image("/a.png", b"data")
        server.set_failure_mode(True, "Custom error")

        with pytest.raises(httpx.ConnectError, match="Custom error"):
            fetch(server, "http://example.com/a.png")
        assert server.request_count == 1

    def test_remote_image_size(self):
        """Test RemoteImage size calculation."""
        assert RemoteImage(path="/a", body=b"12345").size == 5


class TestFakeLogger:
    """Tests for FakeLogger functionality."""

    def test_log_levels(self):
        """Test logging at different levels."""
        logger = FakeLogger()

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")

        assert len(logger.logs) == 4
        assert logger.messages("INFO") == ["Info message"]

    def test_log_with_context(self):
        """Test that context attributes and metadata are captured."""
        logger = FakeLogger()
        context = (
            LogContext(operation="transform")
            .with_fingerprint("f" * 40)
            .with_metadata(location="/a.jpg")
        )

        logger.info("Serving", context, format="PNG")

        entry = logger.get_logs()[0]
        assert entry["operation"] == "transform"
        assert entry["fingerprint"] == "f" * 40
        assert entry["location"] == "/a.jpg"
        assert entry["format"] == "PNG"

    def test_clear_logs(self):
        """Test clearing logs."""
        logger = FakeLogger()
        logger.info("Message")
        logger.clear_logs()
        assert logger.get_logs() == []


class TestTestUtilities:
    """Tests for test utility functions."""

    def test_create_test_image(self):
        """Test that the image is half red, half blue."""
        image = open_test_image(create_test_image(100, 50, "PNG"))
        assert image.size == (100, 50)
        assert image.getpixel((10, 25)) == (255, 0, 0)
        assert image.getpixel((90, 25)) == (0, 0, 255)

    def test_create_test_image_with_orientation(self):
        """Test that the EXIF orientation tag is written."""
        image = open_test_image(create_test_image(20, 10, orientation=8))
        assert image.getexif().get(0x0112) == 8

    def test_setup_test_image_dir(self, tmp_path):
        """Test that the sample image tree is created."""
        root = setup_test_image_dir(tmp_path / "images")
        names = sorted(p.name for p in (root / "photos").iterdir())
        assert names == ["corrupt.jpg", "landscape.jpg", "portrait.png", "small.jpg"]
