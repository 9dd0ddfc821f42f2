"""Testing utilities and fakes for the image resizer."""

from .fakes import (
    FakeImageServer,
    FakeLogger,
    RemoteImage,
    create_test_image,
    open_test_image,
    setup_test_image_dir,
)

__all__ = [
    "FakeImageServer",
    "FakeLogger",
    "RemoteImage",
    "create_test_image",
    "open_test_image",
    "setup_test_image_dir",
]
