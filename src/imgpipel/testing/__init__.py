"""Testing utilities and fakes for imgpipel."""

from .fakes import (
    SAMPLE_EXIFTOOL_OUTPUT,
    FakeLogger,
    FakeToolRunner,
    create_test_image,
    setup_test_photo_tree,
)

__all__ = [
    "SAMPLE_EXIFTOOL_OUTPUT",
    "FakeLogger",
    "FakeToolRunner",
    "create_test_image",
    "setup_test_photo_tree",
]
