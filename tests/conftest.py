"""Shared fixtures for previewkit tests."""

import pytest
from PIL import Image

from previewkit.capabilities import StaticCapabilities
from previewkit.config import PreviewConfig
from previewkit.files import FileInfo
from previewkit.manager import PreviewManager
from previewkit.providers.base import LegacyPreviewProvider, PreviewProvider
from previewkit.registry.bootstrap import Coordinator


class StubProvider(PreviewProvider):
    """Provider whose availability and output are set per instance."""

    name = "Stub"
    mime_type = r".*"

    def __init__(self, available=True, image=None, **options):
        super().__init__(**options)
        self.available = available
        self.image = image
        self.probed = []

    def is_available(self, file):
        self.probed.append(file)
        return self.available

    def get_thumbnail(self, file, max_x, max_y):
        return self.image


class StubLegacyProvider(LegacyPreviewProvider):
    name = "StubLegacy"
    mime_type = r".*"

    def __init__(self, image=None, **options):
        super().__init__(**options)
        self.image = image

    def get_thumbnail(self, file, max_x, max_y):
        return self.image


@pytest.fixture
def make_manager():
    """Build a manager with pinned capabilities and no entry point scan."""

    def _make(config=None, capabilities=None, coordinator=None, **kwargs):
        config = config if config is not None else PreviewConfig()
        return PreviewManager(
            config,
            capabilities if capabilities is not None else StaticCapabilities(),
            coordinator=coordinator or Coordinator(config, entry_point_group=None),
            **kwargs,
        )

    return _make


@pytest.fixture
def no_builtins():
    """Config with every built-in provider disabled."""
    return PreviewConfig(enabled_preview_providers=[])


@pytest.fixture
def png_file(tmp_path):
    """A real 64x32 PNG on disk."""
    path = tmp_path / "sample.png"
    Image.new("RGB", (64, 32), color="red").save(path)
    return FileInfo.from_path(path)


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("first line\nsecond line\n")
    return FileInfo.from_path(path)
