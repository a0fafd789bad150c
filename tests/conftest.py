"""Shared fixtures for FreeQR tests."""

import pytest

from freeqr.config import StyleConfig
from freeqr.encoder import ArtifactKind, QRCodeEncoder


class StubEncoder:
    """Encoder that records requests and returns canned artifacts, delegates, or raises."""

    def __init__(self, raster=None, vector=None, delegate=None, error=None):
        self._raster = raster
        self._vector = vector
        self._delegate = delegate
        self._error = error
        self.calls = []

    def name(self) -> str:
        return "stub"

    def render(self, style, size, kind=ArtifactKind.RASTER):
        self.calls.append((style, size, kind))
        if self._error is not None:
            raise self._error
        if self._delegate is not None:
            return self._delegate.render(style, size, kind)
        return self._raster if kind is ArtifactKind.RASTER else self._vector


class RecordingSave:
    """Save action that keeps artifacts in memory."""

    def __init__(self):
        self.artifacts = []

    async def __call__(self, artifact) -> str:
        self.artifacts.append(artifact)
        return f"memory://{len(self.artifacts)}.{artifact.format.extension}"


@pytest.fixture
def config() -> StyleConfig:
    return StyleConfig(data="https://example.com").with_resolution(300)


@pytest.fixture
def encoder() -> QRCodeEncoder:
    return QRCodeEncoder()


@pytest.fixture
def recording_save() -> RecordingSave:
    return RecordingSave()


@pytest.fixture
def logo_path(tmp_path):
    from PIL import Image

    path = tmp_path / "logo.png"
    Image.new("RGB", (50, 50), (0, 0, 255)).save(path)
    return str(path)
