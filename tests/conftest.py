import io

import pytest
from PIL import Image

from qrfolio.errors import CaptureError


@pytest.fixture
def anyio_backend():
    return "asyncio"


def blank_png(size: int = 8) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (size, size), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


class StubRenderer:
    """Stands in for QrRenderer: hands out a fixed raster or fails capture."""

    def __init__(self, raster: bytes | None = None, fail: bool = False):
        self.raster = raster if raster is not None else blank_png()
        self.fail = fail
        self.calls = []

    def get_raster(self, fmt="png", size=None):
        self.calls.append((fmt, size))
        if self.fail:
            raise CaptureError("surface not mounted")
        return self.raster


@pytest.fixture
def stub_renderer():
    return StubRenderer()
