import io

import pytest
from PIL import Image

from conftest import blank_png
from qrfolio.config import Settings
from qrfolio.errors import CaptureError, LogoError
from qrfolio.generator import (
    QrRenderer,
    RenderSurface,
    StyleConfig,
    contrast_ratio,
    get_module_map,
    image_to_pixels,
    load_logo,
    parse_hex_color,
    render_styled_qr,
)

PAYLOAD = "https://example.com/generator"


@pytest.fixture
def renderer():
    r = QrRenderer(Settings())
    r.update(PAYLOAD, StyleConfig())
    return r


# ---------------------------------------------------------------------------
# Capture errors
# ---------------------------------------------------------------------------

def test_no_surface_is_capture_error(renderer):
    with pytest.raises(CaptureError):
        renderer.get_raster("png")


@pytest.mark.parametrize("surface", [RenderSurface(0, 100), RenderSurface(100, 0)])
def test_zero_sized_surface_is_capture_error(renderer, surface):
    renderer.attach(surface)
    with pytest.raises(CaptureError):
        renderer.get_raster("png")


@pytest.mark.parametrize("fmt", ["png", "svg"])
def test_empty_payload_is_capture_error(fmt):
    r = QrRenderer()
    r.attach(RenderSurface(100, 100))
    with pytest.raises(CaptureError):
        r.get_raster(fmt)


@pytest.mark.parametrize("fmt", ["png", "svg"])
def test_oversized_payload_is_capture_error(fmt):
    r = QrRenderer()
    r.attach(RenderSurface(100, 100))
    r.update("x" * 5000, StyleConfig(ecc="H"))
    with pytest.raises(CaptureError):
        r.get_raster(fmt)


def test_unknown_format_is_rejected(renderer):
    with pytest.raises(ValueError):
        renderer.get_raster("gif", size=64)


# ---------------------------------------------------------------------------
# Rasters
# ---------------------------------------------------------------------------

def test_png_uses_surface_size(renderer):
    renderer.attach(RenderSurface(200, 160))
    with Image.open(io.BytesIO(renderer.get_raster("png"))) as img:
        assert img.format == "PNG"
        assert img.size == (160, 160)


def test_explicit_size_needs_no_surface(renderer):
    with Image.open(io.BytesIO(renderer.get_raster("png", size=300))) as img:
        assert img.size == (300, 300)


def test_svg_is_vector_markup(renderer):
    data = renderer.get_raster("svg")
    assert b"svg" in data[:300]
    assert b"path" in data


@pytest.mark.parametrize("shape, finder", [("square", "standard"), ("rounded", "rounded"), ("dots", "dots")])
def test_every_shape_renders(shape, finder):
    img = render_styled_qr(PAYLOAD, StyleConfig(shape=shape, finder_style=finder), 256)
    assert img.size == (256, 256)
    assert len(set(img.getdata())) >= 2


def test_logo_is_composited_without_resizing_symbol():
    style = StyleConfig(logo=blank_png(32), logo_size=0.3)
    img = render_styled_qr(PAYLOAD, style, 240)
    assert img.size == (240, 240)
    assert img.getpixel((120, 120)) == (255, 255, 255)


def test_image_to_pixels_is_rgba():
    img = Image.new("RGB", (5, 3), (10, 20, 30))
    pixels, width, height = image_to_pixels(img)
    assert (width, height) == (5, 3)
    assert len(pixels) == 5 * 3 * 4
    assert pixels[:4] == bytes([10, 20, 30, 255])


def test_module_map_classifies_function_patterns():
    module_map = get_module_map("hi", "L")
    assert module_map["version"] == 1
    assert module_map["size"] == 21
    assert len(module_map["finder"]) == 3 * 49
    assert module_map["alignment"] == set()
    assert (6, 10) in module_map["timing"]


def test_trigger_download_writes_file(tmp_path):
    r = QrRenderer(Settings(download_dir=tmp_path, export_size=128))
    r.update(PAYLOAD, StyleConfig())
    path = r.trigger_download("png", name="code")
    assert path == tmp_path / "code.png"
    with Image.open(path) as img:
        assert img.size == (128, 128)


# ---------------------------------------------------------------------------
# Logo upload, colours
# ---------------------------------------------------------------------------

def test_load_logo_accepts_png():
    data = blank_png()
    assert load_logo(data, "image/png") == data


def test_load_logo_rejects_type():
    with pytest.raises(LogoError, match="Invalid file type"):
        load_logo(b"<svg/>", "image/svg+xml")


def test_load_logo_rejects_size():
    with pytest.raises(LogoError, match="too large"):
        load_logo(blank_png(), "image/png", max_bytes=10)


def test_load_logo_rejects_garbage():
    with pytest.raises(LogoError):
        load_logo(b"not an image", "image/png")


def test_contrast_ratio():
    assert contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0)
    assert contrast_ratio((255, 255, 255), (0, 0, 0)) == pytest.approx(21.0)
    assert contrast_ratio((29, 78, 216), (29, 78, 216)) == pytest.approx(1.0)


@pytest.mark.parametrize("raw, rgb", [("#1d4ed8", (29, 78, 216)), ("fff", (255, 255, 255))])
def test_parse_hex_color(raw, rgb):
    assert parse_hex_color(raw) == rgb


def test_parse_hex_color_rejects_bad_length():
    with pytest.raises(ValueError):
        parse_hex_color("#12345")
