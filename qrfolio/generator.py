"""Rendering capability: payload + style -> PNG/SVG raster via qrcode and Pillow."""

import io
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

import numpy as np
import qrcode
import qrcode.constants
import qrcode.exceptions
import qrcode.util
from qrcode.image.svg import SvgPathImage
from PIL import Image, ImageDraw, UnidentifiedImageError

from qrfolio.config import DEFAULT_SETTINGS, Settings
from qrfolio.errors import CaptureError, LogoError
from qrfolio.logging import audit, get_logger, trace

log = get_logger("generator")


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}

RASTER_FORMATS = ("png", "svg")
LOGO_TYPES = ("image/png", "image/jpeg", "image/gif")

# qrcode 7 raises DataOverflowError for over-capacity data, qrcode 8 a ValueError
# ("Invalid version"); unencodable text surfaces as UnicodeEncodeError
SYMBOL_ERRORS = (qrcode.exceptions.DataOverflowError, ValueError)


def parse_hex_color(s: str) -> tuple[int, int, int]:
    """Parse ``'#1d4ed8'`` or ``'1d4ed8'`` to an RGB tuple."""
    s = s.lstrip("#")
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    if len(s) != 6:
        raise ValueError(f"not a hex colour: {s!r}")
    return tuple(int(s[i : i + 2], 16) for i in (0, 2, 4))


@dataclass(frozen=True)
class StyleConfig:
    """Immutable style handed to every render call.

    shape:        data module shape, ``square`` | ``rounded`` | ``dots``
    finder_style: ``standard`` | ``rounded`` | ``dots``
    logo:         raw image bytes composited in the centre, or None
    logo_size:    logo width as a fraction of the symbol (0.1 - 1.0)
    logo_margin:  white padding around the logo in px
    """
    shape: str = "rounded"
    data_color: tuple[int, int, int] = (29, 78, 216)
    bg_color: tuple[int, int, int] = (255, 255, 255)
    finder_color: tuple[int, int, int] | None = (76, 81, 191)
    finder_style: str = "rounded"
    logo: bytes | None = None
    logo_size: float = 0.4
    logo_margin: int = 5
    hide_background_dots: bool = True
    ecc: str = "H"
    border: int = 4

    def with_changes(self, **changes) -> "StyleConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class RenderSurface:
    """Mount target of the live preview; rasters for validation are read from it."""
    width: int
    height: int


# ---------------------------------------------------------------------------
# Logo upload
# ---------------------------------------------------------------------------

@trace
def load_logo(data: bytes, content_type: str, max_bytes: int = DEFAULT_SETTINGS.max_logo_bytes) -> bytes:
    """Validate an uploaded logo and return its bytes.

    Raises:
        LogoError: unsupported type, too large, or not a readable image.
    """
    if content_type not in LOGO_TYPES:
        raise LogoError("Invalid file type. Please upload a PNG, JPG, or GIF.")
    if len(data) > max_bytes:
        raise LogoError(f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB.")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError) as e:
        raise LogoError("Failed to read the file.") from e
    audit("logo.accepted", logger=log, content_type=content_type, size=len(data))
    return data


# ---------------------------------------------------------------------------
# WCAG contrast
# ---------------------------------------------------------------------------

def _linearize(channel: int) -> float:
    c = channel / 255.0
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def _luminance(rgb: tuple[int, ...]) -> float:
    r, g, b = [_linearize(ch) for ch in rgb[:3]]
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(fg: tuple[int, ...], bg: tuple[int, ...]) -> float:
    """WCAG contrast ratio between two RGB colours (1.0 - 21.0)."""
    l1, l2 = _luminance(fg), _luminance(bg)
    if l1 < l2:
        l1, l2 = l2, l1
    return (l1 + 0.05) / (l2 + 0.05)


# ---------------------------------------------------------------------------
# Module matrix and layout
# ---------------------------------------------------------------------------

def _build_qr(data: str, ecc: str, box_size: int = 1, border: int = 0) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ECC_NAMES[ecc.upper()].value,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def get_module_map(data: str, ecc: str = "H") -> dict:
    """Classify every module of the symbol for *data*.

    Returns a dict with ``version``, ``size``, ``modules`` (bool matrix) and
    sets of (row, col) for ``finder``, ``alignment`` and ``timing`` modules.
    """
    qr = _build_qr(data, ecc)
    size = qr.modules_count
    finder = set()
    for orig_r, orig_c in ((0, 0), (0, size - 7), (size - 7, 0)):
        for r in range(7):
            for c in range(7):
                finder.add((orig_r + r, orig_c + c))

    timing = {(6, i) for i in range(8, size - 8)} | {(i, 6) for i in range(8, size - 8)}

    alignment = set()
    centres = qrcode.util.pattern_position(qr.version)
    for ar in centres:
        for ac in centres:
            block = {(r, c) for r in range(ar - 2, ar + 3) for c in range(ac - 2, ac + 3)}
            if not block & finder:
                alignment |= block

    return {
        "version": qr.version,
        "size": size,
        "modules": qr.modules,
        "finder": finder,
        "alignment": alignment,
        "timing": timing,
    }


# ---------------------------------------------------------------------------
# Styled rendering
# ---------------------------------------------------------------------------

def _draw_module(draw: ImageDraw.ImageDraw, px: int, py: int, box: int, color, shape: str) -> None:
    if box < 4:
        shape = "square"
    margin = max(1, box // 8) if shape != "square" else 0
    if shape == "dots":
        cx, cy = px + box // 2, py + box // 2
        r = max(1, (box - margin * 2) // 2)
        draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=color)
    elif shape == "rounded":
        draw.rounded_rectangle(
            [px + margin, py + margin, px + box - margin - 1, py + box - margin - 1],
            radius=max(1, box // 4), fill=color,
        )
    else:
        draw.rectangle([px, py, px + box - 1, py + box - 1], fill=color)


def _block(draw, xy, radius: int, fill) -> None:
    if radius > 0:
        draw.rounded_rectangle(xy, radius=radius, fill=fill)
    else:
        draw.rectangle(xy, fill=fill)


def _draw_finders(draw, size: int, box: int, border: int, fg, bg, style: str) -> None:
    """Draw the three 7x7 finder patterns as cohesive blocks."""
    for orig_r, orig_c in ((0, 0), (0, size - 7), (size - 7, 0)):
        ox, oy = (orig_c + border) * box, (orig_r + border) * box
        fpx = 7 * box
        radius = 0 if style == "standard" else (box if style == "rounded" else box * 2)

        _block(draw, [ox, oy, ox + fpx - 1, oy + fpx - 1], radius, fg)
        m1 = box
        _block(draw, [ox + m1, oy + m1, ox + fpx - 1 - m1, oy + fpx - 1 - m1], radius // 2, bg)
        m2 = 2 * box
        if style == "dots":
            cx, cy = ox + fpx // 2, oy + fpx // 2
            cr = int(box * 1.4)
            draw.ellipse([cx - cr, cy - cr, cx + cr, cy + cr], fill=fg)
        else:
            _block(draw, [ox + m2, oy + m2, ox + fpx - 1 - m2, oy + fpx - 1 - m2], radius // 3, fg)


def _composite_logo(img: Image.Image, logo_bytes: bytes, style: StyleConfig) -> Image.Image:
    try:
        logo = Image.open(io.BytesIO(logo_bytes)).convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise CaptureError(f"logo could not be loaded: {e}") from e

    w, h = img.size
    target = max(1, int(w * max(0.1, min(1.0, style.logo_size))))
    lw, lh = logo.size
    scale = target / max(lw, lh)
    new_w, new_h = max(1, int(lw * scale)), max(1, int(lh * scale))
    logo = logo.resize((new_w, new_h), Image.LANCZOS)
    x_off, y_off = (w - new_w) // 2, (h - new_h) // 2

    result = img.convert("RGBA")
    if style.hide_background_dots:
        m = style.logo_margin
        ImageDraw.Draw(result).rectangle(
            [x_off - m, y_off - m, x_off + new_w + m - 1, y_off + new_h + m - 1],
            fill=tuple(style.bg_color) + (255,),
        )
    result.paste(logo, (x_off, y_off), logo)
    return result.convert("RGB")


@trace
def render_styled_qr(data: str, style: StyleConfig, size: int) -> Image.Image:
    """Render *data* with *style* into a ``size`` x ``size`` RGB image."""
    module_map = get_module_map(data, style.ecc)
    n = module_map["size"]
    modules = module_map["modules"]
    border = style.border
    box = max(1, size // (n + 2 * border))

    total_px = (n + 2 * border) * box
    img = Image.new("RGB", (total_px, total_px), style.bg_color)
    draw = ImageDraw.Draw(img)

    fc = style.finder_color or style.data_color
    _draw_finders(draw, n, box, border, fc, style.bg_color, style.finder_style)

    fixed = module_map["finder"]
    for r in range(n):
        for c in range(n):
            if (r, c) in fixed or not modules[r][c]:
                continue
            shape = style.shape
            if (r, c) in module_map["timing"] or (r, c) in module_map["alignment"]:
                shape = "square" if style.shape == "square" else "dots"
            _draw_module(draw, (c + border) * box, (r + border) * box, box, style.data_color, shape)

    if style.logo:
        img = _composite_logo(img, style.logo, style)
    if img.size != (size, size):
        img = img.resize((size, size), Image.NEAREST)
    return img


def render_svg(data: str, style: StyleConfig) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ECC_NAMES[style.ecc.upper()].value,
        border=style.border,
        image_factory=SvgPathImage,
    )
    qr.add_data(data)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    return buf.getvalue()


def image_to_pixels(image: Image.Image) -> tuple[bytes, int, int]:
    """RGBA pixel buffer of *image* plus its dimensions."""
    arr = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    return arr.tobytes(), arr.shape[1], arr.shape[0]


# ---------------------------------------------------------------------------
# Retained renderer
# ---------------------------------------------------------------------------

class QrRenderer:
    """Single retained rendering instance.

    Only the component that owns the encoder output calls :meth:`update`;
    everything else reads rasters through :meth:`get_raster`.
    """

    def __init__(self, settings: Settings = DEFAULT_SETTINGS):
        self.settings = settings
        self._surface: RenderSurface | None = None
        self._payload = ""
        self._style = StyleConfig(ecc=settings.ecc)

    @property
    def payload(self) -> str:
        return self._payload

    @property
    def style(self) -> StyleConfig:
        return self._style

    @property
    def surface(self) -> RenderSurface | None:
        return self._surface

    def attach(self, surface: RenderSurface) -> None:
        self._surface = surface
        audit("render.attached", logger=log, width=surface.width, height=surface.height)

    def update(self, payload: str, style: StyleConfig) -> None:
        self._payload = payload
        self._style = style
        audit("render.updated", logger=log, length=len(payload), shape=style.shape, logo=style.logo is not None)

    def _capture_size(self, size: int | None) -> int:
        if size is not None:
            return size
        if self._surface is None:
            raise CaptureError("rendering surface is not attached")
        if self._surface.width <= 0 or self._surface.height <= 0:
            raise CaptureError("rendering surface has zero dimensions")
        return min(self._surface.width, self._surface.height)

    def render(self, size: int | None = None) -> Image.Image:
        """Render the current payload as an image.

        Raises:
            CaptureError: nothing to render, no usable surface, or the payload
                does not fit in a symbol.
        """
        px = self._capture_size(size)
        if not self._payload:
            raise CaptureError("no payload to render")
        try:
            return render_styled_qr(self._payload, self._style, px)
        except SYMBOL_ERRORS as e:
            audit("render.capture_failed", logger=log, reason=str(e), length=len(self._payload))
            raise CaptureError(f"payload cannot be encoded in a QR symbol: {e}") from e

    @trace
    def get_raster(self, fmt: str = "png", size: int | None = None) -> bytes:
        """Raster bytes of the current symbol in ``png`` or ``svg``."""
        fmt = fmt.lower()
        if fmt not in RASTER_FORMATS:
            raise ValueError(f"Unsupported raster format: {fmt}")
        if fmt == "svg":
            if not self._payload:
                raise CaptureError("no payload to render")
            try:
                return render_svg(self._payload, self._style)
            except SYMBOL_ERRORS as e:
                audit("render.capture_failed", logger=log, reason=str(e), length=len(self._payload))
                raise CaptureError(f"payload cannot be encoded in a QR symbol: {e}") from e
        buf = io.BytesIO()
        self.render(size).save(buf, format="PNG")
        return buf.getvalue()

    @trace
    def trigger_download(self, fmt: str = "png", name: str = "qrfolio") -> Path:
        """Write the current symbol into the download directory."""
        data = self.get_raster(fmt, size=self.settings.export_size if fmt == "png" else None)
        out_dir = Path(self.settings.download_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{name}.{fmt}"
        path.write_bytes(data)
        audit("render.downloaded", logger=log, path=str(path), bytes=len(data))
        return path
