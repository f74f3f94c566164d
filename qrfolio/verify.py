"""Decoding capability: pixels -> text via ZBar, with OpenCV as fallback."""

import io
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError
from pyzbar.pyzbar import decode as pyzbar_decode

from qrfolio.logging import audit, get_logger, trace

log = get_logger("verify")


@dataclass
class ScanResult:
    """Result of a single scan attempt."""
    success: bool
    decoded_data: str | None = None
    decode_time_ms: float = 0.0
    decoder: str = ""
    error: str | None = None


@dataclass(frozen=True)
class DecodedText:
    text: str
    decoder: str


def _to_image(pixel_buffer: bytes, width: int, height: int) -> Image.Image:
    """Wrap a raw RGBA, RGB or 8-bit grayscale buffer as a PIL image."""
    area = width * height
    if area <= 0:
        raise ValueError("zero-sized pixel buffer")
    channels, rem = divmod(len(pixel_buffer), area)
    modes = {1: "L", 3: "RGB", 4: "RGBA"}
    if rem or channels not in modes:
        raise ValueError(f"buffer of {len(pixel_buffer)} bytes does not match {width}x{height}")
    return Image.frombytes(modes[channels], (width, height), bytes(pixel_buffer))


def _grayscale(image: Image.Image) -> np.ndarray:
    # flatten transparency onto white first so transparent pixels read as light
    if image.mode in ("RGBA", "LA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        canvas = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        image = Image.alpha_composite(canvas, rgba)
    return np.asarray(image.convert("L"), dtype=np.uint8)


def _scan(decoder: str, fn, image: Image.Image) -> ScanResult:
    start = time.perf_counter()
    try:
        data = fn(image)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        audit("scan.error", logger=log, decoder=decoder, error=str(e), time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error=str(e))

    elapsed = (time.perf_counter() - start) * 1000
    if data:
        audit("scan.verified", logger=log, decoder=decoder, success=True, time_ms=round(elapsed, 1), data=data[:80])
        return ScanResult(success=True, decoded_data=data, decode_time_ms=elapsed, decoder=decoder)
    audit("scan.verified", logger=log, decoder=decoder, success=False, time_ms=round(elapsed, 1), error="No QR code detected")
    return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error="No QR code detected")


def _zbar(image: Image.Image) -> str | None:
    gray = _grayscale(image)
    h, w = gray.shape
    results = pyzbar_decode((gray.tobytes(), w, h))
    if not results:
        return None
    return results[0].data.decode("utf-8", errors="replace")


def _opencv(image: Image.Image) -> str | None:
    gray = _grayscale(image)
    detector = cv2.QRCodeDetector()
    data, _points, _ = detector.detectAndDecode(gray)
    return data or None


@trace
def scan_pyzbar(image: Image.Image) -> ScanResult:
    """Scan with pyzbar (wraps ZBar)."""
    return _scan("pyzbar/zbar", _zbar, image)


@trace
def scan_opencv(image: Image.Image) -> ScanResult:
    """Scan with OpenCV's built-in QR detector."""
    return _scan("opencv", _opencv, image)


SCANNERS = (scan_pyzbar, scan_opencv)


@trace
def verify(image: Image.Image, expected_data: str | None = None) -> list[ScanResult]:
    """Run every decoder on *image*.

    A decoder that reads something other than *expected_data* is marked as
    failed with a mismatch error.
    """
    results = []
    for scanner in SCANNERS:
        result = scanner(image)
        if result.success and expected_data is not None and result.decoded_data != expected_data:
            result.success = False
            result.error = f"Data mismatch: got '{result.decoded_data}', expected '{expected_data}'"
        results.append(result)
    return results


def first_decoded(image: Image.Image) -> DecodedText | None:
    for scanner in SCANNERS:
        result = scanner(image)
        if result.success:
            return DecodedText(result.decoded_data, result.decoder)
    return None


@trace
def decode_pixels(pixel_buffer: bytes, width: int, height: int) -> DecodedText | None:
    """Decoding capability: read the first QR symbol in a pixel buffer.

    Pure and deterministic for identical input. Returns None when nothing
    decodes or the buffer does not match the stated dimensions.
    """
    try:
        image = _to_image(pixel_buffer, width, height)
    except ValueError as e:
        audit("scan.error", logger=log, decoder="buffer", error=str(e))
        return None
    return first_decoded(image)


@trace
def scan_image(image_bytes: bytes) -> str | None:
    """Decode an uploaded image file; None when unreadable or no code found."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            decoded = first_decoded(img)
    except (UnidentifiedImageError, OSError) as e:
        audit("scan.error", logger=log, decoder="loader", error=str(e))
        return None
    return decoded.text if decoded else None


def is_url(text: str) -> bool:
    """True for absolute http(s) URLs that are safe to offer as a link."""
    parts = urlsplit(text.strip())
    return parts.scheme in ("http", "https") and bool(parts.netloc)
