"""Render validation loop: re-render, decode and compare on every payload/style change.

Each check is tagged with the generation counter value current when it was
scheduled. A check only publishes if that generation is still current, so
results computed for an older payload or style are dropped.
"""

import asyncio
import inspect
import io
from enum import Enum
from typing import Callable

from PIL import Image, UnidentifiedImageError

from qrfolio.config import DEFAULT_SETTINGS
from qrfolio.generator import image_to_pixels
from qrfolio.logging import audit, get_logger, trace

log = get_logger("validation")


class ValidationStatus(str, Enum):
    IDLE = "idle"
    SUCCESS = "success"
    FAILED = "failed"


Decoder = Callable[[bytes, int, int], object]


def default_decoder() -> Decoder:
    from qrfolio.verify import decode_pixels
    return decode_pixels


async def resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


def decoded_text(result) -> str | None:
    """Text out of a decoder result (``DecodedText``, plain ``str`` or None)."""
    if result is None:
        return None
    if isinstance(result, str):
        return result
    return getattr(result, "text", None)


async def decode_and_compare(raster: bytes, expected: str, decoder: Decoder) -> ValidationStatus:
    """Decode a PNG/JPEG raster and compare it byte-exactly with *expected*."""
    try:
        with Image.open(io.BytesIO(raster)) as img:
            pixels, width, height = image_to_pixels(img)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        audit("validation.load_failed", logger=log, error=str(e))
        return ValidationStatus.FAILED
    try:
        text = decoded_text(await resolve(decoder(pixels, width, height)))
    except Exception as e:
        audit("validation.decoder_error", logger=log, error=str(e))
        return ValidationStatus.FAILED
    return ValidationStatus.SUCCESS if text == expected else ValidationStatus.FAILED


class RenderValidationLoop:
    """Keeps a ValidationStatus for the live render in sync with its payload.

    Args:
        renderer: Object exposing ``get_raster(fmt)`` (sync or async).
        decoder: ``(pixels, width, height) -> DecodedText | str | None``;
            defaults to :func:`qrfolio.verify.decode_pixels`.
        debounce_ms: Delay coalescing bursts of edits.
        on_status: Called with every status the loop sets.
    """

    def __init__(
        self,
        renderer,
        decoder: Decoder | None = None,
        debounce_ms: int = DEFAULT_SETTINGS.debounce_ms,
        on_status: Callable[[ValidationStatus], None] | None = None,
    ):
        self.renderer = renderer
        self._decoder = decoder
        self.debounce = debounce_ms / 1000.0
        self.on_status = on_status
        self._status = ValidationStatus.IDLE
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def status(self) -> ValidationStatus:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def decoder(self) -> Decoder:
        if self._decoder is None:
            self._decoder = default_decoder()
        return self._decoder

    def _set(self, status: ValidationStatus) -> None:
        self._status = status
        if self.on_status is not None:
            self.on_status(status)

    def schedule(self, payload: str) -> asyncio.Task | None:
        """Start a check for *payload*, superseding any check in flight.

        Must be called from a running event loop. Returns None when the
        payload is empty (nothing to validate; status stays IDLE).
        """
        self._generation += 1
        self._set(ValidationStatus.IDLE)
        if not payload:
            self._task = None
            return None
        self._task = asyncio.get_running_loop().create_task(self._check(self._generation, payload))
        return self._task

    async def wait(self) -> ValidationStatus:
        """Wait until the most recently scheduled check has finished."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._status

    async def _check(self, generation: int, payload: str) -> None:
        if self.debounce > 0:
            await asyncio.sleep(self.debounce)
        else:
            await asyncio.sleep(0)
        if generation != self._generation:
            audit("validation.stale_dropped", logger=log, generation=generation, current=self._generation, phase="debounce")
            return

        status = await self._run(payload)

        if generation != self._generation:
            audit("validation.stale_dropped", logger=log, generation=generation, current=self._generation, status=status.value)
            return
        self._set(status)
        audit("validation.published", logger=log, generation=generation, status=status.value, length=len(payload))

    @trace
    async def _run(self, payload: str) -> ValidationStatus:
        try:
            raster = await resolve(self.renderer.get_raster("png"))
        except Exception as e:
            # any acquisition failure counts as an unscannable render
            audit("render.capture_failed", logger=log, reason=str(e), error_type=type(e).__name__)
            return ValidationStatus.FAILED
        return await decode_and_compare(raster, payload, self.decoder)
