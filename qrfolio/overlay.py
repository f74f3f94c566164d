"""Art overlay validation: manual decode-and-compare check on an externally stylized image."""

import asyncio
import random

from qrfolio.logging import audit, get_logger, trace
from qrfolio.validation import Decoder, ValidationStatus, default_decoder, decode_and_compare

log = get_logger("overlay")

ART_PROMPTS = (
    "A majestic lion with a flowing, vibrant mane",
    "A futuristic cyberpunk city skyline at night with neon lights",
    "A serene Japanese zen garden with a koi pond and cherry blossoms",
    "An intricate stained glass window from a medieval cathedral",
    "A swirling, colorful galaxy of stars, nebulae, and planets",
    "Complex steampunk machinery with brass gears, cogs, and pipes",
    "A low-poly isometric island floating in the sky",
    "Vintage floral patterns on aged, textured paper",
    "An enchanted forest with glowing mushrooms and ancient trees",
    "Art Deco geometric patterns with gold and black",
    "An underwater scene with a sunken pirate ship and marine life",
    "A detailed illustration of a mythical dragon breathing fire",
)


def random_prompt(rng: random.Random | None = None) -> str:
    """Pick an inspiration prompt for the art step."""
    return (rng or random).choice(ART_PROMPTS)


class ArtOverlayValidator:
    """Holds the overlay's own ValidationStatus, independent of the live render."""

    def __init__(self, decoder: Decoder | None = None):
        self._decoder = decoder
        self.status = ValidationStatus.IDLE

    @property
    def decoder(self) -> Decoder:
        if self._decoder is None:
            self._decoder = default_decoder()
        return self._decoder

    def reset(self) -> None:
        self.status = ValidationStatus.IDLE

    @trace
    async def validate_async(self, image_bytes: bytes | None, expected_payload: str) -> ValidationStatus:
        """Decode *image_bytes* and compare with *expected_payload*.

        Load failures and an empty expected payload yield FAILED.
        """
        if not image_bytes or not expected_payload:
            status = ValidationStatus.FAILED
        else:
            status = await decode_and_compare(image_bytes, expected_payload, self.decoder)
        self.status = status
        audit("overlay.validated", logger=log, status=status.value, bytes=len(image_bytes or b""))
        return status

    def validate(self, image_bytes: bytes | None, expected_payload: str) -> ValidationStatus:
        """Blocking variant of :meth:`validate_async` for callers outside an event loop."""
        return asyncio.run(self.validate_async(image_bytes, expected_payload))
