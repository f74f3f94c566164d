"""Generator session: owns form state, the encoder output and the single renderer."""

from collections.abc import Mapping, Sequence

import httpx

from qrfolio import payload as payload_encoder
from qrfolio.config import DEFAULT_SETTINGS, Settings
from qrfolio.errors import EncodingError, PipelineError
from qrfolio.export import ExportPipeline, ExportResult, fetch_overlay, standard_stages
from qrfolio.generator import QrRenderer, RenderSurface, StyleConfig
from qrfolio.kinds import ContentKind, DEFAULT_URL, default_values
from qrfolio.logging import audit, get_logger
from qrfolio.overlay import ArtOverlayValidator
from qrfolio.validation import Decoder, RenderValidationLoop, ValidationStatus

log = get_logger("session")


class GeneratorSession:
    """Form state -> payload -> renderer -> validation, plus overlay and export.

    The payload is recomputed synchronously on every change. Validation
    checks are scheduled on the running event loop, so mutating methods
    must be called from inside one.
    """

    def __init__(
        self,
        settings: Settings = DEFAULT_SETTINGS,
        renderer: QrRenderer | None = None,
        decoder: Decoder | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.http_client = http_client
        self.renderer = renderer or QrRenderer(settings)
        self.validation = RenderValidationLoop(self.renderer, decoder, settings.debounce_ms)
        self.overlay_validator = ArtOverlayValidator(decoder)
        self.kind = ContentKind.URL
        self.values: dict = {"url": DEFAULT_URL}
        self.style = StyleConfig(ecc=settings.ecc)
        self.error: str | None = None
        self.overlay: bytes | str | None = None
        self.payload = payload_encoder.encode(self.kind, self.values, settings.base_url, settings.folio_param)
        self.renderer.update(self.payload, self.style)

    # ------------------------------------------------------------------
    # Form state
    # ------------------------------------------------------------------

    def attach(self, surface: RenderSurface | None = None) -> None:
        size = self.settings.raster_size
        self.renderer.attach(surface or RenderSurface(size, size))
        self._refresh(style_changed=True)

    def set_kind(self, kind: ContentKind) -> str:
        self.kind = kind
        self.values = default_values(kind)
        return self._refresh()

    def set_field(self, field_id: str, value: str) -> str:
        self.values = {**self.values, field_id: value}
        return self._refresh()

    def set_values(self, values: Mapping) -> str:
        self.values = dict(values)
        return self._refresh()

    def set_links(self, links: Sequence) -> str:
        self.values = {**self.values, "links": list(links)}
        return self._refresh()

    def set_style(self, style: StyleConfig) -> str:
        self.style = style
        return self._refresh(style_changed=True)

    def _refresh(self, style_changed: bool = False) -> str:
        try:
            new_payload = payload_encoder.encode(
                self.kind, self.values, self.settings.base_url, self.settings.folio_param,
            )
            self.error = None
        except EncodingError as e:
            self.error = str(e)
            new_payload = ""

        changed = new_payload != self.payload
        if changed:
            self.overlay = None
            self.overlay_validator.reset()
        self.payload = new_payload

        if changed or style_changed:
            self.renderer.update(self.payload, self.style)
            self.validation.schedule(self.payload)
        return self.payload

    @property
    def status(self) -> ValidationStatus:
        return self.validation.status

    # ------------------------------------------------------------------
    # Art overlay
    # ------------------------------------------------------------------

    def attach_overlay(self, image: bytes | str) -> None:
        """Store the externally generated art image (bytes or URL)."""
        self.overlay = image
        self.overlay_validator.reset()
        audit("overlay.attached", logger=log, kind=type(image).__name__)

    async def validate_overlay(self) -> ValidationStatus:
        if self.overlay is None:
            return self.overlay_validator.status
        try:
            image = await fetch_overlay(self.overlay, self.http_client)
        except (httpx.HTTPError, ValueError) as e:
            self.error = "Failed to load AI image for validation."
            audit("overlay.load_failed", logger=log, error=str(e))
            image = None
        return await self.overlay_validator.validate_async(image, self.payload)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(self, on_progress=None) -> ExportResult:
        if not self.payload:
            raise PipelineError("setup", ValueError("Please generate a QR code first."))
        pipeline = ExportPipeline(
            standard_stages(
                self.renderer, self.overlay, size=self.settings.export_size, client=self.http_client,
            ),
            on_progress=on_progress,
            archive_name=self.settings.export_name,
        )
        return await pipeline.run()
