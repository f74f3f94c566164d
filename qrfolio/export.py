"""Export pipeline: sequential stages producing named artifacts, bundled into one zip."""

import base64
import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable
from urllib.parse import unquote_to_bytes

import httpx

from qrfolio.errors import PipelineError
from qrfolio.logging import audit, get_logger, trace
from qrfolio.validation import resolve

log = get_logger("export")

ARCHIVE_STAGE = "archive"
FETCH_TIMEOUT_S = 30


@dataclass(frozen=True)
class ExportArtifact:
    name: str
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ExportStage:
    """One step of an export.

    ``produce`` returns an artifact, or None to skip; it may be a coroutine
    function. ``percentage`` is reported when the stage starts.
    """
    name: str
    message: str
    percentage: int
    produce: Callable[[], object]


@dataclass(frozen=True)
class ExportResult:
    archive: bytes
    artifacts: tuple[ExportArtifact, ...] = field(default_factory=tuple)
    name: str = "qrfolio-export.zip"

    @property
    def names(self) -> list[str]:
        return [a.name for a in self.artifacts]

    def save(self, directory: str | Path) -> Path:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / self.name
        path.write_bytes(self.archive)
        audit("export.saved", logger=log, path=str(path), bytes=len(self.archive))
        return path


def build_zip(artifacts: Iterable[ExportArtifact]) -> bytes:
    """Archive capability: named buffers -> one deflated zip."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for artifact in artifacts:
            z.writestr(artifact.name, artifact.data)
    return buf.getvalue()


def decode_data_url(url: str) -> bytes:
    """Body of a ``data:`` URL (base64 or percent-encoded)."""
    header, sep, body = url[len("data:"):].partition(",")
    if not sep:
        raise ValueError("data URL has no body")
    if header.endswith(";base64"):
        return base64.b64decode(unquote_to_bytes(body), validate=True)
    return unquote_to_bytes(body)


async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url)
    response.raise_for_status()
    audit("overlay.fetched", logger=log, status=response.status_code, bytes=len(response.content))
    return response.content


async def fetch_overlay(source: bytes | str, client: httpx.AsyncClient | None = None) -> bytes:
    """Overlay image bytes from raw bytes, a ``data:`` URL or an http(s) URL.

    Pass a shared *client* to reuse its connection pool; otherwise a
    short-lived one is opened for the request.

    Raises:
        httpx.HTTPError: the request failed or returned an error status.
        ValueError: malformed ``data:`` URL.
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if source.startswith("data:"):
        return decode_data_url(source)
    if client is not None:
        return await _download(client, source)
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_S, follow_redirects=True) as owned:
        return await _download(owned, source)


class ExportPipeline:
    """Run export stages strictly one after another.

    A failing stage aborts the whole export with :class:`PipelineError`
    naming the stage; no archive is produced. Progress is reported as
    non-decreasing ``(percentage, message)`` pairs and reaches 100 only once
    the archive exists.
    """

    def __init__(
        self,
        stages: Iterable[ExportStage],
        archiver: Callable[[list[ExportArtifact]], object] = build_zip,
        on_progress: Callable[[int, str], None] | None = None,
        archive_name: str = "qrfolio-export.zip",
    ):
        self.stages = list(stages)
        self.archiver = archiver
        self.on_progress = on_progress
        self.archive_name = archive_name
        self._last_pct = 0

    def _progress(self, percentage: int, message: str) -> None:
        pct = max(self._last_pct, min(percentage, 100))
        self._last_pct = pct
        if self.on_progress is not None:
            self.on_progress(pct, message)

    @trace
    async def run(self) -> ExportResult:
        self._last_pct = 0
        self._progress(0, "Starting export...")
        collected: list[ExportArtifact] = []

        for stage in self.stages:
            # stage percentages stay below the final 100
            self._progress(min(stage.percentage, 99), stage.message)
            try:
                artifact = await resolve(stage.produce())
            except Exception as e:
                audit("export.failed", logger=log, stage=stage.name, error=str(e))
                raise PipelineError(stage.name, e) from e
            if artifact is None:
                audit("export.stage", logger=log, stage=stage.name, skipped=True)
                continue
            collected.append(artifact)
            audit("export.stage", logger=log, stage=stage.name, artifact=artifact.name, bytes=len(artifact.data))

        self._progress(90, "Compressing files...")
        try:
            archive = await resolve(self.archiver(collected))
        except Exception as e:
            audit("export.failed", logger=log, stage=ARCHIVE_STAGE, error=str(e))
            raise PipelineError(ARCHIVE_STAGE, e) from e

        self._progress(100, "Download starting...")
        audit("export.completed", logger=log, artifacts=len(collected), bytes=len(archive))
        return ExportResult(archive=archive, artifacts=tuple(collected), name=self.archive_name)


def standard_stages(
    renderer,
    overlay: bytes | str | None = None,
    size: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[ExportStage]:
    """PNG and SVG of the current symbol, plus the art overlay when one exists."""

    def png():
        return ExportArtifact("standard-qr.png", renderer.get_raster("png", size=size), "image/png")

    def svg():
        return ExportArtifact("standard-qr.svg", renderer.get_raster("svg"), "image/svg+xml")

    async def art():
        return ExportArtifact("ai-art-qr.png", await fetch_overlay(overlay, client), "image/png")

    stages = [
        ExportStage("standard-qr.png", "Adding standard-qr.png...", 10, png),
        ExportStage("standard-qr.svg", "Adding standard-qr.svg...", 30, svg),
    ]
    if overlay is not None:
        stages.append(ExportStage("ai-art-qr.png", "Adding ai-art-qr.png...", 60, art))
    return stages
