"""
Render validation loop.

  matching decode           -> SUCCESS
  different decode / none   -> FAILED
  capture or raster failure -> FAILED
  empty payload             -> IDLE, no check
  newer payload scheduled   -> older result dropped (debounce or in-flight)
"""

import asyncio

import pytest

from conftest import StubRenderer
from qrfolio.generator import QrRenderer, RenderSurface, StyleConfig
from qrfolio.validation import RenderValidationLoop, ValidationStatus

pytestmark = pytest.mark.anyio


async def test_matching_decode_converges_to_success(stub_renderer):
    loop = RenderValidationLoop(stub_renderer, lambda px, w, h: "https://a.example", debounce_ms=0)
    loop.schedule("https://a.example")
    assert await loop.wait() == ValidationStatus.SUCCESS


async def test_different_decode_converges_to_failed(stub_renderer):
    loop = RenderValidationLoop(stub_renderer, lambda px, w, h: "something else", debounce_ms=0)
    loop.schedule("https://a.example")
    assert await loop.wait() == ValidationStatus.FAILED


async def test_no_decode_is_failed(stub_renderer):
    loop = RenderValidationLoop(stub_renderer, lambda px, w, h: None, debounce_ms=0)
    loop.schedule("payload")
    assert await loop.wait() == ValidationStatus.FAILED


async def test_decoder_receives_rgba_buffer(stub_renderer):
    seen = []

    def decoder(pixels, width, height):
        seen.append((len(pixels), width, height))
        return "p"

    loop = RenderValidationLoop(stub_renderer, decoder, debounce_ms=0)
    loop.schedule("p")
    await loop.wait()
    assert seen == [(8 * 8 * 4, 8, 8)]


async def test_capture_failure_is_failed():
    loop = RenderValidationLoop(StubRenderer(fail=True), lambda px, w, h: "p", debounce_ms=0)
    loop.schedule("p")
    assert await loop.wait() == ValidationStatus.FAILED


async def test_unreadable_raster_is_failed():
    loop = RenderValidationLoop(StubRenderer(raster=b"not an image"), lambda px, w, h: "p", debounce_ms=0)
    loop.schedule("p")
    assert await loop.wait() == ValidationStatus.FAILED


async def test_decoder_exception_is_failed(stub_renderer):
    def broken(pixels, width, height):
        raise RuntimeError("boom")

    loop = RenderValidationLoop(stub_renderer, broken, debounce_ms=0)
    loop.schedule("p")
    assert await loop.wait() == ValidationStatus.FAILED


async def test_empty_payload_is_idle_without_check():
    renderer = StubRenderer(fail=True)
    loop = RenderValidationLoop(renderer, lambda px, w, h: "", debounce_ms=0)
    assert loop.schedule("") is None
    assert await loop.wait() == ValidationStatus.IDLE
    assert renderer.calls == []


async def test_change_resets_stale_result(stub_renderer):
    loop = RenderValidationLoop(stub_renderer, lambda px, w, h: "a", debounce_ms=0)
    loop.schedule("a")
    assert await loop.wait() == ValidationStatus.SUCCESS

    loop.schedule("b")
    assert loop.status == ValidationStatus.IDLE
    assert await loop.wait() == ValidationStatus.FAILED


async def test_rapid_changes_publish_only_final_outcome(stub_renderer):
    seen = []
    loop = RenderValidationLoop(
        stub_renderer, lambda px, w, h: "third", debounce_ms=20, on_status=seen.append,
    )
    loop.schedule("first")
    loop.schedule("second")
    loop.schedule("third")

    assert await loop.wait() == ValidationStatus.SUCCESS
    assert ValidationStatus.FAILED not in seen
    assert seen[-1] == ValidationStatus.SUCCESS
    # one decode: the two earlier checks were dropped after debounce
    assert len(stub_renderer.calls) == 1


async def test_in_flight_result_for_old_payload_is_dropped(stub_renderer):
    release = asyncio.Event()
    started = asyncio.Event()
    calls = []

    async def decoder(pixels, width, height):
        calls.append(len(calls))
        if len(calls) == 1:
            started.set()
            await release.wait()
            return "stale"
        return "new"

    seen = []
    loop = RenderValidationLoop(stub_renderer, decoder, debounce_ms=0, on_status=seen.append)
    first = loop.schedule("old")
    await started.wait()

    second = loop.schedule("new")
    await second
    assert loop.status == ValidationStatus.SUCCESS

    release.set()
    await first
    assert loop.status == ValidationStatus.SUCCESS
    assert seen == [ValidationStatus.IDLE, ValidationStatus.IDLE, ValidationStatus.SUCCESS]
    assert loop.generation == 2


class TornDownRenderer:
    def get_raster(self, fmt="png", size=None):
        raise RuntimeError("surface torn down")


async def test_unexpected_raster_failure_is_failed():
    loop = RenderValidationLoop(TornDownRenderer(), lambda px, w, h: "p", debounce_ms=0)
    task = loop.schedule("p")
    assert await loop.wait() == ValidationStatus.FAILED
    assert task.exception() is None


@pytest.mark.parametrize("payload", ["x" * 5000, "lone \ud800 surrogate"])
async def test_unrenderable_payload_is_failed(payload):
    renderer = QrRenderer()
    renderer.attach(RenderSurface(96, 96))
    renderer.update(payload, StyleConfig(ecc="H"))
    loop = RenderValidationLoop(renderer, lambda px, w, h: payload, debounce_ms=0)
    loop.schedule(payload)
    assert await loop.wait() == ValidationStatus.FAILED
