"""Shared fixtures: a recording fake vMix client, JPEG factories and a fake vMix HTTP server."""

import asyncio
import io
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from PIL import Image

from vmix_mcp.backends.http import VmixHttpClient

STATE_XML = """<vmix>
<version>27.0.0.49</version>
<edition>4K</edition>
<preset>C:\\Users\\me\\Documents\\show.vmix</preset>
<inputs>
<input key="0f9c-aaaa" number="1" type="Colour" title="Black" shortTitle="Black" state="Paused" position="0" duration="0" loop="False">Black</input>
<input key="0f9c-bbbb" number="2" type="Capture" title="Camera 1" state="Running" position="120" duration="0" loop="True">Camera 1<overlay index="0" key="0f9c-cccc">Lower third<position panX="0.5" zoom="0.25"/></overlay></input>
</inputs>
</vmix>"""


def make_jpeg(width: int, height: int, color=(200, 40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG")
    return buffer.getvalue()


class RecordingLayerClient:
    """Fake vMix client that records every layer setter call.

    `fail` maps (method, slot) to the exception that call raises; `delay`
    makes every call yield to the loop first.
    """

    def __init__(self, fail: dict[tuple[str, int], Exception] | None = None, delay: float = 0.0):
        self.fail = fail or {}
        self.delay = delay
        self.calls: list[tuple] = []
        self.applied: list[tuple] = []

    async def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        await asyncio.sleep(self.delay)
        error = self.fail.get((method, args[1]))
        if error is not None:
            raise error
        self.applied.append((method, *args))

    async def set_layer_source(self, input, slot, source):
        await self._record("set_layer_source", input, slot, source)

    async def set_layer_pan_x(self, input, slot, value):
        await self._record("set_layer_pan_x", input, slot, value)

    async def set_layer_pan_y(self, input, slot, value):
        await self._record("set_layer_pan_y", input, slot, value)

    async def set_layer_zoom(self, input, slot, value):
        await self._record("set_layer_zoom", input, slot, value)

    async def set_layer_crop(self, input, slot, x1, y1, x2, y2):
        await self._record("set_layer_crop", input, slot, x1, y1, x2, y2)


class FakeSleep:
    """Records requested delays instead of sleeping; runs `on_call(n)` on the nth call."""

    def __init__(self, on_call: Callable[[int], None] | None = None):
        self.delays: list[float] = []
        self.on_call = on_call

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_call is not None:
            self.on_call(len(self.delays))


class FakeVmix:
    """httpx.MockTransport handler mimicking the vMix web controller."""

    def __init__(self, fail_functions: set[str] | None = None, snapshot_size: tuple[int, int] | None = None):
        self.fail_functions = fail_functions or set()
        self.snapshot_size = snapshot_size
        self.calls: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        query = {k: v[0] for k, v in parse_qs(urlparse(str(request.url)).query).items()}
        if "Function" not in query:
            return httpx.Response(200, text=STATE_XML)

        self.calls.append(query)
        if query["Function"] in self.fail_functions:
            return httpx.Response(500, text="Function failed")
        if query["Function"] in ("Snapshot", "SnapshotInput") and self.snapshot_size:
            Path(query["Value"]).write_bytes(make_jpeg(*self.snapshot_size))
        return httpx.Response(200, text="Function completed successfully.")

    def functions(self) -> list[str]:
        return [c["Function"] for c in self.calls]


@pytest.fixture
def recording_client() -> RecordingLayerClient:
    return RecordingLayerClient()


@pytest.fixture
def fake_vmix() -> FakeVmix:
    return FakeVmix()


@pytest.fixture
def client_factory(fake_vmix):
    """Builds VmixHttpClients wired to `fake_vmix` instead of the network."""

    def factory(host, port, **kwargs):
        return VmixHttpClient(host, port, transport=httpx.MockTransport(fake_vmix), **kwargs)

    return factory
