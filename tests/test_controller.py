"""Tests for VmixController against a fake vMix web controller."""

import base64
import io

import httpx
import pytest
from PIL import Image

from conftest import FakeSleep, FakeVmix
from vmix_mcp.backends.http import VmixHttpClient
from vmix_mcp.config import CaptureSettings, Settings
from vmix_mcp.controller import VmixController
from vmix_mcp.errors import LayerProgramError, VmixConnectionError, VmixError
from vmix_mcp.layers import CropRect, LayerDirective


@pytest.fixture
def controller(client_factory, tmp_path):
    settings = Settings(capture=CaptureSettings(settle_delay=5.0, snapshot_dir=str(tmp_path)))
    return VmixController(settings, client_factory=client_factory, sleep=FakeSleep())


class TestSession:

    @pytest.mark.asyncio
    async def test_fetch_returns_state(self, controller):
        state = await controller.fetch("127.0.0.1", 8088)

        assert state.version == "27.0.0.49"
        assert len(state.inputs) == 2

    @pytest.mark.asyncio
    async def test_unreachable_vmix_raises_before_any_function(self, tmp_path):
        attempted = []

        def refuse(request):
            attempted.append(request.url.params.get("Function"))
            raise httpx.ConnectError("refused", request=request)

        def factory(host, port, **kwargs):
            return VmixHttpClient(host, port, transport=httpx.MockTransport(refuse), **kwargs)

        controller = VmixController(client_factory=factory)

        with pytest.raises(VmixConnectionError):
            await controller.cut("10.0.0.9", 8088, "1")

        assert attempted == [None]


class TestShortcuts:

    @pytest.mark.asyncio
    async def test_cut_and_fade(self, controller, fake_vmix):
        await controller.cut("127.0.0.1", 8088, "2")
        await controller.fade("127.0.0.1", 8088, "3", 1000)

        assert fake_vmix.functions() == ["Cut", "Fade"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name, function", [
        ("fade_to_black", "FadeToBlack"),
        ("start_recording", "StartRecording"),
        ("stop_recording", "StopRecording"),
        ("start_external", "StartExternal"),
        ("stop_external", "StopExternal"),
        ("start_multicorder", "StartMultiCorder"),
        ("stop_multicorder", "StopMultiCorder"),
        ("start_playlist", "StartPlayList"),
        ("stop_playlist", "StopPlayList"),
        ("fullscreen", "Fullscreen"),
    ])
    async def test_argumentless_shortcut(self, controller, fake_vmix, name, function):
        await controller.shortcut("127.0.0.1", 8088, name)

        assert fake_vmix.functions() == [function]

    @pytest.mark.asyncio
    async def test_unknown_shortcut(self, controller):
        with pytest.raises(ValueError):
            await controller.shortcut("127.0.0.1", 8088, "aclose")

    @pytest.mark.asyncio
    async def test_rejected_shortcut_propagates(self, client_factory, fake_vmix):
        fake_vmix.fail_functions.add("StartRecording")
        controller = VmixController(client_factory=client_factory)

        with pytest.raises(VmixError):
            await controller.shortcut("127.0.0.1", 8088, "start_recording")

    def test_shortcut_url_needs_no_connection(self, controller, fake_vmix):
        url = controller.shortcut_url("127.0.0.1", 8088, "Cut", {"Input": "1"})

        assert url == "http://127.0.0.1:8088/api?Function=Cut&Input=1"
        assert fake_vmix.calls == []


class TestAddBlank:

    @pytest.mark.asyncio
    async def test_adds_requested_number_of_inputs(self, controller, fake_vmix):
        added = await controller.add_blank("127.0.0.1", 8088, 3, transparent=True)

        assert added == 3
        assert [c["Value"] for c in fake_vmix.calls] == ["Colour|Transparent"] * 3

    @pytest.mark.asyncio
    async def test_failures_are_reported(self, client_factory, fake_vmix):
        fake_vmix.fail_functions.add("AddInput")
        controller = VmixController(client_factory=client_factory)

        with pytest.raises(VmixError, match="2 of 2"):
            await controller.add_blank("127.0.0.1", 8088, 2)


class TestScenes:

    @pytest.mark.asyncio
    async def test_make_scene_end_to_end(self, controller, fake_vmix):
        layers = [LayerDirective("2", 0.5, -0.5, 0.5), LayerDirective("3", -0.5, 0.5, 0.5)]

        applied = await controller.make_scene("127.0.0.1", 8088, "5", layers)

        assert len(applied) == 8
        assert sorted(fake_vmix.functions()) == sorted(
            ["SetLayer"] * 2
            + ["SetLayer1PanX", "SetLayer1PanY", "SetLayer1Zoom"]
            + ["SetLayer2PanX", "SetLayer2PanY", "SetLayer2Zoom"]
        )

    @pytest.mark.asyncio
    async def test_adjust_layers_partial_failure(self, controller, fake_vmix):
        fake_vmix.fail_functions.add("SetLayer3Crop")
        directive = LayerDirective("7", 0.5, -0.5, 2, CropRect(0, 0, 1, 1), index=3)

        with pytest.raises(LayerProgramError) as exc_info:
            await controller.adjust_layers("127.0.0.1", 8088, "5", [directive])

        assert [(f.slot, f.field) for f in exc_info.value.failures] == [(3, "crop")]
        assert len(fake_vmix.calls) == 5

    @pytest.mark.asyncio
    async def test_layer_limit_comes_from_settings(self, client_factory, fake_vmix):
        controller = VmixController(Settings(max_layers=2), client_factory=client_factory)

        with pytest.raises(VmixError):
            await controller.make_scene("127.0.0.1", 8088, "5", [LayerDirective(str(i)) for i in range(3)])

        assert fake_vmix.calls == []


class TestScreenshots:

    @pytest.mark.asyncio
    async def test_snapshot_is_fire_and_forget(self, controller, fake_vmix):
        await controller.snapshot("127.0.0.1", 8088, "C:/shots/out.jpg", input="4")

        assert fake_vmix.calls == [{"Function": "SnapshotInput", "Input": "4", "Value": "C:/shots/out.jpg"}]

    @pytest.mark.asyncio
    async def test_check_screenshot_returns_half_size_jpeg(self, controller, fake_vmix, tmp_path):
        fake_vmix.snapshot_size = (1920, 1080)

        image = await controller.check_screenshot("127.0.0.1", 8088)

        assert fake_vmix.functions() == ["Snapshot"]
        assert fake_vmix.calls[0]["Value"].startswith(str(tmp_path))
        assert image.mime_type == "image/jpeg"
        decoded = Image.open(io.BytesIO(base64.b64decode(image.data)))
        assert decoded.format == "JPEG"
        assert decoded.size == (960, 540)
