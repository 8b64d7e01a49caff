#!/usr/bin/env python3
"""HTTP backend - talks to a single vMix instance over its web controller API.

Every vMix function is a GET on /api with the function name and its
arguments as query parameters. A non-2xx response means vMix rejected it.
GET /api without a function returns the XML state document.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..errors import VmixConnectionError, VmixRemoteCallError

logger = logging.getLogger("vmix-mcp.http")


@dataclass(frozen=True)
class InputOverlay:
    index: int
    key: str
    text: str
    position: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class VmixInput:
    number: int
    key: str
    title: str
    type: str
    state: str
    position: int
    duration: int
    loop: bool
    overlays: list[InputOverlay] = field(default_factory=list)

    def describe(self) -> str:
        overlays = "\n".join(
            f"Overlay: {o.index}: Text: {o.text} Key: {o.key} Positions:{o.position}"
            for o in self.overlays
        )
        return (
            f"Input: {self.number}: Key:{self.key}, Name: {self.title}. State: {self.state}, "
            f"Position: {self.position}, Duration: {self.duration}, Loop: {self.loop} "
            f"Overlays:{overlays}"
        )


@dataclass(frozen=True)
class VmixState:
    version: str
    edition: str
    preset: str
    inputs: list[VmixInput] = field(default_factory=list)


def _int_attr(element: ET.Element, name: str) -> int:
    try:
        return int(element.get(name, "0"))
    except ValueError:
        return 0


def parse_state(document: str) -> VmixState:
    """Parse the XML returned by GET /api. Raises ET.ParseError on malformed XML."""
    root = ET.fromstring(document)
    if root.tag != "vmix":
        raise ValueError(f"unexpected root element <{root.tag}>")

    inputs = []
    for node in root.iterfind("inputs/input"):
        overlays = []
        for overlay in node.iterfind("overlay"):
            position = overlay.find("position")
            overlays.append(InputOverlay(
                index=_int_attr(overlay, "index"),
                key=overlay.get("key", ""),
                text=(overlay.text or "").strip(),
                position=dict(position.attrib) if position is not None else {},
            ))
        inputs.append(VmixInput(
            number=_int_attr(node, "number"),
            key=node.get("key", ""),
            title=node.get("title", ""),
            type=node.get("type", ""),
            state=node.get("state", ""),
            position=_int_attr(node, "position"),
            duration=_int_attr(node, "duration"),
            loop=node.get("loop", "False").lower() == "true",
            overlays=overlays,
        ))

    return VmixState(
        version=root.findtext("version", ""),
        edition=root.findtext("edition", ""),
        preset=root.findtext("preset", ""),
        inputs=inputs,
    )


def format_value(value: Any) -> str:
    """Render a function argument the way vMix expects it in a query string."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_shortcut_url(host: str, port: int, function: str, queries: dict[str, Any] | None = None) -> str:
    """Build the web controller URL that triggers a function, without calling it."""
    params = {"Function": function}
    for key, value in (queries or {}).items():
        params[key] = format_value(value)
    url = httpx.URL(f"http://{host}:{port}/api", params=dict(sorted(params.items())))
    return str(url)


class VmixHttpClient:
    """Async client for one vMix instance.

    Use as an async context manager; the underlying connection pool is closed
    on exit. The pool is unbounded so layer fan-out is never throttled here.
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float | None = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        log: logging.Logger | None = None,
    ):
        self.host = host
        self.port = port
        self._logger = log or logger
        self._http = httpx.AsyncClient(
            base_url=f"http://{host}:{port}",
            timeout=timeout,
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            transport=transport,
        )

    async def __aenter__(self) -> "VmixHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def connect(self) -> VmixState:
        """Fetch the state document. Raises VmixConnectionError if vMix is unreachable."""
        try:
            response = await self._http.get("/api")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VmixConnectionError(self.host, self.port, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise VmixConnectionError(self.host, self.port, e) from e

        try:
            return parse_state(response.text)
        except (ET.ParseError, ValueError) as e:
            raise VmixConnectionError(self.host, self.port, f"invalid state document: {e}") from e

    async def send_function(self, function: str, **params: Any) -> str:
        """Call a vMix function. None-valued params are left out of the query."""
        query = {"Function": function}
        query.update({k: format_value(v) for k, v in params.items() if v is not None})
        self._logger.debug(f"vMix call {query}")

        try:
            response = await self._http.get("/api", params=query)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = e.response.text.strip()
            raise VmixRemoteCallError(function, params, f"HTTP {e.response.status_code}: {body}") from e
        except httpx.HTTPError as e:
            raise VmixRemoteCallError(function, params, repr(e)) from e

        return response.text

    # --- Shortcut functions ---

    async def cut(self, input: str) -> None:
        await self.send_function("Cut", Input=input)

    async def fade(self, input: str, duration_ms: int) -> None:
        await self.send_function("Fade", Input=input, Duration=duration_ms)

    async def fade_to_black(self) -> None:
        await self.send_function("FadeToBlack")

    async def start_recording(self) -> None:
        await self.send_function("StartRecording")

    async def stop_recording(self) -> None:
        await self.send_function("StopRecording")

    async def start_streaming(self, stream_number: int) -> None:
        await self.send_function("StartStreaming", Value=stream_number)

    async def stop_streaming(self, stream_number: int) -> None:
        await self.send_function("StopStreaming", Value=stream_number)

    async def start_external(self) -> None:
        await self.send_function("StartExternal")

    async def stop_external(self) -> None:
        await self.send_function("StopExternal")

    async def start_multicorder(self) -> None:
        await self.send_function("StartMultiCorder")

    async def stop_multicorder(self) -> None:
        await self.send_function("StopMultiCorder")

    async def start_playlist(self) -> None:
        await self.send_function("StartPlayList")

    async def stop_playlist(self) -> None:
        await self.send_function("StopPlayList")

    async def fullscreen(self) -> None:
        await self.send_function("Fullscreen")

    async def snapshot(self, path: str) -> None:
        await self.send_function("Snapshot", Value=path)

    async def snapshot_input(self, input: str, path: str) -> None:
        await self.send_function("SnapshotInput", Input=input, Value=path)

    async def add_input(self, input_type: str, value: str) -> None:
        await self.send_function("AddInput", Value=f"{input_type}|{value}")

    # --- Layer setters (slot is 1-based) ---

    async def set_layer_source(self, input: str, slot: int, source: str) -> None:
        await self.send_function("SetLayer", Input=input, Value=f"{slot},{source}")

    async def set_layer_pan_x(self, input: str, slot: int, value: float) -> None:
        await self.send_function(f"SetLayer{slot}PanX", Input=input, Value=value)

    async def set_layer_pan_y(self, input: str, slot: int, value: float) -> None:
        await self.send_function(f"SetLayer{slot}PanY", Input=input, Value=value)

    async def set_layer_zoom(self, input: str, slot: int, value: float) -> None:
        await self.send_function(f"SetLayer{slot}Zoom", Input=input, Value=value)

    async def set_layer_crop(self, input: str, slot: int, x1: float, y1: float, x2: float, y2: float) -> None:
        value = ",".join(format_value(v) for v in (x1, y1, x2, y2))
        await self.send_function(f"SetLayer{slot}Crop", Input=input, Value=value)
