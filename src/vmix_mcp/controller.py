#!/usr/bin/env python3
"""vMix controller - one method per tool, a fresh client per request."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from .backends.http import VmixHttpClient, VmixState, build_shortcut_url
from .config import Settings
from .errors import VmixError
from .layers import LayerDirective, LayerMutation, adjust_layers, make_scene
from .screenshot import CapturedImage, ScreenshotPipeline

logger = logging.getLogger("vmix-mcp.controller")

# Client methods that take no arguments, exposed as start/stop style tools
SHORTCUTS = (
    "fade_to_black",
    "start_recording",
    "stop_recording",
    "start_external",
    "stop_external",
    "start_multicorder",
    "stop_multicorder",
    "start_playlist",
    "stop_playlist",
    "fullscreen",
)


class VmixController:
    """Routes tool calls to a vMix instance.

    vMix's HTTP API is stateless, so no client is kept between calls; each
    request connects (fetching the state document), acts, and closes.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        log: logging.Logger | None = None,
        client_factory: Callable[..., VmixHttpClient] = VmixHttpClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or Settings()
        self._logger = log or logger
        self._client_factory = client_factory
        self.screenshots = ScreenshotPipeline(
            self.settings.capture, log=self._logger.getChild("screenshot"), sleep=sleep
        )

    @asynccontextmanager
    async def session(self, host: str, port: int) -> AsyncIterator[tuple[VmixHttpClient, VmixState]]:
        """Connect to vMix and yield (client, state); the client is closed on exit."""
        self._logger.info(f"Connecting to vMix instance at {host}:{port}")
        client = self._client_factory(
            host, port, timeout=self.settings.request_timeout, log=self._logger.getChild("http")
        )
        async with client:
            try:
                state = await client.connect()
            except VmixError as e:
                self._logger.error(str(e))
                raise
            yield client, state

    async def _call(self, host: str, port: int, method: str, *args: Any) -> None:
        async with self.session(host, port) as (client, _):
            try:
                await getattr(client, method)(*args)
            except VmixError as e:
                self._logger.error(f"Failed to {method.replace('_', ' ')}: {e}")
                raise
        self._logger.info(f"Successfully ran {method} on {host}:{port}")

    async def fetch(self, host: str, port: int) -> VmixState:
        async with self.session(host, port) as (_, state):
            self._logger.info(
                f"Fetched vMix information: Version={state.version}, "
                f"Edition={state.edition}, Preset={state.preset}"
            )
            return state

    async def cut(self, host: str, port: int, input: str) -> None:
        await self._call(host, port, "cut", input)

    async def fade(self, host: str, port: int, input: str, duration_ms: int) -> None:
        await self._call(host, port, "fade", input, duration_ms)

    async def start_streaming(self, host: str, port: int, stream_number: int) -> None:
        await self._call(host, port, "start_streaming", stream_number)

    async def stop_streaming(self, host: str, port: int, stream_number: int) -> None:
        await self._call(host, port, "stop_streaming", stream_number)

    async def shortcut(self, host: str, port: int, name: str) -> None:
        """Run one of the argument-less SHORTCUTS."""
        if name not in SHORTCUTS:
            raise ValueError(f"Unknown shortcut: {name}")
        await self._call(host, port, name)

    def shortcut_url(self, host: str, port: int, function: str, queries: dict[str, Any] | None = None) -> str:
        url = build_shortcut_url(host, port, function, queries)
        self._logger.info(f"Built shortcut URL: {url}")
        return url

    async def add_blank(self, host: str, port: int, count: int, transparent: bool = False) -> int:
        """Add `count` colour inputs concurrently. Returns how many were added."""
        colour = "Transparent" if transparent else "Black"
        async with self.session(host, port) as (client, _):
            results = await asyncio.gather(
                *(client.add_input("Colour", colour) for _ in range(count)),
                return_exceptions=True,
            )
        errors = [r for r in results if isinstance(r, Exception)]
        for error in errors:
            self._logger.error(f"Failed to add blank input: {error}")
        if errors:
            raise VmixError(
                f"failed to add {len(errors)} of {count} blank inputs: {errors[0]}"
            )
        return count

    async def snapshot(self, host: str, port: int, path: str, input: str | None = None) -> None:
        """Fire-and-forget: vMix writes the file, nothing is read back."""
        async with self.session(host, port) as (client, _):
            try:
                await self.screenshots.trigger(client, path, input)
            except VmixError as e:
                self._logger.error(f"Failed to take screenshot: {e}")
                raise

    async def check_screenshot(self, host: str, port: int, input: str | None = None) -> CapturedImage:
        """Snapshot to a temp file and return the image inline."""
        async with self.session(host, port) as (client, _):
            try:
                return await self.screenshots.capture(client, input)
            except VmixError as e:
                self._logger.error(f"Failed to read screenshot: {e}")
                raise

    async def make_scene(self, host: str, port: int, target: str, layers: list[LayerDirective]) -> list[LayerMutation]:
        async with self.session(host, port) as (client, _):
            return await make_scene(client, target, layers, **self._layer_options())

    async def adjust_layers(self, host: str, port: int, target: str, layers: list[LayerDirective]) -> list[LayerMutation]:
        async with self.session(host, port) as (client, _):
            return await adjust_layers(client, target, layers, **self._layer_options())

    def _layer_options(self) -> dict[str, Any]:
        return {
            "max_layers": self.settings.max_layers,
            "timeout": self.settings.operation_timeout,
            "log": self._logger.getChild("layers"),
        }
