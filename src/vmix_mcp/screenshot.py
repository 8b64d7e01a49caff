#!/usr/bin/env python3
"""Screenshot pipeline - asks vMix for a snapshot file and returns it inline.

vMix writes the snapshot asynchronously and never confirms completion, so
after the trigger we wait a settle delay, then poll the path until it can be
read. Only an unreadable file is retried: once bytes are read, a decode
failure is final.
"""

import asyncio
import base64
import io
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .config import CaptureSettings
from .errors import ScreenshotDecodeError, ScreenshotEncodeError, ScreenshotNotFoundError

logger = logging.getLogger("vmix-mcp.screenshot")

MIME_TYPE = "image/jpeg"


class SnapshotClient(Protocol):
    async def snapshot(self, path: str) -> None: ...
    async def snapshot_input(self, input: str, path: str) -> None: ...


@dataclass(frozen=True)
class CapturedImage:
    data: str  # base64
    width: int
    height: int
    path: str = ""
    mime_type: str = MIME_TYPE


def downscale_jpeg(raw: bytes, divisor: int = 2, quality: int = 80) -> tuple[bytes, int, int]:
    """Decode JPEG bytes, shrink each axis by `divisor` (nearest neighbour), re-encode.

    Returns (jpeg_bytes, width, height).
    """
    try:
        img = Image.open(io.BytesIO(raw))
        if img.format != "JPEG":
            raise ScreenshotDecodeError(f"snapshot is {img.format or 'unknown'}, not JPEG")
        img.load()
    except ScreenshotDecodeError:
        raise
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ScreenshotDecodeError(f"failed to decode snapshot: {e}") from e

    width, height = img.width // divisor, img.height // divisor
    if width == 0 or height == 0:
        raise ScreenshotEncodeError(
            f"snapshot {img.width}x{img.height} is too small to downscale by {divisor}"
        )

    resized = img.convert("RGB").resize((width, height), Image.Resampling.NEAREST)

    buffer = io.BytesIO()
    try:
        resized.save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise ScreenshotEncodeError(f"failed to encode snapshot: {e}") from e
    return buffer.getvalue(), width, height


class ScreenshotPipeline:
    """Triggers vMix snapshots and, for the capture-and-return path, reads them back."""

    def __init__(
        self,
        settings: CaptureSettings | None = None,
        log: logging.Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or CaptureSettings()
        self._logger = log or logger
        self._sleep = sleep

    def temp_path(self) -> Path:
        """Snapshot target named after the current second, e.g. 20250102_150405.jpg."""
        return Path(self.settings.snapshot_dir) / time.strftime("%Y%m%d_%H%M%S.jpg")

    async def trigger(self, client: SnapshotClient, path: str, input: str | None = None) -> None:
        """Ask vMix to write a snapshot of the program output, or of `input`, to `path`."""
        if input is None:
            await client.snapshot(path)
        else:
            await client.snapshot_input(input, path)
        self._logger.info(f"Snapshot of {input or 'program output'} requested to {path}")

    async def capture(self, client: SnapshotClient, input: str | None = None) -> CapturedImage:
        """Snapshot to a temp file and return it as a half-size base64 JPEG."""
        path = self.temp_path()
        await self.trigger(client, str(path), input)
        await self._sleep(self.settings.settle_delay)
        return await self.read(path)

    async def read(self, path: Path) -> CapturedImage:
        """Poll `path` until readable, then downscale and encode it."""
        loop = asyncio.get_running_loop()
        attempts = self.settings.poll_attempts

        for attempt in range(1, attempts + 1):
            try:
                raw = await loop.run_in_executor(None, path.read_bytes)
            except OSError as e:
                self._logger.debug(f"Snapshot not readable yet (attempt {attempt}/{attempts}): {e}")
                await self._sleep(self.settings.poll_interval)
                continue

            data, width, height = await loop.run_in_executor(
                None, downscale_jpeg, raw, self.settings.scale_divisor, self.settings.jpeg_quality
            )
            self._logger.info(f"Read snapshot {path} on attempt {attempt}, resized to {width}x{height}")
            if self.settings.remove_after_read:
                self._remove(path)
            return CapturedImage(
                data=base64.b64encode(data).decode("utf-8"),
                width=width,
                height=height,
                path=str(path),
            )

        self._logger.error(f"Snapshot {path} did not appear after {attempts} attempts")
        raise ScreenshotNotFoundError(str(path), attempts)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._logger.warning(f"Could not remove snapshot {path}: {e}")
