#!/usr/bin/env python3
"""Layer program - composes multi-layer scenes on a vMix scene input.

A scene request becomes one remote call per (layer slot, attribute). All
calls start at once and run to completion; failures are collected rather
than short-circuiting, and mutations that did succeed are left applied.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .errors import LayerLimitError, LayerProgramError, VmixTimeoutError

logger = logging.getLogger("vmix-mcp.layers")

SCENE_FIELDS = ("source", "pan_x", "pan_y", "zoom")
ADJUST_FIELDS = ("source", "pan_x", "pan_y", "zoom", "crop")


class LayerClient(Protocol):
    async def set_layer_source(self, input: str, slot: int, source: str) -> None: ...
    async def set_layer_pan_x(self, input: str, slot: int, value: float) -> None: ...
    async def set_layer_pan_y(self, input: str, slot: int, value: float) -> None: ...
    async def set_layer_zoom(self, input: str, slot: int, value: float) -> None: ...
    async def set_layer_crop(self, input: str, slot: int, x1: float, y1: float, x2: float, y2: float) -> None: ...


class SlotPolicy(enum.Enum):
    POSITIONAL = "positional"  # directive i -> slot i + 1
    EXPLICIT = "explicit"  # directive carries its own slot


@dataclass(frozen=True)
class CropRect:
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 1.0
    y2: float = 1.0


@dataclass(frozen=True)
class LayerDirective:
    source: str
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    crop: CropRect | None = None
    index: int | None = None


@dataclass(frozen=True)
class SceneRequest:
    target: str
    layers: list[LayerDirective]
    policy: SlotPolicy = SlotPolicy.POSITIONAL

    @property
    def fields(self) -> tuple[str, ...]:
        return SCENE_FIELDS if self.policy is SlotPolicy.POSITIONAL else ADJUST_FIELDS

    def slot_for(self, position: int, directive: LayerDirective) -> int:
        if self.policy is SlotPolicy.POSITIONAL:
            return position + 1
        if directive.index is None:
            raise ValueError(f"layer {position} has no index")
        return directive.index


@dataclass(frozen=True)
class LayerMutation:
    slot: int
    field: str
    call: Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class LayerFailure:
    slot: int
    field: str
    cause: BaseException

    def __str__(self) -> str:
        return f"slot {self.slot} {self.field}: {self.cause}"


@dataclass
class LayerProgram:
    """Plans and runs the remote mutations for one scene request."""

    client: LayerClient
    request: SceneRequest
    max_layers: int | None = 10
    timeout: float | None = None
    log: logging.Logger = field(default=logger)

    def plan(self) -> list[LayerMutation]:
        """Expand the request into one mutation per (slot, field). Issues no calls."""
        count = len(self.request.layers)
        if self.max_layers is not None and count > self.max_layers:
            raise LayerLimitError(count, self.max_layers)

        target = self.request.target
        mutations = []
        for position, directive in enumerate(self.request.layers):
            slot = self.request.slot_for(position, directive)
            crop = directive.crop or CropRect()
            calls = {
                "source": lambda s=slot, d=directive: self.client.set_layer_source(target, s, d.source),
                "pan_x": lambda s=slot, d=directive: self.client.set_layer_pan_x(target, s, d.pan_x),
                "pan_y": lambda s=slot, d=directive: self.client.set_layer_pan_y(target, s, d.pan_y),
                "zoom": lambda s=slot, d=directive: self.client.set_layer_zoom(target, s, d.zoom),
                "crop": lambda s=slot, c=crop: self.client.set_layer_crop(target, s, c.x1, c.y1, c.x2, c.y2),
            }
            for name in self.request.fields:
                mutations.append(LayerMutation(slot, name, calls[name]))
        return mutations

    async def run(self) -> list[LayerMutation]:
        """Run every mutation concurrently and wait for all of them.

        Returns the mutations that were applied. Raises LayerProgramError
        naming every failed (slot, field) if any call failed; the others
        are not rolled back.
        """
        mutations = self.plan()
        self.log.info(
            f"Applying {len(mutations)} layer mutations to input {self.request.target} "
            f"({len(self.request.layers)} layers)"
        )

        try:
            async with asyncio.timeout(self.timeout):
                results = await asyncio.gather(
                    *(m.call() for m in mutations), return_exceptions=True
                )
        except TimeoutError as e:
            msg = f"layer update on input {self.request.target} exceeded {self.timeout}s"
            self.log.error(msg)
            raise VmixTimeoutError(msg) from e

        failures = []
        for mutation, result in zip(mutations, results):
            if isinstance(result, Exception):
                failure = LayerFailure(mutation.slot, mutation.field, result)
                self.log.error(f"failed to set layer {failure}")
                failures.append(failure)
            elif isinstance(result, BaseException):
                raise result

        if failures:
            raise LayerProgramError(self.request.target, failures)

        self.log.info(f"Applied {len(mutations)} layer mutations to input {self.request.target}")
        return mutations


async def make_scene(
    client: LayerClient,
    target: str,
    layers: list[LayerDirective],
    **options: Any,
) -> list[LayerMutation]:
    """Fill slots 1..N of `target` with source, pan and zoom from each directive."""
    request = SceneRequest(target, list(layers), SlotPolicy.POSITIONAL)
    return await LayerProgram(client, request, **options).run()


async def adjust_layers(
    client: LayerClient,
    target: str,
    layers: list[LayerDirective],
    **options: Any,
) -> list[LayerMutation]:
    """Set source, pan, zoom and crop on each directive's own slot of `target`."""
    request = SceneRequest(target, list(layers), SlotPolicy.EXPLICIT)
    return await LayerProgram(client, request, **options).run()
