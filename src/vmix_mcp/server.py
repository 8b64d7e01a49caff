#!/usr/bin/env python3
"""vMix MCP Server - switch inputs, record, stream, snapshot and compose scenes on vMix."""

import asyncio
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    ImageContent,
    Prompt,
    PromptArgument,
    PromptMessage,
    TextContent,
    Tool,
)

from .config import Settings
from .controller import VmixController
from .layers import CropRect, LayerDirective

logger = logging.getLogger("vmix-mcp")

# Create MCP server
server = Server("vmix")

# Global controller instance
controller: VmixController | None = None

# tool name -> (controller shortcut, description, success message)
SHORTCUT_TOOLS = {
    "vmix_fade_to_black": ("fade_to_black", "Fade the program output to black.", "Performed Fade To Black"),
    "vmix_start_recording": ("start_recording", "Start recording.", "Started recording"),
    "vmix_stop_recording": ("stop_recording", "Stop recording.", "Stopped recording"),
    "vmix_start_external": ("start_external", "Start external output.", "Started external output"),
    "vmix_stop_external": ("stop_external", "Stop external output.", "Stopped external output"),
    "vmix_start_multicorder": ("start_multicorder", "Start MultiCorder.", "Started MultiCorder"),
    "vmix_stop_multicorder": ("stop_multicorder", "Stop MultiCorder.", "Stopped MultiCorder"),
    "vmix_start_playlist": ("start_playlist", "Start the playlist.", "Started playlist"),
    "vmix_stop_playlist": ("stop_playlist", "Stop the playlist.", "Stopped playlist"),
    "vmix_fullscreen": ("fullscreen", "Toggle the fullscreen output.", "Toggled fullscreen"),
}

INPUT_DESCRIPTION = "The input number or input key (UUID). Key is preferred."
PAN_X_DESCRIPTION = "Layer position X. 0 is center, negative is left, positive is right. Range -2 to 2."
PAN_Y_DESCRIPTION = "Layer position Y. 0 is center, negative is up, positive is down. Range -2 to 2."
ZOOM_DESCRIPTION = "Layer zoom. 1 is 100% (default). Range 0 to 5."


def get_controller() -> VmixController:
    """Get or create the vMix controller."""
    global controller
    if controller is None:
        controller = VmixController(Settings.from_env())
    return controller


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    """Input schema with the ip/port pair every tool takes."""
    return {
        "type": "object",
        "properties": {
            "ip": {
                "type": "string",
                "description": "The IP address of the vMix instance. Generally 127.0.0.1",
            },
            "port": {
                "type": "integer",
                "description": "The port of the vMix web controller. Generally 8088",
            },
            **(properties or {}),
        },
        "required": ["ip", "port", *(required or [])],
    }


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available vMix tools."""
    input_prop = {"input": {"type": "string", "description": INPUT_DESCRIPTION}}
    stream_prop = {
        "streamNumber": {
            "type": "integer",
            "description": "The stream number. Generally 1~4.",
        }
    }
    save_prop = {
        "saveDir": {
            "type": "string",
            "description": "File path vMix saves the screenshot to, e.g. C:/Users/me/Desktop/test.jpg. The format follows the extension.",
        }
    }

    tools = [
        Tool(
            name="vmix_fetch",
            description="Connect to vMix and list its version, edition, preset and every input with its overlays.",
            inputSchema=_schema(),
        ),
        Tool(
            name="vmix_cut",
            description="Cut to an input.",
            inputSchema=_schema(input_prop, ["input"]),
        ),
        Tool(
            name="vmix_fade",
            description="Fade to an input.",
            inputSchema=_schema({
                **input_prop,
                "duration": {"type": "integer", "description": "Fade duration in milliseconds."},
            }, ["input", "duration"]),
        ),
        Tool(
            name="vmix_start_streaming",
            description="Start streaming on a stream channel.",
            inputSchema=_schema(stream_prop, ["streamNumber"]),
        ),
        Tool(
            name="vmix_stop_streaming",
            description="Stop streaming on a stream channel.",
            inputSchema=_schema(stream_prop, ["streamNumber"]),
        ),
    ]

    tools += [
        Tool(name=name, description=description, inputSchema=_schema())
        for name, (_, description, _) in SHORTCUT_TOOLS.items()
    ]

    tools += [
        Tool(
            name="vmix_snapshot",
            description="Save a snapshot of the program output to a file on the vMix machine.",
            inputSchema=_schema(save_prop, ["saveDir"]),
        ),
        Tool(
            name="vmix_snapshot_input",
            description="Save a snapshot of an input to a file on the vMix machine.",
            inputSchema=_schema({**input_prop, **save_prop}, ["input", "saveDir"]),
        ),
        Tool(
            name="vmix_check_screenshot",
            description="Capture the program output and return it as a half-size JPEG image. Takes a few seconds.",
            inputSchema=_schema(),
        ),
        Tool(
            name="vmix_check_screenshot_input",
            description="Capture an input and return it as a half-size JPEG image. Takes a few seconds.",
            inputSchema=_schema(input_prop, ["input"]),
        ),
        Tool(
            name="vmix_shortcut_url",
            description="Build the web controller URL for a vMix function without calling it.",
            inputSchema=_schema({
                "function": {"type": "string", "description": "The vMix function name, e.g. Cut"},
                "queries": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                    "description": 'Function arguments, e.g. {"Input": "1"}',
                },
            }, ["function"]),
        ),
        Tool(
            name="vmix_add_blank",
            description="Add blank colour inputs.",
            inputSchema=_schema({
                "numbers": {"type": "integer", "description": "How many blank inputs to add"},
                "isTransparent": {"type": "boolean", "description": "Add transparent instead of black inputs"},
            }, ["numbers"]),
        ),
        Tool(
            name="vmix_make_scene",
            description="Fill layers 1..N of a scene input, in order, with the given inputs, position and zoom. Up to 10 layers.",
            inputSchema=_schema({
                **input_prop,
                "layers": {
                    "type": "array",
                    "maxItems": 10,
                    "items": {
                        "type": "object",
                        "properties": {
                            **input_prop,
                            "panX": {"type": "number", "description": PAN_X_DESCRIPTION},
                            "panY": {"type": "number", "description": PAN_Y_DESCRIPTION},
                            "zoom": {"type": "number", "description": ZOOM_DESCRIPTION},
                        },
                        "required": ["input", "panX", "panY", "zoom"],
                    },
                },
            }, ["input", "layers"]),
        ),
        Tool(
            name="vmix_adjust_layers",
            description="Set input, position, zoom and crop of specific layers of a scene input. Up to 10 layers.",
            inputSchema=_schema({
                **input_prop,
                "layers": {
                    "type": "array",
                    "maxItems": 10,
                    "items": {
                        "type": "object",
                        "properties": {
                            **input_prop,
                            "index": {"type": "integer", "description": "Layer index, 1~10."},
                            "panX": {"type": "number", "description": PAN_X_DESCRIPTION},
                            "panY": {"type": "number", "description": PAN_Y_DESCRIPTION},
                            "zoom": {"type": "number", "description": ZOOM_DESCRIPTION},
                            "cropX1": {"type": "number", "description": "Crop left. 0 = no crop, 1 = full crop. Default 0."},
                            "cropY1": {"type": "number", "description": "Crop top. 0 = no crop, 1 = full crop. Default 0."},
                            "cropX2": {"type": "number", "description": "Crop right. 1 = no crop, 0 = full crop. Default 1."},
                            "cropY2": {"type": "number", "description": "Crop bottom. 1 = no crop, 0 = full crop. Default 1."},
                        },
                        "required": ["input", "index", "panX", "panY", "zoom"],
                    },
                },
            }, ["input", "layers"]),
        ),
    ]
    return tools


def _target(arguments: dict[str, Any]) -> tuple[str, int]:
    c = get_controller()
    host = arguments.get("ip") or c.settings.default_ip
    port = int(arguments.get("port") or c.settings.default_port)
    return host, port


def _parse_layers(raw: list[dict[str, Any]], explicit: bool) -> list[LayerDirective]:
    """Turn tool-call layer objects into directives; explicit layers carry index and crop."""
    layers = []
    for item in raw:
        crop = index = None
        if explicit:
            crop = CropRect(
                float(item.get("cropX1", 0.0)),
                float(item.get("cropY1", 0.0)),
                float(item.get("cropX2", 1.0)),
                float(item.get("cropY2", 1.0)),
            )
            index = int(item["index"])
        layers.append(LayerDirective(
            source=str(item["input"]),
            pan_x=float(item.get("panX", 0.0)),
            pan_y=float(item.get("panY", 0.0)),
            zoom=float(item.get("zoom", 1.0)),
            crop=crop,
            index=index,
        ))
    return layers


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent | ImageContent]:
    """Handle tool calls."""
    c = get_controller()
    host, port = _target(arguments)

    try:
        if name == "vmix_fetch":
            state = await c.fetch(host, port)
            lines = [
                f"Connected to vMix instance {host}:{port}",
                f"vMix version is {state.version}, Edition is {state.edition}.",
                f"vMix is running on {state.preset}.",
                *(i.describe() for i in state.inputs),
            ]
            return [TextContent(type="text", text=line) for line in lines]

        elif name == "vmix_cut":
            await c.cut(host, port, str(arguments["input"]))
            return _text(f"Cut to input {arguments['input']}")

        elif name == "vmix_fade":
            duration = int(arguments["duration"])
            await c.fade(host, port, str(arguments["input"]), duration)
            return _text(f"Fade to input {arguments['input']} for Duration {duration}")

        elif name == "vmix_start_streaming":
            await c.start_streaming(host, port, int(arguments["streamNumber"]))
            return _text("Started streaming")

        elif name == "vmix_stop_streaming":
            await c.stop_streaming(host, port, int(arguments["streamNumber"]))
            return _text("Stopped streaming")

        elif name in SHORTCUT_TOOLS:
            shortcut, _, message = SHORTCUT_TOOLS[name]
            await c.shortcut(host, port, shortcut)
            return _text(message)

        elif name == "vmix_snapshot":
            await c.snapshot(host, port, arguments["saveDir"])
            return _text("Took screenshot")

        elif name == "vmix_snapshot_input":
            await c.snapshot(host, port, arguments["saveDir"], str(arguments["input"]))
            return _text("Took input screenshot")

        elif name in ("vmix_check_screenshot", "vmix_check_screenshot_input"):
            input = str(arguments["input"]) if name == "vmix_check_screenshot_input" else None
            image = await c.check_screenshot(host, port, input)
            return [
                ImageContent(type="image", data=image.data, mimeType=image.mime_type),
                TextContent(
                    type="text",
                    text=f"Screenshot of {input or 'program output'} ({image.width}x{image.height})",
                ),
            ]

        elif name == "vmix_shortcut_url":
            return _text(c.shortcut_url(host, port, arguments["function"], arguments.get("queries")))

        elif name == "vmix_add_blank":
            await c.add_blank(host, port, int(arguments["numbers"]), bool(arguments.get("isTransparent", False)))
            return _text("Added blank inputs")

        elif name == "vmix_make_scene":
            target = str(arguments["input"])
            applied = await c.make_scene(host, port, target, _parse_layers(arguments["layers"], explicit=False))
            return _text(f"Created scene {target} ({len(applied)} layer settings applied)")

        elif name == "vmix_adjust_layers":
            target = str(arguments["input"])
            applied = await c.adjust_layers(host, port, target, _parse_layers(arguments["layers"], explicit=True))
            return _text(f"Adjusted layers on {target} ({len(applied)} layer settings applied)")

        else:
            raise ValueError(f"Unknown tool: {name}")

    except Exception:
        logger.exception(f"Error in {name}")
        raise


@server.list_prompts()
async def list_prompts() -> list[Prompt]:
    return [
        Prompt(
            name="connect_vmix",
            description="Connect to vMix",
            arguments=[
                PromptArgument(name="ip", description="The IP address of the vMix server", required=True),
                PromptArgument(name="port", description="The port of the vMix server", required=True),
            ],
        )
    ]


@server.get_prompt()
async def get_prompt(name: str, arguments: dict[str, str] | None) -> GetPromptResult:
    if name != "connect_vmix":
        raise ValueError(f"Unknown prompt: {name}")
    arguments = arguments or {}
    if "ip" not in arguments or "port" not in arguments:
        raise ValueError("connect_vmix requires ip and port")
    try:
        port = int(arguments["port"])
    except ValueError:
        raise ValueError(f"invalid port: {arguments['port']!r}") from None

    state = await get_controller().fetch(arguments["ip"], port)
    return GetPromptResult(
        description="Connected to vMix and get data",
        messages=[
            PromptMessage(
                role="user",
                content=TextContent(
                    type="text",
                    text=f"Connect to vMix and fetch data. IP: {arguments['ip']}, Port: {port}",
                ),
            ),
            PromptMessage(
                role="assistant",
                content=TextContent(
                    type="text",
                    text=(
                        f"Connected to vMix {state.version} ({state.edition}) "
                        f"with {len(state.inputs)} inputs."
                    ),
                ),
            ),
        ],
    )


def configure_logging(settings: Settings) -> None:
    """Log to stderr (stdout carries the MCP stream), and to a file if configured."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


async def main():
    """Run the MCP server."""
    global controller
    settings = Settings.from_env()
    configure_logging(settings)
    controller = VmixController(settings, log=logging.getLogger("vmix-mcp.controller"))

    logger.info("Starting vMix MCP server...")

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


if __name__ == "__main__":
    asyncio.run(main())
