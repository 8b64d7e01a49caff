"""vMix MCP Server - remote control of a running vMix instance over its HTTP API."""

import asyncio

__version__ = "0.1.0"

from .server import main as _async_main


def main():
    """Entry point for the MCP server."""
    asyncio.run(_async_main())


__all__ = ["main", "__version__"]
