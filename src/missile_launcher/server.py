"""MCP server entry point for the missile launcher.

Exposes connection, movement, firing and status tools via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .launcher import MAX_MOVE_DURATION, Launcher
from .protocol.commands import Direction
from .transport.usb_connection import USBConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "missile-launcher",
    instructions="MCP server for the Dream Cheeky USB missile launcher",
)

# Seconds the fire tool polls for confirmation before giving up
DEFAULT_FIRE_TIMEOUT = 10.0

# Global connection state
_connection: USBConnection | None = None


def _get_connection() -> USBConnection:
    """Get the active USB connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


def _get_launcher(fire_timeout: float | None = None) -> Launcher:
    return Launcher(_get_connection(), fire_timeout=fire_timeout)


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Open the USB connection to the missile launcher (0x0a81:0x0701)."""
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "product": _connection.device_info.product,
        }

    _connection = USBConnection()
    info = _connection.open()
    return {
        "connected": True,
        "backend": _connection.backend,
        "manufacturer": info.manufacturer,
        "product": info.product,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the launcher."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── ACTION TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def move(direction: str, duration_ms: int = 100) -> dict[str, Any]:
    """Move the turret for a fixed time, then stop it.

    Args:
        direction: One of up, down, left, right.
        duration_ms: Movement time in milliseconds (0-9999, default 100).
    """
    try:
        parsed = Direction(direction.lower())
    except ValueError:
        return {"error": f"Unknown direction '{direction}'. Valid: {[d.value for d in Direction]}"}
    if not 0 <= duration_ms < MAX_MOVE_DURATION * 1000:
        return {"error": "Duration must be 0-9999 ms"}

    return _get_launcher().move(parsed, duration_ms / 1000).to_dict()


@mcp.tool()
def fire(timeout_s: float = DEFAULT_FIRE_TIMEOUT) -> dict[str, Any]:
    """Fire one missile and wait for the launcher to confirm it.

    Args:
        timeout_s: Seconds to wait for the fire confirmation before
                   stopping the launcher and reporting a timeout.
    """
    if not timeout_s > 0:
        return {"error": "Timeout must be positive"}
    return _get_launcher(fire_timeout=timeout_s).fire().to_dict()


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Read the limit switches and the fire-complete flag."""
    result = _get_launcher().query_status()
    response = result.to_dict()
    if result.status is not None:
        response["limits_hit"] = result.status.limits_hit()
    return response


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
