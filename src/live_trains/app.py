"""MCP application instance.

Tool modules register on `mcp` from here; server.py imports them so that
running the server (or `python -m live_trains.server`) exposes every tool.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "Live Trains",
    instructions="Live positions, speeds and routes of passenger trains in Poland",
)
