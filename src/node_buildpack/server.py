"""MCP server implementation."""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import mcp.types as types
from mcp.server import stdio
from mcp.server.lowlevel import Server
from mcp.server.models import InitializationOptions

from node_buildpack import __version__
from node_buildpack.builds.orchestrator import compile_build
from node_buildpack.config import Settings, default_cache_dir
from node_buildpack.errors import BuildpackError, log_error
from node_buildpack.logging import configure_logging, get_logger, set_output_stream
from node_buildpack.types import Tool
from node_buildpack.versions.advisor import advise
from node_buildpack.versions.backends import create_backend
from node_buildpack.versions.resolver import resolve_or_fail

logger = get_logger("server")

tools = [
    types.Tool(
        name="node_buildpack_resolve",
        description="Resolve a node, yarn or npm version requirement to a concrete release",
        inputSchema={
            "type": "object",
            "properties": {
                "tool": {"type": "string", "enum": [t.value for t in Tool]},
                "constraint": {"type": "string", "description": "semver range; empty for latest stable"},
            },
            "required": ["tool"],
        },
    ),
    types.Tool(
        name="node_buildpack_advise",
        description="List warnings for risky engines.node / engines.yarn constraints",
        inputSchema={
            "type": "object",
            "properties": {
                "node": {"type": "string"},
                "yarn": {"type": "string"},
            },
        },
    ),
    types.Tool(
        name="node_buildpack_compile",
        description="Provision node and install dependencies into a build directory",
        inputSchema={
            "type": "object",
            "properties": {
                "build_dir": {"type": "string", "description": "Application directory"},
                "cache_dir": {"type": "string", "description": "Directory kept between builds"},
                "env_dir": {"type": "string", "description": "Config var directory"},
            },
            "required": ["build_dir"],
        },
    ),
]


def _text(payload: Dict[str, Any]) -> List[types.TextContent]:
    return [types.TextContent(type="text", text=json.dumps(payload))]


async def handle_tool_call(
    name: str, arguments: Dict[str, Any], settings: Settings | None = None
) -> List[types.TextContent]:
    settings = settings or Settings.from_env()
    try:
        logger.debug({"event": "tool_call", "tool": name, "arguments": arguments})

        if name == "node_buildpack_resolve":
            tool = Tool(arguments["tool"])
            resolved = await resolve_or_fail(create_backend(settings), tool, arguments.get("constraint", ""))
            return _text({
                "success": True,
                "data": {"tool": tool.value, "version": resolved.version, "url": resolved.location},
            })

        if name == "node_buildpack_advise":
            warnings = advise(arguments.get("node"), arguments.get("yarn"))
            return _text({"success": True, "data": {"warnings": warnings}})

        if name == "node_buildpack_compile":
            cache_dir = arguments.get("cache_dir")
            env_dir = arguments.get("env_dir")
            result = await compile_build(
                Path(arguments["build_dir"]),
                Path(cache_dir) if cache_dir else default_cache_dir(),
                Path(env_dir) if env_dir else None,
                settings,
            )
            return _text({"success": True, "data": result.to_dict()})

        return _text({"success": False, "error": f"Unknown tool: {name}"})

    except BuildpackError as e:
        log_error(e, {"tool": name}, logger=logger)
        return _text({"success": False, "error": str(e), "code": e.code, "details": e.details})
    except (KeyError, ValueError) as e:
        return _text({"success": False, "error": f"Invalid arguments: {e}"})


def init_server(settings: Settings | None = None) -> Server:
    logger.info({"event": "tools_registered", "tools": [t.name for t in tools]})

    server = Server("node-buildpack")

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        return await handle_tool_call(name, arguments or {}, settings)

    return server


async def serve() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    # stdout carries the MCP protocol
    set_output_stream(sys.stderr)
    logger.info({"event": "server_starting"})
    server = init_server(settings)
    async with stdio.stdio_server() as (read_stream, write_stream):
        init_options = InitializationOptions(
            server_name="node-buildpack",
            server_version=__version__,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                logging=types.LoggingCapability(),
            ),
        )
        await server.run(read_stream, write_stream, init_options)


def main() -> None:
    """Run the MCP server."""
    asyncio.run(serve())
