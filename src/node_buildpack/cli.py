from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from node_buildpack.builds.orchestrator import compile_build
from node_buildpack.config import Settings, default_cache_dir
from node_buildpack.errors import BuildpackError, ResolutionError
from node_buildpack.logging import configure_logging
from node_buildpack.types import Tool
from node_buildpack.versions.advisor import advise
from node_buildpack.versions.backends import create_backend
from node_buildpack.versions.resolver import resolve_or_fail

app = typer.Typer(
    name="node-buildpack",
    help="Provision Node.js, npm or yarn, and dependencies into a build directory.",
    no_args_is_help=True,
)


def _settings() -> Settings:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    configure_logging(settings.log_level)
    return settings


@app.command("compile", help="Provision the runtime and install dependencies")
def compile_cmd(
    build_dir: Path = typer.Argument(..., help="Application source to build in place"),
    cache_dir: Optional[Path] = typer.Argument(None, help="Directory kept between builds"),
    env_dir: Optional[Path] = typer.Argument(None, help="One file per application config var"),
) -> None:
    settings = _settings()
    try:
        asyncio.run(compile_build(build_dir, cache_dir or default_cache_dir(), env_dir, settings))
    except BuildpackError as e:
        typer.echo(f" !     {e}")
        raise typer.Exit(1)


@app.command("resolve", help="Resolve a version requirement to '<version> <url>'")
def resolve_cmd(
    tool: str = typer.Argument(..., help="node, yarn or npm"),
    constraint: str = typer.Argument("", help="semver range; empty for latest stable"),
) -> None:
    settings = _settings()
    try:
        selected = Tool(tool.lower())
    except ValueError:
        typer.echo(f"Error: unknown tool {tool}", err=True)
        raise typer.Exit(2)

    try:
        resolved = asyncio.run(resolve_or_fail(create_backend(settings), selected, constraint))
    except ResolutionError as e:
        typer.echo(str(e))
        raise typer.Exit(1)
    typer.echo(f"{resolved.version} {resolved.location}")


@app.command("advise", help="Print warnings for risky engine constraints")
def advise_cmd(
    node: str = typer.Argument("null", help="engines.node"),
    yarn: str = typer.Argument("null", help="engines.yarn"),
) -> None:
    for message in advise(node, yarn):
        typer.echo(message)


@app.command("serve", help="Run the MCP server on stdio")
def serve_cmd() -> None:
    from node_buildpack.server import main

    main()


def main() -> None:
    app()
