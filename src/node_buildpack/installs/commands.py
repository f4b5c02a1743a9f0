"""Build command execution."""

import asyncio
from typing import Awaitable, Callable, Optional

from node_buildpack.errors import InstallCommandError
from node_buildpack.logging import get_logger, info
from node_buildpack.types import BuildEnvironment

logger = get_logger(__name__)

CommandRunner = Callable[[BuildEnvironment, str], Awaitable[tuple[int, bytes, bytes]]]


async def run_build_command(
    build: BuildEnvironment, cmd: str, env_vars: Optional[dict[str, str]] = None
) -> tuple[int, bytes, bytes]:
    """Run command in the build directory and return (returncode, stdout, stderr)."""

    cmd_env = {**build.env_vars, **(env_vars or {})}

    logger.debug({"event": "build_cmd_exec", "cmd": cmd})

    process = await asyncio.create_subprocess_shell(
        cmd,
        cwd=build.build_dir,
        env=cmd_env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    stdout, stderr = await process.communicate()

    if stdout:
        logger.debug({"event": "build_cmd_stdout", "cmd": cmd, "output": stdout.decode(errors="replace")})
    if stderr:
        logger.debug({"event": "build_cmd_stderr", "cmd": cmd, "output": stderr.decode(errors="replace")})

    logger.debug({"event": "build_cmd_complete", "cmd": cmd, "returncode": process.returncode})

    return process.returncode, stdout, stderr


async def run_checked(
    build: BuildEnvironment,
    cmd: str,
    runner: CommandRunner = run_build_command,
    description: Optional[str] = None,
) -> str:
    """Run a command, echo its output as build output, raise on failure."""
    returncode, stdout, stderr = await runner(build, cmd)
    out = stdout.decode(errors="replace") if stdout else ""
    err = stderr.decode(errors="replace") if stderr else ""

    if out.strip():
        info(out.rstrip())

    if returncode != 0:
        if err.strip():
            info(err.rstrip())
        raise InstallCommandError(cmd, returncode, out, err, description=description)

    return out
