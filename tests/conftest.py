import shutil
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union
from unittest.mock import AsyncMock

import pytest

from node_buildpack.builds.environment import create_build_environment
from node_buildpack.installs.runtime import RuntimeInstaller
from node_buildpack.types import BuildEnvironment, ResolvedVersion, ResolverReply, Tool
from node_buildpack.versions.backends import VersionResolverBackend

Reply = Union[str, ResolverReply]


class ScriptedBackend(VersionResolverBackend):
    """Answers from a per-tool script; the last reply repeats once exhausted."""

    def __init__(self, script: Dict[Tool, List[Reply]]):
        self.script = {tool: list(replies) for tool, replies in script.items()}
        self.calls: List[Tuple[Tool, str]] = []

    async def query(self, tool: Tool, constraint: str) -> ResolverReply:
        self.calls.append((tool, constraint))
        replies = self.script[tool]
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, str):
            return ResolverReply(returncode=0, output=reply)
        return reply


class FakeInstaller(RuntimeInstaller):
    """Lays out a bin/ directory instead of downloading anything."""

    def __init__(self):
        self.calls: List[Tuple[Tool, ResolvedVersion, Path]] = []

    async def install(self, tool: Tool, resolved: ResolvedVersion, dest: Path, tmp_dir: Path) -> Path:
        self.calls.append((tool, resolved, dest))
        (dest / "bin").mkdir(parents=True, exist_ok=True)
        (dest / "bin" / tool.value).write_text("#!/bin/sh\n")
        return dest


class RecordingRunner:
    """Command runner double: records commands, answers by command prefix."""

    def __init__(self):
        self.commands: List[str] = []
        self.responses: Dict[str, Tuple[int, bytes, bytes]] = {
            "npm --version": (0, b"6.14.4\n", b""),
        }
        self.effects: Dict[str, Callable[[BuildEnvironment], None]] = {}
        self.envs: List[Dict[str, str]] = []

    def respond(self, prefix: str, returncode: int, stdout: bytes = b"", stderr: bytes = b"") -> None:
        self.responses[prefix] = (returncode, stdout, stderr)

    def on(self, prefix: str, effect: Callable[[BuildEnvironment], None]) -> None:
        self.effects[prefix] = effect

    async def __call__(self, build: BuildEnvironment, cmd: str) -> Tuple[int, bytes, bytes]:
        self.commands.append(cmd)
        self.envs.append(dict(build.env_vars))
        for prefix, effect in self.effects.items():
            if cmd.startswith(prefix):
                effect(build)
        for prefix, response in self.responses.items():
            if cmd.startswith(prefix):
                return response
        return 0, b"", b""

    def ran(self, prefix: str) -> bool:
        return any(cmd.startswith(prefix) for cmd in self.commands)


@pytest.fixture
def build(tmp_path: Path):
    """A real build environment rooted in tmp_path"""
    env = create_build_environment(tmp_path / "build", tmp_path / "cache")
    try:
        yield env
    finally:
        shutil.rmtree(env.tmp_dir, ignore_errors=True)


@pytest.fixture
def scripted_backend() -> Callable[[Dict[Tool, List[Reply]]], ScriptedBackend]:
    return ScriptedBackend


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock()


def transient(output: str = "connection reset", code: int = 1) -> ResolverReply:
    return ResolverReply(returncode=code, output=output)


@pytest.fixture
def transient_reply() -> Callable[..., ResolverReply]:
    return transient
