"""Resolver backends answering "which version satisfies this constraint?".

Every backend speaks the same single-line protocol:

    "<version> <url>"       a satisfying release and where to download it
    "No result"             nothing satisfies the constraint
    "Could not parse ..."   the constraint is malformed
    "Could not get ..."     the release list is unusable

Anything else, or a non-zero return code, is treated by the resolver as a
transient failure.
"""

import asyncio
import os
import platform
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
import semantic_version

from node_buildpack.config import RESOLVER_BINARY, Settings
from node_buildpack.logging import get_logger
from node_buildpack.types import ResolverReply, Tool
from node_buildpack.versions.platforms import (
    PLATFORM_MAPPINGS,
    PlatformInfo,
    get_platform_info,
)

logger = get_logger(__name__)

NO_RESULT = "No result"
REQUEST_TIMEOUT = 30


class VersionResolverBackend(ABC):
    """Maps (tool, constraint) to one line of resolver output."""

    @abstractmethod
    async def query(self, tool: Tool, constraint: str) -> ResolverReply:
        """Ask the backend once; never raises for resolution problems."""


class BinaryResolverBackend(VersionResolverBackend):
    """Runs the vendored resolver executable built for the host platform."""

    binary_name: str = ""

    def __init__(self, vendor_dir: Path):
        self.binary = vendor_dir / self.binary_name

    async def query(self, tool: Tool, constraint: str) -> ResolverReply:
        logger.debug({
            "event": "resolver_exec",
            "binary": str(self.binary),
            "tool": tool.value,
            "constraint": constraint,
        })
        try:
            process = await asyncio.create_subprocess_exec(
                str(self.binary),
                tool.value,
                constraint,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # An HTTP proxy set by the app must not intercept release lookups
                env={**os.environ, "NO_PROXY": "amazonaws.com"},
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            logger.warning({
                "event": "resolver_exec_failed",
                "binary": str(self.binary),
                "error": str(e),
            })
            return ResolverReply(returncode=127, output=str(e))

        output = stdout.decode(errors="replace").strip() or stderr.decode(errors="replace").strip()
        return ResolverReply(
            returncode=process.returncode,
            output=output.splitlines()[0] if output else "",
        )


class LinuxResolverBackend(BinaryResolverBackend):
    binary_name = PLATFORM_MAPPINGS["Linux"].resolver_binary


class DarwinResolverBackend(BinaryResolverBackend):
    binary_name = PLATFORM_MAPPINGS["Darwin"].resolver_binary


BINARY_BACKENDS = {
    "Linux": LinuxResolverBackend,
    "Darwin": DarwinResolverBackend,
}


def backend_for_platform(vendor_dir: Path, system: Optional[str] = None) -> BinaryResolverBackend:
    """Pick the resolver executable matching the host operating system."""
    system = system or platform.system()
    backend_cls = BINARY_BACKENDS.get(system)
    if backend_cls is None:
        raise RuntimeError(f"Unsupported operating system: {system}")
    return backend_cls(vendor_dir)


class IndexResolverBackend(VersionResolverBackend):
    """Resolves against the public Node.js release index and the npm registry."""

    def __init__(
        self,
        node_mirror: str,
        npm_registry: str,
        platform_info: Optional[PlatformInfo] = None,
    ):
        self.node_mirror = node_mirror.rstrip("/")
        self.npm_registry = npm_registry.rstrip("/")
        self._platform_info = platform_info

    @property
    def platform_info(self) -> PlatformInfo:
        if self._platform_info is None:
            self._platform_info = get_platform_info()
        return self._platform_info

    def index_url(self, tool: Tool) -> str:
        if tool == Tool.NODE:
            return f"{self.node_mirror}/index.json"
        return f"{self.npm_registry}/{tool.value}"

    async def fetch_json(self, url: str) -> Any:
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

    def node_releases(self, data: Any) -> Dict[semantic_version.Version, tuple[str, bool]]:
        """Map each node release to (download url, is_lts). Malformed entries are skipped."""
        node_platform = self.platform_info.node_platform
        releases = {}
        for release in data if isinstance(data, list) else []:
            if not isinstance(release, dict):
                continue
            raw = str(release.get("version", "")).lstrip("v")
            try:
                version = semantic_version.Version(raw)
            except ValueError:
                continue
            url = (
                f"{self.node_mirror}/v{version}/"
                f"node-v{version}-{node_platform}.{self.platform_info.format}"
            )
            releases[version] = (url, bool(release.get("lts")))
        return releases

    def registry_releases(self, data: Any) -> Dict[semantic_version.Version, tuple[str, bool]]:
        """Map each registry release to (tarball url, is_stable). Malformed entries are skipped."""
        versions = data.get("versions") if isinstance(data, dict) else None
        releases = {}
        for raw, meta in versions.items() if isinstance(versions, dict) else []:
            try:
                version = semantic_version.Version(raw)
            except ValueError:
                continue
            dist = meta.get("dist") if isinstance(meta, dict) else None
            tarball = dist.get("tarball") if isinstance(dist, dict) else None
            if isinstance(tarball, str) and tarball:
                releases[version] = (tarball, not version.prerelease)
        return releases

    async def query(self, tool: Tool, constraint: str) -> ResolverReply:
        spec = None
        if constraint:
            try:
                spec = semantic_version.NpmSpec(constraint)
            except ValueError:
                return ResolverReply(returncode=1, output=f"Could not parse version requirement: {constraint}")

        url = self.index_url(tool)
        try:
            data = await self.fetch_json(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning({"event": "index_fetch_failed", "url": url, "error": str(e)})
            return ResolverReply(returncode=1, output=f"Request to {url} failed: {e}")

        if tool == Tool.NODE:
            releases = self.node_releases(data)
        else:
            releases = self.registry_releases(data)

        if not releases:
            return ResolverReply(returncode=1, output=f"Could not get {tool.value} releases from {url}")

        if spec is None:
            stable = [v for v, (_, is_stable) in releases.items() if is_stable and not v.prerelease]
            version = max(stable) if stable else None
        else:
            version = spec.select(releases.keys())

        if version is None:
            return ResolverReply(returncode=1, output=NO_RESULT)

        return ResolverReply(returncode=0, output=f"{version} {releases[version][0]}")


def create_backend(settings: Settings) -> VersionResolverBackend:
    """Build the backend selected by the buildpack settings."""
    if settings.resolver == RESOLVER_BINARY:
        return backend_for_platform(settings.vendor_dir)
    return IndexResolverBackend(settings.node_mirror, settings.npm_registry)
