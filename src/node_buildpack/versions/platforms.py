"""Platform detection and mapping."""
import platform
from dataclasses import dataclass
from typing import NamedTuple, Optional


@dataclass(frozen=True)
class PlatformInfo:
    """Platform information."""
    os_name: str
    arch: str
    format: str
    node_platform: str


class PlatformMapping(NamedTuple):
    """Platform-specific values."""
    node: str
    archive_format: str
    resolver_binary: str


ARCH_MAPPINGS = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

PLATFORM_MAPPINGS = {
    "Linux": PlatformMapping(
        node="linux",
        archive_format="tar.gz",
        resolver_binary="resolve-version-linux",
    ),
    "Darwin": PlatformMapping(
        node="darwin",
        archive_format="tar.gz",
        resolver_binary="resolve-version-darwin",
    ),
}


def get_platform_mapping(system: Optional[str] = None) -> PlatformMapping:
    system = system or platform.system()
    if system not in PLATFORM_MAPPINGS:
        raise RuntimeError(f"Unsupported operating system: {system}")
    return PLATFORM_MAPPINGS[system]


def get_platform_info(system: Optional[str] = None, machine: Optional[str] = None) -> PlatformInfo:
    """Get current platform information."""
    system = system or platform.system()
    machine = (machine or platform.machine()).lower()

    platform_map = get_platform_mapping(system)

    if machine not in ARCH_MAPPINGS:
        raise RuntimeError(f"Unsupported architecture: {machine}")
    arch = ARCH_MAPPINGS[machine]

    return PlatformInfo(
        os_name=system.lower(),
        arch=arch,
        format=platform_map.archive_format,
        node_platform=f"{platform_map.node}-{arch}",
    )
